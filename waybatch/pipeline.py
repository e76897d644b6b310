"""
Archiving pipeline: the single consumer of the line queue.

URLs are handled strictly one at a time, in arrival order:

    queued -> skipped                                (fresh record exists)
    queued -> archiving -> rate-limited -> archiving (fixed backoff, repeat)
    archiving -> done [-> cooling-down]              (cooldown only for new captures)
    archiving -> failed                              (recorded, never retried)

Every `checkpoint_every` resolved URLs the full store is written to the sink
(when the sink supports checkpoints); the store is always written once more
when the input is exhausted.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Protocol, assert_never

from waybatch.config import Settings
from waybatch.config import settings as default_settings
from waybatch.models import (
    ArchiveOutcome,
    ArchiveRecord,
    Archived,
    Failed,
    ProgressEvent,
    RateLimited,
    Status,
)
from waybatch.progress import LogReporter, Reporter
from waybatch.sources import CLOSED, LineSource
from waybatch.storage.base import ResultSink
from waybatch.storage.results import ResultStore
from waybatch.utils import utc_now

logger = logging.getLogger(__name__)


class Archiver(Protocol):
    async def archive(self, url: str) -> ArchiveOutcome: ...


class ArchivePipeline:
    def __init__(
        self,
        store: ResultStore,
        archiver: Archiver,
        sink: ResultSink,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
        reporter: Reporter | None = None,
    ):
        self.store = store
        self.archiver = archiver
        self.sink = sink
        self.settings = settings or default_settings
        self.sleep = sleep
        self.clock = clock
        self.reporter = reporter or LogReporter()

        self.processed = 0
        self.skipped = 0
        self.checkpoints = 0

    async def run(self, source: LineSource) -> ResultStore:
        queue: asyncio.Queue = asyncio.Queue()
        source.start(queue)

        index = 0
        while True:
            item = await queue.get()
            if item is CLOSED:
                break
            if isinstance(item, BaseException):
                raise item
            index += 1
            await self.process(item, index, source.total_known)

        logger.info(
            "Input exhausted: %d processed, %d skipped, %d results total",
            self.processed, self.skipped, len(self.store),
        )
        self.sink.write(self.store)
        return self.store

    async def process(self, raw: str, index: int, total: int) -> None:
        url = raw.strip()
        if not url:
            return

        def emit(status: Status, detail: str = "") -> None:
            self.reporter(ProgressEvent(status, url, index, max(total, index), detail))

        if self.store.should_skip(url, self.clock()):
            if self.store.lookup(url).url is None:
                # A recent failure counts as fresh too
                logger.info("Skipping %s: failed recently and is still within the freshness window", url)
            self.skipped += 1
            emit(Status.SKIPPED)
            return

        emit(Status.ARCHIVING)
        await self._attempt(url, emit)

        self.processed += 1
        if self.processed % self.settings.checkpoint_every == 0 and self.sink.checkpoints:
            logger.info("Writing intermediate results (%d processed)...", self.processed)
            self.sink.write(self.store)
            self.checkpoints += 1

    async def _attempt(self, url: str, emit: Callable[..., None]) -> None:
        retries = 0
        limit = self.settings.max_rate_limit_retries
        while True:
            outcome = await self.archiver.archive(url)

            if isinstance(outcome, RateLimited):
                if limit is not None and retries >= limit:
                    outcome = Failed(f"still rate limited after {retries} retries")
                else:
                    retries += 1
                    detail = f"retry {retries}"
                    if outcome.retry_after is not None:
                        detail += f", server asked for {outcome.retry_after:g}s"
                    emit(Status.RATE_LIMITED, detail)
                    await self.sleep(self.settings.rate_limit_backoff_seconds)
                    continue

            if isinstance(outcome, Archived):
                self.store.upsert(url, ArchiveRecord(
                    last_archived=self.clock(),
                    url=outcome.archived_url,
                    existing_snapshot=outcome.existing_snapshot,
                ))
                emit(Status.DONE, outcome.archived_url)
                if not outcome.existing_snapshot:
                    emit(Status.COOLING_DOWN)
                    await self.sleep(self.settings.cooldown_seconds)
            elif isinstance(outcome, Failed):
                self.store.upsert(url, ArchiveRecord(last_archived=self.clock()))
                emit(Status.FAILED, outcome.reason)
            else:
                assert_never(outcome)
            return
