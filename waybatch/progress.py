from __future__ import annotations

import logging
import sys
from typing import Callable

from tqdm import tqdm

from waybatch.models import ProgressEvent, Status

logger = logging.getLogger(__name__)

Reporter = Callable[[ProgressEvent], None]

TERMINAL = {Status.SKIPPED, Status.DONE, Status.FAILED}

_MESSAGES = {
    Status.SKIPPED: "URL already archived: {url}",
    Status.ARCHIVING: "Archiving {url} ...",
    Status.COOLING_DOWN: "Cooldown after archiving...",
    Status.RATE_LIMITED: "Bandwidth exceeded. Waiting... ({detail})",
    Status.DONE: "Done: {detail}",
    Status.FAILED: "Archiving failed: {detail} ({url})",
}


def describe(event: ProgressEvent) -> str:
    message = _MESSAGES[event.status].format(url=event.url, detail=event.detail)
    return f"[{event.index}/{event.total}] {message}"


class LogReporter:
    def __call__(self, event: ProgressEvent) -> None:
        level = logging.WARNING if event.status is Status.FAILED else logging.INFO
        logger.log(level, describe(event))


class TqdmReporter:
    """One bar for the whole run; its total follows the known line count."""

    def __init__(self, file=None):
        self.bar = tqdm(total=0, unit="url", file=file or sys.stderr, dynamic_ncols=True)

    def __call__(self, event: ProgressEvent) -> None:
        self.bar.total = max(event.total, event.index)
        self.bar.set_description(f"[{event.index}/{event.total}] {event.status.value}", refresh=False)
        if event.status in TERMINAL:
            self.bar.write(describe(event), file=self.bar.fp)
            self.bar.n = event.index
        self.bar.refresh()

    def close(self) -> None:
        self.bar.close()
