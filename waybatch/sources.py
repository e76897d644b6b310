"""
Line source: feeds raw URL lines into the pipeline queue.

Exactly one input is used per run, in priority order: URLs given on the
command line, a newline-delimited file, or standard input. File and stdin
input are read on a background thread so that slow input never holds up
URLs that are already queued.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
import threading
from pathlib import Path
from typing import Sequence, TextIO

logger = logging.getLogger(__name__)

# Enqueued once, after the last line
CLOSED = object()


class LineSource:
    def __init__(
        self,
        urls: Sequence[str] = (),
        urls_file: str | Path | None = None,
        stream: TextIO | None = None,
    ):
        self.urls = list(urls)
        self.urls_file = Path(urls_file) if urls_file else None
        self.stream = stream
        # Lines produced so far; advisory, only used for progress display
        self.total_known = 0

    @property
    def kind(self) -> str:
        if self.urls:
            return "args"
        if self.urls_file is not None:
            return "file"
        return "stdin"

    def start(self, queue: asyncio.Queue) -> None:
        """
        Begin producing into queue. Must be called from the running loop.
        Raises OSError right away if the URL file cannot be opened.
        """
        if self.urls:
            for url in self.urls:
                self.total_known += 1
                queue.put_nowait(url)
            queue.put_nowait(CLOSED)
            logger.debug("Queued %d URLs from arguments", len(self.urls))
            return

        if self.urls_file is not None:
            handle = self.urls_file.open("r", encoding="utf-8")
            logger.info("Reading URLs from %s", self.urls_file)
        else:
            handle = contextlib.nullcontext(self.stream or sys.stdin)
            logger.info("Reading URLs from standard input")

        loop = asyncio.get_running_loop()
        thread = threading.Thread(
            target=self._pump, args=(handle, queue, loop), name="line-source", daemon=True
        )
        thread.start()

    def _pump(self, handle, queue: asyncio.Queue, loop: asyncio.AbstractEventLoop) -> None:
        def put(item) -> bool:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, item)
            except RuntimeError:
                # Event loop already closed: the run is over
                logger.debug("Line source stopped, event loop is closed")
                return False
            return True

        try:
            with handle as lines:
                for line in lines:
                    self.total_known += 1
                    if not put(line.rstrip("\r\n")):
                        return
        except UnicodeDecodeError as exc:
            logger.error("Reading URLs failed: input is not valid UTF-8: %s", exc)
            put(OSError(f"cannot read URLs, input is not valid UTF-8: {exc}"))
        except Exception as exc:
            logger.error("Reading URLs failed: %s", exc)
            put(exc)
        finally:
            put(CLOSED)
