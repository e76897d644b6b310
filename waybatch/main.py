from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import TextIO

from waybatch.config import Settings, settings
from waybatch.pipeline import Archiver, ArchivePipeline
from waybatch.progress import Reporter, TqdmReporter
from waybatch.services.archiver import WaybackArchiver
from waybatch.sources import LineSource
from waybatch.storage.base import ResultSink
from waybatch.storage.console import ConsoleResultSink
from waybatch.storage.local import FileResultSink
from waybatch.storage.results import ResultStore, SnapshotError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="waybatch",
        description="Archive URLs with the Wayback Machine, skipping ones archived in the last ~6 months.",
    )
    parser.add_argument(
        "-o", "--out",
        help="Save results to this JSON file. Otherwise they are printed when the run ends.",
    )
    parser.add_argument(
        "-m", "--merge", action="store_true",
        help="Merge with the existing contents of the --out file.",
    )
    parser.add_argument(
        "-u", "--urls-file", "--urls_file", dest="urls_file",
        help="A file containing URLs to archive, one per line.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: from settings)")
    parser.add_argument("--no-progress", action="store_true", help="Log progress instead of drawing a bar")
    parser.add_argument(
        "urls", nargs="*",
        help="URLs to archive. URLs can also be provided on stdin, or with --urls-file.",
    )
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.merge and not args.out:
        parser.error("--merge requires --out to be set")
    return args


async def run(
    args: argparse.Namespace,
    config: Settings | None = None,
    archiver: Archiver | None = None,
    reporter: Reporter | None = None,
    stream: TextIO | None = None,
) -> ResultStore:
    config = config or settings

    if args.out:
        store = ResultStore.load(args.out, merge=args.merge)
        sink: ResultSink = FileResultSink(args.out)
    else:
        store = ResultStore()
        sink = ConsoleResultSink()

    source = LineSource(args.urls, args.urls_file, stream)
    logger.debug("URL source: %s", source.kind)

    pipeline = ArchivePipeline(
        store,
        archiver or WaybackArchiver(config),
        sink,
        settings=config,
        reporter=reporter,
    )
    return await pipeline.run(source)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    reporter = None if args.no_progress else TqdmReporter()
    try:
        asyncio.run(run(args, reporter=reporter))
    except (SnapshotError, OSError) as exc:
        logger.error("Aborting: %s", exc)
        return 1
    finally:
        if reporter is not None:
            reporter.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
