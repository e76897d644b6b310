"""
Result store: URL -> last known archiving outcome.

Persisted as a pretty-printed JSON object keyed by URL:

    {
      "https://example.com/": {
        "last_archived": "2024-05-01T12:30:00",
        "url": "https://web.archive.org/web/20240501123000/https://example.com/",
        "existing_snapshot": false
      }
    }
"""
from __future__ import annotations

import json
import logging
import re
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Iterator

from waybatch.models import ArchiveRecord

logger = logging.getLogger(__name__)

# URLs archived more recently than this are skipped
FRESHNESS_WINDOW = timedelta(days=180)

# Older snapshots carry nanosecond precision; datetime stops at microseconds
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


class SnapshotError(RuntimeError):
    """The persisted snapshot could not be decoded."""


def _parse_timestamp(value: str) -> datetime:
    ts = datetime.fromisoformat(_LONG_FRACTION.sub(r"\1", value))
    if ts.tzinfo is not None:
        ts = ts.astimezone(UTC).replace(tzinfo=None)
    return ts


def _decode_record(url: str, raw) -> ArchiveRecord:
    if not isinstance(raw, dict):
        raise SnapshotError(f"record for {url!r} is not an object")
    try:
        last_archived = _parse_timestamp(raw["last_archived"])
    except (KeyError, TypeError, ValueError) as exc:
        raise SnapshotError(f"record for {url!r} has no valid last_archived: {exc}") from exc

    archived_url = raw.get("url")
    if archived_url is not None and not isinstance(archived_url, str):
        raise SnapshotError(f"record for {url!r} has a non-string url")
    existing_snapshot = raw.get("existing_snapshot", False)
    if not isinstance(existing_snapshot, bool):
        raise SnapshotError(f"record for {url!r} has a non-boolean existing_snapshot")
    return ArchiveRecord(
        last_archived=last_archived,
        url=archived_url,
        existing_snapshot=existing_snapshot,
    )


class ResultStore:
    def __init__(self, records: dict[str, ArchiveRecord] | None = None):
        self._records: dict[str, ArchiveRecord] = dict(records or {})

    # ── persistence ────────────────────────────────────────────────────────
    @classmethod
    def load(cls, path: str | Path, merge: bool = True) -> ResultStore:
        """
        Load a previous snapshot to merge into.
        A missing file (or merge=False) gives an empty store; any other
        read or decode error is fatal.
        """
        if not merge:
            return cls()
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No existing results at %s, starting empty", path)
            return cls()
        except UnicodeDecodeError as exc:
            raise SnapshotError(f"{path} is not valid UTF-8: {exc}") from exc
        store = cls.from_json(text)
        logger.info("Loaded %d existing results from %s", len(store), path)
        return store

    @classmethod
    def from_json(cls, text: str) -> ResultStore:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SnapshotError(f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise SnapshotError("snapshot must be a JSON object keyed by URL")
        return cls({url: _decode_record(url, raw) for url, raw in data.items()})

    def to_json(self) -> str:
        payload = {
            url: {
                "last_archived": record.last_archived.isoformat(),
                "url": record.url,
                "existing_snapshot": record.existing_snapshot,
            }
            for url, record in self.items()
        }
        return json.dumps(payload, indent=2, ensure_ascii=False)

    # ── mapping ────────────────────────────────────────────────────────────
    def lookup(self, url: str) -> ArchiveRecord | None:
        return self._records.get(url)

    def upsert(self, url: str, record: ArchiveRecord) -> None:
        self._records[url] = record

    def items(self) -> Iterator[tuple[str, ArchiveRecord]]:
        return iter(sorted(self._records.items()))

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, url: object) -> bool:
        return url in self._records

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResultStore):
            return NotImplemented
        return self._records == other._records

    # ── dedup ──────────────────────────────────────────────────────────────
    @staticmethod
    def is_fresh(record: ArchiveRecord, now: datetime) -> bool:
        return now - record.last_archived < FRESHNESS_WINDOW

    def should_skip(self, url: str, now: datetime) -> bool:
        record = self.lookup(url)
        return record is not None and self.is_fresh(record, now)
