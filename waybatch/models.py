from dataclasses import dataclass
from datetime import datetime
from enum import Enum


@dataclass
class ArchiveRecord:
    last_archived: datetime     # naive UTC
    url: str | None = None      # permanent snapshot URL, only on success
    existing_snapshot: bool = False


@dataclass(frozen=True)
class Archived:
    archived_url: str
    existing_snapshot: bool = False


@dataclass(frozen=True)
class RateLimited:
    retry_after: float | None = None


@dataclass(frozen=True)
class Failed:
    reason: str


ArchiveOutcome = Archived | RateLimited | Failed


class Status(str, Enum):
    SKIPPED = "skipped"
    ARCHIVING = "archiving"
    COOLING_DOWN = "cooling-down"
    RATE_LIMITED = "rate-limited-waiting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    status: Status
    url: str
    index: int
    total: int
    detail: str = ""
