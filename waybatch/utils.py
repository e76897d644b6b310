from datetime import UTC, datetime
from urllib.parse import urlparse


def is_valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the snapshot file format)."""
    return datetime.now(UTC).replace(tzinfo=None)
