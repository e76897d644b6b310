"""
Archiver: submits one URL to the Wayback Machine's Save Page Now endpoint
and classifies the response:
  1. Archived     : a snapshot location came back (new or pre-existing capture)
  2. RateLimited  : the service asked us to slow down (429 / 509)
  3. Failed       : anything else
Network errors never raise out of archive(); they become Failed outcomes.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Callable

import httpx

from waybatch.config import Settings
from waybatch.config import settings as default_settings
from waybatch.models import ArchiveOutcome, Archived, Failed, RateLimited
from waybatch.utils import is_valid_url, utc_now

logger = logging.getLogger(__name__)

WAYBACK_BASE = "https://web.archive.org"

# 509 is what the service sends once the per-session capture bandwidth is spent
RATE_LIMIT_STATUSES = {429, 509}

_SNAPSHOT_PATH = re.compile(r"/web/(\d{14})[^/]*/")


def _snapshot_url(response: httpx.Response) -> str | None:
    for header in ("Content-Location", "Location"):
        value = response.headers.get(header)
        if value and _SNAPSHOT_PATH.search(value):
            return value if value.startswith("http") else WAYBACK_BASE + value
    if response.history and _SNAPSHOT_PATH.search(response.url.path):
        return str(response.url)
    return None


def _capture_time(snapshot_url: str) -> datetime | None:
    match = _SNAPSHOT_PATH.search(snapshot_url)
    if not match:
        return None
    return datetime.strptime(match.group(1), "%Y%m%d%H%M%S")


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After", "")
    try:
        return float(value)
    except ValueError:
        return None


class WaybackArchiver:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or default_settings
        self.transport = transport
        self.clock = clock

    async def archive(self, url: str) -> ArchiveOutcome:
        if not is_valid_url(url):
            return Failed("not an http(s) URL")

        started = self.clock()
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout,
                follow_redirects=True,
                headers={"User-Agent": self.settings.user_agent},
                transport=self.transport,
            ) as client:
                response = await client.get(self.settings.save_endpoint + url)
        except httpx.HTTPError as exc:
            logger.warning("Save request failed for %s: %s", url, exc)
            return Failed(str(exc) or type(exc).__name__)

        if response.status_code in RATE_LIMIT_STATUSES:
            logger.info("Rate limited (HTTP %s) on %s", response.status_code, url)
            return RateLimited(_retry_after(response))

        if response.status_code >= 400:
            return Failed(f"HTTP {response.status_code}")

        snapshot = _snapshot_url(response)
        if snapshot is None:
            return Failed(f"no snapshot location in response (HTTP {response.status_code})")

        captured = _capture_time(snapshot)
        slack = timedelta(seconds=self.settings.existing_snapshot_slack_seconds)
        existing = captured is not None and captured < started - slack
        logger.info("Archived %s -> %s%s", url, snapshot, " (existing)" if existing else "")
        return Archived(archived_url=snapshot, existing_snapshot=existing)
