from __future__ import annotations

from datetime import datetime

import pytest

from waybatch.config import Settings
from waybatch.models import Archived, ArchiveOutcome
from waybatch.storage.base import ResultSink
from waybatch.storage.results import ResultStore

NOW = datetime(2024, 6, 1, 12, 0, 0)


def snapshot_for(url: str) -> str:
    return f"https://web.archive.org/web/20240601120000/{url}"


class FakeArchiver:
    """Returns scripted outcomes per URL, then a new capture."""

    def __init__(self, scripted: dict[str, list[ArchiveOutcome]] | None = None, existing: bool = False):
        self.scripted = {url: list(outcomes) for url, outcomes in (scripted or {}).items()}
        self.existing = existing
        self.calls: list[str] = []

    async def archive(self, url: str) -> ArchiveOutcome:
        self.calls.append(url)
        pending = self.scripted.get(url)
        if pending:
            return pending.pop(0)
        return Archived(snapshot_for(url), existing_snapshot=self.existing)


class RecordingSink(ResultSink):
    def __init__(self, checkpoints: bool = True):
        self.checkpoints = checkpoints
        self.writes: list[ResultStore] = []

    def write(self, store: ResultStore) -> None:
        self.writes.append(ResultStore.from_json(store.to_json()))


class FakeSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def test_settings():
    return Settings(cooldown_seconds=3, rate_limit_backoff_seconds=15, checkpoint_every=25)


@pytest.fixture
def fast_settings():
    return Settings(cooldown_seconds=0, rate_limit_backoff_seconds=0)
