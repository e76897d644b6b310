import json
from datetime import datetime, timedelta

import pytest

from conftest import NOW
from waybatch.models import ArchiveRecord
from waybatch.storage.local import FileResultSink
from waybatch.storage.results import FRESHNESS_WINDOW, ResultStore, SnapshotError


def _store(n: int) -> ResultStore:
    store = ResultStore()
    for i in range(n):
        store.upsert(
            f"https://example.com/{i}",
            ArchiveRecord(
                last_archived=NOW - timedelta(days=i, microseconds=i),
                url=f"https://web.archive.org/web/20240601120000/https://example.com/{i}" if i % 2 == 0 else None,
                existing_snapshot=i % 3 == 0,
            ),
        )
    return store


@pytest.mark.parametrize("size", [0, 1, 5])
def test_persist_then_load_round_trips(tmp_path, size):
    path = tmp_path / "results.json"
    store = _store(size)

    FileResultSink(path).write(store)

    assert ResultStore.load(path) == store


def test_missing_snapshot_is_empty(tmp_path):
    assert len(ResultStore.load(tmp_path / "nope.json")) == 0


def test_overwrite_mode_ignores_existing_file(tmp_path):
    path = tmp_path / "results.json"
    path.write_text("this is not json", encoding="utf-8")
    assert len(ResultStore.load(path, merge=False)) == 0


def test_malformed_json_is_fatal(tmp_path):
    path = tmp_path / "results.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotError):
        ResultStore.load(path)


def test_non_object_snapshot_is_fatal():
    with pytest.raises(SnapshotError):
        ResultStore.from_json("[1, 2, 3]")


def test_record_without_timestamp_is_fatal():
    with pytest.raises(SnapshotError):
        ResultStore.from_json('{"https://a.example/": {"url": null, "existing_snapshot": false}}')


def test_reads_nanosecond_and_aware_timestamps():
    store = ResultStore.from_json(json.dumps({
        "https://a.example/": {
            "last_archived": "2021-03-04T05:06:07.123456789",
            "url": "https://web.archive.org/web/20210304050607/https://a.example/",
            "existing_snapshot": True,
        },
        "https://b.example/": {
            "last_archived": "2021-03-04T07:06:07+02:00",
            "url": None,
            "existing_snapshot": False,
        },
    }))

    assert store.lookup("https://a.example/").last_archived == datetime(2021, 3, 4, 5, 6, 7, 123456)
    assert store.lookup("https://a.example/").existing_snapshot is True
    assert store.lookup("https://b.example/").last_archived == datetime(2021, 3, 4, 5, 6, 7)


def test_snapshot_is_sorted_and_human_readable():
    store = ResultStore()
    store.upsert("https://b.example/", ArchiveRecord(last_archived=NOW))
    store.upsert("https://a.example/", ArchiveRecord(last_archived=NOW, url="https://web.archive.org/x"))

    text = store.to_json()

    assert text.index("https://a.example/") < text.index("https://b.example/")
    assert json.loads(text)["https://b.example/"] == {
        "last_archived": "2024-06-01T12:00:00",
        "url": None,
        "existing_snapshot": False,
    }
    assert "\n  " in text


def test_sink_truncates_previous_contents(tmp_path):
    path = tmp_path / "results.json"
    sink = FileResultSink(path)
    sink.write(_store(10))
    sink.write(_store(1))

    assert ResultStore.load(path) == _store(1)


def test_keys_are_exact_strings():
    store = ResultStore()
    store.upsert("https://example.com", ArchiveRecord(last_archived=NOW))

    assert "https://example.com" in store
    assert store.lookup("https://example.com/") is None
    assert store.lookup("HTTPS://example.com") is None


def test_freshness_boundary():
    stale = ArchiveRecord(last_archived=NOW - timedelta(days=180, seconds=1))
    exactly = ArchiveRecord(last_archived=NOW - FRESHNESS_WINDOW)
    fresh = ArchiveRecord(last_archived=NOW - timedelta(days=179))

    assert not ResultStore.is_fresh(stale, NOW)
    assert not ResultStore.is_fresh(exactly, NOW)
    assert ResultStore.is_fresh(fresh, NOW)


def test_should_skip_needs_a_fresh_record():
    store = ResultStore()
    store.upsert("https://old.example/", ArchiveRecord(last_archived=NOW - timedelta(days=365)))
    store.upsert("https://new.example/", ArchiveRecord(last_archived=NOW - timedelta(days=10)))

    assert store.should_skip("https://new.example/", NOW)
    assert not store.should_skip("https://old.example/", NOW)
    assert not store.should_skip("https://unknown.example/", NOW)


def test_non_utf8_snapshot_is_fatal(tmp_path):
    path = tmp_path / "results.json"
    path.write_bytes(b'{"\xff\xfe": 1}')
    with pytest.raises(SnapshotError):
        ResultStore.load(path)


@pytest.mark.parametrize("value", ['"false"', "1", "null"])
def test_existing_snapshot_must_be_boolean(value):
    text = (
        '{"https://a.example/": {"last_archived": "2024-06-01T12:00:00", "url": null, '
        f'"existing_snapshot": {value}}}}}'
    )
    with pytest.raises(SnapshotError):
        ResultStore.from_json(text)
