"""
tests/test_session_cache.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~
Snapshot storage: round-trip, write-on-difference, corrupt entries,
session teardown.
"""

from __future__ import annotations

import logging

import pytest

from festival_feed.constants import PRIMARY_CACHE_KEY, SECONDARY_CACHE_KEY
from festival_feed.session_cache import SessionCache, serialize


@pytest.fixture
def snapshot(make_festival):
    return (
        make_festival("A祭", latitude="38.0", longitude="138.4", tags=("花火",)),
        make_festival("B祭", extras={"備考": "雨天中止"}, distance=1200.5),
    )


def test_miss_returns_none() -> None:
    assert SessionCache().get(PRIMARY_CACHE_KEY) is None


def test_set_then_get_round_trips(snapshot) -> None:
    cache = SessionCache()
    cache.set(PRIMARY_CACHE_KEY, snapshot)
    assert cache.get(PRIMARY_CACHE_KEY) == snapshot


def test_identical_content_is_not_rewritten(snapshot) -> None:
    store: dict[str, str] = {}
    cache = SessionCache(store)

    assert cache.set_if_changed(PRIMARY_CACHE_KEY, snapshot) is True
    first = store[PRIMARY_CACHE_KEY]
    assert cache.set_if_changed(PRIMARY_CACHE_KEY, list(snapshot)) is False

    assert cache.writes == 1
    assert store[PRIMARY_CACHE_KEY] is first


def test_changed_content_is_written(snapshot, make_festival) -> None:
    cache = SessionCache()
    cache.set_if_changed(PRIMARY_CACHE_KEY, snapshot)
    assert cache.set_if_changed(PRIMARY_CACHE_KEY, snapshot + (make_festival("C祭"),))
    assert cache.writes == 2
    assert len(cache.get(PRIMARY_CACHE_KEY)) == 3


@pytest.mark.parametrize("raw", ["{not json", '{"a": 1}', "[1, 2]"])
def test_corrupt_entry_reads_as_miss(raw: str, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="session_cache")
    cache = SessionCache({PRIMARY_CACHE_KEY: raw})

    assert cache.get(PRIMARY_CACHE_KEY) is None
    assert any("unreadable" in rec.getMessage() for rec in caplog.records)


def test_serialized_form_omits_missing_distance(make_festival) -> None:
    text = serialize([make_festival("A祭")])
    assert "distance" not in text
    assert "A祭" in text  # not \u-escaped


def test_teardown_drops_only_event_feed(snapshot) -> None:
    store: dict[str, str] = {}
    cache = SessionCache(store)
    cache.set(PRIMARY_CACHE_KEY, snapshot)
    cache.set(SECONDARY_CACHE_KEY, snapshot)

    cache.teardown()

    assert PRIMARY_CACHE_KEY in store
    assert SECONDARY_CACHE_KEY not in store
