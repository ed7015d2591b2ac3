"""
tests/test_distance_engine.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Great-circle distances, memoisation and chunking.
"""

from __future__ import annotations

import datetime as dt

import pytest

from festival_feed.distance_engine import DistanceEngine, great_circle_m
from festival_feed.models import Position


def _position(lng: float = 138.0, lat: float = 38.0) -> Position:
    return Position(latitude=lat, longitude=lng, resolved_at=dt.datetime.now(dt.timezone.utc))


class _CountingMeasure:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, origin, target) -> float:
        self.calls += 1
        return great_circle_m(origin, target)


def test_great_circle_basics() -> None:
    assert great_circle_m((38.0, 138.0), (38.0, 138.0)) == 0
    assert great_circle_m((38.0, 138.0), (38.0, 139.0)) == pytest.approx(87_600, rel=0.01)


@pytest.mark.asyncio
async def test_distances_filled_in_input_order(make_festival) -> None:
    records = [
        make_festival("far", latitude="38.0", longitude="139.0"),
        make_festival("here", latitude="38.0", longitude="138.0"),
        make_festival("broken", latitude="abc", longitude="138.0"),
    ]
    out = await DistanceEngine().distances_for(records, _position())

    assert [r.name for r in out] == ["far", "here", "broken"]
    assert out[0].distance == pytest.approx(87_600, rel=0.01)
    assert out[1].distance == 0
    assert out[2].distance is None
    # inputs are untouched
    assert records[0].distance is None


@pytest.mark.asyncio
async def test_second_call_is_served_from_memo(make_festival) -> None:
    measure = _CountingMeasure()
    engine = DistanceEngine(measure=measure)
    records = [
        make_festival(f"r{i}", latitude="38.0", longitude=str(138 + i / 10)) for i in range(5)
    ]

    await engine.distances_for(records, _position())
    assert measure.calls == 5
    again = await engine.distances_for(records, _position())

    assert measure.calls == 5
    assert len(engine) == 5
    assert engine.cached_distance(records[3], _position()) == again[3].distance


@pytest.mark.asyncio
async def test_new_position_means_new_measurements(make_festival) -> None:
    measure = _CountingMeasure()
    engine = DistanceEngine(measure=measure)
    records = [make_festival("a", latitude="38.0", longitude="138.5")]

    await engine.distances_for(records, _position(138.0, 38.0))
    await engine.distances_for(records, _position(138.1, 38.0))

    assert measure.calls == 2


@pytest.mark.asyncio
async def test_moved_record_is_remeasured(make_festival) -> None:
    measure = _CountingMeasure()
    engine = DistanceEngine(measure=measure)

    await engine.distances_for([make_festival("a", latitude="38.0", longitude="138.5")], _position())
    await engine.distances_for([make_festival("a", latitude="38.2", longitude="138.5")], _position())

    assert measure.calls == 2


@pytest.mark.asyncio
async def test_large_input_is_measured_in_chunks(make_festival) -> None:
    measure = _CountingMeasure()
    engine = DistanceEngine(chunk_size=100, measure=measure)
    records = [
        make_festival(f"r{i}", latitude="38.0", longitude=f"138.{i:04d}") for i in range(250)
    ]

    out = await engine.distances_for(records, _position())

    assert measure.calls == engine.computations == 250
    assert all(r.distance is not None for r in out)


@pytest.mark.asyncio
async def test_clear_empties_memo(make_festival) -> None:
    engine = DistanceEngine()
    await engine.distances_for([make_festival("a", latitude="38.0", longitude="138.5")], _position())
    engine.clear()
    assert len(engine) == 0


def test_chunk_size_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DistanceEngine(chunk_size=0)


@pytest.mark.asyncio
async def test_memo_keeps_only_recent_positions(make_festival) -> None:
    engine = DistanceEngine()
    records = [
        make_festival(f"r{i}", latitude="38.0", longitude=f"138.{i:02d}") for i in range(50)
    ]

    positions = [_position(lng=139.0 + step / 100) for step in range(20)]

    for position in positions:
        await engine.distances_for(records, position)

    assert len(engine) <= 100
    assert engine.cached_distance(records[0], positions[0]) is None
    assert engine.cached_distance(records[0], positions[-1]) is not None


@pytest.mark.asyncio
async def test_returning_to_recent_position_hits_memo(make_festival) -> None:
    measure = _CountingMeasure()
    engine = DistanceEngine(measure=measure, max_positions=2)
    records = [make_festival("a", latitude="38.0", longitude="138.5")]

    for lng in (138.0, 138.1, 138.0, 138.1):
        await engine.distances_for(records, _position(lng=lng))

    assert measure.calls == 2
    assert len(engine) == 2


def test_max_positions_must_be_positive() -> None:
    with pytest.raises(ValueError):
        DistanceEngine(max_positions=0)
