"""
tests/test_position_provider.py
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Position resolution: cache window, external override, locator failures.
"""

from __future__ import annotations

import asyncio
import datetime as dt

import pytest

from festival_feed.position_provider import PositionProvider, static_locator


class _Clock:
    def __init__(self) -> None:
        self.now = dt.datetime(2025, 8, 1, 12, 0, tzinfo=dt.timezone.utc)

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += dt.timedelta(seconds=seconds)


class _CountingLocator:
    def __init__(self, answer=(138.4, 38.0)) -> None:
        self.answer = answer
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.answer


@pytest.mark.asyncio
async def test_without_locator_position_is_unavailable() -> None:
    assert await PositionProvider().resolve() is None


@pytest.mark.asyncio
async def test_position_is_reused_within_cache_window() -> None:
    clock = _Clock()
    locator = _CountingLocator()
    provider = PositionProvider(locator, cache_duration_s=3600, clock=clock)

    first = await provider.resolve()
    clock.advance(3599)
    second = await provider.resolve()

    assert first is second
    assert locator.calls == 1
    assert (first.longitude, first.latitude) == (138.4, 38.0)
    assert first.signature == "138.4,38.0"


@pytest.mark.asyncio
async def test_expired_position_asks_locator_again() -> None:
    clock = _Clock()
    locator = _CountingLocator()
    provider = PositionProvider(locator, cache_duration_s=3600, clock=clock)

    await provider.resolve()
    clock.advance(3600)
    await provider.resolve()

    assert locator.calls == 2


@pytest.mark.asyncio
async def test_external_location_wins_and_refreshes_cache() -> None:
    locator = _CountingLocator()
    provider = PositionProvider(locator)

    provider.set_external_location((139.0, 37.9))
    pos = await provider.resolve()

    assert (pos.longitude, pos.latitude) == (139.0, 37.9)
    assert provider.cached is pos
    assert locator.calls == 0


@pytest.mark.asyncio
async def test_context_location_overrides_for_one_call() -> None:
    provider = PositionProvider(_CountingLocator())
    pos = await provider.resolve(context_location=(140.0, 36.0))
    assert pos.signature == "140.0,36.0"


@pytest.mark.asyncio
async def test_out_of_range_context_location_is_ignored() -> None:
    locator = _CountingLocator()
    provider = PositionProvider(locator)

    pos = await provider.resolve(context_location=(200.0, 38.0))

    assert pos.signature == "138.4,38.0"
    assert locator.calls == 1


@pytest.mark.asyncio
async def test_locator_timeout_yields_none() -> None:
    async def _slow():
        await asyncio.sleep(1)
        return (138.4, 38.0)

    provider = PositionProvider(_slow, timeout_s=0.01)
    assert await provider.resolve() is None
    assert provider.cached is None


@pytest.mark.asyncio
async def test_locator_error_yields_none() -> None:
    async def _denied():
        raise PermissionError("User denied Geolocation")

    assert await PositionProvider(_denied).resolve() is None


@pytest.mark.asyncio
@pytest.mark.parametrize("answer", [None, (138.4, 95.0)])
async def test_denied_or_invalid_answer_yields_none(answer) -> None:
    provider = PositionProvider(_CountingLocator(answer))
    assert await provider.resolve() is None


@pytest.mark.asyncio
async def test_invalidate_forces_new_lookup() -> None:
    locator = _CountingLocator()
    provider = PositionProvider(locator)

    await provider.resolve()
    provider.invalidate()
    await provider.resolve()

    assert locator.calls == 2


@pytest.mark.asyncio
async def test_static_locator() -> None:
    assert await static_locator(138.0, 38.0)() == (138.0, 38.0)
