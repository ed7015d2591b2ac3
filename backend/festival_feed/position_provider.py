"""
position_provider.py
~~~~~~~~~~~~~~~~~~~~
Resolve the user's current coordinate for distance ordering.

Resolution order
----------------
1. **External location** – a coordinate pushed in by an explicit user action
   (e.g. the "locate me" button). Always wins and refreshes the cache.
2. **Cached position** – reused while younger than ``cache_duration_s``
   (default one hour) so the user is not prompted again.
3. **Device locator** – an async callable returning ``(lng, lat)`` or
   ``None``. Denial, timeout or an exception yields ``None``; callers fall
   back to chronological ordering.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from typing import Awaitable, Callable, Final

from dateutil import tz

from .models import Position

UTC: Final = tz.UTC
LOG = logging.getLogger("position_provider")

DEFAULT_CACHE_S: Final = 3600
DEFAULT_TIMEOUT_S: Final = 10.0

LngLat = tuple[float, float]
Locator = Callable[[], Awaitable[LngLat | None]]


def _valid(lng: float, lat: float) -> bool:
    return -180 <= lng <= 180 and -90 <= lat <= 90


def static_locator(lng: float, lat: float) -> Locator:
    """Locator that always answers with a fixed coordinate (``HOME_LNG/LAT``)."""

    async def _locate() -> LngLat | None:
        return (lng, lat)

    return _locate


async def _no_locator() -> LngLat | None:
    return None


class PositionProvider:
    """Process-wide position cache in front of a permission-gated locator."""

    def __init__(
        self,
        locator: Locator | None = None,
        *,
        cache_duration_s: float = DEFAULT_CACHE_S,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._locator = locator or _no_locator
        self.cache_duration_s = cache_duration_s
        self.timeout_s = timeout_s
        self._clock = clock or (lambda: dt.datetime.now(UTC))
        self._cached: Position | None = None
        self._external: LngLat | None = None

    @property
    def cached(self) -> Position | None:
        return self._cached

    def set_external_location(self, location: LngLat | None) -> None:
        """Record (or clear, with *None*) a user-supplied ``(lng, lat)``."""
        self._external = location
        if location is not None:
            self._remember(location)

    def invalidate(self) -> None:
        self._cached = None

    async def resolve(self, context_location: LngLat | None = None) -> Position | None:
        """
        Return the best current position or *None* when unavailable.

        Args:
            context_location: ``(lng, lat)`` from a shared location context;
                              overrides everything for this call.
        """
        external = context_location or self._external
        if external is not None:
            if not _valid(*external):
                LOG.warning("[position] ignoring out-of-range location %s", external)
            else:
                return self._remember(external)

        now = self._clock()
        if self._cached and self._cached.age_s(now) < self.cache_duration_s:
            LOG.debug("[position] cache hit (%s)", self._cached.signature)
            return self._cached

        try:
            located = await asyncio.wait_for(self._locator(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            LOG.warning("[position] locator timed out after %.1f s", self.timeout_s)
            return None
        except Exception as exc:  # noqa: BLE001 – denial / unsupported
            LOG.warning("[position] locator failed: %s", exc)
            return None

        if located is None:
            LOG.info("[position] location unavailable (denied or unsupported)")
            return None
        if not _valid(*located):
            LOG.warning("[position] locator returned out-of-range %s", located)
            return None
        return self._remember(located)

    def _remember(self, location: LngLat) -> Position:
        lng, lat = location
        self._cached = Position(
            latitude=float(lat), longitude=float(lng), resolved_at=self._clock()
        )
        LOG.info("[position] resolved %s", self._cached.signature)
        return self._cached


__all__ = ["PositionProvider", "Locator", "static_locator"]
