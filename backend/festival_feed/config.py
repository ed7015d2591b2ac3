"""
config.py
~~~~~~~~~
Runtime configuration, read from the environment (``.env`` is loaded by
:mod:`festival_feed.main`).

Variables
---------
    FEED_URL              festival sheet (CSV)
    EVENT_FEED_URL        events sheet (CSV)
    ORDER_BY              "chronological" (default) | "distance"
    POSITION_CACHE_S      reuse window for a resolved position (3600)
    DISTANCE_CHUNK_SIZE   records measured per batch (100)
    PAGE_INITIAL_SIZE     first page length (20)
    PAGE_INCREMENT        rows added per "load more" (10)
    FETCH_TIMEOUT_S       feed download timeout (15)
    LOCATE_TIMEOUT_S      device location timeout (10)
    REFRESH_INTERVAL_S    background refetch period (900)
    HOME_LNG / HOME_LAT   optional fixed position for distance mode
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Final, Mapping

from .constants import EVENT_REQUIRED_FIELDS, REQUIRED_FIELDS
from .normalizer import FIELD_ALIASES
from .sorting import OrderBy

LOG = logging.getLogger("config")

DEFAULT_FEED_URL: Final = "https://example.org/sado-festivals/festivals.csv"
DEFAULT_EVENT_FEED_URL: Final = "https://example.org/sado-festivals/events.csv"


def _float_env(name: str) -> float | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        LOG.warning("[config] %s=%r is not a number – ignored", name, raw)
        return None


@dataclass(frozen=True)
class FeedConfig:
    feed_url: str = DEFAULT_FEED_URL
    event_feed_url: str = DEFAULT_EVENT_FEED_URL
    order_by: OrderBy = OrderBy.CHRONOLOGICAL
    position_cache_s: float = 3600
    chunk_size: int = 100
    page_initial_size: int = 20
    page_increment: int = 10
    fetch_timeout_s: float = 15.0
    locate_timeout_s: float = 10.0
    refresh_interval_s: float = 900
    home_location: tuple[float, float] | None = None  # (lng, lat)
    required_fields: tuple[str, ...] = REQUIRED_FIELDS
    event_required_fields: tuple[str, ...] = EVENT_REQUIRED_FIELDS
    field_aliases: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: dict(FIELD_ALIASES)
    )

    @classmethod
    def from_env(cls) -> "FeedConfig":
        order_raw = os.getenv("ORDER_BY", OrderBy.CHRONOLOGICAL.value).strip().lower()
        try:
            order_by = OrderBy(order_raw)
        except ValueError:
            LOG.warning("[config] unknown ORDER_BY=%r – using chronological", order_raw)
            order_by = OrderBy.CHRONOLOGICAL

        lng, lat = _float_env("HOME_LNG"), _float_env("HOME_LAT")
        home = (lng, lat) if lng is not None and lat is not None else None

        return cls(
            feed_url=os.getenv("FEED_URL", DEFAULT_FEED_URL),
            event_feed_url=os.getenv("EVENT_FEED_URL", DEFAULT_EVENT_FEED_URL),
            order_by=order_by,
            position_cache_s=float(os.getenv("POSITION_CACHE_S", "3600")),
            chunk_size=int(os.getenv("DISTANCE_CHUNK_SIZE", "100")),
            page_initial_size=int(os.getenv("PAGE_INITIAL_SIZE", "20")),
            page_increment=int(os.getenv("PAGE_INCREMENT", "10")),
            fetch_timeout_s=float(os.getenv("FETCH_TIMEOUT_S", "15")),
            locate_timeout_s=float(os.getenv("LOCATE_TIMEOUT_S", "10")),
            refresh_interval_s=float(os.getenv("REFRESH_INTERVAL_S", "900")),
            home_location=home,
        )


__all__ = ["FeedConfig"]
