"""
context.py
~~~~~~~~~~
Wire the pipeline pieces together once per process.

Everything that must be shared across views lives here: the session
cache, the position cache, the distance memo and one feed service per
sheet. Nothing in here is a module-level global, so tests build their
own context.
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from typing import MutableMapping

from .config import FeedConfig
from .constants import PRIMARY_CACHE_KEY, SECONDARY_CACHE_KEY
from .distance_engine import DistanceEngine
from .feed_service import Fetcher, FeedService, FeedSpec
from .normalizer import normalize_event, normalize_festival
from .position_provider import Locator, PositionProvider, static_locator
from .session_cache import SessionCache
from .sorting import chronological_sort, sort_events

LOG = logging.getLogger("context")


@dataclass
class PipelineContext:
    config: FeedConfig
    cache: SessionCache
    positions: PositionProvider
    distances: DistanceEngine
    festivals: FeedService
    events: FeedService

    async def start(self) -> None:
        await self.festivals.start()
        await self.events.start()

    async def refresh(self) -> None:
        await self.festivals.refresh()
        await self.events.refresh()

    def teardown(self) -> None:
        """Session end: drop time-sensitive caches and the distance memo."""
        for service in (self.festivals, self.events):
            task = service.background
            if task is not None and not task.done():
                task.cancel()
        self.cache.teardown()
        self.distances.clear()
        LOG.info("[context] torn down")


def build_context(
    config: FeedConfig | None = None,
    *,
    locator: Locator | None = None,
    store: MutableMapping[str, str] | None = None,
    fetcher: Fetcher | None = None,
) -> PipelineContext:
    config = config or FeedConfig()
    if locator is None and config.home_location is not None:
        locator = static_locator(*config.home_location)

    cache = SessionCache(store)
    festival_spec = FeedSpec(
        name="festivals",
        url=config.feed_url,
        cache_key=PRIMARY_CACHE_KEY,
        required_fields=config.required_fields,
        transform=functools.partial(normalize_festival, aliases=config.field_aliases),
        sorter=chronological_sort,
    )
    event_spec = FeedSpec(
        name="events",
        url=config.event_feed_url,
        cache_key=SECONDARY_CACHE_KEY,
        required_fields=config.event_required_fields,
        transform=functools.partial(normalize_event, aliases=config.field_aliases),
        sorter=sort_events,
    )
    return PipelineContext(
        config=config,
        cache=cache,
        positions=PositionProvider(
            locator,
            cache_duration_s=config.position_cache_s,
            timeout_s=config.locate_timeout_s,
        ),
        distances=DistanceEngine(chunk_size=config.chunk_size),
        festivals=FeedService(
            festival_spec, cache, fetcher, fetch_timeout_s=config.fetch_timeout_s
        ),
        events=FeedService(
            event_spec, cache, fetcher, fetch_timeout_s=config.fetch_timeout_s
        ),
    )


__all__ = ["PipelineContext", "build_context"]
