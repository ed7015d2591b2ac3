"""
list_view.py
~~~~~~~~~~~~
One visible list: filter → order → page.

A view is rebuilt whenever its criteria, its ordering mode or the
underlying snapshot changes. Rebuilding always restarts paging at the
first page. Two views over the same feed may use different modes.
"""

from __future__ import annotations

import logging
from typing import Any

from .context import PipelineContext
from .feed_service import FeedService
from .filters import FilterCriteria, apply_filters
from .models import Festival, Position, Snapshot
from .pager import Pager
from .position_provider import LngLat
from .sorting import OrderBy, order_records

LOG = logging.getLogger("list_view")


class FestivalListView:
    def __init__(
        self,
        context: PipelineContext,
        *,
        feed: FeedService | None = None,
        mode: OrderBy | None = None,
        use_scale: bool = False,
    ) -> None:
        self._ctx = context
        self._feed = feed or context.festivals
        self.mode = mode or context.config.order_by
        self.use_scale = use_scale
        self.criteria = FilterCriteria()
        self.position: Position | None = None
        self.pager: Pager[Festival] = Pager(
            context.config.page_initial_size, context.config.page_increment
        )
        self._source: Snapshot | None = None
        self._generation = 0

    @property
    def needs_rebuild(self) -> bool:
        """True once the feed has applied a snapshot this view has not seen."""
        return self._source is not self._feed.state.snapshot

    @property
    def page(self) -> tuple[Festival, ...]:
        return self.pager.page

    @property
    def has_more(self) -> bool:
        return self.pager.has_more

    @property
    def total(self) -> int:
        return self.pager.total

    @property
    def effective_mode(self) -> OrderBy:
        """The mode actually applied (distance needs a resolved position)."""
        if self.mode is OrderBy.DISTANCE and self.position is None:
            return OrderBy.CHRONOLOGICAL
        return self.mode

    async def rebuild(
        self,
        criteria: FilterCriteria | None = None,
        *,
        mode: OrderBy | None = None,
        context_location: LngLat | None = None,
    ) -> tuple[Festival, ...]:
        """
        Recompute the list from the current snapshot and return the first page.

        A rebuild that finishes after a newer one started is dropped.
        """
        self._generation += 1
        generation = self._generation
        criteria = criteria if criteria is not None else self.criteria
        mode = mode or self.mode

        source = self._feed.state.snapshot
        filtered = apply_filters(source or (), criteria)

        position = None
        if mode is OrderBy.DISTANCE:
            position = await self._ctx.positions.resolve(context_location)
            if position is None:
                LOG.info("[view] no position – falling back to chronological order")

        ordered = await order_records(
            filtered,
            mode,
            engine=self._ctx.distances,
            position=position,
            use_scale=self.use_scale,
        )
        if generation != self._generation:
            LOG.debug("[view] rebuild %d superseded", generation)
            return self.page

        self.criteria = criteria
        self.mode = mode
        self.position = position
        self._source = source
        return self.pager.reset(ordered)

    def load_more(self) -> tuple[Festival, ...]:
        return self.pager.load_more()

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.effective_mode.value,
            "total": self.total,
            "has_more": self.has_more,
            "items": [rec.to_dict() for rec in self.page],
        }


__all__ = ["FestivalListView"]
