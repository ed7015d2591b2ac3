"""
distance_engine.py
~~~~~~~~~~~~~~~~~~
Great-circle distance (metres) from the user's position to every record,
memoised per ``(record identity, position signature)``.

* Re-sorting against the same position costs one dict lookup per record.
* Only the ``max_positions`` most recently used positions keep a table;
  older ones are dropped when a new position arrives, so a moving user does
  not grow the memo without bound.
* Records without usable coordinates get **no** distance (``None``), never
  zero, so distance ordering can push them to the end.
* Uncached records are measured in chunks of ``chunk_size``; the engine
  yields to the event loop between chunks so a few thousand rows never
  stall other tasks.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from collections import OrderedDict
from typing import Callable, Final, Iterable

from geopy.distance import great_circle

from .models import Festival, Position

LOG = logging.getLogger("distance_engine")

DEFAULT_CHUNK_SIZE: Final = 100
DEFAULT_MAX_POSITIONS: Final = 2

Measure = Callable[[tuple[float, float], tuple[float, float]], float]
Identity = tuple[str, str | None, str | None]


def great_circle_m(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Distance in metres between two ``(lat, lng)`` points on a sphere."""
    return great_circle(origin, target).meters


class DistanceEngine:
    """Memoising, chunked distance calculator."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        measure: Measure = great_circle_m,
        *,
        max_positions: int = DEFAULT_MAX_POSITIONS,
    ) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if max_positions < 1:
            raise ValueError("max_positions must be >= 1")
        self.chunk_size = chunk_size
        self.max_positions = max_positions
        self._measure = measure
        # signature → {record identity → metres}, least recently used first
        self._memo: OrderedDict[str, dict[Identity, float]] = OrderedDict()
        self.computations = 0

    def __len__(self) -> int:
        return sum(len(table) for table in self._memo.values())

    def cached_distance(self, record: Festival, position: Position) -> float | None:
        table = self._memo.get(position.signature)
        return table.get(record.identity) if table is not None else None

    def clear(self) -> None:
        self._memo.clear()

    def _table(self, signature: str) -> dict[Identity, float]:
        table = self._memo.get(signature)
        if table is not None:
            self._memo.move_to_end(signature)
            return table
        table = self._memo[signature] = {}
        while len(self._memo) > self.max_positions:
            dropped, entries = self._memo.popitem(last=False)
            LOG.debug("[distance] dropped %d memo entries for %s", len(entries), dropped)
        return table

    async def distances_for(
        self, records: Iterable[Festival], position: Position
    ) -> list[Festival]:
        """
        Return *records* (same order) with ``distance`` filled in where possible.
        """
        records = list(records)
        signature = position.signature
        origin = (position.latitude, position.longitude)
        table = self._table(signature)

        pending = [
            rec
            for rec in records
            if rec.identity not in table and rec.coordinates is not None
        ]
        if pending:
            LOG.debug(
                "[distance] %d/%d uncached for %s", len(pending), len(records), signature
            )

        for start in range(0, len(pending), self.chunk_size):
            chunk = pending[start : start + self.chunk_size]
            computed = {
                rec.identity: self._measure(origin, rec.coordinates)  # type: ignore[arg-type]
                for rec in chunk
            }
            # One synchronous update per chunk – readers never see half a chunk.
            table.update(
                (key, value) for key, value in computed.items() if math.isfinite(value)
            )
            self.computations += len(chunk)
            if start + self.chunk_size < len(pending):
                await asyncio.sleep(0)

        enriched: list[Festival] = []
        for rec in records:
            distance = table.get(rec.identity)
            enriched.append(
                dataclasses.replace(rec, distance=distance)
                if rec.distance != distance
                else rec
            )
        return enriched


__all__ = ["DistanceEngine", "great_circle_m", "DEFAULT_CHUNK_SIZE", "DEFAULT_MAX_POSITIONS"]
