"""
sorting.py
~~~~~~~~~~
Ordering rules for festival lists.

Chronological (default)
    start date ascending → Japanese-aware name order → optional scale rank
    (larger first, unknown last; dashboard only).
Distance
    distance ascending; records without a distance keep their incoming
    order behind everything that has one.

The mode is always passed explicitly so two views can sort differently.
"""

from __future__ import annotations

import datetime as dt
import enum
import functools
import unicodedata
from typing import Final, Iterable

from dateutil import tz

from .constants import SCALE_ORDER
from .distance_engine import DistanceEngine
from .models import Festival, Position, parse_date, period_bounds

UTC: Final = tz.UTC
EPOCH: Final = dt.datetime(1970, 1, 1, tzinfo=UTC)


class OrderBy(str, enum.Enum):
    CHRONOLOGICAL = "chronological"
    DISTANCE = "distance"


def name_collation_key(name: str) -> str:
    """
    Collation key approximating Japanese ``localeCompare``.

    Width variants are unified (NFKC), katakana folds onto hiragana and
    Latin text is case-folded.
    """
    text = unicodedata.normalize("NFKC", name or "")
    folded = "".join(
        chr(ord(ch) - 0x60) if "ァ" <= ch <= "ヶ" else ch for ch in text
    )
    return folded.casefold()


def scale_rank(scale: str) -> int:
    try:
        return SCALE_ORDER.index(scale.strip())
    except ValueError:
        return len(SCALE_ORDER)


def _compare_chronological(a: Festival, b: Festival, use_scale: bool) -> int:
    date_a = parse_date(a.start_date)
    date_b = parse_date(b.start_date)
    if date_a and date_b and date_a != date_b:
        return -1 if date_a < date_b else 1

    key_a = name_collation_key(a.name)
    key_b = name_collation_key(b.name)
    if key_a != key_b:
        return -1 if key_a < key_b else 1

    if use_scale:
        return scale_rank(a.scale) - scale_rank(b.scale)
    return 0


def chronological_sort(
    records: Iterable[Festival], *, use_scale: bool = False
) -> list[Festival]:
    """Sort by start date, then name, then (optionally) scale."""
    cmp = functools.partial(_compare_chronological, use_scale=use_scale)
    return sorted(records, key=functools.cmp_to_key(cmp))


def distance_sort(records: Iterable[Festival]) -> list[Festival]:
    """Nearest first; distance-less records trail in their original order."""
    return sorted(
        records,
        key=lambda rec: (rec.distance is None, rec.distance if rec.distance is not None else 0.0),
    )


async def order_records(
    records: Iterable[Festival],
    mode: OrderBy,
    *,
    engine: DistanceEngine | None = None,
    position: Position | None = None,
    use_scale: bool = False,
) -> list[Festival]:
    """
    Apply *mode* to *records*.

    Distance mode without a resolved position (or engine) degrades to
    chronological ordering.
    """
    if mode is OrderBy.DISTANCE and engine is not None and position is not None:
        enriched = await engine.distances_for(records, position)
        return distance_sort(enriched)
    return chronological_sort(records, use_scale=use_scale)


def extract_period_date(text: str) -> dt.datetime:
    """
    First date mentioned in an event period string.

    ``"2025年8月10日(日)～8月12日"`` → 2025-08-10. Unparseable → epoch, so
    such events sort first.
    """
    bounds = period_bounds(text)
    return bounds[0] if bounds else EPOCH


def sort_events(records: Iterable[Festival]) -> list[Festival]:
    """Order the events feed by the first date of each period."""
    return sorted(records, key=lambda rec: extract_period_date(rec.period or rec.start_date))


__all__ = [
    "OrderBy",
    "chronological_sort",
    "distance_sort",
    "extract_period_date",
    "name_collation_key",
    "order_records",
    "scale_rank",
    "sort_events",
]
