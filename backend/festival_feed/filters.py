"""
filters.py
~~~~~~~~~~
Pure predicates over normalised records, combined by :func:`apply_filters`.

Filtering never reorders; it runs before sorting and is recomputed from the
full snapshot every time a control changes.

"Open now" reads an ``HH:MM-HH:MM`` (or ``～``) hours string in Japan time,
handles ranges that wrap past midnight, and treats any closed-day token
matching today's weekday as closed.
"""

from __future__ import annotations

import datetime as dt
import re
from collections import Counter
from dataclasses import dataclass
from typing import Final, Iterable

from .constants import JST, LIST_SPLIT_RE
from .models import Festival, parse_date, period_bounds

HOURS_RE: Final = re.compile(r"(\d{1,2}):(\d{2})\s*[-～~]\s*(\d{1,2}):(\d{2})")
PARKING_COUNT_RE: Final = re.compile(r"(\d+)")
PARKING_MARKERS: Final[tuple[str, ...]] = ("有", "あり")
PARKING_FLAGS: Final[dict[str, bool]] = {"true": True, "false": False}

# datetime.weekday(): Monday == 0
WEEKDAY_TOKENS: Final[tuple[str, ...]] = ("月", "火", "水", "木", "金", "土", "日")


@dataclass(frozen=True)
class FilterCriteria:
    query: str = ""
    category: str = ""
    area: str = ""
    status: str = ""
    open_now: bool = False
    has_parking: bool = False
    upcoming: bool = False
    on_date: dt.date | None = None

    @property
    def active(self) -> bool:
        return self != FilterCriteria()


def split_list(value: str) -> list[str]:
    """Split a comma / 読点 / whitespace separated cell into trimmed tokens."""
    if not value:
        return []
    return [token.strip() for token in LIST_SPLIT_RE.split(value) if token.strip()]


# ── Individual predicates ────────────────────────────────────────────────
def matches_query(record: Festival, query: str) -> bool:
    needle = query.strip().lower()
    if not needle:
        return True
    return any(needle in value.lower() for value in record.text_values())


def in_category(record: Festival, category: str) -> bool:
    return category in split_list(record.category)


def is_open(record: Festival, now: dt.datetime | None = None) -> bool:
    """True when *now* (Japan time) falls inside the record's opening hours."""
    if not record.opening_hours:
        return False

    now_jst = (now or dt.datetime.now(JST)).astimezone(JST)
    today = WEEKDAY_TOKENS[now_jst.weekday()]
    if any(today in token for token in split_list(record.closed_days)):
        return False

    m = HOURS_RE.search(record.opening_hours)
    if not m:
        return False
    start_h, start_m, end_h, end_m = (int(g) for g in m.groups())
    start = start_h * 60 + start_m
    end = end_h * 60 + end_m
    current = now_jst.hour * 60 + now_jst.minute

    if end < start:  # e.g. 22:00-02:00
        return current >= start or current <= end
    return start <= current <= end


def has_parking_space(record: Festival) -> bool:
    """
    Read the parking cell: a spreadsheet checkbox (``TRUE``/``FALSE``), a
    space count (``50台``) or a marker such as ``有``.
    """
    parking = record.parking.strip()
    if not parking:
        return False
    flag = PARKING_FLAGS.get(parking.lower())
    if flag is not None:
        return flag
    m = PARKING_COUNT_RE.search(parking)
    if m:
        return int(m.group(1)) >= 1
    return any(marker in parking for marker in PARKING_MARKERS)


def is_upcoming(record: Festival, now: dt.datetime | None = None) -> bool:
    start = parse_date(record.start_date)
    if start is None:
        return False
    return start >= (now or dt.datetime.now(JST))


def occurs_on(record: Festival, day: dt.date) -> bool:
    """
    Whether *day* lies within ``start_date..effective_end`` (inclusive).

    Records without a readable start date (event rows usually carry only
    ``開催期間``) use the range written in their period instead.
    """
    start = parse_date(record.start_date)
    end = parse_date(record.effective_end)
    if start is None or end is None:
        bounds = period_bounds(record.period)
        if bounds is None:
            return False
        start, end = bounds
    return start.date() <= day <= end.date()


# ── Composition ──────────────────────────────────────────────────────────
def apply_filters(
    records: Iterable[Festival],
    criteria: FilterCriteria,
    now: dt.datetime | None = None,
) -> list[Festival]:
    """Return the records that satisfy every active criterion, order kept."""
    now = now or dt.datetime.now(JST)
    kept: list[Festival] = []
    for rec in records:
        if criteria.query and not matches_query(rec, criteria.query):
            continue
        if criteria.category and not in_category(rec, criteria.category):
            continue
        if criteria.area and rec.venue != criteria.area:
            continue
        if criteria.status and rec.status != criteria.status:
            continue
        if criteria.open_now and not is_open(rec, now):
            continue
        if criteria.has_parking and not has_parking_space(rec):
            continue
        if criteria.upcoming and not is_upcoming(rec, now):
            continue
        if criteria.on_date is not None and not occurs_on(rec, criteria.on_date):
            continue
        kept.append(rec)
    return kept


# ── Filter vocabularies ──────────────────────────────────────────────────
def count_by_category(records: Iterable[Festival]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for rec in records:
        counts.update(set(split_list(rec.category)))
    return dict(sorted(counts.items()))


def list_categories(records: Iterable[Festival]) -> list[str]:
    return list(count_by_category(records))


def list_areas(records: Iterable[Festival]) -> list[str]:
    return sorted({rec.venue for rec in records if rec.venue})


def list_statuses(records: Iterable[Festival]) -> list[str]:
    return sorted({rec.status.strip() for rec in records if rec.status.strip()})


__all__ = [
    "FilterCriteria",
    "apply_filters",
    "count_by_category",
    "has_parking_space",
    "in_category",
    "is_open",
    "is_upcoming",
    "list_areas",
    "list_categories",
    "list_statuses",
    "matches_query",
    "occurs_on",
    "split_list",
]
