"""
models.py
~~~~~~~~~
Canonical shapes that flow through the pipeline.

* :class:`Festival` – one normalised feed row. Frozen; enrichment (e.g. the
  distance) goes through :func:`dataclasses.replace`.
* :class:`Position` – one resolved user coordinate plus the time we got it.
* ``Snapshot`` – the immutable, ordered record collection of one ingestion
  cycle.
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import math
import re
from dataclasses import dataclass, field
from typing import Any, Final

from dateutil import parser as date_parser
from dateutil import tz

UTC: Final = tz.UTC

_TUPLE_FIELDS: Final = ("photo_urls", "tags")

# "2025年8月10日" or, inside a range, "8月12日" (year taken from the start)
JP_DATE_RE: Final = re.compile(r"(?:(\d{4})\s*年\s*)?(\d{1,2})\s*月\s*(\d{1,2})\s*日")
PERIOD_SPLIT_RE: Final = re.compile(r"[～~〜]")


def parse_date(value: str | None) -> dt.datetime | None:
    """Parse an ISO-ish date string; naive values are read as UTC."""
    if not value:
        return None
    try:
        parsed = date_parser.parse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _period_part(text: str, default_year: int | None) -> dt.datetime | None:
    m = JP_DATE_RE.search(text)
    if m is None:
        return parse_date(text.strip())
    year = int(m.group(1)) if m.group(1) else default_year
    if year is None:
        return None
    try:
        return dt.datetime(year, int(m.group(2)), int(m.group(3)), tzinfo=UTC)
    except ValueError:
        return None


def period_bounds(text: str | None) -> tuple[dt.datetime, dt.datetime] | None:
    """
    First and last day of a free-text event period.

    ``"2025年8月10日(日)～8月12日"`` → (2025-08-10, 2025-08-12). An open or
    unreadable end collapses onto the start. *None* when no start date can
    be read at all.
    """
    if not text:
        return None
    head, *tail = PERIOD_SPLIT_RE.split(text, maxsplit=1)
    start = _period_part(head, None)
    if start is None:
        return None
    end = _period_part(tail[0], start.year) if tail and tail[0].strip() else None
    if end is None or end < start:
        end = start
    return start, end


@dataclass(frozen=True)
class Festival:
    id: str
    index: int
    name: str
    latitude: str | None = None
    longitude: str | None = None
    start_date: str = ""
    end_date: str = ""
    venue: str = ""
    category: str = ""
    scale: str = ""
    status: str = ""
    fee: str = ""
    parking: str = ""
    description: str = ""
    official_url: str = ""
    period: str = ""
    opening_hours: str = ""
    closed_days: str = ""
    photo_urls: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    extras: dict[str, str] = field(default_factory=dict)
    distance: float | None = None

    # ── derived views ───────────────────────────────────────────────────
    @property
    def effective_end(self) -> str:
        """End date for range logic; a missing end date means a one-day event."""
        return self.end_date or self.start_date

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """``(lat, lng)`` as floats, or *None* when not numeric / out of range."""
        try:
            lat = float(self.latitude)  # type: ignore[arg-type]
            lng = float(self.longitude)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return None
        return lat, lng

    @property
    def identity(self) -> tuple[str, str | None, str | None]:
        """Memoisation identity: the id plus the coordinates it was measured at."""
        return (self.id, self.latitude, self.longitude)

    def text_values(self) -> list[str]:
        """Every string value on the record (used by free-text search)."""
        values: list[str] = []
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str):
                values.append(value)
        values.extend(self.photo_urls)
        values.extend(self.tags)
        values.extend(self.extras.values())
        return values

    # ── (de)serialisation ───────────────────────────────────────────────
    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        for key in _TUPLE_FIELDS:
            data[key] = list(data[key])
        if data["distance"] is None:
            del data["distance"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Festival":
        kwargs = dict(data)
        for key in _TUPLE_FIELDS:
            kwargs[key] = tuple(kwargs.get(key) or ())
        kwargs["extras"] = dict(kwargs.get("extras") or {})
        return cls(**kwargs)


Snapshot = tuple[Festival, ...]


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    resolved_at: dt.datetime

    @property
    def signature(self) -> str:
        """Stable key for distance memoisation (``"lng,lat"``)."""
        return f"{self.longitude},{self.latitude}"

    def age_s(self, now: dt.datetime | None = None) -> float:
        now = now or dt.datetime.now(UTC)
        return (now - self.resolved_at).total_seconds()
