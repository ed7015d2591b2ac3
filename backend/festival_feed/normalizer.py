"""
normalizer.py
~~~~~~~~~~~~~
Map raw sheet rows (header → cell text) onto :class:`~festival_feed.models.Festival`.

The upstream spreadsheets have been re-shaped several times, so every
canonical field is looked up through an ordered list of source headers:
the current header first, then the legacy ones. The first populated cell
wins; values only ever flow legacy → canonical.

Public helpers
--------------
    strip_wrapping_quotes(value)          -> value without one layer of quotes
    normalize_festival(raw, index, ...)   -> Festival | None   (primary feed)
    normalize_event(raw, index, ...)      -> Festival | None   (events feed)
"""

from __future__ import annotations

import dataclasses
from typing import Any, Final, Mapping

from .constants import COORD_RE, H_ID, H_LAT, H_LNG, H_NAME
from .models import Festival


QUOTE_CHARS: Final[tuple[str, ...]] = ('"', "'", "`")

# ── Alias tables ─────────────────────────────────────────────────────────
FIELD_ALIASES: Final[dict[str, tuple[str, ...]]] = {
    "id": (H_ID,),
    "name": (H_NAME, "イベント名"),
    "latitude": (H_LAT,),
    "longitude": (H_LNG,),
    "start_date": ("開始日",),
    "end_date": ("終了日",),
    "venue": ("開催場所名", "場所"),
    "category": ("上位カテゴリ", "カテゴリ"),
    "scale": ("規模感",),
    "status": ("開催ステータス",),
    "fee": ("無料か有料か",),
    "parking": ("駐車場の有無", "駐車場"),
    "description": ("詳細", "説明文", "簡単な説明"),
    "official_url": ("公式サイトURL", "公式サイト", "公式リンク"),
    "period": ("開催期間",),
    "opening_hours": ("営業時間",),
    "closed_days": ("定休日",),
}

PHOTO_SLOTS: Final[tuple[str, ...]] = tuple(f"写真URL{n}" for n in range(1, 6))
PHOTO_LEGACY: Final[tuple[str, ...]] = ("画像URL1", "写真URL")
TAG_SLOTS: Final[tuple[str, ...]] = tuple(f"詳細タグ{n}" for n in range(1, 9))
TAG_LEGACY: Final[tuple[str, ...]] = ("タグ", "詳細タグ")

TRIMMED_FIELDS: Final[tuple[str, ...]] = ("name", "venue", "category", "scale", "status")
URL_FIELDS: Final[tuple[str, ...]] = ("official_url",)

# Events feed: social links are kept in `extras` but cleaned like URLs.
EVENT_URL_EXTRAS: Final[tuple[str, ...]] = ("Instagram", "Facebook", "X")


def strip_wrapping_quotes(value: Any) -> Any:
    """
    Trim *value* and drop **one** layer of matching wrapping quotes.

    ``"``, ``'`` and a backtick are checked in that order; the first that
    appears at both ends is removed. Non-strings are returned untouched.

    >>> strip_wrapping_quotes('"https://example.com/a"')
    'https://example.com/a'
    """
    if not isinstance(value, str) or not value:
        return value
    trimmed = value.strip()
    for quote in QUOTE_CHARS:
        if len(trimmed) >= 2 and trimmed.startswith(quote) and trimmed.endswith(quote):
            return trimmed[1:-1]
    return trimmed


def _cell(raw: Mapping[str, Any], header: str) -> str:
    value = raw.get(header)
    return value if isinstance(value, str) else ""


def _first_populated(raw: Mapping[str, Any], headers: tuple[str, ...]) -> str:
    for header in headers:
        value = _cell(raw, header)
        if value.strip():
            return value
    return ""


def _resolve(
    raw: Mapping[str, Any], aliases: Mapping[str, tuple[str, ...]]
) -> dict[str, str]:
    # Canonical field set is fixed; a custom table may only change the headers.
    return {
        field: _first_populated(raw, tuple(aliases.get(field, ())))
        for field in FIELD_ALIASES
    }


def _slots(
    raw: Mapping[str, Any], slots: tuple[str, ...], legacy: tuple[str, ...]
) -> list[str]:
    values = [_cell(raw, header) for header in slots]
    if not values[0].strip():
        values[0] = _first_populated(raw, legacy)
    return values


def _extras(raw: Mapping[str, Any], consumed: set[str]) -> dict[str, str]:
    return {
        key: value
        for key, value in raw.items()
        if isinstance(key, str)
        and key not in consumed
        and isinstance(value, str)
        and value.strip()
    }


def _consumed_headers(aliases: Mapping[str, tuple[str, ...]]) -> set[str]:
    headers = {h for candidates in aliases.values() for h in candidates}
    headers.update(PHOTO_SLOTS, PHOTO_LEGACY, TAG_SLOTS, TAG_LEGACY)
    return headers


def _clean_fields(fields: dict[str, str]) -> None:
    for name in TRIMMED_FIELDS:
        fields[name] = fields[name].strip()
    for name in URL_FIELDS:
        fields[name] = strip_wrapping_quotes(fields[name].strip())


def _build(
    raw: Mapping[str, Any],
    index: int,
    fields: dict[str, str],
    aliases: Mapping[str, tuple[str, ...]],
) -> Festival:
    photos = [strip_wrapping_quotes(p.strip()) for p in _slots(raw, PHOTO_SLOTS, PHOTO_LEGACY)]
    tags = [t.strip() for t in _slots(raw, TAG_SLOTS, TAG_LEGACY)]
    fields = dict(fields)
    fields["id"] = fields["id"].strip() or str(index)
    return Festival(
        index=index,
        photo_urls=tuple(p for p in photos if p),
        tags=tuple(t for t in tags if t),
        extras=_extras(raw, _consumed_headers(aliases)),
        **fields,
    )


def normalize_festival(
    raw: Mapping[str, Any],
    index: int,
    aliases: Mapping[str, tuple[str, ...]] = FIELD_ALIASES,
) -> Festival | None:
    """
    Transform one primary-feed row.

    Returns *None* (row dropped) when the name is blank or either coordinate
    does not match :data:`~festival_feed.constants.COORD_RE`. Coordinates are
    matched as written, so a padded cell such as ``" 38.0"`` is rejected.
    """
    fields = _resolve(raw, aliases)
    if not (
        COORD_RE.fullmatch(fields["latitude"]) and COORD_RE.fullmatch(fields["longitude"])
    ):
        return None

    _clean_fields(fields)
    if not fields["name"]:
        return None
    return _build(raw, index, fields, aliases)


def normalize_event(
    raw: Mapping[str, Any],
    index: int,
    aliases: Mapping[str, tuple[str, ...]] = FIELD_ALIASES,
) -> Festival | None:
    """
    Transform one events-feed row (legacy sheet layout tolerated).

    Coordinates are optional here; rows without them simply never get a
    distance.
    """
    fields = _resolve(raw, aliases)

    if not fields["period"].strip() and fields["start_date"].strip():
        start = fields["start_date"].strip()
        end = fields["end_date"].strip() or start
        fields["period"] = f"{start}～{end}"

    if not fields["venue"].strip():
        hall = _cell(raw, "会場名").strip()
        if hall:
            address = _cell(raw, "住所").strip()
            fields["venue"] = f"{hall}（{address}）" if address else hall

    for key in ("latitude", "longitude"):
        value = fields[key].strip()
        fields[key] = value or None  # type: ignore[assignment]

    _clean_fields(fields)
    if not fields["name"]:
        return None

    event = _build(raw, index, fields, aliases)
    social = {
        key: strip_wrapping_quotes(value)
        for key, value in event.extras.items()
        if key in EVENT_URL_EXTRAS
    }
    if social:
        event = dataclasses.replace(event, extras={**event.extras, **social})
    return event
