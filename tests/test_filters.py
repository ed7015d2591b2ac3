"""
tests/test_filters.py
~~~~~~~~~~~~~~~~~~~~~
Predicates behind the search / dashboard / calendar controls.
"""

from __future__ import annotations

import datetime as dt

import pytest

from festival_feed.constants import JST
from festival_feed.filters import (
    FilterCriteria,
    apply_filters,
    count_by_category,
    has_parking_space,
    in_category,
    is_open,
    is_upcoming,
    list_areas,
    list_statuses,
    matches_query,
    occurs_on,
    split_list,
)
from festival_feed.normalizer import normalize_festival

# 2025-08-04 is a Monday
MONDAY_NOON = dt.datetime(2025, 8, 4, 12, 0, tzinfo=JST)


def _at(hour: int, minute: int = 0, day: int = 4) -> dt.datetime:
    return dt.datetime(2025, 8, day, hour, minute, tzinfo=JST)


def test_split_list() -> None:
    assert split_list("祭り,花火、 伝統  芸能") == ["祭り", "花火", "伝統", "芸能"]
    assert split_list("") == []


def test_matches_query_is_case_insensitive_over_all_text(make_festival) -> None:
    rec = make_festival("Earth Celebration", venue="小木", tags=("Taiko",))
    assert matches_query(rec, "earth")
    assert matches_query(rec, "taiko")
    assert matches_query(rec, "小木")
    assert matches_query(rec, "  ")
    assert not matches_query(rec, "kodo")


def test_in_category_matches_whole_tokens(make_festival) -> None:
    rec = make_festival(category="祭り、花火")
    assert in_category(rec, "花火")
    assert not in_category(rec, "花")


@pytest.mark.parametrize(
    "now, expected",
    [
        (_at(12), True),
        (_at(10), True),
        (_at(17), True),
        (_at(17, 1), False),
        (_at(9, 59), False),
    ],
)
def test_is_open_daytime_hours(make_festival, now: dt.datetime, expected: bool) -> None:
    rec = make_festival(opening_hours="10:00-17:00")
    assert is_open(rec, now) is expected


@pytest.mark.parametrize(
    "now, expected",
    [(_at(23, 30), True), (_at(1), True), (_at(2), True), (_at(12), False)],
)
def test_is_open_overnight_hours(make_festival, now: dt.datetime, expected: bool) -> None:
    rec = make_festival(opening_hours="22:00～02:00")
    assert is_open(rec, now) is expected


def test_is_open_reads_japan_time(make_festival) -> None:
    rec = make_festival(opening_hours="10:00-17:00")
    noon_jst_in_utc = dt.datetime(2025, 8, 4, 3, 0, tzinfo=dt.timezone.utc)
    assert is_open(rec, noon_jst_in_utc)


def test_closed_day_overrides_hours(make_festival) -> None:
    rec = make_festival(opening_hours="10:00-17:00", closed_days="月曜日、火曜日")
    assert not is_open(rec, MONDAY_NOON)
    assert is_open(rec, _at(12, day=6))  # Wednesday


@pytest.mark.parametrize("hours", ["", "終日", "10時から"])
def test_unreadable_hours_are_closed(make_festival, hours: str) -> None:
    assert not is_open(make_festival(opening_hours=hours), MONDAY_NOON)


@pytest.mark.parametrize(
    "parking, expected",
    [
        ("50台", True),
        ("0台", False),
        ("有", True),
        ("あり（無料）", True),
        ("なし", False),
        ("", False),
        ("TRUE", True),
        ("true", True),
        ("FALSE", False),
    ],
)
def test_has_parking_space(make_festival, parking: str, expected: bool) -> None:
    assert has_parking_space(make_festival(parking=parking)) is expected


def test_parking_checkbox_rows_filter_from_raw_sheet() -> None:
    with_parking = normalize_festival(
        {"ID": "1", "お祭り名": "佐渡祭", "緯度": "38.0", "経度": "138.4", "駐車場の有無": "TRUE"}, 0
    )
    without = normalize_festival(
        {"ID": "2", "お祭り名": "両津祭", "緯度": "38.1", "経度": "138.4", "駐車場の有無": "FALSE"}, 1
    )

    assert apply_filters([with_parking, without], FilterCriteria(has_parking=True)) == [with_parking]


def test_is_upcoming(make_festival) -> None:
    assert is_upcoming(make_festival(start_date="2025-09-01"), MONDAY_NOON)
    assert not is_upcoming(make_festival(start_date="2025-07-01"), MONDAY_NOON)
    assert not is_upcoming(make_festival(start_date=""), MONDAY_NOON)


def test_occurs_on_uses_start_as_missing_end(make_festival) -> None:
    one_day = make_festival(start_date="2025-08-01")
    ranged = make_festival(start_date="2025-08-01", end_date="2025-08-03")

    assert occurs_on(one_day, dt.date(2025, 8, 1))
    assert not occurs_on(one_day, dt.date(2025, 8, 2))
    assert occurs_on(ranged, dt.date(2025, 8, 3))
    assert not occurs_on(ranged, dt.date(2025, 8, 4))


@pytest.mark.parametrize(
    "period, day, expected",
    [
        ("2025年8月10日(日)～8月12日", dt.date(2025, 8, 11), True),
        ("2025年8月10日(日)～8月12日", dt.date(2025, 8, 13), False),
        ("2025-08-01～2025-08-02", dt.date(2025, 8, 2), True),
        ("2025年8月10日～", dt.date(2025, 8, 10), True),
        ("2025年8月10日～", dt.date(2025, 8, 11), False),
        ("随時", dt.date(2025, 8, 10), False),
    ],
)
def test_occurs_on_reads_period_when_no_start_date(
    make_festival, period: str, day: dt.date, expected: bool
) -> None:
    assert occurs_on(make_festival(period=period), day) is expected


def test_apply_filters_combines_criteria_and_keeps_order(make_festival) -> None:
    records = [
        make_festival("c", category="花火", venue="両津", parking="20台"),
        make_festival("a", category="花火", venue="相川", parking="20台"),
        make_festival("b", category="花火", venue="両津", parking="なし"),
        make_festival("d", category="祭り", venue="両津", parking="有"),
    ]
    criteria = FilterCriteria(category="花火", area="両津")
    assert [r.name for r in apply_filters(records, criteria)] == ["c", "b"]

    criteria = FilterCriteria(area="両津", has_parking=True)
    assert [r.name for r in apply_filters(records, criteria)] == ["c", "d"]

    assert apply_filters(records, FilterCriteria()) == records


def test_criteria_active_flag() -> None:
    assert not FilterCriteria().active
    assert FilterCriteria(query="x").active


def test_vocabularies(make_festival) -> None:
    records = [
        make_festival("a", category="祭り,花火", venue="両津", status="開催予定"),
        make_festival("b", category="祭り", venue="相川", status="中止"),
        make_festival("c", category="", venue="両津", status=" "),
    ]
    assert count_by_category(records) == {"祭り": 2, "花火": 1}
    assert set(list_areas(records)) == {"両津", "相川"}
    assert set(list_statuses(records)) == {"開催予定", "中止"}
