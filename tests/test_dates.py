"""Tests for date and duration helpers."""

from __future__ import annotations

from datetime import datetime

import pytest

from orgview.query_language.dates import (
    Duration,
    add_duration,
    date_component,
    date_diff,
    render_duration,
    resolve_date_shorthand,
    shift_months,
    strip_time,
)


NOW = datetime(2024, 5, 15, 13, 45)


def test_duration_of_accepts_unit_aliases() -> None:
    """Duration.of should map unit aliases to canonical fields."""
    assert Duration.of("hr", 2) == Duration(hours=2)
    assert Duration.of("wks", 1) == Duration(weeks=1)
    assert Duration.of("s", 30) == Duration(seconds=30)


def test_duration_arithmetic() -> None:
    """Durations should add, negate, and scale unit by unit."""
    total = Duration(days=1).plus(Duration(hours=6))

    assert total == Duration(days=1, hours=6)
    assert total.negate() == Duration(days=-1, hours=-6)
    assert Duration(hours=3).scale(2) == Duration(hours=6)


def test_duration_normalized_and_get() -> None:
    """Normalization should move time into the largest units; get accepts singular names."""
    normalized = Duration(hours=36).normalized()

    assert normalized == Duration(days=1, hours=12)
    assert normalized.get("day") == 1
    assert normalized.get("hours") == 12
    assert normalized.get("fortnight") is None


def test_shift_months_clamps_day() -> None:
    """Month shifts should clamp to the end of shorter months."""
    assert shift_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
    assert shift_months(datetime(2024, 12, 31), 2) == datetime(2025, 2, 28)
    assert shift_months(datetime(2024, 3, 15), -3) == datetime(2023, 12, 15)


def test_add_duration_moves_along_calendar() -> None:
    """Adding months should follow the calendar, smaller units should be exact."""
    assert add_duration(datetime(2024, 1, 31), Duration(months=1)) == datetime(2024, 2, 29)
    assert add_duration(datetime(2024, 1, 1), Duration(years=1, days=2)) == datetime(2025, 1, 3)
    assert add_duration(datetime(2024, 1, 1), Duration(hours=-1)) == datetime(2023, 12, 31, 23)


def test_date_diff_is_calendar_aware() -> None:
    """Date differences should count whole months first, then weeks and days."""
    diff = date_diff(datetime(2024, 3, 1), datetime(2024, 1, 15))

    assert diff == Duration(months=1, weeks=2, days=1)
    assert date_diff(datetime(2024, 1, 15), datetime(2024, 3, 1)) == diff.negate()


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("now", NOW),
        ("today", datetime(2024, 5, 15)),
        ("yesterday", datetime(2024, 5, 14)),
        ("tomorrow", datetime(2024, 5, 16)),
        ("sow", datetime(2024, 5, 13)),
        ("end-of-week", datetime(2024, 5, 19, 23, 59, 59, 999000)),
        ("som", datetime(2024, 5, 1)),
        ("eom", datetime(2024, 5, 31, 23, 59, 59, 999000)),
        ("start-of-year", datetime(2024, 1, 1)),
        ("eoy", datetime(2024, 12, 31, 23, 59, 59, 999000)),
    ],
)
def test_resolve_date_shorthand(name: str, expected: datetime) -> None:
    """Named dates should resolve against the supplied clock."""
    assert resolve_date_shorthand(name, NOW) == expected


def test_resolve_date_shorthand_unknown_name() -> None:
    """Unknown shorthands should raise ValueError."""
    with pytest.raises(ValueError, match="Unknown date shorthand"):
        resolve_date_shorthand("someday", NOW)


@pytest.mark.parametrize(
    ("component", "expected"),
    [
        ("year", 2024),
        ("month", 5),
        ("day", 15),
        ("weekday", 3),
        ("week", 3),
        ("hour", 13),
        ("minute", 45),
        ("century", None),
    ],
)
def test_date_component(component: str, expected: int | None) -> None:
    """Date components should be readable by name."""
    assert date_component(NOW, component) == expected


def test_strip_time() -> None:
    """strip_time should drop the time of day."""
    assert strip_time(NOW) == datetime(2024, 5, 15)


def test_render_duration() -> None:
    """Durations should render their non-zero units only."""
    assert render_duration(Duration(days=3)) == "3 days"
    assert render_duration(Duration(hours=25)) == "1 days, 1 hours"
    assert render_duration(Duration(minutes=90, seconds=5)) == "1 hours, 30 minutes, 5 seconds"
    assert render_duration(Duration()) == ""
