"""Calendar helpers for date and duration values."""

from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, fields
from datetime import datetime, timedelta


MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE
MS_PER_DAY = 24 * MS_PER_HOUR

# Casual conversion used for ordering and normalization: a month is 30 days, a year 365.
_CASUAL_UNIT_MS: tuple[tuple[str, int], ...] = (
    ("years", 365 * MS_PER_DAY),
    ("months", 30 * MS_PER_DAY),
    ("weeks", 7 * MS_PER_DAY),
    ("days", MS_PER_DAY),
    ("hours", MS_PER_HOUR),
    ("minutes", MS_PER_MINUTE),
    ("seconds", MS_PER_SECOND),
    ("milliseconds", 1),
)

DURATION_UNITS: dict[str, str] = {
    "year": "years",
    "years": "years",
    "yr": "years",
    "yrs": "years",
    "month": "months",
    "months": "months",
    "mo": "months",
    "mos": "months",
    "week": "weeks",
    "weeks": "weeks",
    "wk": "weeks",
    "wks": "weeks",
    "w": "weeks",
    "day": "days",
    "days": "days",
    "d": "days",
    "hour": "hours",
    "hours": "hours",
    "hr": "hours",
    "hrs": "hours",
    "h": "hours",
    "minute": "minutes",
    "minutes": "minutes",
    "min": "minutes",
    "mins": "minutes",
    "m": "minutes",
    "second": "seconds",
    "seconds": "seconds",
    "sec": "seconds",
    "secs": "seconds",
    "s": "seconds",
}

DATE_SHORTHANDS = (
    "now",
    "today",
    "yesterday",
    "tomorrow",
    "sow",
    "start-of-week",
    "eow",
    "end-of-week",
    "soy",
    "start-of-year",
    "eoy",
    "end-of-year",
    "som",
    "start-of-month",
    "eom",
    "end-of-month",
)


@dataclass(frozen=True, slots=True)
class Duration:
    """A span of time kept in calendar units."""

    years: float = 0
    months: float = 0
    weeks: float = 0
    days: float = 0
    hours: float = 0
    minutes: float = 0
    seconds: float = 0
    milliseconds: float = 0

    @classmethod
    def of(cls, unit: str, amount: float) -> Duration:
        """Build a duration from one unit name (any alias from DURATION_UNITS)."""
        return cls(**{DURATION_UNITS[unit]: amount})

    def as_milliseconds(self) -> float:
        """Total length using casual month and year lengths."""
        return sum(getattr(self, name) * size for name, size in _CASUAL_UNIT_MS)

    def plus(self, other: Duration) -> Duration:
        return Duration(
            *(getattr(self, f.name) + getattr(other, f.name) for f in fields(Duration))
        )

    def negate(self) -> Duration:
        return self.scale(-1)

    def scale(self, factor: float) -> Duration:
        return Duration(*(getattr(self, f.name) * factor for f in fields(Duration)))

    def normalized(self) -> Duration:
        """Shift the whole span into the largest units it fills."""
        total = self.as_milliseconds()
        sign = -1 if total < 0 else 1
        remaining = abs(total)
        parts: dict[str, float] = {}
        for name, size in _CASUAL_UNIT_MS:
            if name == "milliseconds":
                parts[name] = sign * remaining
                break
            amount = math.floor(remaining / size)
            remaining -= amount * size
            parts[name] = sign * amount
        return Duration(**parts)

    def get(self, unit: str) -> float | None:
        """Return one unit of the duration; singular and plural names are accepted."""
        name = unit if unit.endswith("s") else f"{unit}s"
        if name not in {f.name for f in fields(Duration)}:
            return None
        return _plain_number(getattr(self, name))


def _plain_number(value: float) -> int | float:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def date_key(value: datetime) -> float:
    """Timestamp used to order dates; naive dates are read as local time."""
    return value.timestamp()


def _align(left: datetime, right: datetime) -> tuple[datetime, datetime]:
    """Make two dates subtractable when only one of them carries a zone."""
    if (left.tzinfo is None) == (right.tzinfo is None):
        return left, right
    return left.astimezone(), right.astimezone()


def shift_months(value: datetime, months: int) -> datetime:
    """Move a date by whole months, clamping the day to the target month's length."""
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    last_day = calendar.monthrange(year, month + 1)[1]
    return value.replace(year=year, month=month + 1, day=min(value.day, last_day))


def add_duration(value: datetime, duration: Duration) -> datetime:
    """Add a duration to a date; years and months move along the calendar."""
    total_months = duration.years * 12 + duration.months
    whole_months = math.trunc(total_months)
    fractional_days = (total_months - whole_months) * 30
    shifted = shift_months(value, whole_months) if whole_months else value
    return shifted + timedelta(
        weeks=duration.weeks,
        days=duration.days + fractional_days,
        hours=duration.hours,
        minutes=duration.minutes,
        seconds=duration.seconds,
        milliseconds=duration.milliseconds,
    )


def date_diff(left: datetime, right: datetime) -> Duration:
    """Calendar-aware difference ``left - right``."""
    left, right = _align(left, right)
    if left < right:
        return date_diff(right, left).negate()

    months = (left.year - right.year) * 12 + (left.month - right.month)
    cursor = shift_months(right, months)
    if cursor > left:
        months -= 1
        cursor = shift_months(right, months)

    years, months = divmod(months, 12)
    remainder = left - cursor
    weeks, days = divmod(remainder.days, 7)
    hours, rest = divmod(remainder.seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return Duration(
        years=years,
        months=months,
        weeks=weeks,
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        milliseconds=remainder.microseconds // 1000,
    )


def strip_time(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def resolve_date_shorthand(name: str, now: datetime | None = None) -> datetime:
    """Resolve a named date such as ``today`` or ``eom`` against the wall clock."""
    current = now if now is not None else datetime.now()
    today = strip_time(current)
    start_of_week = today - timedelta(days=today.weekday())
    last_day = calendar.monthrange(today.year, today.month)[1]

    match name:
        case "now":
            return current
        case "today":
            return today
        case "yesterday":
            return today - timedelta(days=1)
        case "tomorrow":
            return today + timedelta(days=1)
        case "sow" | "start-of-week":
            return start_of_week
        case "eow" | "end-of-week":
            return _end_of_day(start_of_week + timedelta(days=6))
        case "som" | "start-of-month":
            return today.replace(day=1)
        case "eom" | "end-of-month":
            return _end_of_day(today.replace(day=last_day))
        case "soy" | "start-of-year":
            return today.replace(month=1, day=1)
        case "eoy" | "end-of-year":
            return _end_of_day(today.replace(month=12, day=31))
    raise ValueError(f"Unknown date shorthand: {name}")


def date_component(value: datetime, component: str) -> int | None:
    """Return a named component of a date, or None for unknown names."""
    match component:
        case "year":
            return value.year
        case "month":
            return value.month
        case "weekyear":
            return value.isocalendar().week
        case "week":
            return value.day // 7 + 1
        case "weekday":
            return value.isoweekday()
        case "day":
            return value.day
        case "hour":
            return value.hour
        case "minute":
            return value.minute
        case "second":
            return value.second
        case "millisecond":
            return value.microsecond // 1000
    return None


def has_time(value: datetime) -> bool:
    return (value.hour, value.minute, value.second) != (0, 0, 0)


def render_duration(duration: Duration) -> str:
    """Render a duration compactly, listing only non-zero units."""
    normalized = duration.normalized()
    parts: list[str] = []
    for name, _size in _CASUAL_UNIT_MS:
        amount = getattr(normalized, name)
        if not amount:
            continue
        if name == "milliseconds":
            parts.append(f"{round(amount)} ms")
        elif name == "seconds":
            parts.append(f"{round(amount)} seconds")
        else:
            parts.append(f"{_plain_number(amount)} {name}")
    return ", ".join(parts)
