"""
Calendar utilities for weekly retail forecasting.

Key concepts:
  - Week start: every weekly bucket is keyed by the Monday of its ISO week.
  - Retail calendar: the Black Friday window and the holiday season follow the
    Brazilian retail calendar the Olist marketplace trades on.  They are fixed
    policy, not configuration.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

# Black Friday falls on the fourth Friday of November; promotions run across
# the whole week, so any date from the 20th to the 27th counts.
BLACK_FRIDAY_MONTH = 11
BLACK_FRIDAY_FIRST_DAY = 20
BLACK_FRIDAY_LAST_DAY = 27

# Peak gift-shopping months (Black Friday through Natal).
HOLIDAY_SEASON_MONTHS = frozenset({11, 12})


def week_start(value: date | datetime) -> date:
    """Return the Monday of the ISO week containing ``value``.

    Datetimes are truncated to their calendar date first, so the time of day
    never moves a purchase into a neighbouring week.
    """
    d = value.date() if isinstance(value, datetime) else value
    return d - timedelta(days=d.weekday())


def iso_year_week(d: date) -> tuple[int, int]:
    """Return ``(iso_year, iso_week)`` per ISO 8601 (first four-day week rule)."""
    iso = d.isocalendar()
    return iso.year, iso.week


def quarter_of(d: date) -> int:
    """Calendar quarter 1–4."""
    return (d.month - 1) // 3 + 1


def is_black_friday_week(d: date) -> bool:
    """True when ``d`` falls inside the November 20–27 promotion window."""
    return (
        d.month == BLACK_FRIDAY_MONTH
        and BLACK_FRIDAY_FIRST_DAY <= d.day <= BLACK_FRIDAY_LAST_DAY
    )


def is_holiday_season(d: date) -> bool:
    """True for November and December."""
    return d.month in HOLIDAY_SEASON_MONTHS


def date_range(start: date, end: date, step_days: int = 1) -> list[date]:
    """Generate a list of dates from ``start`` to ``end`` (inclusive).

    Args:
        start: First date in the range.
        end: Last date in the range (inclusive).
        step_days: Step size in days (default 1).

    Returns:
        List of date objects.

    Raises:
        ValueError: If ``end < start`` or ``step_days < 1``.
    """
    if end < start:
        raise ValueError(f"end ({end}) must be >= start ({start}).")
    if step_days < 1:
        raise ValueError(f"step_days must be >= 1, got {step_days}.")

    result: list[date] = []
    current = start
    while current <= end:
        result.append(current)
        current += timedelta(days=step_days)
    return result


def parse_timestamp(value: str) -> datetime:
    """Parse an Olist export timestamp (``YYYY-MM-DD HH:MM:SS``).

    Also accepts ISO 8601 with a ``T`` separator or a bare date.

    Raises:
        ValueError: If the string is not a recognised timestamp.
    """
    text = value.strip()
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(f"Cannot parse timestamp '{value}'.") from None


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)
