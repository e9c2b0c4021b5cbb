"""
Global trend index.

``trend`` counts whole weeks elapsed since one epoch shared by every category
in a dataset snapshot: the earliest ``week_start`` across all categories.
Two rows for the same calendar week therefore carry the same trend whatever
their category, which is what makes a single cross-category cutoff date
meaningful.

The feature builder computes ``trend`` with ``trend_index()`` and the
temporal splitter maps it back to a date with ``week_start_for_trend()``.
Both directions live here so the two can never drift apart.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from sales_forecaster.models.weekly import WeeklyRecord


class TrendReconstructionError(RuntimeError):
    """A row's trend does not map back to the week it was built from.

    This is a programming error, not a data-quality issue.
    """


def global_min_date(series: Iterable[Iterable[WeeklyRecord]]) -> date:
    """Earliest ``week_start`` across every category series.

    Raises:
        ValueError: If no series contains any record.
    """
    starts = [r.week_start for records in series for r in records]
    if not starts:
        raise ValueError("Cannot derive a global epoch from empty series.")
    return min(starts)


def _require_monday(epoch: date) -> None:
    if epoch.weekday() != 0:
        raise ValueError(f"Trend epoch must be a Monday, got {epoch}.")


def trend_index(week_start: date, epoch: date) -> int:
    """Whole weeks between ``epoch`` and ``week_start`` (floor division)."""
    _require_monday(epoch)
    return (week_start - epoch).days // 7


def week_start_for_trend(trend: int, epoch: date) -> date:
    """Inverse of ``trend_index`` for Monday-aligned weeks."""
    _require_monday(epoch)
    return epoch + timedelta(weeks=trend)


def verify_trend(trend: int, week_start: date, epoch: date) -> None:
    """Raise ``TrendReconstructionError`` if ``trend`` does not round-trip."""
    rebuilt = week_start_for_trend(trend, epoch)
    if rebuilt != week_start:
        raise TrendReconstructionError(
            f"trend {trend} reconstructs to {rebuilt} but the row was built for "
            f"{week_start} (epoch {epoch})."
        )
