"""
Contiguous weekly series construction.

Lag features index a series by *position*, so the series must be
calendar-accurate: position i-1 has to be exactly seven days before
position i.  The aggregator only emits weeks that had sales, so this module
walks every Monday from the first to the last observed week and synthesizes a
zero-valued ``WeeklyRecord`` for each week with no sales.

Leading and trailing weeks are never padded — a series starts on its first
observed sale and ends on its last.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from datetime import date, timedelta
from typing import Optional

from sales_forecaster.models.weekly import WeeklyRecord
from sales_forecaster.utils.time_utils import date_range

logger = logging.getLogger(__name__)

WEEK = timedelta(days=7)


def fill_missing_weeks(
    records: Iterable[WeeklyRecord],
    category: Optional[str] = None,
) -> list[WeeklyRecord]:
    """Return a gap-free weekly series for one category.

    Args:
        records:  Weekly records of a single category, in any order.
        category: Expected category.  When given, records of any other
                  category raise instead of being silently mixed in.

    Returns:
        Records sorted by ``week_start`` with consecutive entries exactly
        seven days apart.  Empty input returns an empty list.

    Raises:
        ValueError: If the records span more than one category, or two
            records share a ``week_start``.
    """
    by_week: dict[date, WeeklyRecord] = {}
    for r in records:
        if category is None:
            category = r.category
        elif r.category != category:
            raise ValueError(
                f"fill_missing_weeks expects one category; got '{r.category}' "
                f"alongside '{category}'."
            )
        if r.week_start in by_week:
            raise ValueError(f"Duplicate weekly record for '{r.category}' on {r.week_start}.")
        by_week[r.week_start] = r

    if not by_week:
        return []

    first, last = min(by_week), max(by_week)
    filled = [
        by_week[week] if week in by_week else WeeklyRecord.empty_week(category, week)
        for week in date_range(first, last, step_days=7)
    ]

    synthesized = len(filled) - len(by_week)
    if synthesized:
        logger.debug(
            "Category '%s': synthesized %d zero weeks between %s and %s",
            category, synthesized, first, last,
        )
    return filled


def group_by_category(records: Iterable[WeeklyRecord]) -> dict[str, list[WeeklyRecord]]:
    """Split a mixed record list into per-category lists (insertion order kept)."""
    groups: dict[str, list[WeeklyRecord]] = defaultdict(list)
    for r in records:
        groups[r.category].append(r)
    return dict(groups)


def fill_all_categories(records: Iterable[WeeklyRecord]) -> dict[str, list[WeeklyRecord]]:
    """Gap-fill every category of a mixed record list.

    Returns:
        Category → contiguous series, with categories in sorted order.
    """
    groups = group_by_category(records)
    return {
        category: fill_missing_weeks(groups[category], category)
        for category in sorted(groups)
    }


def assert_contiguous(series: list[WeeklyRecord]) -> None:
    """Raise ``ValueError`` unless consecutive records are exactly one week apart."""
    for prev, curr in zip(series, series[1:]):
        if curr.week_start - prev.week_start != WEEK:
            raise ValueError(
                f"Series for '{curr.category}' is not contiguous: "
                f"{prev.week_start} is followed by {curr.week_start}."
            )
