"""
Supervised-learning rows from contiguous weekly series.

Purpose
-------
Turns each gap-free weekly series (see ``gap_fill``) into one ``FeatureRow``
per week: four quantity lags, a four-week rolling mean, a past-only monthly
seasonal mean, calendar flags, a trend index and the label (the week's own
quantity).

How it works — step by step
----------------------------
For a series ``q`` and row index ``i``:

1.  **Lags**: ``lag_k = q[i-k]`` when ``i >= k``, else 0.
2.  **Rolling mean**: ``mean(q[i-4 .. i-1])`` when ``i >= 4``.  Before four
    weeks of history exist, a fallback is used:

    * fit mode   — mean of the non-zero quantities at indices ``< i``
      (0.0 when there are none);
    * apply mode — the category's historical average carried over from fit
      mode (``FeatureBuildResult.historical_averages``), so inference never
      recomputes statistics from the rows it is scoring.

3.  **Seasonal mean**: mean of the non-zero quantities at indices ``< i`` whose
    week falls in the same calendar month as row ``i``; 0.0 without history.
4.  **Trend**: the row position ``i`` in single-category mode; in global mode
    ``trend.trend_index(week_start, epoch)`` with one epoch shared by every
    category.
5.  **Calendar**: ISO week, month, quarter, Black Friday window, holiday season.

Leakage notes
-------------
- Every feature at row ``i`` reads only indices ``< i``.  Row ``i``'s own
  quantity appears only in ``label``.
- In global mode each row's trend is mapped back to a date and compared with
  the week it was built from; a mismatch raises ``TrendReconstructionError``.

Insufficient data
-----------------
A category whose series is shorter than ``min_weeks`` (default 12) produces no
rows.  It is logged at WARNING and recorded as a ``SkippedCategory`` carrying
its week count and date range.

Concurrency
-----------
Categories are independent, so global mode may build them on a thread pool
(``max_workers > 1``).  Results are merged in sorted category order, never in
completion order, so the output is identical for any worker count.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional

from sales_forecaster.features.gap_fill import assert_contiguous
from sales_forecaster.features.trend import (
    TrendReconstructionError,
    global_min_date,
    trend_index,
    verify_trend,
)
from sales_forecaster.models.weekly import WeeklyRecord
from sales_forecaster.utils.time_utils import (
    is_black_friday_week,
    is_holiday_season,
    quarter_of,
)

logger = logging.getLogger(__name__)

DEFAULT_MIN_WEEKS = 12
LAGS = (1, 2, 3, 4)
ROLLING_WINDOW = 4


class BuildMode(str, Enum):
    FIT = "fit"
    APPLY = "apply"


@dataclass(frozen=True)
class FeatureRow:
    """One supervised-learning row.  Field order follows ``registry.FEATURE_REGISTRY``."""

    week_of_year: int
    month: int
    quarter: int
    is_black_friday_week: bool
    is_holiday_season: bool
    lag_1: float
    lag_2: float
    lag_3: float
    lag_4: float
    rolling_avg_4: float
    trend: int
    category_seasonal_avg: float
    category: str
    label: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SkippedCategory:
    """A category dropped for lack of history."""

    category: str
    weeks: int
    first_week: Optional[date]
    last_week: Optional[date]
    reason: str


@dataclass(frozen=True)
class FeatureBuildResult:
    """Output of a feature build.

    Attributes:
        rows:                Feature rows, grouped by category (sorted) and
                             time-ordered within each category.
        skipped:             Categories that produced no rows.
        historical_averages: Category → mean of the non-zero quantities of its
                             full series.  Carry into apply mode.
        global_min_date:     Trend epoch in global mode; None in single-category mode.
        mode:                The mode the rows were built in.
    """

    rows: list[FeatureRow]
    skipped: list[SkippedCategory] = field(default_factory=list)
    historical_averages: dict[str, float] = field(default_factory=dict)
    global_min_date: Optional[date] = None
    mode: BuildMode = BuildMode.FIT

    @property
    def categories(self) -> list[str]:
        return sorted({r.category for r in self.rows})


# ── Per-series construction ───────────────────────────────────────────────────


def historical_average(series: list[WeeklyRecord]) -> float:
    """Mean of the non-zero quantities of a series (0.0 when all are zero)."""
    nonzero = [r.quantity for r in series if r.quantity > 0]
    return sum(nonzero) / len(nonzero) if nonzero else 0.0


def build_category_features(
    series: list[WeeklyRecord],
    mode: BuildMode = BuildMode.FIT,
    historical_avg: Optional[float] = None,
    epoch: Optional[date] = None,
) -> list[FeatureRow]:
    """Build feature rows for one contiguous category series.

    Args:
        series:         Gap-free weekly records of one category, oldest first.
        mode:           ``FIT`` for training data, ``APPLY`` for inference.
        historical_avg: Rolling-mean fallback for the first weeks in apply mode.
        epoch:          Global trend epoch.  None selects single-category mode
                        (trend = row position).

    Returns:
        One ``FeatureRow`` per record.  Empty input returns an empty list.

    Raises:
        ValueError: If the series is not contiguous, or apply mode is
            requested without a historical average.
        TrendReconstructionError: If a row's trend does not map back to its week.
    """
    if not series:
        return []
    assert_contiguous(series)
    if mode is BuildMode.APPLY and historical_avg is None:
        raise ValueError(
            f"Apply mode requires the fit-mode historical average for '{series[0].category}'."
        )

    quantities = [float(r.quantity) for r in series]
    past_nonzero_sum = 0.0
    past_nonzero_count = 0
    month_sums: dict[int, float] = {}
    month_counts: dict[int, int] = {}

    rows: list[FeatureRow] = []
    for i, record in enumerate(series):
        week = record.week_start

        lags = [quantities[i - k] if i >= k else 0.0 for k in LAGS]

        if i >= ROLLING_WINDOW:
            rolling = sum(quantities[i - ROLLING_WINDOW:i]) / ROLLING_WINDOW
        elif mode is BuildMode.APPLY:
            rolling = float(historical_avg)
        else:
            rolling = past_nonzero_sum / past_nonzero_count if past_nonzero_count else 0.0

        count = month_counts.get(week.month, 0)
        seasonal = month_sums[week.month] / count if count else 0.0

        if epoch is None:
            trend = i
        else:
            trend = trend_index(week, epoch)
            if trend < 0:
                raise TrendReconstructionError(
                    f"Week {week} of '{record.category}' precedes the trend epoch {epoch}."
                )
            verify_trend(trend, week, epoch)

        rows.append(FeatureRow(
            week_of_year=record.iso_week,
            month=week.month,
            quarter=quarter_of(week),
            is_black_friday_week=is_black_friday_week(week),
            is_holiday_season=is_holiday_season(week),
            lag_1=lags[0],
            lag_2=lags[1],
            lag_3=lags[2],
            lag_4=lags[3],
            rolling_avg_4=rolling,
            trend=trend,
            category_seasonal_avg=seasonal,
            category=record.category,
            label=quantities[i],
        ))

        # History is updated only after the row is emitted.
        if quantities[i] > 0:
            past_nonzero_sum += quantities[i]
            past_nonzero_count += 1
            month_sums[week.month] = month_sums.get(week.month, 0.0) + quantities[i]
            month_counts[week.month] = count + 1

    return rows


# ── Single-category and global builds ─────────────────────────────────────────


def _skip_if_short(
    category: str,
    series: list[WeeklyRecord],
    min_weeks: int,
) -> Optional[SkippedCategory]:
    if len(series) >= min_weeks:
        return None
    skipped = SkippedCategory(
        category=category,
        weeks=len(series),
        first_week=series[0].week_start if series else None,
        last_week=series[-1].week_start if series else None,
        reason=f"only {len(series)} contiguous weeks (minimum {min_weeks})",
    )
    logger.warning(
        "Skipping category '%s': %s, %s to %s",
        category, skipped.reason, skipped.first_week, skipped.last_week,
        extra={"category": category, "weeks": skipped.weeks},
    )
    return skipped


def build_single_category_features(
    series: list[WeeklyRecord],
    mode: BuildMode = BuildMode.FIT,
    historical_avg: Optional[float] = None,
    min_weeks: int = DEFAULT_MIN_WEEKS,
) -> FeatureBuildResult:
    """Build rows for one category with ``trend`` = row position."""
    if min_weeks < 1:
        raise ValueError(f"min_weeks must be >= 1, got {min_weeks}")
    if not series:
        return FeatureBuildResult(rows=[], mode=mode)

    category = series[0].category
    skipped = _skip_if_short(category, series, min_weeks)
    if skipped is not None:
        return FeatureBuildResult(rows=[], skipped=[skipped], mode=mode)

    rows = build_category_features(series, mode=mode, historical_avg=historical_avg)
    return FeatureBuildResult(
        rows=rows,
        historical_averages={
            category: float(historical_avg) if mode is BuildMode.APPLY else historical_average(series)
        },
        mode=mode,
    )


def build_global_features(
    series_by_category: Mapping[str, list[WeeklyRecord]],
    mode: BuildMode = BuildMode.FIT,
    historical_averages: Optional[Mapping[str, float]] = None,
    epoch: Optional[date] = None,
    min_weeks: int = DEFAULT_MIN_WEEKS,
    max_workers: int = 1,
) -> FeatureBuildResult:
    """Build rows for every category against one shared trend epoch.

    Args:
        series_by_category:  Category → contiguous weekly series.
        mode:                ``FIT`` or ``APPLY``.
        historical_averages: Apply mode only: per-category fallback averages
                             from the fit-mode result.
        epoch:               Trend epoch.  Fit mode defaults to the earliest
                             week across all supplied series (short ones
                             included); apply mode must pass the fit epoch.
        min_weeks:           Categories with fewer weeks are skipped.
        max_workers:         Thread count for per-category construction.

    Returns:
        ``FeatureBuildResult`` with rows grouped by sorted category.

    Raises:
        ValueError: On invalid parameters, or apply mode without an epoch or
            without an average for a category being built.
    """
    if min_weeks < 1:
        raise ValueError(f"min_weeks must be >= 1, got {min_weeks}")
    if max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    non_empty = {c: s for c, s in series_by_category.items() if s}
    if not non_empty:
        return FeatureBuildResult(rows=[], mode=mode)

    if epoch is None:
        if mode is BuildMode.APPLY:
            raise ValueError("Apply mode requires the fit-mode trend epoch.")
        epoch = global_min_date(non_empty.values())

    skipped: list[SkippedCategory] = []
    buildable: dict[str, list[WeeklyRecord]] = {}
    for category in sorted(non_empty):
        skip = _skip_if_short(category, non_empty[category], min_weeks)
        if skip is None:
            buildable[category] = non_empty[category]
        else:
            skipped.append(skip)

    averages: dict[str, Optional[float]] = {}
    for category in buildable:
        if mode is BuildMode.APPLY:
            if historical_averages is None or category not in historical_averages:
                raise ValueError(f"No fit-mode historical average for category '{category}'.")
            averages[category] = historical_averages[category]
        else:
            averages[category] = None

    def _build(category: str) -> list[FeatureRow]:
        return build_category_features(
            buildable[category],
            mode=mode,
            historical_avg=averages[category],
            epoch=epoch,
        )

    if max_workers > 1 and len(buildable) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {category: pool.submit(_build, category) for category in buildable}
            built = {category: future.result() for category, future in futures.items()}
    else:
        built = {category: _build(category) for category in buildable}

    rows: list[FeatureRow] = []
    for category in sorted(built):
        rows.extend(built[category])

    logger.info(
        "Built %d feature rows for %d categories (%d skipped), epoch %s",
        len(rows), len(built), len(skipped), epoch,
    )
    return FeatureBuildResult(
        rows=rows,
        skipped=skipped,
        historical_averages=(
            {c: float(a) for c, a in averages.items()} if mode is BuildMode.APPLY
            else {c: historical_average(s) for c, s in buildable.items()}
        ),
        global_min_date=epoch,
        mode=mode,
    )
