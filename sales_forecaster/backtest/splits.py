"""
Chronological train/test partitioning of feature rows.

Date-cutoff split
-----------------
Given inclusive cutoffs ``train_end < test_start``:

  train = rows whose week  <= train_end
  test  = rows whose week  >= test_start
  rows strictly between the cutoffs are dropped

The gap keeps every lag and rolling window of a test row out of the training
side's label range.  A row's week is reconstructed from its ``trend`` and the
build epoch with ``trend.week_start_for_trend()``, the exact inverse of the
builder's own computation.

Rolling-window folds
--------------------
For one time-ordered series of ``total`` rows and ``fold_count`` folds
(requires ``total >= fold_count * weeks_per_fold``):

  window     = max(min_test_window, total // test_window_divisor)
  step       = window // 2
  test_end   = total - (fold_count - f - 1) * step       for fold f = 0, 1, ...
  test_start = max(min_train_weeks, test_end - window)
  train      = rows[:test_start]
  test       = rows[test_start:test_start + window]

All divisions are floor divisions.  A fold whose ``test_start`` falls outside
``[min_train_weeks, total)`` is discarded and recorded as a ``SkippedFold``;
the caller receives fewer folds than requested.

Leakage prevention
------------------
Both modes guarantee max(train.trend) < min(test.trend).  The guarantee is
checked on every split and fold produced; a violation raises
``ChronologyViolationError`` because it can only come from a bug.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from sales_forecaster.features.builder import FeatureBuildResult, FeatureRow
from sales_forecaster.features.trend import week_start_for_trend

log = logging.getLogger(__name__)

DEFAULT_FOLD_COUNT = 3
WEEKS_PER_FOLD = 20
MIN_TEST_WINDOW = 12
TEST_WINDOW_DIVISOR = 5
MIN_TRAIN_WEEKS = 20


class ChronologyViolationError(RuntimeError):
    """A produced split has a training row at or after a test row."""


@dataclass(frozen=True)
class Split:
    """One chronological train/test partition.

    Attributes:
        train:       Training rows, input order preserved.
        test:        Test rows, input order preserved.
        train_end:   Inclusive training cutoff (None for index-based splits).
        test_start:  Inclusive test cutoff (None for index-based splits).
        gap_rows:    Rows dropped because they fell between the cutoffs.
    """

    train: list[FeatureRow]
    test: list[FeatureRow]
    train_end: Optional[date] = None
    test_start: Optional[date] = None
    gap_rows: int = 0


@dataclass(frozen=True)
class Fold:
    """One rolling-window fold.

    ``test_start_index`` / ``test_end_index`` are positions in the series
    (end exclusive).
    """

    fold_index: int
    train: list[FeatureRow]
    test: list[FeatureRow]
    test_start_index: int
    test_end_index: int


@dataclass(frozen=True)
class SkippedFold:
    fold_index: int
    test_start_index: int
    test_end_index: int
    reason: str


@dataclass(frozen=True)
class RollingFolds:
    """Result of ``create_rolling_folds()``.

    ``insufficient_reason`` is set when the series is too short for any fold.
    """

    folds: list[Fold]
    skipped: list[SkippedFold] = field(default_factory=list)
    total_weeks: int = 0
    window_size: int = 0
    insufficient_reason: Optional[str] = None


# ── Chronology ─────────────────────────────────────────────────────────────────


def assert_chronological(train: list[FeatureRow], test: list[FeatureRow]) -> None:
    """Raise ``ChronologyViolationError`` unless max(train.trend) < min(test.trend).

    Passes when either side is empty.
    """
    if not train or not test:
        return
    max_train = max(r.trend for r in train)
    min_test = min(r.trend for r in test)
    if max_train >= min_test:
        raise ChronologyViolationError(
            f"max train trend {max_train} is not before min test trend {min_test} "
            f"({len({r.category for r in train})} train categories, "
            f"{len({r.category for r in test})} test categories)."
        )


# ── Date-cutoff split ──────────────────────────────────────────────────────────


def split_rows_by_date(
    rows: list[FeatureRow],
    train_end: date,
    test_start: date,
    epoch: date,
) -> Split:
    """Split rows by calendar cutoffs, reconstructing each week from ``trend``.

    Args:
        rows:       Feature rows built against ``epoch``.
        train_end:  Last week (inclusive) of the training side.
        test_start: First week (inclusive) of the test side.
        epoch:      The trend epoch the rows were built with.

    Returns:
        A ``Split``.  Empty input returns an empty split.

    Raises:
        ValueError: If ``test_start <= train_end``.
        ChronologyViolationError: If the produced split is not chronological.
    """
    if test_start <= train_end:
        raise ValueError(f"test_start ({test_start}) must be after train_end ({train_end}).")

    train: list[FeatureRow] = []
    test: list[FeatureRow] = []
    gap_rows = 0
    for row in rows:
        week = week_start_for_trend(row.trend, epoch)
        if week <= train_end:
            train.append(row)
        elif week >= test_start:
            test.append(row)
        else:
            gap_rows += 1

    assert_chronological(train, test)
    log.info(
        "Date split at %s / %s: %d train, %d test, %d dropped in the gap",
        train_end, test_start, len(train), len(test), gap_rows,
    )
    return Split(train=train, test=test, train_end=train_end, test_start=test_start, gap_rows=gap_rows)


def split_category_by_date(
    rows: list[FeatureRow],
    series_start: date,
    train_end: date,
    test_start: date,
) -> Split:
    """Date split for single-category rows (trend = position from ``series_start``)."""
    categories = {r.category for r in rows}
    if len(categories) > 1:
        raise ValueError(f"Expected rows of one category, got {sorted(categories)}.")
    return split_rows_by_date(rows, train_end, test_start, epoch=series_start)


def split_global_by_date(
    result: FeatureBuildResult,
    train_end: date,
    test_start: date,
) -> Split:
    """Date split for a global build, using the build's own epoch."""
    if result.global_min_date is None:
        if not result.rows:
            return Split(train=[], test=[], train_end=train_end, test_start=test_start)
        raise ValueError("Feature build has no global epoch; was it built in global mode?")
    return split_rows_by_date(result.rows, train_end, test_start, epoch=result.global_min_date)


# ── Rolling-window folds ───────────────────────────────────────────────────────


def _require_time_ordered(rows: list[FeatureRow]) -> None:
    for prev, curr in zip(rows, rows[1:]):
        if curr.trend <= prev.trend:
            raise ValueError(
                "Rolling folds need one time-ordered series; "
                f"trend {curr.trend} ('{curr.category}') follows {prev.trend} ('{prev.category}')."
            )


def create_rolling_folds(
    rows: list[FeatureRow],
    fold_count: int = DEFAULT_FOLD_COUNT,
    weeks_per_fold: int = WEEKS_PER_FOLD,
    min_test_window: int = MIN_TEST_WINDOW,
    test_window_divisor: int = TEST_WINDOW_DIVISOR,
    min_train_weeks: int = MIN_TRAIN_WEEKS,
) -> RollingFolds:
    """Build rolling-window folds over one time-ordered series.

    Returns:
        ``RollingFolds``.  A series shorter than ``fold_count * weeks_per_fold``
        yields no folds and an ``insufficient_reason``.

    Raises:
        ValueError: On non-positive parameters or rows that are not one
            strictly time-ordered series.
        ChronologyViolationError: If a produced fold is not chronological
            or fold test windows move backward in time.
    """
    for name, value in (
        ("fold_count", fold_count),
        ("weeks_per_fold", weeks_per_fold),
        ("min_test_window", min_test_window),
        ("test_window_divisor", test_window_divisor),
        ("min_train_weeks", min_train_weeks),
    ):
        if value < 1:
            raise ValueError(f"{name} must be >= 1, got {value}")
    _require_time_ordered(rows)

    total = len(rows)
    required = fold_count * weeks_per_fold
    if total < required:
        reason = f"{total} weeks available, {required} required for {fold_count} folds"
        log.warning("No rolling folds: %s", reason)
        return RollingFolds(folds=[], total_weeks=total, insufficient_reason=reason)

    window = max(min_test_window, total // test_window_divisor)
    step = window // 2

    folds: list[Fold] = []
    skipped: list[SkippedFold] = []
    previous_start = -1
    for f in range(fold_count):
        test_end = total - (fold_count - f - 1) * step
        test_start = max(min_train_weeks, test_end - window)

        if test_start < min_train_weeks or test_start >= total:
            skip = SkippedFold(
                fold_index=f,
                test_start_index=test_start,
                test_end_index=test_end,
                reason=f"test start {test_start} outside [{min_train_weeks}, {total})",
            )
            log.warning(
                "Discarding fold %d: %s", f, skip.reason,
                extra={"fold_index": f, "total_weeks": total},
            )
            skipped.append(skip)
            continue

        if test_start < previous_start:
            raise ChronologyViolationError(
                f"Fold {f} test start {test_start} precedes the previous fold's {previous_start}."
            )
        previous_start = test_start

        train = rows[:test_start]
        test = rows[test_start:test_start + window]
        assert_chronological(train, test)
        folds.append(Fold(
            fold_index=f,
            train=train,
            test=test,
            test_start_index=test_start,
            test_end_index=test_start + len(test),
        ))

    log.info(
        "Built %d of %d rolling folds over %d weeks (window %d)",
        len(folds), fold_count, total, window,
    )
    return RollingFolds(folds=folds, skipped=skipped, total_weeks=total, window_size=window)


# ── Fraction split ─────────────────────────────────────────────────────────────


def split_by_fraction(rows: list[FeatureRow], test_fraction: float = 0.2) -> Split:
    """Keep the last ``test_fraction`` of time-ordered rows for testing.

    Index-based, so only meaningful for a single series.
    """
    if not 0.0 < test_fraction < 1.0:
        raise ValueError(f"test_fraction must be in (0, 1), got {test_fraction}")
    split_index = int(len(rows) * (1.0 - test_fraction))
    train, test = rows[:split_index], rows[split_index:]
    assert_chronological(train, test)
    return Split(train=train, test=test)
