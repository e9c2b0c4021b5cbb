"""
Leakage audit over a built train/test split.

Five independent checks, each re-derived from the rows themselves rather than
trusted from the builder or splitter:

1. Correlation scan
   Pearson r of every numeric feature with the label, on the training set
   only.  |r| above the threshold (default 0.95) means the feature very likely
   encodes the label itself.

2. Lag monotonicity
   Genuine autocorrelation decays with distance, so
   |r(lag_1)| >= |r(lag_2)| >= |r(lag_3)| >= |r(lag_4)| is expected.  A
   violation is reported, never corrected.

3. Temporal order
   max(train.trend) < min(test.trend).  On violation the distinct category
   counts of each side are reported; the usual root cause is per-category
   trend indices mixed into a global split.

4. Range containment
   For selected features, test min/max must lie inside the training min/max
   widened by a relative tolerance (default 5%).  Test ranges well outside
   training ranges point to statistics fitted on test-visible data.

5. Row overlap
   Rows are keyed by (category, trend, label); any key present on both sides
   is a literal duplicate.

The audit is diagnostic, not a gate: failures are logged at WARNING and
recorded in the report, never raised.  Inputs are only read.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from typing import Optional

from sales_forecaster.diagnostics.correlation import feature_label_correlations
from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.features.trend import week_start_for_trend
from sales_forecaster.models.leakage import (
    CorrelationScanResult,
    FeatureRangeCheck,
    LagMonotonicityResult,
    LeakageReport,
    OverlapResult,
    RangeContainmentResult,
    SuspiciousFeature,
    TemporalOrderResult,
)
from sales_forecaster.models.weekly import WeeklyRecord
from sales_forecaster.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

DEFAULT_CORRELATION_THRESHOLD = 0.95
DEFAULT_RANGE_TOLERANCE = 0.05
DEFAULT_RANGE_FEATURES = ("lag_1", "rolling_avg_4", "category_seasonal_avg")
LAG_FEATURES = ("lag_1", "lag_2", "lag_3", "lag_4")
_SAMPLE_KEYS = 10


def detect_leakage(
    train: list[FeatureRow],
    test: list[FeatureRow],
    weekly_records: Optional[Iterable[WeeklyRecord]] = None,
    correlation_threshold: float = DEFAULT_CORRELATION_THRESHOLD,
    range_tolerance: float = DEFAULT_RANGE_TOLERANCE,
    range_features: Iterable[str] = DEFAULT_RANGE_FEATURES,
) -> LeakageReport:
    """Run all five leakage checks and aggregate them into a report.

    Args:
        train:                 Training rows.
        test:                  Test rows.
        weekly_records:        Optional weekly series the rows were built
                               from.  Their earliest week is taken as the
                               trend epoch to report calendar boundaries.
        correlation_threshold: |r| above which a feature is suspicious.
        range_tolerance:       Relative widening of training ranges.
        range_features:        Features checked for range containment.

    Returns:
        A frozen ``LeakageReport``; ``passed`` only if every check passed.
    """
    epoch: Optional[date] = None
    if weekly_records is not None:
        weeks = [r.week_start for r in weekly_records]
        epoch = min(weeks) if weeks else None

    correlation = check_correlations(train, correlation_threshold)
    lag_monotonicity = check_lag_monotonicity(correlation.correlations)
    temporal_order = check_temporal_order(train, test, epoch)
    range_containment = check_range_containment(train, test, list(range_features), range_tolerance)
    overlap = check_overlap(train, test)

    report = LeakageReport(
        train_samples=len(train),
        test_samples=len(test),
        analysed_at=utcnow(),
        correlation=correlation,
        lag_monotonicity=lag_monotonicity,
        temporal_order=temporal_order,
        range_containment=range_containment,
        overlap=overlap,
        passed=all((
            correlation.passed,
            lag_monotonicity.passed,
            temporal_order.passed,
            range_containment.passed,
            overlap.passed,
        )),
    )
    if report.passed:
        logger.info("Leakage audit passed (%d train, %d test rows)", len(train), len(test))
    else:
        logger.warning("Leakage audit failed checks: %s", ", ".join(report.failed_checks))
    return report


# ── Check 1: correlation scan ──────────────────────────────────────────────────


def check_correlations(
    train: list[FeatureRow],
    threshold: float = DEFAULT_CORRELATION_THRESHOLD,
) -> CorrelationScanResult:
    correlations = feature_label_correlations(train)
    suspicious = [
        SuspiciousFeature(feature=name, correlation=r)
        for name, r in correlations.items()
        if abs(r) > threshold
    ]
    for s in suspicious:
        logger.warning(
            "Feature '%s' correlates with the label at r=%.4f (threshold %.2f)",
            s.feature, s.correlation, threshold,
        )
    return CorrelationScanResult(
        correlations=correlations,
        suspicious=suspicious,
        threshold=threshold,
        passed=not suspicious,
    )


# ── Check 2: lag monotonicity ──────────────────────────────────────────────────


def check_lag_monotonicity(correlations: dict[str, float]) -> LagMonotonicityResult:
    lag_correlations = {lag: correlations.get(lag, 0.0) for lag in LAG_FEATURES}
    issues: list[str] = []
    for near, far in zip(LAG_FEATURES, LAG_FEATURES[1:]):
        r_near, r_far = abs(lag_correlations[near]), abs(lag_correlations[far])
        if r_near < r_far:
            issues.append(f"|r({near})|={r_near:.4f} < |r({far})|={r_far:.4f}")
    for issue in issues:
        logger.warning("Lag correlation does not decay: %s", issue)
    return LagMonotonicityResult(
        lag_correlations=lag_correlations,
        passed=not issues,
        issues=issues,
    )


# ── Check 3: temporal order ────────────────────────────────────────────────────


def check_temporal_order(
    train: list[FeatureRow],
    test: list[FeatureRow],
    epoch: Optional[date] = None,
) -> TemporalOrderResult:
    max_train = max((r.trend for r in train), default=None)
    min_test = min((r.trend for r in test), default=None)
    train_categories = len({r.category for r in train})
    test_categories = len({r.category for r in test})

    passed = max_train is None or min_test is None or max_train < min_test
    issues: list[str] = []
    if not passed:
        issues.append(
            f"max train trend {max_train} >= min test trend {min_test}; "
            f"{train_categories} train categories vs {test_categories} test categories "
            "(per-category trend indices?)"
        )
        logger.warning("Temporal order violated: %s", issues[0])

    return TemporalOrderResult(
        max_train_trend=max_train,
        min_test_trend=min_test,
        train_categories=train_categories,
        test_categories=test_categories,
        last_train_week=(
            week_start_for_trend(max_train, epoch)
            if epoch is not None and max_train is not None else None
        ),
        first_test_week=(
            week_start_for_trend(min_test, epoch)
            if epoch is not None and min_test is not None else None
        ),
        passed=passed,
        issues=issues,
    )


# ── Check 4: range containment ─────────────────────────────────────────────────


def check_range_containment(
    train: list[FeatureRow],
    test: list[FeatureRow],
    features: list[str],
    tolerance: float = DEFAULT_RANGE_TOLERANCE,
) -> RangeContainmentResult:
    checks: list[FeatureRangeCheck] = []
    for name in features:
        train_values = [float(getattr(r, name)) for r in train]
        test_values = [float(getattr(r, name)) for r in test]
        train_min = min(train_values, default=None)
        train_max = max(train_values, default=None)
        test_min = min(test_values, default=None)
        test_max = max(test_values, default=None)

        if train_min is None or test_min is None:
            within = True
        else:
            lower = train_min - tolerance * abs(train_min)
            upper = train_max + tolerance * abs(train_max)
            within = test_min >= lower and test_max <= upper
            if not within:
                logger.warning(
                    "Feature '%s' test range [%.2f, %.2f] exceeds train range [%.2f, %.2f] (±%.0f%%)",
                    name, test_min, test_max, train_min, train_max, tolerance * 100,
                )
        checks.append(FeatureRangeCheck(
            feature=name,
            train_min=train_min,
            train_max=train_max,
            test_min=test_min,
            test_max=test_max,
            is_within_range=within,
        ))
    return RangeContainmentResult(
        checks=checks,
        tolerance=tolerance,
        passed=all(c.is_within_range for c in checks),
    )


# ── Check 5: row overlap ───────────────────────────────────────────────────────


def _overlap_key(row: FeatureRow) -> tuple[str, int, float]:
    return (row.category, row.trend, row.label)


def check_overlap(train: list[FeatureRow], test: list[FeatureRow]) -> OverlapResult:
    shared = {_overlap_key(r) for r in train} & {_overlap_key(r) for r in test}
    if shared:
        logger.warning("%d rows appear in both train and test", len(shared))
    return OverlapResult(
        overlapping_records=len(shared),
        sample_keys=[f"{c}|{t}|{label:g}" for c, t, label in sorted(shared)[:_SAMPLE_KEYS]],
        passed=not shared,
    )
