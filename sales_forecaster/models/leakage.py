"""
Leakage audit result models.

A ``LeakageReport`` is a read-only snapshot of the five audit checks run by
``diagnostics.leakage.detect_leakage()`` over one train/test split.  Every
check result is a frozen model carrying the metric values it was decided on,
so a reader can explain a failure without re-running the audit.

``LeakageReport.model_dump(mode="json")`` is the structured persistence form;
``reporting.formatters.format_leakage_report()`` is the human-readable form.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class SuspiciousFeature(BaseModel):
    """A feature whose |r| with the label exceeds the audit threshold."""

    model_config = ConfigDict(frozen=True)

    feature: str
    correlation: float


class CorrelationScanResult(BaseModel):
    """Check 1 — Pearson correlation of every numeric feature with the label.

    Computed on the training set only.

    Attributes:
        correlations: Feature name → Pearson r (0.0 for constant columns).
        suspicious: Features with |r| above ``threshold``.
        threshold: Absolute correlation above which a feature is flagged.
        passed: True when ``suspicious`` is empty.
    """

    model_config = ConfigDict(frozen=True)

    correlations: dict[str, float]
    suspicious: list[SuspiciousFeature]
    threshold: float
    passed: bool


class LagMonotonicityResult(BaseModel):
    """Check 2 — |r(lag_1)| >= |r(lag_2)| >= |r(lag_3)| >= |r(lag_4)|."""

    model_config = ConfigDict(frozen=True)

    lag_correlations: dict[str, float]
    passed: bool
    issues: list[str] = []


class TemporalOrderResult(BaseModel):
    """Check 3 — every training row precedes every test row.

    ``max_train_trend`` / ``min_test_trend`` are ``None`` when the
    corresponding side is empty; an empty side passes vacuously.

    ``last_train_week`` / ``first_test_week`` are reconstructed calendar dates,
    filled only when the weekly series was supplied to the audit.
    """

    model_config = ConfigDict(frozen=True)

    max_train_trend: Optional[int]
    min_test_trend: Optional[int]
    train_categories: int
    test_categories: int
    last_train_week: Optional[date] = None
    first_test_week: Optional[date] = None
    passed: bool
    issues: list[str] = []


class FeatureRangeCheck(BaseModel):
    """Train vs test min/max for one feature."""

    model_config = ConfigDict(frozen=True)

    feature: str
    train_min: Optional[float]
    train_max: Optional[float]
    test_min: Optional[float]
    test_max: Optional[float]
    is_within_range: bool


class RangeContainmentResult(BaseModel):
    """Check 4 — test ranges fall inside train ranges (with tolerance)."""

    model_config = ConfigDict(frozen=True)

    checks: list[FeatureRangeCheck]
    tolerance: float
    passed: bool


class OverlapResult(BaseModel):
    """Check 5 — literal duplicates between train and test.

    Rows are compared on the composite key ``(category, trend, label)``.
    ``sample_keys`` lists up to ten of the intersecting keys.
    """

    model_config = ConfigDict(frozen=True)

    overlapping_records: int
    sample_keys: list[str] = []
    passed: bool


class LeakageReport(BaseModel):
    """Aggregated leakage audit over one train/test split.

    ``passed`` is True only if all five checks pass.
    """

    model_config = ConfigDict(frozen=True)

    train_samples: int
    test_samples: int
    analysed_at: datetime
    correlation: CorrelationScanResult
    lag_monotonicity: LagMonotonicityResult
    temporal_order: TemporalOrderResult
    range_containment: RangeContainmentResult
    overlap: OverlapResult
    passed: bool

    @property
    def verdict(self) -> str:
        return "pass" if self.passed else "fail"

    @property
    def failed_checks(self) -> list[str]:
        """Names of the checks that did not pass, in audit order."""
        checks = {
            "correlation": self.correlation.passed,
            "lag_monotonicity": self.lag_monotonicity.passed,
            "temporal_order": self.temporal_order.passed,
            "range_containment": self.range_containment.passed,
            "overlap": self.overlap.passed,
        }
        return [name for name, ok in checks.items() if not ok]
