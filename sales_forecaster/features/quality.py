"""
Data quality checks for assembled feature rows.

Purpose
-------
Before feature rows are written to Parquet, ``build_quality_report()``
inspects them and produces a ``FeatureQualityReport`` describing:

- Row, category and trend-range totals.
- Duplicate (category, trend) keys.
- Category series whose trend values skip a week.
- Lag causality warnings: within a category, ``lag_1`` of a row must equal the
  ``label`` of the row one week earlier.  A mismatch means the series was not
  contiguous or a feature was shifted the wrong way.
- Fraction of zero-quantity labels (synthesized gap weeks included).
- Categories skipped by the builder for lack of history.

``is_clean`` is False only for hard errors (duplicates, causality warnings).
Trend gaps are reported but are expected when a category stops selling for
longer than its own series covers.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from sales_forecaster.features.builder import FeatureRow, SkippedCategory

_MAX_WARNINGS = 20


@dataclass
class FeatureQualityReport:
    """Summary of data quality checks on feature rows.

    Attributes:
        total_rows:            Total rows.
        total_categories:      Distinct categories.
        trend_min:             Smallest trend, or None if empty.
        trend_max:             Largest trend, or None if empty.
        skipped_categories:    Names of categories dropped by the builder.
        duplicate_key_count:   Rows whose (category, trend) was already seen.
        trend_gap_series_count: Categories whose trend values are not consecutive.
        leakage_warnings:      Human-readable lag causality warnings (capped).
        zero_label_fraction:   Fraction of rows with label == 0.
        is_clean:              False if duplicates or leakage warnings exist.
    """

    total_rows: int
    total_categories: int
    trend_min: int | None
    trend_max: int | None
    skipped_categories: list[str]
    duplicate_key_count: int
    trend_gap_series_count: int
    leakage_warnings: list[str]
    zero_label_fraction: float
    is_clean: bool


def build_quality_report(
    rows: list[FeatureRow],
    skipped: list[SkippedCategory] | None = None,
) -> FeatureQualityReport:
    """Build a quality report for a list of feature rows."""
    skipped_names = sorted(s.category for s in (skipped or []))
    if not rows:
        return FeatureQualityReport(
            total_rows=0,
            total_categories=0,
            trend_min=None,
            trend_max=None,
            skipped_categories=skipped_names,
            duplicate_key_count=0,
            trend_gap_series_count=0,
            leakage_warnings=[],
            zero_label_fraction=0.0,
            is_clean=True,
        )

    # ── Duplicate key detection ────────────────────────────────────────────────
    seen_keys: set[tuple[str, int]] = set()
    duplicate_key_count = 0
    for r in rows:
        key = (r.category, r.trend)
        if key in seen_keys:
            duplicate_key_count += 1
        seen_keys.add(key)

    # ── Series continuity and lag causality ────────────────────────────────────
    by_category: dict[str, list[FeatureRow]] = defaultdict(list)
    for r in rows:
        by_category[r.category].append(r)

    trend_gap_series_count = 0
    leakage_warnings: list[str] = []
    for category, series in by_category.items():
        ordered = sorted(series, key=lambda r: r.trend)
        has_gap = False
        for prev, curr in zip(ordered, ordered[1:]):
            if curr.trend - prev.trend != 1:
                has_gap = True
                continue
            if curr.lag_1 != prev.label and len(leakage_warnings) < _MAX_WARNINGS:
                leakage_warnings.append(
                    f"lag_1={curr.lag_1:g} at trend {curr.trend} of '{category}' "
                    f"does not match the previous week's label {prev.label:g}."
                )
        if has_gap:
            trend_gap_series_count += 1

    trends = [r.trend for r in rows]
    zero_labels = sum(1 for r in rows if r.label == 0)

    return FeatureQualityReport(
        total_rows=len(rows),
        total_categories=len(by_category),
        trend_min=min(trends),
        trend_max=max(trends),
        skipped_categories=skipped_names,
        duplicate_key_count=duplicate_key_count,
        trend_gap_series_count=trend_gap_series_count,
        leakage_warnings=leakage_warnings,
        zero_label_fraction=zero_labels / len(rows),
        is_clean=duplicate_key_count == 0 and not leakage_warnings,
    )
