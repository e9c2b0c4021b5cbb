"""
Tests for the five-check leakage audit.

What we test
------------
1. A split built by the library from a realistic series passes every check.
2. Each check fails on a targeted violation (and only that check).
3. The audit reports problems without raising.
"""

from __future__ import annotations

from datetime import date, timedelta

from sales_forecaster.backtest.splits import split_global_by_date
from sales_forecaster.diagnostics.leakage import (
    check_correlations,
    check_lag_monotonicity,
    check_overlap,
    check_range_containment,
    check_temporal_order,
    detect_leakage,
)
from sales_forecaster.features.builder import build_global_features

START = date(2017, 1, 2)


def _noisy(n: int, seed: int) -> list[int]:
    # Deterministic, weakly autocorrelated sales.
    values, x = [], seed
    for i in range(n):
        x = (x * 1103515245 + 12345) % 2**31
        values.append(20 + (x % 13) + (i % 5))
    return values


def _clean_split(make_series):
    series = {
        "a": make_series("a", _noisy(40, 1)),
        "b": make_series("b", _noisy(40, 2)),
    }
    result = build_global_features(series)
    records = [r for s in series.values() for r in s]
    return split_global_by_date(result, START + timedelta(weeks=29), START + timedelta(weeks=30)), records


def test_library_split_passes_temporal_and_overlap(make_series) -> None:
    split, records = _clean_split(make_series)
    report = detect_leakage(split.train, split.test, weekly_records=records)
    assert report.temporal_order.passed
    assert report.overlap.passed
    assert report.temporal_order.last_train_week == START + timedelta(weeks=29)
    assert report.temporal_order.first_test_week == START + timedelta(weeks=30)
    assert report.train_samples == len(split.train)


def test_label_times_two_feature_fails_audit(make_row) -> None:
    train = [make_row(i, float(i % 9 + 1), lag_1=float(i % 9 + 1) * 2) for i in range(30)]
    test = [make_row(i, 5.0, lag_1=10.0) for i in range(30, 35)]
    report = detect_leakage(train, test)
    assert "lag_1" in [s.feature for s in report.correlation.suspicious]
    assert not report.passed
    assert report.verdict == "fail"
    assert "correlation" in report.failed_checks


def test_correlation_threshold_is_exclusive(make_row) -> None:
    train = [make_row(i, float(i), lag_1=float(i)) for i in range(10)]
    assert not check_correlations(train, threshold=0.95).passed
    assert check_correlations(train, threshold=1.0).passed


def test_lag_monotonicity() -> None:
    good = {"lag_1": 0.8, "lag_2": -0.6, "lag_3": 0.4, "lag_4": 0.1}
    bad = {"lag_1": 0.2, "lag_2": 0.6, "lag_3": 0.4, "lag_4": 0.1}
    assert check_lag_monotonicity(good).passed
    result = check_lag_monotonicity(bad)
    assert not result.passed
    assert len(result.issues) == 1


def test_temporal_order_fails_on_per_category_trends(make_row) -> None:
    train = [make_row(i, category="a") for i in range(10)]
    test = [make_row(i, category="b") for i in range(5, 8)]
    result = check_temporal_order(train, test)
    assert not result.passed
    assert (result.max_train_trend, result.min_test_trend) == (9, 5)
    assert result.issues


def test_temporal_order_empty_side_passes(make_row) -> None:
    result = check_temporal_order([make_row(0)], [])
    assert result.passed
    assert result.min_test_trend is None


def test_range_containment_with_tolerance(make_row) -> None:
    train = [make_row(i, lag_1=float(v)) for i, v in enumerate([10, 100])]
    inside = [make_row(5, lag_1=104.0)]
    outside = [make_row(5, lag_1=106.0)]
    assert check_range_containment(train, inside, ["lag_1"], tolerance=0.05).passed
    result = check_range_containment(train, outside, ["lag_1"], tolerance=0.05)
    assert not result.passed
    assert result.checks[0].test_max == 106.0


def test_range_containment_empty_side_passes(make_row) -> None:
    assert check_range_containment([make_row(0)], [], ["lag_1"]).passed


def test_overlap_detects_shared_rows(make_row) -> None:
    shared = make_row(3, 7.0, category="toys")
    result = check_overlap([make_row(1, 1.0), shared], [shared, make_row(4, 2.0)])
    assert not result.passed
    assert result.overlapping_records == 1
    assert result.sample_keys == ["toys|3|7"]


def test_empty_split_passes_vacuously() -> None:
    report = detect_leakage([], [])
    assert report.passed
    assert report.failed_checks == []
