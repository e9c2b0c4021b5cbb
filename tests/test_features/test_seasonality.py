"""Tests for seasonality analysis."""

from __future__ import annotations

from datetime import date, timedelta

from sales_forecaster.features.seasonality import (
    analyze_seasonality,
    combine_categories,
    detect_peaks,
    long_term_trend,
    monthly_patterns,
    peak_reason,
    quarterly_patterns,
)

START = date(2017, 1, 2)


def _weekly(quantities: list[int], start: date = START) -> list[tuple[date, int]]:
    return [(start + timedelta(weeks=i), q) for i, q in enumerate(quantities)]


def test_combine_categories_sums_per_week(make_series) -> None:
    records = make_series("a", [1, 2, 3]) + make_series("b", [10, 20])
    assert combine_categories(records) == _weekly([11, 22, 3])


def test_monthly_patterns_and_seasonal_index() -> None:
    # Jan: 5 weeks of 10, Feb: 4 weeks of 30.
    patterns = monthly_patterns(_weekly([10] * 5 + [30] * 4))
    jan, feb = patterns
    assert (jan.month_name, jan.average_sales, jan.sample_count) == ("January", 10.0, 5)
    assert feb.total_sales == 120
    assert jan.seasonal_index == 0.5
    assert feb.seasonal_index == 1.5


def test_quarterly_patterns() -> None:
    quarters = quarterly_patterns(_weekly([4] * 14))
    assert [q.quarter for q in quarters] == [1, 2]
    assert quarters[0].quarter_name == "Q1"


def test_detect_peaks_above_two_sigma() -> None:
    series = _weekly([10] * 20 + [100])
    peaks = detect_peaks(series)
    assert [p.sales for p in peaks] == [100]
    assert peaks[0].percent_above_mean > 0


def test_flat_series_has_no_peaks() -> None:
    assert detect_peaks(_weekly([5] * 10)) == []


def test_peak_reasons() -> None:
    assert peak_reason(date(2017, 11, 20)) == "Black Friday / Cyber Week"
    assert peak_reason(date(2017, 12, 11)) == "Christmas (Natal)"
    assert peak_reason(date(2017, 7, 17)) == "unknown"


def test_long_term_trend_directions() -> None:
    assert long_term_trend(_weekly([1, 2, 3, 4])).direction == "rising"
    assert long_term_trend(_weekly([4, 3, 2, 1])).direction == "falling"
    assert long_term_trend(_weekly([3, 3, 3])).direction == "stable"
    assert long_term_trend(_weekly([3])).direction == "insufficient data"


def test_analyze_seasonality_empty() -> None:
    report = analyze_seasonality([])
    assert report.monthly == []
    assert report.trend.direction == "insufficient data"


def test_analyze_seasonality_monthly_totals_match_input() -> None:
    series = _weekly([3, 0, 5, 8, 1, 0, 7, 2, 4, 6, 9, 3])
    report = analyze_seasonality(series)
    assert sum(m.total_sales for m in report.monthly) == sum(q for _, q in series)
    assert sum(m.sample_count for m in report.monthly) == len(series)
