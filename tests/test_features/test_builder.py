"""
Tests for feature row construction.

What we test
------------
1. Lag causality — lag_k is the quantity k weeks earlier, 0 before history.
2. Rolling mean — prior four weeks only; past-only fallback before that.
3. Seasonal mean — earlier same-month non-zero weeks only.
4. Label independence — changing a later week never changes earlier rows.
5. Fit vs apply mode — apply mode needs and uses the carried averages.
6. Global mode — one shared trend epoch across categories.
7. Minimum history — short categories are skipped and reported.
"""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from sales_forecaster.features.builder import (
    BuildMode,
    build_category_features,
    build_global_features,
    build_single_category_features,
    historical_average,
)
from sales_forecaster.features.trend import TrendReconstructionError

START = date(2017, 1, 2)


# ── Lags ───────────────────────────────────────────────────────────────────────

class TestLags:
    def test_lag_1_is_previous_week(self, make_series):
        rows = build_category_features(make_series("toys", list(range(1, 11))))
        assert rows[5].lag_1 == 5
        assert rows[5].label == 6

    def test_lag_k_looks_back_k_weeks(self, make_series):
        rows = build_category_features(make_series("toys", list(range(1, 11))))
        r = rows[6]
        assert (r.lag_1, r.lag_2, r.lag_3, r.lag_4) == (6, 5, 4, 3)

    def test_lags_zero_before_history(self, make_series):
        rows = build_category_features(make_series("toys", [7, 8, 9]))
        assert (rows[0].lag_1, rows[0].lag_4) == (0, 0)
        assert (rows[2].lag_1, rows[2].lag_2, rows[2].lag_3) == (8, 7, 0)

    def test_zero_week_after_four_busy_weeks(self, make_series):
        quantities = [0, 0, 0, 0, 10, 10, 10, 10, 0, 0, 0, 0, 10, 10, 10, 10]
        result = build_single_category_features(make_series("toys", quantities))
        r = result.rows[8]
        assert r.label == 0
        assert (r.lag_1, r.lag_2, r.lag_3, r.lag_4) == (10, 10, 10, 10)
        assert r.rolling_avg_4 == 10

    def test_one_row_per_week(self, make_series):
        rows = build_category_features(make_series("toys", [1] * 20))
        assert len(rows) == 20
        assert [r.trend for r in rows] == list(range(20))


# ── Rolling mean ───────────────────────────────────────────────────────────────

class TestRollingAverage:
    def test_fit_mode_uses_past_nonzero_mean_before_four_weeks(self, make_series):
        rows = build_category_features(make_series("toys", [4, 0, 8, 0, 100]))
        assert [r.rolling_avg_4 for r in rows[:4]] == [0.0, 4.0, 4.0, 6.0]

    def test_four_prior_weeks_once_available(self, make_series):
        rows = build_category_features(make_series("toys", [4, 0, 8, 0, 100, 1]))
        assert rows[4].rolling_avg_4 == 3.0
        assert rows[5].rolling_avg_4 == 27.0

    def test_apply_mode_uses_carried_average(self, make_series):
        rows = build_category_features(
            make_series("toys", [4, 0, 8, 0, 100]), mode=BuildMode.APPLY, historical_avg=42.0,
        )
        assert [r.rolling_avg_4 for r in rows[:4]] == [42.0] * 4
        assert rows[4].rolling_avg_4 == 3.0

    def test_apply_mode_without_average_raises(self, make_series):
        with pytest.raises(ValueError, match="historical average"):
            build_category_features(make_series("toys", [1, 2]), mode=BuildMode.APPLY)


# ── Seasonal mean ──────────────────────────────────────────────────────────────

def test_seasonal_average_uses_earlier_same_month_weeks(make_series) -> None:
    # Jan 2, 9, 16, 23, 30 then Feb 6.
    rows = build_category_features(make_series("toys", [2, 4, 0, 6, 9, 50]))
    assert [r.category_seasonal_avg for r in rows] == [0.0, 2.0, 3.0, 3.0, 4.0, 0.0]


def _past_same_month_mean(quantities: list[int], i: int) -> float:
    month = (START + timedelta(weeks=i)).month
    earlier = [
        q for j, q in enumerate(quantities[:i])
        if q > 0 and (START + timedelta(weeks=j)).month == month
    ]
    return sum(earlier) / len(earlier) if earlier else 0.0


def test_seasonal_average_with_twelve_week_spike(make_series) -> None:
    quantities = [50 if i % 12 == 0 else 5 for i in range(60)]
    rows = build_category_features(make_series("toys", quantities))

    for i, row in enumerate(rows):
        assert row.category_seasonal_avg == pytest.approx(_past_same_month_mean(quantities, i))


def test_seasonal_average_recovers_yearly_spike(make_series) -> None:
    # Three years of weeks; every November week sells 50, every other week 5.
    weeks = [START + timedelta(weeks=i) for i in range(156)]
    quantities = [50 if d.month == 11 else 5 for d in weeks]
    rows = build_category_features(make_series("toys", quantities))

    november = [i for i, d in enumerate(weeks) if d.month == 11]
    assert rows[november[0]].category_seasonal_avg == 0.0
    # From the second November week on, only earlier spikes feed the average.
    for i in november[1:]:
        assert rows[i].category_seasonal_avg == pytest.approx(50.0)

    first_of_month = {}
    for i, d in enumerate(weeks):
        first_of_month.setdefault((d.year, d.month), i)
    for i, d in enumerate(weeks):
        if d.month != 11 and i > first_of_month[(2017, d.month)]:
            assert rows[i].category_seasonal_avg == pytest.approx(5.0)


def test_seasonal_average_ignores_later_spikes(make_series) -> None:
    weeks = [START + timedelta(weeks=i) for i in range(156)]
    base = [50 if d.month == 11 else 5 for d in weeks]
    bumped = [500 if d.month == 11 and d.year == 2019 else q for d, q in zip(weeks, base)]

    rows_base = build_category_features(make_series("toys", base))
    rows_bumped = build_category_features(make_series("toys", bumped))

    first_2019_november = next(i for i, d in enumerate(weeks) if d.year == 2019 and d.month == 11)
    for i in range(first_2019_november + 1):
        assert rows_bumped[i].category_seasonal_avg == rows_base[i].category_seasonal_avg
    assert rows_bumped[first_2019_november].category_seasonal_avg == pytest.approx(50.0)


def test_calendar_features(make_series) -> None:
    rows = build_category_features(make_series("toys", [1], start=date(2017, 11, 20)))
    r = rows[0]
    assert (r.month, r.quarter, r.week_of_year) == (11, 4, 47)
    assert r.is_black_friday_week
    assert r.is_holiday_season


# ── Label independence ─────────────────────────────────────────────────────────

def test_changing_a_later_week_leaves_earlier_rows_unchanged(make_series) -> None:
    base = [3, 0, 5, 8, 1, 0, 7, 2, 4, 6, 9, 3]
    changed = base[:-1] + [1000]
    rows_a = build_category_features(make_series("toys", base))
    rows_b = build_category_features(make_series("toys", changed))
    assert rows_a[:-1] == rows_b[:-1]
    assert rows_a[-1].label != rows_b[-1].label
    assert rows_a[-1].lag_1 == rows_b[-1].lag_1


def test_non_contiguous_series_raises(make_week) -> None:
    series = [make_week("toys", START, 1), make_week("toys", START + timedelta(weeks=2), 1)]
    with pytest.raises(ValueError, match="contiguous"):
        build_category_features(series)


def test_empty_series_returns_empty() -> None:
    assert build_category_features([]) == []


def test_historical_average_ignores_zero_weeks(make_series) -> None:
    assert historical_average(make_series("toys", [0, 4, 0, 8])) == 6.0
    assert historical_average(make_series("toys", [0, 0])) == 0.0


# ── Trend epoch ────────────────────────────────────────────────────────────────

def test_week_before_epoch_raises(make_series) -> None:
    with pytest.raises(TrendReconstructionError):
        build_category_features(make_series("toys", [1, 2]), epoch=START + timedelta(weeks=1))


def test_non_monday_epoch_raises(make_series) -> None:
    with pytest.raises(ValueError, match="Monday"):
        build_category_features(make_series("toys", [1, 2]), epoch=date(2017, 1, 3))


# ── Single-category build ──────────────────────────────────────────────────────

class TestSingleCategoryBuild:
    def test_short_series_skipped(self, make_series):
        result = build_single_category_features(make_series("toys", [1] * 11), min_weeks=12)
        assert result.rows == []
        assert [s.category for s in result.skipped] == ["toys"]
        assert result.skipped[0].weeks == 11

    def test_min_weeks_boundary_builds(self, make_series):
        result = build_single_category_features(make_series("toys", [1] * 12), min_weeks=12)
        assert len(result.rows) == 12
        assert result.skipped == []

    def test_fit_mode_reports_historical_average(self, make_series):
        result = build_single_category_features(make_series("toys", [0, 2, 4] * 4))
        assert result.historical_averages == {"toys": 3.0}
        assert result.global_min_date is None

    def test_invalid_min_weeks(self, make_series):
        with pytest.raises(ValueError):
            build_single_category_features(make_series("toys", [1]), min_weeks=0)


# ── Global build ───────────────────────────────────────────────────────────────

class TestGlobalBuild:
    def _series(self, make_series):
        return {
            "b": make_series("b", [5] * 12, start=START + timedelta(weeks=3)),
            "a": make_series("a", list(range(1, 15))),
        }

    def test_shared_epoch_is_earliest_week(self, make_series):
        result = build_global_features(self._series(make_series))
        assert result.global_min_date == START
        b_rows = [r for r in result.rows if r.category == "b"]
        assert b_rows[0].trend == 3

    def test_trend_maps_back_to_week_for_every_row(self, make_series):
        series = self._series(make_series)
        result = build_global_features(series)
        weeks = {(r.category, r.week_start) for s in series.values() for r in s}
        rebuilt = {
            (row.category, result.global_min_date + timedelta(weeks=row.trend))
            for row in result.rows
        }
        assert rebuilt == weeks

    def test_rows_grouped_by_sorted_category(self, make_series):
        result = build_global_features(self._series(make_series))
        assert result.categories == ["a", "b"]
        assert result.rows[0].category == "a"
        assert result.rows[-1].category == "b"

    def test_skipped_category_still_sets_epoch(self, make_series):
        series = {
            "short": make_series("short", [1, 1, 1]),
            "long": make_series("long", [2] * 12, start=START + timedelta(weeks=2)),
        }
        result = build_global_features(series, min_weeks=12)
        assert result.global_min_date == START
        assert [s.category for s in result.skipped] == ["short"]
        assert result.rows[0].trend == 2

    def test_threaded_build_matches_serial(self, make_series):
        series = self._series(make_series)
        serial = build_global_features(series, max_workers=1)
        threaded = build_global_features(series, max_workers=4)
        assert serial.rows == threaded.rows

    def test_apply_mode_reuses_fit_state(self, make_series):
        series = self._series(make_series)
        fit = build_global_features(series)
        applied = build_global_features(
            series,
            mode=BuildMode.APPLY,
            historical_averages=fit.historical_averages,
            epoch=fit.global_min_date,
        )
        assert applied.historical_averages == fit.historical_averages
        assert [r.trend for r in applied.rows] == [r.trend for r in fit.rows]
        assert applied.rows[0].rolling_avg_4 == fit.historical_averages["a"]

    def test_apply_mode_requires_epoch(self, make_series):
        with pytest.raises(ValueError, match="epoch"):
            build_global_features(
                self._series(make_series), mode=BuildMode.APPLY, historical_averages={"a": 1, "b": 1},
            )

    def test_apply_mode_requires_every_average(self, make_series):
        with pytest.raises(ValueError, match="'b'"):
            build_global_features(
                self._series(make_series), mode=BuildMode.APPLY,
                historical_averages={"a": 1.0}, epoch=START,
            )

    def test_empty_input(self):
        result = build_global_features({})
        assert result.rows == []
        assert result.global_min_date is None

    def test_invalid_workers(self, make_series):
        with pytest.raises(ValueError, match="max_workers"):
            build_global_features(self._series(make_series), max_workers=0)
