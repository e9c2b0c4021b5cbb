"""
Seasonality and trend analysis over weekly sales.

Describes a weekly series (one category or the whole catalog) without
building features:

- Monthly patterns: mean and total quantity per calendar month, plus a
  seasonal index (month mean / mean of the monthly means).
- Quarterly patterns: mean and total quantity per calendar quarter.
- Sales peaks: weeks above mean + 2σ (population σ), labelled with the
  Brazilian retail event they most likely coincide with.
- Long-term trend: least-squares slope of quantity over week position.

Purely descriptive; nothing here feeds a model.
"""

from __future__ import annotations

import calendar
import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

from sales_forecaster.models.weekly import WeeklyRecord
from sales_forecaster.utils.time_utils import quarter_of

logger = logging.getLogger(__name__)

PEAK_SIGMA = 2.0
STABLE_SLOPE = 0.1


@dataclass(frozen=True)
class MonthlyPattern:
    month: int
    month_name: str
    average_sales: float
    total_sales: int
    sample_count: int
    seasonal_index: float


@dataclass(frozen=True)
class QuarterlyPattern:
    quarter: int
    average_sales: float
    total_sales: int

    @property
    def quarter_name(self) -> str:
        return f"Q{self.quarter}"


@dataclass(frozen=True)
class SalesPeak:
    week_start: date
    sales: int
    percent_above_mean: float
    possible_reason: str


@dataclass(frozen=True)
class TrendAnalysis:
    """Least-squares slope of weekly quantity; direction uses a ±0.1 dead band."""

    slope: float
    direction: str

    @property
    def monthly_growth(self) -> float:
        return self.slope * 4


@dataclass
class SeasonalityReport:
    monthly: list[MonthlyPattern] = field(default_factory=list)
    quarterly: list[QuarterlyPattern] = field(default_factory=list)
    peaks: list[SalesPeak] = field(default_factory=list)
    trend: TrendAnalysis = field(default_factory=lambda: TrendAnalysis(0.0, "insufficient data"))


def combine_categories(records: Iterable[WeeklyRecord]) -> list[tuple[date, int]]:
    """Total quantity per week across categories, oldest first."""
    totals: dict[date, int] = defaultdict(int)
    for r in records:
        totals[r.week_start] += r.quantity
    return sorted(totals.items())


def analyze_seasonality(series: list[tuple[date, int]]) -> SeasonalityReport:
    """Analyse a ``(week_start, quantity)`` series.

    Returns an empty report for an empty series.
    """
    if not series:
        return SeasonalityReport()
    ordered = sorted(series)
    report = SeasonalityReport(
        monthly=monthly_patterns(ordered),
        quarterly=quarterly_patterns(ordered),
        peaks=detect_peaks(ordered),
        trend=long_term_trend(ordered),
    )
    logger.info(
        "Seasonality: %d weeks, %d peaks, trend %s (slope %.2f)",
        len(ordered), len(report.peaks), report.trend.direction, report.trend.slope,
    )
    return report


def monthly_patterns(series: list[tuple[date, int]]) -> list[MonthlyPattern]:
    by_month: dict[int, list[int]] = defaultdict(list)
    for week, quantity in series:
        by_month[week.month].append(quantity)
    if not by_month:
        return []

    averages = {m: sum(q) / len(q) for m, q in by_month.items()}
    grand_mean = sum(averages.values()) / len(averages)
    return [
        MonthlyPattern(
            month=m,
            month_name=calendar.month_name[m],
            average_sales=averages[m],
            total_sales=sum(by_month[m]),
            sample_count=len(by_month[m]),
            seasonal_index=averages[m] / grand_mean if grand_mean > 0 else 1.0,
        )
        for m in sorted(by_month)
    ]


def quarterly_patterns(series: list[tuple[date, int]]) -> list[QuarterlyPattern]:
    by_quarter: dict[int, list[int]] = defaultdict(list)
    for week, quantity in series:
        by_quarter[quarter_of(week)].append(quantity)
    return [
        QuarterlyPattern(
            quarter=q,
            average_sales=sum(values) / len(values),
            total_sales=sum(values),
        )
        for q, values in sorted(by_quarter.items())
    ]


def detect_peaks(series: list[tuple[date, int]], sigma: float = PEAK_SIGMA) -> list[SalesPeak]:
    """Weeks whose quantity exceeds mean + ``sigma`` standard deviations."""
    if not series:
        return []
    values = [q for _, q in series]
    mean = sum(values) / len(values)
    std = math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))
    threshold = mean + sigma * std
    return [
        SalesPeak(
            week_start=week,
            sales=quantity,
            percent_above_mean=(quantity - mean) / mean * 100 if mean > 0 else 0.0,
            possible_reason=peak_reason(week),
        )
        for week, quantity in series
        if quantity > threshold
    ]


def peak_reason(d: date) -> str:
    """Most likely retail event for a peak week."""
    if d.month == 11 and 15 <= d.day <= 30:
        return "Black Friday / Cyber Week"
    if d.month == 12 and d.day <= 25:
        return "Christmas (Natal)"
    if d.month == 5 and d.day <= 14:
        return "Mother's Day"
    if d.month == 8 and d.day <= 14:
        return "Father's Day"
    if d.month == 10 and 5 <= d.day <= 15:
        return "Children's Day"
    if d.month in (2, 3) and d.day <= 15:
        return "Carnaval (possible)"
    if d.month == 6 and 5 <= d.day <= 15:
        return "Valentine's Day (Dia dos Namorados)"
    if d.month == 2 and 15 <= d.day <= 28:
        return "Back to school"
    return "unknown"


def long_term_trend(series: list[tuple[date, int]]) -> TrendAnalysis:
    n = len(series)
    if n < 2:
        return TrendAnalysis(0.0, "insufficient data")

    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for i, (_, quantity) in enumerate(series):
        sum_x += i
        sum_y += quantity
        sum_xy += i * quantity
        sum_x2 += i * i
    denominator = n * sum_x2 - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator else 0.0

    if slope > STABLE_SLOPE:
        direction = "rising"
    elif slope < -STABLE_SLOPE:
        direction = "falling"
    else:
        direction = "stable"
    return TrendAnalysis(slope, direction)
