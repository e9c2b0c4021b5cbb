"""
ASCII terminal formatters for CLI reporting commands.

All formatters accept result objects and return plain multi-line strings
suitable for ``typer.echo()`` or for saving as ``.txt`` files.

No third-party dependencies (no ``rich``, no ``colorama``).

Verdict tags
------------
Audit and comparison outputs tag each line so a reader can scan for problems::

  [PASS] Temporal order
  [FAIL] Correlation scan   <- investigate before trusting the model
"""

from __future__ import annotations

from sales_forecaster.backtest.metrics import (
    BaselineComparison,
    CrossValidationMetrics,
    ModelMetrics,
)
from sales_forecaster.features.builder import SkippedCategory
from sales_forecaster.features.seasonality import SeasonalityReport
from sales_forecaster.ml.importance import ImportanceOutcome
from sales_forecaster.models.leakage import LeakageReport


def _tag(passed: bool) -> str:
    return "[PASS]" if passed else "[FAIL]"


def _num(value: float | None, spec: str = ".2f", suffix: str = "") -> str:
    return "n/a" if value is None else f"{value:{spec}}{suffix}"


# ── Leakage report ─────────────────────────────────────────────────────────────


def format_leakage_report(report: LeakageReport) -> str:
    """Render every audit check with its metric values and the overall verdict."""
    lines: list[str] = []
    lines.append("")
    lines.append("=== Data Leakage Report ===")
    lines.append(f"  Analysed at:   {report.analysed_at.isoformat()}")
    lines.append(f"  Train samples: {report.train_samples}")
    lines.append(f"  Test samples:  {report.test_samples}")

    corr = report.correlation
    lines.append("")
    lines.append(f"  {_tag(corr.passed)} 1. Correlation scan (|r| > {corr.threshold:.2f} is suspicious)")
    for name, r in sorted(corr.correlations.items(), key=lambda kv: -abs(kv[1])):
        flag = "  <- suspicious" if abs(r) > corr.threshold else ""
        lines.append(f"      {name:<24} r = {r:+.4f}{flag}")

    lag = report.lag_monotonicity
    lines.append("")
    lines.append(f"  {_tag(lag.passed)} 2. Lag monotonicity (|r| should decay with lag)")
    for name, r in lag.lag_correlations.items():
        lines.append(f"      {name:<24} |r| = {abs(r):.4f}")
    for issue in lag.issues:
        lines.append(f"      ! {issue}")

    temporal = report.temporal_order
    lines.append("")
    lines.append(f"  {_tag(temporal.passed)} 3. Temporal order")
    lines.append(f"      max train trend: {_num(temporal.max_train_trend, 'd')}")
    lines.append(f"      min test trend:  {_num(temporal.min_test_trend, 'd')}")
    if temporal.last_train_week or temporal.first_test_week:
        lines.append(f"      last train week: {temporal.last_train_week or 'n/a'}")
        lines.append(f"      first test week: {temporal.first_test_week or 'n/a'}")
    lines.append(
        f"      categories:      {temporal.train_categories} train / {temporal.test_categories} test"
    )
    for issue in temporal.issues:
        lines.append(f"      ! {issue}")

    ranges = report.range_containment
    lines.append("")
    lines.append(f"  {_tag(ranges.passed)} 4. Range containment (tolerance {ranges.tolerance:.0%})")
    for c in ranges.checks:
        lines.append(
            f"      {c.feature:<24} train [{_num(c.train_min)}, {_num(c.train_max)}]  "
            f"test [{_num(c.test_min)}, {_num(c.test_max)}]  "
            f"{'ok' if c.is_within_range else 'OUT OF RANGE'}"
        )

    overlap = report.overlap
    lines.append("")
    lines.append(f"  {_tag(overlap.passed)} 5. Row overlap (category, trend, label)")
    lines.append(f"      overlapping rows: {overlap.overlapping_records}")
    for key in overlap.sample_keys:
        lines.append(f"      - {key}")

    lines.append("")
    if report.passed:
        lines.append("  VERDICT: PASS - no leakage detected")
    else:
        lines.append(f"  VERDICT: FAIL - failed checks: {', '.join(report.failed_checks)}")
    return "\n".join(lines)


# ── Metrics ────────────────────────────────────────────────────────────────────


def format_metrics_table(metrics: list[ModelMetrics]) -> str:
    """One row per metrics object."""
    header = f"  {'Model':<28}  {'R²':>8}  {'MAE':>9}  {'RMSE':>9}  {'MAPE':>9}  {'Test':>6}"
    lines = [header, "  " + "-" * (len(header) - 2)]
    if not metrics:
        lines.append("  (no metrics)")
    for m in metrics:
        lines.append(
            f"  {m.name[:28]:<28}  {_num(m.r_squared, '.4f'):>8}  {_num(m.mae):>9}  "
            f"{_num(m.rmse):>9}  {_num(m.mape, '.1f', '%'):>9}  {m.test_samples:>6}"
        )
    return "\n".join(lines)


def format_baseline_comparison(comparison: BaselineComparison) -> str:
    lines = [
        "",
        "=== Model vs Baseline ===",
        format_metrics_table([comparison.model, comparison.baseline]),
        "",
        f"  MAE improvement:  {_num(comparison.mae_improvement_pct, '+.1f', '%')}",
        f"  RMSE improvement: {_num(comparison.rmse_improvement_pct, '+.1f', '%')}",
        f"  R² delta:         {_num(comparison.r_squared_delta, '+.4f')}",
        f"  {_tag(comparison.beats_baseline)} {comparison.model.name} "
        f"{'beats' if comparison.beats_baseline else 'does not beat'} {comparison.baseline.name}",
    ]
    return "\n".join(lines)


def format_cv_summary(results: list[CrossValidationMetrics]) -> str:
    """Mean ± std per cross-validated series."""
    header = (
        f"  {'Series':<28}  {'Folds':>5}  {'R² mean±std':>17}  "
        f"{'MAE mean±std':>17}  {'MAPE mean':>9}"
    )
    lines = ["", "=== Rolling-Window Cross-Validation ===", header, "  " + "-" * (len(header) - 2)]
    if not results:
        lines.append("  (no series had enough weeks for cross-validation)")
    for cv in results:
        r2 = f"{_num(cv.mean_r_squared, '.3f')}±{_num(cv.std_r_squared, '.3f')}"
        mae = f"{_num(cv.mean_mae)}±{_num(cv.std_mae)}"
        lines.append(
            f"  {cv.name[:28]:<28}  {cv.n_folds:>5}  {r2:>17}  {mae:>17}  "
            f"{_num(cv.mean_mape, '.1f', '%'):>9}"
        )
    return "\n".join(lines)


# ── Features ───────────────────────────────────────────────────────────────────


def format_skipped_categories(skipped: list[SkippedCategory]) -> str:
    if not skipped:
        return "  No categories skipped."
    lines = [f"  Skipped {len(skipped)} categor{'y' if len(skipped) == 1 else 'ies'}:"]
    for s in skipped:
        lines.append(f"    - {s.category}: {s.reason} ({s.first_week} to {s.last_week})")
    return "\n".join(lines)


def format_importance(outcome: ImportanceOutcome, top_n: int = 15) -> str:
    if not outcome.ok:
        return f"  Feature importance unavailable: {outcome.error}"
    header = f"  {'Rank':>4}  {'Feature':<24}  {'Score':>8}  {'R² drop':>8}  {'MAE +':>8}"
    lines = [header, "  " + "-" * (len(header) - 2)]
    for f in (outcome.importances or [])[:top_n]:
        lines.append(
            f"  {f.rank:>4}  {f.feature:<24}  {f.score:>8.4f}  "
            f"{f.r_squared_drop_mean:>8.4f}  {f.mae_increase:>8.2f}"
        )
    return "\n".join(lines)


def format_seasonality_report(report: SeasonalityReport, title: str = "all categories") -> str:
    lines = ["", f"=== Seasonality: {title} ==="]
    if not report.monthly:
        lines.append("  (no data)")
        return "\n".join(lines)

    lines.append(f"  {'Month':<12}  {'Avg sales':>10}  {'Index':>6}")
    for m in report.monthly:
        marker = " +" if m.seasonal_index > 1.1 else " -" if m.seasonal_index < 0.9 else ""
        lines.append(f"  {m.month_name:<12}  {m.average_sales:>10.1f}  {m.seasonal_index:>6.2f}{marker}")

    lines.append("")
    for q in report.quarterly:
        lines.append(f"  {q.quarter_name}: avg {q.average_sales:.1f}, total {q.total_sales}")

    lines.append("")
    lines.append(f"  Trend: {report.trend.direction} (slope {report.trend.slope:+.2f} units/week)")

    if report.peaks:
        lines.append("")
        lines.append("  Sales peaks (> mean + 2σ):")
        for p in sorted(report.peaks, key=lambda p: -p.sales)[:5]:
            lines.append(
                f"    {p.week_start}: {p.sales} (+{p.percent_above_mean:.0f}%) - {p.possible_reason}"
            )
    return "\n".join(lines)
