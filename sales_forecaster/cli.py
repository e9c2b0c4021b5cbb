"""
Weekly Sales Forecaster — CLI entry point.

All commands follow this pattern:
  1. Load ``AppConfig`` via ``load_config()``.
  2. Configure logging.
  3. Validate inputs.
  4. Run the pipeline stage (or the analysis) for the command.
  5. Report result to stdout.

Install and run::

    pip install -e .
    sales-forecaster --help
    sales-forecaster validate-config
    sales-forecaster prepare-data --top-n 12
    sales-forecaster build-features
    sales-forecaster detect-leakage
    sales-forecaster train
    sales-forecaster cross-validate
    sales-forecaster analyze-seasonality --category "health beauty"
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="sales-forecaster",
    help="Weekly per-category sales forecaster with leakage-safe backtesting.",
    add_completion=False,
)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _load_config_or_exit(config_path: Optional[str] = None):
    """Load AppConfig, printing a friendly error and exiting on failure."""
    from sales_forecaster.config import load_config

    try:
        cfg_path = Path(config_path) if config_path else None
        return load_config(cfg_path)
    except FileNotFoundError as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"[ERROR] Config validation failed: {exc}", err=True)
        raise typer.Exit(code=1)


def _configure_logging(config):
    """Set up logging from config."""
    from sales_forecaster.utils.logging import configure_logging
    configure_logging(config.logging)


def _run_stage_or_exit(stage, **kwargs):
    """Run a pipeline stage; print the error and exit 1 if it raises."""
    try:
        return stage.run(**kwargs)
    except Exception as exc:
        typer.echo(f"[ERROR] {stage.stage_name} failed: {exc}", err=True)
        raise typer.Exit(code=1)


_CONFIG_OPTION_HELP = "Path to TOML config file (default: config/default.toml)."


# ── Commands ──────────────────────────────────────────────────────────────────

@app.command("validate-config")
def validate_config(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
    show_full: bool = typer.Option(
        False,
        "--full",
        help="Print full config including all fields.",
    ),
) -> None:
    """Validate the configuration file and print parsed values.

    Exits with code 1 if the config fails validation.
    """
    config = _load_config_or_exit(config_path)

    typer.echo("Configuration validated successfully.")
    typer.echo("")
    typer.echo(f"  Raw data dir:     {config.data.raw_dir}")
    typer.echo(f"  Weekly cache:     {config.data.weekly_cache_path}")
    typer.echo(f"  Top-N categories: {config.aggregation.top_n or 'all'}")
    typer.echo(f"  Train end:        {config.split.train_end}")
    typer.echo(f"  Test start:       {config.split.test_start}")
    typer.echo(f"  CV folds:         {config.split.fold_count} x {config.split.weeks_per_fold} weeks")
    typer.echo(f"  Log level:        {config.logging.level}")
    typer.echo(f"  Debug mode:       {config.debug}")

    if show_full:
        typer.echo("")
        typer.echo("Full config (JSON):")
        typer.echo(json.dumps(config.model_dump(), indent=2, default=str))

    typer.echo("")
    typer.echo("[OK] Config valid.")


@app.command("prepare-data")
def prepare_data(
    top_n: Optional[int] = typer.Option(
        None,
        "--top-n",
        min=1,
        help="Keep the N categories with the most items sold. Uses config default if omitted.",
    ),
    all_categories: bool = typer.Option(
        False,
        "--all-categories",
        help="Keep every category (ignores --top-n).",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Aggregate the raw Olist CSVs into the weekly per-category cache.

    \b
    Reads from config.data.raw_dir:
      olist_orders_dataset.csv
      olist_order_items_dataset.csv
      olist_products_dataset.csv
      product_category_name_translation.csv   (optional)
    """
    from sales_forecaster.pipeline.prepare import PrepareDataStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    typer.echo(f"prepare-data | raw_dir={config.data.raw_dir}")
    run = _run_stage_or_exit(
        PrepareDataStage(config=config), top_n=top_n, all_categories=all_categories,
    )
    s = run.summary
    typer.echo(f"  Categories:  {s['categories']}")
    typer.echo(f"  Weeks:       {s['first_week']} → {s['last_week']}")
    typer.echo(f"  Records:     {run.rows_processed}")
    typer.echo(f"  Cache:       {s['cache_path']}")
    typer.echo("[OK] Weekly cache written.")


@app.command("build-features")
def build_features(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Build the global feature dataset (Parquet + manifest) from the weekly cache."""
    from sales_forecaster.pipeline.feature_build import FeatureBuildStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    run = _run_stage_or_exit(FeatureBuildStage(config=config))
    s = run.summary
    typer.echo(f"  Rows:              {run.rows_processed}")
    typer.echo(f"  Categories:        {s['categories']}")
    typer.echo(f"  Trend epoch:       {s['global_min_date']}")
    if s["skipped_categories"]:
        typer.echo(f"  Skipped (short):   {', '.join(s['skipped_categories'])}")
    for name, path in s["files"].items():
        typer.echo(f"  {name:<18} {path}")
    typer.echo("[OK] Features built.")


@app.command("detect-leakage")
def detect_leakage(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Audit the date-cutoff train/test split for data leakage.

    \b
    Checks:
      1. Feature/label correlation scan (train only)
      2. Lag correlation monotonicity
      3. Temporal ordering of train before test
      4. Feature range containment
      5. Train/test record overlap

    A FAIL verdict is reported, not treated as an error (exit code 0).
    """
    from sales_forecaster.pipeline.leakage_audit import LeakageAuditStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    run = _run_stage_or_exit(LeakageAuditStage(config=config))
    typer.echo(Path(run.summary["report_text"]).read_text(encoding="utf-8"))
    typer.echo(f"  Report JSON: {run.summary['report_json']}")


@app.command("train")
def train(
    permutations: int = typer.Option(
        10,
        "--permutations",
        min=1,
        help="Shuffles per feature for permutation importance.",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Train the global LightGBM model and compare it with the rolling-average baseline."""
    from sales_forecaster.pipeline.train import TrainStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    run = _run_stage_or_exit(TrainStage(config=config), permutation_count=permutations)
    s = run.summary
    typer.echo(f"  Train rows:     {s['train_rows']}")
    typer.echo(f"  Test rows:      {s['test_rows']}")
    typer.echo(f"  MAE (model):    {s['mae']:.2f}")
    typer.echo(f"  MAE (baseline): {s['baseline_mae']:.2f}")
    typer.echo(f"  Beats baseline: {s['beats_baseline']}")
    typer.echo(f"  Artifact:       {s['artifact']}")
    typer.echo(f"  Metrics:        {s['metrics']}")
    typer.echo("[OK] Model trained.")


@app.command("cross-validate")
def cross_validate(
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Run per-category rolling-window cross-validation."""
    from sales_forecaster.pipeline.cross_validate import CrossValidateStage

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    run = _run_stage_or_exit(CrossValidateStage(config=config))
    s = run.summary
    typer.echo(f"  Categories evaluated: {len(s['categories_evaluated'])}")
    typer.echo(f"  Folds evaluated:      {s['folds_evaluated']}")
    for category, reason in s["insufficient"].items():
        typer.echo(f"  [SKIP] {category}: {reason}")
    typer.echo(f"  Results: {s['results_json']}")
    typer.echo(f"  Summary: {s['summary_csv']}")
    typer.echo("[OK] Cross-validation complete.")


@app.command("analyze-seasonality")
def analyze_seasonality(
    category: Optional[str] = typer.Option(
        None,
        "--category",
        help="Analyse one category. All categories combined if omitted.",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", help=_CONFIG_OPTION_HELP),
) -> None:
    """Print monthly/quarterly patterns, sales peaks and the long-term trend."""
    from sales_forecaster.features.seasonality import analyze_seasonality as analyze
    from sales_forecaster.features.seasonality import combine_categories
    from sales_forecaster.reporting.export import read_weekly_records
    from sales_forecaster.reporting.formatters import format_seasonality_report

    config = _load_config_or_exit(config_path)
    _configure_logging(config)

    try:
        records = read_weekly_records(config.data.weekly_cache_path)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"[ERROR] {exc}", err=True)
        raise typer.Exit(code=1)

    if category is not None:
        records = [r for r in records if r.category == category]
        if not records:
            typer.echo(f"[ERROR] Category '{category}' not found in the weekly cache.", err=True)
            raise typer.Exit(code=1)

    report = analyze(combine_categories(records))
    typer.echo(format_seasonality_report(report, title=category or "all categories"))


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    app()
