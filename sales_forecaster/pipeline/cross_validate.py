"""
CrossValidateStage — per-category rolling-window cross-validation.

For each category in the weekly cache:
  1. Gap-fill and build single-category rows (``trend`` = position).
  2. ``create_rolling_folds()`` with the ``[split]`` config section.
  3. Cross-validate LightGBM and the rolling-average baseline on the folds.

Categories that are too short for the requested folds are listed in the
summary with the reason, not treated as errors.

Outputs ``cv_results.json`` (full fold detail) and ``cv_summary.csv``
(one row per category × model) under ``outputs_dir``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

from sales_forecaster.backtest.metrics import CrossValidationMetrics
from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)

_SUMMARY_COLUMNS = [
    "category", "model", "n_folds",
    "mean_r_squared", "std_r_squared", "mean_mae", "std_mae",
    "mean_rmse", "std_rmse", "mean_mape", "std_mape",
]


def _summary_row(category: str, cv: CrossValidationMetrics) -> dict:
    row = {k: v for k, v in asdict(cv).items() if k != "fold_metrics"}
    row["model"] = row.pop("name")
    row["category"] = category
    return row


class CrossValidateStage(PipelineStage):
    """Rolling-window CV for every cached category."""

    stage_name = "cross_validate"

    def _execute(self, run: RunMetadata, **kwargs) -> int:
        from sales_forecaster.backtest.evaluator import cross_validate
        from sales_forecaster.backtest.models import RollingAverageBaseline
        from sales_forecaster.backtest.splits import create_rolling_folds
        from sales_forecaster.features.builder import build_single_category_features
        from sales_forecaster.features.gap_fill import fill_all_categories
        from sales_forecaster.ml.trainer import LightGBMTrainer
        from sales_forecaster.reporting.export import (
            export_to_csv,
            export_to_json,
            read_weekly_records,
        )

        records = read_weekly_records(self.config.data.weekly_cache_path)
        split_cfg = self.config.split
        trainers = [LightGBMTrainer(self.config.model), RollingAverageBaseline()]

        results: dict[str, list[dict]] = {}
        summary_rows: list[dict] = []
        insufficient: dict[str, str] = {}
        folds_evaluated = 0

        for category, series in fill_all_categories(records).items():
            built = build_single_category_features(
                series, min_weeks=self.config.features.min_weeks_per_category,
            )
            if not built.rows:
                insufficient[category] = built.skipped[0].reason if built.skipped else "no rows"
                continue

            rolling = create_rolling_folds(
                built.rows,
                fold_count=split_cfg.fold_count,
                weeks_per_fold=split_cfg.weeks_per_fold,
                min_test_window=split_cfg.min_test_window_weeks,
                test_window_divisor=split_cfg.test_window_divisor,
                min_train_weeks=split_cfg.min_train_weeks,
            )
            if not rolling.folds:
                insufficient[category] = rolling.insufficient_reason or "all folds discarded"
                continue

            category_results = []
            for trainer in trainers:
                cv = cross_validate(trainer, rolling.folds)
                category_results.append(asdict(cv))
                summary_rows.append(_summary_row(category, cv))
            results[category] = category_results
            folds_evaluated += len(rolling.folds)
            logger.info("Cross-validated '%s' over %d folds", category, len(rolling.folds))

        json_path = export_to_json(
            {"results": results, "insufficient": insufficient},
            self.outputs_dir / "cv_results.json",
        )
        csv_path = export_to_csv(summary_rows, self.outputs_dir / "cv_summary.csv", _SUMMARY_COLUMNS)

        run.summary.update({
            "categories_evaluated": sorted(results),
            "insufficient": insufficient,
            "folds_evaluated": folds_evaluated,
            "results_json": str(json_path),
            "summary_csv": str(csv_path),
        })
        return folds_evaluated
