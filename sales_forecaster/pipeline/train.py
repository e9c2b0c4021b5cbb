"""
TrainStage — fit the global LightGBM model on the date-cutoff training side.

Steps:
  1. Read the weekly cache and run the fit-mode global feature build.
  2. Split at ``config.split.train_end`` / ``config.split.test_start``.
  3. Fit LightGBM once on the training side and score it on the test side.
  4. Score the rolling-average baseline and compare.
  5. Permutation importance of the fitted model on the test side
     (reported, never fatal).
  6. Save that same fitted model with the metrics JSON.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path

from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.pipeline.base import PipelineStage

logger = logging.getLogger(__name__)


class TrainStage(PipelineStage):
    """Train, score and persist the global forecaster."""

    stage_name = "train"

    def _execute(self, run: RunMetadata, permutation_count: int = 10, **kwargs) -> int:
        from sales_forecaster.backtest.evaluator import evaluate_against_baseline, fit_and_score
        from sales_forecaster.backtest.splits import split_global_by_date
        from sales_forecaster.features.dataset_builder import build_global_from_records
        from sales_forecaster.ml.importance import permutation_importance
        from sales_forecaster.ml.trainer import LightGBMTrainer, save_model
        from sales_forecaster.reporting.export import export_to_json, read_weekly_records

        records = read_weekly_records(self.config.data.weekly_cache_path)
        result = build_global_from_records(records, self.config)
        split = split_global_by_date(result, self.config.split.train_end, self.config.split.test_start)

        trainer = LightGBMTrainer(self.config.model)
        forecaster, model_metrics = fit_and_score(trainer, split)
        comparison = evaluate_against_baseline(trainer, split, model_metrics=model_metrics)

        importance = permutation_importance(
            trainer, forecaster, split.test,
            permutation_count=permutation_count, seed=self.config.model.seed,
        )
        if not importance.ok:
            logger.warning("Permutation importance unavailable: %s", importance.error)

        metrics = {
            "model": asdict(comparison.model),
            "baseline": asdict(comparison.baseline),
            "mae_improvement_pct": comparison.mae_improvement_pct,
            "rmse_improvement_pct": comparison.rmse_improvement_pct,
            "r_squared_delta": comparison.r_squared_delta,
            "beats_baseline": comparison.beats_baseline,
            "gap_rows": split.gap_rows,
        }
        dataset_version = f"{self.config.split.train_end.isoformat()}_{run.run_slug[:8]}"
        artifact_path = save_model(
            forecaster, Path(self.config.model.artifact_dir), dataset_version, metrics,
        )

        metrics["feature_importance"] = (
            [asdict(fi) for fi in importance.importances] if importance.ok else None
        )
        metrics["importance_error"] = importance.error
        metrics_path = export_to_json(metrics, self.outputs_dir / "train_metrics.json")

        run.summary.update({
            "train_rows": len(split.train),
            "test_rows": len(split.test),
            "beats_baseline": comparison.beats_baseline,
            "mae": comparison.model.mae,
            "baseline_mae": comparison.baseline.mae,
            "artifact": str(artifact_path),
            "metrics": str(metrics_path),
        })
        return len(split.train)
