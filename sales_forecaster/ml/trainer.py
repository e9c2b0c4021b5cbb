"""
Trainer adapter and model artifacts.

``LightGBMTrainer`` implements the ``backtest.models.Trainer`` protocol on top
of ``LightGBMForecaster`` so the evaluator can score it exactly like a
baseline:

    predictor = trainer.fit(train_rows)          # fitted LightGBMForecaster
    scores    = trainer.predict(predictor, rows)

Artifact naming: ``lgbm_global_{date}.{pkl,json}`` under
``config.model.artifact_dir``.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Optional

from sales_forecaster.config import ModelConfig
from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.ml.lgbm_model import LightGBMForecaster

logger = logging.getLogger(__name__)


class LightGBMTrainer:
    """Fit/predict adapter around ``LightGBMForecaster``."""

    name = "lightgbm"

    def __init__(self, config: Optional[ModelConfig] = None) -> None:
        self._config = config or ModelConfig()

    def fit(self, rows: list[FeatureRow]) -> LightGBMForecaster:
        forecaster = LightGBMForecaster(
            n_estimators=self._config.n_estimators,
            num_leaves=self._config.num_leaves,
            min_child_samples=self._config.min_child_samples,
            learning_rate=self._config.learning_rate,
            seed=self._config.seed,
        )
        return forecaster.fit(rows)

    def predict(self, predictor: Any, rows: list[FeatureRow]) -> list[float]:
        if not isinstance(predictor, LightGBMForecaster):
            raise TypeError(
                f"LightGBMTrainer.predict() expects a LightGBMForecaster, got {type(predictor).__name__}."
            )
        return predictor.predict(rows)


def save_model(
    forecaster: LightGBMForecaster,
    artifact_dir: Path,
    dataset_version: str,
    metrics: dict[str, Any],
) -> Path:
    """Persist a fitted forecaster plus its JSON metadata sidecar.

    Returns:
        Path of the ``.pkl`` artifact.
    """
    stem = f"lgbm_global_{date.today().isoformat()}"
    artifact_path = artifact_dir / f"{stem}.pkl"
    forecaster.save(artifact_path)
    forecaster.write_metadata(artifact_dir / f"{stem}.json", dataset_version, metrics)
    return artifact_path


def find_latest_model_artifact(artifact_dir: Path) -> Path | None:
    """Return the most recently modified model artifact, or None."""
    if not artifact_dir.exists():
        return None
    candidates = sorted(
        artifact_dir.glob("lgbm_global_*.pkl"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )
    return candidates[0] if candidates else None
