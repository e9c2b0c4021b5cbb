"""
LightGBM-based weekly sales forecaster.

Training strategy
-----------------
ONE global model across all categories.  ``category`` is a categorical input,
so the model can still learn per-category levels, while shared patterns
(Black Friday lift, holiday season, lag autocorrelation) are learned from
every series at once.  Thin categories borrow strength from large ones.

Label transform
---------------
Weekly quantities are heavily right-skewed (a few categories sell hundreds of
units, most sell a handful).  The model is trained on ``log1p(label)`` and
predictions are mapped back with ``expm1`` and clamped at zero, since a
negative quantity is meaningless.

Validation
----------
This class has no internal validation split.  Evaluation is done by
``backtest.evaluator`` on chronological splits produced by
``backtest.splits``.  NEVER random: random splits on time series let the
model peek into the future.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date
from pathlib import Path
from typing import Any

from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.ml.feature_selector import (
    CATEGORICAL_FEATURE_COLS,
    TRAINING_FEATURE_COLS,
    build_category_encoding,
    build_feature_matrix,
)

logger = logging.getLogger(__name__)

MIN_TRAINING_ROWS = 10


class LightGBMForecaster:
    """Global LightGBM forecaster of weekly quantity per category.

    Attributes:
        MODEL_VERSION: Version string embedded in artifact metadata.
    """

    MODEL_VERSION = "v0.3.0"

    def __init__(
        self,
        n_estimators: int = 300,
        num_leaves: int = 60,
        min_child_samples: int = 8,
        learning_rate: float = 0.04,
        seed: int = 42,
    ) -> None:
        self._hyperparams: dict[str, Any] = {
            "n_estimators":      n_estimators,
            "num_leaves":        num_leaves,
            "min_child_samples": min_child_samples,
            "learning_rate":     learning_rate,
            "seed":              seed,
        }
        self._booster = None       # lgb.Booster; None until fit()
        self._feature_cols: list[str] = list(TRAINING_FEATURE_COLS)
        self._category_codes: dict[str, int] = {}
        self._training_rows: int = 0
        self._trained_at: str = ""

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def is_fitted(self) -> bool:
        """True after fit() has been called successfully."""
        return self._booster is not None

    @property
    def category_codes(self) -> dict[str, int]:
        return dict(self._category_codes)

    @property
    def training_rows(self) -> int:
        return self._training_rows

    # ── Training ──────────────────────────────────────────────────────────────

    def fit(self, rows: list[FeatureRow]) -> "LightGBMForecaster":
        """Train on feature rows.

        Raises:
            ValueError: Fewer than ``MIN_TRAINING_ROWS`` rows.
        """
        import lightgbm as lgb
        import numpy as np

        if len(rows) < MIN_TRAINING_ROWS:
            raise ValueError(
                f"LightGBMForecaster.fit() needs >= {MIN_TRAINING_ROWS} training rows; "
                f"got {len(rows)}."
            )

        self._category_codes = build_category_encoding(rows)
        categorical_indices = [
            i for i, c in enumerate(self._feature_cols) if c in CATEGORICAL_FEATURE_COLS
        ]

        X = np.array(
            build_feature_matrix(rows, self._category_codes, self._feature_cols),
            dtype=np.float64,
        )
        y = np.log1p(np.array([r.label for r in rows], dtype=np.float64))

        lgb_params = {
            "objective":         "regression",
            "metric":            "l2",
            "num_leaves":        self._hyperparams["num_leaves"],
            "learning_rate":     self._hyperparams["learning_rate"],
            "min_child_samples": self._hyperparams["min_child_samples"],
            "seed":              self._hyperparams["seed"],
            "deterministic":     True,
            "verbose":           -1,
        }
        dtrain = lgb.Dataset(
            X,
            label=y,
            feature_name=self._feature_cols,
            categorical_feature=categorical_indices,
            free_raw_data=False,
        )
        self._booster = lgb.train(
            lgb_params,
            dtrain,
            num_boost_round=self._hyperparams["n_estimators"],
        )
        self._training_rows = len(rows)
        self._trained_at = date.today().isoformat()
        logger.info(
            "Trained LightGBM on %d rows, %d categories",
            len(rows), len(self._category_codes),
        )
        return self

    # ── Inference ─────────────────────────────────────────────────────────────

    def predict(self, rows: list[FeatureRow]) -> list[float]:
        """Predict weekly quantity (>= 0) for each row.

        Raises:
            RuntimeError: If the model has not been fitted.
        """
        if not self.is_fitted:
            raise RuntimeError("Cannot predict with an unfitted LightGBMForecaster.")
        if not rows:
            return []

        import numpy as np

        X = np.array(
            build_feature_matrix(rows, self._category_codes, self._feature_cols),
            dtype=np.float64,
        )
        preds = np.expm1(self._booster.predict(X))
        return [max(0.0, float(p)) for p in preds]

    def feature_importance(self) -> dict[str, float]:
        """Total split gain per feature (empty when unfitted)."""
        if not self.is_fitted:
            return {}
        gains = self._booster.feature_importance(importance_type="gain")
        return {c: float(g) for c, g in zip(self._feature_cols, gains)}

    # ── Persistence ───────────────────────────────────────────────────────────

    def save(self, artifact_path: Path) -> None:
        """Serialize the booster to a joblib pickle file.

        Raises:
            RuntimeError: If the model has not been fitted.
        """
        if not self.is_fitted:
            raise RuntimeError("Cannot save an unfitted LightGBMForecaster.")

        import joblib

        artifact_path.parent.mkdir(parents=True, exist_ok=True)
        joblib.dump(
            {
                "booster":        self._booster,
                "feature_cols":   self._feature_cols,
                "category_codes": self._category_codes,
                "hyperparams":    self._hyperparams,
                "training_rows":  self._training_rows,
                "model_version":  self.MODEL_VERSION,
                "trained_at":     self._trained_at,
            },
            artifact_path,
        )
        logger.info("Model artifact saved: %s", artifact_path)

    @classmethod
    def load(cls, artifact_path: Path) -> "LightGBMForecaster":
        """Load a serialized LightGBMForecaster from disk.

        Raises:
            FileNotFoundError: If artifact_path does not exist.
        """
        import joblib

        if not artifact_path.exists():
            raise FileNotFoundError(f"Model artifact not found: {artifact_path}")

        state = joblib.load(artifact_path)
        inst = cls(**state.get("hyperparams", {}))
        inst._booster        = state["booster"]
        inst._feature_cols   = state["feature_cols"]
        inst._category_codes = state.get("category_codes", {})
        inst._training_rows  = state.get("training_rows", 0)
        inst._trained_at     = state.get("trained_at", "")
        logger.info("Model artifact loaded: %s (trained=%s)", artifact_path, inst._trained_at)
        return inst

    def write_metadata(self, meta_path: Path, dataset_version: str, metrics: dict[str, Any]) -> None:
        """Write a JSON metadata sidecar alongside the model artifact."""
        meta = {
            "schema_version":  self.MODEL_VERSION,
            "model_type":      "lightgbm",
            "label_transform": "log1p",
            "trained_at":      self._trained_at,
            "dataset_version": dataset_version,
            "feature_columns": self._feature_cols,
            "category_codes":  self._category_codes,
            "hyperparameters": self._hyperparams,
            "test_metrics":    {
                k: (None if isinstance(v, float) and math.isnan(v) else v)
                for k, v in metrics.items()
            },
            "training_rows":   self._training_rows,
        }
        meta_path.parent.mkdir(parents=True, exist_ok=True)
        meta_path.write_text(json.dumps(meta, indent=2))
        logger.debug("Model metadata written: %s", meta_path)
