"""
Permutation feature importance.

For each model input, the column is shuffled across the evaluation rows
``permutation_count`` times and the fitted predictor is re-scored.  The drop
in R² and the rise in MAE / RMSE measure how much the model relies on that
column.  A combined score weights them 0.5 / 0.3 / 0.2.

Failure handling
----------------
``permutation_importance()`` never substitutes made-up importances.  If the
predictor cannot score the rows, the failure comes back as
``ImportanceOutcome.error`` and the caller decides what to show instead.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Any, Optional

import numpy as np

from sales_forecaster.backtest.metrics import compute_metrics
from sales_forecaster.backtest.models import Trainer
from sales_forecaster.features.builder import FeatureRow
from sales_forecaster.features.registry import model_input_names

logger = logging.getLogger(__name__)

DEFAULT_PERMUTATIONS = 10


@dataclass(frozen=True)
class FeatureImportance:
    feature: str
    r_squared_drop_mean: float
    r_squared_drop_std: float
    mae_increase: float
    rmse_increase: float
    score: float
    rank: int = 0


@dataclass(frozen=True)
class ImportanceOutcome:
    """Importances on success, an error message on failure; never both."""

    importances: Optional[list[FeatureImportance]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.importances is not None


def _score(r2_drop: float, mae_inc: float, rmse_inc: float) -> float:
    return abs(r2_drop) * 0.5 + abs(mae_inc) * 0.3 + abs(rmse_inc) * 0.2


def permutation_importance(
    trainer: Trainer,
    predictor: Any,
    rows: list[FeatureRow],
    features: Optional[list[str]] = None,
    permutation_count: int = DEFAULT_PERMUTATIONS,
    seed: int = 42,
) -> ImportanceOutcome:
    """Permutation importance of each feature on ``rows``.

    Args:
        trainer:           Trainer whose ``predict`` scores the rows.
        predictor:         Value returned by ``trainer.fit``.
        rows:              Evaluation rows (normally the test split).
        features:          Columns to permute; defaults to every model input.
        permutation_count: Shuffles per feature.
        seed:              RNG seed for reproducible shuffles.

    Returns:
        ``ImportanceOutcome`` with importances sorted by score (rank 1 = most
        important), or with ``error`` set.
    """
    if permutation_count < 1:
        raise ValueError(f"permutation_count must be >= 1, got {permutation_count}")
    if len(rows) < 2:
        return ImportanceOutcome(error=f"need at least 2 rows, got {len(rows)}")

    names = features or model_input_names()
    actual = [r.label for r in rows]
    try:
        base = compute_metrics(actual, trainer.predict(predictor, rows))
    except (ValueError, RuntimeError, TypeError) as exc:
        logger.error("Permutation importance failed on baseline scoring: %s", exc)
        return ImportanceOutcome(error=str(exc))

    base_r2 = base.r_squared if base.r_squared is not None else 0.0
    rng = np.random.default_rng(seed)
    results: list[FeatureImportance] = []
    for name in names:
        column = [getattr(r, name) for r in rows]
        r2_drops: list[float] = []
        mae_incs: list[float] = []
        rmse_incs: list[float] = []
        for _ in range(permutation_count):
            order = rng.permutation(len(rows))
            shuffled = [replace(r, **{name: column[j]}) for r, j in zip(rows, order)]
            try:
                m = compute_metrics(actual, trainer.predict(predictor, shuffled))
            except (ValueError, RuntimeError, TypeError) as exc:
                logger.error("Permutation importance failed on '%s': %s", name, exc)
                return ImportanceOutcome(error=f"{name}: {exc}")
            r2 = m.r_squared if m.r_squared is not None else 0.0
            r2_drops.append(base_r2 - r2)
            mae_incs.append(m.mae - base.mae)
            rmse_incs.append(m.rmse - base.rmse)

        mean_drop = sum(r2_drops) / len(r2_drops)
        std_drop = math.sqrt(sum((d - mean_drop) ** 2 for d in r2_drops) / len(r2_drops))
        mae_inc = sum(mae_incs) / len(mae_incs)
        rmse_inc = sum(rmse_incs) / len(rmse_incs)
        results.append(FeatureImportance(
            feature=name,
            r_squared_drop_mean=mean_drop,
            r_squared_drop_std=std_drop,
            mae_increase=mae_inc,
            rmse_increase=rmse_inc,
            score=_score(mean_drop, mae_inc, rmse_inc),
        ))

    results.sort(key=lambda f: (-f.score, f.feature))
    ranked = [replace(f, rank=i + 1) for i, f in enumerate(results)]
    logger.info("Permutation importance computed for %d features", len(ranked))
    return ImportanceOutcome(importances=ranked)
