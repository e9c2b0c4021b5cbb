"""
Forecast evaluation metrics.

Metric design rationale
-----------------------
R² (coefficient of determination)
  Share of the label variance the model explains.  1.0 is perfect; 0.0 is no
  better than predicting the test mean; negative is worse than that.
  None when the actuals have zero variance (undefined).

MAE (Mean Absolute Error)
  "On average, we're off by X units per week."  Equally weights all errors.

RMSE (Root Mean Squared Error)
  Penalizes large misses more than MAE.  RMSE well above MAE implies a few
  weeks were badly mispredicted (typically promotion spikes).

MAPE (Mean Absolute Percentage Error, in percent)
  Normalizes error by the actual quantity for cross-category comparison.
  Weeks selling fewer than ``MAPE_MIN_ACTUAL`` units are excluded: one unit
  off on a two-unit week is a 50% error that says nothing useful.
  None when no week qualifies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

MAPE_MIN_ACTUAL = 3.0


@dataclass(frozen=True)
class ModelMetrics:
    """Evaluation metrics for one prediction set.

    Attributes:
        name:          Model or slice label.
        r_squared:     Coefficient of determination, None if undefined.
        mae:           Mean absolute error in units.
        rmse:          Root mean squared error in units.
        mape:          Mean absolute percentage error (5.0 = 5%), None if no
                       actual reached ``MAPE_MIN_ACTUAL``.
        test_samples:  Predictions evaluated.
        mape_samples:  Predictions included in MAPE.
        train_samples: Training rows (0 when not applicable).
    """

    name: str
    r_squared: Optional[float]
    mae: Optional[float]
    rmse: Optional[float]
    mape: Optional[float]
    test_samples: int
    mape_samples: int = 0
    train_samples: int = 0


@dataclass(frozen=True)
class CrossValidationMetrics:
    """Mean and population standard deviation of fold metrics."""

    name: str
    n_folds: int
    mean_r_squared: Optional[float]
    std_r_squared: Optional[float]
    mean_mae: Optional[float]
    std_mae: Optional[float]
    mean_rmse: Optional[float]
    std_rmse: Optional[float]
    mean_mape: Optional[float]
    std_mape: Optional[float]
    fold_metrics: list[ModelMetrics] = field(default_factory=list)


@dataclass(frozen=True)
class BaselineComparison:
    """Relative improvement of a model over a baseline (positive = better)."""

    model: ModelMetrics
    baseline: ModelMetrics
    mae_improvement_pct: Optional[float]
    rmse_improvement_pct: Optional[float]
    r_squared_delta: Optional[float]

    @property
    def beats_baseline(self) -> bool:
        return self.mae_improvement_pct is not None and self.mae_improvement_pct > 0


def compute_metrics(
    actual: Sequence[float],
    predicted: Sequence[float],
    name: str = "",
    train_samples: int = 0,
) -> ModelMetrics:
    """Compute R², MAE, RMSE and MAPE for paired actual/predicted values.

    Raises:
        ValueError: If the sequences differ in length.
    """
    if len(actual) != len(predicted):
        raise ValueError(
            f"actual and predicted differ in length: {len(actual)} vs {len(predicted)}"
        )
    n = len(actual)
    if n == 0:
        return ModelMetrics(
            name=name, r_squared=None, mae=None, rmse=None, mape=None,
            test_samples=0, train_samples=train_samples,
        )

    errors = [a - p for a, p in zip(actual, predicted)]
    mae = sum(abs(e) for e in errors) / n
    ss_res = sum(e * e for e in errors)
    rmse = math.sqrt(ss_res / n)

    mean_actual = sum(actual) / n
    ss_tot = sum((a - mean_actual) ** 2 for a in actual)
    r_squared = 1.0 - ss_res / ss_tot if ss_tot > 0 else None

    mape_terms = [
        abs(a - p) / a
        for a, p in zip(actual, predicted)
        if a >= MAPE_MIN_ACTUAL
    ]
    mape = sum(mape_terms) / len(mape_terms) * 100 if mape_terms else None

    return ModelMetrics(
        name=name,
        r_squared=r_squared,
        mae=mae,
        rmse=rmse,
        mape=mape,
        test_samples=n,
        mape_samples=len(mape_terms),
        train_samples=train_samples,
    )


def _mean_std(values: list[Optional[float]]) -> tuple[Optional[float], Optional[float]]:
    present = [v for v in values if v is not None]
    if not present:
        return None, None
    mean = sum(present) / len(present)
    std = math.sqrt(sum((v - mean) ** 2 for v in present) / len(present))
    return mean, std


def aggregate_folds(fold_metrics: list[ModelMetrics], name: str = "") -> CrossValidationMetrics:
    """Summarize per-fold metrics.  Undefined fold values are left out."""
    mean_r2, std_r2 = _mean_std([m.r_squared for m in fold_metrics])
    mean_mae, std_mae = _mean_std([m.mae for m in fold_metrics])
    mean_rmse, std_rmse = _mean_std([m.rmse for m in fold_metrics])
    mean_mape, std_mape = _mean_std([m.mape for m in fold_metrics])
    return CrossValidationMetrics(
        name=name,
        n_folds=len(fold_metrics),
        mean_r_squared=mean_r2,
        std_r_squared=std_r2,
        mean_mae=mean_mae,
        std_mae=std_mae,
        mean_rmse=mean_rmse,
        std_rmse=std_rmse,
        mean_mape=mean_mape,
        std_mape=std_mape,
        fold_metrics=list(fold_metrics),
    )


def _improvement_pct(model: Optional[float], baseline: Optional[float]) -> Optional[float]:
    if model is None or baseline is None or baseline == 0:
        return None
    return (baseline - model) / baseline * 100


def compare_to_baseline(model: ModelMetrics, baseline: ModelMetrics) -> BaselineComparison:
    """Relative MAE/RMSE improvement and R² delta of ``model`` over ``baseline``."""
    r2_delta = (
        model.r_squared - baseline.r_squared
        if model.r_squared is not None and baseline.r_squared is not None
        else None
    )
    return BaselineComparison(
        model=model,
        baseline=baseline,
        mae_improvement_pct=_improvement_pct(model.mae, baseline.mae),
        rmse_improvement_pct=_improvement_pct(model.rmse, baseline.rmse),
        r_squared_delta=r2_delta,
    )
