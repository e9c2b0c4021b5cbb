"""
Trainer evaluation over date splits and rolling folds.

How it works
------------
1. ``trainer.fit(split.train)`` returns an opaque predictor.
2. ``trainer.predict(predictor, split.test)`` returns one forecast per test row.
3. ``metrics.compute_metrics()`` compares forecasts with each row's label.

Leakage proof
-------------
- The trainer only ever receives training rows in ``fit``.
- Test labels are read by this module for scoring only.  ``predict`` receives
  the test rows, but trainers select inputs via
  ``registry.model_input_names()``, which excludes the label.
- Splits and folds arrive already checked for chronology by ``splits``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sales_forecaster.backtest.metrics import (
    BaselineComparison,
    CrossValidationMetrics,
    ModelMetrics,
    aggregate_folds,
    compare_to_baseline,
    compute_metrics,
)
from sales_forecaster.backtest.models import RollingAverageBaseline, Trainer
from sales_forecaster.backtest.splits import Fold, Split

log = logging.getLogger(__name__)


def fit_and_score(
    trainer: Trainer,
    split: Split,
    name: Optional[str] = None,
) -> tuple[Any, ModelMetrics]:
    """Fit on ``split.train``, score on ``split.test``; return the predictor too.

    Raises:
        ValueError: If either side of the split is empty.
    """
    if not split.train or not split.test:
        raise ValueError(
            f"Cannot evaluate an empty split ({len(split.train)} train, {len(split.test)} test rows)."
        )
    predictor = trainer.fit(split.train)
    predicted = trainer.predict(predictor, split.test)
    metrics = compute_metrics(
        [r.label for r in split.test],
        predicted,
        name=name or trainer.name,
        train_samples=len(split.train),
    )
    log.info(
        "%s: R²=%s MAE=%.2f RMSE=%.2f on %d test rows",
        metrics.name,
        f"{metrics.r_squared:.4f}" if metrics.r_squared is not None else "n/a",
        metrics.mae, metrics.rmse, metrics.test_samples,
    )
    return predictor, metrics


def evaluate_split(trainer: Trainer, split: Split, name: Optional[str] = None) -> ModelMetrics:
    """Fit on ``split.train`` and score on ``split.test``.

    Raises:
        ValueError: If either side of the split is empty.
    """
    _, metrics = fit_and_score(trainer, split, name=name)
    return metrics


def cross_validate(
    trainer: Trainer,
    folds: list[Fold],
    name: Optional[str] = None,
) -> CrossValidationMetrics:
    """Evaluate ``trainer`` on every fold and summarize.

    Returns metrics with ``n_folds == 0`` when no folds are given.
    """
    label = name or trainer.name
    fold_metrics: list[ModelMetrics] = []
    for fold in folds:
        split = Split(train=fold.train, test=fold.test)
        fold_metrics.append(evaluate_split(trainer, split, name=f"{label}[fold {fold.fold_index}]"))
    return aggregate_folds(fold_metrics, name=label)


def evaluate_against_baseline(
    trainer: Trainer,
    split: Split,
    baseline: Optional[Trainer] = None,
    model_metrics: Optional[ModelMetrics] = None,
) -> BaselineComparison:
    """Score ``trainer`` and a baseline (rolling average by default) on one split.

    Pass ``model_metrics`` from an earlier ``fit_and_score`` on the same split
    to reuse that fit; ``trainer`` is then not fitted again.
    """
    baseline = baseline or RollingAverageBaseline()
    if model_metrics is None:
        model_metrics = evaluate_split(trainer, split)
    baseline_metrics = evaluate_split(baseline, split)
    comparison = compare_to_baseline(model_metrics, baseline_metrics)
    if not comparison.beats_baseline:
        log.warning(
            "%s does not beat the %s baseline (MAE %.2f vs %.2f)",
            model_metrics.name, baseline_metrics.name, model_metrics.mae, baseline_metrics.mae,
        )
    return comparison
