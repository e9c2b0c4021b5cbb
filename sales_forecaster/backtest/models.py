"""
Trainer protocol and baseline forecasters.

Interface contract
------------------
Every trainer implements:

  fit(rows: list[FeatureRow]) → predictor
    Learn from training rows.  The returned predictor is opaque to callers.

  predict(predictor, rows: list[FeatureRow]) → list[float]
    One non-negative forecast per row, in row order.

``ml.trainer.LightGBMTrainer`` implements the same protocol, so the evaluator
can treat a baseline and the real model identically.

Baselines
---------
Each baseline reads a single feature column of the row being predicted and
learns nothing from training data:

  RollingAverageBaseline  → predict = rolling_avg_4
                             "next week looks like the last four weeks"
  LastValueBaseline       → predict = lag_1
                             "next week looks like last week"
  SeasonalBaseline        → predict = category_seasonal_avg, or rolling_avg_4
                             when the month has no history yet

A model that cannot beat the rolling average is not worth deploying.
"""

from __future__ import annotations

from typing import Any, Protocol

from sales_forecaster.features.builder import FeatureRow


class Trainer(Protocol):
    name: str

    def fit(self, rows: list[FeatureRow]) -> Any: ...

    def predict(self, predictor: Any, rows: list[FeatureRow]) -> list[float]: ...


class RollingAverageBaseline:
    """Naive baseline: the mean of the four prior weeks."""

    name = "rolling_average"

    def fit(self, rows: list[FeatureRow]) -> None:
        return None

    def predict(self, predictor: Any, rows: list[FeatureRow]) -> list[float]:
        return [r.rolling_avg_4 for r in rows]


class LastValueBaseline:
    """Random-walk baseline: last week's quantity."""

    name = "last_value"

    def fit(self, rows: list[FeatureRow]) -> None:
        return None

    def predict(self, predictor: Any, rows: list[FeatureRow]) -> list[float]:
        return [r.lag_1 for r in rows]


class SeasonalBaseline:
    """Same-month history, falling back to the rolling mean."""

    name = "seasonal"

    def fit(self, rows: list[FeatureRow]) -> None:
        return None

    def predict(self, predictor: Any, rows: list[FeatureRow]) -> list[float]:
        return [
            r.category_seasonal_avg if r.category_seasonal_avg > 0 else r.rolling_avg_4
            for r in rows
        ]


BASELINES: dict[str, type] = {
    RollingAverageBaseline.name: RollingAverageBaseline,
    LastValueBaseline.name: LastValueBaseline,
    SeasonalBaseline.name: SeasonalBaseline,
}


def get_baseline(name: str) -> Trainer:
    """Instantiate a baseline by name.

    Raises:
        KeyError: If ``name`` is not a known baseline.
    """
    try:
        return BASELINES[name]()
    except KeyError:
        raise KeyError(f"Unknown baseline '{name}'. Known: {sorted(BASELINES)}") from None
