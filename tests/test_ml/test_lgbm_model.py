"""
Tests for the LightGBM forecaster and its trainer adapter.

Models are trained with a handful of estimators on small synthetic series so
the suite stays fast.
"""

from __future__ import annotations

import json
from datetime import date, timedelta
from pathlib import Path

import pytest

from sales_forecaster.config import ModelConfig
from sales_forecaster.features.builder import build_global_features
from sales_forecaster.ml.lgbm_model import LightGBMForecaster
from sales_forecaster.ml.trainer import LightGBMTrainer, find_latest_model_artifact, save_model

START = date(2017, 1, 2)


@pytest.fixture
def rows(make_series):
    result = build_global_features({
        "a": make_series("a", [10 + (i % 4) * 3 for i in range(40)]),
        "b": make_series("b", [2 + (i % 3) for i in range(40)]),
    })
    return result.rows


def _small() -> LightGBMForecaster:
    return LightGBMForecaster(n_estimators=20, num_leaves=7, min_child_samples=2)


def test_fit_predict(rows) -> None:
    model = _small().fit(rows)
    assert model.is_fitted
    assert model.training_rows == 80
    preds = model.predict(rows[:5])
    assert len(preds) == 5
    assert all(p >= 0 for p in preds)


def test_predict_empty(rows) -> None:
    assert _small().fit(rows).predict([]) == []


def test_too_few_rows(rows) -> None:
    with pytest.raises(ValueError, match="training rows"):
        _small().fit(rows[:5])


def test_predict_unfitted_raises(rows) -> None:
    with pytest.raises(RuntimeError, match="unfitted"):
        _small().predict(rows)


def test_unseen_category_still_predicts(rows) -> None:
    from dataclasses import replace

    model = _small().fit(rows)
    (pred,) = model.predict([replace(rows[0], category="never seen")])
    assert pred >= 0


def test_feature_importance_keys(rows) -> None:
    from sales_forecaster.ml.feature_selector import TRAINING_FEATURE_COLS

    model = _small().fit(rows)
    assert list(model.feature_importance()) == TRAINING_FEATURE_COLS
    assert _small().feature_importance() == {}


def test_save_load_round_trip(tmp_path: Path, rows) -> None:
    model = _small().fit(rows)
    path = tmp_path / "m.pkl"
    model.save(path)
    loaded = LightGBMForecaster.load(path)
    assert loaded.predict(rows[:10]) == model.predict(rows[:10])
    assert loaded.category_codes == {"a": 0, "b": 1}


def test_save_unfitted_raises(tmp_path: Path) -> None:
    with pytest.raises(RuntimeError):
        _small().save(tmp_path / "m.pkl")


def test_load_missing(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        LightGBMForecaster.load(tmp_path / "absent.pkl")


# ── Trainer adapter ────────────────────────────────────────────────────────────

def test_trainer_uses_config(rows) -> None:
    trainer = LightGBMTrainer(ModelConfig(n_estimators=5, num_leaves=4, min_child_samples=2))
    predictor = trainer.fit(rows)
    assert isinstance(predictor, LightGBMForecaster)
    assert len(trainer.predict(predictor, rows)) == len(rows)


def test_trainer_rejects_foreign_predictor(rows) -> None:
    with pytest.raises(TypeError):
        LightGBMTrainer().predict(object(), rows)


def test_save_model_writes_artifact_and_metadata(tmp_path: Path, rows) -> None:
    model = _small().fit(rows)
    artifact = save_model(model, tmp_path, "v1", {"mae": 1.5, "r_squared": float("nan")})
    assert artifact.suffix == ".pkl"
    meta = json.loads(artifact.with_suffix(".json").read_text())
    assert meta["dataset_version"] == "v1"
    assert meta["test_metrics"] == {"mae": 1.5, "r_squared": None}
    assert meta["label_transform"] == "log1p"
    assert find_latest_model_artifact(tmp_path) == artifact


def test_find_latest_model_artifact_missing_dir(tmp_path: Path) -> None:
    assert find_latest_model_artifact(tmp_path / "nope") is None
