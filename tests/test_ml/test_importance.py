"""Tests for permutation importance and its explicit failure outcome."""

from __future__ import annotations

import pytest

from sales_forecaster.backtest.models import LastValueBaseline
from sales_forecaster.ml.importance import permutation_importance


class _BrokenTrainer:
    name = "broken"

    def fit(self, rows):
        return None

    def predict(self, predictor, rows):
        raise RuntimeError("model exploded")


@pytest.fixture
def rows(make_row):
    values = [3.0, 9.0, 1.0, 7.0, 4.0, 12.0, 6.0, 2.0]
    return [make_row(i, v, lag_1=v) for i, v in enumerate(values)]


def test_only_used_feature_matters(rows) -> None:
    outcome = permutation_importance(LastValueBaseline(), None, rows, seed=1)
    assert outcome.ok
    assert outcome.error is None
    top = outcome.importances[0]
    assert (top.feature, top.rank) == ("lag_1", 1)
    assert top.mae_increase > 0
    assert all(fi.score == 0.0 for fi in outcome.importances[1:])


def test_ranks_are_sequential(rows) -> None:
    outcome = permutation_importance(LastValueBaseline(), None, rows, features=["lag_1", "lag_2"])
    assert [fi.rank for fi in outcome.importances] == [1, 2]
    assert [fi.feature for fi in outcome.importances] == ["lag_1", "lag_2"]


def test_seeded_runs_are_reproducible(rows) -> None:
    a = permutation_importance(LastValueBaseline(), None, rows, seed=3)
    b = permutation_importance(LastValueBaseline(), None, rows, seed=3)
    assert a.importances == b.importances


def test_trainer_failure_is_reported_not_raised(rows) -> None:
    outcome = permutation_importance(_BrokenTrainer(), None, rows)
    assert not outcome.ok
    assert outcome.importances is None
    assert "exploded" in outcome.error


def test_too_few_rows(make_row) -> None:
    outcome = permutation_importance(LastValueBaseline(), None, [make_row(0, 1.0)])
    assert not outcome.ok


def test_invalid_permutation_count(rows) -> None:
    with pytest.raises(ValueError):
        permutation_importance(LastValueBaseline(), None, rows, permutation_count=0)
