"""Tests for configuration loading and validation."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

from sales_forecaster.config import AggregationConfig, AuditConfig, SplitConfig, load_config


def test_default_config_loads() -> None:
    config = load_config()
    assert config.aggregation.top_n == 12
    assert config.split.train_end == date(2018, 2, 19)
    assert config.split.test_start == date(2018, 2, 26)
    assert config.audit.range_features == ["lag_1", "rolling_avg_4", "category_seasonal_avg"]


def test_local_toml_overrides(tmp_path: Path) -> None:
    (tmp_path / "default.toml").write_text('[aggregation]\ntop_n = 12\n[features]\nmax_workers = 1\n')
    (tmp_path / "local.toml").write_text("[features]\nmax_workers = 4\n")
    config = load_config(tmp_path / "default.toml")
    assert config.features.max_workers == 4
    assert config.aggregation.top_n == 12


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "c.toml").write_text("")
    monkeypatch.setenv("SALES_FORECASTER_TOP_N", "5")
    monkeypatch.setenv("SALES_FORECASTER_LOG_LEVEL", "debug")
    monkeypatch.setenv("SALES_FORECASTER_DATA_DIR", "/data/olist")
    config = load_config(tmp_path / "c.toml")
    assert config.aggregation.top_n == 5
    assert config.logging.level == "DEBUG"
    assert config.data.raw_dir == "/data/olist"


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")


def test_split_cutoffs_must_be_ordered() -> None:
    with pytest.raises(ValidationError, match="test_start"):
        SplitConfig(train_end=date(2018, 3, 5), test_start=date(2018, 3, 5))


def test_invalid_values_rejected() -> None:
    with pytest.raises(ValidationError):
        AggregationConfig(top_n=0)
    with pytest.raises(ValidationError):
        AuditConfig(correlation_threshold=1.5)
    with pytest.raises(ValidationError):
        SplitConfig(fold_count=0)


def test_env_top_n_all_and_debug(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "c.toml").write_text("[aggregation]\ntop_n = 8\n[project]\ndebug = false\n")
    monkeypatch.setenv("SALES_FORECASTER_TOP_N", "all")
    monkeypatch.setenv("SALES_FORECASTER_DEBUG", "yes")
    monkeypatch.setenv("SALES_FORECASTER_OUTPUTS_DIR", str(tmp_path / "out"))
    config = load_config(tmp_path / "c.toml")
    assert config.aggregation.top_n is None
    assert config.debug is True
    assert config.data.outputs_dir == str(tmp_path / "out")


def test_env_top_n_must_be_integer(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "c.toml").write_text("")
    monkeypatch.setenv("SALES_FORECASTER_TOP_N", "lots")
    with pytest.raises(ValueError):
        load_config(tmp_path / "c.toml")
