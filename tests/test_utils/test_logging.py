"""
Tests for sales_forecaster.utils.logging.

Covers:
  - JSON line output carries ``extra=`` context as top-level keys.
  - Plain format when json_format is off.
  - Empty log_file disables the file handler.
  - Skip warnings from the builder carry category context.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from sales_forecaster.config import LoggingConfig
from sales_forecaster.features.builder import build_single_category_features
from sales_forecaster.utils.logging import (
    NOISY_LOGGERS,
    JsonLineFormatter,
    build_formatter,
    configure_logging,
    record_context,
)


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def _flush() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_json_file_output_includes_context(tmp_path: Path, restore_root_logging) -> None:
    log_file = tmp_path / "logs" / "run.log"
    configure_logging(LoggingConfig(level="info", log_file=str(log_file), json_format=True))

    logging.getLogger("sales_forecaster.test").warning(
        "Skipping category '%s'", "toys", extra={"category": "toys", "weeks": 7},
    )
    _flush()

    (line,) = log_file.read_text(encoding="utf-8").strip().splitlines()
    payload = json.loads(line)
    assert payload["level"] == "WARNING"
    assert payload["msg"] == "Skipping category 'toys'"
    assert payload["category"] == "toys"
    assert payload["weeks"] == 7


def test_plain_format_and_level(tmp_path: Path, restore_root_logging) -> None:
    log_file = tmp_path / "plain.log"
    configure_logging(LoggingConfig(level="WARNING", log_file=str(log_file)))

    log = logging.getLogger("sales_forecaster.test")
    log.info("hidden")
    log.warning("shown")
    _flush()

    text = log_file.read_text(encoding="utf-8")
    assert "hidden" not in text
    assert "[WARNING] sales_forecaster.test: shown" in text


def test_empty_log_file_means_stdout_only(restore_root_logging) -> None:
    configure_logging(LoggingConfig(log_file=""))
    handlers = logging.getLogger().handlers
    assert len(handlers) == 1
    assert not isinstance(handlers[0], logging.FileHandler)


def test_noisy_loggers_quietened(restore_root_logging) -> None:
    configure_logging(LoggingConfig(level="DEBUG", log_file=""))
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_build_formatter_kinds() -> None:
    assert isinstance(build_formatter(True), JsonLineFormatter)
    assert not isinstance(build_formatter(False), JsonLineFormatter)


def test_record_context_ignores_standard_fields() -> None:
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
    assert record_context(record) == {}
    record.category = "toys"
    assert record_context(record) == {"category": "toys"}


def test_short_series_skip_carries_category(caplog, make_series) -> None:
    with caplog.at_level(logging.WARNING, logger="sales_forecaster.features.builder"):
        result = build_single_category_features(make_series("toys", [1] * 5))

    assert result.rows == []
    (record,) = [r for r in caplog.records if "Skipping category" in r.getMessage()]
    assert record.category == "toys"
    assert record.weeks == 5
