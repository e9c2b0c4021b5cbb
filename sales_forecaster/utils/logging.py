"""
Logging setup for the weekly sales forecaster.

``configure_logging(config)`` is called once by each CLI command before a
stage runs.  Library modules only ever do ``logging.getLogger(__name__)``.

Skip and audit warnings attach their context with ``extra=`` (for example
``category`` and ``weeks`` on a short-series skip, ``fold_index`` on a
discarded fold).  The plain formatter drops those fields; the JSON formatter
(``json_format = true`` in the [logging] section) emits them as top-level
keys, one object per line::

    {"ts": "2017-06-05T09:00:00Z", "level": "WARNING", "logger": "sales_forecaster.features.builder",
     "msg": "Skipping category 'toys': ...", "category": "toys", "weeks": 7}
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sales_forecaster.config import LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

# Loggers that chatter at INFO during training and Parquet IO.
NOISY_LOGGERS = ("lightgbm", "pyarrow")

_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime"}


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Fields a caller attached to ``record`` via ``extra=``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED and not key.startswith("_")
    }


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``msg`` plus context."""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "ts": stamp.strftime(LOG_DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        payload.update(record_context(record))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> None:
    """Install stdout (and optional file) handlers on the root logger.

    An empty ``config.log_file`` disables the file handler; otherwise its
    parent directory is created.  Calling this again replaces the handlers.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = build_formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
