"""
Base class for pipeline stages.

A stage is constructed with an ``AppConfig`` and driven through ``run()``,
which opens a ``RunMetadata`` record, hands it to the subclass's
``_execute()``, closes it as success or failure and writes it to
``<outputs_dir>/runs/<stage>_<YYYYmmddTHHMMSS>_<slug8>.json``.  Failures are
recorded and then re-raised; the CLI turns them into ``[ERROR]`` lines.

Usage::

    class PrepareDataStage(PipelineStage):
        stage_name = "prepare"

        def _execute(self, run: RunMetadata, **kwargs) -> int:
            run.summary["categories"] = [...]
            return len(records)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from uuid import uuid4

from sales_forecaster.config import AppConfig
from sales_forecaster.models.meta import RunMetadata
from sales_forecaster.utils.time_utils import utcnow

logger = logging.getLogger(__name__)

RUNS_SUBDIR = "runs"


class PipelineStage(ABC):
    """Common run lifecycle for every stage.

    Subclasses set ``stage_name`` (one of ``models.meta.PIPELINE_STAGES``) and
    implement ``_execute(run, **kwargs)`` returning the number of rows or
    records the stage produced.
    """

    stage_name: str

    def __init__(self, config: AppConfig, outputs_dir: str | None = None) -> None:
        self.config = config
        self.outputs_dir = Path(outputs_dir or config.data.outputs_dir)

    def run(self, **kwargs) -> RunMetadata:
        """Execute the stage and return its closed run record.

        Raises:
            Exception: Whatever ``_execute()`` raised, after the failed run
                record has been written.
        """
        run = RunMetadata(
            run_slug=str(uuid4()),
            pipeline_stage=self.stage_name,
            config_snapshot=self.config.model_dump(mode="json"),
            started_at=utcnow(),
        )
        logger.info("Stage [%s] starting | run_slug=%s", self.stage_name, run.run_slug)

        try:
            rows = self._execute(run=run, **kwargs)
        except Exception as exc:
            run.mark_failed(exc)
            logger.error(
                "Stage [%s] failed after %.1fs: %s: %s | run_slug=%s",
                self.stage_name, run.duration_seconds, run.error_type, exc, run.run_slug,
            )
            self._persist_run(run)
            raise

        run.mark_success(rows)
        logger.info(
            "Stage [%s] finished in %.1fs | rows=%d | run_slug=%s",
            self.stage_name, run.duration_seconds, rows, run.run_slug,
        )
        self._persist_run(run)
        return run

    @abstractmethod
    def _execute(self, run: RunMetadata, **kwargs) -> int:
        """Do the stage's work, filling ``run.summary``; return the row count."""

    def run_record_path(self, run: RunMetadata) -> Path:
        stamp = run.started_at.strftime("%Y%m%dT%H%M%S")
        return self.outputs_dir / RUNS_SUBDIR / f"{self.stage_name}_{stamp}_{run.run_slug[:8]}.json"

    def _persist_run(self, run: RunMetadata) -> None:
        # A write failure is logged only; it must not replace the stage's own error.
        path = self.run_record_path(run)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(run.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            logger.error("Could not write run record %s: %s", path, exc)


def load_run_records(outputs_dir: Path, stage_name: Optional[str] = None) -> list[RunMetadata]:
    """Read persisted run records, oldest first.

    Args:
        outputs_dir: The directory stages were given as ``outputs_dir``.
        stage_name:  Only records of this stage, if given.
    """
    runs_dir = Path(outputs_dir) / RUNS_SUBDIR
    if not runs_dir.is_dir():
        return []
    pattern = f"{stage_name}_*.json" if stage_name else "*.json"
    records = [
        RunMetadata.model_validate_json(path.read_text(encoding="utf-8"))
        for path in runs_dir.glob(pattern)
    ]
    return sorted(records, key=lambda r: r.started_at)
