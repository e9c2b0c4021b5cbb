"""
Run records for pipeline stages.

Each ``PipelineStage.run()`` produces one ``RunMetadata``.  It carries the
full config the stage ran with (so a run can be repeated exactly), the stage's
headline numbers in ``summary`` (categories kept, leakage verdict, folds
evaluated, ...) and the outcome.  Unlike every other model in the package it
is mutable: the stage fills ``summary`` while it runs and the base class
closes the record with ``mark_success()`` or ``mark_failed()``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sales_forecaster.utils.time_utils import utcnow

PIPELINE_STAGES = ("prepare", "feature_build", "train", "leakage_audit", "cross_validate")
RUN_STATUSES = ("started", "success", "failed")


class RunMetadata(BaseModel):
    """One execution of one pipeline stage.

    Attributes:
        run_slug: UUID4 string; its first 8 characters name the record file.
        pipeline_stage: One of ``PIPELINE_STAGES``.
        status: ``started`` until the stage finishes.
        config_snapshot: ``AppConfig.model_dump(mode="json")`` at start.
        rows_processed: Count returned by the stage.
        summary: Stage-specific headline values (JSON-serializable).
        error_type: Exception class name when the stage failed.
        error_message: Exception text when the stage failed.
        started_at / finished_at: UTC timestamps.
    """

    model_config = ConfigDict(frozen=False, validate_assignment=True)

    run_slug: str
    pipeline_stage: str
    status: str = "started"
    config_snapshot: dict[str, Any]
    rows_processed: int = Field(default=0, ge=0)
    summary: dict[str, Any] = Field(default_factory=dict)
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    started_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("pipeline_stage")
    @classmethod
    def validate_pipeline_stage(cls, v: str) -> str:
        if v not in PIPELINE_STAGES:
            raise ValueError(f"Unknown pipeline_stage '{v}'. Must be one of {list(PIPELINE_STAGES)}.")
        return v

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        if v not in RUN_STATUSES:
            raise ValueError(f"Unknown status '{v}'. Must be one of {list(RUN_STATUSES)}.")
        return v

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def mark_success(self, rows_processed: int) -> None:
        self.rows_processed = rows_processed
        self.status = "success"
        self.finished_at = utcnow()

    def mark_failed(self, exc: BaseException) -> None:
        self.error_type = type(exc).__name__
        self.error_message = str(exc)
        self.status = "failed"
        self.finished_at = utcnow()
