"""Processing queue models.

Jobs are kept in memory by :class:`~studyrag.pipeline.processing_queue.ProcessingQueue`;
every state change produces a new frozen :class:`QueueJob` via ``model_copy``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """State of a queued ingestion job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class QueueJob(BaseModel):
    """One queued ingestion request for a material."""

    model_config = ConfigDict(frozen=True)

    id: str
    material_id: str
    status: JobStatus = JobStatus.PENDING
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=3, ge=1)
    error: str | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def can_retry(self) -> bool:
        return self.attempts < self.max_attempts


class QueueStats(BaseModel):
    """Counts of jobs by status."""

    model_config = ConfigDict(frozen=True)

    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    total: int = 0
    is_processing: bool = False
