"""Material and conversation models.

A :class:`Material` is one registered course document.  Its processing
fields are written only by the ingestion orchestrator; the query path
reads chunks, never materials.

Lifecycle::

    PENDING ──► PROCESSING ──► COMPLETED
                    │
                    └────────► FAILED ──(reprocess)──► PROCESSING
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ProcessingStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Ingestion state of a material."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Material(BaseModel):
    """A course document registered for ingestion."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique material identifier.")
    title: str = Field(description="Human-readable title shown in citations.")
    course_id: str = Field(description="Identifier of the owning course.")
    source_url: str = Field(description="Location the PDF is downloaded from.")
    processing_status: ProcessingStatus = Field(default=ProcessingStatus.PENDING)
    processed: bool = Field(
        default=False,
        description="True once at least one ingestion run has completed successfully.",
    )
    processing_error: str | None = Field(
        default=None, description="Message of the last failed ingestion run."
    )
    chunk_count: int = Field(default=0, ge=0, description="Chunks stored for this material.")
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class ChatTurn(BaseModel):
    """One earlier question/answer exchange, used as short-term memory."""

    model_config = ConfigDict(frozen=True)

    question: str = Field(min_length=1)
    answer: str = Field(default="")
