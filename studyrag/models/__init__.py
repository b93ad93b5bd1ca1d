"""StudyRAG domain models: re-exports all public model classes.

    - material.py - course materials, processing status, chat turns
    - rag.py      - chunks, retrieval results, ingestion and answer outcomes
    - queue.py    - processing-queue jobs and statistics
"""

from __future__ import annotations

from studyrag.models.material import ChatTurn, Material, ProcessingStatus
from studyrag.models.queue import JobStatus, QueueJob, QueueStats
from studyrag.models.rag import (
    AnswerResponse,
    ChunkMetadata,
    CourseStats,
    ExtractedText,
    GeneratedAnswer,
    IngestionResult,
    IngestionStage,
    MaterialChunk,
    RetrievalResult,
    SourceCitation,
)

__all__ = [
    # material
    "ChatTurn",
    "Material",
    "ProcessingStatus",
    # queue
    "JobStatus",
    "QueueJob",
    "QueueStats",
    # rag
    "AnswerResponse",
    "ChunkMetadata",
    "CourseStats",
    "ExtractedText",
    "GeneratedAnswer",
    "IngestionResult",
    "IngestionStage",
    "MaterialChunk",
    "RetrievalResult",
    "SourceCitation",
]
