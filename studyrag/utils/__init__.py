"""Utility modules for StudyRAG.

- **errors** -- Domain exception hierarchy rooted at StudyRagError; each
  ingestion stage raises its own subclass so the orchestrator can record
  exactly which stage failed.
- **logging** -- structlog setup with a console renderer in development and
  JSON in production, plus contextvar binding helpers.
- **concurrency** -- per-material locks and typed timeouts for provider calls.
- **similarity** -- numpy cosine similarity used for retrieval ranking.
"""

from studyrag.utils.concurrency import KeyedLock, with_timeout
from studyrag.utils.errors import (
    ConfigurationError,
    DownloadError,
    EmbeddingError,
    EmptyContentError,
    IngestionError,
    LLMError,
    ParseError,
    PersistenceError,
    PipelineError,
    StudyRagError,
    ValidationError,
)
from studyrag.utils.logging import bind_context, clear_context, configure_logging, get_logger
from studyrag.utils.similarity import cosine_similarities, cosine_similarity

__all__ = [
    "ConfigurationError",
    "DownloadError",
    "EmbeddingError",
    "EmptyContentError",
    "IngestionError",
    "KeyedLock",
    "LLMError",
    "ParseError",
    "PersistenceError",
    "PipelineError",
    "StudyRagError",
    "ValidationError",
    "bind_context",
    "clear_context",
    "configure_logging",
    "cosine_similarities",
    "cosine_similarity",
    "get_logger",
    "with_timeout",
]
