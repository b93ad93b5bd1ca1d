"""Custom exception hierarchy for StudyRAG.

All application exceptions inherit from :class:`StudyRagError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "pymupdf", "sqlite") caused the failure.

The hierarchy is organized by pipeline domain:

    StudyRagError  (base -- catch-all for any StudyRAG error)
    +-- IngestionError           (any failure while ingesting a material)
    |   +-- ValidationError      (bad / oversized / wrong-type source)
    |   +-- DownloadError        (network or timeout after retries)
    |   +-- ParseError           (every extraction strategy failed)
    |   +-- EmptyContentError    (nothing extractable after cleaning)
    |   +-- EmbeddingError       (embedding provider failure)
    |   +-- PersistenceError     (chunk store / repository write failure)
    +-- LLMError                 (any LLM API call failure)
    +-- PipelineError            (orchestration / queue misuse)
    +-- ConfigurationError       (startup / missing config)

Every ingestion-stage error is fatal to the run that raised it.  The
orchestrator catches them at the ingestion boundary and records the message
on the material instead of re-raising.
"""


class StudyRagError(Exception):
    """Base exception for all StudyRAG errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class IngestionError(StudyRagError):
    """Raised when any stage of material ingestion fails."""

    def __init__(
        self,
        message: str = "Material ingestion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ValidationError(IngestionError):
    """Raised when a source URL is unreachable, mistyped, or too large.

    Validation failures are never retried.
    """

    def __init__(
        self,
        message: str = "Source failed validation",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class DownloadError(IngestionError):
    """Raised when a document download fails.

    ``transient`` marks failures worth retrying (timeouts, connection
    resets, 5xx).  The fetcher raises a non-transient ``DownloadError``
    once its retry budget is exhausted.
    """

    def __init__(
        self,
        message: str = "Document download failed",
        provider_name: str | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._transient = transient

    @property
    def transient(self) -> bool:
        return self._transient


class ParseError(IngestionError):
    """Raised when every text extraction strategy fails."""

    def __init__(
        self,
        message: str = "Could not extract text from document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyContentError(IngestionError):
    """Raised when a document yields no usable text after cleaning."""

    def __init__(
        self,
        message: str = "Document contains no extractable text",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(IngestionError):
    """Raised when the embedding provider fails or returns malformed vectors.

    Also raised at query time; the query path converts it to fallback text.
    """

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PersistenceError(IngestionError):
    """Raised when the chunk store or material repository cannot be written."""

    def __init__(
        self,
        message: str = "Storage operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / orchestration errors
# ---------------------------------------------------------------------------

class LLMError(StudyRagError):
    """Raised when an LLM API call fails or returns an unusable response."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class PipelineError(StudyRagError):
    """Raised when pipeline orchestration fails (unknown material, bad job, etc.)."""

    def __init__(
        self,
        message: str = "Pipeline orchestration failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(StudyRagError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
