"""RAG pipeline data models.

Defines Pydantic v2 models for material chunks, retrieval results,
ingestion outcomes, generated answers, and course statistics.  All models
use frozen config; pipeline steps derive new instances with
``model_copy(update={...})``.

How the pieces relate:

    1. INGESTION: a PDF is downloaded, extracted, cleaned and split into
       :class:`MaterialChunk` objects (``embedding`` still empty).
    2. EMBEDDING: each chunk receives its vector via ``model_copy``.
    3. STORAGE: the chunk store replaces the material's chunk set atomically.
    4. RETRIEVAL: a question is embedded and ranked against stored chunks,
       producing :class:`RetrievalResult` objects (never persisted).
    5. GENERATION: ranked results become the context of an
       :class:`AnswerResponse`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Chunks
# ---------------------------------------------------------------------------
class ChunkMetadata(BaseModel):
    """Material fields copied onto every chunk.

    Denormalized so retrieval can cite a chunk without loading its
    material.  ``material_title`` goes stale when a material is renamed
    until :meth:`~studyrag.pipeline.orchestrator.RAGPipeline.rename_material`
    refreshes it.
    """

    model_config = ConfigDict(frozen=True)

    material_title: str
    course_id: str
    source_url: str
    chunk_index: int = Field(ge=0)
    char_count: int = Field(default=0, ge=0)


class MaterialChunk(BaseModel):
    """A contiguous slice of a material's text with its embedding vector.

    Chunks are created by :mod:`studyrag.services.ingestion.chunker` with an
    empty ``embedding``; the orchestrator fills it in after the embedding
    phase.  ``id`` is ``{material_id}_chunk_{chunk_index}`` so reprocessing
    unchanged input reproduces the same identifiers.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable identifier derived from material id + index.")
    material_id: str
    chunk_index: int = Field(ge=0, description="Dense, 0-based position within the material.")
    content: str
    embedding: list[float] = Field(default_factory=list)
    metadata: ChunkMetadata

    @staticmethod
    def make_id(material_id: str, chunk_index: int) -> str:
        return f"{material_id}_chunk_{chunk_index}"


class RetrievalResult(BaseModel):
    """A stored chunk paired with its query-time relevance score."""

    model_config = ConfigDict(frozen=True)

    chunk: MaterialChunk
    relevance_score: float = Field(ge=-1.0, le=1.0)

    @property
    def title(self) -> str:
        return self.chunk.metadata.material_title

    @property
    def content(self) -> str:
        return self.chunk.content


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
class ExtractedText(BaseModel):
    """Raw text produced by one extraction strategy."""

    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int | None = Field(default=None, ge=0)
    provider_used: str = ""


# ---------------------------------------------------------------------------
# Ingestion outcome
# ---------------------------------------------------------------------------
class IngestionStage(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Stages of material ingestion, in execution order."""

    LOAD = "load"
    VALIDATE = "validate"
    FETCH = "fetch"
    EXTRACT = "extract"
    CLEAN = "clean"
    CHUNK = "chunk"
    EMBED = "embed"
    STORE = "store"
    FINALIZE = "finalize"


class IngestionResult(BaseModel):
    """Structured outcome of one :meth:`RAGPipeline.ingest` run.

    Ingestion never raises past the orchestrator; failures are reported
    here with the stage that failed and the error message.
    """

    model_config = ConfigDict(frozen=True)

    material_id: str
    success: bool
    chunks_created: int = Field(default=0, ge=0)
    page_count: int | None = None
    error: str | None = None
    failed_stage: IngestionStage | None = None
    duration_seconds: float = Field(default=0.0, ge=0.0)


# ---------------------------------------------------------------------------
# Answers
# ---------------------------------------------------------------------------
class SourceCitation(BaseModel):
    """A chunk that was included in the answer context."""

    model_config = ConfigDict(frozen=True)

    material_id: str
    material_title: str
    chunk_index: int = Field(ge=0)
    relevance_score: float = Field(ge=-1.0, le=1.0)


class GeneratedAnswer(BaseModel):
    """Output of the answer generator before follow-ups are attached."""

    model_config = ConfigDict(frozen=True)

    text: str
    sources: list[SourceCitation] = Field(default_factory=list)
    grounded: bool = Field(
        default=False,
        description="True when the text came from the model with at least one source in context.",
    )


class AnswerResponse(BaseModel):
    """Learner-facing answer returned by :meth:`RAGPipeline.answer`."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[SourceCitation] = Field(default_factory=list)
    follow_up_questions: list[str] = Field(default_factory=list)
    confidence: float = Field(
        default=0.0,
        ge=-1.0,
        le=1.0,
        description="Relevance score of the best retrieved chunk (0 when none).",
    )
    is_out_of_scope: bool = Field(
        default=False, description="True when no stored chunk met the relevance threshold."
    )


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------
class CourseStats(BaseModel):
    """Ingestion coverage for one course, or for every course."""

    model_config = ConfigDict(frozen=True)

    course_id: str | None = None
    total_materials: int = Field(default=0, ge=0)
    processed_materials: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=0, ge=0)
    average_chunks_per_material: float = Field(default=0.0, ge=0.0)
