"""Central orchestrator for material ingestion and question answering.

Ingestion runs one material through a fixed sequence of stages::

    LOAD → VALIDATE → FETCH → EXTRACT → CLEAN → CHUNK → EMBED → STORE → FINALIZE

and drives the material's status through::

    pending ──► processing ──► completed
                    │
                    └────────► failed

Every stage error is caught here.  The material is marked ``failed`` with
the message, and the caller receives an :class:`IngestionResult` instead of
an exception.  Chunks are only written at STORE, in one atomic replace, so
a failed run leaves the previous chunk set (if any) untouched.

Runs for the same material are serialized by a per-material lock; runs for
different materials may proceed concurrently.

The query path (:meth:`RAGPipeline.answer`) performs no writes apart from
the answer cache and always returns an :class:`AnswerResponse`.
"""

from __future__ import annotations

import hashlib
import json
import time
import uuid
from datetime import datetime, timezone

import structlog

from studyrag.interfaces.cache_provider import ICacheProvider
from studyrag.interfaces.chunk_store import IChunkStore
from studyrag.interfaces.material_repository import IMaterialRepository
from studyrag.models.material import ChatTurn, Material, ProcessingStatus
from studyrag.models.rag import AnswerResponse, CourseStats, IngestionResult, IngestionStage
from studyrag.services.answer_generator import APOLOGY_MESSAGE, AnswerGenerator
from studyrag.services.follow_up_suggester import FollowUpSuggester
from studyrag.services.ingestion.chunker import TextChunker
from studyrag.services.ingestion.cleaner import TextCleaner
from studyrag.services.ingestion.embedder import BatchEmbedder
from studyrag.services.ingestion.extractor import TextExtractor
from studyrag.services.ingestion.fetcher import DocumentFetcher
from studyrag.services.ingestion.validator import SourceValidator
from studyrag.services.retriever import Retriever
from studyrag.utils.concurrency import KeyedLock
from studyrag.utils.errors import EmptyContentError, PipelineError, StudyRagError
from studyrag.utils.logging import bind_context, clear_context, get_logger

HELP_SUGGESTIONS: tuple[str, ...] = (
    "How do I upload course materials?",
    "What file formats are supported?",
    "How long does material processing take?",
)
STARTER_FALLBACKS: tuple[str, ...] = (
    "What topics are covered in this course?",
    "Can you explain the key concepts?",
    "Help me understand the main ideas",
)
_MAX_STARTERS = 10


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


def _error_message(exc: Exception) -> str:
    if isinstance(exc, StudyRagError):
        return str(exc)
    return f"{type(exc).__name__}: {exc}"


class RAGPipeline:
    """Coordinates ingestion stages, storage and the query services.

    All collaborators are injected; :func:`studyrag.pipeline.builder.build_components`
    wires the production set from :class:`~studyrag.config.settings.Settings`.
    """

    def __init__(
        self,
        materials: IMaterialRepository,
        chunk_store: IChunkStore,
        validator: SourceValidator,
        fetcher: DocumentFetcher,
        extractor: TextExtractor,
        cleaner: TextCleaner,
        chunker: TextChunker,
        embedder: BatchEmbedder,
        retriever: Retriever,
        answer_generator: AnswerGenerator,
        follow_up_suggester: FollowUpSuggester,
        cache: ICacheProvider | None = None,
    ) -> None:
        self._materials = materials
        self._chunk_store = chunk_store
        self._validator = validator
        self._fetcher = fetcher
        self._extractor = extractor
        self._cleaner = cleaner
        self._chunker = chunker
        self._embedder = embedder
        self._retriever = retriever
        self._answer_generator = answer_generator
        self._follow_up_suggester = follow_up_suggester
        self._cache = cache
        self._locks = KeyedLock()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def initialize(self) -> None:
        """Create storage tables."""
        await self._materials.initialize()
        await self._chunk_store.initialize()

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------

    async def register_material(
        self,
        title: str,
        course_id: str,
        source_url: str,
        material_id: str | None = None,
    ) -> Material:
        """Register a new material in ``pending`` state."""
        material = Material(
            id=material_id or uuid.uuid4().hex,
            title=title,
            course_id=course_id,
            source_url=source_url,
        )
        stored = await self._materials.add(material)
        self._logger.info(
            "material_registered",
            material_id=stored.id,
            course_id=stored.course_id,
        )
        return stored

    async def get_material(self, material_id: str) -> Material | None:
        return await self._materials.get(material_id)

    async def list_materials(self, course_id: str | None = None) -> list[Material]:
        return await self._materials.list_materials(course_id)

    async def rename_material(self, material_id: str, title: str) -> Material:
        """Rename a material and refresh the title copied onto its chunks.

        Raises
        ------
        PipelineError
            If the material does not exist.
        """
        if await self._materials.get(material_id) is None:
            raise PipelineError(f"Material not found: {material_id}")

        material = await self._materials.rename(material_id, title)
        updated = await self._chunk_store.update_material_title(material_id, title)
        if self._cache is not None:
            await self._cache.clear()
        self._logger.info("material_renamed", material_id=material_id, chunks_updated=updated)
        return material

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def ingest(self, material_id: str) -> IngestionResult:
        """Run the full ingestion pipeline for one material.

        Never raises.  Reprocessing a material replaces all of its chunks.

        Returns
        -------
        IngestionResult
            ``success`` with the chunk count, or the failing stage and
            error message.
        """
        async with self._locks.hold(material_id):
            bind_context(material_id=material_id)
            try:
                return await self._run_ingestion(material_id)
            finally:
                clear_context("material_id")

    async def _run_ingestion(self, material_id: str) -> IngestionResult:
        started = time.monotonic()

        try:
            material = await self._materials.get(material_id)
        except Exception as exc:
            self._logger.error("ingestion_load_failed", error=_error_message(exc))
            return self._result(material_id, started, error=_error_message(exc),
                                failed_stage=IngestionStage.LOAD)
        if material is None:
            self._logger.warning("ingestion_unknown_material")
            return self._result(material_id, started, error=f"Material not found: {material_id}",
                                failed_stage=IngestionStage.LOAD)

        try:
            await self._materials.update_processing(
                material_id,
                ProcessingStatus.PROCESSING,
                error=None,
                started_at=_utcnow(),
            )
        except Exception as exc:
            self._logger.error("ingestion_status_write_failed", error=_error_message(exc))
            return self._result(material_id, started, error=_error_message(exc),
                                failed_stage=IngestionStage.LOAD)

        self._logger.info("ingestion_started", source_url=material.source_url)

        stage = IngestionStage.VALIDATE
        page_count: int | None = None
        try:
            self._log_stage(stage)
            await self._validator.validate(material.source_url)

            stage = IngestionStage.FETCH
            self._log_stage(stage)
            data = await self._fetcher.fetch(material.source_url)

            stage = IngestionStage.EXTRACT
            self._log_stage(stage, size_bytes=len(data))
            extracted = await self._extractor.extract(data)
            page_count = extracted.page_count

            stage = IngestionStage.CLEAN
            self._log_stage(stage, provider=extracted.provider_used)
            text = self._cleaner.clean(extracted.text)

            stage = IngestionStage.CHUNK
            self._log_stage(stage, chars=len(text))
            chunks = self._chunker.chunk(text, material)
            if not chunks:
                raise EmptyContentError("Chunking produced no chunks")

            stage = IngestionStage.EMBED
            self._log_stage(stage, chunks=len(chunks))
            vectors = await self._embedder.embed([c.content for c in chunks])
            chunks = [
                chunk.model_copy(update={"embedding": vector})
                for chunk, vector in zip(chunks, vectors)
            ]

            stage = IngestionStage.STORE
            self._log_stage(stage)
            written = await self._chunk_store.replace_chunks(material_id, chunks)

            stage = IngestionStage.FINALIZE
            await self._materials.update_processing(
                material_id,
                ProcessingStatus.COMPLETED,
                error=None,
                processed=True,
                chunk_count=written,
                completed_at=_utcnow(),
            )
        except Exception as exc:
            return await self._fail(material_id, started, stage, exc, page_count)

        if self._cache is not None:
            await self._cache.clear()

        result = self._result(
            material_id,
            started,
            success=True,
            chunks_created=written,
            page_count=page_count,
        )
        self._logger.info(
            "ingestion_completed",
            chunks=written,
            pages=page_count,
            duration_seconds=result.duration_seconds,
        )
        return result

    async def _fail(
        self,
        material_id: str,
        started: float,
        stage: IngestionStage,
        exc: Exception,
        page_count: int | None,
    ) -> IngestionResult:
        message = _error_message(exc)
        if isinstance(exc, StudyRagError):
            self._logger.warning("ingestion_failed", stage=stage.value, error=message)
        else:
            self._logger.exception("ingestion_failed", stage=stage.value, error=message)

        try:
            await self._materials.update_processing(
                material_id,
                ProcessingStatus.FAILED,
                error=message,
                completed_at=_utcnow(),
            )
        except Exception as write_exc:
            self._logger.error(
                "ingestion_failure_not_recorded",
                error=_error_message(write_exc),
            )

        return self._result(
            material_id,
            started,
            error=message,
            failed_stage=stage,
            page_count=page_count,
        )

    def _log_stage(self, stage: IngestionStage, **details: object) -> None:
        self._logger.debug("ingestion_stage", stage=stage.value, **details)

    @staticmethod
    def _result(material_id: str, started: float, **fields: object) -> IngestionResult:
        return IngestionResult(
            material_id=material_id,
            success=bool(fields.pop("success", False)),
            duration_seconds=round(time.monotonic() - started, 3),
            **fields,
        )

    # ------------------------------------------------------------------
    # Question answering
    # ------------------------------------------------------------------

    async def answer(
        self,
        question: str,
        history: list[ChatTurn] | None = None,
        course_id: str | None = None,
    ) -> AnswerResponse:
        """Answer a learner's question from the ingested materials.

        Never raises for provider or storage failures; those produce an
        apology answer.  Raises :class:`PipelineError` for a blank question.
        """
        question = question.strip()
        if not question:
            raise PipelineError("Question must not be empty")
        history = history or []

        cache_key = self._cache_key(question, history, course_id)
        if self._cache is not None:
            cached = await self._cache.get(cache_key)
            if cached:
                self._logger.debug("answer_cache_hit", question=question[:50])
                return AnswerResponse.model_validate_json(cached)

        try:
            results = await self._retriever.retrieve(question, course_id=course_id)
        except Exception as exc:
            self._logger.error(
                "answer_retrieval_failed",
                error=_error_message(exc),
                course_id=course_id,
            )
            return AnswerResponse(answer=APOLOGY_MESSAGE)

        generated = await self._answer_generator.generate(question, results, history)

        # Nothing retrieved, or nothing that fit the context: no grounded answer.
        if not generated.sources:
            return AnswerResponse(
                answer=generated.text,
                follow_up_questions=list(HELP_SUGGESTIONS),
                confidence=0.0,
                is_out_of_scope=True,
            )

        follow_ups: list[str] = []
        if generated.grounded:
            follow_ups = await self._follow_up_suggester.suggest(
                question, generated.text, generated.sources
            )

        response = AnswerResponse(
            answer=generated.text,
            sources=generated.sources,
            follow_up_questions=follow_ups,
            confidence=results[0].relevance_score,
        )
        if self._cache is not None and generated.grounded:
            await self._cache.set(cache_key, response.model_dump_json())
        return response

    @staticmethod
    def _cache_key(question: str, history: list[ChatTurn], course_id: str | None) -> str:
        payload = json.dumps(
            {
                "course_id": course_id,
                "question": question.lower(),
                "history": [[t.question, t.answer] for t in history],
            },
            sort_keys=True,
        )
        return f"answer:{hashlib.sha256(payload.encode()).hexdigest()}"

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_course_stats(self, course_id: str | None = None) -> CourseStats:
        """Return ingestion coverage for *course_id* (all courses when ``None``)."""
        materials = await self._materials.list_materials(course_id)
        processed = sum(1 for m in materials if m.processed)
        total_chunks = await self._chunk_store.count_chunks(course_id=course_id)
        return CourseStats(
            course_id=course_id,
            total_materials=len(materials),
            processed_materials=processed,
            total_chunks=total_chunks,
            average_chunks_per_material=round(total_chunks / processed, 1) if processed else 0.0,
        )

    async def get_query_suggestions(self, course_id: str | None = None) -> list[str]:
        """Starter questions, one per material (at most ten) in *course_id*.

        Falls back to :data:`STARTER_FALLBACKS` when materials cannot be read.
        """
        try:
            materials = await self._materials.list_materials(course_id)
        except Exception as exc:
            self._logger.warning(
                "query_suggestions_failed",
                error=_error_message(exc),
                course_id=course_id,
            )
            return list(STARTER_FALLBACKS)
        return [f"Tell me about {m.title.lower()}" for m in materials[:_MAX_STARTERS]]
