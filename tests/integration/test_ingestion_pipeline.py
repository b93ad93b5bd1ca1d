"""End-to-end tests for RAGPipeline over SQLite with fake providers.

Real components run everywhere except the network and the model APIs:
PDFs are generated with PyMuPDF and served from memory, embeddings are
deterministic bag-of-words vectors, and the LLM replays canned replies.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from conftest import FakeDocumentSource, FakeEmbeddingProvider, FakeLLMProvider, make_pdf
from studyrag.models.material import ChatTurn, ProcessingStatus
from studyrag.models.rag import ExtractedText, IngestionStage
from studyrag.pipeline.orchestrator import HELP_SUGGESTIONS, STARTER_FALLBACKS, RAGPipeline
from studyrag.providers.cache.memory_cache import MemoryCacheProvider
from studyrag.providers.extraction import default_extraction_providers
from studyrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from studyrag.providers.store.sqlite_material_repository import SQLiteMaterialRepository
from studyrag.services.answer_generator import APOLOGY_MESSAGE, NO_MATERIAL_MESSAGE, AnswerGenerator
from studyrag.services.follow_up_suggester import FALLBACK_SUGGESTIONS, FollowUpSuggester
from studyrag.services.ingestion import (
    BatchEmbedder,
    DocumentFetcher,
    SourceValidator,
    TextChunker,
    TextCleaner,
    TextExtractor,
)
from studyrag.services.retriever import Retriever
from studyrag.utils.errors import DownloadError, PersistenceError, PipelineError

MITO_URL = "https://files.example.com/mitochondria.pdf"
PLANT_URL = "https://files.example.com/plants.pdf"

MITO_TEXT = (
    "Mitochondria are the powerhouse of the cell. "
    "Mitochondria convert glucose and oxygen into ATP for the cell."
)
PLANT_TEXT = (
    "Chloroplasts capture sunlight in plant leaves. "
    "Photosynthesis turns carbon dioxide and water into sugar."
)

IN_SCOPE_QUESTION = "What do mitochondria convert glucose and oxygen into?"
OUT_OF_SCOPE_QUESTION = "Describe medieval castle architecture"

FOLLOW_UP_REPLY = (
    "1. What is cellular respiration exactly?\n"
    "2. Why do muscle cells need more ATP?\n"
    "3. How is ATP used by the cell?"
)


@pytest.fixture
def embedding() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider(dimension=256)


@pytest.fixture
def llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def source() -> FakeDocumentSource:
    source = FakeDocumentSource()
    source.add(MITO_URL, make_pdf([MITO_TEXT]))
    source.add(PLANT_URL, make_pdf([PLANT_TEXT]))
    return source


@pytest.fixture
def cache() -> MemoryCacheProvider:
    return MemoryCacheProvider()


async def _build_pipeline(
    db_path: Path,
    embedding: FakeEmbeddingProvider,
    llm: FakeLLMProvider,
    source: FakeDocumentSource,
    cache: MemoryCacheProvider,
    context_char_budget: int = 8000,
) -> RAGPipeline:
    chunk_store = SQLiteChunkStore(db_path=db_path)
    rag = RAGPipeline(
        materials=SQLiteMaterialRepository(db_path=db_path),
        chunk_store=chunk_store,
        validator=SourceValidator(source),
        fetcher=DocumentFetcher(source, max_attempts=3, backoff_base=0),
        extractor=TextExtractor(default_extraction_providers()),
        cleaner=TextCleaner(),
        chunker=TextChunker(),
        embedder=BatchEmbedder(embedding, batch_size=10, batch_delay=0),
        retriever=Retriever(embedding, chunk_store, max_results=5, threshold=0.3),
        answer_generator=AnswerGenerator(llm, context_char_budget=context_char_budget),
        follow_up_suggester=FollowUpSuggester(llm),
        cache=cache,
    )
    await rag.initialize()
    return rag


@pytest_asyncio.fixture
async def pipeline(
    db_path: Path,
    embedding: FakeEmbeddingProvider,
    llm: FakeLLMProvider,
    source: FakeDocumentSource,
    cache: MemoryCacheProvider,
) -> RAGPipeline:
    return await _build_pipeline(db_path, embedding, llm, source, cache)


async def _register(rag: RAGPipeline, material_id: str = "mito", url: str = MITO_URL, **kwargs: str):
    return await rag.register_material(
        title=kwargs.get("title", "Mitochondria Notes"),
        course_id=kwargs.get("course_id", "bio101"),
        source_url=url,
        material_id=material_id,
    )


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------


class TestIngestion:
    @pytest.mark.asyncio
    async def test_successful_ingestion(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline)

        result = await pipeline.ingest("mito")

        assert result.success is True
        assert result.chunks_created == 1
        assert result.page_count == 1
        assert result.error is None

        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.COMPLETED
        assert material.processed is True
        assert material.chunk_count == 1
        assert material.processing_error is None
        assert material.processing_started_at is not None
        assert material.processing_completed_at is not None

    @pytest.mark.asyncio
    async def test_reprocessing_replaces_chunks(self, pipeline: RAGPipeline, db_path: Path) -> None:
        await _register(pipeline)
        store = SQLiteChunkStore(db_path=db_path)

        await pipeline.ingest("mito")
        first = await store.query_chunks()
        await pipeline.ingest("mito")
        second = await store.query_chunks()

        assert [c.id for c in second] == [c.id for c in first] == ["mito_chunk_0"]
        assert second == first

    @pytest.mark.asyncio
    async def test_unknown_material(self, pipeline: RAGPipeline) -> None:
        result = await pipeline.ingest("missing")

        assert result.success is False
        assert result.failed_stage == IngestionStage.LOAD
        assert "not found" in (result.error or "")

    @pytest.mark.asyncio
    async def test_unreachable_source_fails_validation(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline, url="https://files.example.com/missing.pdf")

        result = await pipeline.ingest("mito")

        assert result.failed_stage == IngestionStage.VALIDATE
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.FAILED
        assert "HTTP 404" in (material.processing_error or "")
        assert material.processed is False

    @pytest.mark.asyncio
    async def test_wrong_content_type_fails_validation(
        self, pipeline: RAGPipeline, source: FakeDocumentSource
    ) -> None:
        url = "https://files.example.com/page.html"
        source.add(url, b"<html>hello</html>", content_type="text/html")
        await _register(pipeline, url=url)

        result = await pipeline.ingest("mito")

        assert result.failed_stage == IngestionStage.VALIDATE
        assert "not a PDF" in (result.error or "")

    @pytest.mark.asyncio
    async def test_corrupt_pdf_fails_extraction(
        self, pipeline: RAGPipeline, source: FakeDocumentSource
    ) -> None:
        url = "https://files.example.com/corrupt.pdf"
        source.add(url, b"this is not a pdf at all")
        await _register(pipeline, url=url)

        result = await pipeline.ingest("mito")

        assert result.failed_stage == IngestionStage.EXTRACT
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.FAILED

    @pytest.mark.asyncio
    async def test_blank_pdf_fails_extraction(
        self, pipeline: RAGPipeline, source: FakeDocumentSource
    ) -> None:
        url = "https://files.example.com/blank.pdf"
        source.add(url, make_pdf([""]))
        await _register(pipeline, url=url)

        result = await pipeline.ingest("mito")

        assert result.failed_stage == IngestionStage.EXTRACT
        assert result.page_count is None

    @pytest.mark.asyncio
    async def test_transient_download_failure_is_retried(
        self, pipeline: RAGPipeline, source: FakeDocumentSource
    ) -> None:
        source.failures = [DownloadError("read timeout", transient=True)]
        await _register(pipeline)

        result = await pipeline.ingest("mito")

        assert result.success is True
        assert source.fetch_calls == 2

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_previous_chunks(
        self,
        pipeline: RAGPipeline,
        embedding: FakeEmbeddingProvider,
        db_path: Path,
    ) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")

        embedding.fail = True
        result = await pipeline.ingest("mito")

        assert result.failed_stage == IngestionStage.EMBED
        assert await SQLiteChunkStore(db_path=db_path).count_chunks(material_id="mito") == 1
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.FAILED
        assert material.processed is True
        assert "fake embedding outage" in (material.processing_error or "")

    @pytest.mark.asyncio
    async def test_exhausted_download_retries_fail_fetch(
        self,
        pipeline: RAGPipeline,
        source: FakeDocumentSource,
        db_path: Path,
    ) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        before = await SQLiteChunkStore(db_path=db_path).query_chunks()

        source.failures = [DownloadError("connection reset", transient=True) for _ in range(3)]
        result = await pipeline.ingest("mito")

        assert result.success is False
        assert result.failed_stage == IngestionStage.FETCH
        assert source.fetch_calls == 4
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.FAILED
        assert "after 3 attempts" in (material.processing_error or "")
        assert await SQLiteChunkStore(db_path=db_path).query_chunks() == before

    @pytest.mark.asyncio
    async def test_text_empty_after_cleaning_fails_clean(
        self,
        pipeline: RAGPipeline,
        db_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        before = await SQLiteChunkStore(db_path=db_path).query_chunks()

        garbage = ExtractedText(text="\ufffd\ufffd \x07\x00", page_count=1, provider_used="pymupdf_text")
        monkeypatch.setattr(TextExtractor, "extract", AsyncMock(return_value=garbage))
        result = await pipeline.ingest("mito")

        assert result.failed_stage == IngestionStage.CLEAN
        assert result.page_count == 1
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.FAILED
        assert "No extractable text" in (material.processing_error or "")
        assert await SQLiteChunkStore(db_path=db_path).query_chunks() == before

    @pytest.mark.asyncio
    async def test_chunk_write_failure_fails_store(
        self,
        pipeline: RAGPipeline,
        db_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        before = await SQLiteChunkStore(db_path=db_path).query_chunks()

        monkeypatch.setattr(
            SQLiteChunkStore,
            "replace_chunks",
            AsyncMock(side_effect=PersistenceError("disk I/O error", provider_name="sqlite")),
        )
        result = await pipeline.ingest("mito")

        assert result.success is False
        assert result.failed_stage == IngestionStage.STORE
        assert result.error == "[sqlite] disk I/O error"
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.FAILED
        assert material.processing_error == "[sqlite] disk I/O error"
        assert await SQLiteChunkStore(db_path=db_path).query_chunks() == before

    @pytest.mark.asyncio
    async def test_failed_material_can_be_reprocessed(
        self, pipeline: RAGPipeline, source: FakeDocumentSource
    ) -> None:
        url = "https://files.example.com/later.pdf"
        await _register(pipeline, url=url)
        assert (await pipeline.ingest("mito")).success is False

        source.add(url, make_pdf([MITO_TEXT]))
        result = await pipeline.ingest("mito")

        assert result.success is True
        material = await pipeline.get_material("mito")
        assert material is not None
        assert material.processing_status == ProcessingStatus.COMPLETED
        assert material.processing_error is None

    @pytest.mark.asyncio
    async def test_duplicate_registration(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline)
        with pytest.raises(PersistenceError):
            await _register(pipeline)


# ---------------------------------------------------------------------------
# Answering
# ---------------------------------------------------------------------------


class TestAnswering:
    @pytest.mark.asyncio
    async def test_grounded_answer_with_follow_ups(
        self, pipeline: RAGPipeline, llm: FakeLLMProvider
    ) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        llm.responses = ["They convert them into ATP.", FOLLOW_UP_REPLY]

        response = await pipeline.answer(IN_SCOPE_QUESTION, course_id="bio101")

        assert response.answer == "They convert them into ATP."
        assert response.is_out_of_scope is False
        assert [s.material_title for s in response.sources] == ["Mitochondria Notes"]
        assert response.follow_up_questions == [
            "What is cellular respiration exactly?",
            "Why do muscle cells need more ATP?",
            "How is ATP used by the cell?",
        ]
        assert response.confidence == pytest.approx(response.sources[0].relevance_score)
        assert response.confidence >= 0.3
        assert "[Source: Mitochondria Notes]" in llm.calls[0]["system_prompt"]

    @pytest.mark.asyncio
    async def test_out_of_scope_question(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")

        response = await pipeline.answer(OUT_OF_SCOPE_QUESTION)

        assert response.answer == NO_MATERIAL_MESSAGE
        assert response.is_out_of_scope is True
        assert response.sources == []
        assert response.confidence == 0.0
        assert response.follow_up_questions == list(HELP_SUGGESTIONS)
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_empty_corpus(self, pipeline: RAGPipeline, embedding: FakeEmbeddingProvider) -> None:
        response = await pipeline.answer(IN_SCOPE_QUESTION)

        assert response.is_out_of_scope is True
        assert embedding.calls == []

    @pytest.mark.asyncio
    async def test_course_scope(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")

        response = await pipeline.answer(IN_SCOPE_QUESTION, course_id="chem200")

        assert response.is_out_of_scope is True

    @pytest.mark.asyncio
    async def test_answers_are_cached(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        llm.responses = ["They convert them into ATP.", FOLLOW_UP_REPLY]

        first = await pipeline.answer(IN_SCOPE_QUESTION)
        second = await pipeline.answer(IN_SCOPE_QUESTION.upper())

        assert second == first
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_history_changes_cache_key(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")

        await pipeline.answer(IN_SCOPE_QUESTION)
        await pipeline.answer(IN_SCOPE_QUESTION, history=[ChatTurn(question="What is a cell?", answer="A unit.")])

        assert len(llm.calls) == 4
        assert "Learner: What is a cell?" in llm.calls[2]["system_prompt"]

    @pytest.mark.asyncio
    async def test_ingestion_invalidates_cache(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        await pipeline.answer(IN_SCOPE_QUESTION)

        await _register(pipeline, material_id="plants", url=PLANT_URL, title="Plant Notes")
        await pipeline.ingest("plants")
        await pipeline.answer(IN_SCOPE_QUESTION)

        assert len(llm.calls) == 4

    @pytest.mark.asyncio
    async def test_llm_failure_returns_apology(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        llm.fail = True

        response = await pipeline.answer(IN_SCOPE_QUESTION)
        await pipeline.answer(IN_SCOPE_QUESTION)

        assert response.answer == APOLOGY_MESSAGE
        assert len(response.sources) == 1
        assert response.follow_up_questions == []
        assert response.is_out_of_scope is False
        assert len(llm.calls) == 2

    @pytest.mark.asyncio
    async def test_follow_up_failure_uses_fallbacks(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        llm.responses = ["They convert them into ATP.", "no list here"]

        response = await pipeline.answer(IN_SCOPE_QUESTION)

        assert response.follow_up_questions == list(FALLBACK_SUGGESTIONS)

    @pytest.mark.asyncio
    async def test_retrieval_failure_returns_apology(
        self,
        pipeline: RAGPipeline,
        embedding: FakeEmbeddingProvider,
        llm: FakeLLMProvider,
    ) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        embedding.fail = True

        response = await pipeline.answer(IN_SCOPE_QUESTION)

        assert response.answer == APOLOGY_MESSAGE
        assert response.sources == []
        assert response.follow_up_questions == []
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_top_chunk_over_context_size_is_out_of_scope(
        self,
        db_path: Path,
        embedding: FakeEmbeddingProvider,
        llm: FakeLLMProvider,
        source: FakeDocumentSource,
        cache: MemoryCacheProvider,
    ) -> None:
        rag = await _build_pipeline(db_path, embedding, llm, source, cache, context_char_budget=50)
        await _register(rag)
        await rag.ingest("mito")

        response = await rag.answer(IN_SCOPE_QUESTION)

        assert response.answer == NO_MATERIAL_MESSAGE
        assert response.sources == []
        assert response.is_out_of_scope is True
        assert response.confidence == 0.0
        assert response.follow_up_questions == list(HELP_SUGGESTIONS)
        assert llm.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("question", ["", "   \n"])
    async def test_blank_question(self, pipeline: RAGPipeline, question: str) -> None:
        with pytest.raises(PipelineError):
            await pipeline.answer(question)


# ---------------------------------------------------------------------------
# Materials and statistics
# ---------------------------------------------------------------------------


class TestMaterials:
    @pytest.mark.asyncio
    async def test_rename_refreshes_citations(self, pipeline: RAGPipeline, llm: FakeLLMProvider) -> None:
        await _register(pipeline)
        await pipeline.ingest("mito")
        await pipeline.answer(IN_SCOPE_QUESTION)

        renamed = await pipeline.rename_material("mito", "Cell Energy, Week 2")
        response = await pipeline.answer(IN_SCOPE_QUESTION)

        assert renamed.title == "Cell Energy, Week 2"
        assert [s.material_title for s in response.sources] == ["Cell Energy, Week 2"]
        assert len(llm.calls) == 4

    @pytest.mark.asyncio
    async def test_rename_unknown(self, pipeline: RAGPipeline) -> None:
        with pytest.raises(PipelineError):
            await pipeline.rename_material("missing", "Anything")

    @pytest.mark.asyncio
    async def test_course_stats(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline)
        await _register(pipeline, material_id="plants", url=PLANT_URL, title="Plant Notes")
        await _register(pipeline, material_id="chem", url=MITO_URL, course_id="chem200")
        await pipeline.ingest("mito")
        await pipeline.ingest("chem")

        bio = await pipeline.get_course_stats("bio101")
        everything = await pipeline.get_course_stats()

        assert (bio.total_materials, bio.processed_materials, bio.total_chunks) == (2, 1, 1)
        assert bio.average_chunks_per_material == 1.0
        assert (everything.total_materials, everything.processed_materials, everything.total_chunks) == (3, 2, 2)

    @pytest.mark.asyncio
    async def test_list_materials_by_course(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline)
        await _register(pipeline, material_id="chem", course_id="chem200")

        assert [m.id for m in await pipeline.list_materials("chem200")] == ["chem"]
        assert len(await pipeline.list_materials()) == 2

    @pytest.mark.asyncio
    async def test_query_suggestions_name_course_materials(self, pipeline: RAGPipeline) -> None:
        await _register(pipeline)
        await _register(pipeline, material_id="chem", title="Organic Chemistry", course_id="chem200")

        assert await pipeline.get_query_suggestions("bio101") == ["Tell me about mitochondria notes"]
        assert set(await pipeline.get_query_suggestions()) == {
            "Tell me about mitochondria notes",
            "Tell me about organic chemistry",
        }
        assert await pipeline.get_query_suggestions("empty-course") == []

    @pytest.mark.asyncio
    async def test_query_suggestions_capped_at_ten(self, pipeline: RAGPipeline) -> None:
        for i in range(12):
            await _register(pipeline, material_id=f"week-{i}", title=f"Week {i}")

        assert len(await pipeline.get_query_suggestions("bio101")) == 10

    @pytest.mark.asyncio
    async def test_query_suggestions_fall_back_on_storage_error(
        self, pipeline: RAGPipeline, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            SQLiteMaterialRepository,
            "list_materials",
            AsyncMock(side_effect=PersistenceError("database is locked", provider_name="sqlite")),
        )

        assert await pipeline.get_query_suggestions("bio101") == list(STARTER_FALLBACKS)
