"""Dependency wiring for the RAG pipeline.

Turns a :class:`Settings` instance into the full object graph used by the
API and the CLI.  This is the only module that names concrete provider
classes; everything else depends on the interfaces.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from studyrag.config.settings import Settings
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.pipeline.orchestrator import RAGPipeline
from studyrag.pipeline.processing_queue import ProcessingQueue
from studyrag.providers.cache.memory_cache import MemoryCacheProvider
from studyrag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from studyrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from studyrag.providers.extraction import default_extraction_providers
from studyrag.providers.fetch.httpx_document_source import HttpxDocumentSource
from studyrag.providers.llm.anthropic_provider import AnthropicLLMProvider
from studyrag.providers.llm.ollama_provider import OllamaLLMProvider
from studyrag.providers.llm.openai_provider import OpenAILLMProvider
from studyrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from studyrag.providers.store.sqlite_material_repository import SQLiteMaterialRepository
from studyrag.services.answer_generator import AnswerGenerator
from studyrag.services.follow_up_suggester import FollowUpSuggester
from studyrag.services.ingestion.chunker import TextChunker
from studyrag.services.ingestion.cleaner import TextCleaner
from studyrag.services.ingestion.embedder import BatchEmbedder
from studyrag.services.ingestion.extractor import TextExtractor
from studyrag.services.ingestion.fetcher import DocumentFetcher
from studyrag.services.ingestion.validator import SourceValidator
from studyrag.services.retriever import Retriever
from studyrag.utils.errors import ConfigurationError
from studyrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_LLM_FACTORIES = {
    "anthropic": AnthropicLLMProvider,
    "openai": OpenAILLMProvider,
    "ollama": OllamaLLMProvider,
}


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the first configured LLM provider.

    Priority order: Anthropic -> OpenAI -> Ollama.

    Raises
    ------
    ConfigurationError
        If no provider has credentials or a base URL.
    """
    available = app_settings.get_available_llm_providers()
    if not available:
        raise ConfigurationError(
            "No LLM provider configured: set ANTHROPIC_API_KEY, OPENAI_API_KEY or OLLAMA_BASE_URL"
        )
    return _LLM_FACTORIES[available[0]](settings=app_settings)


def build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Select the first available embedding provider.

    Priority: OpenAI/OpenAI-compatible (if API key set) -> Nomic/Ollama
    (if reachable).  Chunks and questions must be embedded by the same
    provider, so changing this selection requires reprocessing materials.

    Raises
    ------
    ConfigurationError
        If neither provider is usable.
    """
    provider: IEmbeddingProvider = OpenAIEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    provider = NomicEmbeddingProvider(settings=app_settings)
    if provider.is_available():
        return provider

    raise ConfigurationError(
        "No embedding provider available: set OPENAI_API_KEY or run Ollama with nomic-embed-text"
    )


# ---------------------------------------------------------------------------
# Full assembly
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    llm_provider: ILLMProvider | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
) -> dict[str, Any]:
    """Construct every provider and service for the application.

    Pre-built providers may be passed in (tests, scripts); otherwise they
    are selected from *app_settings*.

    Returns a flat dict of named components, stored on ``app.state`` by
    the API.  Storage is not initialized here; call
    ``await components["pipeline"].initialize()``.
    """
    llm = llm_provider or build_llm_provider(app_settings)
    embedder_provider = embedding_provider or build_embedding_provider(app_settings)

    http_client = httpx.AsyncClient(follow_redirects=True)
    source = HttpxDocumentSource(
        http_client=http_client,
        probe_timeout=app_settings.probe_timeout,
        download_timeout=app_settings.download_timeout,
    )

    material_repository = SQLiteMaterialRepository(db_path=app_settings.database_path)
    chunk_store = SQLiteChunkStore(db_path=app_settings.database_path)
    cache = MemoryCacheProvider(ttl=app_settings.answer_cache_ttl)

    pipeline = RAGPipeline(
        materials=material_repository,
        chunk_store=chunk_store,
        validator=SourceValidator(
            source,
            max_bytes=app_settings.max_source_bytes,
            allowed_content_types=app_settings.allowed_content_types,
        ),
        fetcher=DocumentFetcher(
            source,
            max_attempts=app_settings.download_max_attempts,
            backoff_base=app_settings.download_backoff_base,
            max_bytes=app_settings.max_source_bytes,
        ),
        extractor=TextExtractor(default_extraction_providers()),
        cleaner=TextCleaner(),
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
            min_unit_chars=app_settings.min_unit_chars,
            min_chunk_chars=app_settings.min_chunk_chars,
        ),
        embedder=BatchEmbedder(
            embedder_provider,
            batch_size=app_settings.embed_batch_size,
            batch_delay=app_settings.embed_batch_delay,
            timeout=app_settings.embedding_timeout,
        ),
        retriever=Retriever(
            embedder_provider,
            chunk_store,
            max_results=app_settings.retrieval_max_results,
            threshold=app_settings.retrieval_threshold,
            timeout=app_settings.embedding_timeout,
        ),
        answer_generator=AnswerGenerator(
            llm,
            context_char_budget=app_settings.context_char_budget,
            history_turns=app_settings.history_turns,
            temperature=app_settings.answer_temperature,
            max_tokens=app_settings.answer_max_tokens,
            timeout=app_settings.llm_timeout,
        ),
        follow_up_suggester=FollowUpSuggester(
            llm,
            temperature=app_settings.follow_up_temperature,
            max_tokens=app_settings.follow_up_max_tokens,
            timeout=app_settings.llm_timeout,
        ),
        cache=cache,
    )
    queue = ProcessingQueue(pipeline, max_attempts=app_settings.queue_max_attempts)

    _logger.info(
        "components_built",
        llm_provider=llm.get_provider_name(),
        embedding_provider=embedder_provider.get_provider_name(),
        database_path=app_settings.database_path,
    )

    return {
        "settings": app_settings,
        "http_client": http_client,
        "llm_provider": llm,
        "embedding_provider": embedder_provider,
        "material_repository": material_repository,
        "chunk_store": chunk_store,
        "cache": cache,
        "pipeline": pipeline,
        "queue": queue,
    }
