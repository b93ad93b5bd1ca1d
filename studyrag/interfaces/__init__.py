"""Public interface definitions for all external collaborators.

Every external API, parser, and store used by the pipeline is accessed
through the abstract base classes defined here.  Concrete adapters live in
``studyrag/providers/`` and are wired together in
``studyrag/pipeline/builder.py``; tests inject fakes instead.

    Interface              →  Concrete implementations
    ─────────────────────────────────────────────────────────────
    ILLMProvider           →  AnthropicLLMProvider, OpenAILLMProvider,
                              OllamaLLMProvider
    IEmbeddingProvider     →  OpenAIEmbeddingProvider, NomicEmbeddingProvider
    IDocumentSource        →  HttpxDocumentSource
    IExtractionProvider    →  PyMuPDFTextProvider, PyMuPDFBlocksProvider,
                              PypdfProvider
    IChunkStore            →  SQLiteChunkStore
    IMaterialRepository    →  SQLiteMaterialRepository
    ICacheProvider         →  MemoryCacheProvider
"""

from studyrag.interfaces.cache_provider import ICacheProvider
from studyrag.interfaces.chunk_store import IChunkStore
from studyrag.interfaces.document_source import IDocumentSource, SourceProbe
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.interfaces.extraction_provider import IExtractionProvider
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.interfaces.material_repository import IMaterialRepository

__all__ = [
    "ICacheProvider",
    "IChunkStore",
    "IDocumentSource",
    "IEmbeddingProvider",
    "IExtractionProvider",
    "ILLMProvider",
    "IMaterialRepository",
    "SourceProbe",
]
