"""Shared pytest fixtures and in-memory fakes for the StudyRAG test suite."""

from __future__ import annotations

import re
import zlib
from pathlib import Path

import fitz
import pytest
import pytest_asyncio

from studyrag.interfaces.document_source import IDocumentSource, SourceProbe
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.models.material import Material
from studyrag.models.rag import ChunkMetadata, MaterialChunk
from studyrag.providers.store.sqlite_chunk_store import SQLiteChunkStore
from studyrag.providers.store.sqlite_material_repository import SQLiteMaterialRepository
from studyrag.utils.errors import DownloadError, EmbeddingError, LLMError

_WORD_RE = re.compile(r"[a-z0-9]+")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words embeddings.

    Each lower-cased word increments one of ``dimension`` buckets, so texts
    sharing vocabulary have high cosine similarity and unrelated texts
    score near zero.
    """

    def __init__(self, dimension: int = 64, fail: bool = False) -> None:
        self.dimension = dimension
        self.fail = fail
        self.calls: list[list[str]] = []

    def vector(self, text: str) -> list[float]:
        vec = [0.0] * self.dimension
        for word in _WORD_RE.findall(text.lower()):
            vec[zlib.crc32(word.encode()) % self.dimension] += 1.0
        return vec

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            raise EmbeddingError("fake embedding outage", provider_name="fake_embedding")
        return [self.vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return self.dimension

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


class FakeLLMProvider(ILLMProvider):
    """Returns queued responses (or a default) and records every call."""

    def __init__(self, responses: list[str] | None = None, default: str = "A fake answer.") -> None:
        self.responses = list(responses or [])
        self.default = default
        self.fail = False
        self.calls: list[dict] = []

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.3,
        max_tokens: int = 4000,
    ) -> str:
        self.calls.append(
            {
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.fail:
            raise LLMError("fake llm outage", provider_name="fake_llm")
        if self.responses:
            return self.responses.pop(0)
        return self.default

    def get_provider_name(self) -> str:
        return "fake_llm"

    def is_available(self) -> bool:
        return True


class FakeDocumentSource(IDocumentSource):
    """Serves in-memory documents keyed by URL.

    ``failures`` holds errors raised by successive ``fetch`` calls before
    the document is returned.
    """

    def __init__(self) -> None:
        self.documents: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}
        self.failures: list[Exception] = []
        self.fetch_calls = 0

    def add(self, url: str, data: bytes, content_type: str = "application/pdf") -> None:
        self.documents[url] = data
        self.content_types[url] = content_type

    async def probe(self, url: str) -> SourceProbe:
        if url not in self.documents:
            return SourceProbe(status_code=404)
        return SourceProbe(
            status_code=200,
            content_type=self.content_types[url],
            content_length=len(self.documents[url]),
        )

    async def fetch(self, url: str, max_bytes: int | None = None) -> bytes:
        self.fetch_calls += 1
        if self.failures:
            raise self.failures.pop(0)
        if url not in self.documents:
            raise DownloadError(f"HTTP 404 for {url}", provider_name="fake_source")
        return self.documents[url]

    def get_provider_name(self) -> str:
        return "fake_source"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_pdf(pages: list[str]) -> bytes:
    """Build a PDF with one page per string using PyMuPDF."""
    doc = fitz.open()
    try:
        for text in pages:
            page = doc.new_page()
            page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=9)
        return doc.tobytes()
    finally:
        doc.close()


def make_material(**overrides: object) -> Material:
    fields: dict[str, object] = {
        "id": "mat-1",
        "title": "Cell Biology Notes",
        "course_id": "bio101",
        "source_url": "https://files.example.com/cell-biology.pdf",
    }
    fields.update(overrides)
    return Material(**fields)


def make_chunk(
    material_id: str = "mat-1",
    chunk_index: int = 0,
    content: str = "Mitochondria produce ATP for the cell.",
    embedding: list[float] | None = None,
    title: str = "Cell Biology Notes",
    course_id: str = "bio101",
) -> MaterialChunk:
    return MaterialChunk(
        id=MaterialChunk.make_id(material_id, chunk_index),
        material_id=material_id,
        chunk_index=chunk_index,
        content=content,
        embedding=embedding if embedding is not None else [1.0, 0.0, 0.0],
        metadata=ChunkMetadata(
            material_title=title,
            course_id=course_id,
            source_url=f"https://files.example.com/{material_id}.pdf",
            chunk_index=chunk_index,
            char_count=len(content),
        ),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_embedding() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_llm() -> FakeLLMProvider:
    return FakeLLMProvider()


@pytest.fixture
def fake_source() -> FakeDocumentSource:
    return FakeDocumentSource()


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "studyrag-test.db"


@pytest_asyncio.fixture
async def chunk_store(db_path: Path) -> SQLiteChunkStore:
    store = SQLiteChunkStore(db_path=db_path)
    await store.initialize()
    return store


@pytest_asyncio.fixture
async def material_repository(db_path: Path) -> SQLiteMaterialRepository:
    repo = SQLiteMaterialRepository(db_path=db_path)
    await repo.initialize()
    return repo


@pytest.fixture
def sample_course_text() -> str:
    """Three paragraphs of study notes about cell biology."""
    return (
        "The cell is the basic unit of life. Every living organism is made of one or "
        "more cells. Cells carry out the chemical reactions that keep an organism alive.\n\n"
        "Mitochondria are the powerhouse of the cell. They convert glucose and oxygen into "
        "ATP through cellular respiration. Cells with high energy demands, such as muscle "
        "cells, contain many mitochondria.\n\n"
        "Photosynthesis takes place in the chloroplasts of plant cells. Light energy is used "
        "to turn carbon dioxide and water into glucose. Oxygen is released as a by-product "
        "of this process."
    )
