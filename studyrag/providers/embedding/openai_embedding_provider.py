"""Embeddings through OpenAI or any host speaking its embeddings API.

One request per :meth:`OpenAIEmbeddingProvider.embed` call: batching and
pacing between requests belong to the ingestion embedder.  With
``OPENAI_BASE_URL`` set, ``OPENAI_EMBEDDING_MODEL`` picks the hosted model
(e.g. a BGE model on Together).
"""

from __future__ import annotations

import openai
import structlog

from studyrag.config.settings import Settings
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.utils.errors import EmbeddingError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-3-small"
_FALLBACK_DIMENSION = 768

_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


async def request_embeddings(
    client: openai.AsyncOpenAI,
    model: str,
    texts: list[str],
    provider_name: str,
) -> list[list[float]]:
    """Call ``embeddings.create`` and return vectors in input order.

    Shared by every adapter that talks to an OpenAI-style embeddings
    endpoint.  Items are re-sorted by their ``index`` field, which is the
    only ordering the API guarantees.
    """
    if not texts:
        return []
    try:
        response = await client.embeddings.create(input=texts, model=model)
    except openai.APIError as exc:
        raise EmbeddingError(
            message=f"{provider_name} request failed: {exc}",
            provider_name=provider_name,
        ) from exc

    usage = response.usage
    logger.info(
        "embedding_request",
        provider=provider_name,
        model=model,
        texts=len(texts),
        tokens=usage.total_tokens if usage else None,
    )
    return [list(item.embedding) for item in sorted(response.data, key=lambda d: d.index)]


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embeds with ``text-embedding-3-small`` (1536 dims) unless configured otherwise."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, _FALLBACK_DIMENSION)
        self._name = "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        self._client = openai.AsyncOpenAI(
            api_key=self._api_key or "unset",
            base_url=settings.openai_base_url or None,
            timeout=openai.Timeout(settings.embedding_timeout, connect=5.0),
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return await request_embeddings(self._client, self._model, texts, self._name)

    async def embed_single(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        if not vectors:
            raise EmbeddingError(message=f"{self._name} returned no vector", provider_name=self._name)
        return vectors[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return bool(self._api_key)
