"""Local embeddings with ``nomic-embed-text`` served by Ollama.

No API key is involved; availability means the Ollama server answers on
``/api/tags``.  Vectors have 768 dimensions.
"""

from __future__ import annotations

import httpx
import openai

from studyrag.config.settings import Settings
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.providers.embedding.openai_embedding_provider import request_embeddings
from studyrag.utils.errors import EmbeddingError

_MODEL = "nomic-embed-text"
_DIMENSION = 768


class NomicEmbeddingProvider(IEmbeddingProvider):
    def __init__(self, settings: Settings) -> None:
        self._base_url = settings.ollama_base_url.rstrip("/")
        # The SDK insists on a key; Ollama ignores it.
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url}/v1",
            api_key="ollama",
            timeout=openai.Timeout(settings.embedding_timeout, connect=5.0),
        )

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return await request_embeddings(self._client, _MODEL, texts, self.get_provider_name())

    async def embed_single(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        if not vectors:
            raise EmbeddingError(message="Ollama returned no vector", provider_name="nomic_embedding")
        return vectors[0]

    def get_dimension(self) -> int:
        return _DIMENSION

    def get_provider_name(self) -> str:
        return "nomic_embedding"

    def is_available(self) -> bool:
        if not self._base_url:
            return False
        try:
            response = httpx.get(f"{self._base_url}/api/tags", timeout=3.0)
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
        return response.status_code == 200
