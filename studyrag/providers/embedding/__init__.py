"""Embedding provider adapters.

    - OpenAIEmbeddingProvider - text-embedding-3-small (or any OpenAI-compatible model)
    - NomicEmbeddingProvider  - nomic-embed-text via a local Ollama server

builder.py picks the first available one; every stored chunk and every
query must be embedded by the same provider.
"""

from studyrag.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from studyrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["NomicEmbeddingProvider", "OpenAIEmbeddingProvider"]
