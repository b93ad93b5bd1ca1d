"""Similarity retrieval over stored chunks.

The question is embedded with the same provider that embedded the chunks,
then ranked against every candidate chunk in scope by cosine similarity.
Ranking is brute force over the loaded candidates, which is adequate for
per-course corpora of a few thousand chunks.
"""

from __future__ import annotations

import structlog

from studyrag.interfaces.chunk_store import IChunkStore
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.models.rag import RetrievalResult
from studyrag.utils.concurrency import with_timeout
from studyrag.utils.errors import EmbeddingError, PersistenceError
from studyrag.utils.logging import get_logger
from studyrag.utils.similarity import cosine_similarities

logger: structlog.BoundLogger = get_logger(__name__)


class Retriever:
    """Ranks stored chunks against a question.

    Parameters
    ----------
    embedding_provider:
        Must be the provider used at ingestion time.
    chunk_store:
        Source of candidate chunks.
    max_results:
        Maximum number of results returned (default 5).
    threshold:
        Minimum cosine similarity for a chunk to count as relevant
        (default 0.7).
    timeout:
        Seconds allowed for the query embedding call.
    """

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        chunk_store: IChunkStore,
        max_results: int = 5,
        threshold: float = 0.7,
        timeout: float | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._chunk_store = chunk_store
        self._max_results = max_results
        self._threshold = threshold
        self._timeout = timeout

    @property
    def threshold(self) -> float:
        return self._threshold

    async def retrieve(
        self,
        question: str,
        course_id: str | None = None,
        max_results: int | None = None,
    ) -> list[RetrievalResult]:
        """Return chunks scoring at least ``threshold``, best first.

        Ties are ordered by ascending ``chunk_index`` (then material id) so
        the output is deterministic.  An empty scope returns ``[]``
        without embedding the question.

        Raises
        ------
        EmbeddingError
            If the question cannot be embedded.
        PersistenceError
            If candidate chunks cannot be loaded.
        """
        limit = self._max_results if max_results is None else max_results

        try:
            candidates = await self._chunk_store.query_chunks(course_id=course_id)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(
                message=f"Failed to load candidate chunks: {exc}",
                provider_name="chunk_store",
            ) from exc

        if not candidates:
            logger.info("retrieval_empty_scope", course_id=course_id)
            return []

        provider_name = self._embedding_provider.get_provider_name()
        try:
            query_vector = await with_timeout(
                self._embedding_provider.embed_single(question),
                self._timeout,
                lambda message: EmbeddingError(message, provider_name=provider_name),
                operation="query embedding",
            )
        except EmbeddingError:
            raise
        except Exception as exc:
            raise EmbeddingError(
                message=f"Query embedding failed: {exc}",
                provider_name=provider_name,
            ) from exc

        scores = cosine_similarities(query_vector, [c.embedding for c in candidates])
        ranked = sorted(
            (
                (score, chunk)
                for score, chunk in zip(scores, candidates)
                if score >= self._threshold
            ),
            key=lambda pair: (-pair[0], pair[1].chunk_index, pair[1].material_id),
        )[:limit]

        results = [
            RetrievalResult(chunk=chunk, relevance_score=score) for score, chunk in ranked
        ]
        logger.info(
            "retrieval_complete",
            course_id=course_id,
            candidates=len(candidates),
            results=len(results),
            top_score=round(results[0].relevance_score, 3) if results else None,
        )
        return results
