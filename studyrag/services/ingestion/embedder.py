"""Batched, rate-limited embedding of chunk texts.

Batches run strictly one after another with a short pause between them.
The pause is backpressure against provider rate limits, so batches are
never fanned out in parallel.  Any batch failure aborts the whole phase;
the caller persists nothing in that case.
"""

from __future__ import annotations

import asyncio

from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.utils.concurrency import with_timeout
from studyrag.utils.errors import EmbeddingError
from studyrag.utils.logging import get_logger

_DEFAULT_BATCH_SIZE = 10
_DEFAULT_BATCH_DELAY = 0.1


class BatchEmbedder:
    """Embeds texts through an :class:`IEmbeddingProvider` in sequential batches.

    Parameters
    ----------
    provider:
        The embedding backend.  Must be the same one the retriever uses.
    batch_size:
        Texts per provider call (default 10).
    batch_delay:
        Seconds slept between consecutive batches (default 0.1).
    timeout:
        Seconds allowed per provider call; ``None`` disables the limit.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        batch_size: int = _DEFAULT_BATCH_SIZE,
        batch_delay: float = _DEFAULT_BATCH_DELAY,
        timeout: float | None = None,
    ) -> None:
        if batch_size < 1:
            msg = f"batch_size must be >= 1, got {batch_size}"
            raise ValueError(msg)
        self._provider = provider
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._timeout = timeout
        self._logger = get_logger(__name__)

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per text, in input order.

        Raises
        ------
        EmbeddingError
            If any batch fails, returns the wrong number of vectors, or the
            vectors disagree in length with each other or with
            ``provider.get_dimension()``.
        """
        if not texts:
            return []

        batches = [texts[i : i + self._batch_size] for i in range(0, len(texts), self._batch_size)]
        vectors: list[list[float]] = []

        for number, batch in enumerate(batches, start=1):
            if number > 1 and self._batch_delay > 0:
                await asyncio.sleep(self._batch_delay)

            try:
                batch_vectors = await with_timeout(
                    self._provider.embed(batch),
                    self._timeout,
                    lambda message: EmbeddingError(message, provider_name=self.provider_name),
                    operation="embedding batch",
                )
            except EmbeddingError:
                raise
            except Exception as exc:
                raise EmbeddingError(
                    message=f"Embedding batch {number}/{len(batches)} failed: {exc}",
                    provider_name=self.provider_name,
                ) from exc

            if len(batch_vectors) != len(batch):
                raise EmbeddingError(
                    message=(
                        f"Embedding batch {number}/{len(batches)} returned "
                        f"{len(batch_vectors)} vectors for {len(batch)} texts"
                    ),
                    provider_name=self.provider_name,
                )
            vectors.extend(batch_vectors)
            self._logger.debug(
                "embedding_batch",
                batch=number,
                batches=len(batches),
                size=len(batch),
            )

        dimensions = {len(v) for v in vectors}
        if len(dimensions) != 1 or 0 in dimensions:
            raise EmbeddingError(
                message=f"Inconsistent embedding dimensions: {sorted(dimensions)}",
                provider_name=self.provider_name,
            )
        dimension = dimensions.pop()
        expected = self._provider.get_dimension()
        if dimension != expected:
            raise EmbeddingError(
                message=f"Embedding dimension {dimension} does not match provider dimension {expected}",
                provider_name=self.provider_name,
            )

        self._logger.info(
            "embedding_complete",
            provider=self.provider_name,
            texts=len(texts),
            batches=len(batches),
            dimension=dimension,
        )
        return vectors
