"""Document download with bounded retries.

The retry policy is data: :attr:`DocumentFetcher.backoff_schedule` lists
the pause before each retry (``base * 2**n``).  Only failures marked
``transient`` by the source (timeouts, connection errors, 429, 5xx) are
retried; validation problems and other client errors fail immediately.
"""

from __future__ import annotations

import asyncio

from studyrag.interfaces.document_source import IDocumentSource
from studyrag.utils.errors import DownloadError
from studyrag.utils.logging import get_logger

_DEFAULT_MAX_ATTEMPTS = 3
_DEFAULT_BACKOFF_BASE = 1.0


class DocumentFetcher:
    """Downloads document bytes through an :class:`IDocumentSource`.

    Parameters
    ----------
    source:
        Transport used for each attempt.
    max_attempts:
        Total attempts including the first (default 3).
    backoff_base:
        Seconds to wait before the first retry; doubled for each later one.
    max_bytes:
        Size ceiling passed to the source as a second guard after validation.
    """

    def __init__(
        self,
        source: IDocumentSource,
        max_attempts: int = _DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = _DEFAULT_BACKOFF_BASE,
        max_bytes: int | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {max_attempts}"
            raise ValueError(msg)
        self._source = source
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._max_bytes = max_bytes
        self._logger = get_logger(__name__)

    @property
    def backoff_schedule(self) -> list[float]:
        """Seconds slept before retry 1, 2, ... (one entry per retry)."""
        return [self._backoff_base * (2**n) for n in range(self._max_attempts - 1)]

    async def fetch(self, url: str) -> bytes:
        """Download *url*, retrying transient failures.

        Raises
        ------
        DownloadError
            When a non-transient failure occurs, the body is empty, or every
            attempt failed.
        ValidationError
            When the body exceeds the size ceiling.
        """
        delays = [0.0, *self.backoff_schedule]
        last_error: DownloadError | None = None

        for attempt, delay in enumerate(delays, start=1):
            if delay > 0:
                await asyncio.sleep(delay)
            try:
                data = await self._source.fetch(url, max_bytes=self._max_bytes)
            except DownloadError as exc:
                if not exc.transient:
                    raise
                last_error = exc
                self._logger.warning(
                    "download_retry",
                    url=url,
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    error=str(exc),
                )
                continue

            if not data:
                raise DownloadError(
                    message=f"Downloaded document is empty: {url}",
                    provider_name=self._source.get_provider_name(),
                )
            if attempt > 1:
                self._logger.info("download_recovered", url=url, attempt=attempt)
            return data

        raise DownloadError(
            message=(
                f"Download failed after {self._max_attempts} attempts: "
                f"{last_error.message if last_error else 'unknown error'}"
            ),
            provider_name=self._source.get_provider_name(),
        ) from last_error
