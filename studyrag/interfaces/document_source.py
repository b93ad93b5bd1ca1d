"""Abstract base class for remote document sources.

The validator uses :meth:`IDocumentSource.probe` to inspect a URL without
downloading it; the fetcher uses :meth:`IDocumentSource.fetch` for the
actual bytes.  Keeping both behind one interface lets tests swap in an
in-memory source.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SourceProbe:
    """Headers observed when probing a document URL.

    Attributes
    ----------
    status_code:
        HTTP status of the probe request.
    content_type:
        Media type with parameters stripped and lower-cased, or ``None``.
    content_length:
        Declared size in bytes, or ``None`` when the server did not say.
    """

    status_code: int
    content_type: str | None = None
    content_length: int | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


# Concrete implementation: HttpxDocumentSource (studyrag/providers/fetch/)
class IDocumentSource(ABC):
    """Contract for fetching course documents by URL."""

    @abstractmethod
    async def probe(self, url: str) -> SourceProbe:
        """Inspect *url* without downloading the body.

        Raises
        ------
        studyrag.utils.errors.DownloadError
            If the server cannot be reached at all.
        """

    @abstractmethod
    async def fetch(self, url: str, max_bytes: int | None = None) -> bytes:
        """Download the body at *url*.

        Parameters
        ----------
        url:
            Document location.
        max_bytes:
            Abort with :class:`~studyrag.utils.errors.ValidationError` once
            the body grows past this many bytes.

        Raises
        ------
        studyrag.utils.errors.DownloadError
            On non-2xx status or network failure.  ``transient`` is set for
            timeouts, connection errors, 429 and 5xx responses.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this source."""
