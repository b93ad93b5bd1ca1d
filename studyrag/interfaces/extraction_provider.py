"""Abstract base class for PDF text-extraction strategies.

The extraction service holds an ordered list of these and uses the first
one that produces non-blank text.  Real-world PDFs are often malformed, so
a strategy that fails is expected and only logged.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from studyrag.models.rag import ExtractedText


# Concrete implementations, in default priority order:
#   PyMuPDFTextProvider    - page.get_text("text")
#   PyMuPDFBlocksProvider  - page.get_text("blocks"), sorted by position
#   PypdfProvider          - pypdf in non-strict mode
# Located in: studyrag/providers/extraction/
class IExtractionProvider(ABC):
    """Contract for a single strategy that turns PDF bytes into text."""

    @abstractmethod
    async def extract(self, data: bytes) -> ExtractedText:
        """Extract raw text from *data*.

        Returns
        -------
        ExtractedText
            The text (possibly blank) and the page count if known.

        Raises
        ------
        Exception
            Any parser failure.  The extraction service catches it and
            moves on to the next strategy.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"pymupdf_text"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the underlying parser library can be used."""
