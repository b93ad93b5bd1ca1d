"""PDF text-extraction strategies, listed in default priority order.

    - PyMuPDFTextProvider   - PyMuPDF plain text mode (primary)
    - PyMuPDFBlocksProvider - PyMuPDF positional text blocks
    - PypdfProvider         - pypdf, non-strict
"""

from studyrag.interfaces.extraction_provider import IExtractionProvider
from studyrag.providers.extraction.pymupdf_provider import (
    PyMuPDFBlocksProvider,
    PyMuPDFTextProvider,
)
from studyrag.providers.extraction.pypdf_provider import PypdfProvider


def default_extraction_providers() -> list[IExtractionProvider]:
    """Return fresh instances of every strategy in priority order."""
    return [PyMuPDFTextProvider(), PyMuPDFBlocksProvider(), PypdfProvider()]


__all__ = [
    "PyMuPDFBlocksProvider",
    "PyMuPDFTextProvider",
    "PypdfProvider",
    "default_extraction_providers",
]
