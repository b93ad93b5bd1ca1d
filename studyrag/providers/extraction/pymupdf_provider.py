"""PDF text extraction backed by PyMuPDF (``fitz``).

Two strategies share the document-opening code:

- :class:`PyMuPDFTextProvider` reads each page with ``get_text("text")``,
  PyMuPDF's native reading order.  Fast and right for most course PDFs.
- :class:`PyMuPDFBlocksProvider` reads ``get_text("blocks")`` and sorts
  text blocks top-to-bottom, left-to-right.  Slower, but recovers text
  from multi-column slides and scans with odd content-stream ordering
  where plain text mode comes back blank.

PyMuPDF is synchronous and CPU-bound, so parsing runs in a worker thread.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from studyrag.interfaces.extraction_provider import IExtractionProvider
from studyrag.models.rag import ExtractedText

logger = structlog.get_logger(logger_name=__name__)

# get_text("blocks") tuple layout: (x0, y0, x1, y1, text, block_no, block_type)
_BLOCK_TYPE_TEXT = 0


class _PyMuPDFBase(IExtractionProvider):
    """Opens the document and joins per-page text with blank lines."""

    async def extract(self, data: bytes) -> ExtractedText:
        text, page_count = await asyncio.to_thread(self._extract_sync, data)
        logger.debug(
            "pymupdf_extracted",
            provider=self.get_provider_name(),
            pages=page_count,
            chars=len(text),
        )
        return ExtractedText(text=text, page_count=page_count, provider_used=self.get_provider_name())

    def _extract_sync(self, data: bytes) -> tuple[str, int]:
        doc = fitz.open(stream=data, filetype="pdf")
        try:
            pages = [self._page_text(doc[page_num]) for page_num in range(len(doc))]
            return "\n\n".join(p for p in pages if p.strip()), len(doc)
        finally:
            doc.close()

    def _page_text(self, page: fitz.Page) -> str:
        raise NotImplementedError

    def is_available(self) -> bool:
        return True


class PyMuPDFTextProvider(_PyMuPDFBase):
    """Primary strategy: PyMuPDF plain text mode."""

    def _page_text(self, page: fitz.Page) -> str:
        return page.get_text("text")

    def get_provider_name(self) -> str:
        return "pymupdf_text"


class PyMuPDFBlocksProvider(_PyMuPDFBase):
    """Fallback strategy: PyMuPDF text blocks in positional order."""

    def _page_text(self, page: fitz.Page) -> str:
        blocks = [
            b for b in page.get_text("blocks") if len(b) > 6 and b[6] == _BLOCK_TYPE_TEXT
        ]
        blocks.sort(key=lambda b: (round(b[1], 1), round(b[0], 1)))
        return "\n".join(b[4].strip() for b in blocks if b[4].strip())

    def get_provider_name(self) -> str:
        return "pymupdf_blocks"
