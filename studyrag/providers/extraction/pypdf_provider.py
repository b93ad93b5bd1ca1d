"""PDF text extraction backed by pypdf (last-resort strategy).

pypdf is a pure-Python parser with a lenient (non-strict) mode that
tolerates broken cross-reference tables and truncated streams that
PyMuPDF sometimes refuses.
"""

from __future__ import annotations

import asyncio
import io

import structlog
from pypdf import PdfReader

from studyrag.interfaces.extraction_provider import IExtractionProvider
from studyrag.models.rag import ExtractedText

logger = structlog.get_logger(logger_name=__name__)


class PypdfProvider(IExtractionProvider):
    """Extract text with ``pypdf.PdfReader(strict=False)``."""

    async def extract(self, data: bytes) -> ExtractedText:
        text, page_count = await asyncio.to_thread(self._extract_sync, data)
        logger.debug("pypdf_extracted", pages=page_count, chars=len(text))
        return ExtractedText(text=text, page_count=page_count, provider_used=self.get_provider_name())

    @staticmethod
    def _extract_sync(data: bytes) -> tuple[str, int]:
        reader = PdfReader(io.BytesIO(data), strict=False)
        pages: list[str] = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            if page_text.strip():
                pages.append(page_text)
        return "\n\n".join(pages), len(reader.pages)

    def get_provider_name(self) -> str:
        return "pypdf"

    def is_available(self) -> bool:
        return True
