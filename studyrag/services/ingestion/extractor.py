"""Text extraction with a multi-strategy fallback chain.

Manages a priority-ordered list of :class:`IExtractionProvider` strategies
and tries each in turn until one returns non-blank text.  The default
order is ``pymupdf_text`` → ``pymupdf_blocks`` → ``pypdf``.

The list itself is the policy: appending a new strategy (an OCR pass for
scanned handouts, say) changes behaviour without touching the loop.
"""

from __future__ import annotations

from studyrag.interfaces.extraction_provider import IExtractionProvider
from studyrag.models.rag import ExtractedText
from studyrag.utils.errors import ParseError
from studyrag.utils.logging import get_logger

# PDF allows a little junk before the header; readers look in the first KiB.
_SIGNATURE = b"%PDF"
_SIGNATURE_WINDOW = 1024


class TextExtractor:
    """Runs extraction strategies in order, stopping at the first success.

    A strategy succeeds when it returns text with at least one
    non-whitespace character.  Unavailable strategies are skipped, and
    strategies that raise are logged and skipped.  When nothing succeeds a
    :class:`ParseError` is raised.
    """

    def __init__(self, providers: list[IExtractionProvider]) -> None:
        self._providers = providers
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, data: bytes) -> ExtractedText:
        """Extract raw text from PDF *data*.

        Raises
        ------
        ParseError
            If *data* is not a PDF or every strategy fails.
        """
        if not data:
            raise ParseError("Document is empty")
        if _SIGNATURE not in data[:_SIGNATURE_WINDOW]:
            raise ParseError("Document is not a valid PDF (missing %PDF header)")

        failures: list[str] = []
        page_count: int | None = None

        for provider in self._providers:
            name = provider.get_provider_name()

            if not provider.is_available():
                self._logger.warning("extraction_provider_unavailable", provider=name)
                continue

            try:
                result = await provider.extract(data)
            except Exception as exc:
                # Malformed PDFs make individual parsers throw; try the next one.
                failures.append(f"{name}: {exc}")
                self._logger.warning("extraction_strategy_failed", provider=name, error=str(exc))
                continue

            if page_count is None:
                page_count = result.page_count

            if result.text.strip():
                self._logger.info(
                    "extraction_succeeded",
                    provider=name,
                    pages=result.page_count,
                    chars=len(result.text),
                )
                return result

            failures.append(f"{name}: no text")
            self._logger.info("extraction_strategy_empty", provider=name)

        detail = "; ".join(failures) if failures else "no extraction strategy available"
        if page_count:
            detail = f"{page_count} page(s), {detail}"
        raise ParseError(f"Could not extract text from PDF ({detail})")

    def get_available_providers(self) -> list[str]:
        """Return the names of strategies that are currently available."""
        return [p.get_provider_name() for p in self._providers if p.is_available()]
