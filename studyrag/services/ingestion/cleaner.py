"""Whitespace normalization for extracted PDF text."""

from __future__ import annotations

import re

from studyrag.utils.errors import EmptyContentError
from studyrag.utils.logging import get_logger

# C0/C1 control characters except \t and \n, plus the Unicode replacement char.
_UNUSABLE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufffd]")
_HORIZONTAL_WS = re.compile(r"[^\S\n]+")
_NEWLINE_RUNS = re.compile(r"\n{2,}")

# Below this share of letters/digits/whitespace the extraction is probably
# garbage (wrong font encoding, a scanned page rendered as symbols).
_MIN_READABLE_RATIO = 0.7


class TextCleaner:
    """Collapses whitespace, drops control characters, and rejects empty text."""

    def __init__(self, min_readable_ratio: float = _MIN_READABLE_RATIO) -> None:
        self._min_readable_ratio = min_readable_ratio
        self._logger = get_logger(__name__)

    def clean(self, raw_text: str) -> str:
        """Return normalized *raw_text*.

        Raises
        ------
        EmptyContentError
            If nothing but whitespace remains.
        """
        text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
        text = _UNUSABLE.sub("", text)
        text = _HORIZONTAL_WS.sub(" ", text)
        text = "\n".join(line.strip() for line in text.split("\n"))
        text = _NEWLINE_RUNS.sub("\n", text).strip()

        if not text:
            raise EmptyContentError("No extractable text remained after cleaning")

        ratio = self.readable_ratio(text)
        if ratio < self._min_readable_ratio:
            self._logger.warning(
                "low_text_quality",
                readable_ratio=round(ratio, 3),
                chars=len(text),
            )
        return text

    @staticmethod
    def readable_ratio(text: str) -> float:
        """Share of characters that are alphanumeric or whitespace."""
        if not text:
            return 0.0
        readable = sum(1 for ch in text if ch.isalnum() or ch.isspace())
        return readable / len(text)
