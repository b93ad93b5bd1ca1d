"""Sentence-packing text chunker with word-based overlap.

Splits cleaned material text into :class:`~studyrag.models.rag.MaterialChunk`
objects of at most ``chunk_size`` characters (default 1000), each non-first
chunk starting with roughly ``overlap`` characters (default 200) copied from
the end of the previous one.

The algorithm:

1. **Units** -- Split the text at sentence-terminal punctuation using an
   abbreviation-aware splitter ("Dr.", "e.g." do not end a sentence).
   Fragments shorter than ``min_unit_chars`` are noise (page numbers,
   stray bullets) and are dropped.
2. **Long units** -- A unit longer than 80% of ``chunk_size`` is split at
   commas and semicolons when that yields more than one usable part.
   Otherwise it stays whole; text is never dropped to meet the size.
3. **Packing** -- Units are appended to a buffer until the next one would
   overflow ``chunk_size``.  The buffer is then emitted and the next buffer
   is seeded with its last *k* words, ``k ≈ overlap / (avg word length + 1)``.
   The overlap is therefore approximate, not an exact character count.
4. **Minimums** -- A buffer is only emitted once it holds more than
   ``min_chunk_chars``; a shorter buffer keeps accumulating.  If nothing
   was emitted at all, the whole text becomes a single chunk, so non-empty
   input always produces at least one chunk.

Size bound: a chunk is at most ``chunk_size`` plus the length of the last
unit added to it.
"""

from __future__ import annotations

import re

import structlog

from studyrag.models.material import Material
from studyrag.models.rag import ChunkMetadata, MaterialChunk

logger = structlog.get_logger(logger_name=__name__)

# Abbreviations whose trailing period should NOT end a sentence.
_ABBREVIATIONS = (
    "Dr",
    "Mr",
    "Mrs",
    "Ms",
    "Prof",
    "Jr",
    "Sr",
    "St",
    "vs",
    "etc",
    "approx",
    "Fig",
    "fig",
    "Eq",
    "eq",
    "Vol",
    "cf",
    "al",
    "e.g",
    "i.e",
)
_ABBREVIATION_RE = re.compile(
    r"\b(?:" + "|".join(re.escape(a) for a in _ABBREVIATIONS) + r")\."
    # "No. 5" numbers something; "No." before a word ends a sentence.
    r"|\bNo\.(?=\s*\d)"
)
# Terminal punctuation run, optionally followed by closing quotes/brackets.
_SENTENCE_END_RE = re.compile(r"[.!?]+[\"'’”)\]]*(?=\s|$)")
# Commas/semicolons followed by whitespace ("1,000" is not a split point).
_CLAUSE_SPLIT_RE = re.compile(r"(?<=[,;])\s+")

_LONG_UNIT_RATIO = 0.8


class TextChunker:
    """Splits text into overlapping, size-bounded chunks.

    Parameters
    ----------
    chunk_size:
        Target maximum characters per chunk (default 1000).
    overlap:
        Approximate characters repeated at the start of each following
        chunk (default 200).  Must be smaller than ``chunk_size``.
    min_unit_chars:
        Sentence fragments shorter than this are discarded (default 10).
    min_chunk_chars:
        A buffer must be longer than this to be emitted (default 50).
    """

    def __init__(
        self,
        chunk_size: int = 1000,
        overlap: int = 200,
        min_unit_chars: int = 10,
        min_chunk_chars: int = 50,
    ) -> None:
        if chunk_size <= 0:
            msg = f"chunk_size must be positive, got {chunk_size}"
            raise ValueError(msg)
        if not 0 <= overlap < chunk_size:
            msg = f"overlap must be in [0, chunk_size), got {overlap}"
            raise ValueError(msg)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._min_unit_chars = min_unit_chars
        self._min_chunk_chars = min_chunk_chars
        self._long_unit_chars = int(chunk_size * _LONG_UNIT_RATIO)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(self, text: str, material: Material) -> list[MaterialChunk]:
        """Split *text* into :class:`MaterialChunk` objects for *material*.

        Chunks carry an empty ``embedding``; the orchestrator fills it in.

        Returns
        -------
        list[MaterialChunk]
            Ordered chunks with dense ``chunk_index`` from 0.  Blank input
            returns an empty list.
        """
        pieces = self.split(text)
        chunks = [
            MaterialChunk(
                id=MaterialChunk.make_id(material.id, index),
                material_id=material.id,
                chunk_index=index,
                content=content,
                metadata=ChunkMetadata(
                    material_title=material.title,
                    course_id=material.course_id,
                    source_url=material.source_url,
                    chunk_index=index,
                    char_count=len(content),
                ),
            )
            for index, content in enumerate(pieces)
        ]

        logger.debug(
            "chunking_complete",
            material_id=material.id,
            num_chunks=len(chunks),
            avg_chars=sum(len(c) for c in pieces) // len(pieces) if pieces else 0,
        )
        return chunks

    def split(self, text: str) -> list[str]:
        """Split *text* into chunk strings (see the module docstring)."""
        if not text or not text.strip():
            return []

        units = self._split_units(text)
        pieces = self._accumulate_chunks(units)
        if not pieces:
            # Too short (or all noise) to pack; keep everything as one chunk.
            pieces = [text.strip()]
        return pieces

    # ------------------------------------------------------------------
    # Unit splitting
    # ------------------------------------------------------------------

    def _split_units(self, text: str) -> list[str]:
        units: list[str] = []
        dropped = 0
        for sentence in self._split_sentences(text):
            unit = " ".join(sentence.split())
            if len(unit) < self._min_unit_chars:
                dropped += 1
                continue
            if len(unit) > self._long_unit_chars:
                units.extend(self._split_long_unit(unit))
            else:
                units.append(unit)
        if dropped:
            logger.debug("chunker_fragments_dropped", count=dropped)
        return units

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* at sentence boundaries while respecting abbreviations.

        Periods after known abbreviations are masked with ``\\x00`` (same
        length, so indices stay aligned with the original text) before
        looking for sentence ends.
        """
        masked = _ABBREVIATION_RE.sub(lambda m: m.group(0).replace(".", "\x00"), text)

        sentences: list[str] = []
        last = 0
        for match in _SENTENCE_END_RE.finditer(masked):
            end = match.end()
            sentence = text[last:end].strip()
            if sentence:
                sentences.append(sentence)
            last = end

        remainder = text[last:].strip()
        if remainder:
            sentences.append(remainder)
        return sentences

    def _split_long_unit(self, unit: str) -> list[str]:
        """Split an over-long unit at commas/semicolons, keeping every character.

        Parts shorter than ``min_unit_chars`` are merged into a neighbour
        rather than dropped.
        """
        parts: list[str] = []
        for part in _CLAUSE_SPLIT_RE.split(unit):
            part = part.strip()
            if not part:
                continue
            if parts and (len(part) < self._min_unit_chars or len(parts[-1]) < self._min_unit_chars):
                parts[-1] = f"{parts[-1]} {part}"
            else:
                parts.append(part)

        if len(parts) > 1:
            return parts
        return [unit]

    # ------------------------------------------------------------------
    # Chunk accumulation
    # ------------------------------------------------------------------

    def _accumulate_chunks(self, units: list[str]) -> list[str]:
        """Greedily pack *units* into chunks, seeding each with overlap."""
        chunks: list[str] = []
        buffer = ""
        seed_len = 0  # length of the overlap prefix at the start of buffer

        for unit in units:
            if buffer and len(buffer) + 1 + len(unit) > self._chunk_size:
                if len(buffer.strip()) > self._min_chunk_chars:
                    chunks.append(buffer.strip())
                    buffer = self._build_overlap(buffer)
                    seed_len = len(buffer)
                # A buffer at or under the minimum keeps growing instead.
            buffer = f"{buffer} {unit}" if buffer else unit

        if buffer.strip():
            if len(buffer.strip()) > self._min_chunk_chars:
                chunks.append(buffer.strip())
            elif chunks:
                # Short tail: attach only the new text to the last chunk.
                fresh = buffer[seed_len:].strip()
                if fresh:
                    chunks[-1] = f"{chunks[-1]} {fresh}"
        return chunks

    def _build_overlap(self, text: str) -> str:
        """Return the last *k* words of *text*, ``k ≈ overlap / (avg word length + 1)``."""
        if self._overlap <= 0:
            return ""
        words = text.split()
        if not words:
            return ""
        avg_word_len = sum(len(w) for w in words) / len(words)
        k = max(1, round(self._overlap / (avg_word_len + 1)))
        # Never repeat the whole previous chunk.
        k = min(k, max(1, len(words) - 1))
        return " ".join(words[-k:])
