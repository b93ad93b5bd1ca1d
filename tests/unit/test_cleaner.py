"""Unit tests for TextCleaner whitespace normalization."""

from __future__ import annotations

import pytest

from studyrag.services.ingestion.cleaner import TextCleaner
from studyrag.utils.errors import EmptyContentError


@pytest.fixture
def cleaner() -> TextCleaner:
    return TextCleaner()


class TestClean:
    def test_normalizes_line_endings(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("line one\r\nline two\rline three") == "line one\nline two\nline three"

    def test_collapses_horizontal_whitespace(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("cells   divide\t\tby  mitosis") == "cells divide by mitosis"

    def test_collapses_blank_lines_and_trims(self, cleaner: TextCleaner) -> None:
        raw = "\n\n  Chapter 1  \n\n\n\n   Cells are small.   \n\n"
        assert cleaner.clean(raw) == "Chapter 1\nCells are small."

    def test_removes_control_and_replacement_characters(self, cleaner: TextCleaner) -> None:
        raw = "DNA\x00 replication\x07 is� semi\x0cconservative"
        assert cleaner.clean(raw) == "DNA replication is semiconservative"

    def test_keeps_unicode_text(self, cleaner: TextCleaner) -> None:
        assert cleaner.clean("Schrödinger’s équation, Δx ≈ 2") == "Schrödinger’s équation, Δx ≈ 2"

    @pytest.mark.parametrize("raw", ["", "   ", "\n\n\t", "\x00\x01�"])
    def test_empty_result_raises(self, cleaner: TextCleaner, raw: str) -> None:
        with pytest.raises(EmptyContentError):
            cleaner.clean(raw)

    def test_low_quality_text_is_kept(self, cleaner: TextCleaner) -> None:
        raw = "#$%^&*()!@#$%^&*() ab"
        assert cleaner.clean(raw) == raw


class TestReadableRatio:
    def test_plain_text_is_fully_readable(self) -> None:
        assert TextCleaner.readable_ratio("Cells divide") == 1.0

    def test_symbols_lower_the_ratio(self) -> None:
        assert TextCleaner.readable_ratio("ab$$") == pytest.approx(0.5)

    def test_empty_text(self) -> None:
        assert TextCleaner.readable_ratio("") == 0.0
