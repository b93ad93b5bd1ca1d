"""Unit tests for the ingestion CLI handlers and argument parser."""

from __future__ import annotations

import argparse
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import make_material
from studyrag.cli.ingest import (
    _build_parser,
    _handle_ask,
    _handle_process,
    _handle_register,
    _handle_stats,
    _handle_status,
    _run,
    main,
)
from studyrag.models.material import ProcessingStatus
from studyrag.models.rag import (
    AnswerResponse,
    CourseStats,
    IngestionResult,
    IngestionStage,
    SourceCitation,
)
from studyrag.utils.errors import PersistenceError


@pytest.fixture
def pipeline() -> MagicMock:
    mock = MagicMock()
    mock.initialize = AsyncMock()
    mock.register_material = AsyncMock(return_value=make_material(id="mat-9"))
    mock.ingest = AsyncMock(
        return_value=IngestionResult(
            material_id="mat-9", success=True, chunks_created=12, page_count=4, duration_seconds=1.25
        )
    )
    mock.get_material = AsyncMock(return_value=None)
    return mock


class TestParser:
    def test_register_arguments(self) -> None:
        args = _build_parser().parse_args(
            ["register", "--title", "Week 1", "--course", "bio101", "--url", "https://x.org/a.pdf", "--process"]
        )
        assert (args.command, args.title, args.course, args.process, args.id) == (
            "register",
            "Week 1",
            "bio101",
            True,
            None,
        )

    def test_ask_arguments(self) -> None:
        args = _build_parser().parse_args(["ask", "What is osmosis?", "--course", "bio101"])
        assert args.question == "What is osmosis?"
        assert args.course == "bio101"

    def test_no_command_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1


class TestHandlers:
    @pytest.mark.asyncio
    async def test_register_without_processing(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        args = argparse.Namespace(title="Week 1", course="bio101", url="https://x.org/a.pdf", id="mat-9", process=False)

        assert await _handle_register(args, pipeline) == 0

        assert "Registered material mat-9" in capsys.readouterr().out
        pipeline.register_material.assert_awaited_once_with(
            title="Week 1", course_id="bio101", source_url="https://x.org/a.pdf", material_id="mat-9"
        )
        pipeline.ingest.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_register_and_process(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        args = argparse.Namespace(title="Week 1", course="bio101", url="https://x.org/a.pdf", id=None, process=True)

        assert await _handle_register(args, pipeline) == 0

        out = capsys.readouterr().out
        assert "Chunks:   12" in out
        pipeline.ingest.assert_awaited_once_with("mat-9")

    @pytest.mark.asyncio
    async def test_process_failure(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pipeline.ingest.return_value = IngestionResult(
            material_id="mat-9",
            success=False,
            error="Source is not reachable (HTTP 404)",
            failed_stage=IngestionStage.VALIDATE,
        )

        assert await _handle_process(argparse.Namespace(material_id="mat-9"), pipeline) == 1
        assert "FAILED at validate: Source is not reachable (HTTP 404)" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_status(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pipeline.get_material.return_value = make_material(
            processing_status=ProcessingStatus.FAILED, processing_error="HTTP 404"
        )

        assert await _handle_status(argparse.Namespace(material_id="mat-1"), pipeline) == 0

        out = capsys.readouterr().out
        assert "Status:     failed" in out
        assert "Error:      HTTP 404" in out

    @pytest.mark.asyncio
    async def test_status_unknown(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        assert await _handle_status(argparse.Namespace(material_id="nope"), pipeline) == 1
        assert "Material not found: nope" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_ask(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pipeline.answer = AsyncMock(
            return_value=AnswerResponse(
                answer="Mitochondria make ATP.",
                sources=[
                    SourceCitation(
                        material_id="mat-1", material_title="Cell Biology Notes", chunk_index=2, relevance_score=0.91
                    )
                ],
                follow_up_questions=["What is glycolysis used for?"],
                confidence=0.91,
            )
        )

        assert await _handle_ask(argparse.Namespace(question="What makes ATP?", course="bio101"), pipeline) == 0

        out = capsys.readouterr().out
        assert "Mitochondria make ATP." in out
        assert "Cell Biology Notes (chunk 2, score 0.91)" in out
        assert "* What is glycolysis used for?" in out
        pipeline.answer.assert_awaited_once_with("What makes ATP?", course_id="bio101")

    @pytest.mark.asyncio
    async def test_stats(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pipeline.get_course_stats = AsyncMock(
            return_value=CourseStats(
                course_id="bio101",
                total_materials=3,
                processed_materials=2,
                total_chunks=9,
                average_chunks_per_material=4.5,
            )
        )

        assert await _handle_stats(argparse.Namespace(course="bio101"), pipeline) == 0

        out = capsys.readouterr().out
        assert "Ingestion statistics (bio101)" in out
        assert "Chunks per material:  4.5" in out


class TestRun:
    @pytest.mark.asyncio
    async def test_errors_become_exit_code(self, pipeline: MagicMock, capsys: pytest.CaptureFixture[str]) -> None:
        pipeline.register_material.side_effect = PersistenceError("Material mat-9 already exists")
        http_client = MagicMock()
        http_client.aclose = AsyncMock()
        args = argparse.Namespace(
            command="register", title="T", course="c", url="https://x.org/a.pdf", id="mat-9", process=False
        )

        code = await _run(args, {"pipeline": pipeline, "http_client": http_client})

        assert code == 1
        assert "Error: Material mat-9 already exists" in capsys.readouterr().out
        pipeline.initialize.assert_awaited_once()
        http_client.aclose.assert_awaited_once()
