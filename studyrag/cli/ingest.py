"""Command-line interface for material ingestion and ad-hoc questions.

Usage::

    python -m studyrag.cli register --title "Week 1 notes" --course bio101 \\
        --url https://example.com/week1.pdf --process

    python -m studyrag.cli process <material_id>

    python -m studyrag.cli status <material_id>

    python -m studyrag.cli ask "What is osmosis?" --course bio101

    python -m studyrag.cli stats --course bio101

Providers are selected from the environment / ``.env`` exactly as the API
does, so the CLI writes to and reads from the same chunk store.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Sequence
from typing import Any

from studyrag.config.settings import Settings
from studyrag.pipeline.builder import build_components
from studyrag.pipeline.orchestrator import RAGPipeline
from studyrag.utils.errors import StudyRagError
from studyrag.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_register(args: argparse.Namespace, pipeline: RAGPipeline) -> int:
    material = await pipeline.register_material(
        title=args.title,
        course_id=args.course,
        source_url=args.url,
        material_id=args.id,
    )
    print(f"Registered material {material.id} ({material.title})")
    if not args.process:
        return 0
    return await _handle_process(argparse.Namespace(material_id=material.id), pipeline)


async def _handle_process(args: argparse.Namespace, pipeline: RAGPipeline) -> int:
    print(f"Processing material {args.material_id} ...")
    result = await pipeline.ingest(args.material_id)
    if not result.success:
        stage = result.failed_stage.value if result.failed_stage else "unknown"
        print(f"  FAILED at {stage}: {result.error}")
        return 1

    pages = result.page_count if result.page_count is not None else "?"
    print(f"  Pages:    {pages}")
    print(f"  Chunks:   {result.chunks_created}")
    print(f"  Time:     {result.duration_seconds:.1f}s")
    return 0


async def _handle_status(args: argparse.Namespace, pipeline: RAGPipeline) -> int:
    material = await pipeline.get_material(args.material_id)
    if material is None:
        print(f"Material not found: {args.material_id}")
        return 1

    print(f"{material.title} [{material.id}]")
    print(f"  Course:     {material.course_id}")
    print(f"  Status:     {material.processing_status.value}")
    print(f"  Processed:  {'yes' if material.processed else 'no'}")
    print(f"  Chunks:     {material.chunk_count}")
    if material.processing_error:
        print(f"  Error:      {material.processing_error}")
    return 0


async def _handle_ask(args: argparse.Namespace, pipeline: RAGPipeline) -> int:
    response = await pipeline.answer(args.question, course_id=args.course)
    print(response.answer)

    if response.sources:
        print("\nSources:")
        for source in response.sources:
            print(
                f"  - {source.material_title} (chunk {source.chunk_index}, "
                f"score {source.relevance_score:.2f})"
            )
    if response.follow_up_questions:
        print("\nYou could also ask:")
        for suggestion in response.follow_up_questions:
            print(f"  * {suggestion}")
    return 0


async def _handle_stats(args: argparse.Namespace, pipeline: RAGPipeline) -> int:
    stats = await pipeline.get_course_stats(args.course)

    print(f"Ingestion statistics ({stats.course_id or 'all courses'})")
    print("=" * 40)
    print(f"  Materials:            {stats.total_materials}")
    print(f"  Processed:            {stats.processed_materials}")
    print(f"  Chunks:               {stats.total_chunks}")
    print(f"  Chunks per material:  {stats.average_chunks_per_material}")
    return 0


_HANDLERS = {
    "register": _handle_register,
    "process": _handle_process,
    "status": _handle_status,
    "ask": _handle_ask,
    "stats": _handle_stats,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m studyrag.cli",
        description="Ingest course PDFs and ask questions about them.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    register_parser = subparsers.add_parser("register", help="Register a course PDF")
    register_parser.add_argument("--title", required=True, help="Material title")
    register_parser.add_argument("--course", required=True, help="Course id")
    register_parser.add_argument("--url", required=True, help="http(s) URL of the PDF")
    register_parser.add_argument("--id", default=None, help="Material id (generated if omitted)")
    register_parser.add_argument(
        "--process", action="store_true", help="Process the material right away"
    )

    process_parser = subparsers.add_parser("process", help="Run ingestion for a material")
    process_parser.add_argument("material_id", help="Material id")

    status_parser = subparsers.add_parser("status", help="Show a material's processing status")
    status_parser.add_argument("material_id", help="Material id")

    ask_parser = subparsers.add_parser("ask", help="Ask a question")
    ask_parser.add_argument("question", help="The question text")
    ask_parser.add_argument("--course", default=None, help="Restrict to one course")

    stats_parser = subparsers.add_parser("stats", help="Show ingestion statistics")
    stats_parser.add_argument("--course", default=None, help="Restrict to one course")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, components: dict[str, Any]) -> int:
    pipeline: RAGPipeline = components["pipeline"]
    try:
        await pipeline.initialize()
        return await _HANDLERS[args.command](args, pipeline)
    except StudyRagError as exc:
        print(f"Error: {exc}")
        return 1
    finally:
        http_client = components.get("http_client")
        if http_client is not None:
            await http_client.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments, build the pipeline from settings and run one command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level)

    try:
        components = build_components(app_settings)
    except StudyRagError as exc:
        print(f"Configuration error: {exc}")
        sys.exit(1)

    sys.exit(asyncio.run(_run(args, components)))


if __name__ == "__main__":
    main()
