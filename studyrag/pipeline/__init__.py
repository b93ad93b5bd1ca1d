"""Pipeline orchestration: ingestion/answer coordinator, job queue, wiring."""

from studyrag.pipeline.builder import build_components
from studyrag.pipeline.orchestrator import HELP_SUGGESTIONS, RAGPipeline
from studyrag.pipeline.processing_queue import ProcessingQueue

__all__ = ["HELP_SUGGESTIONS", "ProcessingQueue", "RAGPipeline", "build_components"]
