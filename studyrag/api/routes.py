"""FastAPI routes for material ingestion, the processing queue and chat.

Route map (all prefixed with ``/api/v1``)::

    /materials                    POST   Register a material (optionally queue it)
    /materials                    GET    List materials, optionally by course
    /materials/{id}               GET    Material status
    /materials/{id}               PATCH  Rename a material
    /materials/{id}/process       POST   Run ingestion now
    /queue/jobs                   POST   Queue a material
    /queue/jobs/{job_id}          GET    Job status
    /queue/stats                  GET    Job counts
    /queue/retry                  POST   Requeue failed jobs
    /chat                         POST   Ask a question
    /rag/stats                    GET    Course ingestion statistics
    /rag/suggestions              GET    Starter questions for a course
    /health                       GET    Health check + provider names

Services are read from ``app.state`` (populated by the lifespan in
``studyrag/main.py``) through ``Annotated[..., Depends(...)]`` aliases.
"""

from __future__ import annotations

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from studyrag import __version__
from studyrag.api.schemas import (
    ChatRequest,
    EnqueueRequest,
    EnqueueResponse,
    ErrorResponse,
    HealthResponse,
    RegisterMaterialRequest,
    RegisterMaterialResponse,
    RenameMaterialRequest,
    RetryResponse,
)
from studyrag.interfaces.embedding_provider import IEmbeddingProvider
from studyrag.interfaces.llm_provider import ILLMProvider
from studyrag.models.material import Material
from studyrag.models.queue import QueueJob, QueueStats
from studyrag.models.rag import AnswerResponse, CourseStats, IngestionResult
from studyrag.pipeline.orchestrator import RAGPipeline
from studyrag.pipeline.processing_queue import ProcessingQueue
from studyrag.utils.errors import PersistenceError, PipelineError
from studyrag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_pipeline(request: Request) -> RAGPipeline:
    return request.app.state.pipeline


def _get_queue(request: Request) -> ProcessingQueue:
    return request.app.state.queue


def _get_llm_provider(request: Request) -> ILLMProvider:
    return request.app.state.llm_provider


def _get_embedding_provider(request: Request) -> IEmbeddingProvider:
    return request.app.state.embedding_provider


PipelineDep = Annotated[RAGPipeline, Depends(_get_pipeline)]
QueueDep = Annotated[ProcessingQueue, Depends(_get_queue)]
LLMProviderDep = Annotated[ILLMProvider, Depends(_get_llm_provider)]
EmbeddingProviderDep = Annotated[IEmbeddingProvider, Depends(_get_embedding_provider)]


async def _require_material(pipeline: RAGPipeline, material_id: str) -> Material:
    material = await pipeline.get_material(material_id)
    if material is None:
        raise HTTPException(status_code=404, detail=f"Material not found: {material_id}")
    return material


# ---------------------------------------------------------------------------
# Materials
# ---------------------------------------------------------------------------


@router.post(
    "/materials",
    response_model=RegisterMaterialResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse}},
    summary="Register a course material",
)
async def register_material(
    body: RegisterMaterialRequest,
    pipeline: PipelineDep,
    queue: QueueDep,
) -> RegisterMaterialResponse:
    """Register a PDF and, unless ``enqueue`` is false, queue it for processing."""
    if body.material_id and await pipeline.get_material(body.material_id) is not None:
        raise HTTPException(status_code=409, detail=f"Material already exists: {body.material_id}")

    try:
        material = await pipeline.register_material(
            title=body.title,
            course_id=body.course_id,
            source_url=body.source_url,
            material_id=body.material_id,
        )
    except PersistenceError as exc:
        raise HTTPException(status_code=409, detail=exc.message) from exc

    job_id = None
    if body.enqueue:
        job = await queue.add_job(material.id)
        job_id = job.id
    return RegisterMaterialResponse(material_id=material.id, job_id=job_id)


@router.get("/materials", response_model=list[Material], summary="List materials")
async def list_materials(
    pipeline: PipelineDep,
    course_id: Annotated[str | None, Query()] = None,
) -> list[Material]:
    return await pipeline.list_materials(course_id)


@router.get(
    "/materials/{material_id}",
    response_model=Material,
    responses={404: {"model": ErrorResponse}},
    summary="Get material processing status",
)
async def get_material(material_id: str, pipeline: PipelineDep) -> Material:
    return await _require_material(pipeline, material_id)


@router.patch(
    "/materials/{material_id}",
    response_model=Material,
    responses={404: {"model": ErrorResponse}},
    summary="Rename a material",
)
async def rename_material(
    material_id: str,
    body: RenameMaterialRequest,
    pipeline: PipelineDep,
) -> Material:
    await _require_material(pipeline, material_id)
    return await pipeline.rename_material(material_id, body.title)


@router.post(
    "/materials/{material_id}/process",
    response_model=IngestionResult,
    responses={404: {"model": ErrorResponse}},
    summary="Process a material now",
)
async def process_material(material_id: str, pipeline: PipelineDep) -> IngestionResult:
    """Run ingestion synchronously; failures are reported in the result body."""
    await _require_material(pipeline, material_id)
    return await pipeline.ingest(material_id)


# ---------------------------------------------------------------------------
# Queue
# ---------------------------------------------------------------------------


@router.post(
    "/queue/jobs",
    response_model=EnqueueResponse,
    status_code=202,
    responses={404: {"model": ErrorResponse}},
    summary="Queue a material for processing",
)
async def enqueue_material(
    body: EnqueueRequest,
    pipeline: PipelineDep,
    queue: QueueDep,
) -> EnqueueResponse:
    await _require_material(pipeline, body.material_id)
    return EnqueueResponse(job=await queue.add_job(body.material_id))


@router.get(
    "/queue/jobs/{job_id}",
    response_model=QueueJob,
    responses={404: {"model": ErrorResponse}},
    summary="Get job status",
)
async def get_job(job_id: str, queue: QueueDep) -> QueueJob:
    job = queue.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return job


@router.get("/queue/stats", response_model=QueueStats, summary="Queue statistics")
async def queue_stats(queue: QueueDep) -> QueueStats:
    return queue.get_stats()


@router.post("/queue/retry", response_model=RetryResponse, summary="Requeue failed jobs")
async def retry_failed(queue: QueueDep) -> RetryResponse:
    return RetryResponse(requeued=queue.retry_failed())


# ---------------------------------------------------------------------------
# Chat & statistics
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=AnswerResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Ask a question",
)
async def chat(body: ChatRequest, pipeline: PipelineDep) -> AnswerResponse:
    """Answer from the ingested course materials; always returns an answer body."""
    try:
        return await pipeline.answer(
            question=body.question,
            history=body.history,
            course_id=body.course_id,
        )
    except PipelineError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


@router.get("/rag/stats", response_model=CourseStats, summary="Ingestion statistics")
async def rag_stats(
    pipeline: PipelineDep,
    course_id: Annotated[str | None, Query()] = None,
) -> CourseStats:
    return await pipeline.get_course_stats(course_id)


@router.get("/rag/suggestions", response_model=list[str], summary="Starter questions")
async def rag_suggestions(
    pipeline: PipelineDep,
    course_id: Annotated[str | None, Query()] = None,
) -> list[str]:
    """One "Tell me about ..." question per material, for an empty chat."""
    return await pipeline.get_query_suggestions(course_id)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(
    llm_provider: LLMProviderDep,
    embedding_provider: EmbeddingProviderDep,
) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=__version__,
        providers={
            "llm": llm_provider.get_provider_name(),
            "embedding": embedding_provider.get_provider_name(),
            "embedding_dimension": embedding_provider.get_dimension(),
        },
    )
