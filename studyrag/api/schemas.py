"""Pydantic request/response schemas for the StudyRAG API.

Request schemas end with ``Request`` and response schemas with
``Response``.  Domain models (``Material``, ``AnswerResponse``,
``QueueJob`` ...) are returned directly where their shape is already the
public contract.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from studyrag.models.material import ChatTurn
from studyrag.models.queue import QueueJob


class RegisterMaterialRequest(BaseModel):
    """A course PDF to register for ingestion."""

    title: str = Field(..., min_length=1, max_length=300)
    course_id: str = Field(..., min_length=1)
    source_url: str = Field(..., min_length=1, description="http(s) URL of the PDF.")
    material_id: str | None = Field(default=None, description="Client-chosen id; generated when omitted.")
    enqueue: bool = Field(default=True, description="Queue the material for processing immediately.")


class RegisterMaterialResponse(BaseModel):
    material_id: str
    job_id: str | None = None


class RenameMaterialRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)


class EnqueueRequest(BaseModel):
    material_id: str = Field(..., min_length=1)


class EnqueueResponse(BaseModel):
    job: QueueJob


class RetryResponse(BaseModel):
    requeued: int


class ChatRequest(BaseModel):
    """A learner question with optional recent conversation."""

    question: str = Field(..., min_length=1, max_length=2000)
    history: list[ChatTurn] = Field(default_factory=list)
    course_id: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
