"""StudyRAG FastAPI application entry point.

Wires providers, services and routes via dependency injection, configures
structured logging, and optionally runs the processing-queue worker in the
background for the lifetime of the app.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from studyrag import __version__
from studyrag.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware, configure_cors
from studyrag.api.routes import router as api_router
from studyrag.config import get_settings
from studyrag.config.settings import Settings
from studyrag.pipeline.builder import build_components
from studyrag.pipeline.orchestrator import RAGPipeline
from studyrag.pipeline.processing_queue import ProcessingQueue
from studyrag.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def _make_lifespan(app_settings: Settings, components: dict[str, Any] | None):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
        """Build and initialise components on startup, release them on shutdown."""
        built = components if components is not None else build_components(app_settings)
        for key, value in built.items():
            setattr(application.state, key, value)

        pipeline: RAGPipeline = built["pipeline"]
        await pipeline.initialize()

        stop_event = asyncio.Event()
        worker: asyncio.Task[None] | None = None
        if app_settings.queue_worker_enabled:
            queue: ProcessingQueue = built["queue"]
            worker = asyncio.create_task(
                queue.run(poll_interval=app_settings.queue_poll_interval, stop_event=stop_event)
            )

        _logger.info(
            "app_startup",
            version=__version__,
            environment=app_settings.app_env,
            queue_worker=worker is not None,
        )

        yield

        stop_event.set()
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker

        http_client: httpx.AsyncClient | None = built.get("http_client")
        if http_client is not None:
            await http_client.aclose()
        _logger.info("app_shutdown")

    return _lifespan


def create_app(
    app_settings: Settings | None = None,
    components: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    app_settings:
        Settings to use; loaded from the environment when omitted.
    components:
        Pre-built component dict (see :func:`build_components`); built
        from *app_settings* at startup when omitted.
    """
    app_settings = app_settings or get_settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    application = FastAPI(
        title="StudyRAG API",
        version=__version__,
        description=(
            "Ingest course PDFs into an embedded chunk store and answer learner "
            "questions grounded in those materials."
        ),
        lifespan=_make_lifespan(app_settings, components),
    )

    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    application.include_router(api_router)
    return application


def run() -> None:
    """Serve the app with uvicorn using host/port from settings."""
    app_settings = get_settings()
    uvicorn.run(
        "studyrag.main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=(app_settings.app_env == "development"),
    )


if __name__ == "__main__":
    run()
