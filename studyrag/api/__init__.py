"""HTTP API layer: FastAPI router, request/response schemas and middleware."""

from studyrag.api.middleware import ErrorHandlingMiddleware, RequestLoggingMiddleware, configure_cors
from studyrag.api.routes import router

__all__ = ["ErrorHandlingMiddleware", "RequestLoggingMiddleware", "configure_cors", "router"]
