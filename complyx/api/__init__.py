"""Complyx API layer: routes, schemas and middleware."""

from complyx.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from complyx.api.routes import router
from complyx.api.schemas import ErrorResponse, HealthResponse, RAGRequest, SearchRequest

__all__ = [
    "ErrorHandlingMiddleware",
    "RequestLoggingMiddleware",
    "configure_cors",
    "router",
    "ErrorResponse",
    "HealthResponse",
    "RAGRequest",
    "SearchRequest",
]
