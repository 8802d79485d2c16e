"""Utility modules for the Complyx knowledge pipeline.

- **errors** -- exception hierarchy rooted at :class:`ComplyxError`.
- **logging** -- structlog setup: console output in development, JSON in
  production.
"""

from complyx.utils.errors import (
    ComplyxError,
    ConfigurationError,
    FetchError,
    LLMError,
    NotFoundError,
    RAGError,
    TransientIOError,
    ValidationError,
)
from complyx.utils.logging import configure_logging, get_logger

__all__ = [
    "ComplyxError",
    "ConfigurationError",
    "FetchError",
    "LLMError",
    "NotFoundError",
    "RAGError",
    "TransientIOError",
    "ValidationError",
    "configure_logging",
    "get_logger",
]
