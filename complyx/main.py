"""Complyx FastAPI application entry point.

Builds every provider and service at startup (:mod:`complyx.bootstrap`),
stores them on ``app.state``, starts the feed scheduler, and mounts the
``/api/v1`` routes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from complyx import __version__
from complyx.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from complyx.api.routes import router as api_router
from complyx.bootstrap import build_components, close_components
from complyx.config.settings import Settings
from complyx.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=settings.is_production,
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise all providers and services on startup, clean up on shutdown."""
    components = build_components(settings)
    for key, value in components.items():
        setattr(application.state, key, value)

    await components["vector_store"].connect()
    if settings.feed_scheduler_enabled:
        await components["feed_scheduler"].start()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        vector_store=settings.vector_db_type,
        feed_scheduler=settings.feed_scheduler_enabled,
    )

    yield

    await close_components(components)
    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Complyx Knowledge API",
        version=__version__,
        description=(
            "Ingest IFRS and accounting documents, search them semantically, "
            "answer questions with cited context, and keep the knowledge base "
            "current from scheduled RSS feeds."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=settings.cors_origins)

    application.include_router(api_router)
    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "complyx.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
