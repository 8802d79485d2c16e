"""Structured logging setup using structlog.

The same shared processor chain (context vars, service name, log level,
timestamps, stack info) feeds either a coloured ConsoleRenderer for local
development or a JSONRenderer for production.  The renderer is selected from
the ``APP_ENV`` environment variable (default ``"development"``) or forced
via the ``json_output`` flag.  In JSON mode tracebacks from
``log.exception`` are emitted as structured frames so a crashed feed item
can be searched for by exception type.

Standard-library ``logging`` is rewired through the same formatter so that
uvicorn and the vector-store / LLM SDKs produce identically formatted
output.  The SDKs log every HTTP round trip at INFO, so they are held at
WARNING unless the pipeline itself runs at DEBUG.
"""

import logging
import os
import sys

import structlog

SERVICE_NAME = "complyx"

# Third-party loggers that narrate each request at INFO.
NOISY_LOGGERS: tuple[str, ...] = (
    "chromadb",
    "httpcore",
    "httpx",
    "openai",
    "pinecone",
    "trafilatura",
    "urllib3",
)


def _add_service(service: str) -> structlog.types.Processor:
    def processor(
        logger: object, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = False,
    service: str = SERVICE_NAME,
) -> structlog.BoundLogger:
    """Configure structlog with environment-appropriate rendering.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        json_output: Force JSON output. When False, uses console rendering in
                     development and JSON in production (detected via APP_ENV).
        service: Value of the ``service`` key on every event, so API and CLI
                 output can be told apart once aggregated.

    Returns:
        A configured structlog BoundLogger.
    """
    app_env = os.environ.get("APP_ENV", "development")
    use_json = json_output or app_env == "production"
    level = log_level.upper()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service(service),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        shared_processors.append(structlog.processors.dict_tracebacks)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *shared_processors,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    sdk_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(sdk_level)

    return structlog.get_logger()


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structlog logger, configuring defaults on first use."""
    if not structlog.is_configured():
        configure_logging()

    return structlog.get_logger(logger_name=name)
