"""Structured logging configuration with structlog.

structlog events and plain stdlib records (seed data, uvicorn, SQLAlchemy)
go through the same processor chain, so every line carries the bound
request id and renders as JSON or console output alike.
"""

import logging

import structlog

from sharkband.config import Settings

# Libraries that log per request or per statement at INFO.
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")

_handler: logging.Handler | None = None


def setup_logging(settings: Settings) -> None:
    """Configure structlog and the stdlib root handler."""
    global _handler  # noqa: PLW0603
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    _handler = handler
    root.setLevel(level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
