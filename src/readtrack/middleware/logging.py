"""Structured logging configuration with structlog.

The goal engine and reading services log through stdlib loggers
(`logging.getLogger(__name__)`); the HTTP layer uses structlog directly.
Both end up in one handler rendered by structlog, so a goal failure and
the request that caused it share the request_id.
"""

import logging

import structlog

from readtrack.config import Settings

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
]


_handler: logging.Handler | None = None


def _final_processors(settings: Settings) -> list[structlog.types.Processor]:
    if settings.log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def setup_logging(settings: Settings) -> None:
    """Configure structlog and route stdlib records through the same renderer."""
    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *_final_processors(settings),
        ],
    )
    global _handler  # noqa: PLW0603
    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    _handler = logging.StreamHandler()
    _handler.setFormatter(formatter)
    root.addHandler(_handler)
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
