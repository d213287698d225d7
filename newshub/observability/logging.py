"""Structured logging configuration for the engine and its HTTP stack."""

import logging
import sys
import uuid
from typing import TextIO

import structlog
from structlog.types import EventDict, WrappedLogger


SERVICE_NAME = "newshub"

# Libraries whose per-request INFO lines drown out engine events
NOISY_LIBRARIES = ("httpx", "httpcore")

REQUEST_CONTEXT_KEYS = ("request_id", "category")


def add_service_name(
    _logger: WrappedLogger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Stamp every record with the service name unless already set."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def quiet_libraries(level: int) -> None:
    """Keep HTTP client chatter out of the log unless debugging.

    Args:
        level: Level the engine logs at.
    """
    library_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)


def configure_logging(
    level: int = logging.INFO,
    output: TextIO = sys.stderr,
    json_format: bool = True,
) -> None:
    """Configure structured logging for the engine.

    Records carry the service name, the request context bound by
    bind_request_context(), the level and an ISO timestamp. The standard
    library root logger writes to the same stream so httpx warnings end
    up next to engine events.

    Args:
        level: Logging level (default: INFO).
        output: Output stream (default: stderr).
        json_format: Emit JSON lines instead of the console renderer.
    """
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer(sort_keys=True)
        if json_format
        else structlog.dev.ConsoleRenderer(colors=output.isatty())
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=output),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(name)s %(levelname)s %(message)s", stream=output)
    logging.getLogger().setLevel(level)
    quiet_libraries(level)


def new_request_id() -> str:
    """Generate a short id for one category request."""
    return uuid.uuid4().hex[:12]


def bind_request_context(category: str, request_id: str | None = None) -> str:
    """Bind request context to all subsequent log messages on this thread.

    Args:
        category: Category being served.
        request_id: Request identifier; generated when omitted.

    Returns:
        The bound request id.
    """
    request_id = request_id or new_request_id()
    structlog.contextvars.bind_contextvars(request_id=request_id, category=category)
    return request_id


def clear_request_context() -> None:
    """Clear request context from log messages."""
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)
