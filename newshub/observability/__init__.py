"""Structured logging and metrics."""

from newshub.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    new_request_id,
)
from newshub.observability.metrics import EngineMetrics


__all__ = [
    "EngineMetrics",
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "new_request_id",
]
