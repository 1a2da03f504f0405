"""Observability helpers."""

from agentwatch.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_poll,
    record_scan,
    record_parse_failure,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_poll",
    "record_scan",
    "record_parse_failure",
]
