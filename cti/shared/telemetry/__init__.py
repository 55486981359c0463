"""Shared telemetry: logging setup and tracing helpers."""

from cti.shared.telemetry.logging import get_logger, setup_logging
from cti.shared.telemetry.tracing import (
    TracedOperation,
    add_span_attributes,
    add_span_event,
    traced,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "traced",
    "add_span_attributes",
    "add_span_event",
    "TracedOperation",
]
