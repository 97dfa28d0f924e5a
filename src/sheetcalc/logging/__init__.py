"""Structured event logging for sheetcalc.

Provides a unified event schema, filesystem NDJSON sink, and safe
emit helpers that never raise uncaught exceptions.
"""

from sheetcalc.logging.events import (
    UNKNOWN_REQUEST,
    WORKER_ERROR,
    WORKER_TIMEOUT,
    CalcEvent,
    EventLevel,
    EventType,
    emit,
    emit_error,
    emit_info,
    emit_warning,
    get_sink,
    set_log_dir,
)
from sheetcalc.logging.sink import EventSink

__all__ = [
    "UNKNOWN_REQUEST",
    "WORKER_ERROR",
    "WORKER_TIMEOUT",
    "CalcEvent",
    "EventLevel",
    "EventSink",
    "EventType",
    "emit",
    "emit_error",
    "emit_info",
    "emit_warning",
    "get_sink",
    "set_log_dir",
]
