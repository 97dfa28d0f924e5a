"""Unified event schema and module-level emit helpers.

All timestamps use UTC ISO-8601 with ``Z`` suffix.  The ``emit()``
family of functions is safe to call from any context: failures are
reported on stderr and never propagate.
"""

from __future__ import annotations

import sys
import time
import traceback
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class EventLevel(str, Enum):
    info = "info"
    warning = "warning"
    error = "error"


class EventType(str, Enum):
    # Recalculation lifecycle
    recalc_started = "recalc_started"
    recalc_completed = "recalc_completed"
    recalc_failed = "recalc_failed"
    recalc_stale_discarded = "recalc_stale_discarded"
    recalc_timeout = "recalc_timeout"

    # Cell diagnostics
    cell_error = "cell_error"


# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------

WORKER_ERROR = "worker_error"
WORKER_TIMEOUT = "worker_timeout"
UNKNOWN_REQUEST = "unknown_request"

_MAX_VALUE_LEN = 256


def truncate_context(context: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *context* with long strings and lists shortened.

    Cell lists from large sheets would otherwise dominate the log.
    """
    out: dict[str, Any] = {}
    for k, v in context.items():
        if isinstance(v, str) and len(v) > _MAX_VALUE_LEN:
            out[k] = v[:_MAX_VALUE_LEN] + "...[truncated]"
        elif isinstance(v, (list, tuple)) and len(v) > 20:
            out[k] = list(v[:20]) + [f"...[{len(v) - 20} more]"]
        elif isinstance(v, dict):
            out[k] = truncate_context(v)
        else:
            out[k] = v
    return out


# ---------------------------------------------------------------------------
# Event model
# ---------------------------------------------------------------------------


def _utc_now() -> str:
    """Return current UTC timestamp in ISO-8601 with Z suffix."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


class CalcEvent(BaseModel):
    """A single structured log event."""

    schema_version: int = 1
    ts: str = Field(default_factory=_utc_now)
    level: EventLevel
    event_type: EventType
    context: dict[str, Any] = Field(default_factory=dict)
    message: str = ""
    error_code: str | None = None


# ---------------------------------------------------------------------------
# Module-level sink reference
# ---------------------------------------------------------------------------

# Lazily initialised when ``set_log_dir`` is called.
_sink: Any = None  # EventSink | None


def set_log_dir(log_dir: Path | str | None, *, fsync: bool = False) -> None:
    """Configure the module-level event sink.

    If it is never called (or called with None), ``emit()`` silently
    discards events.
    """
    global _sink
    from sheetcalc.logging.sink import EventSink

    _sink = None if log_dir is None else EventSink(Path(log_dir), fsync=fsync)


def get_sink() -> Any:
    """Return the module-level sink, or None."""
    return _sink


# ---------------------------------------------------------------------------
# Rate-limited stderr warnings
# ---------------------------------------------------------------------------

_last_stderr_ts: float = 0.0
_STDERR_INTERVAL_SECS = 60.0


def _stderr_warning(msg: str) -> None:
    """Print a warning to stderr, rate-limited to one per 60 seconds."""
    global _last_stderr_ts
    now = time.monotonic()
    if now - _last_stderr_ts < _STDERR_INTERVAL_SECS:
        return
    _last_stderr_ts = now
    print(f"[sheetcalc] {msg}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Safe emit helpers
# ---------------------------------------------------------------------------


def emit(event: CalcEvent) -> None:
    """Write an event to the configured log.

    **Never raises.**  On failure, prints a rate-limited warning to stderr.
    """
    try:
        sink = get_sink()
        if sink is None:
            return
        sink.write(event.model_copy(update={"context": truncate_context(event.context)}))
    except Exception:
        _stderr_warning(f"logging failed: {traceback.format_exc()}")


def emit_info(event_type: EventType, message: str, context: dict[str, Any] | None = None) -> None:
    """Convenience: emit an info-level event."""
    emit(CalcEvent(level=EventLevel.info, event_type=event_type, message=message, context=context or {}))


def emit_warning(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit a warning-level event."""
    emit(
        CalcEvent(
            level=EventLevel.warning,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )


def emit_error(
    event_type: EventType,
    message: str,
    context: dict[str, Any] | None = None,
    *,
    error_code: str | None = None,
) -> None:
    """Convenience: emit an error-level event."""
    emit(
        CalcEvent(
            level=EventLevel.error,
            event_type=event_type,
            message=message,
            context=context or {},
            error_code=error_code,
        )
    )
