"""Background recalculation: wire protocol, worker, and scheduler."""

from sheetcalc.recalc.protocol import (
    ComputedCell,
    ErrorPayload,
    RecalcRequest,
    RecalcResponse,
    RequestPayload,
    ResultPayload,
)
from sheetcalc.recalc.scheduler import RecalcError, RecalcOutcome, RecalcScheduler
from sheetcalc.recalc.worker import FormulaWorker, handle_message

__all__ = [
    "ComputedCell",
    "ErrorPayload",
    "FormulaWorker",
    "RecalcError",
    "RecalcOutcome",
    "RecalcRequest",
    "RecalcResponse",
    "RecalcScheduler",
    "RequestPayload",
    "ResultPayload",
    "handle_message",
]
