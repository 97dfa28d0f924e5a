"""Interactive-side recalculation scheduler.

Every edit resubmits all formula cells of the sheet to the worker as one
job.  Responses are merged back in bounded chunks, yielding to the event
loop between chunks so a large result never stalls the caller.  A
response that arrives after a newer job was submitted is discarded.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from sheetcalc.config import DEFAULT_CONFIG
from sheetcalc.formulas.errors import is_error
from sheetcalc.logging import (
    WORKER_ERROR,
    EventType,
    emit_error,
    emit_info,
    emit_warning,
)
from sheetcalc.recalc.protocol import RecalcRequest
from sheetcalc.recalc.worker import FormulaWorker
from sheetcalc.sheet import CALC_ISSUES_STATUS, Sheet


class RecalcError(Exception):
    """A recalculation job failed as a whole (worker fault or timeout)."""


@dataclass
class RecalcOutcome:
    """Result of one recalculation job."""

    status: Literal["ok", "error", "stale"]
    sequence: int
    evaluated: int = 0
    merged: int = 0
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "ok"


class RecalcScheduler:
    """Submits recalculation jobs for a sheet and merges their results.

    Args:
        sheet: The sheet to keep up to date.
        worker: Background evaluation client.
        chunk_size: Maximum number of cells merged per event-loop turn.
        timeout: Per-job timeout in seconds; the worker's own default if None.
    """

    def __init__(
        self,
        sheet: Sheet,
        worker: FormulaWorker,
        chunk_size: int = DEFAULT_CONFIG["chunk_size"],
        timeout: float | None = None,
    ) -> None:
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.sheet = sheet
        self.worker = worker
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._sequence = 0

    @classmethod
    def from_config(cls, sheet: Sheet, worker: FormulaWorker, config: dict[str, Any]) -> RecalcScheduler:
        return cls(
            sheet,
            worker,
            chunk_size=config.get("chunk_size", DEFAULT_CONFIG["chunk_size"]),
            timeout=config.get("recalc_timeout_seconds"),
        )

    @property
    def sequence(self) -> int:
        """Sequence number of the most recently submitted job."""
        return self._sequence

    def _next_sequence(self) -> int:
        self._sequence += 1
        return self._sequence

    def is_stale(self, sequence: int) -> bool:
        return sequence != self._sequence

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def recalculate(self) -> RecalcOutcome:
        """Recompute every formula cell of the sheet."""
        sequence = self._next_sequence()
        formula_ids = self.sheet.formula_cell_ids()
        if not formula_ids:
            self.sheet.calc_status = None
            return RecalcOutcome(status="ok", sequence=sequence)
        request = RecalcRequest.batch(self.sheet.snapshot(), formula_ids)
        return await self._run(request, sequence)

    async def load(self, cells: Mapping[str, Any]) -> RecalcOutcome:
        """Replace the sheet contents and evaluate all formulas in one job."""
        self.sheet.load(cells)
        sequence = self._next_sequence()
        return await self._run(RecalcRequest.all(self.sheet.snapshot()), sequence)

    async def edit(self, cell_id: str, raw_value: str, format: dict[str, Any] | None = None) -> RecalcOutcome:
        """Apply an edit, then recalculate."""
        self.sheet.set_cell(cell_id, raw_value, format)
        return await self.recalculate()

    async def undo(self) -> RecalcOutcome | None:
        if not self.sheet.undo():
            return None
        return await self.recalculate()

    async def redo(self) -> RecalcOutcome | None:
        if not self.sheet.redo():
            return None
        return await self.recalculate()

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    def _discard(self, sequence: int, stage: str) -> RecalcOutcome:
        emit_info(
            EventType.recalc_stale_discarded,
            f"Discarded result of job {sequence}; job {self._sequence} is newer",
            {"sequence": sequence, "latest": self._sequence, "stage": stage},
        )
        return RecalcOutcome(status="stale", sequence=sequence)

    async def _run(self, request: RecalcRequest, sequence: int) -> RecalcOutcome:
        """Send one job and merge its response.  Never raises."""
        started = time.monotonic()
        cell_count = len(request.payload.cells)
        emit_info(
            EventType.recalc_started,
            f"Recalculation job {sequence} started",
            {"sequence": sequence, "type": request.type, "cells": cell_count},
        )
        try:
            response = await self.worker.send(request, self.timeout)
            if self.is_stale(sequence):
                return self._discard(sequence, "response")
            if response.is_error:
                raise RecalcError(response.payload.message)

            items = list(response.payload.cells.items())
            merged = 0
            for start in range(0, len(items), self.chunk_size):
                if start:
                    await asyncio.sleep(0)
                    if self.is_stale(sequence):
                        return self._discard(sequence, "merge")
                chunk = items[start : start + self.chunk_size]
                merged += self.sheet.merge_computed({cid: cell.to_wire() for cid, cell in chunk})
        except Exception as exc:
            self.sheet.calc_status = CALC_ISSUES_STATUS
            emit_error(
                EventType.recalc_failed,
                f"Recalculation job {sequence} failed: {exc}",
                {"sequence": sequence, "type": request.type, "cells": cell_count},
                error_code=WORKER_ERROR,
            )
            return RecalcOutcome(status="error", sequence=sequence, message=str(exc))

        error_cells = sorted(cid for cid, cell in items if is_error(cell.value))
        if error_cells:
            emit_warning(
                EventType.cell_error,
                f"{len(error_cells)} cell(s) evaluated to an error",
                {"sequence": sequence, "cells": error_cells},
            )
        self.sheet.calc_status = None
        emit_info(
            EventType.recalc_completed,
            f"Recalculation job {sequence} completed",
            {
                "sequence": sequence,
                "evaluated": len(items),
                "merged": merged,
                "duration_ms": round((time.monotonic() - started) * 1000, 2),
            },
        )
        return RecalcOutcome(status="ok", sequence=sequence, evaluated=len(items), merged=merged)
