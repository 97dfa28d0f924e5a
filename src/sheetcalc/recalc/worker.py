"""Background evaluation context.

``handle_message`` is the whole worker: one wire request in, one wire
response out.  It is a plain module-level function so it can run on a
thread or be pickled into a worker process.

``FormulaWorker`` owns the long-lived executor that runs it, created on
first use and reused until ``shutdown()``.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Any

from sheetcalc.cell_graph import CellGraph
from sheetcalc.config import DEFAULT_CONFIG, WORKER_BACKENDS
from sheetcalc.formulas.coerce import format_display, to_wire
from sheetcalc.formulas.errors import FormulaRefError
from sheetcalc.formulas.refs import normalize_cell_id
from sheetcalc.formulas.registry import FunctionRegistry, default_registry
from sheetcalc.logging import UNKNOWN_REQUEST, WORKER_TIMEOUT, EventType, emit_warning
from sheetcalc.recalc.protocol import ComputedCell, RecalcRequest, RecalcResponse

logger = logging.getLogger(__name__)

UNKNOWN_TYPE_MESSAGE = "Unknown worker message type"


def _canonical(cell_id: str) -> str:
    try:
        return normalize_cell_id(cell_id)
    except FormulaRefError:
        return cell_id


def handle_message(message: dict[str, Any], registry: FunctionRegistry | None = None) -> dict[str, Any]:
    """Evaluate one protocol request and return the protocol response.

    ``batch`` evaluates ``cellsToEvaluate``; ``all`` evaluates every formula
    cell in ``cells``.  The result holds exactly the evaluated cells.
    Cell-level failures are error values inside a ``result``; only a fault
    of the worker itself produces an ``error`` response.  Never raises.
    """
    kind = message.get("type") if isinstance(message, dict) else None
    if kind not in ("batch", "all"):
        message_text = f"{UNKNOWN_TYPE_MESSAGE}: {kind!r}"
        emit_warning(EventType.recalc_failed, message_text, {"type": kind}, error_code=UNKNOWN_REQUEST)
        return RecalcResponse.error(message_text).to_wire()

    try:
        request = RecalcRequest.model_validate(message)
        graph = CellGraph(request.payload.cells, registry or default_registry())
        if request.type == "batch":
            targets = [_canonical(cid) for cid in request.payload.cells_to_evaluate or []]
        else:
            targets = graph.formula_ids

        values = graph.evaluate_many(targets)
        computed: dict[str, ComputedCell] = {}
        for cid in targets:
            value = values[cid]
            raw = graph.raw_value(cid)
            computed[cid] = ComputedCell(
                raw_value=raw,
                value=format_display(value),
                calculated_value=to_wire(value),
            )

        for cid, err in graph.get_errors().items():
            logger.debug("cell %s: %s", cid, err)
        return RecalcResponse.result(computed).to_wire()
    except Exception as exc:
        logger.debug("worker failed", exc_info=True)
        return RecalcResponse.error(f"{type(exc).__name__}: {exc}").to_wire()


class FormulaWorker:
    """Client for the background evaluation context.

    The executor is created lazily on the first request and reused after
    that; a timed-out request leaves it behind and the next request starts
    a fresh one.  Each request is answered by exactly one response; a request
    that does not finish within *timeout* seconds resolves to an
    ``error`` response.

    Args:
        backend: ``"thread"`` or ``"process"``.
        timeout: Seconds to wait for a response.
        registry: Function library to evaluate with; builtins by default.
    """

    def __init__(
        self,
        backend: str = DEFAULT_CONFIG["worker_backend"],
        timeout: float = DEFAULT_CONFIG["recalc_timeout_seconds"],
        registry: FunctionRegistry | None = None,
    ) -> None:
        if backend not in WORKER_BACKENDS:
            raise ValueError(f"Unknown worker backend {backend!r}; expected one of {WORKER_BACKENDS}")
        self.backend = backend
        self.timeout = timeout
        self._registry = registry
        self._executor: Executor | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any], registry: FunctionRegistry | None = None) -> FormulaWorker:
        return cls(
            backend=config.get("worker_backend", DEFAULT_CONFIG["worker_backend"]),
            timeout=config.get("recalc_timeout_seconds", DEFAULT_CONFIG["recalc_timeout_seconds"]),
            registry=registry,
        )

    @property
    def started(self) -> bool:
        return self._executor is not None

    def _get_executor(self) -> Executor:
        if self._executor is None:
            if self.backend == "process":
                self._executor = ProcessPoolExecutor(max_workers=1)
            else:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sheetcalc-recalc")
            logger.debug("started %s recalculation worker", self.backend)
        return self._executor

    def _abandon_executor(self) -> None:
        """Leave a stuck job to finish on its own and start fresh for later requests."""
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
            logger.debug("replaced %s recalculation worker after a timeout", self.backend)

    async def request(self, message: dict[str, Any], timeout: float | None = None) -> dict[str, Any]:
        """Submit one wire message and await its single response."""
        limit = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self._get_executor(), handle_message, message, self._registry)
        try:
            return await asyncio.wait_for(future, timeout=limit)
        except asyncio.TimeoutError:
            self._abandon_executor()
            emit_warning(
                EventType.recalc_timeout,
                f"Recalculation did not finish within {limit}s",
                {"timeout_seconds": limit, "type": message.get("type")},
                error_code=WORKER_TIMEOUT,
            )
            return RecalcResponse.error(f"Recalculation timed out after {limit}s").to_wire()
        except Exception as exc:
            logger.debug("worker request failed", exc_info=True)
            return RecalcResponse.error(f"Worker failed: {type(exc).__name__}: {exc}").to_wire()

    async def send(self, request: RecalcRequest, timeout: float | None = None) -> RecalcResponse:
        """Typed variant of ``request``."""
        return RecalcResponse.from_wire(await self.request(request.to_wire(), timeout))

    async def recalc_batch(
        self,
        cells: dict[str, dict[str, Any]],
        cells_to_evaluate: list[str],
        timeout: float | None = None,
    ) -> RecalcResponse:
        return await self.send(RecalcRequest.batch(cells, cells_to_evaluate), timeout)

    async def recalc_all(self, cells: dict[str, dict[str, Any]], timeout: float | None = None) -> RecalcResponse:
        return await self.send(RecalcRequest.all(cells), timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Stop the executor.  A later request starts a fresh one."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait, cancel_futures=True)
            self._executor = None
