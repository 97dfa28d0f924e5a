"""On-demand memoized cell formula evaluator for one recalculation job.

Evaluates cell formulas lazily: a cell is computed only when referenced,
and the result is cached for the duration of one evaluation pass.  A cell
that is re-entered while it is still being evaluated yields ``#CIRCULAR!``
instead of recursing.

Formulas are reparsed for every job; parse trees live only as long as the
graph.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from lark import Tree

from sheetcalc.formulas.coerce import format_display, parse_literal
from sheetcalc.formulas.errors import CIRCULAR, ERROR, FormulaError, FormulaRefError
from sheetcalc.formulas.evaluator import evaluate_formula
from sheetcalc.formulas.parser import extract_refs, parse_formula
from sheetcalc.formulas.refs import expand_range_rows, normalize_cell_id
from sheetcalc.formulas.registry import FunctionRegistry


def is_formula(raw: Any) -> bool:
    return isinstance(raw, str) and raw.startswith("=")


def raw_value_of(cell: Any) -> str:
    """Raw text of a cell given as a wire dict, a model, or bare text."""
    if cell is None:
        return ""
    if isinstance(cell, str):
        return cell
    if isinstance(cell, Mapping):
        raw = cell.get("rawValue", cell.get("raw_value"))
    else:
        raw = getattr(cell, "raw_value", None)
    return "" if raw is None else str(raw)


class CellGraph:
    """On-demand memoized evaluator for a snapshot of sheet cells.

    Usage::

        cg = CellGraph({"A1": {"rawValue": "1"}, "A2": {"rawValue": "=A1*2"}}, registry)
        value = cg.evaluate_cell("A2")

        # Or evaluate a batch, precedents first:
        results = cg.evaluate_many(["A2"])

    Parameters
    ----------
    cells : Mapping[str, Any]
        Cell id -> cell record (``{"rawValue": ...}``).  Ids are normalised,
        so ``"a1"`` and ``"$A$1"`` address the same cell.
    registry : FunctionRegistry
        Function library for formula calls.
    """

    def __init__(self, cells: Mapping[str, Any], registry: FunctionRegistry) -> None:
        self._registry = registry
        self._raw: dict[str, str] = {}
        for cell_id, cell in cells.items():
            try:
                key = normalize_cell_id(cell_id)
            except FormulaRefError:
                key = cell_id
            self._raw[key] = raw_value_of(cell)
        self._cache: dict[str, Any] = {}
        self._trees: dict[str, Tree | FormulaError] = {}
        self._in_progress: set[str] = set()
        self._stack: list[str] = []
        self._cycle_members: set[str] = set()
        self._errors: dict[str, str] = {}

    # ------------------------------------------------------------------
    # CellResolver protocol implementation
    # ------------------------------------------------------------------

    def resolve_cell(self, cell_id: str) -> Any:
        """Resolve a cell value, triggering recursive evaluation if needed."""
        return self.evaluate_cell(cell_id)

    def resolve_range(self, start: str, end: str) -> list[list[Any]]:
        """Resolve a rectangle to a row-major 2-D list of values."""
        return [[self.evaluate_cell(cid) for cid in row] for row in expand_range_rows(start, end)]

    # ------------------------------------------------------------------
    # Core evaluation
    # ------------------------------------------------------------------

    @property
    def formula_ids(self) -> list[str]:
        """Ids of every cell whose raw value is a formula."""
        return [cid for cid, raw in self._raw.items() if is_formula(raw)]

    def _tree(self, cell_id: str) -> Tree | FormulaError:
        if cell_id not in self._trees:
            try:
                self._trees[cell_id] = parse_formula(self._raw[cell_id])
            except FormulaError as exc:
                self._trees[cell_id] = exc
        return self._trees[cell_id]

    def evaluate_cell(self, cell_id: str) -> Any:
        """Evaluate a single cell, with memoization and cycle detection.

        Args:
            cell_id: Cell identifier (e.g. "A1").

        Returns:
            The computed value: a literal for plain cells, None for empty
            ones, ``#ERROR`` for malformed ids or formulas, ``#CIRCULAR!``
            on re-entry.
        """
        try:
            key = normalize_cell_id(cell_id)
        except FormulaRefError as exc:
            self._errors[str(cell_id)] = str(exc)
            return ERROR

        # Already computed?
        if key in self._cache:
            return self._cache[key]

        # Cycle detection: every cell from the first visit of *key* up the
        # stack is part of the cycle and resolves to #CIRCULAR! whatever
        # order the cells are visited in.
        if key in self._in_progress:
            for member in self._stack[self._stack.index(key) :]:
                self._cycle_members.add(member)
                self._errors.setdefault(member, f"Circular reference through {key}")
            return CIRCULAR

        raw = self._raw.get(key)
        if raw is None:
            # Empty cell
            return None

        if not is_formula(raw):
            value = parse_literal(raw)
            self._cache[key] = value
            return value

        tree = self._tree(key)
        if isinstance(tree, FormulaError):
            self._errors[key] = str(tree)
            self._cache[key] = ERROR
            return ERROR

        self._in_progress.add(key)
        self._stack.append(key)
        try:
            result = evaluate_formula(tree, self, self._registry)
        finally:
            self._stack.pop()
            self._in_progress.discard(key)
        if key in self._cycle_members:
            result = CIRCULAR
        self._cache[key] = result
        return result

    def precedents(self, cell_id: str) -> set[str]:
        """Formula cells referenced directly by *cell_id*'s formula."""
        raw = self._raw.get(cell_id)
        if not is_formula(raw):
            return set()
        tree = self._tree(cell_id)
        if isinstance(tree, FormulaError):
            return set()
        return {ref for ref in extract_refs(tree) if is_formula(self._raw.get(ref))}

    def evaluation_order(self, cell_ids: Iterable[str]) -> list[str]:
        """Order *cell_ids* and their formula precedents, precedents first.

        Iterative post-order DFS, so evaluating in this order never recurses
        more than one reference deep.  Cycles are cut where they close; the
        cells involved still evaluate to ``#CIRCULAR!``.
        """
        order: list[str] = []
        done: set[str] = set()
        for root in cell_ids:
            try:
                root = normalize_cell_id(root)
            except FormulaRefError:
                order.append(root)
                continue
            if root in done:
                continue
            done.add(root)
            stack = [(root, iter(sorted(self.precedents(root))))]
            while stack:
                node, children = stack[-1]
                for child in children:
                    if child not in done:
                        done.add(child)
                        stack.append((child, iter(sorted(self.precedents(child)))))
                        break
                else:
                    stack.pop()
                    order.append(node)
        return order

    def evaluate_many(self, cell_ids: Iterable[str]) -> dict[str, Any]:
        """Evaluate *cell_ids* in dependency order.

        Returns:
            Dict of requested cell id -> computed value.
        """
        requested = list(cell_ids)
        for cid in self.evaluation_order(requested):
            self.evaluate_cell(cid)
        return {cid: self.evaluate_cell(cid) for cid in requested}

    def raw_value(self, cell_id: str) -> str:
        """Raw text of *cell_id*; empty for absent or malformed ids."""
        try:
            key = normalize_cell_id(cell_id)
        except FormulaRefError:
            key = cell_id
        return self._raw.get(key, "")

    def get_display_value(self, cell_id: str) -> str:
        """Get a display-friendly string for a cell value.

        Evaluates the cell if not yet cached, and formats the result.
        """
        return format_display(self.evaluate_cell(cell_id))

    def get_errors(self) -> dict[str, str]:
        """Return all evaluation errors collected during this pass.

        Returns:
            Dict of cell id -> error message.
        """
        return dict(self._errors)

    def invalidate(self) -> None:
        """Clear all cached values, parse trees and errors."""
        self._cache.clear()
        self._trees.clear()
        self._in_progress.clear()
        self._stack.clear()
        self._cycle_members.clear()
        self._errors.clear()
