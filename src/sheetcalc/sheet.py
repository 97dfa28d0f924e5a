"""Sheet and cell data model.

A Sheet is a sparse mapping of cell id to Cell.  ``value`` and
``calculated_value`` are caches of the last recalculation: they are
dropped the moment ``raw_value`` changes and only ever written back by
``merge_computed``.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from sheetcalc.cell_graph import is_formula, raw_value_of
from sheetcalc.config import DEFAULT_CONFIG
from sheetcalc.formulas.refs import normalize_cell_id

CALC_ISSUES_STATUS = "loaded with calculation issues"


class Cell(BaseModel):
    """One cell.  Serialises with camelCase keys (``rawValue``, ``calculatedValue``)."""

    model_config = ConfigDict(populate_by_name=True)

    raw_value: str = Field(default="", alias="rawValue")
    format: dict[str, Any] = Field(default_factory=dict)
    value: str | None = None
    calculated_value: Any = Field(default=None, alias="calculatedValue")

    @property
    def is_formula(self) -> bool:
        return is_formula(self.raw_value)


def _coerce_cell(cell: Any) -> Cell:
    if isinstance(cell, Cell):
        return cell.model_copy(deep=True)
    if isinstance(cell, Mapping):
        return Cell.model_validate(cell)
    return Cell(raw_value=raw_value_of(cell))


class Sheet(BaseModel):
    """A sparse grid of cells with undo/redo history.

    History entries are raw snapshots (``{cell_id: {"rawValue", "format"}}``)
    taken before each edit; restoring one drops every computed cache.
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = "Sheet1"
    cells: dict[str, Cell] = Field(default_factory=dict)
    active_cell: str = Field(default="A1", alias="activeCell")
    past: list[dict[str, dict[str, Any]]] = Field(default_factory=list)
    future: list[dict[str, dict[str, Any]]] = Field(default_factory=list)
    history_limit: int = DEFAULT_CONFIG["history_limit"]
    calc_status: str | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any], **kwargs: Any) -> Sheet:
        return cls(history_limit=config.get("history_limit", DEFAULT_CONFIG["history_limit"]), **kwargs)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, cell_id: str) -> Cell | None:
        return self.cells.get(normalize_cell_id(cell_id))

    def raw_value(self, cell_id: str) -> str:
        cell = self.get(cell_id)
        return cell.raw_value if cell is not None else ""

    def display_value(self, cell_id: str) -> str:
        """What the grid shows: the computed display text, else the raw text."""
        cell = self.get(cell_id)
        if cell is None:
            return ""
        if cell.value is not None:
            return cell.value
        return "" if cell.is_formula else cell.raw_value

    def formula_cell_ids(self) -> list[str]:
        """Ids of every cell whose raw value starts with ``=``."""
        return [cid for cid, cell in self.cells.items() if cell.is_formula]

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Raw-content copy of the cell map, in wire shape."""
        out: dict[str, dict[str, Any]] = {}
        for cid, cell in self.cells.items():
            entry: dict[str, Any] = {"rawValue": cell.raw_value}
            if cell.format:
                entry["format"] = dict(cell.format)
            out[cid] = entry
        return out

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _push_history(self) -> None:
        self.past.append(self.snapshot())
        if len(self.past) > self.history_limit:
            del self.past[: len(self.past) - self.history_limit]
        self.future.clear()

    def set_cell(self, cell_id: str, raw_value: str, format: dict[str, Any] | None = None) -> None:
        """Replace a cell's raw content, dropping its computed caches.

        An empty raw value with no format removes the cell.
        """
        key = normalize_cell_id(cell_id)
        self._push_history()
        existing = self.cells.get(key)
        fmt = dict(format) if format is not None else (dict(existing.format) if existing else {})
        if raw_value == "" and not fmt:
            self.cells.pop(key, None)
        else:
            self.cells[key] = Cell(raw_value=raw_value, format=fmt)
        self.active_cell = key

    def load(self, cells: Mapping[str, Any]) -> None:
        """Replace the whole cell map (bulk template load).  History is reset."""
        self.cells = {normalize_cell_id(cid): _coerce_cell(cell) for cid, cell in cells.items()}
        for cell in self.cells.values():
            cell.value = None
            cell.calculated_value = None
        self.past.clear()
        self.future.clear()
        self.calc_status = None

    def _restore(self, snapshot: Mapping[str, Mapping[str, Any]]) -> None:
        self.cells = {
            cid: Cell(raw_value=entry.get("rawValue", ""), format=dict(entry.get("format") or {}))
            for cid, entry in snapshot.items()
        }

    def undo(self) -> bool:
        """Restore the state before the last edit.  Returns False if there is none."""
        if not self.past:
            return False
        self.future.append(self.snapshot())
        self._restore(self.past.pop())
        return True

    def redo(self) -> bool:
        """Re-apply the last undone edit.  Returns False if there is none."""
        if not self.future:
            return False
        self.past.append(self.snapshot())
        self._restore(self.future.pop())
        return True

    # ------------------------------------------------------------------
    # Computed results
    # ------------------------------------------------------------------

    def merge_computed(self, updates: Mapping[str, Mapping[str, Any]]) -> int:
        """Merge computed fields into the *current* cell records.

        Each update carries the ``rawValue`` it was computed from; cells
        that were removed or whose raw value has since changed are skipped,
        so edits made while a job was in flight survive.

        Returns:
            Number of cells updated.
        """
        merged = 0
        for cid, update in updates.items():
            cell = self.cells.get(cid)
            if cell is None or cell.raw_value != update.get("rawValue", cell.raw_value):
                continue
            cell.value = update.get("value")
            cell.calculated_value = update.get("calculatedValue")
            merged += 1
        return merged

