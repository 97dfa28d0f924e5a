"""Cell and range identifier handling.

Columns use bijective base-26 labels: ``A``..``Z`` are 0..25, ``AA`` is 26,
``AZ`` is 51, ``ZZ`` is 701, ``AAA`` is 702, and so on without limit.  Rows
are 1-based in identifiers and 0-based everywhere else.
"""

from __future__ import annotations

import re

from sheetcalc.formulas.errors import FormulaRefError

_ADDR_RE = re.compile(r"^\$?([A-Z]+)\$?([0-9]+)$")


def col_letter_to_index(letters: str) -> int:
    """Convert column letter(s) to 0-based index.  A=0, B=1, ..., Z=25, AA=26."""
    if not letters or not letters.isalpha() or not letters.isascii():
        raise FormulaRefError(letters, f"Invalid column label: {letters!r}")
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


def index_to_col_letter(idx: int) -> str:
    """Convert 0-based column index to letter(s).  0=A, 25=Z, 26=AA."""
    if idx < 0:
        raise FormulaRefError(str(idx), f"Column index must be >= 0, got {idx}")
    result = ""
    n = idx + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        result = chr(65 + rem) + result
    return result


def parse_cell_id(cell_id: str) -> tuple[int, int]:
    """Parse ``'B3'`` -> ``(1, 2)`` as (column_0based, row_0based).

    Lowercase letters and ``$`` absolute markers are accepted.

    Raises:
        FormulaRefError: If *cell_id* has no letter/digit split or row 0.
    """
    m = _ADDR_RE.match(cell_id.strip().upper()) if isinstance(cell_id, str) else None
    if not m:
        raise FormulaRefError(str(cell_id))
    row = int(m.group(2))
    if row < 1:
        raise FormulaRefError(cell_id, f"Row numbers start at 1: {cell_id!r}")
    return col_letter_to_index(m.group(1)), row - 1


def format_cell_id(col: int, row: int) -> str:
    """Build a cell identifier from 0-based column/row indices."""
    if row < 0:
        raise FormulaRefError(str(row), f"Row index must be >= 0, got {row}")
    return f"{index_to_col_letter(col)}{row + 1}"


def normalize_cell_id(cell_id: str) -> str:
    """Canonical form of a cell id: uppercase, no ``$`` markers."""
    return format_cell_id(*parse_cell_id(cell_id))


def _bounds(start: str, end: str) -> tuple[int, int, int, int]:
    c0, r0 = parse_cell_id(start)
    c1, r1 = parse_cell_id(end)
    # Normalise so the rectangle is the same whichever corner came first
    if r0 > r1:
        r0, r1 = r1, r0
    if c0 > c1:
        c0, c1 = c1, c0
    return c0, r0, c1, r1


def expand_range(start: str, end: str) -> list[str]:
    """Expand a rectangular range into a flat list of cell ids (row-major).

    Args:
        start: One corner, e.g. ``"A1"``.
        end: The opposite corner, e.g. ``"C3"``.

    Returns:
        Cell ids ordered row by row, left to right.  The result does not
        depend on which corner is passed first.
    """
    c0, r0, c1, r1 = _bounds(start, end)
    return [format_cell_id(c, r) for r in range(r0, r1 + 1) for c in range(c0, c1 + 1)]


def expand_range_rows(start: str, end: str) -> list[list[str]]:
    """Like ``expand_range`` but grouped into one list per row."""
    c0, r0, c1, r1 = _bounds(start, end)
    return [[format_cell_id(c, r) for c in range(c0, c1 + 1)] for r in range(r0, r1 + 1)]


def range_shape(start: str, end: str) -> tuple[int, int]:
    """Return ``(n_rows, n_cols)`` of the normalized rectangle."""
    c0, r0, c1, r1 = _bounds(start, end)
    return r1 - r0 + 1, c1 - c0 + 1


def parse_range_id(range_id: str) -> tuple[str, str]:
    """Split ``'A1:C3'`` into ``('A1', 'C3')``, validating both corners."""
    parts = range_id.split(":")
    if len(parts) != 2:
        raise FormulaRefError(range_id, f"Invalid range: {range_id!r}")
    start, end = (normalize_cell_id(p) for p in parts)
    return start, end
