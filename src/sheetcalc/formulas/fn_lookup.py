"""Lookup formula functions: VLOOKUP, HLOOKUP, XLOOKUP, INDEX, MATCH, CHOOSE.

Misses evaluate to ``#N/A``; positions outside the looked-up array
evaluate to ``#REF!``.
"""

from __future__ import annotations

from typing import Any

from sheetcalc.formulas.coerce import compare_values, flatten, scalar, to_bool, to_int, to_matrix
from sheetcalc.formulas.errors import NA, REF, VALUE
from sheetcalc.formulas.fn_stats import wildcard_regex
from sheetcalc.formulas.registry import FunctionSpec


def _same_kind(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    return isinstance(a, str) == isinstance(b, str)


def _exact_index(values: list[Any], target: Any, wildcards: bool = False) -> int | None:
    """Position of the first value equal to *target*, or None.

    Blank cells never match.  With *wildcards*, text targets may use ``*``
    and ``?``.
    """
    if wildcards and isinstance(target, str) and any(c in target for c in "*?~"):
        pattern = wildcard_regex(target)
        for i, v in enumerate(values):
            if isinstance(v, str) and pattern.match(v):
                return i
        return None
    for i, v in enumerate(values):
        if v is not None and _same_kind(v, target) and compare_values(v, target) == 0:
            return i
    return None


def _approx_index(values: list[Any], target: Any, descending: bool = False) -> int | None:
    """Approximate match over sorted *values*.

    Ascending: last position whose value is <= *target*.  Descending: last
    position whose value is >= *target*.  The scan stops at the first value
    past the target.
    """
    best = None
    for i, v in enumerate(values):
        if v is None or not _same_kind(v, target):
            continue
        c = compare_values(v, target)
        if descending:
            c = -c
        if c <= 0:
            best = i
        else:
            break
    return best


def _fn_vlookup(args: list) -> Any:
    """VLOOKUP(lookup_value, table, col_index, [range_lookup])."""
    target = scalar(args[0])
    table = to_matrix(args[1])
    col = to_int(args[2], "VLOOKUP")
    approximate = to_bool(args[3], "VLOOKUP") if len(args) > 3 else True
    if col < 1:
        return VALUE
    if col > len(table[0]):
        return REF
    keys = [row[0] for row in table]
    idx = _approx_index(keys, target) if approximate else _exact_index(keys, target, wildcards=True)
    if idx is None:
        return NA
    return table[idx][col - 1]


def _fn_hlookup(args: list) -> Any:
    """HLOOKUP(lookup_value, table, row_index, [range_lookup])."""
    target = scalar(args[0])
    table = to_matrix(args[1])
    row = to_int(args[2], "HLOOKUP")
    approximate = to_bool(args[3], "HLOOKUP") if len(args) > 3 else True
    if row < 1:
        return VALUE
    if row > len(table):
        return REF
    keys = table[0]
    idx = _approx_index(keys, target) if approximate else _exact_index(keys, target, wildcards=True)
    if idx is None:
        return NA
    return table[row - 1][idx]


def _fn_xlookup(args: list) -> Any:
    """XLOOKUP(lookup_value, lookup_array, return_array, [if_not_found], [match_mode]).

    match_mode: 0 exact (default), -1 exact or next smaller, 1 exact or next
    larger, 2 wildcard.
    """
    target = scalar(args[0])
    keys = flatten(args[1])
    returns = to_matrix(args[2])
    not_found = args[3] if len(args) > 3 and args[3] is not None else NA
    mode = to_int(args[4], "XLOOKUP") if len(args) > 4 else 0

    if mode in (0, 2):
        idx = _exact_index(keys, target, wildcards=(mode == 2))
    elif mode in (-1, 1):
        idx = _exact_index(keys, target)
        if idx is None:
            best = None
            for i, v in enumerate(keys):
                if v is None or not _same_kind(v, target):
                    continue
                c = compare_values(v, target)
                if c * mode <= 0:
                    continue
                if best is None or compare_values(v, keys[best]) * mode < 0:
                    best = i
            idx = best
    else:
        return VALUE
    if idx is None:
        return not_found

    # A single row of results is indexed by column, otherwise by row
    if len(returns) == 1:
        return returns[0][idx] if idx < len(returns[0]) else REF
    if idx >= len(returns):
        return REF
    row = returns[idx]
    return row[0] if len(row) == 1 else [row]


def _fn_index(args: list) -> Any:
    """INDEX(array, row, [col]): 1-based element; 0 selects a whole row/column."""
    matrix = to_matrix(args[0])
    row = to_int(args[1], "INDEX")
    col = to_int(args[2], "INDEX") if len(args) > 2 else None
    if col is None:
        # One index into a single row addresses columns
        if len(matrix) == 1:
            row, col = 1, row
        else:
            col = 1 if len(matrix[0]) == 1 else 0
    n_rows, n_cols = len(matrix), len(matrix[0])
    if row < 0 or col < 0 or row > n_rows or col > n_cols:
        return REF
    if row == 0 and col == 0:
        return matrix
    if row == 0:
        return [[r[col - 1]] for r in matrix]
    if col == 0:
        return [list(matrix[row - 1])]
    return matrix[row - 1][col - 1]


def _fn_match(args: list) -> int:
    """MATCH(lookup_value, lookup_array, [match_type]): 1-based position.

    match_type 1 (default) finds the largest value <= target in ascending
    data, 0 an exact match (wildcards allowed), -1 the smallest value >=
    target in descending data.
    """
    target = scalar(args[0])
    values = flatten(args[1])
    match_type = to_int(args[2], "MATCH") if len(args) > 2 else 1
    if match_type == 0:
        idx = _exact_index(values, target, wildcards=True)
    elif match_type > 0:
        idx = _approx_index(values, target)
    else:
        idx = _approx_index(values, target, descending=True)
    if idx is None:
        return NA
    return idx + 1


def _fn_choose(args: list) -> Any:
    """CHOOSE(index, value1, ...): the index-th value (1-based)."""
    idx = to_int(args[0], "CHOOSE")
    if idx < 1 or idx >= len(args):
        return VALUE
    return args[idx]


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="lookup",
        min_args=min_args,
        max_args=max_args,
    )


LOOKUP_FUNCTIONS: list[FunctionSpec] = [
    _spec("VLOOKUP", _fn_vlookup, "VLOOKUP(lookup_value, table, col_index, [range_lookup])", "Vertical lookup", 3, 4),
    _spec("HLOOKUP", _fn_hlookup, "HLOOKUP(lookup_value, table, row_index, [range_lookup])", "Horizontal lookup", 3, 4),
    _spec(
        "XLOOKUP", _fn_xlookup,
        "XLOOKUP(lookup_value, lookup_array, return_array, [if_not_found], [match_mode])",
        "Flexible lookup", 3, 5,
    ),
    _spec("INDEX", _fn_index, "INDEX(array, row, [col])", "Element at a position", 2, 3),
    _spec("MATCH", _fn_match, "MATCH(lookup_value, lookup_array, [match_type])", "Position of a value", 2, 3),
    _spec("CHOOSE", _fn_choose, "CHOOSE(index, value1, [value2], ...)", "Value by index", 2, None),
]
