"""Array formula functions: TRANSPOSE, FREQUENCY, MMULT, UNIQUE, SORT, FILTER, SEQUENCE.

Results are 2-D lists (row-major).  A cell holding an array displays its
top-left element.
"""

from __future__ import annotations

import functools
from typing import Any

from sheetcalc.formulas.coerce import compare_values, numbers_in, to_bool, to_int, to_matrix, to_number
from sheetcalc.formulas.errors import NA, VALUE, FormulaFunctionError
from sheetcalc.formulas.registry import FunctionSpec


def _fn_transpose(args: list) -> list[list[Any]]:
    """TRANSPOSE(array): swap rows and columns."""
    matrix = to_matrix(args[0])
    return [list(col) for col in zip(*matrix)]


def _fn_frequency(args: list) -> list[list[int]]:
    """FREQUENCY(data, bins): counts per bin as a column of len(bins) + 1.

    A value lands in the first bin (ascending) it is <= to; the final
    bucket counts values above every bin.
    """
    data = numbers_in(args[0])
    bins = sorted(numbers_in(args[1]))
    counts = [0] * (len(bins) + 1)
    for value in data:
        for i, upper in enumerate(bins):
            if value <= upper:
                counts[i] += 1
                break
        else:
            counts[-1] += 1
    return [[c] for c in counts]


def _numeric_matrix(value: Any) -> list[list[float]]:
    matrix = to_matrix(value)
    out = []
    for row in matrix:
        cells = []
        for v in row:
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise FormulaFunctionError("MMULT", "MMULT requires numeric arrays", sentinel=VALUE)
            cells.append(v)
        out.append(cells)
    return out


def _fn_mmult(args: list) -> list[list[float]]:
    """MMULT(array1, array2): matrix product; inner dimensions must agree."""
    a = _numeric_matrix(args[0])
    b = _numeric_matrix(args[1])
    if len(a[0]) != len(b):
        return VALUE
    return [
        [sum(a[i][k] * b[k][j] for k in range(len(b))) for j in range(len(b[0]))]
        for i in range(len(a))
    ]


def _row_key(row: list[Any]) -> tuple:
    return tuple(v.lower() if isinstance(v, str) else v for v in row)


def _fn_unique(args: list) -> list[list[Any]]:
    """UNIQUE(array): distinct rows in first-seen order, text compared case-insensitively."""
    matrix = to_matrix(args[0])
    if len(matrix) == 1 and len(matrix[0]) > 1:
        # A single row yields its distinct values
        seen: set = set()
        values = []
        for v in matrix[0]:
            key = _row_key([v])
            if key not in seen:
                seen.add(key)
                values.append(v)
        return [values]
    seen_rows: set = set()
    rows = []
    for row in matrix:
        key = _row_key(row)
        if key not in seen_rows:
            seen_rows.add(key)
            rows.append(list(row))
    return rows


def _fn_sort(args: list) -> list[list[Any]]:
    """SORT(array, [sort_index], [sort_order]): rows ordered by one column.

    sort_order 1 is ascending, -1 descending.
    """
    matrix = to_matrix(args[0])
    index = to_int(args[1], "SORT") if len(args) > 1 and args[1] is not None else 1
    order = to_int(args[2], "SORT") if len(args) > 2 and args[2] is not None else 1
    if index < 1 or index > len(matrix[0]) or order not in (1, -1):
        return VALUE
    key = functools.cmp_to_key(lambda r1, r2: compare_values(r1[index - 1], r2[index - 1]))
    return sorted((list(r) for r in matrix), key=key, reverse=(order == -1))


def _fn_filter(args: list) -> Any:
    """FILTER(array, include, [if_empty]): rows (or columns) whose criterion is TRUE.

    *include* is a column as tall as *array* to select rows, or a row as
    wide as *array* to select columns.  With nothing selected the result is
    *if_empty* when given, else ``#N/A``.
    """
    matrix = to_matrix(args[0])
    include = to_matrix(args[1])
    if len(include) == len(matrix) and all(len(row) == 1 for row in include):
        result = [list(row) for row, (flag,) in zip(matrix, include) if to_bool(flag, "FILTER")]
    elif len(include) == 1 and len(include[0]) == len(matrix[0]):
        keep = [to_bool(flag, "FILTER") for flag in include[0]]
        result = [[v for v, k in zip(row, keep) if k] for row in matrix]
        if not any(keep):
            result = []
    else:
        return VALUE
    if not result:
        return args[2] if len(args) > 2 else NA
    return result


def _fn_sequence(args: list) -> list[list[float]]:
    """SEQUENCE(rows, [columns], [start], [step])."""
    rows = to_int(args[0], "SEQUENCE")
    cols = to_int(args[1], "SEQUENCE") if len(args) > 1 else 1
    start = to_number(args[2], "SEQUENCE") if len(args) > 2 else 1
    step = to_number(args[3], "SEQUENCE") if len(args) > 3 else 1
    if rows < 1 or cols < 1:
        return VALUE
    return [[start + (r * cols + c) * step for c in range(cols)] for r in range(rows)]


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="array",
        min_args=min_args,
        max_args=max_args,
    )


ARRAY_FUNCTIONS: list[FunctionSpec] = [
    _spec("TRANSPOSE", _fn_transpose, "TRANSPOSE(array)", "Swaps rows and columns", 1, 1),
    _spec("FREQUENCY", _fn_frequency, "FREQUENCY(data, bins)", "Counts values per bin", 2, 2),
    _spec("MMULT", _fn_mmult, "MMULT(array1, array2)", "Matrix product", 2, 2),
    _spec("UNIQUE", _fn_unique, "UNIQUE(array)", "Distinct rows", 1, 1),
    _spec("SORT", _fn_sort, "SORT(array, [sort_index], [sort_order])", "Sorts rows", 1, 3),
    _spec("FILTER", _fn_filter, "FILTER(array, include, [if_empty])", "Rows matching a condition", 2, 3),
    _spec("SEQUENCE", _fn_sequence, "SEQUENCE(rows, [columns], [start], [step])", "Grid of numbers", 1, 4),
]
