"""Information formula functions: ISERROR, ISNA, ISNUMBER, TYPE, ERROR.TYPE, ...

Most of these inspect error values instead of propagating them, so their
specs set ``catch_errors``.
"""

from __future__ import annotations

import datetime
from typing import Any

from sheetcalc.formulas.coerce import scalar, to_int
from sheetcalc.formulas.errors import CIRCULAR, DIV0, ERROR, NA, NUM, REF, VALUE, is_error
from sheetcalc.formulas.registry import FunctionSpec

ERROR_TYPE_CODES: dict[str, int] = {
    DIV0: 2,
    VALUE: 3,
    REF: 4,
    NUM: 6,
    NA: 7,
    ERROR: 8,
    CIRCULAR: 9,
}


def _fn_iserror(args: list) -> bool:
    """ISERROR(value): TRUE for any error value."""
    return is_error(scalar(args[0]))


def _fn_iserr(args: list) -> bool:
    """ISERR(value): TRUE for any error except #N/A."""
    value = scalar(args[0])
    return is_error(value) and value != NA


def _fn_isna(args: list) -> bool:
    return scalar(args[0]) == NA


def _fn_isnumber(args: list) -> bool:
    value = scalar(args[0])
    return isinstance(value, (int, float, datetime.date)) and not isinstance(value, bool)


def _fn_istext(args: list) -> bool:
    value = scalar(args[0])
    return isinstance(value, str) and not is_error(value)


def _fn_isblank(args: list) -> bool:
    return scalar(args[0]) is None


def _fn_iseven(args: list) -> bool:
    return to_int(args[0], "ISEVEN") % 2 == 0


def _fn_isodd(args: list) -> bool:
    return to_int(args[0], "ISODD") % 2 != 0


def _fn_type(args: list) -> int:
    """TYPE(value): 1 number, 2 text, 4 logical, 16 error, 64 array."""
    value = args[0]
    if isinstance(value, list):
        if len(value) == 1 and len(value[0]) == 1:
            value = value[0][0]
        else:
            return 64
    if is_error(value):
        return 16
    if isinstance(value, bool):
        return 4
    if isinstance(value, str):
        return 2
    return 1


def _fn_na(args: list) -> str:
    return NA


def _fn_error_type(args: list) -> int:
    """ERROR.TYPE(error_val): numeric code of an error; #N/A for non-errors."""
    return ERROR_TYPE_CODES.get(scalar(args[0]), NA)


def _spec(name: str, fn: Any, usage: str, description: str, catch_errors: bool = True) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="information",
        min_args=1,
        max_args=1,
        catch_errors=catch_errors,
    )


INFO_FUNCTIONS: list[FunctionSpec] = [
    _spec("ISERROR", _fn_iserror, "ISERROR(value)", "TRUE for any error"),
    _spec("ISERR", _fn_iserr, "ISERR(value)", "TRUE for errors other than #N/A"),
    _spec("ISNA", _fn_isna, "ISNA(value)", "TRUE for #N/A"),
    _spec("ISNUMBER", _fn_isnumber, "ISNUMBER(value)", "TRUE for numbers"),
    _spec("ISTEXT", _fn_istext, "ISTEXT(value)", "TRUE for text"),
    _spec("ISBLANK", _fn_isblank, "ISBLANK(value)", "TRUE for an empty cell"),
    _spec("ISEVEN", _fn_iseven, "ISEVEN(number)", "TRUE for even numbers", catch_errors=False),
    _spec("ISODD", _fn_isodd, "ISODD(number)", "TRUE for odd numbers", catch_errors=False),
    _spec("TYPE", _fn_type, "TYPE(value)", "Type code of a value"),
    _spec("ERROR.TYPE", _fn_error_type, "ERROR.TYPE(error_val)", "Numeric code of an error"),
    FunctionSpec(
        name="NA",
        execute=_fn_na,
        description="The #N/A error value",
        usage="NA()",
        category="information",
        min_args=0,
        max_args=0,
    ),
]
