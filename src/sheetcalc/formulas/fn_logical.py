"""Logical formula functions: IF, IFS, SWITCH, AND, OR, NOT, XOR, IFERROR, IFNA.

IF, IFS, SWITCH, IFERROR and IFNA are lazy: each argument arrives as a
zero-argument thunk and only the branches actually taken are evaluated.
"""

from __future__ import annotations

from typing import Any

from sheetcalc.formulas.coerce import compare_values, flatten, to_bool
from sheetcalc.formulas.errors import NA, VALUE, is_error
from sheetcalc.formulas.registry import FunctionSpec


def _fn_if(args: list) -> Any:
    """IF(condition, value_if_true, [value_if_false])."""
    cond = args[0]()
    if is_error(cond):
        return cond
    if to_bool(cond, "IF"):
        return args[1]()
    if len(args) > 2:
        return args[2]()
    return False


def _fn_ifs(args: list) -> Any:
    """IFS(condition1, value1, ...): value for the first true condition, else #N/A."""
    if len(args) % 2 != 0:
        return VALUE
    for i in range(0, len(args), 2):
        cond = args[i]()
        if is_error(cond):
            return cond
        if to_bool(cond, "IFS"):
            return args[i + 1]()
    return NA


def _fn_switch(args: list) -> Any:
    """SWITCH(expression, value1, result1, ..., [default])."""
    subject = args[0]()
    if is_error(subject):
        return subject
    rest = args[1:]
    default = rest.pop() if len(rest) % 2 == 1 else None
    for i in range(0, len(rest), 2):
        candidate = rest[i]()
        if is_error(candidate):
            return candidate
        if compare_values(subject, candidate) == 0:
            return rest[i + 1]()
    return default() if default is not None else NA


def _fn_iferror(args: list) -> Any:
    """IFERROR(value, value_if_error): *value* unless it is any error."""
    value = args[0]()
    if is_error(value):
        return args[1]()
    return value


def _fn_ifna(args: list) -> Any:
    value = args[0]()
    if value == NA:
        return args[1]()
    return value


def _logicals(args: list) -> list[bool]:
    """Truth values of the arguments; blanks and non-logical text are skipped."""
    out = []
    for v in flatten(args):
        if v is None:
            continue
        if isinstance(v, str) and v.strip().upper() not in ("TRUE", "FALSE"):
            continue
        out.append(to_bool(v))
    return out


def _fn_and(args: list) -> bool:
    """AND(val1, val2, ...): TRUE if all arguments are truthy."""
    values = _logicals(args)
    if not values:
        return VALUE
    return all(values)


def _fn_or(args: list) -> bool:
    """OR(val1, val2, ...): TRUE if any argument is truthy."""
    values = _logicals(args)
    if not values:
        return VALUE
    return any(values)


def _fn_xor(args: list) -> bool:
    """XOR(val1, val2, ...): TRUE if an odd number of arguments are truthy."""
    values = _logicals(args)
    if not values:
        return VALUE
    return sum(values) % 2 == 1


def _fn_not(args: list) -> bool:
    return not to_bool(args[0], "NOT")


def _fn_true(args: list) -> bool:
    return True


def _fn_false(args: list) -> bool:
    return False


LOGICAL_FUNCTIONS: list[FunctionSpec] = [
    FunctionSpec(
        name="IF",
        execute=_fn_if,
        description="Chooses a value by condition",
        usage="IF(condition, value_if_true, [value_if_false])",
        category="logical",
        min_args=2,
        max_args=3,
        lazy=True,
    ),
    FunctionSpec(
        name="IFS",
        execute=_fn_ifs,
        description="First value whose condition is true",
        usage="IFS(condition1, value1, [condition2, value2], ...)",
        category="logical",
        min_args=2,
        lazy=True,
    ),
    FunctionSpec(
        name="SWITCH",
        execute=_fn_switch,
        description="Matches an expression against values",
        usage="SWITCH(expression, value1, result1, ..., [default])",
        category="logical",
        min_args=3,
        lazy=True,
    ),
    FunctionSpec(
        name="IFERROR",
        execute=_fn_iferror,
        description="Fallback when a value is an error",
        usage="IFERROR(value, value_if_error)",
        category="logical",
        min_args=2,
        max_args=2,
        lazy=True,
        catch_errors=True,
    ),
    FunctionSpec(
        name="IFNA",
        execute=_fn_ifna,
        description="Fallback when a value is #N/A",
        usage="IFNA(value, value_if_na)",
        category="logical",
        min_args=2,
        max_args=2,
        lazy=True,
        catch_errors=True,
    ),
    FunctionSpec("AND", _fn_and, "TRUE if all arguments are true", "AND(logical1, ...)", "logical", 1),
    FunctionSpec("OR", _fn_or, "TRUE if any argument is true", "OR(logical1, ...)", "logical", 1),
    FunctionSpec("XOR", _fn_xor, "TRUE if an odd number are true", "XOR(logical1, ...)", "logical", 1),
    FunctionSpec("NOT", _fn_not, "Inverts a logical value", "NOT(logical)", "logical", 1, 1),
    FunctionSpec("TRUE", _fn_true, "The logical value TRUE", "TRUE()", "logical", 0, 0),
    FunctionSpec("FALSE", _fn_false, "The logical value FALSE", "FALSE()", "logical", 0, 0),
]
