"""Tree-walking evaluator for parsed formula expressions.

Values flowing through the evaluator are plain Python objects: int, float,
str, bool, ``datetime.date``, None (blank) and 2-D lists for ranges and
arrays.  Error sentinels are strings, so an error is just another value;
every operator and function call checks its operands with ``is_error`` and
passes the first error it meets upward.
"""

from __future__ import annotations

import functools
from typing import Any, Protocol

from lark import Token, Tree

from sheetcalc.formulas.coerce import compare_values, out_of_range, parse_number, to_number, to_text
from sheetcalc.formulas.errors import (
    DIV0,
    ENGINE_ERRORS,
    ERROR,
    NUM,
    FormulaError,
    error_for_exception,
    first_error,
    is_error,
)
from sheetcalc.formulas.fn_math import power
from sheetcalc.formulas.parser import unquote_string
from sheetcalc.formulas.refs import normalize_cell_id, parse_range_id
from sheetcalc.formulas.registry import FunctionRegistry


# ---------------------------------------------------------------------------
# Resolver protocol: supplies cell values, re-entering the evaluator for formulas
# ---------------------------------------------------------------------------


class CellResolver(Protocol):
    """Protocol for resolving cell and range references."""

    def resolve_cell(self, cell_id: str) -> Any:
        """Resolve a cell value (may trigger recursive evaluation)."""
        ...

    def resolve_range(self, start: str, end: str) -> list[list[Any]]:
        """Resolve a rectangle to a row-major 2-D list of values."""
        ...


def evaluate_formula(tree: Tree, resolver: CellResolver, registry: FunctionRegistry) -> Any:
    """Evaluate a parsed formula tree.

    Args:
        tree: Parse tree from ``parse_formula()``.
        resolver: Source of referenced cell values.
        registry: Function library used for calls.

    Returns:
        The computed value or an error sentinel.  Never raises: any internal
        failure, including runaway recursion, becomes ``#ERROR``.
    """
    try:
        result = _eval(tree, resolver, registry)
    except RecursionError:
        return ERROR
    except Exception as exc:
        return error_for_exception(exc)
    if result is None:
        # A formula that only points at a blank cell shows 0
        return 0
    return result


def _eval(node: Tree | Token, resolver: CellResolver, registry: FunctionRegistry) -> Any:
    """Evaluate one node, mapping engine exceptions to error sentinels."""
    try:
        return _dispatch(node, resolver, registry)
    except ENGINE_ERRORS as exc:
        return error_for_exception(exc)


def _finite(value: Any) -> Any:
    if out_of_range(value):
        return NUM
    return value


def _divide(left: Any, right: Any) -> Any:
    divisor = to_number(right)
    if divisor == 0:
        return DIV0
    return to_number(left) / divisor


_ARITHMETIC = {
    "add": lambda a, b: to_number(a) + to_number(b),
    "sub": lambda a, b: to_number(a) - to_number(b),
    "mul": lambda a, b: to_number(a) * to_number(b),
    "div": _divide,
    "pow": lambda a, b: power(to_number(a), to_number(b)),
}

_COMPARISON = {
    "gt": lambda c: c > 0,
    "lt": lambda c: c < 0,
    "gte": lambda c: c >= 0,
    "lte": lambda c: c <= 0,
    "eq": lambda c: c == 0,
    "neq": lambda c: c != 0,
}


def _dispatch(node: Tree | Token, resolver: CellResolver, registry: FunctionRegistry) -> Any:
    if isinstance(node, Token):
        return _eval_token(node)

    rule = node.data

    # Start rule just wraps expr
    if rule == "start":
        return _eval(node.children[0], resolver, registry)

    # Binary operators: left operand's error wins, then right's
    if rule in _ARITHMETIC or rule in _COMPARISON or rule == "concat":
        left = _eval(node.children[0], resolver, registry)
        if is_error(left):
            return left
        right = _eval(node.children[1], resolver, registry)
        if is_error(right):
            return right
        if rule == "concat":
            return to_text(left) + to_text(right)
        if rule in _COMPARISON:
            return _COMPARISON[rule](compare_values(left, right))
        return _finite(_ARITHMETIC[rule](left, right))

    # Unary operators
    if rule in ("neg", "pos", "percent"):
        operand = _eval(node.children[0], resolver, registry)
        if is_error(operand):
            return operand
        num = to_number(operand)
        if rule == "neg":
            return -num
        if rule == "percent":
            return num / 100
        return num

    # Literals
    if rule == "number":
        return _eval_token(node.children[0])
    if rule == "boolean":
        return str(node.children[0]).upper() == "TRUE"
    if rule == "string":
        return unquote_string(str(node.children[0]))

    # References
    if rule == "cell_ref":
        return resolver.resolve_cell(normalize_cell_id(str(node.children[0])))
    if rule == "range_ref":
        start, end = parse_range_id(str(node.children[0]))
        return resolver.resolve_range(start, end)

    # Function call
    if rule == "func_call":
        return _eval_func(node, resolver, registry)

    raise FormulaError(f"Unknown node type: {rule}")


def _eval_token(token: Token) -> Any:
    """Evaluate a bare token (number literals arrive this way)."""
    if token.type == "NUMBER":
        num = parse_number(str(token))
        if num is None:
            raise FormulaError(f"Invalid number literal: {token!s}")
        return num
    if token.type == "BOOL":
        return str(token).upper() == "TRUE"
    if token.type == "STRING":
        return unquote_string(str(token))
    return str(token)


# ---------- Function dispatch ----------


def _eval_func(node: Tree, resolver: CellResolver, registry: FunctionRegistry) -> Any:
    """Evaluate a function call node.

    Lazy functions receive one thunk per argument.  Eager functions receive
    evaluated values; unless the function catches errors, the first error
    among them (range contents included) is the call's result.
    """
    func_name = str(node.children[0]).upper()
    args_node = node.children[1]
    raw_args = args_node.children if args_node.children else []

    spec = registry.get(func_name)
    if spec is None:
        return ERROR

    if spec.lazy:
        thunks = [functools.partial(_eval, arg, resolver, registry) for arg in raw_args]
        return registry.call(func_name, thunks)

    evaluated_args = [_eval(arg, resolver, registry) for arg in raw_args]
    if not spec.catch_errors:
        err = first_error(evaluated_args)
        if err is not None:
            return err
    return registry.call(func_name, evaluated_args)
