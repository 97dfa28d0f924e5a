"""Error types and error sentinels for formula parsing and evaluation.

Two layers live here:

- Exceptions (``FormulaError`` and subclasses) are raised *inside* the
  engine: by the parser, the reference resolver and individual functions.
- Sentinels (``#DIV/0!``, ``#VALUE!``, ...) are the values a cell evaluates
  to.  Exceptions are converted to sentinels at the function-dispatch and
  cell boundaries, so nothing escapes the evaluator.

Any string beginning with ``#`` is an error.  ``is_error`` is the one
predicate for that test; do not re-implement it.
"""

from __future__ import annotations

from typing import Any

# ---------------------------------------------------------------------------
# Sentinels
# ---------------------------------------------------------------------------

ERROR = "#ERROR"
DIV0 = "#DIV/0!"
NUM = "#NUM!"
VALUE = "#VALUE!"
NA = "#N/A"
REF = "#REF!"
CIRCULAR = "#CIRCULAR!"

SENTINELS: frozenset[str] = frozenset({ERROR, DIV0, NUM, VALUE, NA, REF, CIRCULAR})


def is_error(value: Any) -> bool:
    """Return True if *value* is an error sentinel (a ``#``-prefixed string)."""
    return isinstance(value, str) and value.startswith("#")


def first_error(values: Any) -> str | None:
    """Return the first error found in *values* (nested lists included), or None."""
    if is_error(values):
        return values
    if isinstance(values, (list, tuple)):
        for v in values:
            err = first_error(v)
            if err is not None:
                return err
    return None


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class FormulaError(Exception):
    """Base class for all formula-related errors."""

    sentinel = ERROR


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaRefError(FormulaError):
    """Malformed cell or range identifier.

    Attributes:
        ref: The identifier that could not be parsed.
    """

    def __init__(self, ref: str, message: str | None = None) -> None:
        self.ref = ref
        super().__init__(message or f"Invalid reference: {ref!r}")


class FormulaFunctionError(FormulaError):
    """Unknown function or a value-domain failure inside a function.

    Attributes:
        func_name: The function that caused the error.
        sentinel: The error value the call evaluates to.
    """

    def __init__(self, func_name: str, message: str | None = None, sentinel: str = VALUE) -> None:
        self.func_name = func_name
        self.sentinel = sentinel
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class FormulaArityError(FormulaFunctionError):
    """Wrong number of arguments passed to a function."""

    def __init__(self, func_name: str, message: str) -> None:
        super().__init__(func_name, message, sentinel=VALUE)


ENGINE_ERRORS = (FormulaError, ZeroDivisionError, ValueError, TypeError, OverflowError)


def error_for_exception(exc: BaseException) -> str:
    """Map an exception raised during evaluation to its error sentinel."""
    if isinstance(exc, FormulaError):
        return exc.sentinel
    if isinstance(exc, ZeroDivisionError):
        return DIV0
    if isinstance(exc, OverflowError):
        return NUM
    if isinstance(exc, (ValueError, TypeError)):
        return VALUE
    return ERROR
