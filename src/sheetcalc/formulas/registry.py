"""Function registry for formula evaluation.

A ``FunctionRegistry`` is an ordinary object: build one with
``default_registry()`` (all builtins) or an empty ``FunctionRegistry()`` and
pass it to the evaluator.  Independent registries can coexist.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from sheetcalc.formulas.coerce import out_of_range
from sheetcalc.formulas.errors import (
    ERROR,
    NUM,
    FormulaArityError,
    error_for_exception,
)


@dataclass(frozen=True)
class FunctionSpec:
    """One entry in the function library.

    Attributes:
        name: Upper-case lookup name.
        execute: Callable receiving the positional argument list.  Lazy
            functions receive zero-argument thunks instead of values.
        description: One-line summary.
        usage: Call signature shown to users, e.g. ``"ROUND(number, [digits])"``.
        category: Library category (math, statistical, text, ...).
        min_args: Minimum argument count.
        max_args: Maximum argument count, or None for variadic.
        lazy: Arguments are passed unevaluated, as thunks.
        catch_errors: Error arguments are passed through instead of
            short-circuiting the call.
    """

    name: str
    execute: Callable[[list[Any]], Any]
    description: str = ""
    usage: str = ""
    category: str = ""
    min_args: int = 0
    max_args: int | None = None
    lazy: bool = False
    catch_errors: bool = False

    def check_arity(self, n_args: int) -> None:
        """Raise ``FormulaArityError`` if *n_args* is out of bounds."""
        if n_args < self.min_args or (self.max_args is not None and n_args > self.max_args):
            if self.max_args is None:
                expected = f"at least {self.min_args}"
            elif self.min_args == self.max_args:
                expected = f"exactly {self.min_args}"
            else:
                expected = f"{self.min_args}-{self.max_args}"
            raise FormulaArityError(
                self.name,
                f"{self.name} requires {expected} argument(s), got {n_args}",
            )


class FunctionRegistry:
    """Registry of callable function implementations."""

    def __init__(self, specs: list[FunctionSpec] | None = None) -> None:
        self._functions: dict[str, FunctionSpec] = {}
        for spec in specs or []:
            self.register(spec)

    def register(self, spec: FunctionSpec) -> None:
        self._functions[spec.name.upper()] = spec

    def get(self, name: str) -> FunctionSpec | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    def __len__(self) -> int:
        return len(self._functions)

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())

    def call(self, name: str, args: list[Any]) -> Any:
        """Invoke *name* with already-prepared arguments.

        Returns the function's value, or an error sentinel.  Unknown names
        evaluate to ``#ERROR``.  Arity failures and exceptions raised by the
        function are mapped to their sentinels; nothing propagates.
        """
        spec = self.get(name)
        if spec is None:
            return ERROR
        try:
            spec.check_arity(len(args))
            result = spec.execute(args)
        except RecursionError:
            return ERROR
        except Exception as exc:
            return error_for_exception(exc)
        if out_of_range(result):
            return NUM
        return result


def default_registry() -> FunctionRegistry:
    """Build a fresh registry holding every builtin function."""
    from sheetcalc.formulas.fn_array import ARRAY_FUNCTIONS
    from sheetcalc.formulas.fn_date import DATE_FUNCTIONS
    from sheetcalc.formulas.fn_engineering import ENGINEERING_FUNCTIONS
    from sheetcalc.formulas.fn_finance import FINANCE_FUNCTIONS
    from sheetcalc.formulas.fn_info import INFO_FUNCTIONS
    from sheetcalc.formulas.fn_logical import LOGICAL_FUNCTIONS
    from sheetcalc.formulas.fn_lookup import LOOKUP_FUNCTIONS
    from sheetcalc.formulas.fn_math import MATH_FUNCTIONS
    from sheetcalc.formulas.fn_stats import STATS_FUNCTIONS
    from sheetcalc.formulas.fn_text import TEXT_FUNCTIONS

    return FunctionRegistry(
        MATH_FUNCTIONS
        + STATS_FUNCTIONS
        + FINANCE_FUNCTIONS
        + DATE_FUNCTIONS
        + TEXT_FUNCTIONS
        + LOGICAL_FUNCTIONS
        + INFO_FUNCTIONS
        + LOOKUP_FUNCTIONS
        + ARRAY_FUNCTIONS
        + ENGINEERING_FUNCTIONS
    )
