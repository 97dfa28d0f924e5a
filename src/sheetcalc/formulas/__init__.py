"""Spreadsheet formula parsing, evaluation and the builtin function library.

Public API::

    from sheetcalc.formulas import parse_formula, extract_refs, evaluate_formula
"""

from sheetcalc.formulas.errors import (
    ENGINE_ERRORS,
    FormulaArityError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    first_error,
    is_error,
)
from sheetcalc.formulas.evaluator import CellResolver, evaluate_formula
from sheetcalc.formulas.parser import extract_refs, parse_formula
from sheetcalc.formulas.registry import FunctionRegistry, FunctionSpec, default_registry

__all__ = [
    "ENGINE_ERRORS",
    "CellResolver",
    "FormulaArityError",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "FunctionRegistry",
    "FunctionSpec",
    "default_registry",
    "evaluate_formula",
    "extract_refs",
    "first_error",
    "is_error",
    "parse_formula",
]
