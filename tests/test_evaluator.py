"""Tests for the expression evaluator: operators, references, errors, laziness."""

from __future__ import annotations

from typing import Any

import pytest

from sheetcalc.cell_graph import CellGraph
from sheetcalc.formulas import FunctionRegistry, FunctionSpec, default_registry, evaluate_formula, parse_formula
from sheetcalc.formulas.errors import CIRCULAR, DIV0, ERROR, NUM, VALUE
from sheetcalc.formulas.fn_logical import LOGICAL_FUNCTIONS

REGISTRY = default_registry()


def _eval(formula: str, cells: dict[str, str] | None = None, registry: FunctionRegistry = REGISTRY) -> Any:
    """Parse and evaluate a formula against a cell map of raw values."""
    graph = CellGraph(cells or {}, registry)
    return evaluate_formula(parse_formula(formula), graph, registry)


# ────────────────────────────────────────────────────────────────
# Operators
# ────────────────────────────────────────────────────────────────


class TestArithmetic:
    def test_precedence(self) -> None:
        assert _eval("=1+2*3") == 7
        assert _eval("=(1+2)*3") == 9
        assert _eval("=10-4-3") == 3

    def test_division(self) -> None:
        assert _eval("=10/4") == 2.5

    def test_power_right_associative(self) -> None:
        assert _eval("=2^3^2") == 512

    def test_unary(self) -> None:
        assert _eval("=-3+5") == 2
        assert _eval("=+4") == 4
        assert _eval("=--4") == 4

    def test_percent(self) -> None:
        assert _eval("=50%") == 0.5
        assert _eval("=200*10%") == pytest.approx(20)

    def test_numeric_text_coerced(self) -> None:
        assert _eval('="3"+4') == 7

    def test_bool_coerced(self) -> None:
        assert _eval("=TRUE+1") == 2


class TestConcatAndCompare:
    def test_concat(self) -> None:
        assert _eval('="a"&"b"') == "ab"
        assert _eval("=1&2") == "12"
        assert _eval('=1.5&""') == "1.5"
        assert _eval('=TRUE&""') == "TRUE"

    def test_concat_binds_looser_than_addition(self) -> None:
        assert _eval('="x"&1+2') == "x3"

    def test_numeric_compare(self) -> None:
        assert _eval("=2>1") is True
        assert _eval("=2<1") is False
        assert _eval("=2>=2") is True
        assert _eval("=2<=1") is False
        assert _eval("=1=1") is True
        assert _eval("=1<>1") is False

    def test_text_compare_case_insensitive(self) -> None:
        assert _eval('="abc"="ABC"') is True
        assert _eval('="apple"<"banana"') is True

    def test_mixed_kinds(self) -> None:
        assert _eval('=1<"a"') is True
        assert _eval('="a"<TRUE') is True

    def test_compare_binds_loosest(self) -> None:
        assert _eval("=1+1=2") is True


# ────────────────────────────────────────────────────────────────
# Errors
# ────────────────────────────────────────────────────────────────


class TestErrors:
    def test_div_zero(self) -> None:
        assert _eval("=1/0") == DIV0

    def test_text_in_arithmetic(self) -> None:
        assert _eval('="x"+1') == VALUE

    def test_left_error_wins(self) -> None:
        assert _eval('=1/0+"x"') == DIV0
        assert _eval('=("x"+1)+(1/0)') == VALUE

    def test_propagates_through_nesting(self) -> None:
        assert _eval("=ABS(1/0)*2") == DIV0

    def test_zero_to_negative_power(self) -> None:
        assert _eval("=0^-1") == DIV0

    def test_complex_power(self) -> None:
        assert _eval("=(-8)^(1/3)") == NUM

    def test_overflow(self) -> None:
        assert _eval("=10.5^400") == NUM

    def test_integer_power_overflow(self) -> None:
        assert _eval("=10^400") == NUM
        assert _eval("=9^9^9") == NUM

    def test_integer_power_stays_exact(self) -> None:
        result = _eval("=2^10")
        assert result == 1024
        assert isinstance(result, int)

    def test_product_past_double_range(self) -> None:
        assert _eval("=10^300*10^300") == NUM

    def test_long_integer_literal(self) -> None:
        assert _eval("=" + "9" * 400 + "+1") == NUM
        assert isinstance(_eval("=12345678901234567890+0"), float)

    def test_unknown_function(self) -> None:
        assert _eval("=NOSUCHFN(1)") == ERROR

    def test_arity(self) -> None:
        assert _eval("=ABS(1, 2)") == VALUE
        assert _eval("=MOD(1)") == VALUE

    def test_error_literal_propagates(self) -> None:
        assert _eval('="#N/A"&"x"') == "#N/A"

    def test_malformed_reference(self) -> None:
        assert _eval("=A0+1") == ERROR
        assert _eval("=SUM(A0:A2)") == ERROR


# ────────────────────────────────────────────────────────────────
# References
# ────────────────────────────────────────────────────────────────


class TestReferences:
    def test_cell(self) -> None:
        assert _eval("=A1*2", {"A1": "21"}) == 42

    def test_case_and_absolute_markers(self) -> None:
        assert _eval("=a1+$A$1", {"A1": "2"}) == 4

    def test_range(self) -> None:
        assert _eval("=SUM(A1:A3)", {"A1": "1", "A2": "2", "A3": "3"}) == 6

    def test_formula_chain(self) -> None:
        cells = {"A1": "1", "A2": "2", "A3": "=SUM(A1:A2)"}
        assert _eval("=A3*2", cells) == 6

    def test_blank_is_zero(self) -> None:
        assert _eval("=A1+1") == 1

    def test_formula_pointing_at_blank_shows_zero(self) -> None:
        assert _eval("=A1") == 0

    def test_literal_coercion(self) -> None:
        assert _eval('=A1&"!"', {"A1": "hello"}) == "hello!"
        assert _eval("=A1*100", {"A1": "12%"}) == pytest.approx(12)
        assert _eval("=A1+1", {"A1": "$1,200"}) == 1201
        assert _eval("=A1+1", {"A1": "true"}) == 2

    def test_error_in_range_propagates(self) -> None:
        assert _eval("=SUM(A1:A2)", {"A1": "=1/0", "A2": "2"}) == DIV0

    def test_self_reference(self) -> None:
        assert _eval("=A1", {"A1": "=A1+1"}) == CIRCULAR


# ────────────────────────────────────────────────────────────────
# Lazy and error-catching functions
# ────────────────────────────────────────────────────────────────


class TestLaziness:
    def _counting_registry(self) -> tuple[FunctionRegistry, list[int]]:
        calls: list[int] = []

        def boom(args: list) -> int:
            calls.append(1)
            return 99

        registry = FunctionRegistry(LOGICAL_FUNCTIONS + [FunctionSpec("BOOM", boom, min_args=0, max_args=0)])
        return registry, calls

    def test_if_skips_untaken_branch(self) -> None:
        registry, calls = self._counting_registry()
        assert _eval("=IF(TRUE, 1, BOOM())", registry=registry) == 1
        assert calls == []
        assert _eval("=IF(FALSE, 1, BOOM())", registry=registry) == 99
        assert calls == [1]

    def test_if_untaken_error_branch(self) -> None:
        assert _eval("=IF(1>0, 1, 1/0)") == 1

    def test_iferror_catches_lazy_error(self) -> None:
        assert _eval("=IFERROR(1/0, 42)") == 42
        assert _eval('=IFERROR("#VALUE!", 42)') == 42
        assert _eval("=IFERROR(5, 42)") == 5

    def test_iferror_skips_fallback(self) -> None:
        registry, calls = self._counting_registry()
        assert _eval("=IFERROR(1, BOOM())", registry=registry) == 1
        assert calls == []

    def test_iserror_sees_error(self) -> None:
        assert _eval("=ISERROR(1/0)") is True
        assert _eval("=ISERROR(A1)", {"A1": "=1/0"}) is True

    def test_independent_registries(self) -> None:
        registry, _ = self._counting_registry()
        assert _eval("=SUM(1, 2)", registry=registry) == ERROR
        assert _eval("=SUM(1, 2)") == 3
