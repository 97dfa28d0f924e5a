"""Tests for the builtin function library, grouped by category."""

from __future__ import annotations

import datetime
import math
from typing import Any

import pytest

from sheetcalc.cell_graph import CellGraph
from sheetcalc.formulas import FormulaArityError, FunctionRegistry, FunctionSpec, default_registry
from sheetcalc.formulas import evaluate_formula, parse_formula
from sheetcalc.formulas.errors import DIV0, ERROR, NA, NUM, REF, VALUE

REGISTRY = default_registry()


def _eval(formula: str, cells: dict[str, str] | None = None) -> Any:
    """Parse and evaluate a formula against a cell map of raw values."""
    graph = CellGraph(cells or {}, REGISTRY)
    return evaluate_formula(parse_formula(formula), graph, REGISTRY)


def _column(values: list[str], col: str = "A") -> dict[str, str]:
    return {f"{col}{i}": v for i, v in enumerate(values, start=1)}


# ────────────────────────────────────────────────────────────────
# Registry
# ────────────────────────────────────────────────────────────────


class TestRegistry:
    def test_default_registry_is_fresh(self) -> None:
        assert default_registry() is not default_registry()

    def test_lookup_case_insensitive(self) -> None:
        assert REGISTRY.get("sum") is REGISTRY.get("SUM")
        assert REGISTRY.has("error.type")

    def test_every_category_populated(self) -> None:
        categories = {REGISTRY.get(name).category for name in REGISTRY.supported_functions}
        assert categories == {
            "math", "statistical", "financial", "date", "text",
            "logical", "information", "lookup", "array", "engineering",
        }
        assert len(REGISTRY) > 100

    def test_unknown_name(self) -> None:
        assert REGISTRY.call("NOPE", []) == ERROR

    def test_check_arity(self) -> None:
        spec = REGISTRY.get("MOD")
        with pytest.raises(FormulaArityError, match="exactly 2"):
            spec.check_arity(3)

    def test_exceptions_mapped(self) -> None:
        def divide(args: list) -> float:
            return 1 / 0

        def crash(args: list) -> float:
            raise RuntimeError("bad")

        def infinite(args: list) -> float:
            return math.inf

        registry = FunctionRegistry(
            [FunctionSpec("DIVIDE", divide), FunctionSpec("CRASH", crash), FunctionSpec("INF", infinite)]
        )
        assert registry.call("DIVIDE", []) == DIV0
        assert registry.call("CRASH", []) == ERROR
        assert registry.call("INF", []) == NUM

    def test_register_overrides(self) -> None:
        registry = FunctionRegistry()
        registry.register(FunctionSpec("answer", lambda args: 42))
        assert registry.call("ANSWER", []) == 42
        assert "ANSWER" in registry.supported_functions


# ────────────────────────────────────────────────────────────────
# Math
# ────────────────────────────────────────────────────────────────


class TestMath:
    def test_sum(self) -> None:
        assert _eval("=SUM(1,2,3)") == 6
        assert _eval('=SUM("x",2,3)') == 5
        assert _eval("=SUM()") == 0

    def test_sum_range_skips_text(self) -> None:
        assert _eval("=SUM(A1:A3)", _column(["1", "x", "2"])) == 3

    def test_product(self) -> None:
        assert _eval("=PRODUCT(2,3,4)") == 24

    def test_sumproduct(self) -> None:
        cells = {"A1": "1", "A2": "2", "B1": "3", "B2": "4"}
        assert _eval("=SUMPRODUCT(A1:A2, B1:B2)") == 0
        assert _eval("=SUMPRODUCT(A1:A2, B1:B2)", cells) == 11
        assert _eval("=SUMPRODUCT(A1:A2, B1:B3)", cells) == VALUE

    def test_sumsq(self) -> None:
        assert _eval("=SUMSQ(3,4)") == 25

    def test_round_half_away_from_zero(self) -> None:
        assert _eval("=ROUND(2.5)") == 3
        assert _eval("=ROUND(-2.5)") == -3
        assert _eval("=ROUND(1.005, 2)") == 1.01
        assert _eval("=ROUND(1234.5, -2)") == 1200

    def test_roundup_rounddown(self) -> None:
        assert _eval("=ROUNDUP(1.21, 1)") == 1.3
        assert _eval("=ROUNDDOWN(-1.29, 1)") == -1.2

    def test_int_trunc(self) -> None:
        assert _eval("=INT(-1.5)") == -2
        assert _eval("=TRUNC(-1.5)") == -1

    def test_mod(self) -> None:
        assert _eval("=MOD(7, 3)") == 1
        assert _eval("=MOD(-3, 2)") == 1
        assert _eval("=MOD(1, 0)") == DIV0

    def test_power_sqrt(self) -> None:
        assert _eval("=POWER(2, 10)") == 1024
        assert _eval("=SQRT(16)") == 4
        assert _eval("=SQRT(-1)") == NUM

    def test_logs(self) -> None:
        assert _eval("=LOG(8, 2)") == pytest.approx(3)
        assert _eval("=LOG10(1000)") == pytest.approx(3)
        assert _eval("=LN(EXP(2))") == pytest.approx(2)
        assert _eval("=LN(0)") == NUM
        assert _eval("=LOG(10, 1)") == DIV0

    def test_ceiling_floor_mround(self) -> None:
        assert _eval("=CEILING(2.3)") == 3
        assert _eval("=CEILING(2.3, 0.5)") == 2.5
        assert _eval("=FLOOR(2.7, 0.5)") == 2.5
        assert _eval("=FLOOR(1, 0)") == DIV0
        assert _eval("=MROUND(10, 3)") == 9

    def test_integer_functions(self) -> None:
        assert _eval("=FACT(5)") == 120
        assert _eval("=FACT(-1)") == NUM
        assert _eval("=COMBIN(5, 2)") == 10
        assert _eval("=PERMUT(5, 2)") == 20
        assert _eval("=GCD(12, 18)") == 6
        assert _eval("=LCM(4, 6)") == 12
        assert _eval("=QUOTIENT(7, 2)") == 3

    def test_integer_functions_past_double_range(self) -> None:
        assert math.isfinite(float(_eval("=FACT(170)")))
        assert _eval("=FACT(171)") == NUM
        assert _eval("=FACT(10000000)") == NUM
        assert _eval("=COMBIN(2000, 1000)") == NUM
        assert _eval("=PERMUT(200, 200)") == NUM
        assert _eval("=PERMUT(10, 3)") == 720

    def test_even_odd_sign_abs(self) -> None:
        assert _eval("=EVEN(3)") == 4
        assert _eval("=EVEN(-1)") == -2
        assert _eval("=ODD(2)") == 3
        assert _eval("=SIGN(-5)") == -1
        assert _eval("=ABS(-3)") == 3

    def test_pi_and_random(self) -> None:
        assert _eval("=PI()") == pytest.approx(math.pi)
        assert 0 <= _eval("=RAND()") < 1
        assert _eval("=RANDBETWEEN(4, 4)") == 4
        assert _eval("=RANDBETWEEN(5, 4)") == NUM


# ────────────────────────────────────────────────────────────────
# Statistical
# ────────────────────────────────────────────────────────────────


class TestStatistical:
    def test_average(self) -> None:
        assert _eval("=AVERAGE(1,2,3)") == 2
        assert _eval("=AVERAGE()") == DIV0
        assert _eval("=AVERAGE(A1:A3)", _column(["2", "text", "4"])) == 3

    def test_stdev_requires_two_samples(self) -> None:
        assert _eval("=STDEV(5)") == DIV0
        assert _eval("=VAR(5)") == DIV0

    def test_spread(self) -> None:
        assert _eval("=STDEV(2,4,4,4,5,5,7,9)") == pytest.approx(2.138089935)
        assert _eval("=STDEVP(2,4,4,4,5,5,7,9)") == pytest.approx(2.0)
        assert _eval("=VAR(1,2,3,4)") == pytest.approx(5 / 3)
        assert _eval("=VARP(1,2,3,4)") == pytest.approx(1.25)

    def test_min_max(self) -> None:
        assert _eval("=MIN(3,1,2)") == 1
        assert _eval("=MAX(3,1,2)") == 3
        assert _eval("=MAX()") == 0

    def test_counts(self) -> None:
        cells = {"A1": "1", "A2": "x", "A4": "2"}
        assert _eval("=COUNT(A1:A4)", cells) == 2
        assert _eval("=COUNTA(A1:A4)", cells) == 3
        assert _eval("=COUNTBLANK(A1:A4)", cells) == 1

    def test_median_mode(self) -> None:
        assert _eval("=MEDIAN(1,3,2,4)") == 2.5
        assert _eval("=MODE(1,2,2,3)") == 2
        assert _eval("=MODE(1,2,3)") == NA

    def test_percentile_quartile(self) -> None:
        cells = _column(["1", "2", "3", "4", "5"])
        assert _eval("=PERCENTILE(A1:A5, 0.25)", cells) == 2
        assert _eval("=PERCENTILE(A1:A5, 0.1)", cells) == pytest.approx(1.4)
        assert _eval("=QUARTILE(A1:A5, 2)", cells) == 3
        assert _eval("=PERCENTILE(A1:A5, 1.5)", cells) == NUM
        assert _eval("=QUARTILE(A1:A5, 5)", cells) == NUM

    def test_rank_small_large(self) -> None:
        cells = _column(["1", "2", "3", "4", "5"])
        assert _eval("=RANK(4, A1:A5)", cells) == 2
        assert _eval("=RANK(4, A1:A5, 1)", cells) == 4
        assert _eval("=RANK(9, A1:A5)", cells) == NA
        assert _eval("=SMALL(A1:A5, 2)", cells) == 2
        assert _eval("=LARGE(A1:A5, 1)", cells) == 5
        assert _eval("=SMALL(A1:A5, 6)", cells) == NUM

    def test_correl(self) -> None:
        cells = {**_column(["1", "2", "3"]), **_column(["2", "4", "6"], "B")}
        assert _eval("=CORREL(A1:A3, B1:B3)", cells) == pytest.approx(1.0)

    def test_means(self) -> None:
        assert _eval("=GEOMEAN(2, 8)") == pytest.approx(4)
        assert _eval("=HARMEAN(1, 2, 4)") == pytest.approx(12 / 7)
        assert _eval("=GEOMEAN(0, 2)") == NUM


class TestConditionalAggregates:
    CELLS = {
        **_column(["1", "2", "3", "4"]),
        **_column(["apple", "banana", "Apricot", "cherry"], "B"),
        **_column(["10", "20", "30", "40"], "C"),
    }

    def test_sumif(self) -> None:
        assert _eval('=SUMIF(A1:A4, ">2")', self.CELLS) == 7
        assert _eval('=SUMIF(B1:B4, "a*", C1:C4)', self.CELLS) == 40

    def test_countif(self) -> None:
        assert _eval('=COUNTIF(B1:B4, "app*")', self.CELLS) == 1
        assert _eval('=COUNTIF(B1:B4, "BANANA")', self.CELLS) == 1
        assert _eval("=COUNTIF(A1:A4, 3)", self.CELLS) == 1
        assert _eval('=COUNTIF(A1:A4, "<>2")', self.CELLS) == 3

    def test_averageif(self) -> None:
        assert _eval('=AVERAGEIF(A1:A4, ">=3", C1:C4)', self.CELLS) == 35
        assert _eval('=AVERAGEIF(A1:A4, ">10")', self.CELLS) == DIV0

    def test_multi_criteria(self) -> None:
        assert _eval('=SUMIFS(C1:C4, A1:A4, ">1", B1:B4, "a*")', self.CELLS) == 30
        assert _eval('=COUNTIFS(A1:A4, ">1", B1:B4, "<>cherry")', self.CELLS) == 2
        assert _eval('=AVERAGEIFS(C1:C4, A1:A4, "<3")', self.CELLS) == 15

    def test_mismatched_criteria_ranges(self) -> None:
        assert _eval('=SUMIFS(C1:C4, A1:A3, ">1")', self.CELLS) == VALUE


# ────────────────────────────────────────────────────────────────
# Financial
# ────────────────────────────────────────────────────────────────


class TestFinancial:
    def test_npv(self) -> None:
        assert _eval("=NPV(0.1, 100, 100)") == pytest.approx(173.553719)
        assert _eval("=NPV(-1, 100)") == DIV0

    def test_irr(self) -> None:
        cells = _column(["-100", "60", "60"])
        assert _eval("=IRR(A1:A3)", cells) == pytest.approx(0.130662, abs=1e-5)

    def test_irr_needs_two_cashflows(self) -> None:
        assert _eval("=IRR(A1:A1)", {"A1": "-100"}) == NUM

    def test_pmt(self) -> None:
        assert _eval("=PMT(0.05/12, 360, 200000)") == pytest.approx(-1073.64, abs=0.01)
        assert _eval("=PMT(0, 10, 1000)") == -100

    def test_pv_fv(self) -> None:
        assert _eval("=PV(0.05, 10, -100)") == pytest.approx(772.17, abs=0.01)
        assert _eval("=FV(0.05, 10, -100)") == pytest.approx(1257.79, abs=0.01)
        assert _eval("=FV(0, 10, -100)") == 1000

    def test_compounding_overflow(self) -> None:
        assert _eval("=FV(0.1, 100000, -100)") == NUM
        assert _eval("=PMT(0.1, 100000, 1000)") == NUM

    def test_nper_rate(self) -> None:
        assert _eval("=NPER(0.05, -100, 772.17)") == pytest.approx(10, abs=0.01)
        assert _eval("=RATE(10, -100, 772.17)") == pytest.approx(0.05, abs=1e-4)

    def test_effect_nominal(self) -> None:
        assert _eval("=EFFECT(0.12, 12)") == pytest.approx(0.126825, abs=1e-6)
        assert _eval("=NOMINAL(EFFECT(0.12, 12), 12)") == pytest.approx(0.12)
        assert _eval("=EFFECT(-0.1, 12)") == NUM


# ────────────────────────────────────────────────────────────────
# Date
# ────────────────────────────────────────────────────────────────


class TestDate:
    def test_date_normalizes_overflow(self) -> None:
        assert _eval("=DATE(2024, 13, 1)") == datetime.date(2025, 1, 1)
        assert _eval("=DATE(2024, 3, 0)") == datetime.date(2024, 2, 29)
        assert _eval("=DATE(99, 1, 1)") == datetime.date(1999, 1, 1)

    def test_serial_numbers(self) -> None:
        assert _eval("=DATE(2024, 1, 1)+0") == 45292
        assert _eval("=YEAR(45292)") == 2024

    def test_parts(self) -> None:
        assert _eval("=YEAR(DATE(2024, 5, 17))") == 2024
        assert _eval('=MONTH("2024-05-17")') == 5
        assert _eval('=DAY("5/17/2024")') == 17
        assert _eval('=DAY("not a date")') == VALUE

    def test_weekday(self) -> None:
        # 2024-01-07 is a Sunday
        assert _eval("=WEEKDAY(DATE(2024, 1, 7))") == 1
        assert _eval("=WEEKDAY(DATE(2024, 1, 7), 2)") == 7
        assert _eval("=WEEKDAY(DATE(2024, 1, 7), 3)") == 6

    def test_edate_eomonth(self) -> None:
        assert _eval("=EDATE(DATE(2024, 1, 31), 1)") == datetime.date(2024, 2, 29)
        assert _eval("=EOMONTH(DATE(2024, 1, 15), 1)") == datetime.date(2024, 2, 29)
        assert _eval("=EOMONTH(DATE(2024, 1, 15), -1)") == datetime.date(2023, 12, 31)

    def test_networkdays(self) -> None:
        assert _eval("=NETWORKDAYS(DATE(2024, 1, 1), DATE(2024, 1, 12))") == 10
        assert _eval("=NETWORKDAYS(DATE(2024, 1, 12), DATE(2024, 1, 1))") == -10
        holidays = {"A1": "2024-01-01"}
        assert _eval("=NETWORKDAYS(DATE(2024, 1, 1), DATE(2024, 1, 12), A1:A1)", holidays) == 9

    def test_workday(self) -> None:
        assert _eval("=WORKDAY(DATE(2024, 1, 5), 1)") == datetime.date(2024, 1, 8)
        assert _eval("=WORKDAY(DATE(2024, 1, 8), -1)") == datetime.date(2024, 1, 5)

    def test_datedif(self) -> None:
        start, end = "DATE(2020, 1, 15)", "DATE(2024, 3, 10)"
        assert _eval(f'=DATEDIF({start}, {end}, "Y")') == 4
        assert _eval(f'=DATEDIF({start}, {end}, "M")') == 49
        assert _eval(f'=DATEDIF({start}, {end}, "YM")') == 1
        assert _eval(f'=DATEDIF({start}, {end}, "MD")') == 24
        assert _eval(f'=DATEDIF({end}, {start}, "Y")') == NUM

    def test_today(self) -> None:
        assert _eval("=TODAY()") == datetime.date.today()


# ────────────────────────────────────────────────────────────────
# Text
# ────────────────────────────────────────────────────────────────


class TestText:
    def test_joining(self) -> None:
        assert _eval('=CONCATENATE("a", 1, TRUE)') == "a1TRUE"
        assert _eval("=CONCAT(A1:B1)", {"A1": "x", "B1": "y"}) == "xy"
        cells = {"A1": "a", "C1": "c"}
        assert _eval('=TEXTJOIN("-", TRUE, A1:C1)', cells) == "a-c"
        assert _eval('=TEXTJOIN("-", FALSE, A1:C1)', cells) == "a--c"

    def test_slicing(self) -> None:
        assert _eval('=LEFT("hello", 2)') == "he"
        assert _eval('=LEFT("hello")') == "h"
        assert _eval('=RIGHT("hello", 3)') == "llo"
        assert _eval('=RIGHT("hello", 0)') == ""
        assert _eval('=MID("hello", 2, 3)') == "ell"
        assert _eval('=MID("hello", 0, 1)') == VALUE
        assert _eval('=LEFT("hello", -1)') == VALUE

    def test_case_and_spacing(self) -> None:
        assert _eval('=LEN("héllo")') == 5
        assert _eval('=UPPER("abc")') == "ABC"
        assert _eval('=LOWER("ABC")') == "abc"
        assert _eval('=PROPER("hello world")') == "Hello World"
        assert _eval('=TRIM("  a   b  ")') == "a b"
        assert _eval('=CLEAN("a"&CHAR(7)&"b")') == "ab"

    def test_substitute_replace(self) -> None:
        assert _eval('=SUBSTITUTE("a-b-c", "-", "+")') == "a+b+c"
        assert _eval('=SUBSTITUTE("a-b-c", "-", "+", 2)') == "a-b+c"
        assert _eval('=REPLACE("abcdef", 2, 3, "X")') == "aXef"

    def test_find_search(self) -> None:
        assert _eval('=FIND("l", "hello")') == 3
        assert _eval('=FIND("L", "hello")') == VALUE
        assert _eval('=SEARCH("L", "hello")') == 3
        assert _eval('=SEARCH("h?l", "ahello")') == 2

    def test_misc(self) -> None:
        assert _eval('=REPT("ab", 3)') == "ababab"
        assert _eval('=REVERSE("abc")') == "cba"
        assert _eval('=CODE("A")') == 65
        assert _eval("=CHAR(65)") == "A"
        assert _eval("=CHAR(0)") == VALUE
        assert _eval('=EXACT("a", "A")') is False

    def test_value(self) -> None:
        assert _eval('=VALUE("$1,200")') == 1200
        assert _eval('=VALUE("12%")') == pytest.approx(0.12)
        assert _eval('=VALUE("abc")') == VALUE

    def test_text_format(self) -> None:
        assert _eval('=TEXT(1234.567, "#,##0.00")') == "1,234.57"
        assert _eval('=TEXT(0.256, "0.0%")') == "25.6%"
        assert _eval('=TEXT(5, "$0.00")') == "$5.00"
        assert _eval('=TEXT(DATE(2024, 3, 5), "YYYY-MM-DD")') == "2024-03-05"


# ────────────────────────────────────────────────────────────────
# Logical
# ────────────────────────────────────────────────────────────────


class TestLogical:
    def test_if(self) -> None:
        assert _eval('=IF(1>2, "y", "n")') == "n"
        assert _eval('=IF(1>2, "y")') is False
        assert _eval('=IF(1/0, "y", "n")') == DIV0

    def test_ifs(self) -> None:
        assert _eval('=IFS(A1>5, "big", TRUE, "small")', {"A1": "3"}) == "small"
        assert _eval("=IFS(FALSE, 1)") == NA
        assert _eval("=IFS(TRUE, 1, FALSE)") == VALUE

    def test_switch(self) -> None:
        assert _eval('=SWITCH(2, 1, "one", 2, "two")') == "two"
        assert _eval('=SWITCH(3, 1, "one", "other")') == "other"
        assert _eval('=SWITCH(3, 1, "one")') == NA

    def test_and_or_xor_not(self) -> None:
        assert _eval("=AND(TRUE, 1)") is True
        assert _eval("=AND(TRUE, FALSE)") is False
        assert _eval("=OR(FALSE, 0)") is False
        assert _eval("=OR(FALSE, 2>1)") is True
        assert _eval("=XOR(TRUE, TRUE)") is False
        assert _eval("=XOR(TRUE, FALSE, FALSE)") is True
        assert _eval("=NOT(0)") is True
        assert _eval("=AND(A1:A2)") == VALUE

    def test_bool_functions(self) -> None:
        assert _eval("=TRUE()") is True
        assert _eval("=FALSE()") is False

    def test_ifna(self) -> None:
        assert _eval('=IFNA(NA(), "x")') == "x"
        assert _eval('=IFNA(1/0, "x")') == DIV0
        assert _eval('=IFNA(1, "x")') == 1


# ────────────────────────────────────────────────────────────────
# Information
# ────────────────────────────────────────────────────────────────


class TestInformation:
    def test_type_predicates(self) -> None:
        assert _eval("=ISNUMBER(1)") is True
        assert _eval('=ISNUMBER("1")') is False
        assert _eval('=ISTEXT("a")') is True
        assert _eval("=ISTEXT(1/0)") is False
        assert _eval("=ISBLANK(A1)") is True
        assert _eval("=ISBLANK(A1)", {"A1": "x"}) is False

    def test_parity(self) -> None:
        assert _eval("=ISEVEN(4)") is True
        assert _eval("=ISODD(3)") is True
        assert _eval("=ISEVEN(1/0)") == DIV0

    def test_error_predicates(self) -> None:
        assert _eval("=ISERROR(NA())") is True
        assert _eval("=ISERR(NA())") is False
        assert _eval("=ISERR(1/0)") is True
        assert _eval("=ISNA(NA())") is True
        assert _eval("=ISERROR(1)") is False

    def test_type(self) -> None:
        assert _eval("=TYPE(1)") == 1
        assert _eval('=TYPE("a")') == 2
        assert _eval("=TYPE(TRUE)") == 4
        assert _eval("=TYPE(1/0)") == 16
        assert _eval("=TYPE(A1:B2)") == 64

    def test_error_type(self) -> None:
        assert _eval("=ERROR.TYPE(1/0)") == 2
        assert _eval("=ERROR.TYPE(NA())") == 7
        assert _eval("=ERROR.TYPE(NOSUCH())") == 8
        assert _eval("=ERROR.TYPE(1)") == NA


# ────────────────────────────────────────────────────────────────
# Lookup
# ────────────────────────────────────────────────────────────────


class TestLookup:
    CELLS = {
        **_column(["apple", "banana", "cherry"]),
        **_column(["1.5", "0.25", "3"], "B"),
        **_column(["0", "10", "20"], "D"),
        **_column(["low", "mid", "high"], "E"),
        **_column(["30", "20", "10"], "I"),
        "G1": "q1",
        "H1": "q2",
        "G2": "10",
        "H2": "20",
    }

    def test_vlookup_exact(self) -> None:
        assert _eval('=VLOOKUP("banana", A1:B3, 2, FALSE)', self.CELLS) == 0.25
        assert _eval('=VLOOKUP("BANANA", A1:B3, 2, FALSE)', self.CELLS) == 0.25
        assert _eval('=VLOOKUP("b*", A1:B3, 2, FALSE)', self.CELLS) == 0.25
        assert _eval('=VLOOKUP("kiwi", A1:B3, 2, FALSE)', self.CELLS) == NA

    def test_vlookup_bad_column(self) -> None:
        assert _eval('=VLOOKUP("banana", A1:B3, 3, FALSE)', self.CELLS) == REF
        assert _eval('=VLOOKUP("banana", A1:B3, 0, FALSE)', self.CELLS) == VALUE

    def test_vlookup_approximate(self) -> None:
        assert _eval("=VLOOKUP(15, D1:E3, 2)", self.CELLS) == "mid"
        assert _eval("=VLOOKUP(25, D1:E3, 2)", self.CELLS) == "high"
        assert _eval("=VLOOKUP(-1, D1:E3, 2)", self.CELLS) == NA

    def test_hlookup(self) -> None:
        assert _eval('=HLOOKUP("q2", G1:H2, 2, FALSE)', self.CELLS) == 20
        assert _eval('=HLOOKUP("q2", G1:H2, 3, FALSE)', self.CELLS) == REF

    def test_xlookup(self) -> None:
        assert _eval('=XLOOKUP("cherry", A1:A3, B1:B3)', self.CELLS) == 3
        assert _eval('=XLOOKUP("kiwi", A1:A3, B1:B3, "none")', self.CELLS) == "none"
        assert _eval('=XLOOKUP("kiwi", A1:A3, B1:B3)', self.CELLS) == NA

    def test_xlookup_next_smaller_larger(self) -> None:
        assert _eval('=XLOOKUP(15, D1:D3, E1:E3, "none", -1)', self.CELLS) == "mid"
        assert _eval('=XLOOKUP(15, D1:D3, E1:E3, "none", 1)', self.CELLS) == "high"
        assert _eval('=XLOOKUP(25, D1:D3, E1:E3, "none", 1)', self.CELLS) == "none"

    def test_index(self) -> None:
        assert _eval("=INDEX(A1:B3, 2, 1)", self.CELLS) == "banana"
        assert _eval("=INDEX(A1:A3, 3)", self.CELLS) == "cherry"
        assert _eval("=INDEX(A1:B3, 4, 1)", self.CELLS) == REF
        assert _eval("=INDEX(A1:B3, 2, 0)", self.CELLS) == [["banana", 0.25]]

    def test_match(self) -> None:
        assert _eval('=MATCH("cherry", A1:A3, 0)', self.CELLS) == 3
        assert _eval("=MATCH(15, D1:D3)", self.CELLS) == 2
        assert _eval("=MATCH(15, D1:D3, 0)", self.CELLS) == NA
        assert _eval("=MATCH(15, I1:I3, -1)", self.CELLS) == 2

    def test_choose(self) -> None:
        assert _eval('=CHOOSE(2, "a", "b", "c")') == "b"
        assert _eval('=CHOOSE(4, "a", "b", "c")') == VALUE
        assert _eval('=CHOOSE(0, "a")') == VALUE


# ────────────────────────────────────────────────────────────────
# Array
# ────────────────────────────────────────────────────────────────


class TestArray:
    @pytest.mark.parametrize(
        "matrix",
        [
            [[1]],
            [[1, 2, 3]],
            [[1], [2], [3]],
            [[1, 2], [3, 4], [5, 6]],
            [["a", True], [None, 2.5]],
        ],
    )
    def test_transpose_involution(self, matrix: list[list[Any]]) -> None:
        once = REGISTRY.call("TRANSPOSE", [matrix])
        assert REGISTRY.call("TRANSPOSE", [once]) == matrix

    def test_transpose_range(self) -> None:
        cells = {"A1": "1", "B1": "2", "C1": "3"}
        assert _eval("=TRANSPOSE(A1:C1)", cells) == [[1], [2], [3]]

    def test_frequency(self) -> None:
        cells = {**_column(["1", "2", "3", "4", "5", "6"]), "B1": "2", "B2": "4"}
        assert _eval("=FREQUENCY(A1:A6, B1:B2)", cells) == [[2], [2], [2]]

    def test_mmult(self) -> None:
        assert REGISTRY.call("MMULT", [[[1, 2], [3, 4]], [[5], [6]]]) == [[17], [39]]
        assert REGISTRY.call("MMULT", [[[1, 2]], [[1, 2]]]) == VALUE
        assert REGISTRY.call("MMULT", [[["a"]], [[1]]]) == VALUE

    def test_unique(self) -> None:
        assert REGISTRY.call("UNIQUE", [[["a"], ["A"], ["b"]]]) == [["a"], ["b"]]
        assert REGISTRY.call("UNIQUE", [[[1, 2, 1]]]) == [[1, 2]]

    def test_sort(self) -> None:
        matrix = [[3, "c"], [1, "a"], [2, "b"]]
        assert REGISTRY.call("SORT", [matrix]) == [[1, "a"], [2, "b"], [3, "c"]]
        assert REGISTRY.call("SORT", [matrix, 2, -1]) == [[3, "c"], [2, "b"], [1, "a"]]
        assert REGISTRY.call("SORT", [matrix, 3]) == VALUE

    def test_sequence(self) -> None:
        assert _eval("=SEQUENCE(2, 3)") == [[1, 2, 3], [4, 5, 6]]
        assert _eval("=SEQUENCE(3, 1, 10, 5)") == [[10], [15], [20]]
        assert _eval("=SEQUENCE(0)") == VALUE

    def test_filter_rows(self) -> None:
        assert REGISTRY.call("FILTER", [[[1], [2], [3]], [[True], [False], [True]]]) == [[1], [3]]
        cells = {**_column(["10", "20", "30"]), "B1": "FALSE", "B2": "TRUE", "B3": "TRUE"}
        assert _eval("=FILTER(A1:A3, B1:B3)", cells) == [[20], [30]]

    def test_filter_columns(self) -> None:
        matrix = [[1, 2, 3], [4, 5, 6]]
        assert REGISTRY.call("FILTER", [matrix, [[True, False, True]]]) == [[1, 3], [4, 6]]

    def test_filter_nothing_selected(self) -> None:
        matrix = [[1], [2]]
        assert REGISTRY.call("FILTER", [matrix, [[False], [False]]]) == NA
        assert REGISTRY.call("FILTER", [matrix, [[False], [False]], "none"]) == "none"

    def test_filter_shape_mismatch(self) -> None:
        assert REGISTRY.call("FILTER", [[[1], [2], [3]], [[True], [False]]]) == VALUE


# ────────────────────────────────────────────────────────────────
# Engineering
# ────────────────────────────────────────────────────────────────


class TestEngineering:
    def test_binary(self) -> None:
        assert _eval("=DEC2BIN(5)") == "101"
        assert _eval("=DEC2BIN(5, 8)") == "00000101"
        assert _eval("=DEC2BIN(-1)") == "1111111111"
        assert _eval("=DEC2BIN(512)") == NUM
        assert _eval('=BIN2DEC("101")') == 5
        assert _eval("=BIN2DEC(101)") == 5
        assert _eval('=BIN2DEC("1111111111")') == -1
        assert _eval('=BIN2DEC("102")') == NUM

    def test_hex_oct(self) -> None:
        assert _eval("=DEC2HEX(255)") == "FF"
        assert _eval('=HEX2DEC("ff")') == 255
        assert _eval('=HEX2DEC("FFFFFFFFFF")') == -1
        assert _eval("=DEC2OCT(8)") == "10"
        assert _eval('=OCT2DEC("17")') == 15

    def test_decimal_base(self) -> None:
        assert _eval('=DECIMAL("FF", 16)') == 255
        assert _eval("=BASE(255, 16, 4)") == "00FF"
        assert _eval("=BASE(-1, 2)") == NUM

    def test_roman(self) -> None:
        assert _eval("=ROMAN(1994)") == "MCMXCIV"
        assert _eval('=ARABIC("XIV")') == 14
        assert _eval('=ROMAN(ARABIC("XIV"))') == "XIV"
        assert _eval("=ROMAN(0)") == VALUE
        assert _eval('=ARABIC("ABC")') == VALUE

    def test_roman_round_trip(self) -> None:
        for n in range(1, 4000):
            assert REGISTRY.call("ARABIC", [REGISTRY.call("ROMAN", [n])]) == n
