"""Math formula functions: SUM, PRODUCT, ROUND, MOD, POWER, GCD, ..."""

from __future__ import annotations

import math
import random
import sys
from decimal import ROUND_DOWN, ROUND_HALF_UP, ROUND_UP, Decimal
from typing import Any

from sheetcalc.formulas.coerce import flatten, numbers_in, parse_number, to_int, to_number
from sheetcalc.formulas.errors import DIV0, NUM, VALUE, FormulaFunctionError
from sheetcalc.formulas.registry import FunctionSpec


# Largest integer a double holds exactly
_MAX_EXACT = 2**53

# FACT(171) overflows a double
_MAX_FACT = 170
_LOG_FLOAT_MAX = math.log(sys.float_info.max)


def power(base: float, exponent: float) -> float:
    """``base ^ exponent`` with spreadsheet error semantics.

    Computed in floating point so a result past the double range raises
    ``OverflowError`` (``#NUM!``) instead of growing an unbounded int.  0 to
    a negative power is ``#DIV/0!``; a complex result is ``#NUM!``.  Integer
    operands with an exactly representable integral result stay ints.
    """
    if base == 0 and exponent < 0:
        raise ZeroDivisionError("0 cannot be raised to a negative power")
    result = float(base) ** float(exponent)
    if isinstance(result, complex):
        raise FormulaFunctionError("POWER", f"{base}^{exponent} has no real result", sentinel=NUM)
    if not math.isfinite(result):
        raise OverflowError(f"{base}^{exponent} overflows")
    if isinstance(base, int) and isinstance(exponent, int) and result.is_integer() and abs(result) <= _MAX_EXACT:
        return int(result)
    return result


def _round_decimal(value: float, digits: int, mode: str) -> int | float:
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(repr(float(value))).quantize(quantum, rounding=mode)
    if digits <= 0:
        return int(rounded)
    return float(rounded)


def _tidy(value: float) -> int | float:
    """Strip binary noise from a multiple-of-significance result."""
    value = round(value, 12)
    return int(value) if value == int(value) else value


def _fn_sum(args: list) -> int | float:
    """SUM(value1, ...): sum of numeric entries; text is ignored."""
    return sum(numbers_in(args))


def _fn_product(args: list) -> int | float:
    nums = numbers_in(args)
    if not nums:
        return 0
    return math.prod(nums)


def _fn_sumproduct(args: list) -> int | float:
    """SUMPRODUCT(array1, [array2], ...): sum of element-wise products.

    All arrays must hold the same number of cells.  Non-numeric entries
    count as zero.
    """
    arrays = [flatten(a) for a in args]
    size = len(arrays[0])
    if any(len(a) != size for a in arrays):
        raise FormulaFunctionError("SUMPRODUCT", "Arrays must have equal dimensions", sentinel=VALUE)
    total = 0
    for i in range(size):
        term = 1
        for arr in arrays:
            v = arr[i]
            if isinstance(v, bool) or v is None:
                num = 0
            elif isinstance(v, (int, float)):
                num = v
            else:
                num = parse_number(v) if isinstance(v, str) else None
                num = num if num is not None else 0
            term *= num
        total += term
    return total


def _fn_sumsq(args: list) -> int | float:
    return sum(n * n for n in numbers_in(args))


def _fn_abs(args: list) -> int | float:
    return abs(to_number(args[0], "ABS"))


def _fn_round(args: list) -> int | float:
    """ROUND(number, [digits]): round half away from zero."""
    digits = to_int(args[1], "ROUND") if len(args) > 1 else 0
    return _round_decimal(to_number(args[0], "ROUND"), digits, ROUND_HALF_UP)


def _fn_roundup(args: list) -> int | float:
    digits = to_int(args[1], "ROUNDUP") if len(args) > 1 else 0
    return _round_decimal(to_number(args[0], "ROUNDUP"), digits, ROUND_UP)


def _fn_rounddown(args: list) -> int | float:
    digits = to_int(args[1], "ROUNDDOWN") if len(args) > 1 else 0
    return _round_decimal(to_number(args[0], "ROUNDDOWN"), digits, ROUND_DOWN)


def _fn_int(args: list) -> int:
    """INT(number): round down to the nearest integer (toward -inf)."""
    return math.floor(to_number(args[0], "INT"))


def _fn_trunc(args: list) -> int | float:
    digits = to_int(args[1], "TRUNC") if len(args) > 1 else 0
    return _round_decimal(to_number(args[0], "TRUNC"), digits, ROUND_DOWN)


def _fn_mod(args: list) -> int | float:
    """MOD(number, divisor): remainder carrying the sign of the divisor."""
    n = to_number(args[0], "MOD")
    d = to_number(args[1], "MOD")
    if d == 0:
        return DIV0
    return n % d


def _fn_power(args: list) -> float:
    return power(to_number(args[0], "POWER"), to_number(args[1], "POWER"))


def _fn_sqrt(args: list) -> float:
    n = to_number(args[0], "SQRT")
    if n < 0:
        return NUM
    return math.sqrt(n)


def _fn_exp(args: list) -> float:
    return math.exp(to_number(args[0], "EXP"))


def _fn_ln(args: list) -> float:
    n = to_number(args[0], "LN")
    if n <= 0:
        return NUM
    return math.log(n)


def _fn_log(args: list) -> float:
    """LOG(number, [base]): logarithm, base 10 by default."""
    n = to_number(args[0], "LOG")
    base = to_number(args[1], "LOG") if len(args) > 1 else 10
    if n <= 0 or base <= 0:
        return NUM
    if base == 1:
        return DIV0
    return math.log(n) / math.log(base)


def _fn_log10(args: list) -> float:
    n = to_number(args[0], "LOG10")
    if n <= 0:
        return NUM
    return math.log10(n)


def _fn_pi(args: list) -> float:
    return math.pi


def _fn_sign(args: list) -> int:
    n = to_number(args[0], "SIGN")
    return (n > 0) - (n < 0)


def _fn_ceiling(args: list) -> int | float:
    """CEILING(number, [significance]): round up to a multiple of significance."""
    n = to_number(args[0], "CEILING")
    sig = to_number(args[1], "CEILING") if len(args) > 1 else 1
    if sig == 0:
        return 0
    if n > 0 and sig < 0:
        return NUM
    return _tidy(math.ceil(n / sig) * sig)


def _fn_floor(args: list) -> int | float:
    """FLOOR(number, [significance]): round down to a multiple of significance."""
    n = to_number(args[0], "FLOOR")
    sig = to_number(args[1], "FLOOR") if len(args) > 1 else 1
    if sig == 0:
        return DIV0
    if n > 0 and sig < 0:
        return NUM
    return _tidy(math.floor(n / sig) * sig)


def _fn_mround(args: list) -> int | float:
    n = to_number(args[0], "MROUND")
    multiple = to_number(args[1], "MROUND")
    if multiple == 0:
        return 0
    if (n > 0 and multiple < 0) or (n < 0 and multiple > 0):
        return NUM
    return _tidy(_round_decimal(n / multiple, 0, ROUND_HALF_UP) * multiple)


def _fn_quotient(args: list) -> int:
    n = to_number(args[0], "QUOTIENT")
    d = to_number(args[1], "QUOTIENT")
    if d == 0:
        return DIV0
    return int(n / d)


def _fn_fact(args: list) -> int:
    n = to_int(args[0], "FACT")
    if n < 0 or n > _MAX_FACT:
        return NUM
    return math.factorial(n)


def _fn_combin(args: list) -> int:
    n = to_int(args[0], "COMBIN")
    k = to_int(args[1], "COMBIN")
    if n < 0 or k < 0 or k > n:
        return NUM
    if math.lgamma(n + 1) - math.lgamma(k + 1) - math.lgamma(n - k + 1) > _LOG_FLOAT_MAX:
        return NUM
    return math.comb(n, k)


def _fn_permut(args: list) -> int:
    n = to_int(args[0], "PERMUT")
    k = to_int(args[1], "PERMUT")
    if n < 0 or k < 0 or k > n:
        return NUM
    if math.lgamma(n + 1) - math.lgamma(n - k + 1) > _LOG_FLOAT_MAX:
        return NUM
    return math.perm(n, k)


def _integers(args: list, func_name: str) -> list[int]:
    ints = [int(n) for n in numbers_in(args)]
    if not ints:
        raise FormulaFunctionError(func_name, f"{func_name} requires at least one number", sentinel=VALUE)
    if any(n < 0 for n in ints):
        raise FormulaFunctionError(func_name, f"{func_name} requires non-negative numbers", sentinel=NUM)
    return ints


def _fn_gcd(args: list) -> int:
    return math.gcd(*_integers(args, "GCD"))


def _fn_lcm(args: list) -> int:
    return math.lcm(*_integers(args, "LCM"))


def _fn_even(args: list) -> int:
    """EVEN(number): round away from zero to the nearest even integer."""
    n = to_number(args[0], "EVEN")
    sign = -1 if n < 0 else 1
    return sign * math.ceil(abs(n) / 2) * 2


def _fn_odd(args: list) -> int:
    """ODD(number): round away from zero to the nearest odd integer."""
    n = to_number(args[0], "ODD")
    sign = -1 if n < 0 else 1
    return sign * (math.ceil((abs(n) + 1) / 2) * 2 - 1)


def _fn_rand(args: list) -> float:
    return random.random()


def _fn_randbetween(args: list) -> int:
    lo = math.ceil(to_number(args[0], "RANDBETWEEN"))
    hi = math.floor(to_number(args[1], "RANDBETWEEN"))
    if lo > hi:
        return NUM
    return random.randint(lo, hi)


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="math",
        min_args=min_args,
        max_args=max_args,
    )


MATH_FUNCTIONS: list[FunctionSpec] = [
    _spec("SUM", _fn_sum, "SUM(value1, [value2], ...)", "Adds all numbers", 0, None),
    _spec("PRODUCT", _fn_product, "PRODUCT(value1, [value2], ...)", "Multiplies all numbers", 1, None),
    _spec("SUMPRODUCT", _fn_sumproduct, "SUMPRODUCT(array1, [array2], ...)", "Sum of element-wise products", 1, None),
    _spec("SUMSQ", _fn_sumsq, "SUMSQ(value1, [value2], ...)", "Sum of squares", 1, None),
    _spec("ABS", _fn_abs, "ABS(number)", "Absolute value", 1, 1),
    _spec("ROUND", _fn_round, "ROUND(number, [digits])", "Rounds half away from zero", 1, 2),
    _spec("ROUNDUP", _fn_roundup, "ROUNDUP(number, [digits])", "Rounds away from zero", 1, 2),
    _spec("ROUNDDOWN", _fn_rounddown, "ROUNDDOWN(number, [digits])", "Rounds toward zero", 1, 2),
    _spec("INT", _fn_int, "INT(number)", "Rounds down to an integer", 1, 1),
    _spec("TRUNC", _fn_trunc, "TRUNC(number, [digits])", "Truncates toward zero", 1, 2),
    _spec("MOD", _fn_mod, "MOD(number, divisor)", "Remainder after division", 2, 2),
    _spec("POWER", _fn_power, "POWER(number, power)", "Raises a number to a power", 2, 2),
    _spec("SQRT", _fn_sqrt, "SQRT(number)", "Square root", 1, 1),
    _spec("EXP", _fn_exp, "EXP(number)", "e raised to a power", 1, 1),
    _spec("LN", _fn_ln, "LN(number)", "Natural logarithm", 1, 1),
    _spec("LOG", _fn_log, "LOG(number, [base])", "Logarithm to a base (default 10)", 1, 2),
    _spec("LOG10", _fn_log10, "LOG10(number)", "Base-10 logarithm", 1, 1),
    _spec("PI", _fn_pi, "PI()", "The constant pi", 0, 0),
    _spec("SIGN", _fn_sign, "SIGN(number)", "Sign of a number: 1, 0 or -1", 1, 1),
    _spec("CEILING", _fn_ceiling, "CEILING(number, [significance])", "Rounds up to a multiple", 1, 2),
    _spec("FLOOR", _fn_floor, "FLOOR(number, [significance])", "Rounds down to a multiple", 1, 2),
    _spec("MROUND", _fn_mround, "MROUND(number, multiple)", "Rounds to the nearest multiple", 2, 2),
    _spec("QUOTIENT", _fn_quotient, "QUOTIENT(numerator, denominator)", "Integer part of a division", 2, 2),
    _spec("FACT", _fn_fact, "FACT(number)", "Factorial", 1, 1),
    _spec("COMBIN", _fn_combin, "COMBIN(n, k)", "Number of combinations", 2, 2),
    _spec("PERMUT", _fn_permut, "PERMUT(n, k)", "Number of permutations", 2, 2),
    _spec("GCD", _fn_gcd, "GCD(number1, [number2], ...)", "Greatest common divisor", 1, None),
    _spec("LCM", _fn_lcm, "LCM(number1, [number2], ...)", "Least common multiple", 1, None),
    _spec("EVEN", _fn_even, "EVEN(number)", "Rounds up to an even integer", 1, 1),
    _spec("ODD", _fn_odd, "ODD(number)", "Rounds up to an odd integer", 1, 1),
    _spec("RAND", _fn_rand, "RAND()", "Random number in [0, 1)", 0, 0),
    _spec("RANDBETWEEN", _fn_randbetween, "RANDBETWEEN(bottom, top)", "Random integer in a range", 2, 2),
]
