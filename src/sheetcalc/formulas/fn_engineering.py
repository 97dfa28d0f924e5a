"""Engineering formula functions: number-base conversion, ROMAN and ARABIC.

BIN, OCT and HEX values hold at most 10 digits; negative numbers use the
10-digit two's complement form (``DEC2BIN(-1)`` is ``"1111111111"``).
"""

from __future__ import annotations

import string
from typing import Any

from sheetcalc.formulas.coerce import to_int, to_text
from sheetcalc.formulas.errors import NUM, VALUE, FormulaFunctionError
from sheetcalc.formulas.registry import FunctionSpec

_DIGITS = string.digits + string.ascii_uppercase
_WIDTH = 10

_ROMAN_NUMERALS = [
    (1000, "M"), (900, "CM"), (500, "D"), (400, "CD"),
    (100, "C"), (90, "XC"), (50, "L"), (40, "XL"),
    (10, "X"), (9, "IX"), (5, "V"), (4, "IV"), (1, "I"),
]
_ROMAN_VALUES = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100, "D": 500, "M": 1000}


def _to_base(n: int, radix: int) -> str:
    if n == 0:
        return "0"
    out = []
    while n > 0:
        n, rem = divmod(n, radix)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def _parse_base(text: str, radix: int, func_name: str) -> int:
    """Decode a 10-digit two's complement value in *radix*."""
    text = text.strip().upper()
    if not text:
        return 0
    if len(text) > _WIDTH:
        raise FormulaFunctionError(func_name, f"{func_name} accepts at most {_WIDTH} digits", sentinel=NUM)
    try:
        value = int(text, radix)
    except ValueError as exc:
        raise FormulaFunctionError(func_name, f"Invalid base-{radix} number: {text!r}", sentinel=NUM) from exc
    span = radix ** _WIDTH
    if value >= span // 2:
        value -= span
    return value


def _format_base(args: list, radix: int, func_name: str) -> str:
    n = to_int(args[0], func_name)
    span = radix ** _WIDTH
    if n < -span // 2 or n >= span // 2:
        return NUM
    if n < 0:
        return _to_base(n + span, radix)
    digits = _to_base(n, radix)
    if len(args) > 1:
        places = to_int(args[1], func_name)
        if places < len(digits) or places > _WIDTH:
            return NUM
        digits = digits.rjust(places, "0")
    return digits


def _fn_bin2dec(args: list) -> int:
    return _parse_base(to_text(args[0]), 2, "BIN2DEC")


def _fn_dec2bin(args: list) -> str:
    """DEC2BIN(number, [places]): valid for -512..511."""
    return _format_base(args, 2, "DEC2BIN")


def _fn_hex2dec(args: list) -> int:
    return _parse_base(to_text(args[0]), 16, "HEX2DEC")


def _fn_dec2hex(args: list) -> str:
    return _format_base(args, 16, "DEC2HEX")


def _fn_oct2dec(args: list) -> int:
    return _parse_base(to_text(args[0]), 8, "OCT2DEC")


def _fn_dec2oct(args: list) -> str:
    return _format_base(args, 8, "DEC2OCT")


def _fn_decimal(args: list) -> int:
    """DECIMAL(text, radix): parse text in any radix 2..36."""
    text = to_text(args[0]).strip()
    radix = to_int(args[1], "DECIMAL")
    if radix < 2 or radix > 36:
        return NUM
    try:
        return int(text, radix)
    except ValueError:
        return NUM


def _fn_base(args: list) -> str:
    """BASE(number, radix, [min_length]): render a non-negative integer in radix 2..36."""
    n = to_int(args[0], "BASE")
    radix = to_int(args[1], "BASE")
    min_length = to_int(args[2], "BASE") if len(args) > 2 else 0
    if n < 0 or radix < 2 or radix > 36 or min_length < 0:
        return NUM
    return _to_base(n, radix).rjust(min_length, "0")


def to_roman(n: int) -> str:
    out = []
    for value, numeral in _ROMAN_NUMERALS:
        count, n = divmod(n, value)
        out.append(numeral * count)
    return "".join(out)


def from_roman(text: str) -> int:
    """Decode a roman numeral, subtractive pairs included.

    Raises:
        FormulaFunctionError: (``#VALUE!``) on characters outside IVXLCDM.
    """
    text = text.strip().upper()
    sign = 1
    if text.startswith("-"):
        sign, text = -1, text[1:]
    total = 0
    prev = 0
    for ch in reversed(text):
        value = _ROMAN_VALUES.get(ch)
        if value is None:
            raise FormulaFunctionError("ARABIC", f"Invalid roman numeral: {text!r}", sentinel=VALUE)
        if value < prev:
            total -= value
        else:
            total += value
            prev = value
    return sign * total


def _fn_roman(args: list) -> str:
    """ROMAN(number): classic form for 1..3999."""
    n = to_int(args[0], "ROMAN")
    if n < 1 or n > 3999:
        return VALUE
    return to_roman(n)


def _fn_arabic(args: list) -> int:
    return from_roman(to_text(args[0]))


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="engineering",
        min_args=min_args,
        max_args=max_args,
    )


ENGINEERING_FUNCTIONS: list[FunctionSpec] = [
    _spec("BIN2DEC", _fn_bin2dec, "BIN2DEC(number)", "Binary to decimal", 1, 1),
    _spec("DEC2BIN", _fn_dec2bin, "DEC2BIN(number, [places])", "Decimal to binary", 1, 2),
    _spec("HEX2DEC", _fn_hex2dec, "HEX2DEC(number)", "Hexadecimal to decimal", 1, 1),
    _spec("DEC2HEX", _fn_dec2hex, "DEC2HEX(number, [places])", "Decimal to hexadecimal", 1, 2),
    _spec("OCT2DEC", _fn_oct2dec, "OCT2DEC(number)", "Octal to decimal", 1, 1),
    _spec("DEC2OCT", _fn_dec2oct, "DEC2OCT(number, [places])", "Decimal to octal", 1, 2),
    _spec("DECIMAL", _fn_decimal, "DECIMAL(text, radix)", "Text in a radix to decimal", 2, 2),
    _spec("BASE", _fn_base, "BASE(number, radix, [min_length])", "Decimal to text in a radix", 2, 3),
    _spec("ROMAN", _fn_roman, "ROMAN(number)", "Roman numeral", 1, 1),
    _spec("ARABIC", _fn_arabic, "ARABIC(text)", "Roman numeral to number", 1, 1),
]
