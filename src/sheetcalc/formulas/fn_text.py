"""Text formula functions: CONCATENATE, LEFT, MID, SUBSTITUTE, REPLACE, TEXT, ...

User-facing character positions are 1-based and translated to 0-based
slices here.
"""

from __future__ import annotations

import datetime
import re
from typing import Any

from sheetcalc.formulas.coerce import flatten, parse_literal, scalar, to_int, to_number, to_text
from sheetcalc.formulas.errors import VALUE, FormulaFunctionError
from sheetcalc.formulas.registry import FunctionSpec

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def _fn_concatenate(args: list) -> str:
    return "".join(to_text(a) for a in args)


def _fn_concat(args: list) -> str:
    """CONCAT(value1, ...): like CONCATENATE but ranges contribute every cell."""
    return "".join(to_text(v) for v in flatten(args))


def _fn_textjoin(args: list) -> str:
    """TEXTJOIN(delimiter, ignore_empty, text1, ...)."""
    delimiter = to_text(args[0])
    ignore_empty = bool(scalar(args[1]))
    parts = [to_text(v) for v in flatten(args[2:])]
    if ignore_empty:
        parts = [p for p in parts if p != ""]
    return delimiter.join(parts)


def _count(args: list, index: int, func_name: str) -> int:
    n = to_int(args[index], func_name) if len(args) > index else 1
    if n < 0:
        raise FormulaFunctionError(func_name, f"{func_name} count must be >= 0", sentinel=VALUE)
    return n


def _fn_left(args: list) -> str:
    return to_text(args[0])[: _count(args, 1, "LEFT")]


def _fn_right(args: list) -> str:
    text = to_text(args[0])
    n = _count(args, 1, "RIGHT")
    return text[len(text) - n:] if n else ""


def _fn_mid(args: list) -> str:
    """MID(text, start, count): *count* characters from 1-based *start*."""
    text = to_text(args[0])
    start = to_int(args[1], "MID")
    count = to_int(args[2], "MID")
    if start < 1 or count < 0:
        return VALUE
    return text[start - 1: start - 1 + count]


def _fn_len(args: list) -> int:
    return len(to_text(args[0]))


def _fn_upper(args: list) -> str:
    return to_text(args[0]).upper()


def _fn_lower(args: list) -> str:
    return to_text(args[0]).lower()


def _fn_proper(args: list) -> str:
    """PROPER(text): capitalize the first letter of each word."""
    return re.sub(r"[A-Za-z]+", lambda m: m.group(0).capitalize(), to_text(args[0]))


def _fn_trim(args: list) -> str:
    """TRIM(text): strip ends and collapse inner runs of spaces."""
    return re.sub(r" +", " ", to_text(args[0]).strip(" "))


def _fn_substitute(args: list) -> str:
    """SUBSTITUTE(text, old, new, [instance]): replace all, or only the n-th, occurrence."""
    text, old, new = to_text(args[0]), to_text(args[1]), to_text(args[2])
    if old == "":
        return text
    if len(args) < 4:
        return text.replace(old, new)
    instance = to_int(args[3], "SUBSTITUTE")
    if instance < 1:
        return VALUE
    pos = -1
    for _ in range(instance):
        pos = text.find(old, pos + 1)
        if pos == -1:
            return text
    return text[:pos] + new + text[pos + len(old):]


def _find(args: list, func_name: str, fold: bool) -> int:
    needle, haystack = to_text(args[0]), to_text(args[1])
    start = to_int(args[2], func_name) if len(args) > 2 else 1
    if start < 1 or start > len(haystack) + 1:
        return VALUE
    if fold:
        pattern = "".join(".*" if c == "*" else "." if c == "?" else re.escape(c) for c in needle)
        m = re.compile(pattern, re.IGNORECASE | re.DOTALL).search(haystack, start - 1)
        idx = m.start() if m else -1
    else:
        idx = haystack.find(needle, start - 1)
    if idx == -1:
        return VALUE
    return idx + 1


def _fn_find(args: list) -> int:
    """FIND(find_text, within_text, [start]): case-sensitive 1-based position."""
    return _find(args, "FIND", fold=False)


def _fn_search(args: list) -> int:
    """SEARCH(find_text, within_text, [start]): case-insensitive, wildcards allowed."""
    return _find(args, "SEARCH", fold=True)


def _fn_replace(args: list) -> str:
    """REPLACE(old_text, start, count, new_text): splice at 1-based *start*."""
    text = to_text(args[0])
    start = to_int(args[1], "REPLACE")
    count = to_int(args[2], "REPLACE")
    if start < 1 or count < 0:
        return VALUE
    return text[: start - 1] + to_text(args[3]) + text[start - 1 + count:]


def _fn_rept(args: list) -> str:
    times = to_int(args[1], "REPT")
    if times < 0:
        return VALUE
    return to_text(args[0]) * times


def _fn_reverse(args: list) -> str:
    return to_text(args[0])[::-1]


def _fn_clean(args: list) -> str:
    """CLEAN(text): drop non-printable control characters."""
    return _CONTROL_CHARS.sub("", to_text(args[0]))


def _fn_code(args: list) -> int:
    text = to_text(args[0])
    if not text:
        return VALUE
    return ord(text[0])


def _fn_char(args: list) -> str:
    n = to_int(args[0], "CHAR")
    if n < 1 or n > 255:
        return VALUE
    return chr(n)


def _fn_exact(args: list) -> bool:
    return to_text(args[0]) == to_text(args[1])


def _fn_value(args: list) -> int | float:
    """VALUE(text): convert text holding a number, percentage or currency."""
    val = scalar(args[0])
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return val
    parsed = parse_literal(to_text(val))
    if isinstance(parsed, bool) or not isinstance(parsed, (int, float)):
        return VALUE
    return parsed


def _format_with_pattern(value: float, pattern: str) -> str:
    """Render *value* with a small subset of number format codes.

    Supported: ``0``, ``0.00``, ``#,##0``, ``#,##0.00``, trailing ``%`` and a
    leading ``$``.  Anything else falls back to plain text rendering.
    """
    prefix = ""
    if pattern.startswith("$"):
        prefix, pattern = "$", pattern[1:]
    percent = pattern.endswith("%")
    if percent:
        pattern = pattern[:-1]
        value *= 100
    if not re.fullmatch(r"[#0,]*0(\.0+)?", pattern):
        raise FormulaFunctionError("TEXT", f"Unsupported format: {pattern!r}", sentinel=VALUE)
    decimals = len(pattern.split(".")[1]) if "." in pattern else 0
    grouping = "," if "," in pattern else ""
    body = format(abs(value), f"{grouping}.{decimals}f")
    sign = "-" if value < 0 and float(body.replace(",", "")) != 0 else ""
    return f"{sign}{prefix}{body}{'%' if percent else ''}"


def _fn_text(args: list) -> str:
    """TEXT(value, format_text): format a number or date as text."""
    val = scalar(args[0])
    pattern = to_text(args[1])
    if isinstance(val, datetime.date):
        fmt = (
            pattern.upper()
            .replace("YYYY", "%Y")
            .replace("YY", "%y")
            .replace("MM", "%m")
            .replace("DD", "%d")
        )
        return val.strftime(fmt)
    return _format_with_pattern(to_number(val, "TEXT"), pattern)


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="text",
        min_args=min_args,
        max_args=max_args,
    )


TEXT_FUNCTIONS: list[FunctionSpec] = [
    _spec("CONCATENATE", _fn_concatenate, "CONCATENATE(text1, [text2], ...)", "Joins text", 1, None),
    _spec("CONCAT", _fn_concat, "CONCAT(text1, [text2], ...)", "Joins text and ranges", 1, None),
    _spec("TEXTJOIN", _fn_textjoin, "TEXTJOIN(delimiter, ignore_empty, text1, ...)", "Joins with a delimiter", 3, None),
    _spec("LEFT", _fn_left, "LEFT(text, [count])", "Leftmost characters", 1, 2),
    _spec("RIGHT", _fn_right, "RIGHT(text, [count])", "Rightmost characters", 1, 2),
    _spec("MID", _fn_mid, "MID(text, start, count)", "Characters from a position", 3, 3),
    _spec("LEN", _fn_len, "LEN(text)", "Length of text", 1, 1),
    _spec("UPPER", _fn_upper, "UPPER(text)", "Upper-cases text", 1, 1),
    _spec("LOWER", _fn_lower, "LOWER(text)", "Lower-cases text", 1, 1),
    _spec("PROPER", _fn_proper, "PROPER(text)", "Capitalizes each word", 1, 1),
    _spec("TRIM", _fn_trim, "TRIM(text)", "Removes extra spaces", 1, 1),
    _spec("SUBSTITUTE", _fn_substitute, "SUBSTITUTE(text, old, new, [instance])", "Replaces matching text", 3, 4),
    _spec("FIND", _fn_find, "FIND(find_text, within_text, [start])", "Case-sensitive position", 2, 3),
    _spec("SEARCH", _fn_search, "SEARCH(find_text, within_text, [start])", "Case-insensitive position", 2, 3),
    _spec("REPLACE", _fn_replace, "REPLACE(old_text, start, count, new_text)", "Replaces by position", 4, 4),
    _spec("REPT", _fn_rept, "REPT(text, times)", "Repeats text", 2, 2),
    _spec("REVERSE", _fn_reverse, "REVERSE(text)", "Reverses text", 1, 1),
    _spec("CLEAN", _fn_clean, "CLEAN(text)", "Removes control characters", 1, 1),
    _spec("CODE", _fn_code, "CODE(text)", "Code point of the first character", 1, 1),
    _spec("CHAR", _fn_char, "CHAR(number)", "Character for a code 1-255", 1, 1),
    _spec("EXACT", _fn_exact, "EXACT(text1, text2)", "Case-sensitive equality", 2, 2),
    _spec("VALUE", _fn_value, "VALUE(text)", "Converts text to a number", 1, 1),
    _spec("TEXT", _fn_text, "TEXT(value, format_text)", "Formats a value as text", 2, 2),
]
