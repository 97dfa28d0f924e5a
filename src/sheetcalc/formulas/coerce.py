"""Value coercion shared by the evaluator and the function library."""

from __future__ import annotations

import datetime
import math
import re
import sys
from typing import Any

from sheetcalc.formulas.errors import VALUE, FormulaFunctionError, is_error

_NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")

# Serial day 1 is 1900-01-01; the epoch absorbs the historic 1900 leap-day bug
EXCEL_EPOCH = datetime.date(1899, 12, 30)


def date_to_serial(value: datetime.date) -> int:
    """Convert a date to its spreadsheet serial number."""
    if isinstance(value, datetime.datetime):
        value = value.date()
    return (value - EXCEL_EPOCH).days


def serial_to_date(serial: float) -> datetime.date:
    """Convert a spreadsheet serial number to a date."""
    return EXCEL_EPOCH + datetime.timedelta(days=int(serial))


def parse_number(text: str) -> int | float | None:
    """Parse numeric text strictly; return None if *text* is not a number."""
    s = text.strip()
    if not _NUMBER_RE.match(s):
        return None
    # Longer integers exceed double precision, so they parse as floats
    if _INT_RE.match(s) and len(s.lstrip("+-")) <= 15:
        return int(s)
    return float(s)


def parse_literal(raw: str) -> Any:
    """Interpret the raw content of a non-formula cell.

    Empty text is blank (None).  Numbers, booleans, percentages (``12%``)
    and currency (``$1,200``) become typed values; anything else stays text.
    """
    if raw is None:
        return None
    s = str(raw).strip()
    if s == "":
        return None
    num = parse_number(s)
    if num is not None:
        return num
    upper = s.upper()
    if upper in ("TRUE", "FALSE"):
        return upper == "TRUE"
    if s.endswith("%"):
        pct = parse_number(s[:-1])
        if pct is not None:
            return pct / 100
    if s.startswith("$"):
        amount = parse_number(s[1:].replace(",", ""))
        if amount is not None:
            return amount
    return raw


def flatten(values: Any) -> list[Any]:
    """Flatten nested lists (ranges, arrays) into one list, row-major."""
    if not isinstance(values, (list, tuple)):
        return [values]
    out: list[Any] = []
    for v in values:
        if isinstance(v, (list, tuple)):
            out.extend(flatten(v))
        else:
            out.append(v)
    return out


def numbers_in(values: Any) -> list[float]:
    """Numeric entries of *values*, flattened.

    Blanks, booleans and non-numeric text are skipped, not counted as zero;
    numeric text counts as its number.
    """
    out: list[float] = []
    for v in flatten(values):
        if isinstance(v, bool) or v is None:
            continue
        if isinstance(v, (int, float)):
            out.append(v)
        elif isinstance(v, str) and not is_error(v):
            num = parse_number(v)
            if num is not None:
                out.append(num)
    return out


def scalar(value: Any) -> Any:
    """Reduce an array argument to its top-left element."""
    while isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    return value


def to_number(value: Any, func_name: str = "value") -> float | int:
    """Coerce a single value for numeric context.

    Raises:
        FormulaFunctionError: (``#VALUE!``) for non-numeric text.
    """
    value = scalar(value)
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, datetime.date):
        return date_to_serial(value)
    if isinstance(value, str):
        num = parse_number(value)
        if num is not None:
            return num
    raise FormulaFunctionError(func_name, f"Expected a number, got {value!r}", sentinel=VALUE)


def out_of_range(value: Any) -> bool:
    """True for numbers a double cannot hold: inf, NaN or an int past the float range."""
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return abs(value) > sys.float_info.max
    return False


def to_int(value: Any, func_name: str = "value") -> int:
    """Coerce to an integer, truncating toward zero."""
    return int(to_number(value, func_name))


def to_text(value: Any) -> str:
    """Coerce a single value for text context."""
    value = scalar(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value)


def to_bool(value: Any, func_name: str = "value") -> bool:
    """Coerce a single value for logical context."""
    value = scalar(value)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        upper = value.strip().upper()
        if upper in ("TRUE", "FALSE"):
            return upper == "TRUE"
        num = parse_number(value)
        if num is not None:
            return num != 0
    raise FormulaFunctionError(func_name, f"Expected a logical value, got {value!r}", sentinel=VALUE)


def format_number(val: float) -> str:
    """Format floats cleanly: integral values without a decimal point."""
    if math.isfinite(val) and val == int(val) and abs(val) < 1e15:
        return str(int(val))
    return f"{val:.10g}"


def format_display(value: Any) -> str:
    """Get a display-friendly string for an evaluated cell value."""
    value = scalar(value)
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value)


def to_wire(value: Any) -> Any:
    """Convert an evaluated value into a JSON-safe value for the protocol."""
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    if isinstance(value, datetime.datetime):
        return value.isoformat(timespec="seconds")
    if isinstance(value, datetime.date):
        return value.isoformat()
    return value


def _kind(value: Any) -> int:
    if isinstance(value, bool):
        return 2
    if isinstance(value, str):
        return 1
    return 0


def compare_values(a: Any, b: Any) -> int:
    """Three-way comparison used by operators and lookups.

    Numbers compare numerically and text case-insensitively.  Blank equals
    0, ``""`` or FALSE depending on the other side.  Mixed kinds order as
    number < text < bool.
    """
    a, b = scalar(a), scalar(b)
    if a is None:
        a = "" if isinstance(b, str) else False if isinstance(b, bool) else 0
    if b is None:
        b = "" if isinstance(a, str) else False if isinstance(a, bool) else 0
    if isinstance(a, datetime.date):
        a = date_to_serial(a)
    if isinstance(b, datetime.date):
        b = date_to_serial(b)
    ka, kb = _kind(a), _kind(b)
    if ka != kb:
        return -1 if ka < kb else 1
    if ka == 1:
        a, b = a.lower(), b.lower()
    return (a > b) - (a < b)


def to_matrix(value: Any) -> list[list[Any]]:
    """Normalise an argument to a 2-D list; scalars become a 1x1 matrix."""
    if isinstance(value, list):
        if value and all(isinstance(row, list) for row in value):
            return value
        return [list(value)]
    return [[value]]
