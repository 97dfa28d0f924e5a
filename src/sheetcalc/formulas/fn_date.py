"""Date formula functions: DATE, TODAY, EDATE, EOMONTH, NETWORKDAYS, WORKDAY, DATEDIF, ..."""

from __future__ import annotations

import calendar
import datetime
from typing import Any

from sheetcalc.formulas.coerce import flatten, parse_number, scalar, serial_to_date, to_int, to_text
from sheetcalc.formulas.errors import NUM, VALUE, FormulaFunctionError
from sheetcalc.formulas.registry import FunctionSpec


def coerce_date(val: Any, func_name: str = "DATE") -> datetime.date:
    """Convert a value to a datetime.date.

    Accepts:
    - datetime.date objects (datetimes are truncated to their date)
    - ISO format strings ("YYYY-MM-DD") and US style "M/D/YYYY"
    - spreadsheet serial numbers (int, float or numeric text)
    """
    val = scalar(val)
    if isinstance(val, datetime.datetime):
        return val.date()
    if isinstance(val, datetime.date):
        return val
    if isinstance(val, str):
        text = val.strip()
        try:
            return datetime.date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.datetime.strptime(text, "%m/%d/%Y").date()
        except ValueError:
            pass
        serial = parse_number(text)
        if serial is None:
            raise FormulaFunctionError(func_name, f"Cannot parse date string: {val!r}", sentinel=VALUE)
        val = serial
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        if val < 1:
            raise FormulaFunctionError(func_name, f"Invalid serial number: {val}", sentinel=NUM)
        return serial_to_date(val)
    raise FormulaFunctionError(func_name, f"Cannot coerce {type(val).__name__} to date", sentinel=VALUE)


def _add_months(start: datetime.date, months: int) -> tuple[int, int]:
    total = start.year * 12 + start.month - 1 + months
    return total // 12, total % 12 + 1


def _holidays(arg: Any, func_name: str) -> set[datetime.date]:
    return {coerce_date(v, func_name) for v in flatten(arg) if v is not None and v != ""}


def _is_workday(day: datetime.date, holidays: set[datetime.date]) -> bool:
    return day.weekday() < 5 and day not in holidays


def _fn_date(args: list) -> datetime.date:
    """DATE(year, month, day): construct a date.

    Month and day overflow roll into the following months, so
    ``DATE(2024, 13, 1)`` is 2025-01-01.  Years 0-1899 are offset by 1900.
    """
    year, month, day = (to_int(a, "DATE") for a in args)
    if 0 <= year < 1900:
        year += 1900
    total = year * 12 + month - 1
    try:
        first = datetime.date(total // 12, total % 12 + 1, 1)
        return first + datetime.timedelta(days=day - 1)
    except (ValueError, OverflowError):
        return NUM


def _fn_today(args: list) -> datetime.date:
    return datetime.date.today()


def _fn_now(args: list) -> datetime.datetime:
    return datetime.datetime.now().replace(microsecond=0)


def _fn_year(args: list) -> int:
    return coerce_date(args[0], "YEAR").year


def _fn_month(args: list) -> int:
    return coerce_date(args[0], "MONTH").month


def _fn_day(args: list) -> int:
    return coerce_date(args[0], "DAY").day


def _fn_weekday(args: list) -> int:
    """WEEKDAY(date, [type]): type 1 Sun=1..Sat=7, 2 Mon=1..Sun=7, 3 Mon=0..Sun=6."""
    d = coerce_date(args[0], "WEEKDAY")
    kind = to_int(args[1], "WEEKDAY") if len(args) > 1 else 1
    wd = d.weekday()
    if kind == 1:
        return (wd + 1) % 7 + 1
    if kind == 2:
        return wd + 1
    if kind == 3:
        return wd
    return NUM


def _fn_edate(args: list) -> datetime.date:
    """EDATE(start_date, months): same day N months away, clamped to month end."""
    start = coerce_date(args[0], "EDATE")
    year, month = _add_months(start, to_int(args[1], "EDATE"))
    last_day = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, min(start.day, last_day))


def _fn_eomonth(args: list) -> datetime.date:
    """EOMONTH(start_date, months): end of month, offset by months.

    EOMONTH(DATE(2024,1,15), 1) => 2024-02-29 (last day of Feb 2024).
    """
    start = coerce_date(args[0], "EOMONTH")
    year, month = _add_months(start, to_int(args[1], "EOMONTH"))
    last_day = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, last_day)


def _fn_networkdays(args: list) -> int:
    """NETWORKDAYS(start, end, [holidays]): working days between two dates, inclusive.

    Negative when *end* precedes *start*.
    """
    start = coerce_date(args[0], "NETWORKDAYS")
    end = coerce_date(args[1], "NETWORKDAYS")
    holidays = _holidays(args[2], "NETWORKDAYS") if len(args) > 2 else set()
    sign = 1
    if start > end:
        start, end = end, start
        sign = -1
    count = 0
    day = start
    while day <= end:
        if _is_workday(day, holidays):
            count += 1
        day += datetime.timedelta(days=1)
    return sign * count


def _fn_workday(args: list) -> datetime.date:
    """WORKDAY(start, days, [holidays]): date *days* working days away."""
    day = coerce_date(args[0], "WORKDAY")
    remaining = to_int(args[1], "WORKDAY")
    holidays = _holidays(args[2], "WORKDAY") if len(args) > 2 else set()
    step = datetime.timedelta(days=1 if remaining >= 0 else -1)
    remaining = abs(remaining)
    while remaining > 0:
        day += step
        if _is_workday(day, holidays):
            remaining -= 1
    return day


def _fn_datedif(args: list) -> int:
    """DATEDIF(start, end, unit): difference in Y, M, D, MD, YM or YD units."""
    start = coerce_date(args[0], "DATEDIF")
    end = coerce_date(args[1], "DATEDIF")
    unit = to_text(args[2]).upper()
    if start > end:
        return NUM
    months = (end.year - start.year) * 12 + end.month - start.month
    if end.day < start.day:
        months -= 1
    if unit == "Y":
        return months // 12
    if unit == "M":
        return months
    if unit == "D":
        return (end - start).days
    if unit == "YM":
        return months % 12
    if unit == "MD":
        if end.day >= start.day:
            return end.day - start.day
        prev_year, prev_month = _add_months(end, -1)
        prev_len = calendar.monthrange(prev_year, prev_month)[1]
        return prev_len - start.day + end.day if start.day <= prev_len else end.day
    if unit == "YD":
        anchor_year = end.year if (end.month, end.day) >= (start.month, start.day) else end.year - 1
        last_day = calendar.monthrange(anchor_year, start.month)[1]
        anchor = datetime.date(anchor_year, start.month, min(start.day, last_day))
        return (end - anchor).days
    return NUM


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="date",
        min_args=min_args,
        max_args=max_args,
    )


DATE_FUNCTIONS: list[FunctionSpec] = [
    _spec("DATE", _fn_date, "DATE(year, month, day)", "Builds a date", 3, 3),
    _spec("TODAY", _fn_today, "TODAY()", "Current date", 0, 0),
    _spec("NOW", _fn_now, "NOW()", "Current date and time", 0, 0),
    _spec("YEAR", _fn_year, "YEAR(date)", "Year of a date", 1, 1),
    _spec("MONTH", _fn_month, "MONTH(date)", "Month of a date", 1, 1),
    _spec("DAY", _fn_day, "DAY(date)", "Day of the month", 1, 1),
    _spec("WEEKDAY", _fn_weekday, "WEEKDAY(date, [type])", "Day of the week", 1, 2),
    _spec("EDATE", _fn_edate, "EDATE(start_date, months)", "Date months away", 2, 2),
    _spec("EOMONTH", _fn_eomonth, "EOMONTH(start_date, months)", "Last day of a month", 2, 2),
    _spec("NETWORKDAYS", _fn_networkdays, "NETWORKDAYS(start, end, [holidays])", "Working days between dates", 2, 3),
    _spec("WORKDAY", _fn_workday, "WORKDAY(start, days, [holidays])", "Date after working days", 2, 3),
    _spec("DATEDIF", _fn_datedif, "DATEDIF(start, end, unit)", "Difference between dates", 3, 3),
]
