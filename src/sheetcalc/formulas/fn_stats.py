"""Statistical formula functions: AVERAGE, STDEV, PERCENTILE, RANK, SUMIFS, ..."""

from __future__ import annotations

import math
import re
import statistics
from typing import Any

from sheetcalc.formulas.coerce import flatten, numbers_in, parse_number, to_int, to_number
from sheetcalc.formulas.errors import DIV0, NA, NUM, VALUE, FormulaFunctionError
from sheetcalc.formulas.registry import FunctionSpec

_CRITERIA_OPS = (">=", "<=", "<>", ">", "<", "=")


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


def _fn_average(args: list) -> float:
    """AVERAGE(value1, ...): mean of the numeric entries.

    Text and blanks are skipped, not counted as zero.  No numbers at all is
    ``#DIV/0!``.
    """
    nums = numbers_in(args)
    if not nums:
        return DIV0
    return sum(nums) / len(nums)


def _fn_min(args: list) -> int | float:
    nums = numbers_in(args)
    return min(nums) if nums else 0


def _fn_max(args: list) -> int | float:
    nums = numbers_in(args)
    return max(nums) if nums else 0


def _fn_count(args: list) -> int:
    return len(numbers_in(args))


def _fn_counta(args: list) -> int:
    return sum(1 for v in flatten(args) if v is not None and v != "")


def _fn_countblank(args: list) -> int:
    return sum(1 for v in flatten(args) if v is None or v == "")


def _fn_median(args: list) -> float:
    nums = numbers_in(args)
    if not nums:
        return NUM
    return statistics.median(nums)


def _fn_mode(args: list) -> int | float:
    """MODE(value1, ...): most frequent number; first seen wins ties."""
    counts: dict[float, int] = {}
    for n in numbers_in(args):
        counts[n] = counts.get(n, 0) + 1
    best = None
    best_count = 1
    for n, c in counts.items():
        if c > best_count:
            best, best_count = n, c
    return NA if best is None else best


def _fn_stdev(args: list) -> float:
    """STDEV(value1, ...): sample standard deviation (n-1 divisor)."""
    nums = numbers_in(args)
    if len(nums) < 2:
        return DIV0
    return statistics.stdev(nums)


def _fn_stdevp(args: list) -> float:
    """STDEVP(value1, ...): population standard deviation (n divisor)."""
    nums = numbers_in(args)
    if not nums:
        return DIV0
    return statistics.pstdev(nums)


def _fn_var(args: list) -> float:
    nums = numbers_in(args)
    if len(nums) < 2:
        return DIV0
    return statistics.variance(nums)


def _fn_varp(args: list) -> float:
    nums = numbers_in(args)
    if not nums:
        return DIV0
    return statistics.pvariance(nums)


def _fn_correl(args: list) -> float:
    """CORREL(array1, array2): Pearson correlation over pairs where both are numbers."""
    a, b = flatten(args[0]), flatten(args[1])
    if len(a) != len(b):
        return NA
    xs: list[float] = []
    ys: list[float] = []
    for x, y in zip(a, b):
        nx, ny = numbers_in([x]), numbers_in([y])
        if nx and ny:
            xs.append(nx[0])
            ys.append(ny[0])
    if len(xs) < 2:
        return DIV0
    mx, my = sum(xs) / len(xs), sum(ys) / len(ys)
    sxy = sum((x - mx) * (y - my) for x, y in zip(xs, ys))
    sxx = sum((x - mx) ** 2 for x in xs)
    syy = sum((y - my) ** 2 for y in ys)
    if sxx == 0 or syy == 0:
        return DIV0
    return sxy / math.sqrt(sxx * syy)


# ---------------------------------------------------------------------------
# Rank statistics
# ---------------------------------------------------------------------------


def _percentile(nums: list[float], k: float) -> float:
    """Linear interpolation at index ``k * (n - 1)`` of the sorted values."""
    if not nums or k < 0 or k > 1:
        raise FormulaFunctionError("PERCENTILE", f"Invalid percentile {k}", sentinel=NUM)
    ordered = sorted(nums)
    idx = k * (len(ordered) - 1)
    lo = math.floor(idx)
    hi = math.ceil(idx)
    if lo == hi:
        return ordered[lo]
    return ordered[lo] + (ordered[hi] - ordered[lo]) * (idx - lo)


def _fn_percentile(args: list) -> float:
    return _percentile(numbers_in(args[0]), to_number(args[1], "PERCENTILE"))


def _fn_quartile(args: list) -> float:
    """QUARTILE(array, quart): quart 0..4 maps to percentiles 0, .25, .5, .75, 1."""
    quart = to_int(args[1], "QUARTILE")
    if quart < 0 or quart > 4:
        return NUM
    return _percentile(numbers_in(args[0]), quart / 4)


def _fn_rank(args: list) -> int:
    """RANK(number, ref, [order]): 1-based rank; order 0 ranks descending."""
    number = to_number(args[0], "RANK")
    nums = numbers_in(args[1])
    order = to_int(args[2], "RANK") if len(args) > 2 else 0
    if number not in nums:
        return NA
    if order == 0:
        return 1 + sum(1 for n in nums if n > number)
    return 1 + sum(1 for n in nums if n < number)


def _kth(args: list, func_name: str, reverse: bool) -> float:
    nums = sorted(numbers_in(args[0]), reverse=reverse)
    k = to_int(args[1], func_name)
    if k < 1 or k > len(nums):
        return NUM
    return nums[k - 1]


def _fn_small(args: list) -> float:
    return _kth(args, "SMALL", reverse=False)


def _fn_large(args: list) -> float:
    return _kth(args, "LARGE", reverse=True)


def _fn_geomean(args: list) -> float:
    nums = numbers_in(args)
    if not nums or any(n <= 0 for n in nums):
        return NUM
    return math.exp(sum(math.log(n) for n in nums) / len(nums))


def _fn_harmean(args: list) -> float:
    nums = numbers_in(args)
    if not nums or any(n <= 0 for n in nums):
        return NUM
    return len(nums) / sum(1 / n for n in nums)


# ---------------------------------------------------------------------------
# Conditional aggregates
# ---------------------------------------------------------------------------


def wildcard_regex(pattern: str) -> re.Pattern[str]:
    """Translate ``*`` / ``?`` wildcards (``~`` escapes) into a regex."""
    out = []
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "~" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if ch == "*":
            out.append(".*")
        elif ch == "?":
            out.append(".")
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("^" + "".join(out) + "$", re.IGNORECASE | re.DOTALL)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return parse_number(value)
    return None


def matches_criterion(value: Any, criterion: Any) -> bool:
    """Test a cell value against a criterion such as ``">=10"``, ``"apple"`` or ``5``.

    Numeric operands compare numerically and never match text cells.  Text
    operands compare case-insensitively; ``=`` and ``<>`` honour wildcards.
    An empty operand tests for blank.
    """
    if isinstance(criterion, bool):
        return value is criterion
    if isinstance(criterion, (int, float)):
        num = _as_number(value)
        return num is not None and num == criterion

    text = "" if criterion is None else str(criterion)
    op = "="
    for candidate in _CRITERIA_OPS:
        if text.startswith(candidate):
            op = candidate
            text = text[len(candidate):]
            break

    if text == "":
        blank = value is None or value == ""
        return blank if op == "=" else not blank if op == "<>" else False

    operand = parse_number(text)
    if operand is not None:
        num = _as_number(value)
        if num is None:
            return op == "<>"
        return {
            "=": num == operand,
            "<>": num != operand,
            ">": num > operand,
            "<": num < operand,
            ">=": num >= operand,
            "<=": num <= operand,
        }[op]

    if text.upper() in ("TRUE", "FALSE") and isinstance(value, bool):
        equal = value == (text.upper() == "TRUE")
        return equal if op == "=" else not equal if op == "<>" else False

    cell_text = "" if value is None else str(value)
    if op in ("=", "<>"):
        hit = bool(wildcard_regex(text).match(cell_text))
        return hit if op == "=" else not hit
    if not isinstance(value, str):
        return False
    a, b = cell_text.lower(), text.lower()
    return {">": a > b, "<": a < b, ">=": a >= b, "<=": a <= b}[op]


def _criteria_mask(pairs: list[Any], size: int, func_name: str) -> list[bool]:
    if len(pairs) % 2 != 0:
        raise FormulaFunctionError(func_name, f"{func_name} expects range/criteria pairs", sentinel=VALUE)
    mask = [True] * size
    for i in range(0, len(pairs), 2):
        cells = flatten(pairs[i])
        if len(cells) != size:
            raise FormulaFunctionError(func_name, "Criteria ranges must be the same size", sentinel=VALUE)
        criterion = pairs[i + 1]
        for j, cell in enumerate(cells):
            if mask[j] and not matches_criterion(cell, criterion):
                mask[j] = False
    return mask


def _selected(values: list[Any], mask: list[bool]) -> list[float]:
    return numbers_in([v for v, keep in zip(values, mask) if keep])


def _fn_sumif(args: list) -> int | float:
    """SUMIF(range, criteria, [sum_range])."""
    cells = flatten(args[0])
    targets = flatten(args[2]) if len(args) > 2 else cells
    mask = [matches_criterion(c, args[1]) for c in cells]
    return sum(_selected(targets, mask))


def _fn_countif(args: list) -> int:
    return sum(1 for c in flatten(args[0]) if matches_criterion(c, args[1]))


def _fn_averageif(args: list) -> float:
    cells = flatten(args[0])
    targets = flatten(args[2]) if len(args) > 2 else cells
    nums = _selected(targets, [matches_criterion(c, args[1]) for c in cells])
    if not nums:
        return DIV0
    return sum(nums) / len(nums)


def _fn_sumifs(args: list) -> int | float:
    """SUMIFS(sum_range, criteria_range1, criteria1, ...)."""
    targets = flatten(args[0])
    return sum(_selected(targets, _criteria_mask(args[1:], len(targets), "SUMIFS")))


def _fn_countifs(args: list) -> int:
    size = len(flatten(args[0]))
    return sum(_criteria_mask(list(args), size, "COUNTIFS"))


def _fn_averageifs(args: list) -> float:
    targets = flatten(args[0])
    nums = _selected(targets, _criteria_mask(args[1:], len(targets), "AVERAGEIFS"))
    if not nums:
        return DIV0
    return sum(nums) / len(nums)


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="statistical",
        min_args=min_args,
        max_args=max_args,
    )


STATS_FUNCTIONS: list[FunctionSpec] = [
    _spec("AVERAGE", _fn_average, "AVERAGE(value1, [value2], ...)", "Arithmetic mean", 0, None),
    _spec("MIN", _fn_min, "MIN(value1, [value2], ...)", "Smallest number", 0, None),
    _spec("MAX", _fn_max, "MAX(value1, [value2], ...)", "Largest number", 0, None),
    _spec("COUNT", _fn_count, "COUNT(value1, [value2], ...)", "Counts numbers", 0, None),
    _spec("COUNTA", _fn_counta, "COUNTA(value1, [value2], ...)", "Counts non-empty values", 0, None),
    _spec("COUNTBLANK", _fn_countblank, "COUNTBLANK(range)", "Counts empty cells", 1, None),
    _spec("MEDIAN", _fn_median, "MEDIAN(value1, [value2], ...)", "Median", 1, None),
    _spec("MODE", _fn_mode, "MODE(value1, [value2], ...)", "Most frequent number", 1, None),
    _spec("STDEV", _fn_stdev, "STDEV(value1, [value2], ...)", "Sample standard deviation", 0, None),
    _spec("STDEVP", _fn_stdevp, "STDEVP(value1, [value2], ...)", "Population standard deviation", 0, None),
    _spec("VAR", _fn_var, "VAR(value1, [value2], ...)", "Sample variance", 0, None),
    _spec("VARP", _fn_varp, "VARP(value1, [value2], ...)", "Population variance", 0, None),
    _spec("CORREL", _fn_correl, "CORREL(array1, array2)", "Pearson correlation coefficient", 2, 2),
    _spec("QUARTILE", _fn_quartile, "QUARTILE(array, quart)", "Quartile by linear interpolation", 2, 2),
    _spec("PERCENTILE", _fn_percentile, "PERCENTILE(array, k)", "k-th percentile by linear interpolation", 2, 2),
    _spec("RANK", _fn_rank, "RANK(number, ref, [order])", "Rank of a number in a list", 2, 3),
    _spec("SMALL", _fn_small, "SMALL(array, k)", "k-th smallest value", 2, 2),
    _spec("LARGE", _fn_large, "LARGE(array, k)", "k-th largest value", 2, 2),
    _spec("GEOMEAN", _fn_geomean, "GEOMEAN(value1, [value2], ...)", "Geometric mean", 1, None),
    _spec("HARMEAN", _fn_harmean, "HARMEAN(value1, [value2], ...)", "Harmonic mean", 1, None),
    _spec("SUMIF", _fn_sumif, "SUMIF(range, criteria, [sum_range])", "Conditional sum", 2, 3),
    _spec("COUNTIF", _fn_countif, "COUNTIF(range, criteria)", "Conditional count", 2, 2),
    _spec("AVERAGEIF", _fn_averageif, "AVERAGEIF(range, criteria, [average_range])", "Conditional mean", 2, 3),
    _spec("SUMIFS", _fn_sumifs, "SUMIFS(sum_range, criteria_range1, criteria1, ...)", "Multi-criteria sum", 3, None),
    _spec("COUNTIFS", _fn_countifs, "COUNTIFS(criteria_range1, criteria1, ...)", "Multi-criteria count", 2, None),
    _spec(
        "AVERAGEIFS", _fn_averageifs, "AVERAGEIFS(average_range, criteria_range1, criteria1, ...)",
        "Multi-criteria mean", 3, None,
    ),
]
