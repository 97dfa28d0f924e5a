"""Financial formula functions: NPV, IRR, PV, FV, PMT, NPER, RATE, EFFECT, NOMINAL."""

from __future__ import annotations

import math
from typing import Any, Callable

from sheetcalc.formulas.coerce import numbers_in, to_int, to_number
from sheetcalc.formulas.errors import DIV0, NUM
from sheetcalc.formulas.registry import FunctionSpec

MAX_ITERATIONS = 100
TOLERANCE = 1e-10


def _newton(
    f: Callable[[float], float],
    df: Callable[[float], float],
    guess: float,
) -> float | None:
    """Newton-Raphson root finder.

    Returns None when the derivative vanishes (``|df| < 1e-10``) or the
    iteration cap is reached without convergence.
    """
    x = guess
    for _ in range(MAX_ITERATIONS):
        fx = f(x)
        dfx = df(x)
        if abs(dfx) < TOLERANCE:
            return None
        nxt = x - fx / dfx
        if not math.isfinite(nxt):
            return None
        if abs(nxt - x) < TOLERANCE:
            return nxt
        x = nxt
    return None


def _growth(rate: float, periods: float) -> float:
    """``(1 + rate) ^ periods`` in floating point, so huge period counts overflow."""
    return (1.0 + rate) ** periods


def _optional(args: list, index: int, default: float, func_name: str) -> float:
    return to_number(args[index], func_name) if len(args) > index else default


def _fn_npv(args: list) -> float:
    """NPV(rate, value1, ...): net present value.

    Discounts from t=1: NPV = sum(cf_i / (1+rate)^i).  Does NOT include an
    initial investment at t=0.
    """
    rate = to_number(args[0], "NPV")
    if rate == -1:
        return DIV0
    total = 0.0
    for i, cf in enumerate(numbers_in(args[1:]), start=1):
        total += cf / _growth(rate, i)
    return total


def _fn_irr(args: list) -> float:
    """IRR(values, [guess]): internal rate of return of equally spaced cashflows."""
    cashflows = numbers_in(args[0])
    guess = _optional(args, 1, 0.1, "IRR")
    if len(cashflows) < 2:
        return NUM

    def npv(r: float) -> float:
        return sum(cf / _growth(r, i) for i, cf in enumerate(cashflows))

    def dnpv(r: float) -> float:
        return sum(-i * cf / _growth(r, i + 1) for i, cf in enumerate(cashflows))

    try:
        result = _newton(npv, dnpv, guess)
    except (ZeroDivisionError, OverflowError):
        return NUM
    return NUM if result is None else result


def _fn_pv(args: list) -> float:
    """PV(rate, nper, pmt, [fv], [type]): present value of an annuity."""
    rate = to_number(args[0], "PV")
    nper = to_number(args[1], "PV")
    pmt = to_number(args[2], "PV")
    fv = _optional(args, 3, 0, "PV")
    kind = _optional(args, 4, 0, "PV")
    if rate == 0:
        return -(pmt * nper + fv)
    pvif = _growth(rate, nper)
    return -(pmt * (pvif - 1) / rate * (1 + rate * kind) + fv) / pvif


def _fn_fv(args: list) -> float:
    """FV(rate, nper, pmt, [pv], [type]): future value of an annuity."""
    rate = to_number(args[0], "FV")
    nper = to_number(args[1], "FV")
    pmt = to_number(args[2], "FV")
    pv = _optional(args, 3, 0, "FV")
    kind = _optional(args, 4, 0, "FV")
    if rate == 0:
        return -(pv + pmt * nper)
    growth = _growth(rate, nper)
    return -(pv * growth + pmt * (1 + rate * kind) * (growth - 1) / rate)


def _fn_pmt(args: list) -> float:
    """PMT(rate, nper, pv, [fv], [type]): periodic payment of a loan."""
    rate = to_number(args[0], "PMT")
    nper = to_number(args[1], "PMT")
    pv = to_number(args[2], "PMT")
    fv = _optional(args, 3, 0, "PMT")
    kind = _optional(args, 4, 0, "PMT")
    if nper == 0:
        return NUM
    if rate == 0:
        return -(pv + fv) / nper
    growth = _growth(rate, nper)
    return -(rate * (pv * growth + fv)) / ((1 + rate * kind) * (growth - 1))


def _fn_nper(args: list) -> float:
    """NPER(rate, pmt, pv, [fv], [type]): number of payment periods."""
    rate = to_number(args[0], "NPER")
    pmt = to_number(args[1], "NPER")
    pv = to_number(args[2], "NPER")
    fv = _optional(args, 3, 0, "NPER")
    kind = _optional(args, 4, 0, "NPER")
    if rate == 0:
        if pmt == 0:
            return NUM
        return -(pv + fv) / pmt
    num = pmt * (1 + rate * kind) - fv * rate
    den = pv * rate + pmt * (1 + rate * kind)
    if den == 0 or num / den <= 0:
        return NUM
    return math.log(num / den) / math.log(1 + rate)


def _fn_rate(args: list) -> float:
    """RATE(nper, pmt, pv, [fv], [type], [guess]): interest rate per period.

    Solves ``pv*(1+r)^n + pmt*(1+r*type)*((1+r)^n - 1)/r + fv = 0`` by
    Newton-Raphson.
    """
    nper = to_number(args[0], "RATE")
    pmt = to_number(args[1], "RATE")
    pv = to_number(args[2], "RATE")
    fv = _optional(args, 3, 0, "RATE")
    kind = _optional(args, 4, 0, "RATE")
    guess = _optional(args, 5, 0.1, "RATE")

    def f(r: float) -> float:
        if r == 0:
            return pv + pmt * nper + fv
        growth = _growth(r, nper)
        return pv * growth + pmt * (1 + r * kind) * (growth - 1) / r + fv

    def df(r: float) -> float:
        if r == 0:
            return pv * nper + pmt * (nper * (nper - 1) / 2 + nper * kind)
        growth = _growth(r, nper)
        dgrowth = nper * _growth(r, nper - 1)
        annuity = (growth - 1) / r
        dannuity = (dgrowth * r - (growth - 1)) / (r * r)
        return pv * dgrowth + pmt * kind * annuity + pmt * (1 + r * kind) * dannuity

    try:
        result = _newton(f, df, guess)
    except (ZeroDivisionError, OverflowError):
        return NUM
    return NUM if result is None else result


def _fn_effect(args: list) -> float:
    """EFFECT(nominal_rate, npery): effective annual rate."""
    nominal = to_number(args[0], "EFFECT")
    npery = to_int(args[1], "EFFECT")
    if nominal <= 0 or npery < 1:
        return NUM
    return (1 + nominal / npery) ** npery - 1


def _fn_nominal(args: list) -> float:
    """NOMINAL(effect_rate, npery): nominal annual rate."""
    effect = to_number(args[0], "NOMINAL")
    npery = to_int(args[1], "NOMINAL")
    if effect <= 0 or npery < 1:
        return NUM
    return npery * ((1 + effect) ** (1 / npery) - 1)


def _spec(name: str, fn: Any, usage: str, description: str, min_args: int, max_args: int | None) -> FunctionSpec:
    return FunctionSpec(
        name=name,
        execute=fn,
        description=description,
        usage=usage,
        category="financial",
        min_args=min_args,
        max_args=max_args,
    )


FINANCE_FUNCTIONS: list[FunctionSpec] = [
    _spec("NPV", _fn_npv, "NPV(rate, value1, [value2], ...)", "Net present value", 2, None),
    _spec("IRR", _fn_irr, "IRR(values, [guess])", "Internal rate of return", 1, 2),
    _spec("PV", _fn_pv, "PV(rate, nper, pmt, [fv], [type])", "Present value", 3, 5),
    _spec("FV", _fn_fv, "FV(rate, nper, pmt, [pv], [type])", "Future value", 3, 5),
    _spec("PMT", _fn_pmt, "PMT(rate, nper, pv, [fv], [type])", "Periodic payment", 3, 5),
    _spec("NPER", _fn_nper, "NPER(rate, pmt, pv, [fv], [type])", "Number of periods", 3, 5),
    _spec("RATE", _fn_rate, "RATE(nper, pmt, pv, [fv], [type], [guess])", "Interest rate per period", 3, 6),
    _spec("EFFECT", _fn_effect, "EFFECT(nominal_rate, npery)", "Effective annual rate", 2, 2),
    _spec("NOMINAL", _fn_nominal, "NOMINAL(effect_rate, npery)", "Nominal annual rate", 2, 2),
]
