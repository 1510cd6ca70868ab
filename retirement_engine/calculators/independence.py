"""Financial independence (FI) calculators.

The FI number is the portfolio that supports ``annual_expenses`` at a given
safe withdrawal rate (25× expenses at 4%).  Years to FI is found by
bisection on the future value of current savings plus an annual savings
annuity, growing at a real return.

Degenerate inputs never raise: a plan that already meets its target takes
``0`` years, and a plan that saves nothing, or cannot reach the target
within ``MAX_YEARS``, returns ``UNREACHABLE``.

Example
-------

>>> fi_number(40000)
1000000.0
>>> years_to_independence(0, 0, 40000)
inf
"""

from __future__ import annotations

import math

UNREACHABLE = math.inf
MAX_YEARS = 100.0
_PRECISION = 0.1


def fi_number(annual_expenses: float, withdrawal_rate: float = 0.04) -> float:
    if withdrawal_rate <= 0 or not math.isfinite(annual_expenses):
        return UNREACHABLE
    return max(0.0, annual_expenses) / withdrawal_rate


def _future_value(current_savings: float, annual_savings: float, real_return: float, years: float) -> float:
    if real_return == 0:
        return current_savings + annual_savings * years
    growth = (1 + real_return) ** years
    return current_savings * growth + annual_savings * (growth - 1) / real_return


def years_to_independence(
    current_savings: float,
    annual_savings: float,
    annual_expenses: float,
    real_return: float = 0.07,
    withdrawal_rate: float = 0.04,
) -> float:
    """Years until savings reach the FI number.

    Parameters
    ----------
    current_savings : float
        Invested assets today.
    annual_savings : float
        Amount added at the end of each year.
    annual_expenses : float
        Spending the portfolio must support, in today's dollars.
    real_return : float
        Annual after-inflation return as a fraction.

    Returns
    -------
    float
        Years rounded up to the nearest tenth, ``0`` when already there or
        ``UNREACHABLE`` when the target cannot be met within ``MAX_YEARS``.
    """
    target = fi_number(annual_expenses, withdrawal_rate)
    if not math.isfinite(current_savings) or not math.isfinite(annual_savings):
        return UNREACHABLE
    if current_savings >= target:
        return 0.0
    if annual_savings <= 0 or real_return <= -1:
        return UNREACHABLE
    if _future_value(current_savings, annual_savings, real_return, MAX_YEARS) < target:
        return UNREACHABLE

    low, high = 0.0, MAX_YEARS
    while high - low > _PRECISION:
        mid = (low + high) / 2
        if _future_value(current_savings, annual_savings, real_return, mid) < target:
            low = mid
        else:
            high = mid
    return math.ceil((low + high) / 2 * 10) / 10


def years_to_independence_for_rate(
    savings_rate: float,
    income: float = 100000.0,
    current_savings: float = 0.0,
    real_return: float = 0.07,
    withdrawal_rate: float = 0.04,
) -> float:
    """Years to FI when a fraction ``savings_rate`` of ``income`` is saved and the rest spent."""
    if savings_rate <= 0 or income <= 0:
        return UNREACHABLE
    rate = min(1.0, savings_rate)
    return years_to_independence(
        current_savings,
        income * rate,
        income * (1 - rate),
        real_return,
        withdrawal_rate,
    )


def coast_fi_number(
    annual_expenses: float,
    years_until_retirement: float,
    real_return: float = 0.07,
    withdrawal_rate: float = 0.04,
) -> float:
    """Savings needed today to reach the FI number by retirement with no further contributions."""
    target = fi_number(annual_expenses, withdrawal_rate)
    return target / (1 + real_return) ** max(0.0, years_until_retirement)


__all__ = [
    "UNREACHABLE",
    "MAX_YEARS",
    "fi_number",
    "years_to_independence",
    "years_to_independence_for_rate",
    "coast_fi_number",
]
