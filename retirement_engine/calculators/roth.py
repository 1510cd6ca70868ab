"""Roth conversion helpers.

Before RMDs begin, pre-tax money can be converted to Roth by "filling" a
target bracket: convert just enough that ordinary taxable income reaches the
top of the chosen bracket.  The conversion is taxed as ordinary income and
the tax is paid from the taxable account, so the amount is scaled down when
the taxable balance cannot cover the full bill.
"""

from __future__ import annotations

from typing import Optional, Tuple

from .taxes import Bracket, TaxSchedule, load_tax_schedule, ordinary_tax


def target_bracket(target_rate: float, filing_status: str = "single", schedule: Optional[TaxSchedule] = None) -> Bracket:
    """Return the bracket taxed at ``target_rate``, or the one with the nearest rate."""
    brackets = (schedule or load_tax_schedule()).for_status(filing_status).brackets
    for b in brackets:
        if b.rate == target_rate:
            return b
    return min(brackets, key=lambda b: abs(b.rate - target_rate))


def conversion_headroom(
    ordinary_income: float,
    filing_status: str = "single",
    target_rate: float = 0.24,
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Gross income that can be added before leaving the target bracket.

    ``ordinary_income`` is income before the standard deduction.
    """
    schedule = schedule or load_tax_schedule()
    bracket = target_bracket(target_rate, filing_status, schedule)
    threshold = bracket.upper + schedule.for_status(filing_status).standard_deduction
    return max(0.0, threshold - max(0.0, ordinary_income))


def plan_conversion(
    pretax_balance: float,
    taxable_balance: float,
    ordinary_income: float,
    filing_status: str = "single",
    target_rate: float = 0.24,
    schedule: Optional[TaxSchedule] = None,
) -> Tuple[float, float]:
    """Decide this year's conversion.

    Parameters
    ----------
    pretax_balance : float
        Pre-tax balance available to convert.
    taxable_balance : float
        Taxable balance available to pay the conversion tax.
    ordinary_income : float
        Ordinary income already recognised this year.
    filing_status : str
        ``"single"`` or ``"married"``.
    target_rate : float
        Marginal rate of the bracket to fill, e.g. ``0.24``.

    Returns
    -------
    tuple
        ``(amount, tax)``.  ``amount`` never exceeds ``pretax_balance`` and
        ``tax`` never exceeds ``taxable_balance``.  ``(0.0, 0.0)`` when
        nothing can be converted.
    """
    if pretax_balance <= 0 or taxable_balance <= 0:
        return 0.0, 0.0
    schedule = schedule or load_tax_schedule()
    headroom = conversion_headroom(ordinary_income, filing_status, target_rate, schedule)
    amount = min(headroom, pretax_balance)
    if amount <= 0:
        return 0.0, 0.0

    base_tax = ordinary_tax(ordinary_income, filing_status, schedule)

    def _tax_on(x: float) -> float:
        return ordinary_tax(ordinary_income + x, filing_status, schedule) - base_tax

    tax = _tax_on(amount)
    if tax > taxable_balance:
        amount *= taxable_balance / tax
        tax = min(_tax_on(amount), taxable_balance)
    return amount, tax


__all__ = ["target_bracket", "conversion_headroom", "plan_conversion"]
