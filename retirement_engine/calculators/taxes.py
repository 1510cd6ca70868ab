"""Tax calculation utilities.

This module implements the simplified U.S. federal tax approximations the
engine needs to compare strategies.  The defaults embed IRS data for 2026
(Revenue Procedure 2025-32) for the two filing statuses the engine models,
``single`` and ``married`` (filing jointly).  Ordinary income is taxed
progressively after the standard deduction, long-term capital gains stack on
top of ordinary income, and the Net Investment Income Tax, FICA payroll tax,
the taxable share of Social Security benefits and the federal estate tax are
provided as separate helpers.  State tax is a flat multiplier supplied by the
caller.

Example
-------

>>> # Federal tax on $60 000 of ordinary income for a single filer in 2026
>>> round(ordinary_tax(60000), 2)
5020.0

>>> # Nothing is owed below the standard deduction
>>> ordinary_tax(16100, "single")
0.0

The tables are loaded once from ``data/tax_tables.json`` into frozen
dataclasses and passed around by reference.  A different year, or a custom
table file matching the same schema, can be loaded with
:func:`load_tax_schedule`.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Tuple

_DEFAULT_TAX_TABLE_PATH = Path(__file__).resolve().parent.parent / "data" / "tax_tables.json"

DEFAULT_TAX_YEAR = 2026
FILING_STATUSES = ("single", "married")


@dataclass(frozen=True)
class Bracket:
    start: float
    end: Optional[float]  # None means no upper bound
    rate: float

    @property
    def upper(self) -> float:
        return float("inf") if self.end is None else self.end


@dataclass(frozen=True)
class IrmaaTier:
    """Medicare Part B surcharge for MAGI up to ``end``."""

    end: Optional[float]  # None means no upper bound
    monthly_surcharge: float

    @property
    def upper(self) -> float:
        return float("inf") if self.end is None else self.end


@dataclass(frozen=True)
class FilingSchedule:
    """Thresholds for one filing status."""

    standard_deduction: float
    brackets: Tuple[Bracket, ...]
    cap_gains: Tuple[Bracket, ...]
    niit_threshold: float
    ss_tier1: float
    ss_tier2: float
    estate_exemption: float
    irmaa: Tuple[IrmaaTier, ...] = ()


@dataclass(frozen=True)
class PayrollRates:
    ss_wage_base: float
    ss_rate: float
    medicare_rate: float
    additional_medicare_threshold: float
    additional_medicare_rate: float


@dataclass(frozen=True)
class TaxSchedule:
    """All tax tables for a single year."""

    year: int
    single: FilingSchedule
    married: FilingSchedule
    payroll: PayrollRates
    niit_rate: float
    estate_rate: float
    bend_points: Tuple[float, float]
    full_retirement_age: int

    def for_status(self, filing_status: str) -> FilingSchedule:
        """Return the schedule for ``filing_status``; unknown statuses use single."""
        return self.married if filing_status == "married" else self.single


def _brackets(rows) -> Tuple[Bracket, ...]:
    return tuple(
        Bracket(float(r["start"]), None if r["end"] is None else float(r["end"]), float(r["rate"]))
        for r in rows
    )


def _filing_schedule(raw: Dict) -> FilingSchedule:
    return FilingSchedule(
        standard_deduction=float(raw.get("standard_deduction", 0.0)),
        brackets=_brackets(raw["brackets"]),
        cap_gains=_brackets(raw.get("cap_gains", [])),
        niit_threshold=float(raw.get("niit_threshold", float("inf"))),
        ss_tier1=float(raw["ss_taxation"]["tier1"]),
        ss_tier2=float(raw["ss_taxation"]["tier2"]),
        estate_exemption=float(raw.get("estate_exemption", float("inf"))),
        irmaa=tuple(
            IrmaaTier(None if r["end"] is None else float(r["end"]), float(r["monthly_surcharge"]))
            for r in raw.get("irmaa", [])
        ),
    )


@lru_cache(maxsize=None)
def load_tax_schedule(year: int = DEFAULT_TAX_YEAR, path: Optional[Path] = None) -> TaxSchedule:
    """Load the tax tables for ``year`` from JSON.

    Parameters
    ----------
    year : int
        Tax year key in the table file.
    path : Path, optional
        Path to a JSON file containing the tax tables.  Defaults to the file
        shipped with the package.

    Returns
    -------
    TaxSchedule
        The parsed, immutable schedule.  Results are cached, so repeated
        calls return the same object.
    """
    p = path or _DEFAULT_TAX_TABLE_PATH
    with open(p, "r", encoding="utf-8") as f:
        tables = json.load(f)
    raw = tables[str(year)]
    federal = raw["federal"]
    payroll = raw["payroll"]
    ss = raw["social_security"]
    return TaxSchedule(
        year=int(year),
        single=_filing_schedule(federal["single"]),
        married=_filing_schedule(federal["married"]),
        payroll=PayrollRates(
            ss_wage_base=float(payroll["ss_wage_base"]),
            ss_rate=float(payroll["ss_rate"]),
            medicare_rate=float(payroll["medicare_rate"]),
            additional_medicare_threshold=float(payroll["additional_medicare_threshold"]),
            additional_medicare_rate=float(payroll["additional_medicare_rate"]),
        ),
        niit_rate=float(raw["niit_rate"]),
        estate_rate=float(raw["estate_rate"]),
        bend_points=(float(ss["bend_points"][0]), float(ss["bend_points"][1])),
        full_retirement_age=int(ss["full_retirement_age"]),
    )


def _safe(amount: float) -> float:
    """Coerce NaN, infinities and negatives to zero."""
    try:
        amount = float(amount)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(amount) or amount <= 0:
        return 0.0
    return amount


def _apply_brackets(amount: float, brackets: Tuple[Bracket, ...], base: float = 0.0) -> float:
    """Tax ``amount`` progressively, stacked on top of ``base`` already-taxed income."""
    tax = 0.0
    remaining = amount
    position = base
    for bracket in brackets:
        if remaining <= 0:
            break
        room = max(0.0, bracket.upper - max(position, bracket.start))
        taken = min(remaining, room)
        if taken > 0:
            tax += taken * bracket.rate
            remaining -= taken
            position += taken
    return tax


def standard_deduction(filing_status: str = "single", schedule: Optional[TaxSchedule] = None) -> float:
    schedule = schedule or load_tax_schedule()
    return schedule.for_status(filing_status).standard_deduction


def ordinary_tax(
    taxable_income: float,
    filing_status: str = "single",
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Compute federal income tax due on ordinary income.

    The standard deduction for ``filing_status`` is subtracted first and the
    remainder is taxed through the marginal brackets.  The result is never
    negative and is exactly zero when income does not exceed the deduction.
    State tax is not included; see :func:`state_tax`.
    """
    income = _safe(taxable_income)
    if income <= 0:
        return 0.0
    fs = (schedule or load_tax_schedule()).for_status(filing_status)
    return _apply_brackets(max(0.0, income - fs.standard_deduction), fs.brackets)


def capital_gains_tax(
    gain: float,
    filing_status: str = "single",
    ordinary_income: float = 0.0,
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Compute long-term capital gains tax.

    Gains stack on top of ordinary taxable income (after the standard
    deduction) when deciding which LTCG bracket applies.
    """
    gain = _safe(gain)
    if gain <= 0:
        return 0.0
    fs = (schedule or load_tax_schedule()).for_status(filing_status)
    if not fs.cap_gains:
        return 0.0
    base = max(0.0, _safe(ordinary_income) - fs.standard_deduction)
    return _apply_brackets(gain, fs.cap_gains, base=base)


def niit(
    investment_income: float,
    filing_status: str = "single",
    magi: float = 0.0,
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Net Investment Income Tax: 3.8% on the lesser of investment income or MAGI above the threshold."""
    investment_income = _safe(investment_income)
    if investment_income <= 0:
        return 0.0
    schedule = schedule or load_tax_schedule()
    excess = max(0.0, _safe(magi) - schedule.for_status(filing_status).niit_threshold)
    return min(investment_income, excess) * schedule.niit_rate


def payroll_tax(wages: float, schedule: Optional[TaxSchedule] = None) -> float:
    """Employee share of FICA on W-2 ``wages``."""
    wages = _safe(wages)
    if wages <= 0:
        return 0.0
    rates = (schedule or load_tax_schedule()).payroll
    tax = min(wages, rates.ss_wage_base) * rates.ss_rate
    tax += wages * rates.medicare_rate
    if wages > rates.additional_medicare_threshold:
        tax += (wages - rates.additional_medicare_threshold) * rates.additional_medicare_rate
    return tax


def state_tax(income: float, state_rate: float) -> float:
    """Flat state income tax on ``income``."""
    return _safe(income) * _safe(state_rate)


def taxable_social_security(
    benefit: float,
    other_income: float,
    filing_status: str = "single",
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Dollar amount of Social Security benefits taxable as ordinary income.

    Provisional income is ``other_income`` plus half the benefit.  Below the
    first tier nothing is taxable; between the tiers up to 50% is taxable;
    above the second tier up to 85%.  The tiers are not inflation indexed.
    """
    benefit = _safe(benefit)
    if benefit <= 0:
        return 0.0
    fs = (schedule or load_tax_schedule()).for_status(filing_status)
    combined = _safe(other_income) + benefit * 0.5
    if combined <= fs.ss_tier1:
        return 0.0
    if combined <= fs.ss_tier2:
        return min(benefit * 0.5, (combined - fs.ss_tier1) * 0.5)
    lower_band = (fs.ss_tier2 - fs.ss_tier1) * 0.5
    return min(benefit * 0.85, lower_band + (combined - fs.ss_tier2) * 0.85)


def estate_tax(
    estate: float,
    filing_status: str = "single",
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Federal estate tax on the portion of ``estate`` above the exemption."""
    estate = _safe(estate)
    schedule = schedule or load_tax_schedule()
    exemption = schedule.for_status(filing_status).estate_exemption
    if estate <= exemption:
        return 0.0
    return (estate - exemption) * schedule.estate_rate


__all__ = [
    "Bracket",
    "IrmaaTier",
    "FilingSchedule",
    "PayrollRates",
    "TaxSchedule",
    "DEFAULT_TAX_YEAR",
    "FILING_STATUSES",
    "load_tax_schedule",
    "standard_deduction",
    "ordinary_tax",
    "capital_gains_tax",
    "niit",
    "payroll_tax",
    "state_tax",
    "taxable_social_security",
    "estate_tax",
]
