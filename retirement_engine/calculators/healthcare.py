"""Healthcare cost estimates.

Three cost streams add to a household's spending need:

* pre-Medicare premiums during the working years, priced by age band
  (employer or marketplace coverage, rising with age rating);
* Medicare Part B premiums from age 65, plus the IRMAA surcharge for the
  MAGI tier the household falls in;
* an expected-value long-term-care cost, the annual care cost weighted by
  the probability of needing it, for ``duration`` years from the onset age.

Costs are annual, in base-year dollars, and are scaled by a medical
inflation factor supplied by the caller because healthcare prices compound
faster than general inflation.  IRMAA tiers come from the filing-status
schedule in ``data/tax_tables.json``.

Example
-------

>>> pre_medicare_cost(45)
8400.0
>>> irmaa_surcharge(120000, "single")
81.2
"""

from __future__ import annotations

import math
from typing import Optional

from .taxes import TaxSchedule, load_tax_schedule

MEDICARE_AGE = 65
PER_CHILD_COST = 3000.0

# (first age not covered by the band, annual individual premium)
PRE_MEDICARE_BANDS = (
    (30, 4800.0),
    (40, 6000.0),
    (50, 8400.0),
    (55, 10800.0),
    (60, 13200.0),
    (65, 15600.0),
)


def medical_inflation_factor(rate: float, years: int) -> float:
    """Cumulative medical price growth after ``years`` years."""
    return (1.0 + rate) ** max(0, years)


def irmaa_surcharge(magi: float, filing_status: str = "single", schedule: Optional[TaxSchedule] = None) -> float:
    """Monthly Part B surcharge for ``magi``; zero below the first tier."""
    tiers = (schedule or load_tax_schedule()).for_status(filing_status).irmaa
    if not tiers:
        return 0.0
    magi = float(magi) if math.isfinite(magi) else 0.0
    for tier in tiers:
        if magi <= tier.upper:
            return tier.monthly_surcharge
    return tiers[-1].monthly_surcharge


def pre_medicare_cost(age: int) -> float:
    """Annual individual premium at ``age``; zero once Medicare starts."""
    if age >= MEDICARE_AGE:
        return 0.0
    for below, cost in PRE_MEDICARE_BANDS:
        if age < below:
            return cost
    return PRE_MEDICARE_BANDS[-1][1]


def household_pre_medicare_cost(
    age: int,
    spouse_age: Optional[int] = None,
    num_children: int = 0,
    medical_factor: float = 1.0,
) -> float:
    """Premiums for everyone in the household not yet on Medicare.

    Children add a flat amount while at least one parent is still on
    private coverage.
    """
    total = pre_medicare_cost(age)
    under_medicare_age = age < MEDICARE_AGE
    if spouse_age is not None:
        total += pre_medicare_cost(spouse_age)
        under_medicare_age = under_medicare_age or spouse_age < MEDICARE_AGE
    if num_children > 0 and under_medicare_age:
        total += num_children * PER_CHILD_COST
    return total * medical_factor


def medicare_cost(
    age: int,
    spouse_age: Optional[int],
    monthly_premium: float,
    magi: float,
    filing_status: str = "single",
    medical_factor: float = 1.0,
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Annual Medicare Part B cost including IRMAA.

    A married couple pays twice once the spouse is also 65 or older.
    """
    if age < MEDICARE_AGE:
        return 0.0
    monthly = monthly_premium + irmaa_surcharge(magi, filing_status, schedule)
    annual = monthly * 12 * medical_factor
    if filing_status == "married" and spouse_age is not None and spouse_age >= MEDICARE_AGE:
        annual *= 2
    return annual


def ltc_cost(
    age: int,
    annual_cost: float,
    probability: float,
    onset_age: int = 82,
    duration: float = 2.5,
    medical_factor: float = 1.0,
) -> float:
    """Probability-weighted long-term-care cost for ``age``."""
    if age < onset_age or age - onset_age >= duration:
        return 0.0
    return annual_cost * probability * medical_factor


__all__ = [
    "MEDICARE_AGE",
    "PER_CHILD_COST",
    "PRE_MEDICARE_BANDS",
    "medical_inflation_factor",
    "irmaa_surcharge",
    "pre_medicare_cost",
    "household_pre_medicare_cost",
    "medicare_cost",
    "ltc_cost",
]
