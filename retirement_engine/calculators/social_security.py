"""Social Security benefit estimator.

Benefits are derived from an average indexed income figure rather than a
full earnings history.  The income is converted to a monthly AIME and run
through the 2026 bend-point formula (90% / 32% / 15%) to obtain the Primary
Insurance Amount (PIA), the monthly benefit at full retirement age (FRA).
The PIA is then adjusted for the claiming age, which is clamped to the
62–70 window:

* Claiming early reduces the benefit by 5/9 of 1% per month for the first
  36 months and 5/12 of 1% for each additional month.
* Claiming late adds a delayed retirement credit of 2/3 of 1% per month.

A married person receives the higher of their own adjusted benefit or a
spousal benefit of 50% of the other spouse's PIA.  Spousal benefits are
reduced by 25/36 of 1% per month for the first 36 early months (5/12 of 1%
beyond that) and earn no delayed credits.

Example
-------

>>> # $80 000 of indexed earnings claimed at full retirement age
>>> round(social_security_benefit(80000, 67), 2)
34550.56

>>> # The same record claimed at 70 earns three years of delayed credits
>>> round(social_security_benefit(80000, 70), 2)
42842.69
"""

from __future__ import annotations

from typing import Optional

from .taxes import TaxSchedule, load_tax_schedule

MIN_CLAIM_AGE = 62
MAX_CLAIM_AGE = 70


def clamp_claim_age(claim_age: float) -> float:
    return max(MIN_CLAIM_AGE, min(MAX_CLAIM_AGE, claim_age))


def primary_insurance_amount(income_basis: float, schedule: Optional[TaxSchedule] = None) -> float:
    """Return the monthly PIA for an average annual indexed income."""
    if income_basis <= 0:
        return 0.0
    first, second = (schedule or load_tax_schedule()).bend_points
    aime = income_basis / 12.0
    if aime <= first:
        return aime * 0.90
    if aime <= second:
        return first * 0.90 + (aime - first) * 0.32
    return first * 0.90 + (second - first) * 0.32 + (aime - second) * 0.15


def adjust_for_claim_age(monthly_pia: float, claim_age: float, fra: float = 67) -> float:
    """Apply early-claiming reductions or delayed retirement credits to ``monthly_pia``."""
    if monthly_pia <= 0:
        return 0.0
    months = (clamp_claim_age(claim_age) - fra) * 12
    if months < 0:
        early = -months
        factor = 1 - min(early, 36) * (5 / 9) / 100 - max(0, early - 36) * (5 / 12) / 100
    else:
        factor = 1 + months * (2 / 3) / 100
    return monthly_pia * factor


def social_security_benefit(
    income_basis: float,
    claim_age: float,
    fra: Optional[float] = None,
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Estimate the annual Social Security benefit for one person.

    Parameters
    ----------
    income_basis : float
        Average indexed annual earnings.
    claim_age : float
        Age at which benefits begin.  Values outside 62–70 are clamped.
    fra : float, optional
        Full retirement age.  Defaults to the value in the tax tables (67).

    Returns
    -------
    float
        Annual benefit in today's dollars; zero for a non-positive income.
    """
    schedule = schedule or load_tax_schedule()
    if fra is None:
        fra = schedule.full_retirement_age
    pia = primary_insurance_amount(income_basis, schedule)
    return adjust_for_claim_age(pia, claim_age, fra) * 12


def spousal_benefit(spouse_pia: float, claim_age: float, fra: float = 67) -> float:
    """Monthly spousal benefit: half the spouse's PIA, reduced for early claiming only."""
    if spouse_pia <= 0:
        return 0.0
    benefit = spouse_pia * 0.5
    months_early = (fra - clamp_claim_age(claim_age)) * 12
    if months_early > 0:
        benefit *= 1 - min(months_early, 36) * (25 / 36) / 100 - max(0, months_early - 36) * (5 / 12) / 100
    return benefit


def couple_benefit(
    income_1: float,
    claim_age_1: float,
    age_1: float,
    income_2: float = 0.0,
    claim_age_2: float = 67,
    age_2: Optional[float] = None,
    schedule: Optional[TaxSchedule] = None,
) -> float:
    """Annual household benefit paid in a year where the people are ``age_1`` and ``age_2``.

    Each person is paid once they reach their claim age.  When ``age_2`` is
    given the household is treated as married: each person receives the
    higher of their own benefit or the spousal benefit based on the other's
    record, with the spousal benefit available only after the other spouse
    has filed.
    """
    schedule = schedule or load_tax_schedule()
    fra = schedule.full_retirement_age
    claim_age_1 = clamp_claim_age(claim_age_1)
    pia_1 = primary_insurance_amount(income_1, schedule)
    own_1 = adjust_for_claim_age(pia_1, claim_age_1, fra)

    if age_2 is None:
        return own_1 * 12 if age_1 >= claim_age_1 else 0.0

    claim_age_2 = clamp_claim_age(claim_age_2)
    pia_2 = primary_insurance_amount(income_2, schedule)
    own_2 = adjust_for_claim_age(pia_2, claim_age_2, fra)
    filed_1 = age_1 >= claim_age_1
    filed_2 = age_2 >= claim_age_2

    monthly = 0.0
    if filed_1:
        spousal = spousal_benefit(pia_2, claim_age_1, fra) if filed_2 else 0.0
        monthly += max(own_1, spousal)
    if filed_2:
        spousal = spousal_benefit(pia_1, claim_age_2, fra) if filed_1 else 0.0
        monthly += max(own_2, spousal)
    return monthly * 12


__all__ = [
    "MIN_CLAIM_AGE",
    "MAX_CLAIM_AGE",
    "clamp_claim_age",
    "primary_insurance_amount",
    "adjust_for_claim_age",
    "social_security_benefit",
    "spousal_benefit",
    "couple_benefit",
]
