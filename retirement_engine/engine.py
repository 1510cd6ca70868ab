"""Single-trial simulation.

:func:`run_single_simulation` projects one household from ``current_age``
through ``life_expectancy - 1`` and then ``inheritance_tail_years`` of estate
decay, producing one :class:`YearRecord` per year.  Each year:

1. the phase machine advances and fixes which flows apply;
2. working years add contributions, tax the salary (FICA, federal and
   state) and, when enabled, pay pre-Medicare premiums from taxable savings;
3. every bucket grows by that year's market factor, with dividend drag on
   the taxable bucket;
4. early retirement may convert pre-tax money to Roth by filling a bracket;
5. retired years withdraw the inflation-adjusted spending need plus any
   Medicare and long-term-care cost, net of Social Security, with any RMD
   forced out of pre-tax first and the excess reinvested after tax;
6. the first inheritance year settles estate tax, and heirs then draw the
   inherited pre-tax balance down evenly;
7. the inflation factor advances and the year is recorded in nominal and
   real terms.

The first retirement year withdraws ``withdrawal_rate`` of the balance at
retirement; later years inflate that figure.  The function is pure and never
mutates its inputs.  Any exception, or a non-finite summary, is contained
here and reported as a failed result.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from .calculators import healthcare, taxes
from .calculators.returns import inflation_path
from .calculators.rmd import compute_rmd
from .calculators.roth import plan_conversion
from .calculators.social_security import couple_benefit
from .inputs import SimulationInputs
from .ledger import AccountLedger
from .phases import Phase, PhaseMachine

logger = logging.getLogger(__name__)

# heirs must empty an inherited IRA within ten years
INHERITED_IRA_YEARS = 10


@dataclass(frozen=True)
class YearRecord:
    year: int
    age: int
    spouse_age: Optional[int]
    phase: Phase
    taxable: float
    pretax: float
    roth: float
    emergency: float
    total: float
    taxable_real: float
    pretax_real: float
    roth_real: float
    total_real: float
    tax_ordinary: float
    tax_fica: float
    tax_rmd: float
    tax_capital_gains: float
    tax_state: float
    tax_estate: float
    rmd: float
    withdrawal: float
    social_security: float
    healthcare: float
    roth_conversion: float
    after_tax_income: float
    inflation_factor: float
    ruined: bool

    @property
    def total_tax(self) -> float:
        return (
            self.tax_ordinary
            + self.tax_fica
            + self.tax_rmd
            + self.tax_capital_gains
            + self.tax_state
            + self.tax_estate
        )


@dataclass(frozen=True)
class SimulationResult:
    records: Tuple[YearRecord, ...]
    balance_at_retirement: float
    eol_real: float
    years_survived: int
    depletion_age: Optional[int]
    ruined: bool
    y1_after_tax_real: float
    total_roth_conversions: float
    conversion_taxes_paid: float
    estate_real: float
    seed: int
    failed: bool = False
    error: Optional[str] = None

    @property
    def ages(self) -> np.ndarray:
        return np.array([r.age for r in self.records], dtype=int)

    @property
    def balances_nominal(self) -> np.ndarray:
        return np.array([r.total for r in self.records], dtype=float)

    @property
    def balances_real(self) -> np.ndarray:
        return np.array([r.total_real for r in self.records], dtype=float)

    @property
    def lifetime_taxes(self) -> float:
        return float(sum(r.total_tax for r in self.records))

    def to_frame(self) -> pd.DataFrame:
        """Year records as a DataFrame, one row per year."""
        columns = [f.name for f in fields(YearRecord)]
        rows = []
        for r in self.records:
            row = {name: getattr(r, name) for name in columns}
            row["phase"] = r.phase.value
            rows.append(row)
        return pd.DataFrame(rows, columns=columns)

    def summary_is_finite(self) -> bool:
        values = (
            self.balance_at_retirement,
            self.eol_real,
            self.y1_after_tax_real,
            self.total_roth_conversions,
            self.conversion_taxes_paid,
            self.estate_real,
        )
        return all(math.isfinite(v) for v in values)

    @classmethod
    def failure(cls, seed: int, error: str) -> "SimulationResult":
        return cls(
            records=(),
            balance_at_retirement=0.0,
            eol_real=0.0,
            years_survived=0,
            depletion_age=None,
            ruined=False,
            y1_after_tax_real=0.0,
            total_roth_conversions=0.0,
            conversion_taxes_paid=0.0,
            estate_real=0.0,
            seed=seed,
            failed=True,
            error=error,
        )


def run_single_simulation(inputs: SimulationInputs, seed: Optional[int] = None) -> SimulationResult:
    """Run one full-horizon trial.

    Parameters
    ----------
    inputs : SimulationInputs
        Complete household plan, normally built with
        :meth:`SimulationInputs.from_plan`.
    seed : int, optional
        Seed for the return model.  Defaults to ``inputs.seed``.  Fixed
        return models ignore it.

    Returns
    -------
    SimulationResult
        Year records and summary scalars, or a result with ``failed=True``
        when the trial could not be completed.
    """
    seed = inputs.seed if seed is None else int(seed)
    try:
        result = _simulate(inputs, seed)
    except Exception as exc:
        logger.exception("Simulation failed for seed %s", seed)
        return SimulationResult.failure(seed, f"{type(exc).__name__}: {exc}")
    if not result.summary_is_finite():
        logger.warning("Simulation for seed %s produced a non-finite summary", seed)
        return SimulationResult.failure(seed, "non-finite summary")
    return result


def _zero_taxes() -> Dict[str, float]:
    return {
        "tax_ordinary": 0.0,
        "tax_fica": 0.0,
        "tax_rmd": 0.0,
        "tax_capital_gains": 0.0,
        "tax_state": 0.0,
        "tax_estate": 0.0,
    }


def _simulate(inputs: SimulationInputs, seed: int) -> SimulationResult:
    schedule = taxes.load_tax_schedule()
    status = inputs.filing_status
    married = inputs.married
    years = inputs.horizon
    life_years = inputs.life_expectancy - inputs.current_age
    retirement_index = inputs.retirement_age - inputs.current_age

    inflation = inflation_path(
        years,
        inputs.inflation_rate,
        inputs.inflation_shock_rate,
        shock_start=retirement_index,
        shock_years=inputs.inflation_shock_years,
    )
    factors = inputs.return_model.factors(years, seed, inflation)

    ledger = AccountLedger(
        inputs.taxable_balance, inputs.pretax_balance, inputs.roth_balance, emergency=inputs.emergency_fund
    )
    machine = PhaseMachine(inputs.retirement_age, inputs.life_expectancy)

    records: List[YearRecord] = []
    spending: Optional[float] = None
    balance_at_retirement: Optional[float] = None
    y1_after_tax_real: Optional[float] = None
    depletion_index: Optional[int] = None
    eol_real = 0.0
    total_conversions = 0.0
    conversion_taxes = 0.0

    for y in range(years):
        age = inputs.current_age + y
        spouse_age = inputs.spouse_age + y if married else None
        phase = machine.advance(age)
        rules = phase.rules
        tax = _zero_taxes()
        rmd_amount = 0.0
        withdrawal = 0.0
        social_security = 0.0
        health_cost = 0.0
        conversion = 0.0
        after_tax_income = 0.0

        if phase is not Phase.WORKING and balance_at_retirement is None:
            balance_at_retirement = ledger.total
        opening_pretax = ledger.pretax

        if rules.salary:
            after_tax_income = _working_year(inputs, ledger, y, spouse_age, tax, schedule)

        tax["tax_capital_gains"] += ledger.grow(factors[y], inputs.dividend_yield, status)
        if rules.salary and inputs.include_healthcare:
            medical_factor = healthcare.medical_inflation_factor(inputs.medical_inflation, y)
            health_cost = ledger.pay_from_taxable(
                healthcare.household_pre_medicare_cost(age, spouse_age, inputs.num_children, medical_factor)
            )

        if phase.retired:
            if spending is None:
                spending = balance_at_retirement * inputs.withdrawal_rate
            if inputs.include_social_security and rules.social_security:
                social_security = couple_benefit(
                    inputs.ss_income_1,
                    inputs.ss_claim_age_1,
                    age,
                    inputs.ss_income_2,
                    inputs.ss_claim_age_2,
                    spouse_age,
                    schedule,
                ) * ledger.inflation_factor
            if rules.rmd:
                rmd_amount = compute_rmd(opening_pretax, age)
            health_cost = _retiree_health_cost(
                inputs, age, spouse_age, y - retirement_index, spending + social_security + rmd_amount, schedule
            )

            conversion_tax = 0.0
            if inputs.roth_conversions and rules.roth_conversions:
                base_income = taxes.taxable_social_security(social_security, 0.0, status, schedule)
                amount, cost = plan_conversion(
                    ledger.pretax, ledger.taxable, base_income, status, inputs.conversion_bracket, schedule
                )
                conversion, conversion_tax = ledger.convert_to_roth(amount, cost)
                total_conversions += conversion
                conversion_taxes += conversion_tax

            draw = ledger.withdraw(max(0.0, spending + health_cost - social_security), rmd_amount)
            withdrawal = draw.total
            other_pretax = draw.pretax - draw.rmd
            gross_other = other_pretax + draw.rmd + conversion + draw.realized_gain
            taxable_ss = taxes.taxable_social_security(social_security, gross_other, status, schedule)

            income_without_rmd = taxable_ss + conversion + other_pretax
            tax_without_rmd = taxes.ordinary_tax(income_without_rmd, status, schedule)
            tax_with_rmd = taxes.ordinary_tax(income_without_rmd + draw.rmd, status, schedule)
            tax["tax_ordinary"] = tax_without_rmd
            tax["tax_rmd"] = tax_with_rmd - tax_without_rmd

            ordinary_income = income_without_rmd + draw.rmd
            gains_tax = taxes.capital_gains_tax(draw.realized_gain, status, ordinary_income, schedule)
            gains_tax += taxes.niit(draw.realized_gain, status, ordinary_income + draw.realized_gain, schedule)
            tax["tax_capital_gains"] += gains_tax
            tax["tax_state"] = taxes.state_tax(
                other_pretax + draw.rmd + conversion + draw.realized_gain, inputs.state_tax_rate
            )

            # conversion tax was already paid from the taxable bucket
            paid_from_cash = (
                max(0.0, tax_with_rmd - conversion_tax) + gains_tax + tax["tax_state"]
            )
            cash = withdrawal + social_security - paid_from_cash
            reinvest = max(0.0, min(draw.rmd_excess, cash - spending - health_cost))
            ledger.reinvest(reinvest)
            after_tax_income = max(0.0, cash - reinvest)
            rmd_amount = draw.rmd

            if ledger.ruined and depletion_index is None:
                depletion_index = y
                logger.debug("Portfolio depleted at age %s (seed %s)", age, seed)

        elif phase is Phase.TERMINAL:
            withdrawal = _terminal_year(inputs, ledger, machine, y - life_years, tax, schedule)

        ledger.inflate(inflation[y])
        if phase.retired:
            if y1_after_tax_real is None:
                y1_after_tax_real = after_tax_income / ledger.inflation_factor
            spending *= 1.0 + inflation[y]

        nominal = ledger.nominal()
        real = ledger.real()
        records.append(
            YearRecord(
                year=y,
                age=age,
                spouse_age=spouse_age,
                phase=phase,
                taxable=nominal.taxable,
                pretax=nominal.pretax,
                roth=nominal.roth,
                emergency=nominal.emergency,
                total=nominal.total,
                taxable_real=real.taxable,
                pretax_real=real.pretax,
                roth_real=real.roth,
                total_real=real.total,
                rmd=rmd_amount,
                withdrawal=withdrawal,
                social_security=social_security,
                healthcare=health_cost,
                roth_conversion=conversion,
                after_tax_income=after_tax_income,
                inflation_factor=ledger.inflation_factor,
                ruined=ledger.ruined,
                **tax,
            )
        )
        if y == life_years - 1:
            eol_real = real.total

    if balance_at_retirement is None:
        balance_at_retirement = records[-1].total if records else 0.0

    if depletion_index is None:
        years_survived = 0
        depletion_age = None
    else:
        years_survived = max(0, depletion_index - retirement_index)
        depletion_age = inputs.current_age + depletion_index

    return SimulationResult(
        records=tuple(records),
        balance_at_retirement=float(balance_at_retirement),
        eol_real=float(eol_real),
        years_survived=years_survived,
        depletion_age=depletion_age,
        ruined=ledger.ruined,
        y1_after_tax_real=float(y1_after_tax_real or 0.0),
        total_roth_conversions=float(total_conversions),
        conversion_taxes_paid=float(conversion_taxes),
        estate_real=float(records[-1].total_real) if records else 0.0,
        seed=seed,
    )


def _working_year(
    inputs: SimulationInputs,
    ledger: AccountLedger,
    y: int,
    spouse_age: Optional[int],
    tax: Dict[str, float],
    schedule: taxes.TaxSchedule,
) -> float:
    """Add this year's contributions and tax the salary.  Returns take-home pay."""
    growth = (1.0 + inputs.income_growth_rate) ** y
    escalation = growth if inputs.escalate_contributions else 1.0
    spouse_working = spouse_age is not None and spouse_age < inputs.retirement_age

    c_taxable = inputs.contrib_taxable_1
    c_pretax = inputs.contrib_pretax_1
    c_roth = inputs.contrib_roth_1
    match = inputs.employer_match_1
    wages = [inputs.salary_1 * growth]
    if spouse_working:
        c_taxable += inputs.contrib_taxable_2
        c_pretax += inputs.contrib_pretax_2
        c_roth += inputs.contrib_roth_2
        match += inputs.employer_match_2
        wages.append(inputs.salary_2 * growth)

    c_taxable *= escalation
    c_pretax *= escalation
    c_roth *= escalation
    match *= escalation
    ledger.contribute(taxable=c_taxable, pretax=c_pretax + match, roth=c_roth)

    total_wages = sum(wages)
    if total_wages <= 0:
        return 0.0
    ordinary_income = max(0.0, total_wages - c_pretax)
    tax["tax_fica"] = sum(taxes.payroll_tax(w, schedule) for w in wages)
    tax["tax_ordinary"] = taxes.ordinary_tax(ordinary_income, inputs.filing_status, schedule)
    tax["tax_state"] = taxes.state_tax(ordinary_income, inputs.state_tax_rate)
    return max(0.0, ordinary_income - tax["tax_fica"] - tax["tax_ordinary"] - tax["tax_state"])


def _retiree_health_cost(
    inputs: SimulationInputs,
    age: int,
    spouse_age: Optional[int],
    years_retired: int,
    magi: float,
    schedule: taxes.TaxSchedule,
) -> float:
    """Medicare (with IRMAA on the estimated MAGI) plus expected long-term care."""
    medical_factor = healthcare.medical_inflation_factor(inputs.medical_inflation, years_retired)
    cost = 0.0
    if inputs.include_medicare:
        cost += healthcare.medicare_cost(
            age, spouse_age, inputs.medicare_premium, magi, inputs.filing_status, medical_factor, schedule
        )
    if inputs.include_ltc:
        cost += healthcare.ltc_cost(
            age,
            inputs.ltc_annual_cost,
            inputs.ltc_probability,
            inputs.ltc_onset_age,
            inputs.ltc_duration,
            medical_factor,
        )
    return cost


def _terminal_year(
    inputs: SimulationInputs,
    ledger: AccountLedger,
    machine: PhaseMachine,
    tail_year: int,
    tax: Dict[str, float],
    schedule: taxes.TaxSchedule,
) -> float:
    """Settle the estate and let heirs draw down the inherited pre-tax balance."""
    if machine.just_entered(Phase.TERMINAL):
        estate = taxes.estate_tax(ledger.total, inputs.filing_status, schedule)
        tax["tax_estate"] = ledger.settle(estate)

    window = min(INHERITED_IRA_YEARS, inputs.inheritance_tail_years)
    if tail_year >= window or ledger.pretax <= 0:
        return 0.0
    draw = ledger.take_pretax(ledger.pretax / (window - tail_year))
    # heirs are taxed as single filers
    heir_tax = taxes.ordinary_tax(draw, "single", schedule)
    tax["tax_ordinary"] = heir_tax
    ledger.reinvest(draw - heir_tax)
    return draw


__all__ = ["YearRecord", "SimulationResult", "run_single_simulation", "INHERITED_IRA_YEARS"]
