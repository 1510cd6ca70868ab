"""Simulation input record and builder.

Callers describe a household as a plain plan dict, usually sparse and
possibly containing junk values.  :meth:`SimulationInputs.from_plan` fills
every missing field from the documented defaults and clamps invalid
numbers, so the engine only ever sees a complete, frozen record.

Example
-------

>>> inputs = build_inputs(current_age=40, pretax_balance=250000)
>>> inputs.retirement_age, inputs.life_expectancy
(65, 95)
>>> build_inputs(current_age=float("nan")).current_age
35
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Optional

from .calculators.returns import SERIES_NAMES, FixedReturns, RandomWalkReturns, ReturnModel, return_model_from_plan
from .calculators.social_security import MAX_CLAIM_AGE, MIN_CLAIM_AGE

logger = logging.getLogger(__name__)

MAX_AGE = 120
DEFAULT_SEED = 12345
RATE_BOUNDS = (-0.99, 1.0)

_MARRIED_ALIASES = ("married", "married_joint", "mfj", "joint")


@dataclass(frozen=True)
class SimulationInputs:
    """Fully populated household plan.  All rates are fractions."""

    # personal
    filing_status: str = "single"
    current_age: int = 35
    spouse_age: Optional[int] = None
    retirement_age: int = 65
    life_expectancy: int = 95

    # balances
    taxable_balance: float = 0.0
    pretax_balance: float = 0.0
    roth_balance: float = 0.0

    # annual contributions per person
    contrib_taxable_1: float = 0.0
    contrib_taxable_2: float = 0.0
    contrib_pretax_1: float = 0.0
    contrib_pretax_2: float = 0.0
    contrib_roth_1: float = 0.0
    contrib_roth_2: float = 0.0
    employer_match_1: float = 0.0
    employer_match_2: float = 0.0

    # gross wages
    salary_1: float = 0.0
    salary_2: float = 0.0

    # rates
    return_rate: float = 0.07
    inflation_rate: float = 0.026
    state_tax_rate: float = 0.0
    withdrawal_rate: float = 0.04
    escalate_contributions: bool = False
    income_growth_rate: float = 0.0
    dividend_yield: float = 0.0

    # Social Security
    include_social_security: bool = False
    ss_income_1: float = 0.0
    ss_claim_age_1: int = 67
    ss_income_2: float = 0.0
    ss_claim_age_2: int = 67

    return_model: ReturnModel = FixedReturns(0.07)

    # inflation shock starting at retirement
    inflation_shock_rate: Optional[float] = None
    inflation_shock_years: int = 5

    roth_conversions: bool = False
    conversion_bracket: float = 0.24

    # healthcare; premiums are monthly, costs annual base-year dollars
    include_healthcare: bool = False
    num_children: int = 0
    include_medicare: bool = False
    medicare_premium: float = 400.0
    medical_inflation: float = 0.05
    include_ltc: bool = False
    ltc_annual_cost: float = 80000.0
    ltc_probability: float = 0.5
    ltc_duration: float = 2.5
    ltc_onset_age: int = 82

    # cash reserve, indexed to inflation and drawn only when the portfolio runs out
    emergency_fund: float = 0.0

    inheritance_tail_years: int = 5
    seed: int = DEFAULT_SEED

    @property
    def married(self) -> bool:
        return self.filing_status == "married"

    @property
    def horizon(self) -> int:
        """Number of year records a run produces."""
        return (self.life_expectancy - self.current_age) + self.inheritance_tail_years

    @classmethod
    def from_plan(cls, plan: Optional[Dict[str, Any]] = None) -> "SimulationInputs":
        """Build a complete record from a possibly sparse, untrusted plan dict."""
        return _build(dict(plan or {}))

    def with_changes(self, **changes: Any) -> "SimulationInputs":
        """Return a re-validated copy with ``changes`` applied."""
        plan = self.to_plan()
        plan.update(changes)
        return _build(plan)

    def to_plan(self) -> Dict[str, Any]:
        plan = {f.name: getattr(self, f.name) for f in fields(self)}
        model = _model_to_dict(self.return_model)
        if model.get("rate") == self.return_rate:
            # fixed model follows return_rate
            del model["rate"]
        plan["return_model"] = model
        return plan


def build_inputs(**overrides: Any) -> SimulationInputs:
    """Shorthand for ``SimulationInputs.from_plan(overrides)``."""
    return SimulationInputs.from_plan(overrides)


def _model_to_dict(model: ReturnModel) -> Dict[str, Any]:
    if isinstance(model, RandomWalkReturns):
        return {"mode": "random", "series": model.series, "basis": model.basis, "start_year": model.start_year}
    return {"mode": "fixed", "rate": model.rate}


def normalize_filing_status(value: Any) -> str:
    text = str(value or "").strip().lower()
    return "married" if text in _MARRIED_ALIASES else "single"


def _number(plan: Dict[str, Any], key: str, default: float, lo: float = -math.inf, hi: float = math.inf) -> float:
    raw = plan.get(key)
    value = float(default)
    if raw is not None:
        try:
            value = float(raw)
        except (TypeError, ValueError):
            logger.debug("Replacing invalid %s=%r with default %r", key, raw, default)
            value = float(default)
        if not math.isfinite(value):
            logger.debug("Replacing non-finite %s=%r with default %r", key, raw, default)
            value = float(default)
    if math.isnan(value):
        return value
    clamped = min(hi, max(lo, value))
    if clamped != value:
        logger.debug("Clamped %s from %r to %r", key, value, clamped)
    return clamped


def _age(plan: Dict[str, Any], key: str, default: int, lo: int, hi: int) -> int:
    return int(round(_number(plan, key, default, lo, hi)))


def _money(plan: Dict[str, Any], key: str) -> float:
    return _number(plan, key, 0.0, lo=0.0)


def _flag(plan: Dict[str, Any], key: str, default: bool = False) -> bool:
    raw = plan.get(key, default)
    if isinstance(raw, str):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    return bool(raw)


def _seed(plan: Dict[str, Any]) -> int:
    raw = plan.get("seed")
    if raw is None:
        return DEFAULT_SEED
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.debug("Replacing invalid seed=%r with default %r", raw, DEFAULT_SEED)
        return DEFAULT_SEED
    if not math.isfinite(value):
        return DEFAULT_SEED
    return abs(int(value))


def _return_model(plan: Dict[str, Any], return_rate: float) -> ReturnModel:
    try:
        model = return_model_from_plan(plan, default_rate=return_rate)
    except (TypeError, ValueError, AttributeError):
        logger.debug("Replacing invalid return_model=%r with fixed %r", plan.get("return_model"), return_rate)
        return FixedReturns(return_rate)

    if isinstance(model, RandomWalkReturns):
        if model.series not in SERIES_NAMES:
            logger.debug("Replacing unknown return series %r with %r", model.series, SERIES_NAMES[0])
            model = replace(model, series=SERIES_NAMES[0])
        if model.basis not in ("nominal", "real"):
            logger.debug("Replacing unknown return basis %r with 'nominal'", model.basis)
            model = replace(model, basis="nominal")
        return model

    rate = _number({"rate": model.rate}, "rate", return_rate, *RATE_BOUNDS)
    return model if rate == model.rate else FixedReturns(rate)


def _build(plan: Dict[str, Any]) -> SimulationInputs:
    status = normalize_filing_status(plan.get("filing_status", "single"))
    current_age = _age(plan, "current_age", 35, 0, MAX_AGE - 1)
    life_expectancy = _age(plan, "life_expectancy", 95, current_age + 1, MAX_AGE)
    retirement_age = _age(plan, "retirement_age", 65, current_age, life_expectancy)

    spouse_age = None
    if status == "married":
        spouse_age = _age(plan, "spouse_age", current_age, 0, MAX_AGE)

    return_rate = _number(plan, "return_rate", 0.07, *RATE_BOUNDS)
    shock_rate = _number(plan, "inflation_shock_rate", math.nan, -0.5, 1.0)
    if not math.isfinite(shock_rate):
        shock_rate = None

    return SimulationInputs(
        filing_status=status,
        current_age=current_age,
        spouse_age=spouse_age,
        retirement_age=retirement_age,
        life_expectancy=life_expectancy,
        taxable_balance=_money(plan, "taxable_balance"),
        pretax_balance=_money(plan, "pretax_balance"),
        roth_balance=_money(plan, "roth_balance"),
        contrib_taxable_1=_money(plan, "contrib_taxable_1"),
        contrib_taxable_2=_money(plan, "contrib_taxable_2"),
        contrib_pretax_1=_money(plan, "contrib_pretax_1"),
        contrib_pretax_2=_money(plan, "contrib_pretax_2"),
        contrib_roth_1=_money(plan, "contrib_roth_1"),
        contrib_roth_2=_money(plan, "contrib_roth_2"),
        employer_match_1=_money(plan, "employer_match_1"),
        employer_match_2=_money(plan, "employer_match_2"),
        salary_1=_money(plan, "salary_1"),
        salary_2=_money(plan, "salary_2"),
        return_rate=return_rate,
        inflation_rate=_number(plan, "inflation_rate", 0.026, -0.5, 1.0),
        state_tax_rate=_number(plan, "state_tax_rate", 0.0, 0.0, 0.5),
        withdrawal_rate=_number(plan, "withdrawal_rate", 0.04, 0.0, 1.0),
        escalate_contributions=_flag(plan, "escalate_contributions"),
        income_growth_rate=_number(plan, "income_growth_rate", 0.0, -0.5, 1.0),
        dividend_yield=_number(plan, "dividend_yield", 0.0, 0.0, 0.5),
        include_social_security=_flag(plan, "include_social_security"),
        ss_income_1=_money(plan, "ss_income_1"),
        ss_claim_age_1=_age(plan, "ss_claim_age_1", 67, MIN_CLAIM_AGE, MAX_CLAIM_AGE),
        ss_income_2=_money(plan, "ss_income_2"),
        ss_claim_age_2=_age(plan, "ss_claim_age_2", 67, MIN_CLAIM_AGE, MAX_CLAIM_AGE),
        return_model=_return_model(plan, return_rate),
        inflation_shock_rate=shock_rate,
        inflation_shock_years=_age(plan, "inflation_shock_years", 5, 0, MAX_AGE),
        roth_conversions=_flag(plan, "roth_conversions"),
        conversion_bracket=_number(plan, "conversion_bracket", 0.24, 0.0, 1.0),
        include_healthcare=_flag(plan, "include_healthcare"),
        num_children=_age(plan, "num_children", 0, 0, 20),
        include_medicare=_flag(plan, "include_medicare"),
        medicare_premium=_number(plan, "medicare_premium", 400.0, 0.0),
        medical_inflation=_number(plan, "medical_inflation", 0.05, -0.5, 1.0),
        include_ltc=_flag(plan, "include_ltc"),
        ltc_annual_cost=_number(plan, "ltc_annual_cost", 80000.0, 0.0),
        ltc_probability=_number(plan, "ltc_probability", 0.5, 0.0, 1.0),
        ltc_duration=_number(plan, "ltc_duration", 2.5, 0.0, 50.0),
        ltc_onset_age=_age(plan, "ltc_onset_age", 82, 0, MAX_AGE),
        emergency_fund=_money(plan, "emergency_fund"),
        inheritance_tail_years=_age(plan, "inheritance_tail_years", 5, 0, 50),
        seed=_seed(plan),
    )


__all__ = ["SimulationInputs", "build_inputs", "normalize_filing_status", "DEFAULT_SEED"]
