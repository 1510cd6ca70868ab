"""Tests for the simulation input builder."""

import dataclasses

import pytest

from retirement_engine.calculators.returns import FixedReturns, RandomWalkReturns
from retirement_engine.inputs import DEFAULT_SEED, SimulationInputs, build_inputs


def test_defaults_fill_every_field():
    inputs = SimulationInputs.from_plan({})
    assert inputs.filing_status == "single"
    assert inputs.current_age == 35
    assert inputs.retirement_age == 65
    assert inputs.life_expectancy == 95
    assert inputs.spouse_age is None
    assert inputs.return_model == FixedReturns(0.07)
    assert inputs.inheritance_tail_years == 5
    assert inputs.seed == DEFAULT_SEED


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "junk", [1, 2]])
def test_invalid_numbers_fall_back_to_defaults(bad):
    inputs = build_inputs(current_age=bad, return_rate=bad, pretax_balance=bad)
    assert inputs.current_age == 35
    assert inputs.return_rate == 0.07
    assert inputs.pretax_balance == 0.0


def test_ages_are_clamped():
    inputs = build_inputs(current_age=50, retirement_age=40, life_expectancy=150)
    assert inputs.retirement_age == 50
    assert inputs.life_expectancy == 120

    inputs = build_inputs(current_age=80, life_expectancy=70)
    assert inputs.life_expectancy == 81
    assert inputs.retirement_age == 80


def test_claim_ages_are_clamped():
    inputs = build_inputs(ss_claim_age_1=58, ss_claim_age_2=75)
    assert inputs.ss_claim_age_1 == 62
    assert inputs.ss_claim_age_2 == 70


def test_negative_balances_clamped():
    assert build_inputs(taxable_balance=-5000).taxable_balance == 0.0


def test_married_aliases_and_spouse_default():
    inputs = build_inputs(filing_status="married_joint", current_age=40)
    assert inputs.married
    assert inputs.spouse_age == 40
    assert build_inputs(filing_status="MFJ", spouse_age=38).spouse_age == 38


def test_inputs_are_frozen():
    inputs = build_inputs()
    with pytest.raises(dataclasses.FrozenInstanceError):
        inputs.current_age = 50


def test_with_changes_revalidates():
    inputs = build_inputs(current_age=40)
    older = inputs.with_changes(retirement_age=30)
    assert older.retirement_age == 40
    assert inputs.retirement_age == 65


def test_fixed_model_follows_return_rate():
    inputs = build_inputs(return_rate=0.05)
    assert inputs.return_model == FixedReturns(0.05)
    assert inputs.with_changes(return_rate=0.03).return_model == FixedReturns(0.03)


def test_random_model_from_plan():
    inputs = build_inputs(return_model={"mode": "random", "series": "sp500"})
    assert inputs.return_model == RandomWalkReturns(series="sp500")
    assert inputs.with_changes(seed=9).return_model == inputs.return_model


def test_seed_handling():
    assert build_inputs(seed=-42).seed == 42
    assert build_inputs(seed="abc").seed == DEFAULT_SEED


def test_horizon():
    inputs = build_inputs(current_age=35, life_expectancy=90)
    assert inputs.horizon == 55 + 5


def test_inflation_shock_optional():
    assert build_inputs().inflation_shock_rate is None
    assert build_inputs(inflation_shock_rate=float("nan")).inflation_shock_rate is None
    assert build_inputs(inflation_shock_rate=0.08).inflation_shock_rate == 0.08


def test_unknown_series_falls_back_to_default():
    inputs = build_inputs(return_model={"mode": "random", "series": "bogus"})
    assert inputs.return_model == RandomWalkReturns(series="sp500")


def test_ready_random_model_is_repaired():
    model = RandomWalkReturns(series="bogus", basis="weird", start_year=1950)
    inputs = build_inputs(return_model=model)
    assert inputs.return_model == RandomWalkReturns(series="sp500", basis="nominal", start_year=1950)


@pytest.mark.parametrize(
    "rate, expected",
    [(1e6, 1.0), (-5.0, -0.99), (0.05, 0.05), (float("nan"), 0.07), ("junk", 0.07)],
)
def test_fixed_model_rate_is_clamped(rate, expected):
    inputs = build_inputs(return_model={"mode": "fixed", "rate": rate})
    assert inputs.return_model == FixedReturns(expected)


def test_ready_fixed_model_is_clamped():
    assert build_inputs(return_model=FixedReturns(50.0)).return_model == FixedReturns(1.0)


def test_healthcare_defaults_and_clamping():
    inputs = build_inputs()
    assert not (inputs.include_healthcare or inputs.include_medicare or inputs.include_ltc)
    assert inputs.medicare_premium == 400.0
    assert inputs.medical_inflation == 0.05
    assert inputs.emergency_fund == 0.0

    inputs = build_inputs(ltc_probability=3, medicare_premium=-10, num_children=-2, emergency_fund="junk")
    assert inputs.ltc_probability == 1.0
    assert inputs.medicare_premium == 0.0
    assert inputs.num_children == 0
    assert inputs.emergency_fund == 0.0
