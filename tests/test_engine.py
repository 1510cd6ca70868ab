"""Tests for the single-trial simulation orchestrator."""

import dataclasses
import math

import numpy as np
import pytest

from retirement_engine import Phase, build_inputs, run_single_simulation


class _ExplodingReturns:
    def factors(self, years, seed=None, inflation=None):
        raise RuntimeError("market data unavailable")


def _base_plan() -> dict:
    return {
        "current_age": 35,
        "retirement_age": 65,
        "life_expectancy": 90,
        "pretax_balance": 100000,
        "contrib_pretax_1": 10000,
        "return_rate": 0.07,
        "inflation_rate": 0.03,
        "seed": 42,
    }


def _depleting_plan() -> dict:
    return {
        "current_age": 60,
        "retirement_age": 60,
        "life_expectancy": 70,
        "taxable_balance": 100000,
        "withdrawal_rate": 0.5,
        "return_rate": 0.07,
    }


@pytest.mark.parametrize(
    "current_age, life_expectancy, tail",
    [(35, 90, 5), (60, 95, 0), (70, 71, 3), (20, 120, 10)],
)
def test_record_count(current_age, life_expectancy, tail):
    inputs = build_inputs(current_age=current_age, life_expectancy=life_expectancy, inheritance_tail_years=tail)
    result = run_single_simulation(inputs)
    assert not result.failed
    assert len(result.records) == (life_expectancy - current_age) + tail
    assert result.ages.tolist() == list(range(current_age, current_age + len(result.records)))


def test_accumulation_scenario():
    """35 to 65 with 10k/yr saved: 30 working years and positive net growth."""
    result = run_single_simulation(build_inputs(**_base_plan()), seed=42)
    working = [r for r in result.records if r.phase is Phase.WORKING]
    assert len(working) == 30
    assert result.records[30].phase is Phase.EARLY_RETIREMENT
    assert result.balance_at_retirement > 100000 + 10000 * 30
    assert result.records[29].total == pytest.approx(result.balance_at_retirement)


def test_balances_never_negative():
    for plan in (_base_plan(), _depleting_plan()):
        result = run_single_simulation(build_inputs(**plan))
        for r in result.records:
            assert min(r.taxable, r.pretax, r.roth) >= 0.0


def test_ruin_is_monotonic_and_zeroes_buckets():
    result = run_single_simulation(build_inputs(**_depleting_plan()))
    assert result.ruined
    assert result.depletion_age == 62
    assert result.years_survived == 2
    first = next(i for i, r in enumerate(result.records) if r.ruined)
    for r in result.records[first:]:
        assert r.ruined
        assert r.taxable == r.pretax == r.roth == 0.0


def test_never_depleted():
    result = run_single_simulation(build_inputs(**_base_plan()))
    assert not result.ruined
    assert result.years_survived == 0
    assert result.depletion_age is None
    assert result.eol_real > 0
    assert result.y1_after_tax_real > 0


def test_deterministic_for_same_seed():
    plan = dict(_base_plan(), return_model={"mode": "random"})
    inputs = build_inputs(**plan)
    assert run_single_simulation(inputs, seed=7) == run_single_simulation(inputs, seed=7)


def test_random_walk_seeds_diverge():
    inputs = build_inputs(**dict(_base_plan(), return_model={"mode": "random"}))
    a = run_single_simulation(inputs, seed=1).balances_nominal
    b = run_single_simulation(inputs, seed=2).balances_nominal
    assert not np.array_equal(a, b)


def test_fixed_mode_ignores_seed():
    inputs = build_inputs(**_base_plan())
    a = run_single_simulation(inputs, seed=1)
    b = run_single_simulation(inputs, seed=2)
    assert np.array_equal(a.balances_nominal, b.balances_nominal)
    assert np.array_equal(a.balances_real, b.balances_real)


def test_inputs_not_mutated():
    inputs = build_inputs(**_base_plan())
    snapshot = inputs.to_plan()
    run_single_simulation(inputs)
    assert inputs.to_plan() == snapshot


def test_real_balances_deflated_by_inflation():
    result = run_single_simulation(build_inputs(**_base_plan()))
    for r in result.records:
        assert r.total_real == pytest.approx(r.total / r.inflation_factor)
    assert result.records[0].inflation_factor == pytest.approx(1.03)


def test_rmd_only_from_start_age():
    plan = dict(_base_plan(), current_age=60, retirement_age=62, pretax_balance=1_000_000, contrib_pretax_1=0)
    result = run_single_simulation(build_inputs(**plan))
    for r in result.records:
        if r.age < 73:
            assert r.rmd == 0.0
    at_73 = next(r for r in result.records if r.age == 73)
    assert at_73.phase is Phase.RMD
    assert at_73.rmd > 0
    assert at_73.tax_rmd > 0


def test_social_security_only_in_retirement():
    plan = dict(
        _base_plan(),
        current_age=60,
        retirement_age=63,
        include_social_security=True,
        ss_income_1=80000,
        ss_claim_age_1=67,
    )
    result = run_single_simulation(build_inputs(**plan))
    for r in result.records:
        if r.age < 67 or r.phase is Phase.TERMINAL:
            assert r.social_security == 0.0
        else:
            assert r.social_security > 0.0


def test_salary_is_taxed_while_working():
    plan = dict(_base_plan(), salary_1=100000, state_tax_rate=0.05)
    first = run_single_simulation(build_inputs(**plan)).records[0]
    assert first.tax_fica == pytest.approx(7650.0)
    # 10k pre-tax contribution lowers ordinary income to 90k
    assert first.tax_state == pytest.approx(4500.0)
    assert first.tax_ordinary > 0
    assert first.after_tax_income == pytest.approx(90000 - 7650 - 4500 - first.tax_ordinary)


def test_roth_conversions_before_rmd_age():
    plan = {
        "current_age": 60,
        "retirement_age": 60,
        "life_expectancy": 90,
        "pretax_balance": 1_000_000,
        "taxable_balance": 500_000,
        "roth_conversions": True,
        "conversion_bracket": 0.22,
    }
    result = run_single_simulation(build_inputs(**plan))
    assert result.total_roth_conversions > 0
    assert result.conversion_taxes_paid > 0
    for r in result.records:
        if r.phase is not Phase.EARLY_RETIREMENT:
            assert r.roth_conversion == 0.0
    assert result.records[0].roth > 0


def test_inheritance_tail_drains_pretax():
    plan = {
        "current_age": 80,
        "retirement_age": 80,
        "life_expectancy": 85,
        "pretax_balance": 1_000_000,
        "inheritance_tail_years": 5,
    }
    result = run_single_simulation(build_inputs(**plan))
    tail = result.records[-5:]
    assert all(r.phase is Phase.TERMINAL for r in tail)
    assert tail[-1].pretax == 0.0
    assert tail[0].withdrawal > 0
    assert result.estate_real > 0


def test_estate_tax_settled_once():
    plan = {
        "current_age": 88,
        "retirement_age": 88,
        "life_expectancy": 90,
        "taxable_balance": 40_000_000,
        "withdrawal_rate": 0.0,
    }
    result = run_single_simulation(build_inputs(**plan))
    estate_taxes = [r.tax_estate for r in result.records]
    assert estate_taxes[2] > 0
    assert sum(1 for t in estate_taxes if t > 0) == 1


def test_failure_is_contained():
    inputs = dataclasses.replace(build_inputs(), return_model=_ExplodingReturns())
    result = run_single_simulation(inputs, seed=3)
    assert result.failed
    assert "RuntimeError" in result.error
    assert result.records == ()
    assert result.seed == 3
    assert math.isfinite(result.eol_real)


def test_to_frame():
    result = run_single_simulation(build_inputs(**_base_plan()))
    frame = result.to_frame()
    assert len(frame) == len(result.records)
    assert frame["phase"].iloc[0] == "working"
    assert frame["total"].iloc[-1] == pytest.approx(result.records[-1].total)


def test_unknown_series_still_simulates():
    inputs = build_inputs(**dict(_base_plan(), return_model={"mode": "random", "series": "bogus"}))
    result = run_single_simulation(inputs, seed=1)
    assert not result.failed
    assert len(result.records) == inputs.horizon


def test_huge_fixed_rate_is_clamped_not_failed():
    inputs = build_inputs(
        current_age=30, life_expectancy=100, pretax_balance=1000, return_model={"mode": "fixed", "rate": 1e6}
    )
    result = run_single_simulation(inputs)
    assert not result.failed
    assert math.isfinite(result.eol_real)


def test_state_tax_includes_roth_conversion():
    plan = {
        "current_age": 60,
        "retirement_age": 60,
        "life_expectancy": 90,
        "pretax_balance": 1_000_000,
        "taxable_balance": 500_000,
        "roth_conversions": True,
        "conversion_bracket": 0.22,
        "state_tax_rate": 0.05,
    }
    first = run_single_simulation(build_inputs(**plan)).records[0]
    assert first.roth_conversion > 0
    assert first.tax_state >= first.roth_conversion * 0.05


def _retiree_plan() -> dict:
    return {
        "current_age": 65,
        "retirement_age": 65,
        "life_expectancy": 90,
        "taxable_balance": 1_000_000,
        "withdrawal_rate": 0.04,
        "return_rate": 0.05,
        "inheritance_tail_years": 0,
    }


def test_medicare_premium_adds_to_withdrawal():
    base = run_single_simulation(build_inputs(**_retiree_plan()))
    covered = run_single_simulation(build_inputs(**dict(_retiree_plan(), include_medicare=True)))
    assert base.records[0].healthcare == 0.0
    assert base.records[0].withdrawal == pytest.approx(40000.0)
    assert covered.records[0].healthcare == pytest.approx(400 * 12)
    assert covered.records[0].withdrawal == pytest.approx(40000.0 + 4800.0)
    # premiums follow medical inflation, not general inflation
    assert covered.records[1].healthcare == pytest.approx(4800.0 * 1.05)
    assert covered.eol_real < base.eol_real


def test_irmaa_surcharge_on_high_income():
    plan = dict(_retiree_plan(), taxable_balance=10_000_000, withdrawal_rate=0.02, include_medicare=True)
    first = run_single_simulation(build_inputs(**plan)).records[0]
    # 200k of spending lands in the fourth single tier
    assert first.healthcare == pytest.approx((400 + 324.60) * 12)


def test_medicare_doubles_once_spouse_qualifies():
    plan = dict(_retiree_plan(), filing_status="married", spouse_age=63, include_medicare=True)
    records = run_single_simulation(build_inputs(**plan)).records
    assert records[0].healthcare == pytest.approx(4800.0)
    assert records[2].healthcare == pytest.approx(2 * 4800.0 * 1.05 ** 2)


def test_long_term_care_window():
    plan = dict(_retiree_plan(), current_age=80, retirement_age=80, include_ltc=True)
    records = run_single_simulation(build_inputs(**plan)).records
    charged = [r.age for r in records if r.healthcare > 0]
    assert charged == [82, 83, 84]
    assert records[2].healthcare == pytest.approx(80000 * 0.5 * 1.05 ** 2)


def test_pre_medicare_premiums_paid_from_taxable():
    plan = {
        "current_age": 40,
        "retirement_age": 45,
        "life_expectancy": 80,
        "taxable_balance": 100_000,
        "return_rate": 0.0,
        "include_healthcare": True,
    }
    records = run_single_simulation(build_inputs(**plan)).records
    assert records[0].healthcare == pytest.approx(8400.0)
    assert records[0].taxable == pytest.approx(100_000 - 8400.0)
    assert records[1].healthcare == pytest.approx(8400.0 * 1.05)
    assert run_single_simulation(build_inputs(**dict(plan, include_healthcare=False))).records[0].healthcare == 0.0


def test_emergency_fund_covers_spending_when_portfolio_is_empty():
    plan = {
        "current_age": 60,
        "retirement_age": 60,
        "life_expectancy": 68,
        "emergency_fund": 50_000,
        "withdrawal_rate": 0.1,
        "inflation_rate": 0.026,
        "inheritance_tail_years": 0,
    }
    result = run_single_simulation(build_inputs(**plan))
    assert not result.ruined
    assert all(r.withdrawal > 0 for r in result.records)
    assert result.records[0].emergency == pytest.approx(45_000 * 1.026)
    assert result.records[0].total_real == pytest.approx(45_000)
