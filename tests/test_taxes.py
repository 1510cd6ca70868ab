"""Unit tests for the taxes module.

These tests verify the federal calculations against the embedded 2026
tables for both filing statuses.
"""

import math

import pytest

from retirement_engine.calculators import taxes as tax_calc


def test_federal_tax_example():
    """Federal tax on $60k of ordinary income for a single filer (2026)."""
    tax = tax_calc.ordinary_tax(60000)
    # 43 900 taxable: 10% of 12 400 + 12% of 31 500
    assert math.isclose(tax, 5020.0, rel_tol=1e-9)


def test_federal_married():
    """Married filers use the wider brackets and larger deduction."""
    tax = tax_calc.ordinary_tax(60000, "married")
    assert math.isclose(tax, 2840.0, rel_tol=1e-9)


@pytest.mark.parametrize("status", ["single", "married"])
def test_zero_at_or_below_deduction(status):
    deduction = tax_calc.standard_deduction(status)
    assert tax_calc.ordinary_tax(deduction, status) == 0.0
    assert tax_calc.ordinary_tax(deduction / 2, status) == 0.0
    assert tax_calc.ordinary_tax(deduction + 100, status) > 0.0


@pytest.mark.parametrize("status", ["single", "married"])
def test_ordinary_tax_non_decreasing(status):
    incomes = [0, 10000, 16100, 32200, 50000, 120000, 250000, 600000, 1000000, 5000000]
    amounts = [tax_calc.ordinary_tax(i, status) for i in incomes]
    assert amounts == sorted(amounts)


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), -5000, None, "abc"])
def test_invalid_income_is_zero(bad):
    assert tax_calc.ordinary_tax(bad) == 0.0


def test_unknown_status_uses_single():
    assert tax_calc.ordinary_tax(80000, "head_of_household") == tax_calc.ordinary_tax(80000, "single")


def test_capital_gains_tax_example():
    """$100k of gains with no other income: 0% up to 49 450, then 15%."""
    tax = tax_calc.capital_gains_tax(100000, "single", 0.0)
    assert math.isclose(tax, 7582.5, rel_tol=1e-9)


def test_capital_gains_stack_on_ordinary_income():
    """Gains above the 0% band once ordinary income fills it."""
    tax = tax_calc.capital_gains_tax(10000, "single", ordinary_income=100000)
    assert math.isclose(tax, 1500.0, rel_tol=1e-9)


def test_niit_applies_above_threshold():
    assert tax_calc.niit(50000, "single", magi=150000) == 0.0
    assert math.isclose(tax_calc.niit(50000, "single", magi=230000), 1140.0, rel_tol=1e-9)


def test_payroll_tax():
    assert math.isclose(tax_calc.payroll_tax(100000), 7650.0, rel_tol=1e-9)
    # wage base caps social security; additional medicare above 200k
    assert math.isclose(tax_calc.payroll_tax(250000), 11439.0 + 3625.0 + 450.0, rel_tol=1e-9)


def test_state_tax_flat_rate():
    assert math.isclose(tax_calc.state_tax(100000, 0.05), 5000.0, rel_tol=1e-9)
    assert tax_calc.state_tax(-100, 0.05) == 0.0


def test_taxable_social_security_tiers():
    # below tier 1
    assert tax_calc.taxable_social_security(20000, 10000, "single") == 0.0
    # between tiers: half the excess over 25 000
    assert math.isclose(tax_calc.taxable_social_security(20000, 20000, "single"), 2500.0)
    # above tier 2: 4 500 from the first band plus 85% of 1 000
    assert math.isclose(tax_calc.taxable_social_security(30000, 20000, "single"), 5350.0)
    # never more than 85% of the benefit
    assert math.isclose(tax_calc.taxable_social_security(30000, 1e6, "single"), 25500.0)


def test_estate_tax():
    assert math.isclose(tax_calc.estate_tax(20e6, "single"), 2e6, rel_tol=1e-9)
    assert tax_calc.estate_tax(20e6, "married") == 0.0


def test_schedule_is_cached_and_immutable():
    schedule = tax_calc.load_tax_schedule()
    assert schedule is tax_calc.load_tax_schedule()
    assert schedule.single.standard_deduction == 16100
    with pytest.raises(Exception):
        schedule.niit_rate = 0.5
