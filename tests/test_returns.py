"""Tests for the market return generators."""

import numpy as np
import pytest

from retirement_engine.calculators import returns


def test_fixed_returns_ignore_seed():
    model = returns.FixedReturns(0.05)
    assert np.allclose(model.factors(10), 1.05)
    assert np.array_equal(model.factors(5, seed=1), model.factors(5, seed=2))


def test_random_walk_is_deterministic_per_seed():
    model = returns.RandomWalkReturns()
    assert np.array_equal(model.factors(40, seed=7), model.factors(40, seed=7))


def test_random_walk_seeds_diverge():
    model = returns.RandomWalkReturns()
    assert not np.array_equal(model.factors(50, seed=1), model.factors(50, seed=2))


def test_random_walk_respects_cap():
    factors = returns.RandomWalkReturns().factors(500, seed=3)
    assert factors.min() >= 0.85 - 1e-12
    assert factors.max() <= 1.15 + 1e-12


def test_named_series():
    full = returns.load_series("sp500")
    capped = returns.load_series("sp500_capped")
    assert len(capped.values_pct) == 97
    assert len(full.values_pct) == 194
    assert full.values_pct[97] == pytest.approx(full.values_pct[0] / 2)
    assert max(abs(v) for v in capped.values_pct) <= 15.0


def test_unknown_series_raises():
    with pytest.raises(ValueError):
        returns.RandomWalkReturns(series="nikkei").factors(3, seed=1)


def test_historical_replay_from_start_year():
    model = returns.RandomWalkReturns(series="sp500_capped", start_year=1928)
    # 1928 +43.81 and 1930 -25.12 are capped at +/-15
    assert model.factors(3).tolist() == pytest.approx([1.15, 0.917, 0.85])
    assert np.array_equal(model.factors(3, seed=1), model.factors(3, seed=99))


def test_historical_replay_wraps():
    series = returns.load_series("sp500")
    factors = returns.RandomWalkReturns(start_year=2024).factors(2)
    expected = [1 + series.values_pct[96] / 100, 1 + series.values_pct[0] / 100]
    assert factors.tolist() == pytest.approx(expected)


def test_real_basis_reinflates():
    model = returns.RandomWalkReturns(start_year=1928, basis="real")
    assert model.factors(1, inflation=[0.03])[0] == pytest.approx(1.15 * 1.03)


def test_inflation_path_with_shock():
    path = returns.inflation_path(10, 0.03, shock_rate=0.08, shock_start=3, shock_years=2)
    assert path.tolist() == pytest.approx([0.03] * 3 + [0.08] * 2 + [0.03] * 5)
    assert returns.inflation_path(4, 0.02).tolist() == pytest.approx([0.02] * 4)


def test_return_model_from_plan():
    assert returns.return_model_from_plan({}) == returns.FixedReturns(0.07)
    assert returns.return_model_from_plan({"return_model": "random"}) == returns.RandomWalkReturns()
    model = returns.return_model_from_plan(
        {"return_model": {"mode": "random", "series": "sp500_capped", "start_year": 1960}}
    )
    assert model == returns.RandomWalkReturns(series="sp500_capped", start_year=1960)
