"""Market return generators.

A return model turns a horizon length, a seed and the trial's inflation path
into an array of gross annual factors (``1.07`` for a 7% year).  Two models
are provided:

* :class:`FixedReturns` yields the same factor every year and ignores the
  seed, which makes it the illustrative deterministic projection.
* :class:`RandomWalkReturns` bootstraps annual returns from a named
  historical series with ``numpy.random.default_rng(seed)``, or replays the
  series chronologically from ``start_year`` when one is given.

Historical data is the S&P 500 total return for 1928–2024, capped at ±15%
to limit extreme compounding.  The ``sp500`` series adds a half-value copy of
every capped year (194 points) for more moderate draws; ``sp500_capped``
holds the 97 capped years only.

Example
-------

>>> FixedReturns(0.05).factors(3).tolist()
[1.05, 1.05, 1.05]
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

_DEFAULT_RETURNS_PATH = Path(__file__).resolve().parent.parent / "data" / "market_returns.json"

SERIES_NAMES = ("sp500", "sp500_capped")


@dataclass(frozen=True)
class HistoricalSeries:
    name: str
    start_year: int
    values_pct: Tuple[float, ...]
    chronological_years: int


@lru_cache(maxsize=None)
def _raw_sp500(path: Optional[Path] = None) -> Dict:
    with open(path or _DEFAULT_RETURNS_PATH, "r", encoding="utf-8") as f:
        return json.load(f)["sp500"]


@lru_cache(maxsize=None)
def load_series(name: str = "sp500") -> HistoricalSeries:
    """Return the named return series (values in percent).

    Raises
    ------
    ValueError
        If ``name`` is not a known series or the data file holds no values.
    """
    if name not in SERIES_NAMES:
        raise ValueError(f"unknown return series: {name!r}")
    raw = _raw_sp500()
    cap = float(raw["cap_pct"])
    capped = tuple(max(-cap, min(cap, float(v))) for v in raw["annual_pct"])
    if not capped:
        raise ValueError(f"return series {name!r} is empty")
    values = capped + tuple(v / 2 for v in capped) if name == "sp500" else capped
    return HistoricalSeries(name, int(raw["start_year"]), values, len(capped))


def inflation_path(
    years: int,
    base_rate: float,
    shock_rate: Optional[float] = None,
    shock_start: int = 0,
    shock_years: int = 0,
) -> np.ndarray:
    """Annual inflation rates for a horizon, with an optional shock window.

    The shock replaces the base rate for ``shock_years`` years starting at
    year index ``shock_start``.
    """
    rates = np.full(max(0, int(years)), float(base_rate))
    if shock_rate is not None and shock_years > 0:
        lo = max(0, int(shock_start))
        rates[lo:lo + int(shock_years)] = float(shock_rate)
    return rates


@dataclass(frozen=True)
class FixedReturns:
    """Deterministic return: ``rate`` every year."""

    rate: float = 0.07

    def factors(self, years: int, seed: Optional[int] = None, inflation: Optional[Sequence[float]] = None) -> np.ndarray:
        return np.full(max(0, int(years)), 1.0 + self.rate)


@dataclass(frozen=True)
class RandomWalkReturns:
    """Bootstrap or historical replay of a named return series.

    ``basis="real"`` treats the series values as after-inflation returns;
    they are converted back to nominal factors with the trial's inflation
    path so every bucket stays in nominal dollars.
    """

    series: str = "sp500"
    basis: str = "nominal"
    start_year: Optional[int] = None

    def factors(self, years: int, seed: Optional[int] = None, inflation: Optional[Sequence[float]] = None) -> np.ndarray:
        data = load_series(self.series)
        pct = np.asarray(data.values_pct)
        years = max(0, int(years))

        if self.start_year is not None:
            # Replay wraps within the chronological years only.
            n = data.chronological_years
            offset = (int(self.start_year) - data.start_year) % n
            idx = (offset + np.arange(years)) % n
        else:
            rng = np.random.default_rng(seed)
            idx = rng.integers(0, len(pct), size=years)

        out = 1.0 + pct[idx] / 100.0
        if self.basis == "real":
            infl = np.zeros(years) if inflation is None else np.asarray(inflation, dtype=float)[:years]
            out = out * (1.0 + infl)
        return out


ReturnModel = Union[FixedReturns, RandomWalkReturns]


def return_model_from_plan(plan: Dict, default_rate: float = 0.07) -> ReturnModel:
    """Build a return model from a plan's ``return_model`` entry.

    Accepts either a ready model, a dict such as ``{"mode": "random",
    "series": "sp500"}`` / ``{"mode": "fixed", "rate": 0.06}``, or nothing
    (fixed at ``default_rate``).
    """
    config = plan.get("return_model")
    if isinstance(config, (FixedReturns, RandomWalkReturns)):
        return config
    if isinstance(config, str):
        config = {"mode": config}
    config = config or {}
    mode = str(config.get("mode", "fixed")).lower()
    if mode in ("random", "walk", "historical"):
        start = config.get("start_year")
        return RandomWalkReturns(
            series=str(config.get("series", "sp500")),
            basis="real" if config.get("basis") == "real" else "nominal",
            start_year=None if start is None else int(start),
        )
    return FixedReturns(float(config.get("rate", default_rate)))


__all__ = [
    "SERIES_NAMES",
    "HistoricalSeries",
    "load_series",
    "inflation_path",
    "FixedReturns",
    "RandomWalkReturns",
    "ReturnModel",
    "return_model_from_plan",
]
