"""Household retirement trajectory engine.

Build a plan with :func:`build_inputs` (or
:meth:`SimulationInputs.from_plan`), run one projection with
:func:`run_single_simulation`, or a distribution of outcomes with
:func:`run_monte_carlo`.  The ``calculators`` sub-package holds the tax,
RMD, Social Security, return and FI rules the engine is built from.
"""

from . import calculators  # noqa: F401
from .engine import SimulationResult, YearRecord, run_single_simulation
from .inputs import SimulationInputs, build_inputs
from .monte_carlo import MonteCarloSummary, max_sustainable_withdrawal_rate, run_monte_carlo
from .phases import Phase

__version__ = "0.1.0"

__all__ = [
    "calculators",
    "Phase",
    "SimulationInputs",
    "build_inputs",
    "YearRecord",
    "SimulationResult",
    "run_single_simulation",
    "MonteCarloSummary",
    "run_monte_carlo",
    "max_sustainable_withdrawal_rate",
]
