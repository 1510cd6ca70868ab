"""Lifecycle phases.

A household moves through four phases, strictly in order and driven only by
age::

    WORKING -> EARLY_RETIREMENT -> RMD -> TERMINAL

``TERMINAL`` covers the inheritance tail after life expectancy.  Each phase
carries a :class:`PhaseRules` record saying which cash flows and tax rules
are active that year.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .calculators.rmd import RMD_START_AGE


class Phase(Enum):
    WORKING = "working"
    EARLY_RETIREMENT = "early_retirement"
    RMD = "rmd"
    TERMINAL = "terminal"

    @property
    def order(self) -> int:
        return _ORDER[self]

    @property
    def rules(self) -> "PhaseRules":
        return PHASE_RULES[self]

    @property
    def retired(self) -> bool:
        return self in (Phase.EARLY_RETIREMENT, Phase.RMD)


_ORDER = {p: i for i, p in enumerate(Phase)}


@dataclass(frozen=True)
class PhaseRules:
    contributions: bool
    salary: bool
    social_security: bool
    spending_withdrawals: bool
    rmd: bool
    roth_conversions: bool
    estate_settlement: bool


PHASE_RULES = {
    Phase.WORKING: PhaseRules(
        contributions=True,
        salary=True,
        social_security=False,
        spending_withdrawals=False,
        rmd=False,
        roth_conversions=False,
        estate_settlement=False,
    ),
    Phase.EARLY_RETIREMENT: PhaseRules(
        contributions=False,
        salary=False,
        social_security=True,
        spending_withdrawals=True,
        rmd=False,
        roth_conversions=True,
        estate_settlement=False,
    ),
    Phase.RMD: PhaseRules(
        contributions=False,
        salary=False,
        social_security=True,
        spending_withdrawals=True,
        rmd=True,
        roth_conversions=False,
        estate_settlement=False,
    ),
    Phase.TERMINAL: PhaseRules(
        contributions=False,
        salary=False,
        social_security=False,
        spending_withdrawals=False,
        rmd=False,
        roth_conversions=False,
        estate_settlement=True,
    ),
}


def phase_for_age(age: int, retirement_age: int, life_expectancy: int, rmd_start_age: int = RMD_START_AGE) -> Phase:
    """Return the phase that applies at ``age``."""
    if age >= life_expectancy:
        return Phase.TERMINAL
    if age < retirement_age:
        return Phase.WORKING
    if age < rmd_start_age:
        return Phase.EARLY_RETIREMENT
    return Phase.RMD


class PhaseMachine:
    """Year-by-year phase tracker that refuses to move backwards.

    Phases may be skipped (retiring after 73 goes straight from ``WORKING``
    to ``RMD``) but never re-entered.
    """

    def __init__(self, retirement_age: int, life_expectancy: int, rmd_start_age: int = RMD_START_AGE):
        self.retirement_age = retirement_age
        self.life_expectancy = life_expectancy
        self.rmd_start_age = rmd_start_age
        self.phase: Optional[Phase] = None
        self.age: Optional[int] = None
        self.entered_at: dict = {}

    def advance(self, age: int) -> Phase:
        """Move to ``age`` and return its phase.

        Raises
        ------
        ValueError
            If ``age`` does not increase or the phase would move backwards.
        """
        if self.age is not None and age <= self.age:
            raise ValueError(f"phase machine cannot move from age {self.age} to {age}")
        nxt = phase_for_age(age, self.retirement_age, self.life_expectancy, self.rmd_start_age)
        if self.phase is not None and nxt.order < self.phase.order:
            raise ValueError(f"phase cannot move backwards from {self.phase.name} to {nxt.name}")
        if nxt is not self.phase:
            self.entered_at[nxt] = age
        self.phase = nxt
        self.age = age
        return nxt

    def just_entered(self, phase: Phase) -> bool:
        """True in the first year spent in ``phase``."""
        return self.phase is phase and self.entered_at.get(phase) == self.age


__all__ = ["Phase", "PhaseRules", "PHASE_RULES", "phase_for_age", "PhaseMachine"]
