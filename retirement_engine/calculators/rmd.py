"""Required Minimum Distribution (RMD) calculator.

Pre-tax accounts must begin distributing at ``RMD_START_AGE`` (73 under
SECURE Act 2.0 for the cohorts the engine models).  The annual RMD is the
prior year-end balance divided by the distribution period from the IRS
Uniform Lifetime Table (2022 update, Publication 590-B).

Example
-------

>>> round(compute_rmd(balance=100000, age=73), 2)
3773.58

>>> compute_rmd(100000, 72)
0.0
"""

from __future__ import annotations

import math
from types import MappingProxyType

RMD_START_AGE = 73

UNIFORM_LIFETIME_TABLE = MappingProxyType({
    73: 26.5,
    74: 25.5,
    75: 24.6,
    76: 23.7,
    77: 22.9,
    78: 22.0,
    79: 21.1,
    80: 20.2,
    81: 19.4,
    82: 18.5,
    83: 17.7,
    84: 16.8,
    85: 16.0,
    86: 15.2,
    87: 14.4,
    88: 13.7,
    89: 12.9,
    90: 12.2,
    91: 11.5,
    92: 10.8,
    93: 10.1,
    94: 9.5,
    95: 8.9,
    96: 8.4,
    97: 7.8,
    98: 7.3,
    99: 6.8,
    100: 6.4,
    101: 6.0,
    102: 5.6,
    103: 5.2,
    104: 4.9,
    105: 4.6,
    106: 4.3,
    107: 4.1,
    108: 3.9,
    109: 3.7,
    110: 3.5,
    111: 3.4,
    112: 3.3,
    113: 3.1,
    114: 3.0,
    115: 2.9,
    116: 2.8,
    117: 2.7,
    118: 2.5,
    119: 2.3,
    120: 2.0,
})

_FIRST_AGE = min(UNIFORM_LIFETIME_TABLE)
_LAST_AGE = max(UNIFORM_LIFETIME_TABLE)


def distribution_period(age: int) -> float:
    """Return the Uniform Lifetime divisor for ``age``.

    Ages past the end of the table use the last entry.
    """
    age = int(max(_FIRST_AGE, min(_LAST_AGE, age)))
    return UNIFORM_LIFETIME_TABLE[age]


def compute_rmd(balance: float, age: int) -> float:
    """Compute the Required Minimum Distribution for a given age and balance.

    Parameters
    ----------
    balance : float
        The pre-tax account balance on December 31 of the prior year.
    age : int
        Age of the account owner in the distribution year.

    Returns
    -------
    float
        The RMD amount.  Zero below ``RMD_START_AGE`` or when the balance is
        non-positive or not finite.
    """
    if age < RMD_START_AGE:
        return 0.0
    if not math.isfinite(balance) or balance <= 0:
        return 0.0
    return balance / distribution_period(age)


rmd = compute_rmd

__all__ = ["RMD_START_AGE", "UNIFORM_LIFETIME_TABLE", "distribution_period", "compute_rmd", "rmd"]
