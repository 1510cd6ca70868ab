"""Core financial calculators used by the simulation engine.

The ``calculators`` package contains small, focused modules that each
implement one piece of the retirement rules:

* ``taxes`` – federal ordinary and capital gains tax, NIIT, FICA, state tax,
  taxable Social Security and estate tax, backed by ``data/tax_tables.json``.
* ``rmd`` – Required Minimum Distribution start age and Uniform Lifetime table.
* ``social_security`` – benefit estimation from bend points and claiming age,
  including spousal benefits.
* ``returns`` – fixed and historical random-walk market return generators.
* ``roth`` – bracket-filling Roth conversions.
* ``independence`` – FI number and years to financial independence.
* ``healthcare`` – pre-Medicare premiums, Medicare with IRMAA and long-term
  care cost estimates.

Each module exposes a few public functions with clear parameters and returns.
See individual docstrings for details.
"""

from . import taxes, rmd, social_security, returns, roth, independence, healthcare  # noqa: F401

__all__ = ["taxes", "rmd", "social_security", "returns", "roth", "independence", "healthcare"]
