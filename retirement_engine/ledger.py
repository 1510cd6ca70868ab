"""Three-bucket account ledger.

The ledger holds the household's taxable (with cost basis), pre-tax and
Roth balances for one trial, an emergency cash reserve that only keeps pace
with inflation, and the running inflation factor used to express them in
today's dollars.  Each simulated year the orchestrator calls, in order,
:meth:`AccountLedger.contribute`, :meth:`AccountLedger.grow` and, once
retired, :meth:`AccountLedger.withdraw`.

Withdrawals take any required minimum distribution from pre-tax first and
then cover the remaining need from taxable, Roth and pre-tax in that order,
with the emergency reserve as the last resort.  When the need cannot be
met the ledger is *ruined*: every bucket is zeroed and all later operations
are no-ops, so balances never go negative and never recover.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .calculators.taxes import capital_gains_tax

EPS = 1e-6


@dataclass(frozen=True)
class Balances:
    taxable: float
    pretax: float
    roth: float
    emergency: float = 0.0

    @property
    def total(self) -> float:
        return self.taxable + self.pretax + self.roth + self.emergency

    def scaled(self, factor: float) -> "Balances":
        return Balances(
            self.taxable * factor, self.pretax * factor, self.roth * factor, self.emergency * factor
        )


@dataclass(frozen=True)
class Withdrawal:
    """Result of one year's draw."""

    taxable: float = 0.0
    roth: float = 0.0
    pretax: float = 0.0
    rmd: float = 0.0
    realized_gain: float = 0.0
    shortfall: float = 0.0
    rmd_excess: float = 0.0
    emergency: float = 0.0

    @property
    def total(self) -> float:
        return self.taxable + self.roth + self.pretax + self.emergency


class AccountLedger:
    def __init__(
        self,
        taxable: float = 0.0,
        pretax: float = 0.0,
        roth: float = 0.0,
        basis: Optional[float] = None,
        emergency: float = 0.0,
    ):
        self.taxable = max(0.0, taxable)
        self.pretax = max(0.0, pretax)
        self.roth = max(0.0, roth)
        self.basis = self.taxable if basis is None else min(max(0.0, basis), self.taxable)
        self.emergency = max(0.0, emergency)
        self.inflation_factor = 1.0
        self.ruined = False

    # -- views -----------------------------------------------------------
    @property
    def total(self) -> float:
        return self.taxable + self.pretax + self.roth + self.emergency

    def nominal(self) -> Balances:
        return Balances(self.taxable, self.pretax, self.roth, self.emergency)

    def real(self) -> Balances:
        """Balances deflated by the running inflation factor."""
        return self.nominal().scaled(1.0 / self.inflation_factor)

    # -- yearly steps ----------------------------------------------------
    def contribute(self, taxable: float = 0.0, pretax: float = 0.0, roth: float = 0.0) -> None:
        if self.ruined:
            return
        taxable = max(0.0, taxable)
        self.taxable += taxable
        self.basis += taxable
        self.pretax += max(0.0, pretax)
        self.roth += max(0.0, roth)

    def grow(self, factor: float, dividend_yield: float = 0.0, filing_status: str = "single") -> float:
        """Apply one year's gross return ``factor`` and the dividend tax drag.

        Dividends on the taxable bucket are taxed at qualified rates and the
        tax is paid out of the bucket.  Returns the drag tax.
        """
        if self.ruined:
            return 0.0
        factor = max(0.0, factor)
        self.taxable *= factor
        self.pretax *= factor
        self.roth *= factor
        self.basis = min(self.basis, self.taxable)

        drag = 0.0
        if self.taxable > 0 and dividend_yield > 0:
            dividends = self.taxable * dividend_yield
            drag = min(capital_gains_tax(dividends, filing_status, 0.0), self.taxable)
            self.taxable -= drag
            # reinvested dividends are new basis
            self.basis = min(self.taxable, self.basis + dividends - drag)
        return drag

    def inflate(self, rate: float) -> None:
        """Advance the inflation factor; the emergency reserve keeps pace."""
        self.inflation_factor *= 1.0 + rate
        if not self.ruined:
            self.emergency *= max(0.0, 1.0 + rate)

    def withdraw(self, need: float, rmd: float = 0.0) -> Withdrawal:
        """Draw ``need`` dollars, forcing at least ``rmd`` out of pre-tax.

        Returns the per-bucket draw.  ``rmd_excess`` is the part of the RMD
        beyond ``need``; the caller reinvests it after tax.
        """
        if self.ruined:
            return Withdrawal()
        need = max(0.0, need)

        forced = min(max(0.0, rmd), self.pretax)
        self.pretax -= forced
        remaining = max(0.0, need - forced)
        rmd_excess = max(0.0, forced - need)

        from_taxable = min(remaining, self.taxable)
        gain = 0.0
        if from_taxable > 0:
            share = from_taxable / self.taxable
            basis_used = self.basis * share
            gain = max(0.0, from_taxable - basis_used)
            self.basis -= basis_used
            self.taxable -= from_taxable
            remaining -= from_taxable

        from_roth = min(remaining, self.roth)
        self.roth -= from_roth
        remaining -= from_roth

        from_pretax = min(remaining, self.pretax)
        self.pretax -= from_pretax
        remaining -= from_pretax

        from_emergency = min(remaining, self.emergency)
        self.emergency -= from_emergency
        remaining -= from_emergency

        result = Withdrawal(
            taxable=from_taxable,
            roth=from_roth,
            pretax=forced + from_pretax,
            rmd=forced,
            realized_gain=gain,
            shortfall=remaining,
            rmd_excess=rmd_excess,
            emergency=from_emergency,
        )
        if remaining > EPS or (need > 0 and self.total <= EPS):
            self.mark_ruined()
        return result

    def reinvest(self, amount: float) -> None:
        """Add after-tax cash to the taxable bucket."""
        if self.ruined or amount <= 0:
            return
        self.taxable += amount
        self.basis += amount

    def convert_to_roth(self, amount: float, tax: float):
        """Move ``amount`` from pre-tax to Roth, paying ``tax`` from taxable.

        Returns the ``(amount, tax)`` actually applied.
        """
        if self.ruined:
            return 0.0, 0.0
        amount = min(max(0.0, amount), self.pretax)
        tax = min(max(0.0, tax), self.taxable)
        self.pretax -= amount
        self.roth += amount
        self._sell_taxable(tax)
        return amount, tax

    def pay_from_taxable(self, amount: float) -> float:
        """Pay a recurring bill from the taxable bucket only.  Returns the amount paid."""
        if self.ruined:
            return 0.0
        paid = min(max(0.0, amount), self.taxable)
        self._sell_taxable(paid)
        return paid

    def take_pretax(self, amount: float) -> float:
        """Remove up to ``amount`` from pre-tax without any ruin check."""
        if self.ruined:
            return 0.0
        taken = min(max(0.0, amount), self.pretax)
        self.pretax -= taken
        return taken

    def settle(self, amount: float) -> float:
        """Pay a one-off bill (estate tax) from taxable, Roth, pre-tax, then the reserve.

        Settling never ruins the ledger.  Returns the amount paid.
        """
        if self.ruined or amount <= 0:
            return 0.0
        remaining = amount
        paid = min(remaining, self.taxable)
        self._sell_taxable(paid)
        remaining -= paid
        for bucket in ("roth", "pretax", "emergency"):
            take = min(remaining, getattr(self, bucket))
            setattr(self, bucket, getattr(self, bucket) - take)
            remaining -= take
        return amount - remaining

    def mark_ruined(self) -> None:
        self.ruined = True
        self.taxable = self.pretax = self.roth = self.emergency = self.basis = 0.0

    def _sell_taxable(self, amount: float) -> None:
        if amount <= 0 or self.taxable <= 0:
            return
        self.basis -= self.basis * (amount / self.taxable)
        self.taxable -= amount
        if self.taxable <= EPS:
            self.taxable = self.basis = 0.0


__all__ = ["EPS", "Balances", "Withdrawal", "AccountLedger"]
