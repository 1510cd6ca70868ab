"""Monte Carlo driver.

Runs :func:`~retirement_engine.engine.run_single_simulation` across many
independent trials and aggregates the distribution of outcomes.  Trial seeds
are derived from one batch seed with ``numpy.random.SeedSequence`` so every
trial is reproducible on its own, and results are stored by trial index so
aggregation never depends on completion order or worker count.

Trials can run sequentially or in a ``ProcessPoolExecutor``.  A batch may be
cancelled with any object exposing ``is_set()`` (such as
``threading.Event``): no new trials are started, trials already running are
allowed to finish, and the summary reports only completed trials.

Percentile bands are computed on each year's column after trimming the
most extreme 2.5% of trials at each end.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .engine import SimulationResult, run_single_simulation
from .inputs import SimulationInputs

logger = logging.getLogger(__name__)

PERCENTILES = (10, 25, 50, 75, 90)
TRIM_FRACTION = 0.025


@dataclass(frozen=True)
class MonteCarloSummary:
    n_trials: int
    n_completed: int
    n_failed: int
    cancelled: bool
    ages: List[int]
    balances_real: Dict[str, List[float]]
    balances_nominal: Dict[str, List[float]]
    eol_real: Dict[str, float]
    y1_after_tax_real: Dict[str, float]
    probability_of_ruin: float
    expected_depletion_age: Optional[float]
    expected_depletion_year: Optional[float]
    median_terminal: float
    seeds: Tuple[int, ...] = field(default=(), repr=False)

    @property
    def n_valid(self) -> int:
        return self.n_completed - self.n_failed

    @property
    def success_probability(self) -> float:
        return 1.0 - self.probability_of_ruin if self.n_valid else 0.0

    def to_dict(self) -> dict:
        return {
            "ages": list(self.ages),
            "success_probability": self.success_probability,
            "probability_of_ruin": self.probability_of_ruin,
            "percentiles": {k: list(v) for k, v in self.balances_real.items()},
            "percentiles_nominal": {k: list(v) for k, v in self.balances_nominal.items()},
            "eol_real": dict(self.eol_real),
            "y1_after_tax_real": dict(self.y1_after_tax_real),
            "median_terminal": self.median_terminal,
            "expected_depletion_age": self.expected_depletion_age,
            "expected_depletion_year": self.expected_depletion_year,
            "n_trials": self.n_trials,
            "n_completed": self.n_completed,
            "n_failed": self.n_failed,
            "cancelled": self.cancelled,
        }


def trial_seeds(seed: int, n_trials: int) -> List[int]:
    """Independent per-trial seeds; trial ``i`` always gets the same seed."""
    children = np.random.SeedSequence(seed).spawn(n_trials)
    return [int(c.generate_state(1, dtype=np.uint32)[0]) for c in children]


def _run_chunk(inputs: SimulationInputs, indices: Sequence[int], seeds: Sequence[int]) -> List[Tuple[int, SimulationResult]]:
    return [(i, run_single_simulation(inputs, s)) for i, s in zip(indices, seeds)]


def _is_cancelled(cancel_event) -> bool:
    return cancel_event is not None and cancel_event.is_set()


def run_trials(
    inputs: SimulationInputs,
    seeds: Sequence[int],
    max_workers: int = 1,
    cancel_event=None,
    chunk_size: int = 50,
) -> Tuple[List[Optional[SimulationResult]], bool]:
    """Run one trial per seed.

    Returns the results in trial order (``None`` for trials never started)
    and whether the batch was cancelled.
    """
    n = len(seeds)
    results: List[Optional[SimulationResult]] = [None] * n
    chunk_size = max(1, int(chunk_size))
    chunks = [
        (list(range(k, min(n, k + chunk_size))), list(seeds[k:k + chunk_size]))
        for k in range(0, n, chunk_size)
    ]

    if max_workers <= 1:
        for indices, chunk_seeds in chunks:
            for i, s in zip(indices, chunk_seeds):
                if _is_cancelled(cancel_event):
                    return results, True
                results[i] = run_single_simulation(inputs, s)
        return results, False

    cancelled = False
    remaining = iter(chunks)
    with ProcessPoolExecutor(max_workers=max_workers) as executor:
        pending = {}
        while True:
            while not cancelled and len(pending) < max_workers * 2:
                if _is_cancelled(cancel_event):
                    cancelled = True
                    break
                chunk = next(remaining, None)
                if chunk is None:
                    break
                pending[executor.submit(_run_chunk, inputs, *chunk)] = chunk
            if not pending:
                break
            done, _ = wait(pending, return_when=FIRST_COMPLETED)
            for future in done:
                indices, chunk_seeds = pending.pop(future)
                try:
                    pairs = future.result()
                except Exception as exc:
                    logger.warning("Worker failed on trials %s-%s: %s", indices[0], indices[-1], exc)
                    pairs = [
                        (i, SimulationResult.failure(s, f"worker error: {exc}"))
                        for i, s in zip(indices, chunk_seeds)
                    ]
                for i, result in pairs:
                    results[i] = result
    return results, cancelled


def _trimmed(values: np.ndarray) -> np.ndarray:
    ordered = np.sort(values)
    k = int(math.floor(len(ordered) * TRIM_FRACTION))
    if k > 0 and len(ordered) > 2 * k:
        ordered = ordered[k:len(ordered) - k]
    return ordered


def _bands(values: np.ndarray) -> Dict[str, float]:
    if values.size == 0:
        return {f"p{p}": 0.0 for p in PERCENTILES}
    trimmed = _trimmed(values)
    return {f"p{p}": float(np.percentile(trimmed, p)) for p in PERCENTILES}


def _column_bands(stacked: np.ndarray) -> Dict[str, List[float]]:
    out: Dict[str, List[float]] = {f"p{p}": [] for p in PERCENTILES}
    for t in range(stacked.shape[1]):
        for key, value in _bands(stacked[:, t]).items():
            out[key].append(value)
    return out


def summarize(
    inputs: SimulationInputs,
    results: Sequence[Optional[SimulationResult]],
    cancelled: bool = False,
    seeds: Sequence[int] = (),
) -> MonteCarloSummary:
    """Aggregate trial results; failed and unstarted trials are excluded."""
    completed = [r for r in results if r is not None]
    valid = [r for r in completed if not r.failed]
    n_failed = len(completed) - len(valid)
    if n_failed:
        logger.warning("%d of %d trials failed and were excluded", n_failed, len(completed))

    ages: List[int] = []
    empty_bands: Dict[str, List[float]] = {f"p{p}": [] for p in PERCENTILES}
    balances_real, balances_nominal = empty_bands, {k: [] for k in empty_bands}
    if valid:
        ages = [int(a) for a in valid[0].ages]
        balances_real = _column_bands(np.vstack([r.balances_real for r in valid]))
        balances_nominal = _column_bands(np.vstack([r.balances_nominal for r in valid]))

    eol = np.array([r.eol_real for r in valid], dtype=float)
    y1 = np.array([r.y1_after_tax_real for r in valid], dtype=float)
    ruined = [r for r in valid if r.ruined]
    prob_ruin = len(ruined) / len(valid) if valid else 0.0
    depletion_ages = [r.depletion_age for r in ruined if r.depletion_age is not None]
    expected_age = float(np.mean(depletion_ages)) if depletion_ages else None
    expected_year = expected_age - inputs.current_age if expected_age is not None else None

    return MonteCarloSummary(
        n_trials=len(results),
        n_completed=len(completed),
        n_failed=n_failed,
        cancelled=cancelled,
        ages=ages,
        balances_real=balances_real,
        balances_nominal=balances_nominal,
        eol_real=_bands(eol),
        y1_after_tax_real=_bands(y1),
        probability_of_ruin=prob_ruin,
        expected_depletion_age=expected_age,
        expected_depletion_year=expected_year,
        median_terminal=float(np.median(eol)) if eol.size else 0.0,
        seeds=tuple(seeds),
    )


def run_monte_carlo(
    inputs: SimulationInputs,
    n_trials: int = 1000,
    seed: Optional[int] = None,
    max_workers: int = 1,
    cancel_event=None,
    chunk_size: int = 50,
) -> MonteCarloSummary:
    """Run ``n_trials`` independent trials and summarise them.

    Parameters
    ----------
    inputs : SimulationInputs
        Household plan shared by every trial.
    n_trials : int
        Number of trials.
    seed : int, optional
        Batch seed; defaults to ``inputs.seed``.
    max_workers : int
        ``1`` runs in-process; more uses a process pool.
    cancel_event : optional
        Object with ``is_set()``; when set, no further trials start.

    Returns
    -------
    MonteCarloSummary
    """
    n_trials = max(0, int(n_trials))
    seed = inputs.seed if seed is None else int(seed)
    seeds = trial_seeds(seed, n_trials)
    logger.info("Starting %d trials (seed %s, workers %d)", n_trials, seed, max_workers)
    results, cancelled = run_trials(inputs, seeds, max_workers, cancel_event, chunk_size)
    if cancelled:
        logger.warning("Batch cancelled after %d of %d trials", sum(r is not None for r in results), n_trials)
    summary = summarize(inputs, results, cancelled, seeds)
    logger.info(
        "Finished %d trials: success %.1f%%, %d failed",
        summary.n_completed,
        summary.success_probability * 100,
        summary.n_failed,
    )
    return summary


def max_sustainable_withdrawal_rate(
    inputs: SimulationInputs,
    target_success: float = 0.9,
    n_trials: int = 200,
    seed: Optional[int] = None,
    low: float = 0.0,
    high: float = 0.15,
    tolerance: float = 0.001,
    max_workers: int = 1,
) -> float:
    """Highest withdrawal rate whose success probability meets ``target_success``.

    Uses bisection between ``low`` and ``high``; the same trial seeds are
    reused at every step so the comparison is like for like.
    """

    def _succeeds(rate: float) -> bool:
        trial = inputs.with_changes(withdrawal_rate=rate)
        summary = run_monte_carlo(trial, n_trials, seed, max_workers)
        return summary.success_probability >= target_success

    if not _succeeds(low):
        return low
    if _succeeds(high):
        return high
    while high - low > tolerance:
        mid = (low + high) / 2
        if _succeeds(mid):
            low = mid
        else:
            high = mid
    return low


__all__ = [
    "PERCENTILES",
    "TRIM_FRACTION",
    "MonteCarloSummary",
    "trial_seeds",
    "run_trials",
    "summarize",
    "run_monte_carlo",
    "max_sustainable_withdrawal_rate",
]
