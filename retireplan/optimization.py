"""
SIP step-up optimization for RetirePlan.

Purpose
-------
Finds how early the yearly mutual-fund SIP step-up can be stopped while the
projected corpus at retirement still meets the required corpus of the
selected strategy. Stopping earlier keeps the monthly SIP lower for every
remaining year, so the earliest feasible stop year frees the most cash.

Search
------
Linear search over candidate stop years ``N, N-1, ..., 0`` where ``N`` is
the number of accumulation years. Each candidate is a full re-simulation
through ``projection.project`` with the SIP frozen from that year, so
cashflow events, rate reduction and the other buckets are accounted for
exactly. With at most a few dozen candidates the cost is negligible.

Degenerate cases (no accumulation years, no SIP, no step-up, or a target
the full schedule cannot reach) return ``can_stop_early = False`` together
with a human-readable reason; nothing is raised.

Key Components
--------------
- StopYearScenario: one candidate (stop year, SIP level, corpus, surplus)
- StepUpOptimization: result container with summary()
- StepUpOptimizer: the search

Example
-------
>>> from retireplan.optimization import StepUpOptimizer
>>> result = StepUpOptimizer().seek(inputs, target=50_000_000)
>>> result.can_stop_early, result.optimal_stop_year
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pandas as pd

from .aggregator import PlanInputs
from .constants import MONTHS_PER_YEAR
from .projection import final_corpus, project, sip_for_year
from .utils import format_currency, rows_to_frame

__all__ = [
    "StopYearScenario",
    "StepUpOptimization",
    "StepUpOptimizer",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StopYearScenario:
    """Outcome of freezing the SIP step-up from ``stop_year`` onward."""

    stop_year: int
    age: int
    calendar_year: int
    sip_at_stop: float
    projected_corpus: float
    surplus: float
    meets_target: bool


# ---------------------------------------------------------------------------
# Result Container
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StepUpOptimization:
    """
    Step-up optimization output.

    Attributes
    ----------
    can_stop_early : bool
        True when some stop year before retirement still meets the target.
    optimal_stop_year : int or None
        Earliest stop year (year index) that meets the target.
    target_corpus : float
        Required corpus of the selected strategy.
    full_schedule_corpus : float
        Corpus at retirement with step-up applied every year.
    scenarios : tuple of StopYearScenario
        One row per candidate stop year, from ``N`` down to 0.
    sip_at_start, sip_at_full_step_up, sip_at_optimal_stop : float
        Monthly SIP today, in the last year with full step-up, and at the
        optimal stop level.
    monthly_relief : float
        ``sip_at_full_step_up - sip_at_optimal_stop``.
    total_sip_saved : float
        Contributions avoided over the horizon by stopping early.
    reason : str
        Why early stopping is (not) possible.
    recommendation : str
        One-line advice for the user.
    """

    can_stop_early: bool
    optimal_stop_year: Optional[int]
    optimal_stop_age: Optional[int]
    target_corpus: float
    full_schedule_corpus: float
    optimal_corpus: Optional[float]
    scenarios: Tuple[StopYearScenario, ...]
    sip_at_start: float
    sip_at_full_step_up: float
    sip_at_optimal_stop: float
    monthly_relief: float
    total_sip_saved: float
    reason: str
    recommendation: str

    def to_frame(self) -> pd.DataFrame:
        """Scenario table as a DataFrame indexed by stop year."""
        return rows_to_frame(self.scenarios, index="stop_year")

    def summary(self) -> str:
        """Human-readable optimization summary."""
        status = "✓ Can stop early" if self.can_stop_early else "✗ Full step-up needed"
        lines = [
            "StepUpOptimization(",
            f"  Status: {status}",
            f"  Target corpus: {format_currency(self.target_corpus, compact=True)}",
            f"  Full schedule corpus: {format_currency(self.full_schedule_corpus, compact=True)}",
        ]
        if self.optimal_stop_year is not None:
            lines.append(
                f"  Optimal stop: year {self.optimal_stop_year} (age {self.optimal_stop_age})"
            )
            lines.append(f"  Monthly relief: {format_currency(self.monthly_relief)}")
        lines.append(f"  Reason: {self.reason}")
        lines.append(")")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------

class StepUpOptimizer:
    """
    Linear search for the earliest step-up stop year meeting a target.

    Parameters
    ----------
    tolerance : float, default 0.0
        Absolute slack: a candidate meets the target when
        ``corpus >= target - tolerance``.
    """

    def __init__(self, tolerance: float = 0.0):
        if tolerance < 0:
            raise ValueError(f"tolerance must be ≥ 0, got {tolerance}")
        self.tolerance = tolerance

    def seek(self, inputs: PlanInputs, target: float) -> StepUpOptimization:
        """
        Evaluate every stop year and pick the earliest one meeting *target*.

        Parameters
        ----------
        inputs : PlanInputs
        target : float
            Required corpus at retirement.

        Returns
        -------
        StepUpOptimization
        """
        params = inputs.params
        n_years = params.years_to_retirement
        sip0 = inputs.mf_sip
        step_up = params.sip_step_up_percent
        effective_from = params.step_up_effective_from_year

        full_rows = project(inputs)
        full_corpus = final_corpus(full_rows)
        sip_full = (
            sip_for_year(sip0, n_years - 1, step_up, effective_from) if n_years > 0 else sip0
        )

        if n_years <= 0:
            return self._no_stop(target, full_corpus, sip0, sip_full, (),
                                 "No accumulation years before retirement.")
        if sip0 <= 0:
            return self._no_stop(target, full_corpus, sip0, sip_full, (),
                                 "No mutual-fund SIP to step up.")
        if step_up <= 0:
            return self._no_stop(target, full_corpus, sip0, sip_full, (),
                                 "SIP step-up is not enabled.")

        scenarios: List[StopYearScenario] = []
        for stop in range(n_years, -1, -1):
            corpus = full_corpus if stop == n_years else final_corpus(project(inputs, stop))
            scenarios.append(
                StopYearScenario(
                    stop_year=stop,
                    age=params.current_age + stop,
                    calendar_year=params.current_year + stop,
                    sip_at_stop=sip_for_year(sip0, stop, step_up, effective_from, stop),
                    projected_corpus=corpus,
                    surplus=corpus - target,
                    meets_target=corpus >= target - self.tolerance,
                )
            )
            logger.debug("Stop year %d -> corpus %.0f", stop, corpus)

        if full_corpus < target - self.tolerance:
            return self._no_stop(
                target, full_corpus, sip0, sip_full, tuple(scenarios),
                "Even the full step-up schedule falls short of the required corpus.",
            )

        meeting = [s for s in scenarios if s.meets_target]
        best = min(meeting, key=lambda s: s.stop_year)
        # freezing in the last year keeps the full-schedule SIP
        can_stop = best.stop_year < n_years and best.sip_at_stop < sip_full
        sip_opt = best.sip_at_stop if can_stop else sip_full
        relief = max(0.0, sip_full - sip_opt)
        saved = 0.0
        if can_stop:
            saved = sum(
                (sip_for_year(sip0, y, step_up, effective_from)
                 - sip_for_year(sip0, y, step_up, effective_from, best.stop_year))
                * MONTHS_PER_YEAR
                for y in range(n_years)
            )

        if can_stop:
            reason = (
                f"Freezing the SIP from year {best.stop_year} still reaches "
                f"{format_currency(best.projected_corpus, compact=True)}."
            )
            recommendation = (
                f"You can stop increasing your SIP at age {best.age} "
                f"({best.calendar_year}) and keep it at "
                f"{format_currency(best.sip_at_stop)}/month."
            )
        else:
            reason = "The target is only met with step-up until retirement."
            recommendation = "Continue the annual SIP step-up until retirement."

        logger.info(
            "Step-up optimization: can_stop_early=%s optimal_stop_year=%s",
            can_stop, best.stop_year,
        )
        return StepUpOptimization(
            can_stop_early=can_stop,
            optimal_stop_year=best.stop_year,
            optimal_stop_age=best.age,
            target_corpus=target,
            full_schedule_corpus=full_corpus,
            optimal_corpus=best.projected_corpus,
            scenarios=tuple(scenarios),
            sip_at_start=sip0,
            sip_at_full_step_up=sip_full,
            sip_at_optimal_stop=sip_opt,
            monthly_relief=relief,
            total_sip_saved=saved,
            reason=reason,
            recommendation=recommendation,
        )

    @staticmethod
    def _no_stop(
        target: float,
        full_corpus: float,
        sip0: float,
        sip_full: float,
        scenarios: Tuple[StopYearScenario, ...],
        reason: str,
    ) -> StepUpOptimization:
        logger.info("Step-up optimization: cannot stop early (%s)", reason)
        return StepUpOptimization(
            can_stop_early=False,
            optimal_stop_year=None,
            optimal_stop_age=None,
            target_corpus=target,
            full_schedule_corpus=full_corpus,
            optimal_corpus=None,
            scenarios=scenarios,
            sip_at_start=sip0,
            sip_at_full_step_up=sip_full,
            sip_at_optimal_stop=sip_full,
            monthly_relief=0.0,
            total_sip_saved=0.0,
            reason=reason,
            recommendation="Continue the annual SIP step-up until retirement.",
        )
