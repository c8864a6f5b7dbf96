"""
Year-by-year corpus projection for RetirePlan.

Purpose
-------
Simulates per-bucket balance growth across the accumulation phase:
contributions with step-up, periodic rate reduction, maturity inflows and
goal outflows. Produces the retirement matrix consumed read-only by the
gap calculator, the step-up optimizer and the what-if engine.

Conventions
-----------
- Rows ``y = 0 .. N-1`` with ``N = retirement_age - current_age``.
- Row ``y`` holds balances at the END of year ``y``; row 0 already includes
  one year of growth and contributions. Row ``N-1`` is the corpus at
  retirement.
- Annual compounding with contribution add-back:
      end = open * (1 + rate/100) + monthly * 12
- Mutual-fund SIP in year y:
      sip_y = sip_0 * (1 + step_up/100) ** max(0, min(y, stop) - effective_from)
- Inflows and goal outflows of year y are netted after growth. A positive
  net is swept into OTHER_LIQUID and only compounds from year y+1. A
  negative net is drawn pro-rata from positive balances; any excess is
  taken from OTHER_LIQUID, which may go negative.
- Net corpus is never clamped: a negative value flags a shortfall.

Example
-------
>>> from retireplan.projection import project
>>> rows = project(inputs)
>>> len(rows) == inputs.years_to_retirement
True
>>> rows[-1].net_corpus  # corpus at retirement
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from .aggregator import InstrumentType, PlanInputs
from .constants import MONTHS_PER_YEAR
from .utils import safe_float

__all__ = [
    "ProjectionRow",
    "sip_for_year",
    "project",
    "final_corpus",
    "matrix_to_frame",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectionRow:
    """
    State of the plan at the end of one accumulation year.

    ``balances`` and ``rates`` are keyed by InstrumentType. ``total_inflow``
    and ``goal_outflow`` are both reported even when they cancel out.
    ``required_corpus`` and ``can_retire`` are keyed by strategy name and
    are filled in by ``corpus.with_requirements``.
    """

    index: int
    year: int
    age: int
    balances: Mapping[InstrumentType, float]
    rates: Mapping[InstrumentType, float]
    mf_sip: float
    step_up_active: bool
    total_inflow: float
    goal_outflow: float
    net_corpus: float
    pre_inflow_corpus: float
    shortfall: bool
    events: Tuple[str, ...] = ()
    required_corpus: Mapping[str, float] = field(default_factory=dict)
    can_retire: Mapping[str, bool] = field(default_factory=dict)

    def balance(self, instrument: InstrumentType) -> float:
        return self.balances.get(instrument, 0.0)


def sip_for_year(
    sip0: float,
    year: int,
    step_up_percent: float,
    effective_from: int,
    stop_year: Optional[int] = None,
) -> float:
    """Monthly SIP in year *year* under the step-up schedule."""
    last = year if stop_year is None else min(year, stop_year)
    steps = max(0, last - effective_from)
    return sip0 * (1.0 + step_up_percent / 100.0) ** steps


def _draw_outflow(balances: Dict[InstrumentType, float], outflow: float) -> None:
    """Take *outflow* pro-rata from positive balances, excess from OTHER_LIQUID."""
    if outflow <= 0:
        return
    positive = {k: v for k, v in balances.items() if v > 0}
    available = sum(positive.values())
    if available >= outflow:
        for k, v in positive.items():
            balances[k] = v - outflow * v / available
        return
    for k in positive:
        balances[k] = 0.0
    balances[InstrumentType.OTHER_LIQUID] -= outflow - available


def project(inputs: PlanInputs, stop_year: Optional[int] = None) -> List[ProjectionRow]:
    """
    Project the accumulation phase year by year.

    Parameters
    ----------
    inputs : PlanInputs
        Aggregated opening balances, cashflow events and parameters.
    stop_year : int, optional
        Year index from which the mutual-fund SIP stops stepping up and stays
        flat. ``None`` applies the step-up until retirement.

    Returns
    -------
    list of ProjectionRow
        ``years_to_retirement`` rows; empty for a degenerate horizon.
    """
    params = inputs.params
    n_years = params.years_to_retirement
    if n_years <= 0:
        logger.warning(
            "No accumulation phase (current age %d, retirement age %d); empty matrix",
            params.current_age, params.retirement_age,
        )
        return []

    step_up = params.sip_step_up_percent
    effective_from = params.step_up_effective_from_year
    reduction = params.rate_reduction

    balances: Dict[InstrumentType, float] = {}
    base_rates: Dict[InstrumentType, float] = {}
    contributions: Dict[InstrumentType, float] = {}
    for b in inputs.balances:
        balances[b.instrument] = safe_float(b.opening_balance)
        base_rates[b.instrument] = safe_float(b.annual_return_rate)
        contributions[b.instrument] = max(0.0, safe_float(b.monthly_contribution))
    for t in InstrumentType:
        balances.setdefault(t, 0.0)
        base_rates.setdefault(t, 0.0)
        contributions.setdefault(t, 0.0)

    events_by_year: Dict[int, list] = {}
    for event in inputs.events:
        events_by_year.setdefault(event.year_offset, []).append(event)

    rows: List[ProjectionRow] = []
    for y in range(n_years):
        mf_sip = sip_for_year(
            contributions[InstrumentType.MUTUAL_FUND], y, step_up, effective_from, stop_year
        )
        active = y >= effective_from and (stop_year is None or y < stop_year)

        # -------------------- Growth --------------------
        rates: Dict[InstrumentType, float] = {}
        for t in InstrumentType:
            rate = base_rates[t]
            if t.rate_reducible:
                rate = reduction.reduced_rate(rate, y)
            rates[t] = rate
            monthly = mf_sip if t.steps_up else contributions[t]
            balances[t] = balances[t] * (1.0 + rate / 100.0) + monthly * MONTHS_PER_YEAR
        balances[InstrumentType.MUTUAL_FUND] += params.lumpsum_yearly

        # -------------------- Cashflows --------------------
        year_events = events_by_year.get(y, [])
        total_inflow = sum(e.inflow for e in year_events)
        goal_outflow = sum(e.outflow for e in year_events)
        # only the net of the year moves money between buckets
        net_flow = total_inflow - goal_outflow
        if net_flow > 0:
            balances[InstrumentType.OTHER_LIQUID] += net_flow
        else:
            _draw_outflow(balances, -net_flow)

        net = sum(balances.values())
        rows.append(
            ProjectionRow(
                index=y,
                year=params.current_year + y,
                age=params.current_age + y,
                balances=dict(balances),
                rates=rates,
                mf_sip=mf_sip,
                step_up_active=active,
                total_inflow=total_inflow,
                goal_outflow=goal_outflow,
                net_corpus=net,
                pre_inflow_corpus=net - total_inflow,
                shortfall=net < 0,
                events=tuple(e.label for e in year_events),
            )
        )

    shortfalls = [r.year for r in rows if r.shortfall]
    if shortfalls:
        logger.warning("Corpus goes negative in years %s", shortfalls)
    return rows


def final_corpus(rows: Sequence[ProjectionRow]) -> float:
    """Net corpus at retirement (0 for an empty matrix)."""
    return rows[-1].net_corpus if rows else 0.0


def matrix_to_frame(rows: Sequence[ProjectionRow]) -> pd.DataFrame:
    """
    Tabular view of the matrix, one row per year indexed by calendar year.

    Balance and rate columns are named ``<bucket>_balance`` / ``<bucket>_rate``;
    required-corpus columns ``required_<STRATEGY>``.
    """
    records = []
    for r in rows:
        rec = {"year": r.year, "age": r.age, "mf_sip": r.mf_sip}
        for t in InstrumentType:
            rec[f"{t.value.lower()}_balance"] = r.balance(t)
            rec[f"{t.value.lower()}_rate"] = r.rates.get(t, 0.0)
        rec.update(
            total_inflow=r.total_inflow,
            goal_outflow=r.goal_outflow,
            net_corpus=r.net_corpus,
            pre_inflow_corpus=r.pre_inflow_corpus,
            shortfall=r.shortfall,
        )
        for strategy, value in r.required_corpus.items():
            rec[f"required_{strategy}"] = value
        records.append(rec)
    frame = pd.DataFrame.from_records(records)
    if not frame.empty:
        frame = frame.set_index("year")
    return frame
