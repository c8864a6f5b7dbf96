"""
What-if scenario engine for RetirePlan.

Purpose
-------
Estimates the corpus impact of discrete interventions (selling illiquid
assets, reinvesting maturities, redirecting freed EMIs, raising the SIP,
investing expenses that end before retirement) with a deliberately simple
annual compounding model, separate from the full year-by-year projector so
that many alternatives can be compared quickly.

Model
-----
Starting corpus = total liquid opening balances; existing SIP = total
monthly contributions; flat return WHAT_IF_ANNUAL_RETURN. For year
``y = 0 .. N``:

- at ``y == deployment`` lump-sum and reinvest scenarios add their value
  to the strategy corpus before that year's growth;
- for ``y > 0`` both paths grow:  c <- c (1 + r) + 12 * sip;
  SIP scenarios add ``12 * value`` on top from the deployment year on.

The delta at ``y = N`` is the scenario's impact. A scenario "meets the
requirement" when the full projector's corpus plus that delta clears the
required corpus.

The full projector already sweeps maturities into OTHER_LIQUID as
inflows, so "reinvest maturities" counts that money twice: its delta is
the whole reinvested amount grown at the flat rate, not the extra growth
over leaving it in OTHER_LIQUID. Read it as an upper bound.

Key components
--------------
- ScenarioType / WhatIfScenario: the intervention
- ComparisonRow / ScenarioResult: baseline vs strategy path
- WhatIfEngine: candidate generation and evaluation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .aggregator import PlanInputs
from .constants import (
    DEFAULT_EVENT_OFFSET_YEARS,
    DEFAULT_ILLIQUID_GROWTH,
    DEFAULT_SIP_INCREASE_PERCENT,
    MONTHS_PER_YEAR,
    WHAT_IF_ANNUAL_RETURN,
)
from .maturities import MaturityReport
from .projection import ProjectionRow, final_corpus
from .utils import format_currency, rows_to_frame, sip_future_value

__all__ = [
    "ScenarioType",
    "WhatIfScenario",
    "ComparisonRow",
    "ScenarioResult",
    "WhatIfEngine",
    "scenarios_to_frame",
]

logger = logging.getLogger(__name__)


class ScenarioType(str, Enum):
    LUMPSUM = "lumpsum"
    REINVEST = "reinvest"
    SIP = "sip"


@dataclass(frozen=True)
class WhatIfScenario:
    """
    A named intervention.

    ``value`` is an amount for lump-sum/reinvest scenarios and a monthly
    contribution for SIP scenarios. ``deployment_offset`` is the year index
    at which it takes effect.
    """

    id: str
    title: str
    description: str
    type: ScenarioType
    value: float
    deployment_offset: int
    deployment_year: int

    def __post_init__(self):
        if self.value < 0:
            raise ValueError(f"value must be non-negative, got {self.value}")
        if self.deployment_offset < 0:
            raise ValueError(f"deployment_offset must be ≥ 0, got {self.deployment_offset}")


@dataclass(frozen=True)
class ComparisonRow:
    year_offset: int
    calendar_year: int
    baseline_corpus: float
    strategy_corpus: float

    @property
    def difference(self) -> float:
        return self.strategy_corpus - self.baseline_corpus


@dataclass(frozen=True)
class ScenarioResult:
    scenario: WhatIfScenario
    comparison: Tuple[ComparisonRow, ...]
    projected_corpus: float
    required_corpus: float

    @property
    def baseline_final(self) -> float:
        return self.comparison[-1].baseline_corpus if self.comparison else 0.0

    @property
    def strategy_final(self) -> float:
        return self.comparison[-1].strategy_corpus if self.comparison else 0.0

    @property
    def delta(self) -> float:
        return self.strategy_final - self.baseline_final

    @property
    def corpus_with_strategy(self) -> float:
        return self.projected_corpus + self.delta

    @property
    def meets_required(self) -> bool:
        return self.corpus_with_strategy >= self.required_corpus

    @property
    def shortfall(self) -> float:
        return max(0.0, self.required_corpus - self.corpus_with_strategy)

    def to_frame(self) -> pd.DataFrame:
        """Year-by-year baseline vs strategy table indexed by calendar year."""
        frame = rows_to_frame(self.comparison, index="calendar_year")
        if not frame.empty:
            frame["difference"] = frame["strategy_corpus"] - frame["baseline_corpus"]
        return frame


def scenarios_to_frame(results: Sequence[ScenarioResult]) -> pd.DataFrame:
    """One summary row per scenario, indexed by scenario id."""
    records = [
        {
            "id": r.scenario.id,
            "title": r.scenario.title,
            "type": r.scenario.type.value,
            "value": r.scenario.value,
            "deployment_year": r.scenario.deployment_year,
            "delta": r.delta,
            "corpus_with_strategy": r.corpus_with_strategy,
            "meets_required": r.meets_required,
        }
        for r in results
    ]
    frame = pd.DataFrame.from_records(records)
    if not frame.empty:
        frame = frame.set_index("id")
    return frame


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class WhatIfEngine:
    """
    Builds and evaluates what-if scenarios.

    Parameters
    ----------
    annual_return : float
        Flat return (percent) of the simplified model.
    illiquid_growth : float
        Appreciation (percent) of illiquid assets until sold.
    sip_increase_percent : float
        Size of the "increase SIP" scenario.
    """

    def __init__(
        self,
        annual_return: float = WHAT_IF_ANNUAL_RETURN,
        illiquid_growth: float = DEFAULT_ILLIQUID_GROWTH,
        sip_increase_percent: float = DEFAULT_SIP_INCREASE_PERCENT,
    ):
        self.annual_return = annual_return
        self.illiquid_growth = illiquid_growth
        self.sip_increase_percent = sip_increase_percent

    # -------------------- Simulation --------------------
    def simulate(self, inputs: PlanInputs, scenario: WhatIfScenario) -> Tuple[ComparisonRow, ...]:
        """Baseline and strategy corpus for years 0..N."""
        params = inputs.params
        n_years = params.years_to_retirement
        r = self.annual_return / 100.0
        sip = inputs.total_monthly_contribution
        baseline = strategy = inputs.total_opening_balance
        rows = []
        for y in range(n_years + 1):
            if y == scenario.deployment_offset and scenario.type in (
                ScenarioType.LUMPSUM, ScenarioType.REINVEST
            ):
                strategy += scenario.value
            if y > 0:
                baseline = baseline * (1.0 + r) + sip * MONTHS_PER_YEAR
                extra = (
                    scenario.value
                    if scenario.type is ScenarioType.SIP and y >= scenario.deployment_offset
                    else 0.0
                )
                strategy = strategy * (1.0 + r) + (sip + extra) * MONTHS_PER_YEAR
            rows.append(ComparisonRow(y, params.current_year + y, baseline, strategy))
        return tuple(rows)

    def evaluate(
        self,
        inputs: PlanInputs,
        scenario: WhatIfScenario,
        projected: float,
        required: float,
    ) -> ScenarioResult:
        return ScenarioResult(
            scenario=scenario,
            comparison=self.simulate(inputs, scenario),
            projected_corpus=projected,
            required_corpus=required,
        )

    # -------------------- Candidates --------------------
    def _offset_of(self, inputs: PlanInputs, calendar_year: int) -> int:
        return max(0, calendar_year - inputs.params.current_year)

    def _scenario(self, inputs, id, title, description, type_, value, offset) -> WhatIfScenario:
        return WhatIfScenario(
            id=id,
            title=title,
            description=description,
            type=type_,
            value=value,
            deployment_offset=offset,
            deployment_year=inputs.params.current_year + offset,
        )

    def sell_illiquid_year(
        self,
        inputs: PlanInputs,
        matrix: Sequence[ProjectionRow],
        required: float,
    ) -> int:
        """
        Earliest year offset at which projected corpus plus appreciated
        illiquid assets clears *required*; mid-horizon when already on track,
        retirement when never.
        """
        n_years = inputs.years_to_retirement
        gap = required - final_corpus(matrix)
        if gap <= 0:
            return n_years // 2
        g = self.illiquid_growth / 100.0
        for row in matrix:
            asset = inputs.illiquid_value * (1.0 + g) ** row.index
            if row.net_corpus + asset >= required:
                return row.index
        return n_years

    def candidates(
        self,
        inputs: PlanInputs,
        matrix: Sequence[ProjectionRow],
        required: float,
        maturities: Optional[MaturityReport] = None,
    ) -> List[WhatIfScenario]:
        """Scenarios applicable to these inputs, in a fixed order."""
        params = inputs.params
        n_years = params.years_to_retirement
        if n_years <= 0:
            return []
        out: List[WhatIfScenario] = []

        illiquid = inputs.illiquid_value
        if illiquid > 0:
            offset = self.sell_illiquid_year(inputs, matrix, required)
            value = illiquid * (1.0 + self.illiquid_growth / 100.0) ** offset
            names = ", ".join(a.name for a in inputs.illiquid_assets)
            out.append(self._scenario(
                inputs, "sell_illiquid", "Sell illiquid assets",
                f"Sell {names} worth {format_currency(value, compact=True)}",
                ScenarioType.LUMPSUM, value, offset,
            ))

        if maturities is not None and maturities.total > 0:
            years = maturities.maturity_years
            avg_year = round(sum(years) / len(years))
            out.append(self._scenario(
                inputs, "reinvest_maturities", "Reinvest maturities",
                f"{format_currency(maturities.total, compact=True)} maturing before retirement",
                ScenarioType.REINVEST, maturities.total,
                min(self._offset_of(inputs, avg_year), n_years),
            ))

        freed_emi = 0.0
        end_years = []
        for loan in inputs.loans:
            end = loan.end_year(params.as_of)
            if end is None:
                end = params.current_year + DEFAULT_EVENT_OFFSET_YEARS
            if params.current_year <= end < params.retirement_year and loan.emi > 0:
                freed_emi += loan.emi
                end_years.append(end)
        if freed_emi > 0:
            out.append(self._scenario(
                inputs, "redirect_emi", "Redirect EMIs to SIP",
                f"Invest {format_currency(freed_emi)}/month once loans close",
                ScenarioType.SIP, freed_emi, self._offset_of(inputs, min(end_years)),
            ))

        sip = inputs.total_monthly_contribution
        if sip > 0:
            increase = sip * self.sip_increase_percent / 100.0
            out.append(self._scenario(
                inputs, "increase_sip",
                f"Increase SIP by {self.sip_increase_percent:g}%",
                f"Add {format_currency(increase)}/month to current SIP of {format_currency(sip)}",
                ScenarioType.SIP, increase, 0,
            ))

        ending = [
            e for e in inputs.expenses
            if e.ends_before(params.retirement_year) and e.end_year >= params.current_year
            and e.monthly_amount > 0
        ]
        if ending:
            freed = sum(e.monthly_amount for e in ending)
            first_end = min(e.end_year for e in ending)
            potential = sum(
                sip_future_value(e.monthly_amount, self.annual_return,
                                 params.retirement_year - e.end_year)
                for e in ending
            )
            out.append(self._scenario(
                inputs, "freed_expenses", "Invest ending expenses",
                f"{format_currency(freed)}/month freed up, "
                f"{format_currency(potential, compact=True)} potential corpus",
                ScenarioType.SIP, freed, self._offset_of(inputs, first_end),
            ))
        return out

    def run(
        self,
        inputs: PlanInputs,
        matrix: Sequence[ProjectionRow],
        required: float,
        maturities: Optional[MaturityReport] = None,
    ) -> List[ScenarioResult]:
        """Generate and evaluate every applicable scenario."""
        projected = final_corpus(matrix)
        results = [
            self.evaluate(inputs, s, projected, required)
            for s in self.candidates(inputs, matrix, required, maturities)
        ]
        for res in results:
            logger.debug(
                "Scenario %s: delta=%.0f meets_required=%s",
                res.scenario.id, res.delta, res.meets_required,
            )
        return results

