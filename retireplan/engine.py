"""
Request/response boundary of the RetirePlan engine.

Purpose
-------
``plan_retirement`` runs the whole pipeline for one request:

    aggregate -> project -> {required corpus, gap, step-up optimizer}
              -> post-retirement income -> what-if scenarios

and returns a complete RetirementPlan snapshot. Each call is a pure
function of the request; the only clock input is
``PlanningParameters.as_of``. Bad planning input is clamped into a
degenerate but structurally complete plan.

Example
-------
>>> from datetime import date
>>> from retireplan.config import PlanningParameters
>>> from retireplan.engine import PlanRequest, plan_retirement
>>> request = PlanRequest(
...     params=PlanningParameters(current_age=35, retirement_age=60, as_of=date(2025, 1, 1)),
...     investments=({"type": "MUTUAL_FUND", "currentValue": 2_000_000, "monthlySip": 50_000},),
... )
>>> plan = plan_retirement(request)
>>> len(plan.matrix)
25
>>> plan.to_dict().keys()
dict_keys(['summary', 'gapAnalysis', 'matrix', 'maturingBeforeRetirement', 'recommendations', 'scenarios'])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd

from .aggregator import PlanInputs, aggregate
from .config import IncomeStrategy, PlanningParameters
from .corpus import CorpusRequirement, GapAnalysis, Suggestion, analyze_gap, required_corpus, with_requirements
from .income import IncomeProjection, compare_strategies
from .maturities import MaturityReport, maturing_before_retirement
from .optimization import StepUpOptimization, StepUpOptimizer
from .projection import ProjectionRow, final_corpus, matrix_to_frame, project
from .scenario import ScenarioResult, WhatIfEngine, scenarios_to_frame
from .utils import format_currency

__all__ = [
    "PlanRequest",
    "PlanSummary",
    "RetirementPlan",
    "plan_retirement",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanRequest:
    """
    Input of one engine call.

    Record collections may hold record instances or plain mappings; the
    aggregator coerces them.
    """

    params: PlanningParameters = field(default_factory=PlanningParameters)
    investments: Tuple[Any, ...] = ()
    loans: Tuple[Any, ...] = ()
    goals: Tuple[Any, ...] = ()
    insurance: Tuple[Any, ...] = ()
    incomes: Tuple[Any, ...] = ()
    expenses: Tuple[Any, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PlanRequest":
        """
        Build a request from a JSON-like mapping.

        Parameters are read from ``parameters`` (or ``params``); record lists
        from ``investments``, ``loans``, ``goals``, ``insurance``,
        ``incomes`` and ``expenses``. Structural checks live in
        ``serialization.load_request``.
        """
        params = data.get("parameters", data.get("params")) or {}
        return cls(
            params=PlanningParameters.model_validate(params),
            investments=tuple(data.get("investments") or ()),
            loans=tuple(data.get("loans") or ()),
            goals=tuple(data.get("goals") or ()),
            insurance=tuple(data.get("insurance") or ()),
            incomes=tuple(data.get("incomes") or ()),
            expenses=tuple(data.get("expenses") or ()),
        )


@dataclass(frozen=True)
class PlanSummary:
    """Headline metrics of a plan."""

    as_of: date
    current_age: int
    retirement_age: int
    life_expectancy: int
    years_to_retirement: int
    retirement_years: int
    starting_balances: Dict[str, float]
    current_corpus: float
    illiquid_value: float
    final_corpus: float
    income_strategy: IncomeStrategy
    required_corpus: float
    corpus_gap: float
    monthly_income_by_strategy: Dict[str, float]
    selected_monthly_income: float
    total_inflows: float
    total_goal_outflows: float
    shortfall_years: Tuple[int, ...]
    corpus_return_rate: float
    withdrawal_rate: float
    effective_from_year: int

    @property
    def selected_strategy_name(self) -> str:
        if self.income_strategy is IncomeStrategy.SUSTAINABLE:
            return (
                f"Sustainable ({self.corpus_return_rate:g}% return, "
                f"{self.withdrawal_rate:g}% withdrawal)"
            )
        return self.income_strategy.label


@dataclass(frozen=True)
class RetirementPlan:
    """Complete result of ``plan_retirement``."""

    inputs: PlanInputs
    summary: PlanSummary
    requirement: CorpusRequirement
    gap_analysis: GapAnalysis
    matrix: Tuple[ProjectionRow, ...]
    optimization: StepUpOptimization
    income: Dict[str, IncomeProjection]
    maturities: MaturityReport
    scenarios: Tuple[ScenarioResult, ...]
    recommendations: Tuple[Suggestion, ...]

    @property
    def params(self) -> PlanningParameters:
        return self.inputs.params

    @property
    def final_corpus(self) -> float:
        return final_corpus(self.matrix)

    @property
    def selected_income(self) -> IncomeProjection:
        return self.income[self.params.income_strategy.value]

    def matrix_frame(self) -> pd.DataFrame:
        return matrix_to_frame(self.matrix)

    def scenarios_frame(self) -> pd.DataFrame:
        return scenarios_to_frame(self.scenarios)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with stable camelCase keys."""
        from .serialization import plan_to_dict

        return plan_to_dict(self)


def _recommendations(
    gap: GapAnalysis,
    optimization: StepUpOptimization,
    scenarios: Tuple[ScenarioResult, ...],
) -> Tuple[Suggestion, ...]:
    items = list(gap.suggestions)
    if optimization.can_stop_early:
        items.append(
            Suggestion(
                "Stop SIP step-up early",
                optimization.recommendation,
                "positive",
            )
        )
    if not gap.is_on_track:
        for res in scenarios:
            if res.meets_required:
                items.append(
                    Suggestion(
                        res.scenario.title,
                        f"{res.scenario.description} would add "
                        f"{format_currency(res.delta, compact=True)} and close the gap.",
                        "high",
                    )
                )
    return tuple(items)


def plan_retirement(
    request: PlanRequest,
    optimizer: Optional[StepUpOptimizer] = None,
    what_if: Optional[WhatIfEngine] = None,
) -> RetirementPlan:
    """
    Run the full retirement projection for *request*.

    Parameters
    ----------
    request : PlanRequest
    optimizer : StepUpOptimizer, optional
    what_if : WhatIfEngine, optional

    Returns
    -------
    RetirementPlan
    """
    params = request.params
    logger.info(
        "Planning retirement: age %d -> %d, life expectancy %d, strategy %s",
        params.current_age, params.retirement_age, params.life_expectancy,
        params.income_strategy.value,
    )
    inputs = aggregate(
        params,
        investments=request.investments,
        loans=request.loans,
        goals=request.goals,
        insurance=request.insurance,
        incomes=request.incomes,
        expenses=request.expenses,
    )

    matrix = tuple(with_requirements(project(inputs), inputs))
    requirement = required_corpus(inputs)
    gap = analyze_gap(inputs, matrix, requirement)
    target = requirement.for_strategy(params.income_strategy)
    optimization = (optimizer or StepUpOptimizer()).seek(inputs, target)
    projected = final_corpus(matrix)
    income = compare_strategies(inputs, projected)
    maturities = maturing_before_retirement(inputs)
    scenarios = tuple((what_if or WhatIfEngine()).run(inputs, matrix, target, maturities))

    summary = PlanSummary(
        as_of=params.as_of,
        current_age=params.current_age,
        retirement_age=params.retirement_age,
        life_expectancy=params.life_expectancy,
        years_to_retirement=params.years_to_retirement,
        retirement_years=requirement.retirement_years,
        starting_balances={b.instrument.key: b.opening_balance for b in inputs.balances},
        current_corpus=inputs.total_opening_balance,
        illiquid_value=inputs.illiquid_value,
        final_corpus=projected,
        income_strategy=params.income_strategy,
        required_corpus=target,
        corpus_gap=gap.corpus_gap,
        monthly_income_by_strategy={
            name: proj.first_year_monthly_income for name, proj in income.items()
        },
        selected_monthly_income=income[params.income_strategy.value].first_year_monthly_income,
        total_inflows=sum(r.total_inflow for r in matrix),
        total_goal_outflows=sum(r.goal_outflow for r in matrix),
        shortfall_years=tuple(r.year for r in matrix if r.shortfall),
        corpus_return_rate=params.corpus_return_rate,
        withdrawal_rate=params.withdrawal_rate,
        effective_from_year=params.step_up_effective_from_year,
    )
    return RetirementPlan(
        inputs=inputs,
        summary=summary,
        requirement=requirement,
        gap_analysis=gap,
        matrix=matrix,
        optimization=optimization,
        income=income,
        maturities=maturities,
        scenarios=scenarios,
        recommendations=_recommendations(gap, optimization, scenarios),
    )
