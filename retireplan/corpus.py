"""
Required-corpus and gap analysis for RetirePlan.

Purpose
-------
Computes, per withdrawal strategy, the corpus needed at retirement to fund
post-retirement expenses, and compares it with the projected corpus.

Strategy formulas
-----------------
Let ``E`` be the first-year post-retirement expense:

    E = (continuing household expenses + continuing insurance premiums)
        * 12 * (1 + g)^t  +  12 * EMIs of loans running past retirement

with ``t`` years to retirement, ``n`` retirement years, ``r`` the corpus
return, ``g`` inflation and ``w`` the withdrawal rate.

- SUSTAINABLE:      max(E / w, PV_due(E, r, g, n))
  where PV_due is the present value of a growing annuity due,
      PV_due = E * sum_{k=0}^{n-1} ((1+g)/(1+r))^k
- SAFE_4_PERCENT:   E / 0.04
- SIMPLE_DEPLETION: E * n   (no growth, no inflation)

Inflated goal amounts due after retirement are added to every strategy.
``n <= 0`` yields a requirement of 0.

Implied ordering: SIMPLE_DEPLETION >= PV_due whenever r >= g, and
SIMPLE_DEPLETION <= SAFE_4_PERCENT whenever n <= 25.

Key components
--------------
- strategy_requirement: the pure formula above
- required_corpus / CorpusRequirement: requirement for a retirement horizon
- with_requirements: annotate matrix rows with per-strategy requirement
- analyze_gap / GapAnalysis: the full gap report
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

from .aggregator import PlanInputs
from .config import IncomeStrategy
from .constants import (
    EXPENSE_PROJECTION_YEARS,
    FREED_EXPENSE_ANNUAL_RETURN,
    GAP_SIP_ANNUAL_RETURN,
    MONTHS_PER_YEAR,
    SAFE_WITHDRAWAL_RATE,
)
from .projection import ProjectionRow, final_corpus
from .utils import growing_annuity_due_pv, inflate, required_monthly_sip, sip_future_value

__all__ = [
    "strategy_requirement",
    "CorpusRequirement",
    "required_corpus",
    "with_requirements",
    "ExpenseProjectionPoint",
    "ContinuingPremium",
    "EndingExpense",
    "Suggestion",
    "GapAnalysis",
    "analyze_gap",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Requirement per strategy
# ---------------------------------------------------------------------------

def strategy_requirement(
    strategy: IncomeStrategy,
    annual_expense: float,
    retirement_years: int,
    corpus_return_rate: float,
    inflation_rate: float,
    withdrawal_rate: float,
) -> float:
    """
    Corpus required by *strategy* for a first-year expense of *annual_expense*.

    Rates are in percent. Returns 0 when there is nothing to fund.

    Examples
    --------
    >>> strategy_requirement(IncomeStrategy.SAFE_4_PERCENT, 1_200_000, 25, 10, 6, 8)
    30000000.0
    >>> strategy_requirement(IncomeStrategy.SIMPLE_DEPLETION, 1_200_000, 25, 10, 6, 8)
    30000000.0
    """
    if retirement_years <= 0 or annual_expense <= 0:
        return 0.0
    if strategy is IncomeStrategy.SAFE_4_PERCENT:
        return annual_expense / SAFE_WITHDRAWAL_RATE
    if strategy is IncomeStrategy.SIMPLE_DEPLETION:
        return annual_expense * retirement_years
    pv = growing_annuity_due_pv(annual_expense, corpus_return_rate, inflation_rate, retirement_years)
    if withdrawal_rate <= 0:
        return pv
    return max(annual_expense / (withdrawal_rate / 100.0), pv)


@dataclass(frozen=True)
class CorpusRequirement:
    """
    Requirement for retiring ``years_to_retirement`` years from today.

    Attributes
    ----------
    monthly_expense_today : float
        Continuing expenses plus premiums in today's money.
    monthly_expense_at_retirement : float
        The same, inflated to retirement.
    annual_expense : float
        ``E``: first-year post-retirement outgo including continuing EMIs.
    post_retirement_goals : float
        Inflated goals due after retirement, added to every strategy.
    by_strategy : dict
        Strategy name -> required corpus.
    """

    years_to_retirement: int
    retirement_years: int
    monthly_expense_today: float
    monthly_expense_at_retirement: float
    annual_expense: float
    post_retirement_emi: float
    post_retirement_goals: float
    by_strategy: Dict[str, float]

    def for_strategy(self, strategy: IncomeStrategy) -> float:
        return self.by_strategy.get(strategy.value, 0.0)


def required_corpus(inputs: PlanInputs, years_to_retirement: Optional[int] = None) -> CorpusRequirement:
    """
    Required corpus under every strategy for the given accumulation length.

    ``years_to_retirement`` defaults to the planned horizon; other values
    answer "what if I retired at the end of that year instead".
    """
    params = inputs.params
    t = params.years_to_retirement if years_to_retirement is None else max(0, years_to_retirement)
    retire_age = params.current_age + t
    n = max(0, params.life_expectancy - retire_age)
    if params.is_degenerate:
        # retirement age not after current age: nothing meaningful to fund
        n = 0
    retirement_year = params.current_year + t

    monthly_today = (
        inputs.continuing_monthly_expenses(retirement_year) + inputs.continuing_monthly_premiums
    )
    monthly_at_retirement = inflate(monthly_today, params.inflation_rate, t)
    emi = inputs.post_retirement_monthly_emi(retirement_year)
    annual = (monthly_at_retirement + emi) * MONTHS_PER_YEAR
    goals = inputs.post_retirement_goals(t) if n > 0 else 0.0

    by_strategy = {}
    for strategy in IncomeStrategy:
        base = strategy_requirement(
            strategy, annual, n, params.corpus_return_rate,
            params.inflation_rate, params.withdrawal_rate,
        )
        by_strategy[strategy.value] = base + goals if n > 0 else 0.0

    return CorpusRequirement(
        years_to_retirement=t,
        retirement_years=n,
        monthly_expense_today=monthly_today,
        monthly_expense_at_retirement=monthly_at_retirement,
        annual_expense=annual,
        post_retirement_emi=emi,
        post_retirement_goals=goals,
        by_strategy=by_strategy,
    )


def with_requirements(rows: Sequence[ProjectionRow], inputs: PlanInputs) -> List[ProjectionRow]:
    """
    Annotate each row with the corpus required to retire at the end of that
    year, and whether the row's net corpus already meets it.
    """
    annotated = []
    for row in rows:
        req = required_corpus(inputs, row.index + 1).by_strategy
        can = {name: row.net_corpus >= value for name, value in req.items()}
        annotated.append(replace(row, required_corpus=req, can_retire=can))
    return annotated


# ---------------------------------------------------------------------------
# Gap analysis
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExpenseProjectionPoint:
    label: str
    years_from_now: int
    age: int
    monthly_expense: float

    @property
    def yearly_expense(self) -> float:
        return self.monthly_expense * MONTHS_PER_YEAR


@dataclass(frozen=True)
class ContinuingPremium:
    name: str
    type: str
    annual_premium: float

    @property
    def monthly_premium(self) -> float:
        return self.annual_premium / MONTHS_PER_YEAR


@dataclass(frozen=True)
class EndingExpense:
    """A time-bound expense that stops before retirement and frees cash."""

    name: str
    monthly_amount: float
    end_year: int
    years_invested: int
    potential_corpus: float


@dataclass(frozen=True)
class Suggestion:
    title: str
    description: str
    impact: str


@dataclass(frozen=True)
class GapAnalysis:
    """
    Projected vs. required corpus and the figures behind it.

    ``corpus_gap > 0`` signals a shortfall, ``<= 0`` a surplus.
    """

    selected_strategy: IncomeStrategy
    projected_corpus: float
    required_corpus: float
    required_by_strategy: Dict[str, float]
    corpus_gap: float
    gap_percent: float
    is_on_track: bool
    additional_monthly_sip: float
    years_to_retirement: int
    retirement_years: int
    monthly_expense_today: float
    monthly_expense_at_retirement: float
    annual_expense_at_retirement: float
    post_retirement_emi: float
    post_retirement_goals: float
    monthly_income: float
    monthly_expenses: float
    monthly_emi: float
    monthly_sip: float
    monthly_premiums: float
    net_monthly_savings: float
    expense_projection: Tuple[ExpenseProjectionPoint, ...] = ()
    continuing_insurance: Tuple[ContinuingPremium, ...] = ()
    ending_expenses: Tuple[EndingExpense, ...] = ()
    suggestions: Tuple[Suggestion, ...] = field(default_factory=tuple)

    @property
    def total_freed_monthly(self) -> float:
        return sum(e.monthly_amount for e in self.ending_expenses)

    @property
    def total_potential_corpus(self) -> float:
        return sum(e.potential_corpus for e in self.ending_expenses)


def _expense_projection(inputs: PlanInputs, monthly_today: float) -> Tuple[ExpenseProjectionPoint, ...]:
    params = inputs.params
    n = params.years_to_retirement
    points = [ExpenseProjectionPoint("Current", 0, params.current_age, monthly_today)]
    for years in EXPENSE_PROJECTION_YEARS:
        if years < n:
            points.append(
                ExpenseProjectionPoint(
                    f"In {years} years",
                    years,
                    params.current_age + years,
                    inflate(monthly_today, params.inflation_rate, years),
                )
            )
    if n > 0:
        points.append(
            ExpenseProjectionPoint(
                "At retirement",
                n,
                params.retirement_age,
                inflate(monthly_today, params.inflation_rate, n),
            )
        )
    return tuple(points)


def _ending_expenses(inputs: PlanInputs) -> Tuple[EndingExpense, ...]:
    params = inputs.params
    out = []
    for e in inputs.expenses:
        if not e.ends_before(params.retirement_year) or e.end_year < params.current_year:
            continue
        years = params.retirement_year - e.end_year
        out.append(
            EndingExpense(
                name=e.name or e.category,
                monthly_amount=e.monthly_amount,
                end_year=e.end_year,
                years_invested=years,
                potential_corpus=sip_future_value(
                    e.monthly_amount, FREED_EXPENSE_ANNUAL_RETURN, years
                ),
            )
        )
    return tuple(sorted(out, key=lambda x: (x.end_year, x.name)))


def _suggestions(gap: float, additional_sip: float, inputs: PlanInputs) -> Tuple[Suggestion, ...]:
    if gap <= 0:
        return (
            Suggestion(
                "You're on track",
                "Your projected corpus exceeds your retirement needs.",
                "positive",
            ),
        )
    suggestions = [
        Suggestion(
            "Increase monthly SIP",
            f"Increase your monthly SIP by {additional_sip:,.0f} to close the gap.",
            "high",
        ),
        Suggestion(
            "Reduce discretionary expenses",
            f"Cutting {inputs.monthly_expenses * 0.10:,.0f}/month from expenses "
            "and investing it can help.",
            "medium",
        ),
    ]
    if inputs.years_to_retirement < 25:
        suggestions.append(
            Suggestion(
                "Consider delayed retirement",
                "Working 2-3 more years can significantly boost your corpus.",
                "high",
            )
        )
    suggestions.append(
        Suggestion(
            "Review asset allocation",
            "Higher equity allocation early on may provide better returns.",
            "medium",
        )
    )
    return tuple(suggestions)


def analyze_gap(
    inputs: PlanInputs,
    matrix: Sequence[ProjectionRow],
    requirement: Optional[CorpusRequirement] = None,
) -> GapAnalysis:
    """
    Compare the projected corpus at retirement with the requirement of the
    selected strategy.

    Parameters
    ----------
    inputs : PlanInputs
    matrix : sequence of ProjectionRow
        Baseline projection; its last row is the corpus at retirement.
    requirement : CorpusRequirement, optional
        Precomputed requirement for the planned horizon.

    Returns
    -------
    GapAnalysis
    """
    params = inputs.params
    req = requirement or required_corpus(inputs)
    projected = final_corpus(matrix)
    selected = params.income_strategy
    required = req.for_strategy(selected)
    gap = required - projected
    gap_percent = gap / required * 100.0 if required > 0 else 0.0
    additional_sip = (
        required_monthly_sip(gap, GAP_SIP_ANNUAL_RETURN, params.years_to_retirement)
        if gap > 0 else 0.0
    )

    monthly_sip = inputs.total_monthly_contribution
    net_savings = (
        inputs.monthly_income
        - inputs.monthly_expenses
        - inputs.monthly_emi
        - inputs.monthly_premiums
        - monthly_sip
    )
    continuing = tuple(
        ContinuingPremium(p.policy_name or p.type.value, p.type.value, p.annual_premium)
        for p in inputs.insurance
        if p.continues_after() and p.annual_premium > 0
    )

    logger.debug(
        "Gap (%s): required=%.0f projected=%.0f gap=%.0f",
        selected.value, required, projected, gap,
    )
    return GapAnalysis(
        selected_strategy=selected,
        projected_corpus=projected,
        required_corpus=required,
        required_by_strategy=dict(req.by_strategy),
        corpus_gap=gap,
        gap_percent=gap_percent,
        is_on_track=gap <= 0,
        additional_monthly_sip=additional_sip,
        years_to_retirement=params.years_to_retirement,
        retirement_years=req.retirement_years,
        monthly_expense_today=req.monthly_expense_today,
        monthly_expense_at_retirement=req.monthly_expense_at_retirement,
        annual_expense_at_retirement=req.annual_expense,
        post_retirement_emi=req.post_retirement_emi,
        post_retirement_goals=req.post_retirement_goals,
        monthly_income=inputs.monthly_income,
        monthly_expenses=inputs.monthly_expenses,
        monthly_emi=inputs.monthly_emi,
        monthly_sip=monthly_sip,
        monthly_premiums=inputs.monthly_premiums,
        net_monthly_savings=net_savings,
        expense_projection=_expense_projection(inputs, req.monthly_expense_today),
        continuing_insurance=continuing,
        ending_expenses=_ending_expenses(inputs),
        suggestions=_suggestions(gap, additional_sip, inputs),
    )
