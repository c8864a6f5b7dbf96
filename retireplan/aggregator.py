"""
Input aggregation for RetirePlan.

Purpose
-------
Normalizes heterogeneous financial records (investments, loans, goals,
insurance policies, income, expenses) plus PlanningParameters into a single
immutable PlanInputs snapshot that every downstream component reads.

Key components
--------------
- InstrumentType: the projection buckets (PPF, EPF, mutual funds, NPS,
  other liquid assets).
- InstrumentBalance: opening balance, monthly contribution and return rate
  of one bucket.
- CashflowEvent: a signed amount attached to a projection year
  (maturities, money-back payouts, goal disbursements).
- PlanInputs: the aggregated snapshot.
- aggregate(): records -> PlanInputs.

Bucket mapping
--------------
- PPF, EPF, MUTUAL_FUND, NPS map to their own buckets.
- FD, RD, STOCK, CASH, CRYPTO, OTHER form the OTHER_LIQUID bucket, whose
  rate is the value-weighted average of its holdings.
- GOLD and REAL_ESTATE are illiquid: tracked as ``illiquid_value`` and kept
  out of the corpus.
- Emergency-fund holdings are excluded entirely.
- A holding that matures before retirement leaves its bucket and re-enters
  the projection as an INVESTMENT_MATURITY inflow in its maturity year.

Example
-------
>>> from datetime import date
>>> from retireplan.config import PlanningParameters
>>> from retireplan.aggregator import aggregate, InstrumentType
>>> params = PlanningParameters(current_age=35, retirement_age=60, as_of=date(2025, 1, 1))
>>> inputs = aggregate(params, investments=[
...     {"type": "MUTUAL_FUND", "currentValue": 2_000_000, "monthlySip": 50_000},
... ])
>>> inputs.balance(InstrumentType.MUTUAL_FUND).opening_balance
2000000.0
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union

from .config import PlanningParameters
from .constants import DEFAULT_FD_RETURN, DEFAULT_RD_RETURN, MONTHS_PER_YEAR
from .records import (
    ExpenseRecord,
    GoalRecord,
    IncomeRecord,
    InsuranceRecord,
    InvestmentRecord,
    InvestmentType,
    LoanRecord,
)
from .utils import inflate, safe_float

__all__ = [
    "InstrumentType",
    "InstrumentBalance",
    "CashflowKind",
    "CashflowEvent",
    "IlliquidAsset",
    "PlanInputs",
    "aggregate",
]

logger = logging.getLogger(__name__)

R = TypeVar("R")


# ---------------------------------------------------------------------------
# Instruments
# ---------------------------------------------------------------------------

class InstrumentType(str, Enum):
    """Projection bucket."""

    PPF = "PPF"
    EPF = "EPF"
    MUTUAL_FUND = "MUTUAL_FUND"
    NPS = "NPS"
    OTHER_LIQUID = "OTHER_LIQUID"

    @property
    def steps_up(self) -> bool:
        """Only mutual-fund SIPs follow the step-up schedule."""
        return self is InstrumentType.MUTUAL_FUND

    @property
    def rate_reducible(self) -> bool:
        """Administered and fixed-income rates decay; market-linked ones do not."""
        return self in (InstrumentType.PPF, InstrumentType.EPF, InstrumentType.OTHER_LIQUID)

    @property
    def key(self) -> str:
        """camelCase key used in serialized rows (``mutualFund``)."""
        head, *rest = self.value.lower().split("_")
        return head + "".join(part.title() for part in rest)


@dataclass(frozen=True)
class InstrumentBalance:
    """
    Opening state of one bucket.

    Parameters
    ----------
    instrument : InstrumentType
    opening_balance : float
        Value at ``as_of``.
    monthly_contribution : float
        Contribution per month in year 0 (before any step-up).
    annual_return_rate : float
        Expected return, percent.
    """

    instrument: InstrumentType
    opening_balance: float = 0.0
    monthly_contribution: float = 0.0
    annual_return_rate: float = 0.0

    @property
    def steps_up(self) -> bool:
        return self.instrument.steps_up

    @property
    def rate_reducible(self) -> bool:
        return self.instrument.rate_reducible


# ---------------------------------------------------------------------------
# Cashflow events
# ---------------------------------------------------------------------------

class CashflowKind(str, Enum):
    INVESTMENT_MATURITY = "INVESTMENT_MATURITY"
    INSURANCE_MATURITY = "INSURANCE_MATURITY"
    MONEY_BACK = "MONEY_BACK"
    GOAL = "GOAL"

    @property
    def is_inflow(self) -> bool:
        return self is not CashflowKind.GOAL


@dataclass(frozen=True)
class CashflowEvent:
    """
    Signed amount attached to projection year ``year_offset``.

    Inflows are positive and goal disbursements negative. Amounts are
    nominal money of the event year.
    """

    year_offset: int
    amount: float
    kind: CashflowKind
    label: str = ""

    @property
    def inflow(self) -> float:
        return max(self.amount, 0.0)

    @property
    def outflow(self) -> float:
        return max(-self.amount, 0.0)


@dataclass(frozen=True)
class IlliquidAsset:
    name: str
    type: InvestmentType
    value: float


# ---------------------------------------------------------------------------
# Aggregated snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanInputs:
    """
    Everything the engine needs for one calculation.

    Balances are ordered as InstrumentType; events are sorted by year.
    Monthly figures are in today's money.
    """

    params: PlanningParameters
    balances: Tuple[InstrumentBalance, ...]
    events: Tuple[CashflowEvent, ...] = ()
    illiquid_assets: Tuple[IlliquidAsset, ...] = ()
    emergency_fund_value: float = 0.0
    monthly_income: float = 0.0
    monthly_expenses: float = 0.0
    monthly_emi: float = 0.0
    monthly_premiums: float = 0.0
    continuing_monthly_premiums: float = 0.0
    investments: Tuple[InvestmentRecord, ...] = ()
    loans: Tuple[LoanRecord, ...] = ()
    goals: Tuple[GoalRecord, ...] = ()
    insurance: Tuple[InsuranceRecord, ...] = ()
    incomes: Tuple[IncomeRecord, ...] = ()
    expenses: Tuple[ExpenseRecord, ...] = ()

    @property
    def years_to_retirement(self) -> int:
        return self.params.years_to_retirement

    @property
    def retirement_year(self) -> int:
        return self.params.retirement_year

    def balance(self, instrument: InstrumentType) -> InstrumentBalance:
        for b in self.balances:
            if b.instrument is instrument:
                return b
        return InstrumentBalance(instrument)

    @property
    def total_opening_balance(self) -> float:
        return sum(b.opening_balance for b in self.balances)

    @property
    def total_monthly_contribution(self) -> float:
        return sum(b.monthly_contribution for b in self.balances)

    @property
    def mf_sip(self) -> float:
        return self.balance(InstrumentType.MUTUAL_FUND).monthly_contribution

    @property
    def illiquid_value(self) -> float:
        return sum(a.value for a in self.illiquid_assets)

    @property
    def rental_incomes(self) -> Tuple[IncomeRecord, ...]:
        return tuple(i for i in self.incomes if i.is_active and i.is_rental)

    @property
    def annuity_policies(self) -> Tuple[InsuranceRecord, ...]:
        return tuple(p for p in self.insurance if p.is_annuity and p.monthly_annuity_amount > 0)

    def events_in_year(self, year_offset: int) -> List[CashflowEvent]:
        return [e for e in self.events if e.year_offset == year_offset]

    # -------------------- Retirement-dependent figures --------------------
    def continuing_monthly_expenses(self, retirement_year: Optional[int] = None) -> float:
        """Household expenses (today's money) still paid after *retirement_year*."""
        year = self.retirement_year if retirement_year is None else retirement_year
        return sum(
            e.monthly_amount for e in _live_expenses(self.expenses, self.params.current_year)
            if e.continues_after(year)
        )

    def post_retirement_monthly_emi(self, retirement_year: Optional[int] = None) -> float:
        """Nominal EMIs of loans that end after *retirement_year*."""
        year = self.retirement_year if retirement_year is None else retirement_year
        total = 0.0
        for loan in self.loans:
            end = loan.end_year(self.params.as_of)
            if end is not None and end > year:
                total += loan.emi
        return total

    def post_retirement_goals(self, from_offset: Optional[int] = None) -> float:
        """Inflated goal amounts falling at or after year offset *from_offset*."""
        start = self.years_to_retirement if from_offset is None else from_offset
        return sum(
            amount
            for goal in self.goals
            for offset, amount in _goal_occurrences(goal, self.params)
            if offset >= start
        )

    def with_params(self, params: PlanningParameters) -> "PlanInputs":
        """Re-aggregate the same records under different parameters."""
        return aggregate(
            params,
            investments=self.investments,
            loans=self.loans,
            goals=self.goals,
            insurance=self.insurance,
            incomes=self.incomes,
            expenses=self.expenses,
        )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

RecordLike = Union[Mapping[str, Any], Any]

_OTHER_LIQUID_TYPES = (
    InvestmentType.FD,
    InvestmentType.RD,
    InvestmentType.STOCK,
    InvestmentType.CASH,
    InvestmentType.CRYPTO,
    InvestmentType.OTHER,
)


def _coerce(records: Optional[Iterable[RecordLike]], record_cls: Type[R]) -> Tuple[R, ...]:
    if not records:
        return ()
    out = []
    for rec in records:
        if isinstance(rec, record_cls):
            out.append(rec)
        elif isinstance(rec, Mapping):
            out.append(record_cls.from_dict(rec))
        else:
            logger.debug("Skipping %s entry of type %s", record_cls.__name__, type(rec).__name__)
    return tuple(out)


def _matures_in_horizon(inv: InvestmentRecord, params: PlanningParameters) -> bool:
    if inv.maturity_date is None or inv.maturity_date <= params.as_of:
        return False
    offset = inv.maturity_date.year - params.current_year
    return 0 <= offset < params.years_to_retirement


def _other_liquid_rate(inv: InvestmentRecord, params: PlanningParameters) -> float:
    if inv.type is InvestmentType.FD:
        return inv.rate(DEFAULT_FD_RETURN)
    if inv.type is InvestmentType.RD:
        return inv.rate(DEFAULT_RD_RETURN)
    if inv.type is InvestmentType.STOCK:
        return inv.rate(params.mf_return)
    if inv.type is InvestmentType.CASH:
        return inv.rate(params.inflation_rate)
    return inv.rate(DEFAULT_FD_RETURN)


def _build_balances(
    investments: Sequence[InvestmentRecord],
    params: PlanningParameters,
) -> Tuple[Tuple[InstrumentBalance, ...], Tuple[CashflowEvent, ...], Tuple[IlliquidAsset, ...], float]:
    opening: Dict[InstrumentType, float] = {t: 0.0 for t in InstrumentType}
    monthly: Dict[InstrumentType, float] = {t: 0.0 for t in InstrumentType}
    weighted_rate = 0.0
    weight = 0.0
    events: List[CashflowEvent] = []
    illiquid: List[IlliquidAsset] = []
    emergency = 0.0

    direct = {
        InvestmentType.PPF: InstrumentType.PPF,
        InvestmentType.EPF: InstrumentType.EPF,
        InvestmentType.MUTUAL_FUND: InstrumentType.MUTUAL_FUND,
        InvestmentType.NPS: InstrumentType.NPS,
    }

    for inv in investments:
        if inv.is_emergency_fund:
            emergency += inv.value
            continue
        if inv.type.is_illiquid:
            illiquid.append(IlliquidAsset(inv.name or inv.type.value, inv.type, inv.value))
            continue
        if _matures_in_horizon(inv, params):
            offset = inv.maturity_date.year - params.current_year
            events.append(
                CashflowEvent(
                    year_offset=offset,
                    amount=inv.expected_maturity_value(params.as_of, params.ppf_return),
                    kind=CashflowKind.INVESTMENT_MATURITY,
                    label=f"{inv.name or inv.type.value} ({inv.type.value})",
                )
            )
            continue

        contribution = inv.monthly_sip + inv.yearly_contribution / MONTHS_PER_YEAR
        bucket = direct.get(inv.type, InstrumentType.OTHER_LIQUID)
        opening[bucket] += inv.value
        monthly[bucket] += contribution
        if bucket is InstrumentType.OTHER_LIQUID:
            w = inv.value if inv.value > 0 else contribution
            weighted_rate += _other_liquid_rate(inv, params) * w
            weight += w

    rates = {
        InstrumentType.PPF: params.ppf_return,
        InstrumentType.EPF: params.epf_return,
        InstrumentType.MUTUAL_FUND: params.mf_return,
        InstrumentType.NPS: params.nps_return,
        InstrumentType.OTHER_LIQUID: weighted_rate / weight if weight > 0 else DEFAULT_FD_RETURN,
    }
    balances = tuple(
        InstrumentBalance(
            instrument=t,
            opening_balance=opening[t],
            monthly_contribution=monthly[t],
            annual_return_rate=safe_float(rates[t]),
        )
        for t in InstrumentType
    )
    return balances, tuple(events), tuple(illiquid), emergency


def _insurance_events(
    policies: Sequence[InsuranceRecord],
    params: PlanningParameters,
) -> List[CashflowEvent]:
    events: List[CashflowEvent] = []
    horizon = params.years_to_retirement
    for policy in policies:
        name = policy.policy_name or policy.type.value
        if (
            policy.type.has_maturity
            and policy.maturity_date is not None
            and policy.maturity_date > params.as_of
        ):
            offset = policy.maturity_date.year - params.current_year
            if 0 <= offset < horizon:
                events.append(
                    CashflowEvent(
                        offset,
                        policy.expected_maturity_value(params.as_of),
                        CashflowKind.INSURANCE_MATURITY,
                        name,
                    )
                )
        payout = policy.money_back_payout
        if policy.start_date is not None and payout > 0:
            for k in policy.money_back_years:
                offset = policy.start_date.year + k - params.current_year
                if 0 <= offset < horizon:
                    events.append(
                        CashflowEvent(offset, payout, CashflowKind.MONEY_BACK, f"{name} money back")
                    )
    return events


def _goal_occurrences(goal: GoalRecord, params: PlanningParameters) -> List[Tuple[int, float]]:
    """(year offset, inflated amount) for every occurrence of *goal* from today on."""
    if goal.target_year is None or goal.target_amount <= 0:
        return []
    first = goal.target_year - params.current_year
    # nothing past the planning horizon is ever inflated
    last = params.years_to_retirement + params.retirement_years - 1
    if first > last:
        logger.debug("Goal %r at offset %d is beyond the planning horizon; ignored", goal.name, first)
        return []
    if goal.is_recurring:
        offsets = range(max(first, 0), last + 1)
    else:
        offsets = range(first, first + 1) if first >= 0 else range(0)
    return [(o, inflate(goal.target_amount, params.inflation_rate, o)) for o in offsets]


def _goal_events(goals: Sequence[GoalRecord], params: PlanningParameters) -> List[CashflowEvent]:
    """Goal outflows falling inside the accumulation horizon."""
    events: List[CashflowEvent] = []
    horizon = params.years_to_retirement
    for goal in goals:
        if goal.target_year is None or goal.target_amount <= 0:
            logger.debug("Goal %r has no target year or amount; ignored", goal.name)
            continue
        if not goal.is_recurring and goal.target_year < params.current_year:
            warnings.warn(
                f"Goal '{goal.name}' targets {goal.target_year}, before "
                f"{params.current_year}; ignored.",
                UserWarning,
                stacklevel=3,
            )
            continue
        for offset, amount in _goal_occurrences(goal, params):
            if offset < horizon:
                events.append(CashflowEvent(offset, -amount, CashflowKind.GOAL, goal.name))
    return events


def _live_expenses(expenses: Sequence[ExpenseRecord], current_year: int) -> List[ExpenseRecord]:
    return [
        e for e in expenses
        if not e.is_time_bound or e.end_year is None or e.end_year >= current_year
    ]


def aggregate(
    params: PlanningParameters,
    investments: Optional[Iterable[RecordLike]] = None,
    loans: Optional[Iterable[RecordLike]] = None,
    goals: Optional[Iterable[RecordLike]] = None,
    insurance: Optional[Iterable[RecordLike]] = None,
    incomes: Optional[Iterable[RecordLike]] = None,
    expenses: Optional[Iterable[RecordLike]] = None,
) -> PlanInputs:
    """
    Normalize records into a PlanInputs snapshot.

    Records may be given as record instances or as plain mappings (camelCase
    or snake_case keys). Unusable entries are skipped; the function never
    raises on bad record content.

    Parameters
    ----------
    params : PlanningParameters
    investments, loans, goals, insurance, incomes, expenses : iterable, optional

    Returns
    -------
    PlanInputs
    """
    inv = _coerce(investments, InvestmentRecord)
    loan_recs = _coerce(loans, LoanRecord)
    goal_recs = _coerce(goals, GoalRecord)
    policy_recs = _coerce(insurance, InsuranceRecord)
    income_recs = _coerce(incomes, IncomeRecord)
    expense_recs = _coerce(expenses, ExpenseRecord)

    balances, maturity_events, illiquid, emergency = _build_balances(inv, params)
    events = sorted(
        list(maturity_events)
        + _insurance_events(policy_recs, params)
        + _goal_events(goal_recs, params),
        key=lambda e: (e.year_offset, e.kind.value, e.label),
    )

    active_loans = [
        loan for loan in loan_recs
        if loan.end_year(params.as_of) is None
        or loan.end_year(params.as_of) >= params.current_year
    ]

    inputs = PlanInputs(
        params=params,
        balances=balances,
        events=tuple(events),
        illiquid_assets=illiquid,
        emergency_fund_value=emergency,
        monthly_income=sum(i.monthly_amount for i in income_recs if i.is_active),
        monthly_expenses=sum(
            e.monthly_amount for e in _live_expenses(expense_recs, params.current_year)
        ),
        monthly_emi=sum(loan.emi for loan in active_loans),
        monthly_premiums=sum(p.annual_premium for p in policy_recs) / MONTHS_PER_YEAR,
        continuing_monthly_premiums=sum(
            p.annual_premium for p in policy_recs if p.continues_after()
        ) / MONTHS_PER_YEAR,
        investments=inv,
        loans=loan_recs,
        goals=goal_recs,
        insurance=policy_recs,
        incomes=income_recs,
        expenses=expense_recs,
    )
    logger.debug(
        "Aggregated %d investments into %d buckets, %d cashflow events, illiquid=%.0f",
        len(inv), len(balances), len(events), inputs.illiquid_value,
    )
    return inputs
