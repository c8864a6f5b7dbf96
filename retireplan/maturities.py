"""
Investments and policies maturing before retirement.

Deposits, PPF accounts and investment-linked insurance policies that mature
before the retirement date free up money that can be reinvested. This module
lists them with their expected maturity value; the what-if engine uses the
total for its "reinvest maturities" scenario.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Tuple

import pandas as pd

from .aggregator import PlanInputs
from .utils import rows_to_frame, whole_years_between

__all__ = [
    "MaturingItem",
    "MaturityReport",
    "retirement_date",
    "maturing_before_retirement",
]


@dataclass(frozen=True)
class MaturingItem:
    name: str
    type: str
    maturity_date: date
    years_to_maturity: int
    expected_maturity_value: float
    current_value: float
    id: Optional[str] = None


@dataclass(frozen=True)
class MaturityReport:
    investments: Tuple[MaturingItem, ...]
    insurance: Tuple[MaturingItem, ...]
    retirement_date: date

    @property
    def items(self) -> Tuple[MaturingItem, ...]:
        return self.investments + self.insurance

    @property
    def total(self) -> float:
        return sum(i.expected_maturity_value for i in self.items)

    @property
    def maturity_years(self) -> List[int]:
        return sorted(i.maturity_date.year for i in self.items)

    def to_frame(self) -> pd.DataFrame:
        return rows_to_frame(sorted(self.items, key=lambda i: i.maturity_date))


def retirement_date(as_of: date, years: int) -> date:
    """*as_of* moved forward by *years* (Feb 29 falls back to Feb 28)."""
    try:
        return as_of.replace(year=as_of.year + years)
    except ValueError:
        return as_of.replace(year=as_of.year + years, day=28)


def maturing_before_retirement(inputs: PlanInputs) -> MaturityReport:
    """Holdings and policies maturing after ``as_of`` and before retirement."""
    params = inputs.params
    as_of = params.as_of
    cutoff = retirement_date(as_of, params.years_to_retirement)

    investments = []
    for inv in inputs.investments:
        if inv.is_emergency_fund or inv.maturity_date is None:
            continue
        if as_of < inv.maturity_date < cutoff:
            investments.append(
                MaturingItem(
                    name=inv.name or inv.type.value,
                    type=inv.type.value,
                    maturity_date=inv.maturity_date,
                    years_to_maturity=whole_years_between(as_of, inv.maturity_date),
                    expected_maturity_value=inv.expected_maturity_value(as_of, params.ppf_return),
                    current_value=inv.value,
                    id=inv.id,
                )
            )

    policies = []
    for policy in inputs.insurance:
        if not policy.type.has_maturity or policy.maturity_date is None:
            continue
        if as_of < policy.maturity_date < cutoff:
            policies.append(
                MaturingItem(
                    name=policy.policy_name or policy.type.value,
                    type=policy.type.value,
                    maturity_date=policy.maturity_date,
                    years_to_maturity=whole_years_between(as_of, policy.maturity_date),
                    expected_maturity_value=policy.expected_maturity_value(as_of),
                    current_value=policy.fund_value,
                    id=policy.id,
                )
            )

    return MaturityReport(
        investments=tuple(sorted(investments, key=lambda i: i.maturity_date)),
        insurance=tuple(sorted(policies, key=lambda i: i.maturity_date)),
        retirement_date=cutoff,
    )
