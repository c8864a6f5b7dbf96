"""
Input records for RetirePlan.

Purpose
-------
Explicit, typed records for the financial entities that feed the engine:
investments, loans, goals, insurance policies, income sources and household
expenses. Records are produced by external collaborators (CRUD services,
JSON files) and are consumed read-only by the aggregator.

Each record is a frozen dataclass with a lenient ``from_dict`` constructor
that accepts either snake_case or camelCase keys and defaults missing or
malformed values instead of raising.

Key components
--------------
- InvestmentRecord / InvestmentType
- LoanRecord
- GoalRecord
- InsuranceRecord / InsuranceType / HealthInsuranceType
- IncomeRecord
- ExpenseRecord / ExpenseFrequency

Example
-------
>>> from retireplan.records import InvestmentRecord, InvestmentType
>>> mf = InvestmentRecord.from_dict(
...     {"type": "MUTUAL_FUND", "currentValue": "2000000", "monthlySip": 50000}
... )
>>> mf.type is InvestmentType.MUTUAL_FUND, mf.current_value
(True, 2000000.0)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar

from pydantic.alias_generators import to_camel

from .constants import DEFAULT_FD_RETURN, DEFAULT_RD_RETURN, DEFAULT_ULIP_RETURN, MONTHS_PER_YEAR
from .utils import (
    future_value,
    safe_date,
    safe_float,
    safe_int,
    sip_future_value,
    whole_years_between,
)

__all__ = [
    "InvestmentType",
    "InvestmentRecord",
    "LoanRecord",
    "GoalRecord",
    "InsuranceType",
    "HealthInsuranceType",
    "InsuranceRecord",
    "IncomeRecord",
    "ExpenseFrequency",
    "ExpenseRecord",
]

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


# ---------------------------------------------------------------------------
# Lenient field access
# ---------------------------------------------------------------------------

def _get(data: Mapping[str, Any], name: str) -> Any:
    """Value for *name* under its snake_case or camelCase key."""
    if name in data:
        return data[name]
    return data.get(to_camel(name))


def _enum(enum_cls: Type[E], value: Any, default: E) -> E:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        if key in enum_cls.__members__:
            return enum_cls[key]
    if value is not None:
        logger.debug("Unknown %s %r, using %s", enum_cls.__name__, value, default.name)
    return default


def _opt_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"true", "yes", "1"}:
            return True
        if text in {"false", "no", "0"}:
            return False
        return None
    return bool(value)


def _opt_float(value: Any) -> Optional[float]:
    result = safe_float(value, default=math.nan)
    return None if math.isnan(result) else result


def _opt_int(value: Any) -> Optional[int]:
    result = _opt_float(value)
    return None if result is None else int(result)


def _int_list(value: Any) -> Tuple[int, ...]:
    """Parse "5,10,15" or [5, 10, 15] into a tuple of ints."""
    if value is None:
        return ()
    items = value.split(",") if isinstance(value, str) else value
    try:
        parsed = [safe_int(item, default=-1) for item in items]
    except TypeError:
        return ()
    return tuple(v for v in parsed if v >= 0)


# ---------------------------------------------------------------------------
# Investments
# ---------------------------------------------------------------------------

class InvestmentType(str, Enum):
    MUTUAL_FUND = "MUTUAL_FUND"
    STOCK = "STOCK"
    FD = "FD"
    RD = "RD"
    PPF = "PPF"
    EPF = "EPF"
    NPS = "NPS"
    REAL_ESTATE = "REAL_ESTATE"
    GOLD = "GOLD"
    CRYPTO = "CRYPTO"
    CASH = "CASH"
    OTHER = "OTHER"

    @property
    def is_illiquid(self) -> bool:
        """Sellable but not part of the investable corpus."""
        return self in (InvestmentType.REAL_ESTATE, InvestmentType.GOLD)


@dataclass(frozen=True)
class InvestmentRecord:
    """
    One holding as maintained by the user.

    Parameters
    ----------
    type : InvestmentType
        Instrument kind; decides the projection bucket.
    name : str
        Display name.
    current_value : float
        Market value today. Falls back to ``invested_amount`` when absent.
    invested_amount : float
        Total amount invested so far.
    monthly_sip : float
        Monthly contribution (SIP for funds, deposit for RD, employee
        contribution for EPF/NPS).
    yearly_contribution : float
        Annual contribution (PPF).
    maturity_date : date, optional
        Maturity for FD/RD/PPF.
    interest_rate : float, optional
        Contracted rate for deposits, percent.
    expected_return : float, optional
        Expected annual return, percent.
    is_emergency_fund : bool
        Earmarked as emergency fund; excluded from the corpus.
    """

    type: InvestmentType = InvestmentType.OTHER
    name: str = ""
    id: Optional[str] = None
    current_value: float = 0.0
    invested_amount: float = 0.0
    monthly_sip: float = 0.0
    yearly_contribution: float = 0.0
    maturity_date: Optional[date] = None
    interest_rate: Optional[float] = None
    expected_return: Optional[float] = None
    is_emergency_fund: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InvestmentRecord":
        return cls(
            type=_enum(InvestmentType, _get(data, "type"), InvestmentType.OTHER),
            name=str(_get(data, "name") or ""),
            id=_get(data, "id"),
            current_value=max(0.0, safe_float(_get(data, "current_value"))),
            invested_amount=max(0.0, safe_float(_get(data, "invested_amount"))),
            monthly_sip=max(0.0, safe_float(_get(data, "monthly_sip"))),
            yearly_contribution=max(0.0, safe_float(_get(data, "yearly_contribution"))),
            maturity_date=safe_date(_get(data, "maturity_date")),
            interest_rate=_opt_float(_get(data, "interest_rate")),
            expected_return=_opt_float(_get(data, "expected_return")),
            is_emergency_fund=bool(_opt_bool(_get(data, "is_emergency_fund"))),
        )

    @property
    def value(self) -> float:
        """Current value, or the invested amount when no valuation exists."""
        return self.current_value if self.current_value > 0 else self.invested_amount

    def rate(self, default: float) -> float:
        """Contracted or expected rate, percent."""
        for candidate in (self.interest_rate, self.expected_return):
            if candidate is not None and candidate >= 0:
                return candidate
        return default

    def expected_maturity_value(self, as_of: date, ppf_rate: float) -> float:
        """
        Value expected on ``maturity_date``.

        FDs compound at their contracted rate; RDs and PPF additionally
        accumulate their remaining monthly/yearly contributions as a SIP.
        Anything else grows at its expected return. Without a future
        maturity date the current value is returned.
        """
        if self.maturity_date is None:
            return self.value
        years = whole_years_between(as_of, self.maturity_date)
        if years <= 0:
            return self.value
        if self.type is InvestmentType.FD:
            return future_value(self.value, self.rate(DEFAULT_FD_RETURN), years)
        if self.type is InvestmentType.RD:
            rate = self.rate(DEFAULT_RD_RETURN)
            return future_value(self.value, rate, years) + sip_future_value(
                self.monthly_sip, rate, years
            )
        if self.type is InvestmentType.PPF:
            rate = self.expected_return if self.expected_return is not None else ppf_rate
            monthly = self.yearly_contribution / MONTHS_PER_YEAR + self.monthly_sip
            return future_value(self.value, rate, years) + sip_future_value(monthly, rate, years)
        return future_value(self.value, self.rate(DEFAULT_FD_RETURN), years)


# ---------------------------------------------------------------------------
# Loans
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LoanRecord:
    """A loan with a monthly EMI and an end date (or remaining tenure)."""

    name: str = ""
    id: Optional[str] = None
    type: str = "OTHER"
    emi: float = 0.0
    outstanding_amount: float = 0.0
    end_date: Optional[date] = None
    remaining_months: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LoanRecord":
        return cls(
            name=str(_get(data, "name") or ""),
            id=_get(data, "id"),
            type=str(_get(data, "type") or "OTHER").upper(),
            emi=max(0.0, safe_float(_get(data, "emi"))),
            outstanding_amount=max(0.0, safe_float(_get(data, "outstanding_amount"))),
            end_date=safe_date(_get(data, "end_date")),
            remaining_months=_opt_int(_get(data, "remaining_months")),
        )

    def end_year(self, as_of: date) -> Optional[int]:
        """Calendar year of the last EMI, or None when unknown."""
        if self.end_date is not None:
            return self.end_date.year
        if self.remaining_months is not None:
            months = max(0, self.remaining_months)
            return as_of.year + (as_of.month - 1 + months) // MONTHS_PER_YEAR
        return None


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GoalRecord:
    """
    A future spending goal in today's money.

    ``target_amount`` is inflated to the target year by the projector.
    Recurring goals repeat every year from ``target_year`` onward.
    """

    name: str = ""
    id: Optional[str] = None
    target_amount: float = 0.0
    target_year: Optional[int] = None
    priority: str = "MEDIUM"
    is_recurring: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GoalRecord":
        return cls(
            name=str(_get(data, "name") or ""),
            id=_get(data, "id"),
            target_amount=max(0.0, safe_float(_get(data, "target_amount"))),
            target_year=_opt_int(_get(data, "target_year")),
            priority=str(_get(data, "priority") or "MEDIUM").upper(),
            is_recurring=bool(_opt_bool(_get(data, "is_recurring"))),
        )


# ---------------------------------------------------------------------------
# Insurance
# ---------------------------------------------------------------------------

class InsuranceType(str, Enum):
    TERM_LIFE = "TERM_LIFE"
    HEALTH = "HEALTH"
    ULIP = "ULIP"
    ENDOWMENT = "ENDOWMENT"
    MONEY_BACK = "MONEY_BACK"
    ANNUITY = "ANNUITY"
    VEHICLE = "VEHICLE"
    OTHER = "OTHER"

    @property
    def has_maturity(self) -> bool:
        return self in (InsuranceType.ULIP, InsuranceType.ENDOWMENT, InsuranceType.MONEY_BACK)


class HealthInsuranceType(str, Enum):
    GROUP = "GROUP"
    PERSONAL = "PERSONAL"
    FAMILY_FLOATER = "FAMILY_FLOATER"


@dataclass(frozen=True)
class InsuranceRecord:
    """
    An insurance policy.

    Premiums matter to the post-retirement expense base when the policy
    continues after retirement; investment-linked policies produce maturity
    and money-back inflows; annuity policies produce post-retirement income.
    """

    type: InsuranceType = InsuranceType.OTHER
    policy_name: str = ""
    id: Optional[str] = None
    health_type: Optional[HealthInsuranceType] = None
    annual_premium: float = 0.0
    sum_assured: float = 0.0
    fund_value: float = 0.0
    maturity_benefit: Optional[float] = None
    start_date: Optional[date] = None
    maturity_date: Optional[date] = None
    continues_after_retirement: Optional[bool] = None
    money_back_years: Tuple[int, ...] = ()
    money_back_percent: float = 0.0
    money_back_amount: float = 0.0
    is_annuity_policy: bool = False
    annuity_start_year: Optional[int] = None
    monthly_annuity_amount: float = 0.0
    annuity_growth_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InsuranceRecord":
        health = _get(data, "health_type")
        return cls(
            type=_enum(InsuranceType, _get(data, "type"), InsuranceType.OTHER),
            policy_name=str(_get(data, "policy_name") or _get(data, "name") or ""),
            id=_get(data, "id"),
            health_type=(
                _enum(HealthInsuranceType, health, HealthInsuranceType.PERSONAL)
                if health is not None else None
            ),
            annual_premium=max(0.0, safe_float(_get(data, "annual_premium"))),
            sum_assured=max(0.0, safe_float(_get(data, "sum_assured"))),
            fund_value=max(0.0, safe_float(_get(data, "fund_value"))),
            maturity_benefit=_opt_float(_get(data, "maturity_benefit")),
            start_date=safe_date(_get(data, "start_date")),
            maturity_date=safe_date(_get(data, "maturity_date")),
            continues_after_retirement=_opt_bool(_get(data, "continues_after_retirement")),
            money_back_years=_int_list(_get(data, "money_back_years")),
            money_back_percent=max(0.0, safe_float(_get(data, "money_back_percent"))),
            money_back_amount=max(0.0, safe_float(_get(data, "money_back_amount"))),
            is_annuity_policy=bool(_opt_bool(_get(data, "is_annuity_policy"))),
            annuity_start_year=_opt_int(_get(data, "annuity_start_year")),
            monthly_annuity_amount=max(0.0, safe_float(_get(data, "monthly_annuity_amount"))),
            annuity_growth_rate=max(0.0, safe_float(_get(data, "annuity_growth_rate"))),
        )

    @property
    def is_annuity(self) -> bool:
        return self.is_annuity_policy or self.type is InsuranceType.ANNUITY

    def continues_after(self) -> bool:
        """
        Whether the premium keeps being paid after retirement.

        An explicit flag wins. Otherwise term life and non-group health
        cover continue; group health (employer provided), investment-linked
        and other policies stop.
        """
        if self.continues_after_retirement is not None:
            return self.continues_after_retirement
        if self.type is InsuranceType.TERM_LIFE:
            return True
        if self.type is InsuranceType.HEALTH:
            return self.health_type is not HealthInsuranceType.GROUP
        return False

    def expected_maturity_value(self, as_of: date) -> float:
        """
        Payout expected at maturity.

        The stated maturity benefit when present; for ULIPs the fund value
        grown at the default ULIP return; otherwise the sum assured.
        """
        if self.maturity_benefit is not None and self.maturity_benefit > 0:
            return self.maturity_benefit
        if self.type is InsuranceType.ULIP and self.fund_value > 0:
            years = 0
            if self.maturity_date is not None:
                years = max(0, whole_years_between(as_of, self.maturity_date))
            return future_value(self.fund_value, DEFAULT_ULIP_RETURN, years)
        return self.sum_assured

    @property
    def money_back_payout(self) -> float:
        if self.money_back_amount > 0:
            return self.money_back_amount
        return self.sum_assured * self.money_back_percent / 100.0


# ---------------------------------------------------------------------------
# Income
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class IncomeRecord:
    """A monthly income source; rental income continues after retirement."""

    source: str = ""
    id: Optional[str] = None
    monthly_amount: float = 0.0
    annual_increment: float = 0.0
    is_active: bool = True
    is_rental: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "IncomeRecord":
        source = str(_get(data, "source") or "")
        active = _opt_bool(_get(data, "is_active"))
        rental = _opt_bool(_get(data, "is_rental"))
        if rental is None:
            rental = "rent" in source.lower()
        return cls(
            source=source,
            id=_get(data, "id"),
            monthly_amount=max(0.0, safe_float(_get(data, "monthly_amount"))),
            annual_increment=max(0.0, safe_float(_get(data, "annual_increment"))),
            is_active=True if active is None else active,
            is_rental=rental,
        )


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

class ExpenseFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    HALF_YEARLY = "HALF_YEARLY"
    YEARLY = "YEARLY"
    ONE_TIME = "ONE_TIME"

    @property
    def months_interval(self) -> int:
        return {
            ExpenseFrequency.MONTHLY: 1,
            ExpenseFrequency.QUARTERLY: 3,
            ExpenseFrequency.HALF_YEARLY: 6,
            ExpenseFrequency.YEARLY: 12,
            ExpenseFrequency.ONE_TIME: 0,
        }[self]


@dataclass(frozen=True)
class ExpenseRecord:
    """
    A household expense.

    Time-bound expenses (school fees, rent until a home loan closes) stop in
    ``end_year``; the rest continue indefinitely unless flagged otherwise.
    """

    name: str = ""
    id: Optional[str] = None
    category: str = "OTHER"
    amount: float = 0.0
    frequency: ExpenseFrequency = ExpenseFrequency.MONTHLY
    is_time_bound: bool = False
    end_year: Optional[int] = None
    continues_after_retirement: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExpenseRecord":
        end_year = _opt_int(_get(data, "end_year"))
        if end_year is None:
            end = safe_date(_get(data, "end_date"))
            end_year = end.year if end is not None else None
        time_bound = _opt_bool(_get(data, "is_time_bound"))
        return cls(
            name=str(_get(data, "name") or ""),
            id=_get(data, "id"),
            category=str(_get(data, "category") or "OTHER").upper(),
            amount=max(0.0, safe_float(_get(data, "amount") or _get(data, "monthly_amount"))),
            frequency=_enum(ExpenseFrequency, _get(data, "frequency"), ExpenseFrequency.MONTHLY),
            is_time_bound=bool(time_bound) if time_bound is not None else end_year is not None,
            end_year=end_year,
            continues_after_retirement=_opt_bool(_get(data, "continues_after_retirement")),
        )

    @property
    def monthly_amount(self) -> float:
        interval = self.frequency.months_interval
        return self.amount / interval if interval > 0 else 0.0

    def continues_after(self, retirement_year: int) -> bool:
        """Whether the expense is still paid once retired."""
        if self.continues_after_retirement is not None:
            return self.continues_after_retirement
        if not self.is_time_bound or self.end_year is None:
            return True
        return self.end_year > retirement_year

    def ends_before(self, retirement_year: int) -> bool:
        return self.is_time_bound and self.end_year is not None and self.end_year <= retirement_year
