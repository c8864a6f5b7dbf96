"""
Global constants for RetirePlan.

Purpose
-------
Centralizes default assumptions and magic numbers used throughout the
projection engine. All rates are expressed in percent (12.0 means 12% a
year) unless the name says otherwise.

Usage
-----
>>> from retireplan.constants import DEFAULT_INFLATION_RATE, MONTHS_PER_YEAR
>>> monthly = 120_000 / MONTHS_PER_YEAR

Categories
----------
- Planning horizon: default ages
- Returns: per-instrument default returns
- Strategies: withdrawal and corpus return defaults
- Rate reduction: PPF/EPF/fixed-income rate decay
- What-if: simplified scenario model assumptions
- Reporting: sampling steps, schema version
"""

from typing import Tuple

__all__ = [
    # Horizon
    "DEFAULT_CURRENT_AGE",
    "DEFAULT_RETIREMENT_AGE",
    "DEFAULT_LIFE_EXPECTANCY",
    "MONTHS_PER_YEAR",
    "MAX_AGE",
    # Returns
    "DEFAULT_INFLATION_RATE",
    "DEFAULT_PPF_RETURN",
    "DEFAULT_EPF_RETURN",
    "DEFAULT_MF_RETURN",
    "DEFAULT_NPS_RETURN",
    "DEFAULT_FD_RETURN",
    "DEFAULT_RD_RETURN",
    "DEFAULT_ULIP_RETURN",
    "DEFAULT_ILLIQUID_GROWTH",
    "MAX_RATE_PERCENT",
    # Strategies
    "DEFAULT_CORPUS_RETURN_RATE",
    "DEFAULT_WITHDRAWAL_RATE",
    "SAFE_WITHDRAWAL_RATE",
    "DEFAULT_SIP_STEP_UP",
    "DEFAULT_STEP_UP_EFFECTIVE_FROM",
    # Rate reduction
    "DEFAULT_RATE_REDUCTION_PERCENT",
    "DEFAULT_RATE_REDUCTION_YEARS",
    "DEFAULT_RATE_REDUCTION_FLOOR",
    # What-if
    "WHAT_IF_ANNUAL_RETURN",
    "GAP_SIP_ANNUAL_RETURN",
    "FREED_EXPENSE_ANNUAL_RETURN",
    "DEFAULT_SIP_INCREASE_PERCENT",
    "DEFAULT_EVENT_OFFSET_YEARS",
    # Reporting
    "INCOME_SAMPLE_STEP",
    "EXPENSE_PROJECTION_YEARS",
    "EMERGENCY_FUND_MONTHS",
    "SCHEMA_VERSION",
]


# =============================================================================
# Planning Horizon
# =============================================================================

DEFAULT_CURRENT_AGE: int = 35
"""Age assumed when a request omits it."""

DEFAULT_RETIREMENT_AGE: int = 60
"""Planned retirement age assumed when a request omits it."""

DEFAULT_LIFE_EXPECTANCY: int = 85
"""Planning horizon end (age) assumed when a request omits it."""

MONTHS_PER_YEAR: int = 12
"""Number of months in a year (SIP annualization)."""

MAX_AGE: int = 120
"""Ceiling applied to every age input."""


# =============================================================================
# Returns (percent per year)
# =============================================================================

DEFAULT_INFLATION_RATE: float = 6.0
"""Long-run consumer inflation."""

DEFAULT_PPF_RETURN: float = 7.1
"""Public Provident Fund administered rate."""

DEFAULT_EPF_RETURN: float = 8.15
"""Employee Provident Fund declared rate."""

DEFAULT_MF_RETURN: float = 12.0
"""Equity mutual fund expected return."""

DEFAULT_NPS_RETURN: float = 10.0
"""National Pension System blended return."""

DEFAULT_FD_RETURN: float = 7.0
"""Fixed deposit rate used when a record carries none."""

DEFAULT_RD_RETURN: float = 6.5
"""Recurring deposit rate used when a record carries none."""

DEFAULT_ULIP_RETURN: float = 8.0
"""Fund growth assumed for ULIP policies when projecting maturity value."""

DEFAULT_ILLIQUID_GROWTH: float = 8.0
"""Appreciation assumed for gold and real estate in the what-if engine."""

MAX_RATE_PERCENT: float = 100.0
"""Ceiling applied to every annual rate input (percent)."""


# =============================================================================
# Strategies
# =============================================================================

DEFAULT_CORPUS_RETURN_RATE: float = 10.0
"""Nominal return earned by the corpus after retirement."""

DEFAULT_WITHDRAWAL_RATE: float = 8.0
"""Annual withdrawal percentage for the SUSTAINABLE strategy."""

SAFE_WITHDRAWAL_RATE: float = 0.04
"""Fraction withdrawn in year one under the 4% rule."""

DEFAULT_SIP_STEP_UP: float = 10.0
"""Annual SIP step-up percentage."""

DEFAULT_STEP_UP_EFFECTIVE_FROM: int = 1
"""Year offset from which the step-up applies (0 = this year)."""


# =============================================================================
# Rate Reduction
# =============================================================================

DEFAULT_RATE_REDUCTION_PERCENT: float = 0.5
"""Percentage points shaved off fixed-income rates per period."""

DEFAULT_RATE_REDUCTION_YEARS: int = 5
"""Length of a rate-reduction period in years."""

DEFAULT_RATE_REDUCTION_FLOOR: float = 0.0
"""Lowest rate a reduced instrument may reach."""


# =============================================================================
# What-If Scenarios
# =============================================================================

WHAT_IF_ANNUAL_RETURN: float = 10.0
"""Flat return used by the simplified what-if compounding model."""

GAP_SIP_ANNUAL_RETURN: float = 10.0
"""Return assumed when sizing the additional SIP that closes a gap."""

FREED_EXPENSE_ANNUAL_RETURN: float = 12.0
"""Return assumed when investing expenses that end before retirement."""

DEFAULT_SIP_INCREASE_PERCENT: float = 20.0
"""Size of the 'increase SIP' what-if scenario."""

DEFAULT_EVENT_OFFSET_YEARS: int = 5
"""Fallback deployment offset when an event carries no date."""


# =============================================================================
# Reporting
# =============================================================================

INCOME_SAMPLE_STEP: int = 5
"""Spacing (years) of post-retirement income samples."""

EXPENSE_PROJECTION_YEARS: Tuple[int, ...] = (5, 10, 15)
"""Intermediate years shown in the expense projection table."""

EMERGENCY_FUND_MONTHS: int = 6
"""Months of expenses an emergency fund should hold."""

SCHEMA_VERSION: str = "0.1.0"
"""Version stamped on serialized requests and plans."""
