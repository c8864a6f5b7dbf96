"""
Pytest configuration and fixtures for RetirePlan test suite.

This module provides reusable fixtures for testing all RetirePlan components.
Every fixture pins ``as_of`` so results do not depend on the machine clock.
"""

import json
from datetime import date

import pytest

from retireplan.aggregator import aggregate
from retireplan.config import PlanningParameters
from retireplan.engine import PlanRequest


# ---------------------------------------------------------------------------
# Date / Parameter Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def as_of() -> date:
    """Standard valuation date for tests."""
    return date(2025, 1, 1)


@pytest.fixture
def base_params(as_of) -> PlanningParameters:
    """
    35 → 60, life expectancy 85, MF 12%, 10% step-up from year 1.
    """
    return PlanningParameters(
        current_age=35,
        retirement_age=60,
        life_expectancy=85,
        mf_return=12.0,
        sip_step_up_percent=10.0,
        step_up_effective_from_year=1,
        as_of=as_of,
    )


@pytest.fixture
def degenerate_params(as_of) -> PlanningParameters:
    """Retirement age before current age."""
    return PlanningParameters(current_age=62, retirement_age=60, as_of=as_of)


# ---------------------------------------------------------------------------
# Record Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mf_only() -> list:
    """Single mutual fund: 2,000,000 + 50,000/month SIP."""
    return [{"type": "MUTUAL_FUND", "name": "Equity", "currentValue": 2_000_000, "monthlySip": 50_000}]


@pytest.fixture
def household(as_of) -> dict:
    """
    A realistic household with every record kind.

    - MF, EPF, PPF buckets; an FD maturing in 2028; gold (illiquid);
      an emergency-fund savings account
    - Home loan ending 2033 and a car loan ending 2026
    - Child education goal in 2037
    - Term life (continues), group health (stops), endowment maturing 2035
    - Salary and rental income
    - Household expenses and school fees ending 2037
    """
    return {
        "investments": [
            {"type": "MUTUAL_FUND", "name": "Equity", "currentValue": 2_000_000, "monthlySip": 50_000},
            {"type": "EPF", "name": "EPF", "currentValue": 800_000, "monthlySip": 15_000},
            {"type": "PPF", "name": "PPF", "currentValue": 500_000, "yearlyContribution": 150_000},
            {"type": "FD", "name": "Bank FD", "currentValue": 300_000, "interestRate": 7,
             "maturityDate": "2028-03-31"},
            {"type": "GOLD", "name": "Gold", "currentValue": 1_000_000},
            {"type": "CASH", "name": "Savings", "currentValue": 400_000, "isEmergencyFund": True},
        ],
        "loans": [
            {"name": "Home loan", "type": "HOME", "emi": 35_000, "endDate": "2033-06-30"},
            {"name": "Car loan", "type": "VEHICLE", "emi": 12_000, "endDate": "2026-12-31"},
        ],
        "goals": [
            {"name": "Child education", "targetAmount": 2_500_000, "targetYear": 2037},
        ],
        "insurance": [
            {"type": "TERM_LIFE", "policyName": "Term plan", "annualPremium": 18_000},
            {"type": "HEALTH", "policyName": "Employer cover", "healthType": "GROUP",
             "annualPremium": 6_000},
            {"type": "ENDOWMENT", "policyName": "Endowment", "annualPremium": 50_000,
             "maturityBenefit": 1_200_000, "maturityDate": "2035-01-15"},
        ],
        "incomes": [
            {"source": "Salary", "monthlyAmount": 200_000, "annualIncrement": 8},
            {"source": "Flat rent", "monthlyAmount": 20_000, "annualIncrement": 5},
        ],
        "expenses": [
            {"name": "Household", "category": "LIVING", "amount": 60_000, "frequency": "MONTHLY"},
            {"name": "School fees", "category": "EDUCATION", "amount": 120_000,
             "frequency": "YEARLY", "isTimeBound": True, "endYear": 2037},
        ],
    }


# ---------------------------------------------------------------------------
# Aggregated Inputs / Requests
# ---------------------------------------------------------------------------

@pytest.fixture
def golden_inputs(base_params, mf_only):
    """Inputs of the golden-value scenario."""
    return aggregate(base_params, investments=mf_only)


@pytest.fixture
def household_inputs(base_params, household):
    return aggregate(base_params, **household)


@pytest.fixture
def golden_request(base_params, mf_only) -> PlanRequest:
    return PlanRequest(params=base_params, investments=tuple(mf_only))


@pytest.fixture
def household_request(base_params, household) -> PlanRequest:
    return PlanRequest(params=base_params, **{k: tuple(v) for k, v in household.items()})


@pytest.fixture
def request_document(household) -> dict:
    """JSON request document as written by users."""
    doc = {
        "schema_version": "0.1.0",
        "parameters": {
            "currentAge": 35,
            "retirementAge": 60,
            "lifeExpectancy": 85,
            "mfReturn": 12,
            "sipStepUpPercent": 10,
            "stepUpEffectiveFromYear": 1,
            "asOf": "2025-01-01",
        },
    }
    doc.update(household)
    return doc


@pytest.fixture
def request_file(tmp_path, request_document):
    """Request document written to a temporary JSON file."""
    path = tmp_path / "request.json"
    with open(path, "w") as f:
        json.dump(request_document, f)
    return path
