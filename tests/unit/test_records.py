"""
Unit tests for records.py input records.

Tests lenient construction from dicts and the per-record helpers used by
the aggregator.
"""

from datetime import date

import pytest

from retireplan.records import (
    ExpenseFrequency,
    ExpenseRecord,
    GoalRecord,
    HealthInsuranceType,
    IncomeRecord,
    InsuranceRecord,
    InsuranceType,
    InvestmentRecord,
    InvestmentType,
    LoanRecord,
)


# ============================================================================
# INVESTMENTS
# ============================================================================

class TestInvestmentRecord:
    """Tests for InvestmentRecord."""

    def test_from_camel_case(self):
        inv = InvestmentRecord.from_dict(
            {"type": "MUTUAL_FUND", "currentValue": "2,000,000", "monthlySip": 50000}
        )

        assert inv.type is InvestmentType.MUTUAL_FUND
        assert inv.current_value == 2_000_000.0
        assert inv.monthly_sip == 50_000.0

    def test_from_snake_case(self):
        inv = InvestmentRecord.from_dict({"type": "PPF", "yearly_contribution": 150000})
        assert inv.type is InvestmentType.PPF
        assert inv.yearly_contribution == 150_000.0

    def test_junk_defaults(self):
        """Malformed values default instead of raising."""
        inv = InvestmentRecord.from_dict(
            {"type": "SPACESHIP", "currentValue": "n/a", "monthlySip": -10, "maturityDate": "soon"}
        )

        assert inv.type is InvestmentType.OTHER
        assert inv.current_value == 0.0
        assert inv.monthly_sip == 0.0
        assert inv.maturity_date is None

    def test_value_falls_back_to_invested(self):
        inv = InvestmentRecord(type=InvestmentType.FD, invested_amount=100_000)
        assert inv.value == 100_000

    def test_rate_preference(self):
        assert InvestmentRecord(interest_rate=7.5, expected_return=9).rate(6) == 7.5
        assert InvestmentRecord(expected_return=9).rate(6) == 9
        assert InvestmentRecord().rate(6) == 6

    def test_fd_maturity_value(self, as_of):
        fd = InvestmentRecord(
            type=InvestmentType.FD, current_value=100_000, interest_rate=7,
            maturity_date=date(2028, 1, 1),
        )
        assert fd.expected_maturity_value(as_of, 7.1) == pytest.approx(100_000 * 1.07 ** 3)

    def test_rd_maturity_includes_deposits(self, as_of):
        rd = InvestmentRecord(
            type=InvestmentType.RD, current_value=0, monthly_sip=5_000,
            maturity_date=date(2027, 1, 1),
        )
        value = rd.expected_maturity_value(as_of, 7.1)
        assert value > 5_000 * 24

    def test_maturity_in_past_returns_value(self, as_of):
        fd = InvestmentRecord(
            type=InvestmentType.FD, current_value=100_000, maturity_date=date(2024, 1, 1),
        )
        assert fd.expected_maturity_value(as_of, 7.1) == 100_000

    def test_illiquid(self):
        assert InvestmentType.GOLD.is_illiquid
        assert InvestmentType.REAL_ESTATE.is_illiquid
        assert not InvestmentType.FD.is_illiquid


# ============================================================================
# LOANS / GOALS
# ============================================================================

class TestLoanRecord:
    """Tests for LoanRecord end-year resolution."""

    def test_end_year_from_date(self, as_of):
        loan = LoanRecord.from_dict({"emi": 10000, "endDate": "2030-05-01"})
        assert loan.end_year(as_of) == 2030

    def test_end_year_from_remaining_months(self, as_of):
        loan = LoanRecord.from_dict({"emi": 10000, "remainingMonths": 24})
        assert loan.end_year(as_of) == 2027

    def test_end_year_unknown(self, as_of):
        assert LoanRecord(emi=1000).end_year(as_of) is None


class TestGoalRecord:
    def test_from_dict(self):
        goal = GoalRecord.from_dict(
            {"name": "Car", "targetAmount": "800000", "targetYear": "2030", "isRecurring": "false"}
        )

        assert goal.target_amount == 800_000
        assert goal.target_year == 2030
        assert goal.is_recurring is False


# ============================================================================
# INSURANCE
# ============================================================================

class TestInsuranceRecord:
    """Tests for InsuranceRecord continuation and payout rules."""

    def test_term_life_continues(self):
        assert InsuranceRecord(type=InsuranceType.TERM_LIFE).continues_after()

    def test_group_health_stops(self):
        policy = InsuranceRecord.from_dict({"type": "HEALTH", "healthType": "GROUP"})
        assert policy.health_type is HealthInsuranceType.GROUP
        assert not policy.continues_after()

    def test_personal_health_continues(self):
        assert InsuranceRecord(type=InsuranceType.HEALTH).continues_after()

    def test_endowment_stops(self):
        assert not InsuranceRecord(type=InsuranceType.ENDOWMENT).continues_after()

    def test_explicit_flag_wins(self):
        policy = InsuranceRecord(type=InsuranceType.TERM_LIFE, continues_after_retirement=False)
        assert not policy.continues_after()

    def test_maturity_benefit_preferred(self, as_of):
        policy = InsuranceRecord(
            type=InsuranceType.ENDOWMENT, sum_assured=500_000, maturity_benefit=900_000,
        )
        assert policy.expected_maturity_value(as_of) == 900_000

    def test_ulip_grows_fund_value(self, as_of):
        policy = InsuranceRecord(
            type=InsuranceType.ULIP, fund_value=100_000, maturity_date=date(2027, 1, 1),
        )
        assert policy.expected_maturity_value(as_of) == pytest.approx(100_000 * 1.08 ** 2)

    def test_money_back_payout(self):
        by_percent = InsuranceRecord(sum_assured=1_000_000, money_back_percent=15)
        by_amount = InsuranceRecord(sum_assured=1_000_000, money_back_amount=50_000)

        assert by_percent.money_back_payout == 150_000
        assert by_amount.money_back_payout == 50_000

    def test_money_back_years_parsed(self):
        policy = InsuranceRecord.from_dict({"moneyBackYears": [5, "10", "x"]})
        assert policy.money_back_years == (5, 10)

    def test_annuity(self):
        assert InsuranceRecord(type=InsuranceType.ANNUITY).is_annuity
        assert InsuranceRecord(is_annuity_policy=True).is_annuity


# ============================================================================
# INCOME / EXPENSES
# ============================================================================

class TestIncomeRecord:
    def test_rental_inferred_from_source(self):
        assert IncomeRecord.from_dict({"source": "Flat Rent"}).is_rental
        assert not IncomeRecord.from_dict({"source": "Salary"}).is_rental

    def test_explicit_rental_flag(self):
        assert not IncomeRecord.from_dict({"source": "Rent", "isRental": False}).is_rental

    def test_active_default(self):
        assert IncomeRecord.from_dict({"source": "Salary"}).is_active


class TestExpenseRecord:
    """Tests for ExpenseRecord normalization."""

    @pytest.mark.parametrize(
        "frequency, amount, monthly",
        [
            ("MONTHLY", 10_000, 10_000),
            ("QUARTERLY", 30_000, 10_000),
            ("HALF_YEARLY", 60_000, 10_000),
            ("YEARLY", 120_000, 10_000),
            ("ONE_TIME", 120_000, 0),
        ],
    )
    def test_monthly_amount(self, frequency, amount, monthly):
        expense = ExpenseRecord.from_dict({"amount": amount, "frequency": frequency})
        assert expense.monthly_amount == pytest.approx(monthly)

    def test_end_year_from_end_date(self):
        expense = ExpenseRecord.from_dict({"amount": 1000, "endDate": "2031-03-31"})

        assert expense.end_year == 2031
        assert expense.is_time_bound

    def test_continues_after(self):
        ongoing = ExpenseRecord(amount=1000)
        ending = ExpenseRecord(amount=1000, is_time_bound=True, end_year=2035)

        assert ongoing.continues_after(2050)
        assert not ending.continues_after(2050)
        assert ending.ends_before(2050)
        assert ending.continues_after(2030)

    def test_unknown_frequency_is_monthly(self):
        assert ExpenseRecord.from_dict({"frequency": "WEEKLY"}).frequency is ExpenseFrequency.MONTHLY
