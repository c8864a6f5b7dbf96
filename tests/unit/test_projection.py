"""
Unit tests for projection.py module.

Tests the year-by-year accumulation matrix: golden values, SIP step-up,
rate reduction, cashflow netting and shortfalls.
"""

from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from retireplan.aggregator import CashflowEvent, CashflowKind, InstrumentType, aggregate
from retireplan.projection import final_corpus, matrix_to_frame, project, sip_for_year


# ============================================================================
# SIP SCHEDULE
# ============================================================================

class TestSipForYear:
    """Tests for the SIP step-up schedule."""

    @pytest.mark.parametrize(
        "year, expected",
        [(0, 50_000), (1, 50_000), (2, 55_000), (3, 60_500)],
    )
    def test_step_up_from_year_one(self, year, expected):
        assert sip_for_year(50_000, year, 10, 1) == pytest.approx(expected)

    def test_effective_from_zero(self):
        assert sip_for_year(50_000, 1, 10, 0) == pytest.approx(55_000)

    def test_stop_year_freezes(self):
        """After the stop year the SIP stays at its stop-year level."""
        frozen = sip_for_year(50_000, 20, 10, 1, stop_year=3)
        assert frozen == pytest.approx(sip_for_year(50_000, 3, 10, 1))

    def test_no_step_up(self):
        assert sip_for_year(50_000, 10, 0, 1) == 50_000


# ============================================================================
# GOLDEN VALUES
# ============================================================================

class TestGoldenProjection:
    """35 -> 60, MF 12%, 2,000,000 + 50,000 SIP, 10% step-up from year 1."""

    def test_row_count(self, golden_inputs):
        assert len(project(golden_inputs)) == 25

    def test_first_rows(self, golden_inputs):
        rows = project(golden_inputs)

        assert rows[0].net_corpus == pytest.approx(2_840_000, rel=1e-9)
        assert rows[1].net_corpus == pytest.approx(3_780_800, rel=1e-9)
        assert rows[2].net_corpus == pytest.approx(4_894_496, rel=1e-9)

    def test_final_corpus(self, golden_inputs):
        rows = project(golden_inputs)
        assert final_corpus(rows) == pytest.approx(202_974_193.934831, rel=1e-9)

    def test_row_metadata(self, golden_inputs):
        rows = project(golden_inputs)

        assert (rows[0].index, rows[0].year, rows[0].age) == (0, 2025, 35)
        assert (rows[-1].index, rows[-1].year, rows[-1].age) == (24, 2049, 59)

    def test_step_up_active_flag(self, golden_inputs):
        rows = project(golden_inputs)
        assert not rows[0].step_up_active
        assert all(r.step_up_active for r in rows[1:])

    def test_mf_sip_recorded(self, golden_inputs):
        rows = project(golden_inputs)
        assert rows[2].mf_sip == pytest.approx(55_000)

    def test_monotone_without_outflows(self, golden_inputs):
        corpus = [r.net_corpus for r in project(golden_inputs)]
        assert np.all(np.diff(corpus) > 0)

    def test_net_equals_sum_of_balances(self, household_inputs):
        for row in project(household_inputs):
            assert row.net_corpus == pytest.approx(sum(row.balances.values()))

    def test_deterministic(self, household_inputs):
        assert project(household_inputs) == project(household_inputs)


# ============================================================================
# DEGENERATE HORIZON
# ============================================================================

class TestDegenerate:
    def test_empty_matrix(self, degenerate_params, mf_only):
        inputs = aggregate(degenerate_params, investments=mf_only)

        assert project(inputs) == []
        assert final_corpus([]) == 0.0

    def test_empty_frame(self):
        assert matrix_to_frame([]).empty


# ============================================================================
# CASHFLOWS
# ============================================================================

class TestCashflows:
    """Tests for inflow/outflow netting in the matrix."""

    def test_netting_in_event_year(self, golden_inputs):
        """Inflow and goal in the same year are both reported and net out."""
        baseline = project(golden_inputs)
        inputs = replace(
            golden_inputs,
            events=(
                CashflowEvent(3, 500_000, CashflowKind.INVESTMENT_MATURITY, "FD"),
                CashflowEvent(3, -200_000, CashflowKind.GOAL, "Car"),
            ),
        )
        rows = project(inputs)

        assert rows[3].total_inflow == 500_000
        assert rows[3].goal_outflow == 200_000
        assert rows[3].net_corpus - baseline[3].net_corpus == pytest.approx(300_000)
        assert rows[3].pre_inflow_corpus == pytest.approx(rows[3].net_corpus - 500_000)
        assert rows[3].events == ("FD", "Car")
        assert rows[2].net_corpus == pytest.approx(baseline[2].net_corpus)

    def test_offsetting_flows_leave_projection_unchanged(self, golden_inputs):
        """A goal fully funded by a same-year maturity changes nothing later."""
        baseline = project(golden_inputs)
        rows = project(replace(
            golden_inputs,
            events=(
                CashflowEvent(3, 1_000_000, CashflowKind.INSURANCE_MATURITY, "Policy"),
                CashflowEvent(3, -1_000_000, CashflowKind.GOAL, "House"),
            ),
        ))

        assert rows[3].total_inflow == 1_000_000
        assert rows[3].goal_outflow == 1_000_000
        assert rows[3].balances == pytest.approx(baseline[3].balances)
        assert final_corpus(rows) == pytest.approx(final_corpus(baseline), rel=1e-12)

    def test_net_outflow_drawn_pro_rata(self, golden_inputs):
        rows = project(replace(
            golden_inputs,
            events=(
                CashflowEvent(2, 300_000, CashflowKind.INVESTMENT_MATURITY, "FD"),
                CashflowEvent(2, -500_000, CashflowKind.GOAL, "Car"),
            ),
        ))
        baseline = project(golden_inputs)

        assert rows[2].balance(InstrumentType.OTHER_LIQUID) == pytest.approx(0)
        assert baseline[2].net_corpus - rows[2].net_corpus == pytest.approx(200_000)

    def test_inflow_lands_in_other_liquid(self, golden_inputs):
        inputs = replace(
            golden_inputs,
            events=(CashflowEvent(0, 100_000, CashflowKind.INSURANCE_MATURITY, "Policy"),),
        )
        rows = project(inputs)

        assert rows[0].balance(InstrumentType.OTHER_LIQUID) == pytest.approx(100_000)
        # compounds from the following year at the OTHER_LIQUID rate
        assert rows[1].balance(InstrumentType.OTHER_LIQUID) == pytest.approx(100_000 * 1.07)

    def test_goal_drawn_pro_rata(self, household_inputs):
        rows = project(household_inputs)
        without_goal = project(replace(
            household_inputs,
            events=tuple(e for e in household_inputs.events if e.kind is not CashflowKind.GOAL),
        ))
        goal_year = rows[12]
        outflow = 2_500_000 * 1.06 ** 12

        assert goal_year.goal_outflow == pytest.approx(outflow)
        assert all(v >= 0 for v in goal_year.balances.values())
        assert without_goal[12].net_corpus - goal_year.net_corpus == pytest.approx(outflow)
        for t in (InstrumentType.MUTUAL_FUND, InstrumentType.EPF):
            share = without_goal[12].balance(t) / without_goal[12].net_corpus
            assert without_goal[12].balance(t) - goal_year.balance(t) == pytest.approx(outflow * share)

    def test_shortfall_flagged(self, golden_inputs):
        inputs = replace(
            golden_inputs,
            events=(CashflowEvent(0, -1e9, CashflowKind.GOAL, "Yacht"),),
        )
        rows = project(inputs)

        assert rows[0].shortfall
        assert rows[0].net_corpus < 0
        assert rows[0].balance(InstrumentType.MUTUAL_FUND) == 0
        assert rows[0].balance(InstrumentType.OTHER_LIQUID) < 0


# ============================================================================
# RATES / LUMP SUM
# ============================================================================

class TestRates:
    def test_rate_reduction_applies_to_ppf(self, household_inputs):
        rows = project(household_inputs)

        assert rows[0].rates[InstrumentType.PPF] == pytest.approx(7.1)
        assert rows[5].rates[InstrumentType.PPF] == pytest.approx(6.6)
        assert rows[10].rates[InstrumentType.EPF] == pytest.approx(7.15)

    def test_market_linked_not_reduced(self, household_inputs):
        rows = project(household_inputs)
        assert rows[20].rates[InstrumentType.MUTUAL_FUND] == 12.0

    def test_rate_reduction_disabled(self, household, base_params):
        params = base_params.model_copy(
            update={"rate_reduction": base_params.rate_reduction.model_copy(update={"enabled": False})}
        )
        rows = project(aggregate(params, **household))
        assert rows[20].rates[InstrumentType.PPF] == pytest.approx(7.1)

    def test_lumpsum_yearly(self, base_params, mf_only):
        params = base_params.model_copy(update={"lumpsum_yearly": 100_000})
        rows = project(aggregate(params, investments=mf_only))
        assert rows[0].net_corpus == pytest.approx(2_940_000)

    def test_stop_year_lowers_corpus(self, golden_inputs):
        full = final_corpus(project(golden_inputs))
        stopped = final_corpus(project(golden_inputs, stop_year=5))
        assert stopped < full


class TestMatrixFrame:
    def test_columns_and_index(self, household_inputs):
        frame = matrix_to_frame(project(household_inputs))

        assert isinstance(frame, pd.DataFrame)
        assert frame.index.name == "year"
        assert len(frame) == 25
        assert {"mutual_fund_balance", "ppf_rate", "net_corpus", "shortfall"} <= set(frame.columns)

    def test_values_match_rows(self, golden_inputs):
        rows = project(golden_inputs)
        frame = matrix_to_frame(rows)
        assert frame.loc[2025, "net_corpus"] == pytest.approx(2_840_000)
