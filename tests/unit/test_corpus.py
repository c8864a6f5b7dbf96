"""
Unit tests for corpus.py module.

Tests the per-strategy requirement formulas, requirement annotation of the
matrix and the gap analysis report.
"""

import pytest

from retireplan.aggregator import aggregate
from retireplan.config import IncomeStrategy
from retireplan.corpus import (
    CorpusRequirement,
    GapAnalysis,
    analyze_gap,
    required_corpus,
    strategy_requirement,
    with_requirements,
)
from retireplan.projection import final_corpus, project
from retireplan.utils import growing_annuity_due_pv, required_monthly_sip, sip_future_value


# ============================================================================
# FORMULAS
# ============================================================================

class TestStrategyRequirement:
    """Tests for the pure requirement formulas."""

    E = 1_200_000

    def _req(self, strategy, n=25, r=10.0, g=6.0, w=8.0):
        return strategy_requirement(strategy, self.E, n, r, g, w)

    def test_safe_4_percent(self):
        assert self._req(IncomeStrategy.SAFE_4_PERCENT) == pytest.approx(30_000_000)

    def test_simple_depletion(self):
        assert self._req(IncomeStrategy.SIMPLE_DEPLETION) == pytest.approx(self.E * 25)

    def test_sustainable_takes_larger_of_both(self):
        pv = growing_annuity_due_pv(self.E, 10, 6, 25)
        value = self._req(IncomeStrategy.SUSTAINABLE)

        assert value == pytest.approx(max(self.E / 0.08, pv))
        assert value >= self.E / 0.08

    def test_sustainable_withdrawal_bound(self):
        """A low withdrawal rate makes E / w the binding term."""
        assert self._req(IncomeStrategy.SUSTAINABLE, w=2.0) == pytest.approx(self.E / 0.02)

    def test_ordering(self):
        """SIMPLE_DEPLETION sits between the annuity PV and the 4% rule."""
        pv = growing_annuity_due_pv(self.E, 10, 6, 25)
        simple = self._req(IncomeStrategy.SIMPLE_DEPLETION)
        safe = self._req(IncomeStrategy.SAFE_4_PERCENT)

        assert pv <= simple <= safe

    @pytest.mark.parametrize("strategy", list(IncomeStrategy))
    def test_no_retirement_years(self, strategy):
        assert self._req(strategy, n=0) == 0.0
        assert self._req(strategy, n=-3) == 0.0

    def test_zero_expense(self):
        assert strategy_requirement(IncomeStrategy.SAFE_4_PERCENT, 0, 25, 10, 6, 8) == 0.0


# ============================================================================
# REQUIRED CORPUS
# ============================================================================

class TestRequiredCorpus:
    """Tests for required_corpus on aggregated inputs."""

    def test_household_expense_base(self, household_inputs):
        req = required_corpus(household_inputs)
        monthly_today = 60_000 + 1_500

        assert isinstance(req, CorpusRequirement)
        assert req.years_to_retirement == 25
        assert req.retirement_years == 25
        assert req.monthly_expense_today == pytest.approx(monthly_today)
        assert req.monthly_expense_at_retirement == pytest.approx(monthly_today * 1.06 ** 25)
        assert req.annual_expense == pytest.approx(monthly_today * 1.06 ** 25 * 12)
        assert req.post_retirement_emi == 0

    def test_strategy_values(self, household_inputs):
        req = required_corpus(household_inputs)
        e = req.annual_expense

        assert req.for_strategy(IncomeStrategy.SAFE_4_PERCENT) == pytest.approx(e / 0.04)
        assert req.for_strategy(IncomeStrategy.SIMPLE_DEPLETION) == pytest.approx(e * 25)
        assert set(req.by_strategy) == {s.value for s in IncomeStrategy}

    def test_no_expenses_means_zero(self, golden_inputs):
        req = required_corpus(golden_inputs)
        assert all(v == 0 for v in req.by_strategy.values())

    def test_degenerate(self, degenerate_params, household):
        req = required_corpus(aggregate(degenerate_params, **household))

        assert req.retirement_years == 0
        assert all(v == 0 for v in req.by_strategy.values())

    def test_post_retirement_goals_added(self, base_params, household):
        plain = required_corpus(aggregate(base_params, **household))
        goals = household["goals"] + [{"name": "Pilgrimage", "targetAmount": 1_000_000, "targetYear": 2055}]
        with_goal = required_corpus(aggregate(base_params, **dict(household, goals=goals)))
        extra = 1_000_000 * 1.06 ** 30

        assert with_goal.post_retirement_goals == pytest.approx(extra)
        for name in plain.by_strategy:
            assert with_goal.by_strategy[name] - plain.by_strategy[name] == pytest.approx(extra)

    def test_continuing_emi_included(self, base_params):
        inputs = aggregate(
            base_params,
            loans=[{"emi": 20_000, "endDate": "2055-01-01"}],
            expenses=[{"amount": 10_000}],
        )
        req = required_corpus(inputs)

        assert req.post_retirement_emi == 20_000
        assert req.annual_expense == pytest.approx((10_000 * 1.06 ** 25 + 20_000) * 12)

    def test_earlier_retirement_horizon(self, household_inputs):
        req = required_corpus(household_inputs, 10)

        assert req.years_to_retirement == 10
        assert req.retirement_years == 40


class TestWithRequirements:
    def test_rows_annotated(self, household_inputs):
        rows = with_requirements(project(household_inputs), household_inputs)

        for row in rows:
            expected = required_corpus(household_inputs, row.index + 1).by_strategy
            assert row.required_corpus == expected
            for name, value in expected.items():
                assert row.can_retire[name] == (row.net_corpus >= value)

    def test_last_row_matches_planned_requirement(self, household_inputs):
        rows = with_requirements(project(household_inputs), household_inputs)
        assert rows[-1].required_corpus == required_corpus(household_inputs).by_strategy

    def test_empty(self, household_inputs):
        assert with_requirements([], household_inputs) == []


# ============================================================================
# GAP ANALYSIS
# ============================================================================

class TestAnalyzeGap:
    """Tests for analyze_gap."""

    def test_on_track_without_expenses(self, golden_inputs):
        gap = analyze_gap(golden_inputs, project(golden_inputs))

        assert isinstance(gap, GapAnalysis)
        assert gap.required_corpus == 0
        assert gap.corpus_gap == pytest.approx(-gap.projected_corpus)
        assert gap.is_on_track
        assert gap.gap_percent == 0
        assert gap.additional_monthly_sip == 0
        assert [s.title for s in gap.suggestions] == ["You're on track"]

    def test_gap_is_required_minus_projected(self, household_inputs):
        matrix = project(household_inputs)
        gap = analyze_gap(household_inputs, matrix)

        assert gap.projected_corpus == final_corpus(matrix)
        assert gap.corpus_gap == pytest.approx(gap.required_corpus - gap.projected_corpus)
        assert gap.is_on_track == (gap.corpus_gap <= 0)
        assert gap.selected_strategy is IncomeStrategy.SUSTAINABLE

    def test_shortfall_suggestions(self, base_params, mf_only):
        inputs = aggregate(base_params, investments=mf_only, expenses=[{"amount": 1_000_000}])
        gap = analyze_gap(inputs, project(inputs))

        assert not gap.is_on_track
        assert gap.corpus_gap > 0
        assert gap.additional_monthly_sip == pytest.approx(required_monthly_sip(gap.corpus_gap, 10, 25))
        assert gap.suggestions[0].title == "Increase monthly SIP"
        assert "Consider delayed retirement" not in [s.title for s in gap.suggestions]

    def test_delayed_retirement_suggested_for_short_horizon(self, base_params, mf_only):
        params = base_params.model_copy(update={"retirement_age": 50})
        inputs = aggregate(params, investments=mf_only, expenses=[{"amount": 1_000_000}])
        gap = analyze_gap(inputs, project(inputs))

        assert "Consider delayed retirement" in [s.title for s in gap.suggestions]

    def test_monthly_cashflow(self, household_inputs):
        gap = analyze_gap(household_inputs, project(household_inputs))

        assert gap.monthly_sip == pytest.approx(77_500)
        assert gap.net_monthly_savings == pytest.approx(
            220_000 - 70_000 - 47_000 - 74_000 / 12 - 77_500
        )

    def test_expense_projection(self, household_inputs):
        gap = analyze_gap(household_inputs, project(household_inputs))
        labels = [p.label for p in gap.expense_projection]

        assert labels == ["Current", "In 5 years", "In 10 years", "In 15 years", "At retirement"]
        assert gap.expense_projection[-1].age == 60
        assert gap.expense_projection[1].monthly_expense == pytest.approx(61_500 * 1.06 ** 5)

    def test_continuing_insurance(self, household_inputs):
        gap = analyze_gap(household_inputs, project(household_inputs))
        assert [p.name for p in gap.continuing_insurance] == ["Term plan"]
        assert gap.continuing_insurance[0].monthly_premium == pytest.approx(1_500)

    def test_ending_expenses(self, household_inputs):
        gap = analyze_gap(household_inputs, project(household_inputs))
        (school,) = gap.ending_expenses

        assert school.name == "School fees"
        assert school.years_invested == 13
        assert school.potential_corpus == pytest.approx(sip_future_value(10_000, 12, 13))
        assert gap.total_freed_monthly == pytest.approx(10_000)

    def test_strategy_selection_changes_requirement(self, household, base_params):
        params = base_params.model_copy(update={"income_strategy": IncomeStrategy.SAFE_4_PERCENT})
        inputs = aggregate(params, **household)
        gap = analyze_gap(inputs, project(inputs))

        assert gap.required_corpus == gap.required_by_strategy["SAFE_4_PERCENT"]

    def test_degenerate(self, degenerate_params, mf_only):
        inputs = aggregate(degenerate_params, investments=mf_only)
        gap = analyze_gap(inputs, project(inputs))

        assert gap.projected_corpus == 0
        assert gap.required_corpus == 0
        assert gap.is_on_track
