"""
Unit tests for optimization.py module.

Tests the SIP step-up stop-year search: feasibility, earliest stop year,
degenerate inputs and the result container.
"""

import pandas as pd
import pytest

from retireplan.aggregator import aggregate
from retireplan.optimization import StepUpOptimization, StepUpOptimizer
from retireplan.projection import final_corpus, project, sip_for_year


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def optimizer():
    return StepUpOptimizer()


@pytest.fixture
def full_corpus(golden_inputs):
    return final_corpus(project(golden_inputs))


# ============================================================================
# CONSTRUCTION
# ============================================================================

class TestOptimizerInit:
    def test_default_tolerance(self):
        assert StepUpOptimizer().tolerance == 0.0

    def test_negative_tolerance_rejected(self):
        with pytest.raises(ValueError, match="tolerance"):
            StepUpOptimizer(tolerance=-1)


# ============================================================================
# SEARCH
# ============================================================================

class TestSeek:
    """Tests for StepUpOptimizer.seek."""

    def test_zero_target_stops_immediately(self, optimizer, golden_inputs):
        result = optimizer.seek(golden_inputs, target=0)

        assert isinstance(result, StepUpOptimization)
        assert result.can_stop_early
        assert result.optimal_stop_year == 0
        assert result.optimal_stop_age == 35

    def test_unreachable_target(self, optimizer, golden_inputs, full_corpus):
        result = optimizer.seek(golden_inputs, target=full_corpus * 10)

        assert not result.can_stop_early
        assert result.optimal_stop_year is None
        assert result.monthly_relief == 0
        assert "falls short" in result.reason
        assert len(result.scenarios) == 26

    def test_scenario_per_candidate(self, optimizer, golden_inputs, full_corpus):
        result = optimizer.seek(golden_inputs, target=full_corpus / 2)
        stops = [s.stop_year for s in result.scenarios]

        assert stops == list(range(25, -1, -1))
        assert result.scenarios[0].projected_corpus == pytest.approx(full_corpus)
        assert result.full_schedule_corpus == pytest.approx(full_corpus)

    def test_corpus_non_decreasing_in_stop_year(self, optimizer, golden_inputs, full_corpus):
        result = optimizer.seek(golden_inputs, target=full_corpus)
        corpus = [s.projected_corpus for s in reversed(result.scenarios)]

        assert all(b >= a for a, b in zip(corpus, corpus[1:]))

    def test_finds_earliest_feasible_stop(self, optimizer, golden_inputs):
        target = final_corpus(project(golden_inputs, stop_year=10))
        result = optimizer.seek(golden_inputs, target=target)

        assert result.can_stop_early
        assert result.optimal_stop_year == 10
        assert result.optimal_corpus == pytest.approx(target)
        by_stop = {s.stop_year: s for s in result.scenarios}
        assert not by_stop[9].meets_target
        assert by_stop[10].meets_target

    def test_sip_levels_and_relief(self, optimizer, golden_inputs):
        target = final_corpus(project(golden_inputs, stop_year=10))
        result = optimizer.seek(golden_inputs, target=target)

        assert result.sip_at_start == 50_000
        assert result.sip_at_full_step_up == pytest.approx(50_000 * 1.1 ** 23)
        assert result.sip_at_optimal_stop == pytest.approx(50_000 * 1.1 ** 9)
        assert result.monthly_relief == pytest.approx(
            result.sip_at_full_step_up - result.sip_at_optimal_stop
        )

    def test_total_sip_saved(self, optimizer, golden_inputs):
        target = final_corpus(project(golden_inputs, stop_year=20))
        result = optimizer.seek(golden_inputs, target=target)
        expected = sum(
            (sip_for_year(50_000, y, 10, 1) - sip_for_year(50_000, y, 10, 1, 20)) * 12
            for y in range(25)
        )

        assert result.total_sip_saved == pytest.approx(expected)
        assert result.total_sip_saved > 0

    def test_target_met_only_by_full_schedule(self, optimizer, golden_inputs, full_corpus):
        result = optimizer.seek(golden_inputs, target=full_corpus)

        assert not result.can_stop_early
        assert result.optimal_stop_year == 24
        assert result.monthly_relief == 0
        assert result.total_sip_saved == 0
        assert result.recommendation == "Continue the annual SIP step-up until retirement."

    def test_tolerance_relaxes_target(self, golden_inputs, full_corpus):
        strict = StepUpOptimizer().seek(golden_inputs, target=full_corpus)
        loose = StepUpOptimizer(tolerance=full_corpus * 0.05).seek(golden_inputs, target=full_corpus)

        assert not strict.can_stop_early
        assert loose.can_stop_early

    def test_accounts_for_cashflows(self, optimizer, household_inputs):
        """Candidates are full re-simulations including events."""
        result = optimizer.seek(household_inputs, target=0)
        by_stop = {s.stop_year: s for s in result.scenarios}

        assert by_stop[7].projected_corpus == pytest.approx(
            final_corpus(project(household_inputs, stop_year=7))
        )


# ============================================================================
# DEGENERATE INPUTS
# ============================================================================

class TestDegenerate:
    """Inputs where early stopping is meaningless."""

    def test_no_accumulation_years(self, optimizer, degenerate_params, mf_only):
        result = optimizer.seek(aggregate(degenerate_params, investments=mf_only), target=0)

        assert not result.can_stop_early
        assert result.scenarios == ()
        assert result.reason == "No accumulation years before retirement."

    def test_no_sip(self, optimizer, base_params):
        inputs = aggregate(base_params, investments=[{"type": "MUTUAL_FUND", "currentValue": 1_000_000}])
        result = optimizer.seek(inputs, target=0)

        assert not result.can_stop_early
        assert result.reason == "No mutual-fund SIP to step up."

    def test_no_step_up(self, optimizer, base_params, mf_only):
        params = base_params.model_copy(update={"sip_step_up_percent": 0.0})
        result = optimizer.seek(aggregate(params, investments=mf_only), target=0)

        assert not result.can_stop_early
        assert result.reason == "SIP step-up is not enabled."
        assert result.full_schedule_corpus > 0


# ============================================================================
# RESULT CONTAINER
# ============================================================================

class TestStepUpOptimization:
    def test_to_frame(self, optimizer, golden_inputs):
        frame = optimizer.seek(golden_inputs, target=0).to_frame()

        assert isinstance(frame, pd.DataFrame)
        assert frame.index.name == "stop_year"
        assert len(frame) == 26
        assert "projected_corpus" in frame.columns

    def test_summary(self, optimizer, golden_inputs):
        text = optimizer.seek(golden_inputs, target=0).summary()

        assert "StepUpOptimization(" in text
        assert "Can stop early" in text
        assert "Optimal stop: year 0" in text

    def test_summary_when_not_possible(self, optimizer, golden_inputs, full_corpus):
        text = optimizer.seek(golden_inputs, target=full_corpus * 10).summary()
        assert "Full step-up needed" in text
        assert "Optimal stop" not in text
