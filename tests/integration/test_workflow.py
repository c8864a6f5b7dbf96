"""
Integration test for full RetirePlan workflow.

Tests the complete pipeline from a request file through the plan,
export, strategy persistence and re-planning to verify all components
work together correctly.
"""

import json

import pytest

from retireplan.config import IncomeStrategy
from retireplan.engine import PlanRequest, plan_retirement
from retireplan.repository import (
    JsonFileSettingsRepository,
    apply_selection,
    selection_from_plan,
)
from retireplan.serialization import load_request, save_plan


@pytest.mark.integration
class TestFullWorkflow:
    """Integration tests for the request -> plan -> strategy workflow."""

    def test_request_file_to_exported_plan(self, request_file, tmp_path):
        """
        Load a request, plan it, export the plan and check the export
        agrees with the in-memory result.
        """
        # 1. Load and plan
        request = load_request(request_file)
        plan = plan_retirement(request)

        assert len(plan.matrix) == plan.summary.years_to_retirement == 25

        # 2. Export
        out = tmp_path / "plan.json"
        save_plan(plan, out)
        data = json.loads(out.read_text(encoding="utf-8"))

        # 3. Consistency between sections
        summary = data["summary"]
        assert summary["finalCorpus"] == pytest.approx(plan.final_corpus)
        assert summary["finalCorpus"] == pytest.approx(data["matrix"][-1]["netCorpus"])
        assert data["gapAnalysis"]["projectedCorpus"] == pytest.approx(summary["finalCorpus"])
        assert summary["requiredCorpus"] == pytest.approx(
            data["gapAnalysis"]["requiredByStrategy"][summary["incomeStrategy"]]
        )
        assert len(data["scenarios"]) == len(plan.scenarios)

    def test_strategy_selection_round_trip(self, request_file, tmp_path):
        """
        Choose a different strategy, persist it, and re-plan with the
        stored choice from a fresh repository instance.
        """
        store = tmp_path / "settings.json"
        request = load_request(request_file)
        baseline = plan_retirement(request)

        # 1. User picks the 4% rule and adopts the SIP increase
        params = request.params.model_copy(
            update={"income_strategy": IncomeStrategy.SAFE_4_PERCENT}
        )
        chosen = plan_retirement(PlanRequest(
            params=params,
            investments=request.investments,
            loans=request.loans,
            goals=request.goals,
            insurance=request.insurance,
            incomes=request.incomes,
            expenses=request.expenses,
        ))
        JsonFileSettingsRepository(store).save_selection(
            selection_from_plan(chosen, "me", increase_sip=True)
        )

        # 2. Later session: reload and re-plan
        selection = JsonFileSettingsRepository(store).load_selection("me")
        assert selection.adopted_scenarios == ("increase_sip",)
        assert selection.projected_corpus_with_strategy == pytest.approx(chosen.final_corpus)

        replanned = plan_retirement(PlanRequest(
            params=apply_selection(request.params, selection),
            investments=request.investments,
            loans=request.loans,
            goals=request.goals,
            insurance=request.insurance,
            incomes=request.incomes,
            expenses=request.expenses,
        ))

        # 3. Strategy changes the target, never the accumulation
        assert replanned.params.income_strategy is IncomeStrategy.SAFE_4_PERCENT
        assert replanned.final_corpus == pytest.approx(baseline.final_corpus)
        assert replanned.summary.required_corpus == pytest.approx(
            baseline.requirement.for_strategy(IncomeStrategy.SAFE_4_PERCENT)
        )
        assert replanned.gap_analysis.is_on_track == selection.is_on_track_with_strategy

    def test_saved_defaults_reproduce_projection(self, base_params, mf_only, tmp_path):
        """Saved planning defaults give the same projection as the originals."""
        repo = JsonFileSettingsRepository(tmp_path / "settings.json")
        repo.save_defaults(base_params)
        loaded = repo.load_defaults()

        original = plan_retirement(PlanRequest(params=base_params, investments=tuple(mf_only)))
        restored = plan_retirement(PlanRequest(params=loaded, investments=tuple(mf_only)))

        assert restored.final_corpus == pytest.approx(original.final_corpus)
        assert restored.final_corpus == pytest.approx(202_974_193.934831, rel=1e-9)
