"""Unit tests for the DecisionEngine facade and project lifecycle."""

from __future__ import annotations

import pytest

from overseer.domain.models import (
    AdjudicationContext,
    Classification,
    CostEstimate,
    MacroStepEstimate,
    ProjectEvent,
    ProjectStatus,
    RiskEstimate,
    ScopeChangeRecord,
    SupervisionTier,
    TimelineEstimate,
    Verdict,
    WeightPreset,
)
from overseer.errors import InvalidProjectState, ProjectNotFound


def _estimate(step_id: str = "step-1", risk: float = 0.1) -> MacroStepEstimate:
    return MacroStepEstimate(
        step_id=step_id,
        cost=CostEstimate(tokens=500, usd=20.0, confidence=0.9),
        timeline=TimelineEstimate(hours=30.0, confidence=0.9),
        risk=RiskEstimate(score=risk, confidence=0.9),
    )


BUDGET = {
    "preset": WeightPreset.CUSTOM,
    "total_budget_usd": 50.0,
    "budget_remaining_usd": 100.0,
    "schedule_slack_hours": 100.0,
}


class TestLifecycle:
    def test_create_and_activate(self, engine) -> None:
        created = engine.create_project("p", "Demo", budget=BUDGET)

        assert created["status"] == "planning"
        assert engine.project_status("p") is ProjectStatus.PLANNING

        engine.set_status("p", ProjectStatus.ACTIVE)

        assert engine.active_project_ids() == ["p"]
        assert engine.accumulator.snapshot("p") is not None

    def test_duplicate_project_is_rejected(self, engine) -> None:
        engine.create_project("p", "Demo")

        with pytest.raises(InvalidProjectState):
            engine.create_project("p", "Again")

    def test_invalid_transition_is_rejected(self, engine) -> None:
        engine.create_project("p", "Demo")

        with pytest.raises(InvalidProjectState):
            engine.set_status("p", ProjectStatus.COMPLETED)

    def test_completion_destroys_accumulator_state(self, engine) -> None:
        engine.create_project("p", "Demo")
        engine.set_status("p", ProjectStatus.ACTIVE)

        engine.set_status("p", ProjectStatus.COMPLETED)

        assert engine.accumulator.snapshot("p") is None
        with pytest.raises(InvalidProjectState):
            engine.set_status("p", ProjectStatus.ACTIVE)

    def test_cancellation_releases_scope_change_lock(self, engine) -> None:
        engine.create_project("p", "Demo", budget=BUDGET)
        engine.set_status("p", ProjectStatus.ACTIVE)
        engine.report_scope_change(
            ScopeChangeRecord(project_id="p", reported_step_id="s", estimated_effort_delta_pct=5)
        )
        assert "p" in engine.scope_classifier._locks

        engine.set_status("p", ProjectStatus.CANCELLED)

        assert "p" not in engine.scope_classifier._locks

    def test_unknown_project(self, engine) -> None:
        with pytest.raises(ProjectNotFound):
            engine.project_status("ghost")
        with pytest.raises(ProjectNotFound):
            engine.adjudicate_step("ghost", _estimate())
        with pytest.raises(ProjectNotFound):
            engine.update_budget("ghost", total_budget_usd=5.0)

    def test_restore_active_projects(self, engine, make_project) -> None:
        make_project("a")
        make_project("b", status=ProjectStatus.PLANNING)

        assert engine.restore_active_projects() == ["a"]
        assert engine.accumulator.store.project_ids() == ["a"]


class TestAdjudicateStep:
    def test_decision_is_persisted_and_published(self, engine, make_project, published) -> None:
        make_project("p", **BUDGET)

        decision = engine.adjudicate_step("p", _estimate())

        assert decision.verdict is Verdict.PROCEED
        assert decision.project_id == "p"
        assert [topic for topic, _ in published] == ["adjudication.decided"]
        stored = engine.decisions("p")
        assert [d["decision_id"] for d in stored] == [str(decision.decision_id)]

    def test_investigate_is_routed(self, engine, make_project, published) -> None:
        make_project("p", **BUDGET)

        engine.adjudicate_step("p", _estimate(risk=0.95))

        assert [topic for topic, _ in published] == [
            "adjudication.decided",
            "adjudication.investigate",
        ]

    def test_supplied_context_overrides_stored_fields(self, engine, make_project) -> None:
        make_project("p", **BUDGET)

        decision = engine.adjudicate_step(
            "p", _estimate(), AdjudicationContext(budget_remaining_usd=20.0)
        )

        assert decision.badness.cost == 1.0
        assert decision.badness.timeline == pytest.approx(0.3)

    def test_project_without_budget_record_needs_context(self, engine, make_project) -> None:
        make_project("p")

        bare = engine.adjudicate_step("p", _estimate())
        supplied = engine.adjudicate_step(
            "p",
            _estimate("step-2"),
            AdjudicationContext(budget_remaining_usd=100.0, schedule_slack_hours=100.0),
        )

        assert bare.verdict is Verdict.INVESTIGATE
        assert "incomplete_estimate" in bare.flags
        assert supplied.verdict is Verdict.PROCEED

    def test_closed_project_cannot_be_adjudicated(self, engine, make_project) -> None:
        make_project("p", status=ProjectStatus.CANCELLED, **BUDGET)

        with pytest.raises(InvalidProjectState):
            engine.adjudicate_step("p", _estimate())


class TestEventsAndScope:
    def test_events_reach_accumulator_and_persist_activation(self, engine, make_project) -> None:
        make_project("p", **BUDGET)

        results = [
            engine.record_event(ProjectEvent(project_id="p", event_kind="microStepFailure", event_id=f"e{i}"))
            for i in range(3)
        ]

        assert results[:2] == [None, None]
        assert results[2].tier is SupervisionTier.BUDGET
        assert [a["activation_id"] for a in engine.activations("p")] == [
            str(results[2].activation_id)
        ]

    def test_events_require_active_project(self, engine, make_project) -> None:
        make_project("p", status=ProjectStatus.PLANNING)

        with pytest.raises(InvalidProjectState):
            engine.record_event(ProjectEvent(project_id="p", event_kind="microStepFailure"))

    def test_budget_update_changes_tier_for_next_event(self, engine, make_project) -> None:
        make_project("p", **BUDGET)
        engine.record_event(ProjectEvent(project_id="p", event_kind="stalledProgress"))

        engine.update_budget("p", tier=SupervisionTier.PREMIUM)
        activation = engine.record_event(ProjectEvent(project_id="p", event_kind="stalledProgress"))

        assert activation.tier is SupervisionTier.PREMIUM

    def test_scope_change_uses_project_tolerance(self, engine, make_project) -> None:
        make_project("p", creep_tolerance_pct=15.0, **BUDGET)

        record = engine.report_scope_change(
            ScopeChangeRecord(project_id="p", reported_step_id="s", estimated_effort_delta_pct=15.0)
        )

        assert record.classification is Classification.ESCALATE
        assert [r.change_id for r in engine.scope_changes("p")] == [record.change_id]

    def test_scope_change_requires_active_project(self, engine, make_project) -> None:
        make_project("p", status=ProjectStatus.COMPLETED)

        with pytest.raises(InvalidProjectState):
            engine.report_scope_change(
                ScopeChangeRecord(project_id="p", reported_step_id="s", estimated_effort_delta_pct=1)
            )
