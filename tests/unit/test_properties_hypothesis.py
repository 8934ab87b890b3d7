"""Property-based tests for the decision components using Hypothesis."""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings, strategies as st

from overseer.domain.models import (
    AdjudicationContext,
    Classification,
    CostEstimate,
    MacroStepEstimate,
    RiskEstimate,
    ScopeChangeRecord,
    SupervisionTier,
    TimelineEstimate,
    Verdict,
    WeightProfile,
)
from overseer.engine.adjudication import VerdictThresholds, adjudicate
from overseer.engine.scope_creep import CreepLedger, classify
from overseer.engine.supervision import (
    AccumulatorStore,
    EventWeightCatalog,
    SupervisionAccumulator,
)


class RecordingWriter:
    def __init__(self):
        self.writes = []

    def write(self, source, record):
        self.writes.append((source, record))
        return True


CONTEXT = AdjudicationContext(budget_remaining_usd=100.0, schedule_slack_hours=100.0)
THRESHOLDS = VerdictThresholds(investigate=0.4, reject=0.7, min_confidence=0.5)
T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)

unit = st.floats(min_value=0.0, max_value=1.0, allow_nan=False)
weight = st.floats(min_value=0.0, max_value=10.0, allow_nan=False)
weights = st.builds(WeightProfile, cost_weight=weight, timeline_weight=weight, risk_weight=weight)


def _estimate(cost: float, timeline: float, risk: float, confidence: float = 0.9):
    return MacroStepEstimate(
        step_id="step",
        cost=CostEstimate(usd=cost * 100, confidence=confidence),
        timeline=TimelineEstimate(hours=timeline * 100, confidence=confidence),
        risk=RiskEstimate(score=risk, confidence=confidence),
    )


class TestAdjudicationProperties:
    @given(unit, unit, unit, weights)
    @settings(max_examples=100)
    def test_deterministic_apart_from_identity(self, c, t, r, w):
        first = adjudicate(_estimate(c, t, r), w, CONTEXT, THRESHOLDS)
        second = adjudicate(_estimate(c, t, r), w, CONTEXT, THRESHOLDS)

        assert first.verdict == second.verdict
        assert first.weighted_score == second.weighted_score
        assert first.contributions == second.contributions
        assert first.rationale == second.rationale

    @given(unit, unit, unit, weights)
    @settings(max_examples=100)
    def test_score_stays_in_unit_interval(self, c, t, r, w):
        decision = adjudicate(_estimate(c, t, r), w, CONTEXT, THRESHOLDS)

        assert -1e-9 <= decision.weighted_score <= 1.0 + 1e-9

    @given(unit, unit, unit, weights, unit, st.sampled_from(["cost", "timeline", "risk"]))
    @settings(max_examples=150)
    def test_raising_badness_never_lowers_score_or_verdict(self, c, t, r, w, bump, factor):
        base = {"cost": c, "timeline": t, "risk": r}
        worse = dict(base)
        worse[factor] = min(1.0, base[factor] + bump)

        before = adjudicate(_estimate(**base), w, CONTEXT, THRESHOLDS)
        after = adjudicate(_estimate(**worse), w, CONTEXT, THRESHOLDS)

        assert after.weighted_score >= before.weighted_score - 1e-9
        assert after.verdict.scrutiny >= before.verdict.scrutiny

    @given(unit, unit, unit, weights, st.floats(min_value=0.0, max_value=0.49))
    @settings(max_examples=100)
    def test_low_confidence_never_proceeds(self, c, t, r, w, confidence):
        decision = adjudicate(_estimate(c, t, r, confidence=confidence), w, CONTEXT, THRESHOLDS)

        assert decision.verdict is not Verdict.PROCEED

    @given(unit, unit, unit, weights, st.sampled_from(["cost", "timeline", "risk"]))
    @settings(max_examples=100)
    def test_missing_dimension_is_always_investigate(self, c, t, r, w, dropped):
        estimate = _estimate(c, t, r).model_copy(update={dropped: None})

        decision = adjudicate(estimate, w, CONTEXT, THRESHOLDS)

        assert decision.verdict is Verdict.INVESTIGATE
        assert f"missing:{dropped}" in decision.flags

    @given(unit, unit, unit, weights)
    @settings(max_examples=100)
    def test_contributions_sum_to_score(self, c, t, r, w):
        decision = adjudicate(_estimate(c, t, r), w, CONTEXT, THRESHOLDS)
        total = sum(v for v in decision.contributions.as_dict().values() if v is not None)

        assert abs(total - decision.weighted_score) < 1e-9


event_kinds = st.sampled_from(
    ["microStepFailure", "timelineOverrun", "costOverrun", "stalledProgress", "periodicCheck", "noise"]
)


class TestSupervisionProperties:
    @given(st.lists(event_kinds, max_size=30), st.sampled_from(list(SupervisionTier)))
    @settings(max_examples=75)
    def test_replaying_events_changes_nothing(self, kinds, tier):
        writer = RecordingWriter()
        acc = SupervisionAccumulator(
            tier_for=lambda _project_id: tier,
            writer=writer,
            catalog=EventWeightCatalog(),
            store=AccumulatorStore(cache_size=100, cache_ttl=3600),
            window_seconds=86400,
        )
        events = [(f"e{i}", kind, T0 + timedelta(seconds=i)) for i, kind in enumerate(kinds)]

        for event_id, kind, at in events:
            acc.record_event("p", kind, event_id=event_id, occurred_at=at)
        first = acc.snapshot("p")
        activations = len(writer.writes)

        for event_id, kind, at in events:
            acc.record_event("p", kind, event_id=event_id, occurred_at=at)

        assert acc.snapshot("p") == first
        assert len(writer.writes) == activations

    @given(st.lists(event_kinds, min_size=1, max_size=30), st.sampled_from(list(SupervisionTier)))
    @settings(max_examples=75)
    def test_weight_never_reaches_threshold_without_activation(self, kinds, tier):
        acc = SupervisionAccumulator(
            tier_for=lambda _project_id: tier,
            writer=RecordingWriter(),
            catalog=EventWeightCatalog(),
            store=AccumulatorStore(cache_size=100, cache_ttl=3600),
            window_seconds=86400,
        )

        for i, kind in enumerate(kinds):
            acc.record_event("p", kind, occurred_at=T0 + timedelta(seconds=i))
            assert acc.snapshot("p").accumulated_weight < tier.activation_threshold


class TestScopeCreepProperties:
    @given(
        st.floats(min_value=0, max_value=200, allow_nan=False),
        st.floats(min_value=0, max_value=200, allow_nan=False),
        st.floats(min_value=0, max_value=100, allow_nan=False),
        st.booleans(),
        st.booleans(),
    )
    def test_escalation_is_monotone_in_ledger(self, ledger_pct, extra, delta, touches, deps):
        change = ScopeChangeRecord(
            project_id="p",
            reported_step_id="s",
            estimated_effort_delta_pct=delta,
            touches_other_macro_steps=touches,
            new_dependencies_introduced=deps,
        )
        smaller = classify(change, CreepLedger("p", total_pct=ledger_pct), 50, 25)
        larger = classify(change, CreepLedger("p", total_pct=ledger_pct + extra), 50, 25)

        if smaller is Classification.ESCALATE:
            assert larger is Classification.ESCALATE
