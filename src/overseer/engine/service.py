"""Decision engine facade used by the API, CLI and workers.

Wires the weight resolver, adjudication, the supervision accumulator and the
scope-creep classifier to storage and the event bus, and owns the project
lifecycle that creates and destroys accumulator state.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from overseer.domain.models import (
    AdjudicationContext,
    AdjudicationDecision,
    MacroStepEstimate,
    ProjectEvent,
    ProjectStatus,
    ScopeChangeRecord,
    SupervisionActivation,
    Verdict,
)
from overseer.engine.adjudication import VerdictThresholds, adjudicate
from overseer.engine.scope_creep import ScopeCreepClassifier
from overseer.engine.supervision import (
    AccumulatorStore,
    EventWeightCatalog,
    SupervisionAccumulator,
)
from overseer.engine.weights import WeightProfileResolver
from overseer.errors import InvalidProjectState, ProjectNotFound
from overseer.events.bus import EventBus, Topic
from overseer.observability.logging import get_logger, project_context
from overseer.observability.metrics import ADJUDICATIONS
from overseer.storage.database import get_session
from overseer.storage.repositories import (
    ActivationRepository,
    BudgetRepository,
    DecisionRepository,
    ProjectRepository,
    ScopeChangeRepository,
    scope_change_from_row,
)
from overseer.workflows.durable import DurableWriter, SessionScope

logger = get_logger(__name__)

__all__ = ["DecisionEngine", "ALLOWED_TRANSITIONS"]

ALLOWED_TRANSITIONS: Dict[ProjectStatus, frozenset[ProjectStatus]] = {
    ProjectStatus.PLANNING: frozenset({ProjectStatus.ACTIVE, ProjectStatus.CANCELLED}),
    ProjectStatus.ACTIVE: frozenset({ProjectStatus.COMPLETED, ProjectStatus.CANCELLED}),
    ProjectStatus.COMPLETED: frozenset(),
    ProjectStatus.CANCELLED: frozenset(),
}

_CLOSED = frozenset({ProjectStatus.COMPLETED, ProjectStatus.CANCELLED})


def _merge_context(
    supplied: AdjudicationContext | None, stored: AdjudicationContext
) -> AdjudicationContext:
    if supplied is None:
        return stored
    return AdjudicationContext(
        budget_remaining_usd=(
            supplied.budget_remaining_usd
            if supplied.budget_remaining_usd is not None
            else stored.budget_remaining_usd
        ),
        schedule_slack_hours=(
            supplied.schedule_slack_hours
            if supplied.schedule_slack_hours is not None
            else stored.schedule_slack_hours
        ),
    )


class DecisionEngine:
    def __init__(
        self,
        session_scope: SessionScope | None = None,
        bus: EventBus | None = None,
        writer: DurableWriter | None = None,
        catalog: EventWeightCatalog | None = None,
        store: AccumulatorStore | None = None,
        thresholds: VerdictThresholds | None = None,
    ):
        self._session_scope = session_scope or get_session
        self.bus = bus or EventBus()
        self.writer = writer or DurableWriter(self._session_scope, self.bus)
        self.resolver = WeightProfileResolver(self._session_scope)
        self._thresholds = thresholds
        self.accumulator = SupervisionAccumulator(
            tier_for=lambda project_id: self.resolver.resolve(project_id).tier,
            writer=self.writer,
            bus=self.bus,
            catalog=catalog,
            store=store,
        )
        self.scope_classifier = ScopeCreepClassifier(
            tolerance_for=lambda project_id: self.resolver.resolve(project_id).creep_tolerance_pct,
            writer=self.writer,
            bus=self.bus,
            session_scope=self._session_scope,
        )

    # --- Projects -------------------------------------------------------------

    def create_project(
        self,
        project_id: str,
        name: str,
        description: str | None = None,
        budget: Dict[str, Any] | None = None,
    ) -> Dict[str, Any]:
        with self._session_scope() as session:
            projects = ProjectRepository(session)
            if projects.get(project_id) is not None:
                raise InvalidProjectState(f"Project {project_id} already exists")
            project = projects.create(project_id, name, description)
            result = project.to_dict()
            if budget:
                result["budget"] = BudgetRepository(session).upsert(project_id, **budget).to_dict()
            return result

    def update_budget(self, project_id: str, **fields: Any) -> Dict[str, Any]:
        with self._session_scope() as session:
            if ProjectRepository(session).get(project_id) is None:
                raise ProjectNotFound(project_id)
            return BudgetRepository(session).upsert(project_id, **fields).to_dict()

    def project_status(self, project_id: str) -> ProjectStatus:
        with self._session_scope() as session:
            project = ProjectRepository(session).get(project_id)
            if project is None:
                raise ProjectNotFound(project_id)
            return ProjectStatus(project.status)

    def set_status(self, project_id: str, status: ProjectStatus) -> Dict[str, Any]:
        """Move a project through its lifecycle.

        Starting a project creates its accumulator state; completing or
        cancelling it destroys the state.
        """
        with self._session_scope() as session:
            projects = ProjectRepository(session)
            project = projects.get(project_id)
            if project is None:
                raise ProjectNotFound(project_id)
            current = ProjectStatus(project.status)
            if status != current and status not in ALLOWED_TRANSITIONS[current]:
                raise InvalidProjectState(
                    f"Project {project_id} cannot move from {current.value} to {status.value}"
                )
            project = projects.update_status(project_id, status)
            result = project.to_dict() if project is not None else {}

        if status is ProjectStatus.ACTIVE:
            self.accumulator.start_project(project_id)
        elif status in _CLOSED:
            self.accumulator.close_project(project_id)
            self.scope_classifier.forget(project_id)
        return result

    def active_project_ids(self) -> List[str]:
        with self._session_scope() as session:
            return [p.id for p in ProjectRepository(session).list_by_status(ProjectStatus.ACTIVE)]

    def restore_active_projects(self) -> List[str]:
        """Recreate accumulator state for every active project (fresh windows)."""
        project_ids = self.active_project_ids()
        for project_id in project_ids:
            self.accumulator.start_project(project_id)
        logger.info("accumulators_restored", count=len(project_ids))
        return project_ids

    def _require_open(self, project_id: str, *allowed: ProjectStatus) -> None:
        status = self.project_status(project_id)
        if status not in allowed:
            raise InvalidProjectState(f"Project {project_id} is {status.value}")

    # --- Adjudication ---------------------------------------------------------

    def adjudicate_step(
        self,
        project_id: str,
        estimate: MacroStepEstimate,
        context: AdjudicationContext | None = None,
    ) -> AdjudicationDecision:
        """Adjudicate one macro step estimate and persist the decision.

        Raises:
            ProjectNotFound: if the project does not exist.
            InvalidProjectState: if the project is completed or cancelled.
        """
        with project_context(project_id):
            profile = self.resolver.resolve(project_id)
            self._require_open(project_id, ProjectStatus.PLANNING, ProjectStatus.ACTIVE)
            decision = adjudicate(
                estimate,
                profile.weights,
                _merge_context(context, profile.context),
                thresholds=self._thresholds,
                project_id=project_id,
            )
            self.writer.write("adjudication", decision)

            ADJUDICATIONS.labels(verdict=decision.verdict.value).inc()
            logger.info(
                "adjudication_decided",
                step_id=decision.step_id,
                verdict=decision.verdict.value,
                weighted_score=round(decision.weighted_score, 4),
                flags=list(decision.flags),
                dominant_factor=decision.dominant_factor(),
            )
            self.bus.publish(Topic.ADJUDICATION_DECIDED, decision)
            if decision.verdict is Verdict.INVESTIGATE:
                self.bus.publish(Topic.ADJUDICATION_INVESTIGATE, decision)
            return decision

    def decisions(
        self, project_id: str, step_id: str | None = None, limit: int = 100
    ) -> List[Dict[str, Any]]:
        with self._session_scope() as session:
            if ProjectRepository(session).get(project_id) is None:
                raise ProjectNotFound(project_id)
            records = DecisionRepository(session).list_for_project(project_id, step_id, limit)
            return [record.to_dict() for record in records]

    # --- Supervision ----------------------------------------------------------

    def record_event(self, event: ProjectEvent) -> Optional[SupervisionActivation]:
        with project_context(event.project_id):
            self._require_open(event.project_id, ProjectStatus.ACTIVE)
            return self.accumulator.record_event(
                event.project_id,
                event.event_kind,
                magnitude=event.magnitude,
                event_id=event.event_id,
                occurred_at=event.timestamp,
            )

    def activations(self, project_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        with self._session_scope() as session:
            return [r.to_dict() for r in ActivationRepository(session).list_for_project(project_id, limit)]

    # --- Scope creep ----------------------------------------------------------

    def report_scope_change(self, change: ScopeChangeRecord) -> ScopeChangeRecord:
        with project_context(change.project_id):
            self._require_open(change.project_id, ProjectStatus.ACTIVE)
            return self.scope_classifier.submit(change)

    def scope_changes(self, project_id: str) -> List[ScopeChangeRecord]:
        with self._session_scope() as session:
            if ProjectRepository(session).get(project_id) is None:
                raise ProjectNotFound(project_id)
            rows = ScopeChangeRepository(session).list_for_project(project_id)
            return [scope_change_from_row(row) for row in rows]
