"""Scope change reporting endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from overseer.api.dependencies import get_decision_engine
from overseer.api.schemas import ScopeChangeIn
from overseer.domain.models import ScopeChangeRecord
from overseer.engine.service import DecisionEngine

router = APIRouter(prefix="/projects/{project_id}/scope-changes", tags=["Scope"])


@router.post("", response_model=ScopeChangeRecord)
def report_scope_change(
    project_id: str,
    body: ScopeChangeIn,
    engine: DecisionEngine = Depends(get_decision_engine),
) -> ScopeChangeRecord:
    """Classify a reported scope change.

    Reposting a ``change_id`` returns the stored classification unchanged.
    """
    fields = body.model_dump(exclude_none=True)
    return engine.report_scope_change(ScopeChangeRecord(project_id=project_id, **fields))


@router.get("")
def list_scope_changes(
    project_id: str, engine: DecisionEngine = Depends(get_decision_engine)
) -> Dict[str, Any]:
    changes = engine.scope_changes(project_id)
    total = sum(change.estimated_effort_delta_pct for change in changes)
    return {
        "project_id": project_id,
        "scope_changes": [change.model_dump(mode="json") for change in changes],
        "ledger_total_pct": total,
        "count": len(changes),
    }


__all__ = ["router"]
