"""Adjudication endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from overseer.api.dependencies import get_decision_engine
from overseer.api.schemas import AdjudicationRequest, DecisionList
from overseer.domain.models import AdjudicationDecision
from overseer.engine.service import DecisionEngine

router = APIRouter(prefix="/projects/{project_id}/adjudications", tags=["Adjudication"])


@router.post("", response_model=AdjudicationDecision)
def adjudicate_step(
    project_id: str,
    body: AdjudicationRequest,
    engine: DecisionEngine = Depends(get_decision_engine),
) -> AdjudicationDecision:
    """Adjudicate one macro step estimate.

    Incomplete estimates are not rejected here; they come back as Investigate
    with the ``incomplete_estimate`` flag.
    """
    return engine.adjudicate_step(project_id, body.estimate, body.context)


@router.get("", response_model=DecisionList)
def list_decisions(
    project_id: str,
    step_id: Optional[str] = None,
    limit: int = Query(100, ge=1, le=1000),
    engine: DecisionEngine = Depends(get_decision_engine),
) -> Dict[str, Any]:
    decisions = engine.decisions(project_id, step_id=step_id, limit=limit)
    return {"project_id": project_id, "decisions": decisions, "count": len(decisions)}


__all__ = ["router"]
