"""Project event intake for the supervision accumulator."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from overseer.api.dependencies import get_decision_engine
from overseer.api.schemas import EventIn, EventResponse
from overseer.domain.models import ProjectEvent
from overseer.engine.service import DecisionEngine

router = APIRouter(prefix="/projects/{project_id}", tags=["Supervision"])


@router.post("/events", response_model=EventResponse)
def record_event(
    project_id: str,
    body: EventIn,
    engine: DecisionEngine = Depends(get_decision_engine),
) -> Dict[str, Any]:
    event = ProjectEvent(
        project_id=project_id,
        event_kind=body.event_kind,
        magnitude=body.magnitude,
        event_id=body.event_id,
        **({"timestamp": body.timestamp} if body.timestamp else {}),
    )
    activation = engine.record_event(event)
    return {"activated": activation is not None, "activation": activation}


@router.get("/activations")
def list_activations(
    project_id: str,
    limit: int = Query(100, ge=1, le=1000),
    engine: DecisionEngine = Depends(get_decision_engine),
) -> Dict[str, Any]:
    activations = engine.activations(project_id, limit=limit)
    return {"project_id": project_id, "activations": activations, "count": len(activations)}


__all__ = ["router"]
