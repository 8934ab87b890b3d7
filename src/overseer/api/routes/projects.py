"""Project lifecycle endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, status

from overseer.api.dependencies import get_decision_engine
from overseer.api.schemas import BudgetIn, ProjectCreate, ProjectResponse, ProjectStatusUpdate
from overseer.engine.service import DecisionEngine

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    body: ProjectCreate, engine: DecisionEngine = Depends(get_decision_engine)
) -> Dict[str, Any]:
    return engine.create_project(
        body.project_id,
        body.name,
        description=body.description,
        budget=body.budget.fields() if body.budget else None,
    )


@router.patch("/{project_id}/status", response_model=ProjectResponse)
def update_status(
    project_id: str,
    body: ProjectStatusUpdate,
    engine: DecisionEngine = Depends(get_decision_engine),
) -> Dict[str, Any]:
    """Start, complete or cancel a project."""
    return engine.set_status(project_id, body.status)


@router.put("/{project_id}/budget")
def update_budget(
    project_id: str, body: BudgetIn, engine: DecisionEngine = Depends(get_decision_engine)
) -> Dict[str, Any]:
    return engine.update_budget(project_id, **body.fields())


__all__ = ["router"]
