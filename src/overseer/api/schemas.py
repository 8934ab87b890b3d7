"""Shared Pydantic request/response models for OpenAPI."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from overseer.domain.models import (
    AdjudicationContext,
    MacroStepEstimate,
    ProjectStatus,
    SupervisionActivation,
    SupervisionTier,
    WeightPreset,
)


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Machine-readable error code")
    detail: Optional[str | Dict[str, Any]] = Field(
        None, description="Human-readable or structured error detail"
    )


class HealthResponse(BaseModel):
    status: str
    version: str
    database: str
    active_projects: int = 0


class BudgetIn(BaseModel):
    preset: Optional[WeightPreset] = None
    cost_weight: Optional[float] = Field(None, ge=0)
    timeline_weight: Optional[float] = Field(None, ge=0)
    risk_weight: Optional[float] = Field(None, ge=0)
    tier: Optional[SupervisionTier] = None
    total_budget_usd: Optional[float] = Field(None, ge=0)
    budget_remaining_usd: Optional[float] = None
    schedule_slack_hours: Optional[float] = None
    creep_tolerance_pct: Optional[float] = Field(None, gt=0)
    max_cost_usd: Optional[float] = Field(None, ge=0)
    alert_threshold_usd: Optional[float] = Field(None, ge=0)
    emergency_stop_usd: Optional[float] = Field(None, ge=0)

    def fields(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ProjectCreate(BaseModel):
    project_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=256)
    description: Optional[str] = None
    budget: Optional[BudgetIn] = None


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus


class ProjectResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    budget: Optional[Dict[str, Any]] = None


class AdjudicationRequest(BaseModel):
    estimate: MacroStepEstimate
    context: Optional[AdjudicationContext] = None


class EventIn(BaseModel):
    event_kind: str = Field(..., min_length=1)
    magnitude: Optional[float] = None
    timestamp: Optional[datetime] = None
    event_id: Optional[str] = None


class EventResponse(BaseModel):
    activated: bool
    activation: Optional[SupervisionActivation] = None


class ScopeChangeIn(BaseModel):
    change_id: Optional[str] = Field(None, min_length=1, max_length=128)
    reported_step_id: str = Field(..., min_length=1)
    estimated_effort_delta_pct: float = Field(..., ge=0)
    touches_other_macro_steps: bool = False
    new_dependencies_introduced: bool = False


class DecisionList(BaseModel):
    project_id: str
    decisions: List[Dict[str, Any]]
    count: int
