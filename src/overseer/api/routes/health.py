"""Health check endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from overseer.api.dependencies import get_decision_engine
from overseer.api.schemas import HealthResponse
from overseer.app_version import get_app_version
from overseer.engine.service import DecisionEngine
from overseer.storage.database import check_db_health

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(engine: DecisionEngine = Depends(get_decision_engine)) -> Any:
    """Liveness plus database connectivity. Returns 503 when the database is unreachable."""
    db_ok = check_db_health()
    payload = {
        "status": "healthy" if db_ok else "degraded",
        "version": get_app_version(),
        "database": "healthy" if db_ok else "unhealthy",
        "active_projects": len(engine.accumulator.store.project_ids()),
    }
    if not db_ok:
        return JSONResponse(content=payload, status_code=503)
    return payload


__all__ = ["router"]
