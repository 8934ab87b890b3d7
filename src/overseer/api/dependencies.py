"""Common FastAPI dependencies for the Overseer API."""

from __future__ import annotations

from fastapi import Request

from overseer.engine.service import DecisionEngine

__all__ = ["get_decision_engine"]


def get_decision_engine(request: Request) -> DecisionEngine:
    """Return the engine stored on app state, creating it on first use."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        engine = DecisionEngine()
        request.app.state.engine = engine
    return engine
