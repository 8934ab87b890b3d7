"""API route modules."""

from overseer.api.routes import adjudications, events, health, metrics, projects, scope_changes

__all__ = ["adjudications", "events", "health", "metrics", "projects", "scope_changes"]
