"""Domain-specific exceptions shared by the engine, API and CLI."""

from __future__ import annotations

from http import HTTPStatus


class DomainError(Exception):
    """Base class for domain errors."""

    error: str = "domain_error"
    status_code: int = HTTPStatus.BAD_REQUEST

    def __init__(self, message: str, *, error: str | None = None, status_code: int | None = None):
        super().__init__(message)
        if error:
            self.error = error
        if status_code:
            self.status_code = status_code


class ProjectNotFound(DomainError):
    """No project with the given id exists. Fatal: no decision can be made."""

    error = "project_not_found"
    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, project_id: str):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class NoBudgetRecord(DomainError):
    """Project exists but has no stored budget/preference record."""

    error = "no_budget_record"

    def __init__(self, project_id: str):
        super().__init__(f"Project {project_id} has no budget record")
        self.project_id = project_id


class ClassificationLocked(DomainError):
    """A scope change that already has a classification cannot be reclassified."""

    error = "classification_locked"
    status_code = HTTPStatus.CONFLICT


class InvalidProjectState(DomainError):
    error = "invalid_project_state"
    status_code = HTTPStatus.CONFLICT


class ConfigurationError(DomainError):
    error = "configuration_error"
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR


class PersistenceExhausted(DomainError):
    """A write failed after all retries and could not be parked in the dead-letter table."""

    error = "persistence_exhausted"
    status_code = HTTPStatus.SERVICE_UNAVAILABLE


__all__ = [
    "DomainError",
    "ProjectNotFound",
    "NoBudgetRecord",
    "ClassificationLocked",
    "InvalidProjectState",
    "ConfigurationError",
    "PersistenceExhausted",
]
