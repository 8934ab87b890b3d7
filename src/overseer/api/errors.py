"""Helpers for consistent API error payloads."""

from __future__ import annotations

from fastapi import HTTPException

from overseer.errors import DomainError


def to_http_exception(err: DomainError) -> HTTPException:
    """Convert DomainError to HTTPException with consistent payload."""
    return HTTPException(
        status_code=int(err.status_code),
        detail={"error": err.error, "detail": str(err)},
    )


__all__ = ["to_http_exception"]
