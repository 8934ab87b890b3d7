"""Retry utilities with exponential backoff for persistence writes.

Decision, activation and notification writes are the only blocking points in
the engine. They are retried here on transient database errors; callers decide
what happens once the attempts are exhausted.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError, TimeoutError as PoolTimeoutError

from overseer.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

__all__ = [
    "with_retry",
    "RetryConfig",
    "MaxRetriesExceeded",
    "TRANSIENT_DB_ERRORS",
    "config_from_settings",
]

# Errors worth another attempt. IntegrityError and friends are not transient.
TRANSIENT_DB_ERRORS: tuple[type[Exception], ...] = (
    OperationalError,
    PoolTimeoutError,
    InterfaceError,
)


class MaxRetriesExceeded(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, operation_name: str, attempts: int, last_exception: Exception | None = None):
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_exception = last_exception
        super().__init__(
            f"{operation_name} failed after {attempts} attempts"
            + (f": {last_exception}" if last_exception else "")
        )


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        exponential_base: float = 2.0,
        retryable_exceptions: tuple[type[Exception], ...] = TRANSIENT_DB_ERRORS,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including first try)
            base_delay: Initial delay between retries in seconds
            max_delay: Maximum delay between retries in seconds
            exponential_base: Base for exponential backoff calculation
            retryable_exceptions: Exception types that should trigger retry
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base
        self.retryable_exceptions = retryable_exceptions


def config_from_settings() -> RetryConfig:
    from overseer.config import settings

    return RetryConfig(
        max_attempts=settings.persist_max_attempts,
        base_delay=settings.persist_base_delay,
        max_delay=settings.persist_max_delay,
    )


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay for a given attempt using exponential backoff with jitter.

    Adds up to 10% random jitter.
    """
    delay = config.base_delay * (config.exponential_base**attempt)
    delay = min(delay, config.max_delay)
    # Non-crypto jitter for backoff scheduling.
    jitter = random.uniform(0, delay * 0.1)  # nosec B311
    return delay + jitter


def with_retry(
    func: Callable[..., T],
    *args: Any,
    config: RetryConfig | None = None,
    operation_name: str | None = None,
    **kwargs: Any,
) -> T:
    """Execute a function with retry and exponential backoff.

    Raises:
        MaxRetriesExceeded: when every attempt failed with a retryable error.
        Exception: non-retryable errors propagate unchanged on first occurrence.
    """
    config = config or config_from_settings()
    name = operation_name or getattr(func, "__name__", "operation")

    last_exception: Exception | None = None

    for attempt in range(config.max_attempts):
        try:
            return func(*args, **kwargs)
        except config.retryable_exceptions as exc:
            last_exception = exc

            if attempt + 1 >= config.max_attempts:
                logger.error(
                    "%s failed after %d attempts: %s",
                    name,
                    config.max_attempts,
                    exc,
                )
                raise MaxRetriesExceeded(name, config.max_attempts, exc)

            delay = _calculate_delay(attempt, config)
            logger.warning(
                "%s attempt %d/%d failed: %s. Retrying in %.2fs...",
                name,
                attempt + 1,
                config.max_attempts,
                exc,
                delay,
            )
            time.sleep(delay)

    raise last_exception or RuntimeError(f"{name} failed with no exception")

