"""Unit tests for retry with exponential backoff."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from overseer.workflows import retry as retry_module
from overseer.workflows.retry import MaxRetriesExceeded, RetryConfig, with_retry


def _operational() -> OperationalError:
    return OperationalError("INSERT", {}, Exception("database is locked"))


class Flaky:
    def __init__(self, failures: int, exc_factory=_operational):
        self.failures = failures
        self.calls = 0
        self.exc_factory = exc_factory

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc_factory()
        return "ok"


def test_succeeds_after_transient_failures() -> None:
    func = Flaky(failures=2)

    assert with_retry(func, config=RetryConfig(max_attempts=3, base_delay=0)) == "ok"
    assert func.calls == 3


def test_raises_max_retries_exceeded_with_last_error() -> None:
    func = Flaky(failures=5)

    with pytest.raises(MaxRetriesExceeded) as exc_info:
        with_retry(func, config=RetryConfig(max_attempts=3, base_delay=0), operation_name="persist_x")

    assert func.calls == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.operation_name == "persist_x"
    assert isinstance(exc_info.value.last_exception, OperationalError)


def test_integrity_errors_are_not_retried() -> None:
    func = Flaky(failures=1, exc_factory=lambda: IntegrityError("INSERT", {}, Exception("dup")))

    with pytest.raises(IntegrityError):
        with_retry(func, config=RetryConfig(max_attempts=3, base_delay=0))

    assert func.calls == 1


def test_backoff_grows_and_is_capped(monkeypatch) -> None:
    delays: list[float] = []
    monkeypatch.setattr(retry_module.time, "sleep", delays.append)
    monkeypatch.setattr(retry_module.random, "uniform", lambda _a, _b: 0.0)

    with pytest.raises(MaxRetriesExceeded):
        with_retry(Flaky(failures=10), config=RetryConfig(max_attempts=5, base_delay=1, max_delay=5))

    assert delays == [1, 2, 4, 5]


def test_config_from_settings(monkeypatch) -> None:
    from overseer.config import reset_settings_cache

    monkeypatch.setenv("PERSIST_MAX_ATTEMPTS", "7")
    reset_settings_cache()

    assert retry_module.config_from_settings().max_attempts == 7
