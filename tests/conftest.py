"""Pytest configuration and shared fixtures."""

import os
import sys
from pathlib import Path
from typing import Any, List, Tuple

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


def pytest_configure(config):
    """Configure pytest markers and environment for tests."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")

    # These MUST override any developer shell/.env values to keep the test run deterministic.
    os.environ["ENVIRONMENT"] = "test"
    # One shared in-memory connection per engine; each test gets a fresh engine.
    os.environ["DATABASE_URL"] = "sqlite://"
    os.environ["POLICY_FILE"] = ""
    os.environ["PERSIST_BASE_DELAY"] = "0"
    os.environ["PERSIST_MAX_DELAY"] = "0"


def pytest_sessionfinish(session, exitstatus):  # noqa: ARG001
    """Best-effort teardown for the global DB engine."""
    try:
        from overseer.storage.database import shutdown_db

        shutdown_db()
    except Exception:
        return


@pytest.fixture(autouse=True)
def _fresh_settings():
    from overseer.config import reset_settings_cache

    reset_settings_cache()
    yield
    reset_settings_cache()


@pytest.fixture(autouse=True)
def _no_retry_sleep(monkeypatch):
    monkeypatch.setattr("overseer.workflows.retry.time.sleep", lambda _seconds: None)


@pytest.fixture
def db():
    """Fresh in-memory database with every table created."""
    from overseer.storage.database import init_db, shutdown_db

    shutdown_db()
    init_db()
    yield
    shutdown_db()


@pytest.fixture
def session(db):
    from overseer.storage.database import get_session_factory

    s = get_session_factory()()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def bus():
    from overseer.events import EventBus

    return EventBus()


@pytest.fixture
def published(bus):
    """Every message published on ``bus``, as (topic value, payload) tuples."""
    from overseer.events import Topic

    messages: List[Tuple[str, dict]] = []
    for topic in Topic:
        bus.subscribe(topic, lambda msg: messages.append((msg.topic.value, msg.payload)))
    return messages


class RecordingWriter:
    """Stands in for DurableWriter; keeps writes in memory."""

    def __init__(self, fail_with: Exception | None = None):
        self.writes: List[Tuple[str, Any]] = []
        self.fail_with = fail_with

    def write(self, source: str, record: Any) -> bool:
        if self.fail_with is not None:
            raise self.fail_with
        self.writes.append((source, record))
        return True

    def records(self, source: str) -> List[Any]:
        return [record for src, record in self.writes if src == source]


@pytest.fixture
def recording_writer():
    return RecordingWriter()


@pytest.fixture
def make_project(db):
    """Create a project (and optionally its budget record) directly in storage."""
    from overseer.domain.models import ProjectStatus
    from overseer.storage.database import get_session
    from overseer.storage.repositories import BudgetRepository, ProjectRepository

    def _make(
        project_id: str = "proj-1",
        status: ProjectStatus = ProjectStatus.ACTIVE,
        **budget: Any,
    ) -> str:
        with get_session() as s:
            ProjectRepository(s).create(project_id, name=f"Project {project_id}", status=status)
            if budget:
                BudgetRepository(s).upsert(project_id, **budget)
        return project_id

    return _make


@pytest.fixture
def engine(db, bus):
    """DecisionEngine bound to the test database and bus."""
    from overseer.engine.service import DecisionEngine

    return DecisionEngine(bus=bus)
