"""CLI tests using click's CliRunner."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from overseer.cli.main import cli
from overseer.storage.database import get_session
from overseer.storage.repositories import DeadLetterRepository


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _invoke(runner: CliRunner, *args: str):
    return runner.invoke(cli, list(args), catch_exceptions=False)


def test_version(runner) -> None:
    result = _invoke(runner, "--version")

    assert result.exit_code == 0
    assert "overseer" in result.stdout


def test_project_create_and_activate(runner, db) -> None:
    created = _invoke(
        runner, "project", "create", "p", "--name", "Demo", "--preset", "risk-averse", "--total-budget", "500"
    )
    activated = _invoke(runner, "project", "status", "p", "active")

    assert created.exit_code == 0
    assert json.loads(created.stdout)["budget"]["preset"] == "risk-averse"
    assert json.loads(activated.stdout)["status"] == "active"


def test_invalid_transition_is_reported(runner, db) -> None:
    _invoke(runner, "project", "create", "p", "--name", "Demo")

    result = runner.invoke(cli, ["project", "status", "p", "completed"])

    assert result.exit_code == 1
    assert "cannot move from planning to completed" in result.output


def test_adjudicate_estimate_file(runner, make_project, tmp_path) -> None:
    make_project("p", total_budget_usd=50.0)
    estimate = tmp_path / "estimate.yaml"
    estimate.write_text(
        "step_id: step-1\n"
        "cost: {usd: 20, confidence: 0.9}\n"
        "timeline: {hours: 30, confidence: 0.9}\n"
        "risk: {score: 0.1, confidence: 0.9}\n",
        encoding="utf-8",
    )

    result = _invoke(
        runner,
        "adjudicate",
        "p",
        str(estimate),
        "--budget-remaining",
        "100",
        "--schedule-slack",
        "100",
        "--json",
    )

    assert result.exit_code == 0
    decision = json.loads(result.stdout)
    assert decision["verdict"] == "proceed"
    assert decision["step_id"] == "step-1"


def test_adjudicate_rejects_invalid_estimate(runner, make_project, tmp_path) -> None:
    make_project("p")
    estimate = tmp_path / "estimate.yaml"
    estimate.write_text("step_id: ''\n", encoding="utf-8")

    result = runner.invoke(cli, ["adjudicate", "p", str(estimate)])

    assert result.exit_code == 1
    assert "Invalid estimate" in result.output


def test_dlq_list_and_replay_all(runner, make_project) -> None:
    make_project("p")
    with get_session() as session:
        DeadLetterRepository(session).create(
            source="notification",
            payload={"project_id": "p", "kind": "k", "subject": "s", "body": "b"},
            project_id="p",
        )

    listed = _invoke(runner, "dlq", "list")
    replayed = _invoke(runner, "dlq", "replay", "--all")
    empty = _invoke(runner, "dlq", "list")

    assert "Unresolved dead letters" in listed.stdout
    assert json.loads(replayed.stdout)["count"] == 1
    assert "No unresolved dead letters" in empty.stdout


def test_dlq_replay_requires_target(runner, db) -> None:
    result = runner.invoke(cli, ["dlq", "replay"])

    assert result.exit_code == 2


def test_supervise_run_once(runner, make_project) -> None:
    make_project("p", total_budget_usd=500.0)

    result = _invoke(runner, "supervise", "run", "--once")

    assert result.exit_code == 0
