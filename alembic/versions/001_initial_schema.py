"""Initial schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

Creates:
- projects, budget_records: project lifecycle, decision weights, tier and budget figures
- adjudication_decisions, supervision_activations: append-only decision history
- scope_changes, notifications: classified scope changes and the user notifications they emit
- dead_letters: writes parked after retries were exhausted
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from overseer.storage.models import GUID


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(32), nullable=False, server_default="planning"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "budget_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", sa.String(128), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("preset", sa.String(32), nullable=False, server_default="custom"),
        sa.Column("cost_weight", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("timeline_weight", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("risk_weight", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("tier", sa.String(32), nullable=True),
        sa.Column("total_budget_usd", sa.Float(), nullable=True),
        sa.Column("budget_remaining_usd", sa.Float(), nullable=True),
        sa.Column("schedule_slack_hours", sa.Float(), nullable=True),
        sa.Column("creep_tolerance_pct", sa.Float(), nullable=True),
        sa.Column("max_cost_usd", sa.Float(), nullable=True),
        sa.Column("alert_threshold_usd", sa.Float(), nullable=True),
        sa.Column("emergency_stop_usd", sa.Float(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("project_id", name="uq_budget_records_project_id"),
    )

    op.create_table(
        "adjudication_decisions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", sa.String(128), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("step_id", sa.String(128), nullable=False),
        sa.Column("verdict", sa.String(32), nullable=False),
        sa.Column("weighted_score", sa.Float(), nullable=False),
        sa.Column("contributions", sa.JSON(), nullable=True),
        sa.Column("badness", sa.JSON(), nullable=True),
        sa.Column("weights", sa.JSON(), nullable=True),
        sa.Column("rationale", sa.Text(), nullable=False),
        sa.Column("flags", sa.JSON(), nullable=True),
        sa.Column("schema_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("decided_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_adjudication_decisions_project_step",
        "adjudication_decisions",
        ["project_id", "step_id"],
    )
    op.create_index(
        "ix_adjudication_decisions_decided_at", "adjudication_decisions", ["decided_at"]
    )

    op.create_table(
        "supervision_activations",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", sa.String(128), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("tier", sa.String(32), nullable=False),
        sa.Column("reason", sa.String(32), nullable=False),
        sa.Column("accumulated_weight_at_trigger", sa.Float(), nullable=False),
        sa.Column("triggering_event_kind", sa.String(64), nullable=False),
        sa.Column("event_id", sa.String(128), nullable=True),
        sa.Column("schema_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("triggered_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_supervision_activations_project_id", "supervision_activations", ["project_id"]
    )

    op.create_table(
        "scope_changes",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("change_id", sa.String(128), nullable=False),
        sa.Column("project_id", sa.String(128), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("reported_step_id", sa.String(128), nullable=False),
        sa.Column("estimated_effort_delta_pct", sa.Float(), nullable=False),
        sa.Column("touches_other_macro_steps", sa.Boolean(), nullable=False),
        sa.Column("new_dependencies_introduced", sa.Boolean(), nullable=False),
        sa.Column("classification", sa.String(32), nullable=False),
        sa.Column("reasons", sa.JSON(), nullable=True),
        sa.Column("ledger_total_before_pct", sa.Float(), nullable=True),
        sa.Column("schema_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("reported_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("classified_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint("change_id", name="uq_scope_changes_change_id"),
    )
    op.create_index("ix_scope_changes_project_id", "scope_changes", ["project_id"])

    op.create_table(
        "notifications",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", sa.String(128), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("kind", sa.String(64), nullable=False),
        sa.Column("subject", sa.String(256), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_project_id", "notifications", ["project_id"])

    op.create_table(
        "dead_letters",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("project_id", sa.String(128), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column("last_attempt_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
    )
    op.create_index("idx_dead_letters_source", "dead_letters", ["source"])
    op.create_index("idx_dead_letters_resolved", "dead_letters", ["resolved_at"])


def downgrade() -> None:
    op.drop_index("idx_dead_letters_resolved", table_name="dead_letters")
    op.drop_index("idx_dead_letters_source", table_name="dead_letters")
    op.drop_table("dead_letters")
    op.drop_index("ix_notifications_project_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_scope_changes_project_id", table_name="scope_changes")
    op.drop_table("scope_changes")
    op.drop_index("ix_supervision_activations_project_id", table_name="supervision_activations")
    op.drop_table("supervision_activations")
    op.drop_index("ix_adjudication_decisions_decided_at", table_name="adjudication_decisions")
    op.drop_index("ix_adjudication_decisions_project_step", table_name="adjudication_decisions")
    op.drop_table("adjudication_decisions")
    op.drop_table("budget_records")
    op.drop_table("projects")
