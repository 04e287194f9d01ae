"""Initial schema: requests, config, ID counters, audit log.

Revision ID: 0001
Revises:
Create Date: 2026-10-16
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _stamp(name: str) -> list[sa.Column]:
    return [
        sa.Column(f"{name}_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(f"{name}_by", sa.String(length=255), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "overtime_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("internal_id", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("submitted_by", sa.String(length=255), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("supervisor", sa.String(length=255), nullable=False),
        sa.Column("employee_identifier", sa.String(length=64), nullable=True),
        sa.Column("employee_email", sa.String(length=255), nullable=True),
        sa.Column("payment", sa.Boolean(), nullable=False),
        sa.Column("payout_request", sa.Boolean(), nullable=False),
        sa.Column("hours", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("work_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scheduled_day_off", sa.Date(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        *_stamp("supervisor_approved"),
        sa.Column("supervisor_final_approval", sa.Boolean(), nullable=False),
        *_stamp("plant_manager_approved"),
        *_stamp("approved"),
        *_stamp("rejected"),
        sa.Column("rejection_reason", sa.String(), nullable=True),
        *_stamp("accounted"),
        *_stamp("cancelled"),
        sa.Column("cancellation_reason", sa.String(), nullable=True),
        *_stamp("payout_converted"),
        *_stamp("edited"),
        sa.Column("email_notification_sent", sa.Boolean(), nullable=False),
        sa.Column("correction_history", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("kind", "internal_id", name="uq_overtime_request_internal_id"),
    )
    op.create_index("ix_overtime_request_kind_status", "overtime_request", ["kind", "status"])
    op.create_index(
        "ix_overtime_request_kind_submitter", "overtime_request", ["kind", "submitted_by", "submitted_at"]
    )
    op.create_index("ix_overtime_request_status", "overtime_request", ["status"])
    op.create_index("ix_overtime_request_submitted_by", "overtime_request", ["submitted_by"])
    op.create_index("ix_overtime_request_supervisor", "overtime_request", ["supervisor"])

    op.create_table(
        "overtime_config",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(length=100), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(length=255), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "id_counter",
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("kind", "year"),
    )

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_table("id_counter")
    op.drop_table("overtime_config")
    op.drop_index("ix_overtime_request_supervisor", table_name="overtime_request")
    op.drop_index("ix_overtime_request_submitted_by", table_name="overtime_request")
    op.drop_index("ix_overtime_request_status", table_name="overtime_request")
    op.drop_index("ix_overtime_request_kind_submitter", table_name="overtime_request")
    op.drop_index("ix_overtime_request_kind_status", table_name="overtime_request")
    op.drop_table("overtime_request")
