"""Notifications with delivery bookkeeping and claim lease.

Revision ID: 002_notifications
Revises: 001_employees_and_leave
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "002_notifications"
down_revision: Union[str, None] = "001_employees_and_leave"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notifications",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "leave_request_id", UUID(as_uuid=True),
            sa.ForeignKey("leave_requests.id", ondelete="SET NULL"), nullable=True,
        ),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("recipient_name", sa.String(200), nullable=False),
        sa.Column("event_type", sa.String(30), nullable=False),
        sa.Column("template_name", sa.String(100), nullable=False),
        sa.Column("subject", sa.Text, nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="PENDING"),
        sa.Column("retry_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_retries", sa.Integer, nullable=False, server_default="3"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_notifications_status_next_retry", "notifications",
        ["status", "next_retry_at"],
    )
    op.create_index(
        "ix_notifications_leave_request_id", "notifications", ["leave_request_id"],
    )
    op.create_index("ix_notifications_event_type", "notifications", ["event_type"])


def downgrade() -> None:
    op.drop_index("ix_notifications_event_type", table_name="notifications")
    op.drop_index("ix_notifications_leave_request_id", table_name="notifications")
    op.drop_index("ix_notifications_status_next_retry", table_name="notifications")
    op.drop_table("notifications")
