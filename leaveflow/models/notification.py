"""Notification ORM — a rendered email plus its delivery bookkeeping.

Invariants:
    - Created PENDING with retry_count 0 before its id is ever enqueued
    - SENT implies sent_at; RETRY implies next_retry_at and retry_count < max_retries
    - FAILED implies retry_count >= max_retries; next_retry_at is cleared
    - SENDING implies claimed_at (the in-flight lease start)

Design Decisions:
    - Subject and body stored rendered: a retry re-sends exactly what was composed
    - leave_request_id nullable with ON DELETE SET NULL: the delivery record
      outlives the request it was about
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from leaveflow.db.base import Base
from leaveflow.db.types import UTCDateTime


class Notification(Base):
    """Notification entity."""
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_status_next_retry", "status", "next_retry_at"),
        Index("ix_notifications_leave_request_id", "leave_request_id"),
        Index("ix_notifications_event_type", "event_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    leave_request_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("leave_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    recipient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    template_name: Mapped[str] = mapped_column(String(100), nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="PENDING",
    )
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
