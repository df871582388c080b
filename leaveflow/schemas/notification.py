"""Notification Schemas — operator-facing views of delivery state.

Design Decisions:
    - Body omitted from list views; it is only returned for a single notification
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationSummary(BaseModel):
    """Delivery bookkeeping for one notification."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    leave_request_id: UUID | None
    recipient_email: str
    event_type: str
    template_name: str
    subject: str
    status: str
    retry_count: int
    max_retries: int
    error_message: str | None
    sent_at: datetime | None
    next_retry_at: datetime | None
    created_at: datetime


class NotificationDetail(NotificationSummary):
    recipient_name: str
    body: str
    claimed_at: datetime | None


class QueueStatsResponse(BaseModel):
    """In-memory queue counters plus persisted status counts."""
    running: bool
    workers: int
    queued: int
    in_flight: int
    capacity: int
    processed: int
    permanently_failed: int
    errors: int
    reconciled: int
    notifications_by_status: dict[str, int]
