"""Notification Repository — durable delivery bookkeeping for the notifications table.

Invariants:
    - A row is due when it is PENDING or RETRY, next_retry_at is unset or
      not in the future, and retry_count < max_retries; or when it is
      SENDING and its claim lease has expired
    - claim() flips a due row to SENDING in one UPDATE; at most one caller wins
    - record_outcome() only writes a row still SENDING under the same claim
      (claimed_at unchanged), so a stale dispatcher cannot overwrite a newer
      claim's result
    - FAILED rows never match the due predicate
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.core.domain_types import NotificationId, NotificationStatus
from leaveflow.core.repository_protocols import NotificationDraft
from leaveflow.core.retry_policy import SendOutcome
from leaveflow.models.notification import Notification


def _due_clause(now: datetime, lease_expired_before: datetime):
    waiting = and_(
        Notification.status.in_([
            NotificationStatus.PENDING.value, NotificationStatus.RETRY.value,
        ]),
        or_(
            Notification.next_retry_at.is_(None),
            Notification.next_retry_at <= now,
        ),
    )
    abandoned = and_(
        Notification.status == NotificationStatus.SENDING.value,
        Notification.claimed_at <= lease_expired_before,
    )
    return and_(
        or_(waiting, abandoned),
        Notification.retry_count < Notification.max_retries,
    )


class NotificationRepository:
    """DeliveryRepository backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def create(
        self, draft: NotificationDraft, now: datetime,
    ) -> Notification:
        notification = Notification(
            leave_request_id=draft.leave_request_id,
            recipient_email=draft.recipient_email,
            recipient_name=draft.recipient_name,
            event_type=draft.event_type.value,
            template_name=draft.template_name,
            subject=draft.subject,
            body=draft.body,
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=draft.max_retries,
            error_message=None,
            sent_at=None,
            next_retry_at=None,
            claimed_at=None,
            created_at=now,
            updated_at=now,
        )
        self._db.add(notification)
        await self._db.flush()
        return notification

    async def get(self, notification_id: NotificationId) -> Notification | None:
        result = await self._db.execute(
            select(Notification)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()

    async def list_due(
        self, now: datetime, lease_expired_before: datetime, limit: int = 100,
    ) -> Sequence[Notification]:
        result = await self._db.execute(
            select(Notification)
            .where(_due_clause(now, lease_expired_before))
            .order_by(Notification.created_at)
            .limit(limit),
        )
        return result.scalars().all()

    async def claim(
        self,
        notification_id: NotificationId,
        now: datetime,
        lease_expired_before: datetime,
    ) -> Notification | None:
        """Mark a due row SENDING. Returns the claimed row, or None if not due."""
        result = await self._db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                _due_clause(now, lease_expired_before),
            )
            .values(
                status=NotificationStatus.SENDING.value,
                claimed_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            return None
        return await self.get(notification_id)

    async def record_outcome(
        self,
        notification_id: NotificationId,
        claimed_at: datetime,
        outcome: SendOutcome,
        now: datetime,
    ) -> bool:
        """Apply an attempt's outcome if the claim that made it is still current."""
        result = await self._db.execute(
            update(Notification)
            .where(
                Notification.id == notification_id,
                Notification.status == NotificationStatus.SENDING.value,
                Notification.claimed_at == claimed_at,
            )
            .values(
                status=outcome.status.value,
                retry_count=outcome.retry_count,
                sent_at=outcome.sent_at,
                next_retry_at=outcome.next_retry_at,
                error_message=outcome.error_message,
                claimed_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False),
        )
        return result.rowcount == 1

    async def list_failed(self, limit: int = 100) -> Sequence[Notification]:
        result = await self._db.execute(
            select(Notification)
            .where(Notification.status == NotificationStatus.FAILED.value)
            .order_by(Notification.updated_at.desc())
            .limit(limit),
        )
        return result.scalars().all()

    async def count_by_status(self) -> dict[str, int]:
        result = await self._db.execute(
            select(Notification.status, func.count())
            .group_by(Notification.status),
        )
        counts = {status.value: 0 for status in NotificationStatus}
        for status, count in result.all():
            counts[status] = count
        return counts
