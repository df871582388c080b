"""Notification Operator Routes — queue depth, failed deliveries, single notification lookup.

Invariants:
    - Read-only: delivery state is only ever written by the dispatcher
    - Unknown notification id → ResourceNotFoundError (404 via global handler)
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.api.dependencies import get_delivery_queue
from leaveflow.core.domain_types import NotificationId
from leaveflow.core.errors import ResourceNotFoundError
from leaveflow.infrastructure.database import get_db
from leaveflow.repositories.notification_repository import NotificationRepository
from leaveflow.schemas.notification import (
    NotificationDetail, NotificationSummary, QueueStatsResponse,
)
from leaveflow.services.delivery_queue import DeliveryQueue

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("/queue", response_model=QueueStatsResponse)
async def queue_stats(
    queue: DeliveryQueue = Depends(get_delivery_queue),
    db: AsyncSession = Depends(get_db),
):
    """Worker pool counters and how many notifications sit in each status."""
    counts = await NotificationRepository(db).count_by_status()
    return QueueStatsResponse(
        **queue.stats().to_dict(), notifications_by_status=counts,
    )


@router.get("/failed", response_model=list[NotificationSummary])
async def list_failed_notifications(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    """Notifications that exhausted their retries, newest first."""
    return await NotificationRepository(db).list_failed(limit)


@router.get("/{notification_id}", response_model=NotificationDetail)
async def get_notification(
    notification_id: UUID, db: AsyncSession = Depends(get_db),
):
    notification = await NotificationRepository(db).get(
        NotificationId(notification_id),
    )
    if notification is None:
        raise ResourceNotFoundError("Notification", str(notification_id))
    return notification
