"""Notification Outbox — post-transition hook that renders, persists, then enqueues.

Invariants:
    - Runs only after the lifecycle transaction committed
    - Rows are persisted PENDING before their ids reach the DeliveryQueue
    - Never raises: render, persist and enqueue failures are logged, and the
      lifecycle result is returned to the caller regardless
    - An id the queue refused (stopped or full) is left for reconciliation

Design Decisions:
    - One transaction per event: all recipients of an event are persisted together
    - Field maps built here, not in the engine, so the engine only says
      which event happened to whom
"""

import logging
from decimal import Decimal
from typing import Any, Iterable

from leaveflow.core.compose_notification import compose_notification
from leaveflow.core.domain_types import (
    Audience, DEFAULT_MAX_RETRIES, EventType, LeaveRequestId, LeaveType,
    NotificationId,
)
from leaveflow.core.errors import LeaveFlowError
from leaveflow.core.leave_policy import is_paid_leave
from leaveflow.core.repository_protocols import (
    Clock, EmployeeProfile, LeaveRequestRecord, NotificationDraft,
)
from leaveflow.repositories.notification_repository import NotificationRepository
from leaveflow.services.delivery_queue import DeliveryQueue, NotificationTask
from leaveflow.services.notification_dispatcher import SessionFactory

logger = logging.getLogger(__name__)


def _request_fields(request: LeaveRequestRecord, employee: EmployeeProfile) -> dict[str, Any]:
    return {
        "employee_name": employee.name,
        "employee_id": str(employee.id),
        "start_date": request.start_date.isoformat(),
        "end_date": request.end_date.isoformat(),
        "total_days": request.days_count,
        "reason": request.reason,
    }


class NotificationOutbox:
    """Turns lifecycle events into persisted, queued notifications."""

    def __init__(
        self,
        session_factory: SessionFactory,
        clock: Clock,
        queue: DeliveryQueue | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._sessions = session_factory
        self._clock = clock
        self._queue = queue
        self._max_retries = max_retries

    # ─── Events ─────────────────────────────────────────────────

    async def leave_applied(
        self,
        request: LeaveRequestRecord,
        employee: EmployeeProfile,
        admins: Iterable[EmployeeProfile],
    ) -> list[NotificationId]:
        fields = _request_fields(request, employee)
        drafts = [self._draft(
            EventType.LEAVE_APPLIED, request, employee, fields, Audience.EMPLOYEE,
        )]
        for admin in admins:
            drafts.append(self._draft(
                EventType.LEAVE_APPLIED, request, admin,
                {**fields, "admin_name": admin.name}, Audience.ADMIN,
            ))
        return await self._publish(EventType.LEAVE_APPLIED, drafts)

    async def leave_approved(
        self,
        request: LeaveRequestRecord,
        employee: EmployeeProfile,
        approver: EmployeeProfile,
        per_day_rate: Decimal,
    ) -> list[NotificationId]:
        fields = {
            **_request_fields(request, employee),
            "admin_name": approver.name,
            "per_day_rate": f"{per_day_rate:.2f}",
            "total_deduction": f"{request.salary_deduction:.2f}",
        }
        return await self._publish(EventType.LEAVE_APPROVED, [self._draft(
            EventType.LEAVE_APPROVED, request, employee, fields, Audience.EMPLOYEE,
        )])

    async def leave_rejected(
        self,
        request: LeaveRequestRecord,
        employee: EmployeeProfile,
        rejection_reason: str,
    ) -> list[NotificationId]:
        fields = {
            **_request_fields(request, employee),
            "rejection_reason": rejection_reason,
        }
        return await self._publish(EventType.LEAVE_REJECTED, [self._draft(
            EventType.LEAVE_REJECTED, request, employee, fields, Audience.EMPLOYEE,
        )])

    async def leave_cancelled(
        self, request: LeaveRequestRecord, employee: EmployeeProfile,
    ) -> list[NotificationId]:
        return await self._publish(EventType.LEAVE_CANCELLED, [self._draft(
            EventType.LEAVE_CANCELLED, request, employee,
            _request_fields(request, employee), Audience.EMPLOYEE,
        )])

    async def low_balance(
        self,
        request: LeaveRequestRecord,
        employee: EmployeeProfile,
        current_balance: int,
    ) -> list[NotificationId]:
        fields = {"employee_name": employee.name, "current_balance": current_balance}
        return await self._publish(EventType.LOW_BALANCE, [self._draft(
            EventType.LOW_BALANCE, request, employee, fields, Audience.EMPLOYEE,
        )])

    # ─── Internals ──────────────────────────────────────────────

    def _draft(
        self,
        event_type: EventType,
        request: LeaveRequestRecord,
        recipient: EmployeeProfile,
        fields: dict[str, Any],
        audience: Audience,
    ) -> NotificationDraft | None:
        leave_type = LeaveType(request.leave_type)
        try:
            rendered = compose_notification(
                event_type, leave_type, is_paid_leave(leave_type), fields, audience,
            )
        except LeaveFlowError as e:
            logger.error(
                f"Could not render {event_type.value} notification: {e.message}",
                extra={"request_id": request.id, "error_code": e.code},
            )
            return None
        return NotificationDraft(
            recipient_email=recipient.email,
            recipient_name=recipient.name,
            event_type=event_type,
            template_name=rendered.template_name,
            subject=rendered.subject,
            body=rendered.body,
            max_retries=self._max_retries,
            leave_request_id=LeaveRequestId(request.id),
        )

    async def _publish(
        self, event_type: EventType, drafts: list[NotificationDraft | None],
    ) -> list[NotificationId]:
        ready = [d for d in drafts if d is not None]
        if not ready:
            return []
        now = self._clock.now()
        try:
            async with self._sessions() as db:
                async with db.begin():
                    repo = NotificationRepository(db)
                    ids = [
                        NotificationId((await repo.create(draft, now)).id)
                        for draft in ready
                    ]
        except Exception as e:
            logger.exception(
                f"Failed to persist {len(ready)} {event_type.value} notification(s): {e}",
                extra={"event_type": event_type.value},
            )
            return []

        for notification_id in ids:
            self._hand_off(notification_id)
        return ids

    def _hand_off(self, notification_id: NotificationId) -> None:
        if self._queue is None:
            return
        try:
            self._queue.enqueue(NotificationTask(notification_id))
        except LeaveFlowError as e:
            logger.warning(
                f"Notification not enqueued ({e.code}); left for reconciliation",
                extra={"notification_id": notification_id, "error_code": e.code},
            )
