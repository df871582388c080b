"""Notification Dispatcher — one delivery attempt: claim, send, record the outcome.

Invariants:
    - Sender.send is only called for a row this dispatcher claimed (SENDING)
    - Every send attempt is bounded by send_timeout; expiry is a failed attempt
    - Exactly one outcome write per attempt, guarded on status = SENDING and
      on the claimed_at of this dispatcher's own claim
    - claim_lease exceeds send_timeout: a claim cannot expire while its send
      is still allowed to run
    - Send failures never propagate except as PermanentDeliveryError once a
      row reaches FAILED

Design Decisions:
    - Claim and outcome each run in their own short transaction: no database
      transaction stays open across network IO
    - Any exception from the sender counts as transient; the retry budget
      alone decides when a failure becomes permanent
    - CancelledError is not caught: a send interrupted by shutdown leaves the
      row SENDING and reconciliation picks it up once the claim lease expires
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import AsyncContextManager, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.core.domain_types import NotificationId, NotificationStatus
from leaveflow.core.errors import ErrorContext, PermanentDeliveryError
from leaveflow.core.repository_protocols import Clock, Sender
from leaveflow.core.retry_policy import RetryScheduler, SendOutcome
from leaveflow.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncContextManager[AsyncSession]]


class NotificationDispatcher:
    """Delivers a single persisted notification through the Sender."""

    def __init__(
        self,
        session_factory: SessionFactory,
        sender: Sender,
        clock: Clock,
        scheduler: RetryScheduler,
        send_timeout: float = 30.0,
        claim_lease: timedelta = timedelta(minutes=5),
    ):
        if send_timeout <= 0:
            raise ValueError("send_timeout must be positive")
        if claim_lease.total_seconds() <= send_timeout:
            raise ValueError("claim_lease must be longer than send_timeout")
        self._sessions = session_factory
        self._sender = sender
        self._clock = clock
        self._scheduler = scheduler
        self.send_timeout = send_timeout
        self.claim_lease = claim_lease

    def lease_cutoff(self, now: datetime) -> datetime:
        """SENDING rows claimed at or before this instant count as abandoned."""
        return now - self.claim_lease

    async def dispatch(self, notification_id: NotificationId) -> SendOutcome | None:
        """Attempt delivery. Returns the recorded outcome, or None if not claimable.

        Raises PermanentDeliveryError when this attempt exhausted the retry budget.
        """
        now = self._clock.now()
        async with self._sessions() as db:
            async with db.begin():
                notification = await NotificationRepository(db).claim(
                    notification_id, now, self.lease_cutoff(now),
                )
        if notification is None:
            logger.debug(
                "Notification not due or claimed elsewhere",
                extra={"notification_id": notification_id},
            )
            return None

        attempt = notification.retry_count + 1
        try:
            await asyncio.wait_for(
                self._sender.send(
                    notification.recipient_email,
                    notification.subject,
                    notification.body,
                ),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            outcome = self._scheduler.on_failure(
                notification.retry_count, notification.max_retries,
                f"send timed out after {self.send_timeout:g}s", self._clock.now(),
            )
        except Exception as e:
            outcome = self._scheduler.on_failure(
                notification.retry_count, notification.max_retries,
                str(e) or type(e).__name__, self._clock.now(),
            )
        else:
            outcome = self._scheduler.on_success(
                notification.retry_count, self._clock.now(),
            )

        async with self._sessions() as db:
            async with db.begin():
                recorded = await NotificationRepository(db).record_outcome(
                    notification_id, notification.claimed_at, outcome,
                    self._clock.now(),
                )
        if not recorded:
            logger.warning(
                "Outcome discarded: claim superseded or released",
                extra={"notification_id": notification_id, "attempt": attempt},
            )
            return None

        if not outcome.is_terminal:
            logger.warning(
                f"Delivery failed, retry at {outcome.next_retry_at.isoformat()}: "
                f"{outcome.error_message}",
                extra={"notification_id": notification_id, "attempt": attempt},
            )
        elif outcome.status is NotificationStatus.SENT:
            logger.info(
                f"Notification sent to {notification.recipient_email}",
                extra={"notification_id": notification_id, "attempt": attempt},
            )
        else:
            logger.error(
                f"Delivery permanently failed: {outcome.error_message}",
                extra={
                    "notification_id": notification_id,
                    "attempt": attempt,
                    "error_code": "DELIVERY_FAILED",
                },
            )
            raise PermanentDeliveryError(
                outcome.error_message or "delivery failed",
                outcome.retry_count,
                ErrorContext(notification_id=str(notification_id)),
            )
        return outcome
