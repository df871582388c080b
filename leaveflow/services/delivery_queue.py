"""Delivery Queue — bounded in-memory work queue, worker pool, and reconciliation timer.

Invariants:
    - enqueue never blocks: it fails fast with QueueNotRunningError or QueueFullError
    - A notification id waits in the queue at most once at a time
    - Workers survive every dispatch error; PermanentDeliveryError is counted, not raised
    - The queue holds ids only; durability lives in the notifications table,
      so anything lost here is rediscovered by reconcile()

Design Decisions:
    - Explicit service object with start/stop instead of module-level state
    - Reconciliation is a cancellable timer task with an injectable sleep, and
      reconcile() is public so tests drive it directly with a fake clock
    - Shutdown waits on queue.join() rather than sentinel values, so a full
      queue cannot block stop()
"""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Awaitable, Callable

from leaveflow.core.domain_types import NotificationId
from leaveflow.core.errors import (
    PermanentDeliveryError, QueueFullError, QueueNotRunningError,
    ShutdownTimeoutError,
)
from leaveflow.core.repository_protocols import Clock
from leaveflow.repositories.notification_repository import NotificationRepository
from leaveflow.services.notification_dispatcher import (
    NotificationDispatcher, SessionFactory,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationTask:
    """Unit of work: deliver the notification with this id."""
    notification_id: NotificationId


@dataclass(frozen=True)
class QueueStats:
    running: bool
    workers: int
    queued: int
    in_flight: int
    capacity: int
    processed: int
    permanently_failed: int
    errors: int
    reconciled: int

    def to_dict(self) -> dict:
        return asdict(self)


class DeliveryQueue:
    """Feeds persisted notification ids to a pool of dispatching workers."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        session_factory: SessionFactory,
        clock: Clock,
        capacity: int = 1000,
        reconcile_interval: float = 120.0,
        reconcile_batch: int = 100,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if reconcile_interval <= 0:
            raise ValueError("reconcile_interval must be positive")
        self._dispatcher = dispatcher
        self._sessions = session_factory
        self._clock = clock
        self.capacity = capacity
        self.reconcile_interval = reconcile_interval
        self._reconcile_batch = reconcile_batch
        self._sleep = sleep

        self._queue: asyncio.Queue[NotificationTask] | None = None
        self._queued_ids: set[NotificationId] = set()
        self._workers: list[asyncio.Task] = []
        self._timer: asyncio.Task | None = None
        self._running = False
        self._in_flight = 0
        self._processed = 0
        self._permanently_failed = 0
        self._errors = 0
        self._reconciled = 0

    # ─── Lifecycle ──────────────────────────────────────────────

    def is_running(self) -> bool:
        return self._running

    async def start(self, worker_count: int) -> None:
        """Spawn worker_count workers and the reconciliation timer."""
        if worker_count < 1:
            raise ValueError("worker_count must be at least 1")
        if self._running:
            logger.warning("Delivery queue already running; start ignored")
            return
        self._queue = asyncio.Queue(maxsize=self.capacity)
        self._queued_ids.clear()
        self._running = True
        self._workers = [
            asyncio.create_task(self._work(i), name=f"delivery-worker-{i}")
            for i in range(worker_count)
        ]
        self._timer = asyncio.create_task(
            self._reconcile_loop(), name="delivery-reconcile",
        )
        logger.info(
            f"Delivery queue started with {worker_count} worker(s)",
            extra={"queue_depth": 0},
        )

    async def stop(self, timeout: float = 10.0) -> None:
        """Stop accepting work, drain the queue, and stop the workers.

        Raises ShutdownTimeoutError if work remains after timeout seconds.
        Undrained rows stay PENDING/RETRY/SENDING and are resumed by a
        later reconcile().
        """
        if not self._running:
            return
        self._running = False
        if self._timer is not None:
            self._timer.cancel()
            await asyncio.gather(self._timer, return_exceptions=True)
            self._timer = None

        drained = asyncio.ensure_future(self._queue.join())
        done, _ = await asyncio.wait({drained}, timeout=timeout)
        undrained = len(self._queued_ids) + self._in_flight

        drained.cancel()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(drained, *self._workers, return_exceptions=True)
        self._workers = []
        self._in_flight = 0

        if not done:
            logger.error(
                f"Delivery queue shutdown timed out with {undrained} task(s) undrained",
                extra={"error_code": "SHUTDOWN_TIMEOUT", "queue_depth": undrained},
            )
            raise ShutdownTimeoutError(undrained, timeout)
        logger.info("Delivery queue stopped")

    # ─── Producer side ──────────────────────────────────────────

    def enqueue(self, task: NotificationTask) -> bool:
        """Queue a task without blocking. False if the id is already waiting."""
        if not self._running or self._queue is None:
            raise QueueNotRunningError()
        if task.notification_id in self._queued_ids:
            return False
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            raise QueueFullError(self.capacity) from None
        self._queued_ids.add(task.notification_id)
        return True

    async def join(self) -> None:
        """Wait until every queued task has been processed."""
        if self._queue is not None:
            await self._queue.join()

    async def reconcile(self) -> int:
        """Re-enqueue due notifications from the repository. Returns how many were added."""
        if not self._running:
            return 0
        now = self._clock.now()
        async with self._sessions() as db:
            due = await NotificationRepository(db).list_due(
                now, self._dispatcher.lease_cutoff(now), limit=self._reconcile_batch,
            )
            ids = [NotificationId(n.id) for n in due]

        added = 0
        for notification_id in ids:
            try:
                if self.enqueue(NotificationTask(notification_id)):
                    added += 1
            except QueueFullError:
                logger.warning(
                    "Delivery queue full during reconciliation; "
                    "remaining due notifications wait for the next pass",
                    extra={"queue_depth": self.capacity},
                )
                break
        if added:
            self._reconciled += added
            logger.info(f"Reconciliation re-enqueued {added} notification(s)")
        return added

    def stats(self) -> QueueStats:
        return QueueStats(
            running=self._running,
            workers=len(self._workers),
            queued=self._queue.qsize() if self._queue is not None else 0,
            in_flight=self._in_flight,
            capacity=self.capacity,
            processed=self._processed,
            permanently_failed=self._permanently_failed,
            errors=self._errors,
            reconciled=self._reconciled,
        )

    # ─── Consumer side ──────────────────────────────────────────

    async def _work(self, index: int) -> None:
        while True:
            task = await self._queue.get()
            self._queued_ids.discard(task.notification_id)
            self._in_flight += 1
            try:
                await self._dispatcher.dispatch(task.notification_id)
                self._processed += 1
            except PermanentDeliveryError as e:
                self._processed += 1
                self._permanently_failed += 1
                logger.error(
                    f"Notification permanently failed after {e.attempts} attempt(s)",
                    extra={
                        "notification_id": task.notification_id,
                        "worker": index,
                        "error_code": e.code,
                    },
                )
            except Exception as e:
                self._errors += 1
                logger.exception(
                    f"Worker {index} failed to dispatch notification: {e}",
                    extra={"notification_id": task.notification_id, "worker": index},
                )
            finally:
                self._in_flight -= 1
                self._queue.task_done()

    async def _reconcile_loop(self) -> None:
        while True:
            await self._sleep(self.reconcile_interval)
            try:
                await self.reconcile()
            except Exception as e:
                logger.exception(f"Reconciliation pass failed: {e}")
