"""LeaveFlow API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map LeaveFlowError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, delivery queue, outbox and lifecycle engine built on startup
      via the lifespan context manager and exposed on app.state

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Startup runs one reconcile() so rows left PENDING/RETRY by a previous
      process are delivered without waiting a full timer interval
    - A shutdown that times out is logged, not raised: undrained rows are
      recovered by the next process's reconciliation
"""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leaveflow.api.error_handlers import register_error_handlers
from leaveflow.api.routes import health, notifications
from leaveflow.config import Settings, get_settings
from leaveflow.core.errors import ShutdownTimeoutError
from leaveflow.core.retry_policy import RetryScheduler
from leaveflow.infrastructure.clock import SystemClock
from leaveflow.infrastructure.database import init_db
from leaveflow.infrastructure.mail_sender import build_sender
from leaveflow.infrastructure.observability import setup_logging
from leaveflow.services.delivery_queue import DeliveryQueue
from leaveflow.services.leave_lifecycle import LeaveLifecycleEngine
from leaveflow.services.notification_dispatcher import NotificationDispatcher
from leaveflow.services.notification_outbox import NotificationOutbox

logger = logging.getLogger(__name__)


def build_services(app: FastAPI, settings: Settings, session_factory) -> DeliveryQueue:
    """Wire sender, dispatcher, queue, outbox and engine onto app.state."""
    clock = SystemClock()
    scheduler = RetryScheduler(
        base_delay=timedelta(seconds=settings.retry_base_delay_seconds),
        max_delay=timedelta(seconds=settings.retry_max_delay_seconds),
        jitter_ratio=settings.retry_jitter_ratio,
    )
    dispatcher = NotificationDispatcher(
        session_factory,
        build_sender(settings),
        clock,
        scheduler,
        send_timeout=settings.delivery_send_timeout_seconds,
        claim_lease=timedelta(seconds=settings.delivery_claim_lease_seconds),
    )
    queue = DeliveryQueue(
        dispatcher,
        session_factory,
        clock,
        capacity=settings.delivery_queue_capacity,
        reconcile_interval=settings.delivery_reconcile_interval_seconds,
    )
    outbox = NotificationOutbox(
        session_factory, clock, queue,
        max_retries=settings.notification_max_retries,
    )
    app.state.delivery_queue = queue
    app.state.lifecycle_engine = LeaveLifecycleEngine(
        session_factory,
        outbox,
        clock,
        salary_deduction_per_day=settings.salary_deduction_per_day,
        low_balance_threshold=settings.low_balance_threshold,
    )
    return queue


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    queue = build_services(app, settings, manager.session)
    await queue.start(settings.delivery_workers)
    try:
        await queue.reconcile()
    except Exception as e:
        logger.exception(f"Startup reconciliation failed: {e}")
    logger.info("LeaveFlow API started")
    yield
    logger.info("LeaveFlow API shutting down")
    try:
        await queue.stop(settings.delivery_shutdown_grace_seconds)
    except ShutdownTimeoutError as e:
        logger.error(e.message, extra={"error_code": e.code})
    await manager.close()


app = FastAPI(
    title="LeaveFlow API", version="1.0.0", lifespan=lifespan,
)

# CORS: configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes: explicit registration
app.include_router(health.router)
app.include_router(notifications.router)

register_error_handlers(app)
