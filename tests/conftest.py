"""Root conftest — shared fixtures: file-backed SQLite per test, seeded employees, fake clock/sender.

Invariants:
    - Every test gets a fresh SQLite database file under tmp_path
    - Sessions come from DatabaseSessionManager.session, the same factory production uses
    - The clock is frozen at 2030-01-01 09:00 UTC unless a test advances it

Design Decisions:
    - File-backed SQLite over :memory: so concurrent operations run on separate
      connections and exercise the guarded UPDATEs; the busy timeout lets a
      second writer wait for the first to commit
"""

import os

# Never reach a real mail relay or database from tests
os.environ.setdefault("SMTP_HOST", "")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from leaveflow.core.repository_protocols import NotificationDraft
from leaveflow.core.domain_types import EventType
from leaveflow.core.retry_policy import RetryScheduler
from leaveflow.db.base import Base
from leaveflow.infrastructure.database import DatabaseSessionManager, get_db
import leaveflow.infrastructure.database as db_module
from leaveflow.models import Employee, LeaveBalance, Notification
from leaveflow.repositories.notification_repository import NotificationRepository
from leaveflow.services.delivery_queue import DeliveryQueue
from leaveflow.services.leave_lifecycle import LeaveLifecycleEngine
from leaveflow.services.notification_dispatcher import NotificationDispatcher
from leaveflow.services.notification_outbox import NotificationOutbox
from tests.fakes import FakeClock, FakeSender

START = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
RATE = Decimal("500.00")


@pytest.fixture
async def db_manager(tmp_path):
    manager = DatabaseSessionManager(
        f"sqlite+aiosqlite:///{tmp_path / 'leaveflow.db'}",
        connect_args={"timeout": 30},
    )
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.close()


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
async def employees(db_manager):
    """Alice (female, married), Bob (male, single), and one admin."""
    alice = Employee(
        first_name="Alice", last_name="Smith", email="alice@example.com",
        gender="female", is_married=True, role="employee",
    )
    bob = Employee(
        first_name="Bob", last_name="Jones", email="bob@example.com",
        gender="male", is_married=False, role="employee",
    )
    admin = Employee(
        first_name="Grace", last_name="Hopper", email="grace@example.com",
        gender="female", is_married=False, role="admin",
    )
    async with db_manager.session() as db:
        async with db.begin():
            db.add_all([alice, bob, admin])
    return SimpleNamespace(alice=alice, bob=bob, admin=admin)


@pytest.fixture
def outbox(db_manager, clock):
    """Outbox with no queue: notifications are persisted PENDING only."""
    return NotificationOutbox(db_manager.session, clock)


@pytest.fixture
def engine(db_manager, outbox, clock):
    return LeaveLifecycleEngine(
        db_manager.session, outbox, clock,
        salary_deduction_per_day=RATE,
        low_balance_threshold=2,
    )


@pytest.fixture
def scheduler():
    return RetryScheduler(base_delay=timedelta(minutes=5))


@pytest.fixture
def dispatcher(db_manager, sender, clock, scheduler):
    return NotificationDispatcher(
        db_manager.session, sender, clock, scheduler,
        send_timeout=1.0, claim_lease=timedelta(minutes=5),
    )


@pytest.fixture
async def queue(db_manager, dispatcher, clock):
    q = DeliveryQueue(
        dispatcher, db_manager.session, clock,
        capacity=10, reconcile_interval=3600,
    )
    yield q
    if q.is_running():
        await q.stop(timeout=5)


@pytest.fixture
def make_notification(db_manager, clock):
    """Persist a PENDING notification directly and return its id."""
    async def _make(email="alice@example.com", max_retries=3):
        draft = NotificationDraft(
            recipient_email=email,
            recipient_name="Alice Smith",
            event_type=EventType.LEAVE_APPLIED,
            template_name="leave_applied_employee",
            subject="Leave Request Submitted - Pending Approval",
            body="Hello Alice Smith,",
            max_retries=max_retries,
        )
        async with db_manager.session() as db:
            async with db.begin():
                notification = await NotificationRepository(db).create(
                    draft, clock.now(),
                )
        return notification.id
    return _make


@pytest.fixture
def fetch_notification(db_manager):
    async def _fetch(notification_id):
        async with db_manager.session() as db:
            return await NotificationRepository(db).get(notification_id)
    return _fetch


@pytest.fixture
def notifications_for(db_manager):
    """All notifications about a leave request, oldest first."""
    async def _list(request_id, event_type: EventType | None = None):
        stmt = (
            select(Notification)
            .where(Notification.leave_request_id == request_id)
            .order_by(Notification.created_at, Notification.recipient_email)
        )
        if event_type is not None:
            stmt = stmt.where(Notification.event_type == event_type.value)
        async with db_manager.session() as db:
            return (await db.execute(stmt)).scalars().all()
    return _list


@pytest.fixture
def balance_rows(db_manager):
    async def _rows(employee_id):
        async with db_manager.session() as db:
            result = await db.execute(
                select(LeaveBalance).where(LeaveBalance.employee_id == employee_id),
            )
            return {row.leave_type: row.balance for row in result.scalars().all()}
    return _rows


@pytest.fixture
async def client(db_manager, queue):
    """FastAPI test client with DB dependency overridden and a live queue on app.state."""
    from leaveflow.main import app

    async def override_get_db():
        async with db_manager.session() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    original_manager = db_module.db_manager
    db_module.db_manager = db_manager
    app.state.delivery_queue = queue

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager
    del app.state.delivery_queue
