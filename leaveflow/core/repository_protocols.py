"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - Store mutations are guarded: they return False (or None) instead of
      overwriting a row that is no longer in the expected state
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test doubles need no inheritance
    - Async in Protocol: boundary methods are async because implementations do IO
    - Record protocols (LeaveRequestRecord, NotificationRecord) describe the
      attributes services read, without coupling to the ORM model classes
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol, Sequence
from uuid import UUID

from leaveflow.core.domain_types import (
    EmployeeId, EventType, LeaveRequestId, LeaveStatus, LeaveType,
    NotificationId,
)
from leaveflow.core.retry_policy import SendOutcome


@dataclass(frozen=True)
class EmployeeProfile:
    """What the core needs to know about an employee."""
    id: EmployeeId
    name: str
    email: str
    gender: str | None
    is_married: bool
    is_admin: bool = False


@dataclass(frozen=True)
class NotificationDraft:
    """A rendered notification ready to be persisted as PENDING."""
    recipient_email: str
    recipient_name: str
    event_type: EventType
    template_name: str
    subject: str
    body: str
    max_retries: int
    leave_request_id: LeaveRequestId | None = None


class LeaveRequestRecord(Protocol):
    id: UUID
    employee_id: UUID
    leave_type: str
    status: str
    start_date: date
    end_date: date
    days_count: int
    reason: str
    notes: str | None
    approved_by: UUID | None
    approval_date: datetime | None
    salary_deduction: Decimal


class LeaveBalanceRecord(Protocol):
    employee_id: UUID
    leave_type: str
    balance: int


class NotificationRecord(Protocol):
    id: UUID
    leave_request_id: UUID | None
    recipient_email: str
    recipient_name: str
    event_type: str
    template_name: str
    subject: str
    body: str
    status: str
    retry_count: int
    max_retries: int
    error_message: str | None
    sent_at: datetime | None
    next_retry_at: datetime | None
    claimed_at: datetime | None
    created_at: datetime


class Clock(Protocol):
    """Source of the current UTC time."""
    def now(self) -> datetime: ...


class Sender(Protocol):
    """Transport-agnostic delivery; raises on failure."""
    async def send(self, to: str, subject: str, body: str) -> None: ...


class EmployeeDirectory(Protocol):
    """Read-only view of employees for eligibility checks and addressing."""
    async def get(self, employee_id: EmployeeId) -> EmployeeProfile | None: ...
    async def list_admins(self) -> list[EmployeeProfile]: ...


class RequestStore(Protocol):
    """Contract for leave-request persistence."""
    async def create(
        self,
        employee_id: EmployeeId,
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        days_count: int,
        reason: str,
        notes: str | None,
        now: datetime,
    ) -> LeaveRequestRecord: ...
    async def get(self, request_id: LeaveRequestId) -> LeaveRequestRecord | None: ...
    async def list_by_employee(
        self, employee_id: EmployeeId,
    ) -> Sequence[LeaveRequestRecord]: ...
    async def list_all(
        self, status: LeaveStatus | None = None,
    ) -> Sequence[LeaveRequestRecord]: ...
    async def transition(
        self,
        request_id: LeaveRequestId,
        target: LeaveStatus,
        now: datetime,
        **fields: object,
    ) -> bool: ...


class BalanceStore(Protocol):
    """Contract for leave-balance persistence."""
    async def get(
        self, employee_id: EmployeeId, leave_type: LeaveType,
    ) -> int | None: ...
    async def list_for_employee(
        self, employee_id: EmployeeId,
    ) -> Sequence[LeaveBalanceRecord]: ...
    async def ensure_defaults(self, employee_id: EmployeeId, now: datetime) -> None: ...
    async def try_deduct(
        self, employee_id: EmployeeId, leave_type: LeaveType, days: int, now: datetime,
    ) -> bool: ...
    async def try_adjust(
        self, employee_id: EmployeeId, leave_type: LeaveType, delta: int, now: datetime,
    ) -> bool: ...


class NotificationRepository(Protocol):
    """Contract for notification persistence and delivery bookkeeping."""
    async def create(
        self, draft: NotificationDraft, now: datetime,
    ) -> NotificationRecord: ...
    async def get(self, notification_id: NotificationId) -> NotificationRecord | None: ...
    async def list_due(
        self, now: datetime, lease_expired_before: datetime, limit: int = 100,
    ) -> Sequence[NotificationRecord]: ...
    async def claim(
        self, notification_id: NotificationId, now: datetime,
        lease_expired_before: datetime,
    ) -> NotificationRecord | None: ...
    async def record_outcome(
        self,
        notification_id: NotificationId,
        claimed_at: datetime,
        outcome: SendOutcome,
        now: datetime,
    ) -> bool: ...
    async def list_failed(self, limit: int = 100) -> Sequence[NotificationRecord]: ...
    async def count_by_status(self) -> dict[str, int]: ...
