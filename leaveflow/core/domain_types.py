"""Domain Types — enums, identity types, and the per-leave-type policy tables.

Invariants:
    - EmployeeId, LeaveRequestId, NotificationId wrap UUIDs
    - All valid states encoded as Enums — no raw string matching
    - PAID_LEAVE_TYPES and MANAGED_LEAVE_TYPES are independent tables:
      neither is derived from the other
    - PENDING is the only non-terminal LeaveStatus

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: values are stored verbatim in the database status/type columns
    - SENDING is the in-flight claim marker for a notification row owned by one dispatcher
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

EmployeeId = NewType("EmployeeId", UUID)
LeaveRequestId = NewType("LeaveRequestId", UUID)
NotificationId = NewType("NotificationId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class LeaveType(str, Enum):
    """Leave categories offered to employees."""
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    PERSONAL = "PERSONAL"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    UNPAID = "UNPAID"
    CASUAL = "CASUAL"


class LeaveStatus(str, Enum):
    """Leave request lifecycle states — maps to DB `status` column."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_LEAVE_STATUSES = frozenset({
    LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED,
})


class NotificationStatus(str, Enum):
    """Notification delivery states — maps to DB `status` column."""
    PENDING = "PENDING"
    SENDING = "SENDING"
    SENT = "SENT"
    RETRY = "RETRY"
    FAILED = "FAILED"


class EventType(str, Enum):
    """Events that produce a notification."""
    LEAVE_APPLIED = "LEAVE_APPLIED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    LEAVE_CANCELLED = "LEAVE_CANCELLED"
    LOW_BALANCE = "LOW_BALANCE"


class Audience(str, Enum):
    """Who a rendered notification is addressed to."""
    EMPLOYEE = "employee"
    ADMIN = "admin"


class EmployeeRole(str, Enum):
    EMPLOYEE = "employee"
    ADMIN = "admin"


# ─── Policy Tables ───────────────────────────────────────────────

# Approved days incur a salary deduction
PAID_LEAVE_TYPES = frozenset({LeaveType.ANNUAL, LeaveType.SICK})

# Approved days are decremented from the employee's balance
MANAGED_LEAVE_TYPES = frozenset({
    LeaveType.ANNUAL, LeaveType.SICK, LeaveType.CASUAL,
    LeaveType.MATERNITY, LeaveType.PATERNITY,
    LeaveType.UNPAID, LeaveType.PERSONAL,
})

DEFAULT_LEAVE_BALANCES: dict[LeaveType, int] = {
    LeaveType.ANNUAL: 10,
    LeaveType.SICK: 15,
    LeaveType.CASUAL: 10,
    LeaveType.MATERNITY: 90,
    LeaveType.PATERNITY: 7,
    LeaveType.UNPAID: 10,
    LeaveType.PERSONAL: 10,
}

DEFAULT_MAX_RETRIES = 3
