"""LeaveRequest ORM — one employee's request for a date range of a leave type.

Invariants:
    - status starts PENDING and moves at most once, to APPROVED | REJECTED | CANCELLED
    - days_count counts weekdays only and is fixed at creation
    - salary_deduction is non-zero only for approved paid leave
    - approved_by records the reviewer for approvals and rejections;
      approval_date is stamped only on approval

Design Decisions:
    - Status written exclusively through LeaveRequestRepository.transition
      (guarded UPDATE), never by assigning the attribute and flushing
"""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from leaveflow.db.base import Base
from leaveflow.db.types import MoneyType, UTCDateTime


class LeaveRequest(Base):
    """Leave request entity."""
    __tablename__ = "leave_requests"
    __table_args__ = (
        Index("ix_leave_requests_employee_id", "employee_id"),
        Index("ix_leave_requests_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="PENDING",
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    days_count: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    approval_date: Mapped[datetime | None] = mapped_column(
        UTCDateTime, nullable=True,
    )
    salary_deduction: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0.00"),
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
