"""Leave Request Repository — RequestStore over the leave_requests table.

Invariants:
    - transition() only ever matches rows whose status is PENDING
    - A False return means another writer moved the row first; nothing was written

Design Decisions:
    - synchronize_session=False on guarded updates: the identity map is
      refreshed explicitly with populate_existing on the next read
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.core.domain_types import (
    EmployeeId, LeaveRequestId, LeaveStatus, LeaveType,
)
from leaveflow.models.leave_request import LeaveRequest


class LeaveRequestRepository:
    """RequestStore backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self._db = db

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
    ) -> LeaveRequest:
        request = LeaveRequest(
            employee_id=employee_id,
            leave_type=leave_type.value,
            status=LeaveStatus.PENDING.value,
            start_date=start_date,
            end_date=end_date,
            days_count=days_count,
            reason=reason.strip(),
            notes=notes,
            approved_by=None,
            approval_date=None,
            salary_deduction=Decimal("0.00"),
            created_at=now,
            updated_at=now,
        )
        self._db.add(request)
        await self._db.flush()
        return request

    async def get(self, request_id: LeaveRequestId) -> LeaveRequest | None:
        result = await self._db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True),
        )
        return result.scalar_one_or_none()

    async def list_by_employee(
        self, employee_id: EmployeeId,
    ) -> Sequence[LeaveRequest]:
        result = await self._db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.created_at.desc()),
        )
        return result.scalars().all()

    async def list_all(
        self, status: LeaveStatus | None = None,
    ) -> Sequence[LeaveRequest]:
        stmt = select(LeaveRequest).order_by(LeaveRequest.created_at.desc())
        if status is not None:
            stmt = stmt.where(LeaveRequest.status == status.value)
        result = await self._db.execute(stmt)
        return result.scalars().all()

    async def transition(
        self,
        request_id: LeaveRequestId,
        target: LeaveStatus,
        now: datetime,
        **fields: object,
    ) -> bool:
        """PENDING -> target in one conditional UPDATE. True if this call won."""
        result = await self._db.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == request_id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
            )
            .values(status=target.value, updated_at=now, **fields)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount == 1
