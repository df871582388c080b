"""Leave Balance Repository — BalanceStore over the leave_balances table.

Invariants:
    - try_deduct never lets a balance go below zero: the predicate
      "balance >= days" and the decrement are one statement
    - ensure_defaults inserts missing rows only; existing balances are never overwritten

Design Decisions:
    - Insert-if-missing via the dialect's ON CONFLICT DO NOTHING so two
      concurrent first-time readers cannot violate the unique key
"""

import uuid
from datetime import datetime
from typing import Sequence

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.core.domain_types import (
    DEFAULT_LEAVE_BALANCES, EmployeeId, LeaveType,
)
from leaveflow.models.leave_balance import LeaveBalance

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class LeaveBalanceRepository:
    """BalanceStore backed by SQLAlchemy."""

    def __init__(
        self,
        db: AsyncSession,
        defaults: dict[LeaveType, int] | None = None,
    ):
        self._db = db
        self._defaults = defaults if defaults is not None else DEFAULT_LEAVE_BALANCES

    async def get(
        self, employee_id: EmployeeId, leave_type: LeaveType,
    ) -> int | None:
        result = await self._db.execute(
            select(LeaveBalance.balance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type == leave_type.value,
            ),
        )
        return result.scalar_one_or_none()

    async def list_for_employee(
        self, employee_id: EmployeeId,
    ) -> Sequence[LeaveBalance]:
        result = await self._db.execute(
            select(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id)
            .order_by(LeaveBalance.leave_type)
            .execution_options(populate_existing=True),
        )
        return result.scalars().all()

    async def ensure_defaults(self, employee_id: EmployeeId, now: datetime) -> None:
        """Create any missing (employee, leave_type) rows at their default balance."""
        dialect = self._db.get_bind().dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise NotImplementedError(f"ensure_defaults unsupported on {dialect}")
        rows = [
            {
                "id": uuid.uuid4(),
                "employee_id": employee_id,
                "leave_type": leave_type.value,
                "balance": balance,
                "created_at": now,
                "updated_at": now,
            }
            for leave_type, balance in self._defaults.items()
        ]
        stmt = insert(LeaveBalance).values(rows).on_conflict_do_nothing(
            index_elements=["employee_id", "leave_type"],
        )
        await self._db.execute(stmt)

    async def try_deduct(
        self,
        employee_id: EmployeeId,
        leave_type: LeaveType,
        days: int,
        now: datetime,
    ) -> bool:
        """Decrement by days only if the balance covers it. True if decremented."""
        if days < 0:
            raise ValueError("days must be non-negative")
        result = await self._db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type == leave_type.value,
                LeaveBalance.balance >= days,
            )
            .values(balance=LeaveBalance.balance - days, updated_at=now)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount == 1

    async def try_adjust(
        self,
        employee_id: EmployeeId,
        leave_type: LeaveType,
        delta: int,
        now: datetime,
    ) -> bool:
        """Add delta (may be negative) unless the result would drop below zero."""
        result = await self._db.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type == leave_type.value,
                LeaveBalance.balance + delta >= 0,
            )
            .values(balance=LeaveBalance.balance + delta, updated_at=now)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount == 1
