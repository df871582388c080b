"""Employee Directory — read-only EmployeeDirectory over the employees table."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.core.domain_types import EmployeeId, EmployeeRole
from leaveflow.core.repository_protocols import EmployeeProfile
from leaveflow.models.employee import Employee


def _to_profile(employee: Employee) -> EmployeeProfile:
    return EmployeeProfile(
        id=EmployeeId(employee.id),
        name=employee.full_name,
        email=employee.email,
        gender=employee.gender,
        is_married=employee.is_married,
        is_admin=employee.role == EmployeeRole.ADMIN.value,
    )


class SqlEmployeeDirectory:
    """EmployeeDirectory backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self._db = db

    async def get(self, employee_id: EmployeeId) -> EmployeeProfile | None:
        result = await self._db.execute(
            select(Employee).where(Employee.id == employee_id),
        )
        employee = result.scalar_one_or_none()
        return _to_profile(employee) if employee else None

    async def list_admins(self) -> list[EmployeeProfile]:
        result = await self._db.execute(
            select(Employee)
            .where(Employee.role == EmployeeRole.ADMIN.value)
            .order_by(Employee.email),
        )
        return [_to_profile(e) for e in result.scalars().all()]
