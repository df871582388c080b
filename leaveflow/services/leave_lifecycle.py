"""Leave Lifecycle Engine — apply, approve, reject, cancel, and the balance reads behind them.

Invariants:
    - Sole writer of leave_requests and leave_balances
    - Each operation is one database transaction of guarded statements;
      any error rolls the whole transaction back
    - A status change that loses its PENDING guard raises ConflictError,
      never a silent no-op
    - Balance decrement is the single statement "balance >= days"; when it
      fails the request stays PENDING and the balance is untouched
    - Notifications are emitted only after commit and never affect the result

Design Decisions:
    - Status pre-check before the guarded UPDATE gives a precise error for
      requests already terminal; the guard alone decides concurrent races
    - Approval order is transition, then deduct: a concurrent loser fails on
      the status guard before it ever touches the balance
    - Paid-ness and balance management are independent lookups (domain_types)
    - Paid approvals replace notes with the deduction record plus admin notes
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from leaveflow.core.domain_types import (
    EmployeeId, LeaveRequestId, LeaveStatus, LeaveType,
)
from leaveflow.core.errors import (
    ConflictError, ErrorContext, ForbiddenError, ResourceNotFoundError,
    ValidationError,
)
from leaveflow.core.leave_policy import (
    compute_salary_deduction, deduction_note, is_managed_leave, is_paid_leave,
    validate_application,
)
from leaveflow.core.leave_state import ONLY_PENDING_MESSAGE, ensure_transition
from leaveflow.core.repository_protocols import (
    Clock, EmployeeDirectory, EmployeeProfile, LeaveBalanceRecord,
    LeaveRequestRecord,
)
from leaveflow.models.leave_request import LeaveRequest
from leaveflow.repositories.employee_directory import SqlEmployeeDirectory
from leaveflow.repositories.leave_balance_repository import LeaveBalanceRepository
from leaveflow.repositories.leave_request_repository import LeaveRequestRepository
from leaveflow.services.notification_dispatcher import SessionFactory
from leaveflow.services.notification_outbox import NotificationOutbox

logger = logging.getLogger(__name__)


class LeaveLifecycleEngine:
    """Enforces the leave state machine, eligibility, and balance policy."""

    def __init__(
        self,
        session_factory: SessionFactory,
        outbox: NotificationOutbox,
        clock: Clock,
        salary_deduction_per_day: Decimal = Decimal("500.00"),
        low_balance_threshold: int = 2,
        directory_factory: Callable[[AsyncSession], EmployeeDirectory] = SqlEmployeeDirectory,
    ):
        self._sessions = session_factory
        self._outbox = outbox
        self._clock = clock
        self.salary_deduction_per_day = salary_deduction_per_day
        self.low_balance_threshold = low_balance_threshold
        self._directory_factory = directory_factory

    # ─── Transitions ────────────────────────────────────────────

    async def apply(
        self,
        employee_id: EmployeeId,
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        reason: str,
        notes: str | None = None,
    ) -> LeaveRequestRecord:
        """Create a PENDING request. Balance is neither checked nor touched."""
        now = self._clock.now()
        async with self._sessions() as db:
            async with db.begin():
                directory = self._directory_factory(db)
                employee = await self._employee_or_404(directory, employee_id)
                days = validate_application(
                    leave_type=leave_type,
                    start_date=start_date,
                    end_date=end_date,
                    reason=reason,
                    today=now.date(),
                    gender=employee.gender,
                    is_married=employee.is_married,
                )
                request = await LeaveRequestRepository(db).create(
                    employee_id, leave_type, start_date, end_date,
                    days, reason, notes, now,
                )
                admins = await directory.list_admins()

        logger.info(
            f"Leave request created: {leave_type.value}, {days} day(s)",
            extra={"request_id": request.id, "employee_id": employee_id},
        )
        await self._outbox.leave_applied(request, employee, admins)
        return request

    async def approve(
        self,
        request_id: LeaveRequestId,
        approver_id: EmployeeId,
        notes: str | None = None,
    ) -> LeaveRequestRecord:
        """PENDING -> APPROVED, decrementing managed balances and stamping paid deductions."""
        now = self._clock.now()
        remaining: int | None = None
        async with self._sessions() as db:
            async with db.begin():
                requests = LeaveRequestRepository(db)
                directory = self._directory_factory(db)
                request = await self._request_or_404(requests, request_id)
                approver = await self._employee_or_404(directory, approver_id)
                ensure_transition(LeaveStatus(request.status), LeaveStatus.APPROVED)

                leave_type = LeaveType(request.leave_type)
                deduction = compute_salary_deduction(
                    leave_type, request.days_count, self.salary_deduction_per_day,
                )
                if is_paid_leave(leave_type):
                    notes = deduction_note(
                        request.days_count, self.salary_deduction_per_day, deduction,
                        request.start_date, request.end_date, notes,
                    )
                won = await requests.transition(
                    request_id, LeaveStatus.APPROVED, now,
                    approved_by=approver_id,
                    approval_date=now,
                    salary_deduction=deduction,
                    notes=notes if notes is not None else request.notes,
                )
                if not won:
                    raise self._lost_race(request_id)

                if is_managed_leave(leave_type):
                    balances = LeaveBalanceRepository(db)
                    await balances.ensure_defaults(request.employee_id, now)
                    deducted = await balances.try_deduct(
                        request.employee_id, leave_type, request.days_count, now,
                    )
                    if not deducted:
                        available = await balances.get(request.employee_id, leave_type)
                        raise ValidationError.single(
                            "balance",
                            f"insufficient balance: {request.days_count} day(s) "
                            f"requested, {available or 0} available",
                            ErrorContext(
                                request_id=str(request_id),
                                employee_id=str(request.employee_id),
                            ),
                        )
                    remaining = await balances.get(request.employee_id, leave_type)

                request = await requests.get(request_id)
                employee = await directory.get(EmployeeId(request.employee_id))

        logger.info(
            f"Leave request approved, deduction {deduction}",
            extra={"request_id": request_id, "employee_id": request.employee_id},
        )
        if employee is not None:
            await self._outbox.leave_approved(
                request, employee, approver, self.salary_deduction_per_day,
            )
            if remaining is not None and remaining <= self.low_balance_threshold:
                await self._outbox.low_balance(request, employee, remaining)
        return request

    async def reject(
        self,
        request_id: LeaveRequestId,
        approver_id: EmployeeId,
        reason: str,
    ) -> LeaveRequestRecord:
        """PENDING -> REJECTED. No balance change."""
        if not reason or not reason.strip():
            raise ValidationError.single("reason", "rejection reason is required")
        now = self._clock.now()
        async with self._sessions() as db:
            async with db.begin():
                requests = LeaveRequestRepository(db)
                directory = self._directory_factory(db)
                request = await self._request_or_404(requests, request_id)
                await self._employee_or_404(directory, approver_id)
                ensure_transition(LeaveStatus(request.status), LeaveStatus.REJECTED)
                won = await requests.transition(
                    request_id, LeaveStatus.REJECTED, now,
                    approved_by=approver_id,
                    notes=reason.strip(),
                )
                if not won:
                    raise self._lost_race(request_id)
                request = await requests.get(request_id)
                employee = await directory.get(EmployeeId(request.employee_id))

        logger.info("Leave request rejected", extra={"request_id": request_id})
        if employee is not None:
            await self._outbox.leave_rejected(request, employee, reason.strip())
        return request

    async def cancel(
        self, request_id: LeaveRequestId, employee_id: EmployeeId,
    ) -> LeaveRequestRecord:
        """PENDING -> CANCELLED, only by the owning employee. No balance change."""
        now = self._clock.now()
        async with self._sessions() as db:
            async with db.begin():
                requests = LeaveRequestRepository(db)
                request = await self._request_or_404(requests, request_id)
                if request.employee_id != employee_id:
                    raise ForbiddenError(
                        "Only the employee who applied may cancel this request",
                        ErrorContext(
                            request_id=str(request_id), employee_id=str(employee_id),
                        ),
                    )
                ensure_transition(LeaveStatus(request.status), LeaveStatus.CANCELLED)
                won = await requests.transition(request_id, LeaveStatus.CANCELLED, now)
                if not won:
                    raise self._lost_race(request_id)
                request = await requests.get(request_id)
                employee = await self._directory_factory(db).get(employee_id)

        logger.info("Leave request cancelled", extra={"request_id": request_id})
        if employee is not None:
            await self._outbox.leave_cancelled(request, employee)
        return request

    # ─── Reads & administration ─────────────────────────────────

    async def get_request(self, request_id: LeaveRequestId) -> LeaveRequestRecord:
        async with self._sessions() as db:
            return await self._request_or_404(LeaveRequestRepository(db), request_id)

    async def list_employee_requests(
        self, employee_id: EmployeeId,
    ) -> Sequence[LeaveRequestRecord]:
        async with self._sessions() as db:
            return await LeaveRequestRepository(db).list_by_employee(employee_id)

    async def list_requests(
        self, status: LeaveStatus | None = None,
    ) -> Sequence[LeaveRequestRecord]:
        async with self._sessions() as db:
            return await LeaveRequestRepository(db).list_all(status)

    async def get_balances(
        self, employee_id: EmployeeId,
    ) -> Sequence[LeaveBalanceRecord]:
        """All balances for an employee, creating defaults on first read."""
        now = self._clock.now()
        async with self._sessions() as db:
            async with db.begin():
                await self._employee_or_404(self._directory_factory(db), employee_id)
                balances = LeaveBalanceRepository(db)
                await balances.ensure_defaults(employee_id, now)
                return await balances.list_for_employee(employee_id)

    async def adjust_balance(
        self, employee_id: EmployeeId, leave_type: LeaveType, delta: int,
    ) -> int:
        """Add delta days (negative to remove). Returns the new balance."""
        now = self._clock.now()
        async with self._sessions() as db:
            async with db.begin():
                await self._employee_or_404(self._directory_factory(db), employee_id)
                balances = LeaveBalanceRepository(db)
                await balances.ensure_defaults(employee_id, now)
                if not await balances.try_adjust(employee_id, leave_type, delta, now):
                    current = await balances.get(employee_id, leave_type)
                    raise ValidationError.single(
                        "delta",
                        f"adjustment of {delta} would make the {leave_type.value} "
                        f"balance negative (current {current})",
                        ErrorContext(employee_id=str(employee_id)),
                    )
                balance = await balances.get(employee_id, leave_type)
        logger.info(
            f"{leave_type.value} balance adjusted by {delta} to {balance}",
            extra={"employee_id": employee_id},
        )
        return balance

    # ─── Helpers ────────────────────────────────────────────────

    async def _request_or_404(
        self, requests: LeaveRequestRepository, request_id: LeaveRequestId,
    ) -> LeaveRequest:
        request = await requests.get(request_id)
        if request is None:
            raise ResourceNotFoundError("LeaveRequest", str(request_id))
        return request

    async def _employee_or_404(
        self, directory: EmployeeDirectory, employee_id: EmployeeId,
    ) -> EmployeeProfile:
        employee = await directory.get(employee_id)
        if employee is None:
            raise ResourceNotFoundError("Employee", str(employee_id))
        return employee

    @staticmethod
    def _lost_race(request_id: LeaveRequestId) -> ConflictError:
        return ConflictError(
            f"Leave request was modified concurrently: {ONLY_PENDING_MESSAGE}",
            context=ErrorContext(request_id=str(request_id)),
        )
