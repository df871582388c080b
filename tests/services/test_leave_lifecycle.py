"""Leave Lifecycle — apply/approve/reject/cancel against a real (SQLite) database.

Invariants:
    - Concurrent approvals: exactly one wins, one deduction
    - A failed approval leaves balance and status untouched
    - apply and cancel never touch balances
    - Every transition out of a terminal state is a ConflictError
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from leaveflow.core.domain_types import (
    EventType, LeaveStatus, LeaveType, NotificationStatus,
)
from leaveflow.core.errors import (
    ConflictError, ForbiddenError, ResourceNotFoundError, ValidationError,
)
from leaveflow.services.delivery_queue import DeliveryQueue
from leaveflow.services.leave_lifecycle import LeaveLifecycleEngine
from leaveflow.services.notification_outbox import NotificationOutbox

MONDAY = date(2030, 1, 7)
WEDNESDAY = date(2030, 1, 9)


async def _apply(engine, employee, leave_type=LeaveType.ANNUAL, start=MONDAY, end=WEDNESDAY):
    return await engine.apply(employee.id, leave_type, start, end, "Family trip")


# ─── apply ───────────────────────────────────────────────────────

async def test_apply_creates_pending_request(engine, employees):
    request = await _apply(engine, employees.alice)
    assert request.status == LeaveStatus.PENDING.value
    assert request.days_count == 3
    assert request.salary_deduction == Decimal("0.00")
    assert request.approved_by is None


async def test_apply_notifies_employee_and_admins(engine, employees, notifications_for):
    request = await _apply(engine, employees.alice)
    notifications = await notifications_for(request.id, EventType.LEAVE_APPLIED)
    recipients = {n.recipient_email: n for n in notifications}
    assert set(recipients) == {"alice@example.com", "grace@example.com"}
    assert recipients["alice@example.com"].template_name == "leave_applied_employee"
    assert recipients["grace@example.com"].template_name == "leave_applied_admin"
    assert all(n.status == NotificationStatus.PENDING.value for n in notifications)
    assert all(n.retry_count == 0 for n in notifications)


async def test_apply_does_not_touch_balances(engine, employees, balance_rows):
    await _apply(engine, employees.alice)
    assert await balance_rows(employees.alice.id) == {}


async def test_apply_unknown_employee_is_not_found(engine, employees):
    with pytest.raises(ResourceNotFoundError):
        await engine.apply(uuid4(), LeaveType.ANNUAL, MONDAY, WEDNESDAY, "Trip")


async def test_apply_ineligible_leave_type_fails(engine, employees):
    with pytest.raises(ValidationError) as exc:
        await _apply(engine, employees.bob, LeaveType.MATERNITY)
    assert "leave_type" in exc.value.fields


async def test_apply_past_start_date_fails(engine, employees, clock):
    clock.advance(timedelta(days=10))
    with pytest.raises(ValidationError) as exc:
        await _apply(engine, employees.alice)
    assert "start_date" in exc.value.fields


async def test_apply_weekend_only_fails(engine, employees):
    with pytest.raises(ValidationError) as exc:
        await _apply(engine, employees.alice, start=date(2030, 1, 12), end=date(2030, 1, 13))
    assert "dates" in exc.value.fields


async def test_apply_maternity_for_eligible_employee(engine, employees):
    request = await _apply(engine, employees.alice, LeaveType.MATERNITY)
    assert request.leave_type == LeaveType.MATERNITY.value


# ─── approve ─────────────────────────────────────────────────────

async def test_approve_annual_deducts_balance_and_salary(
    engine, employees, clock, balance_rows, notifications_for,
):
    request = await _apply(engine, employees.alice)
    approved = await engine.approve(request.id, employees.admin.id, notes="Enjoy")

    assert approved.status == LeaveStatus.APPROVED.value
    assert approved.approved_by == employees.admin.id
    assert approved.approval_date == clock.now()
    assert approved.salary_deduction == Decimal("1500.00")
    assert approved.notes == (
        "Your paid leave for 3 days is approved. An amount of 500.00 per day "
        "(total: 1500.00) from 2030-01-07 to 2030-01-09 of your leave has been "
        "deducted from your salary. Admin notes: Enjoy"
    )
    balances = await balance_rows(employees.alice.id)
    assert balances["ANNUAL"] == 7
    assert balances["SICK"] == 15

    approvals = await notifications_for(request.id, EventType.LEAVE_APPROVED)
    assert len(approvals) == 1
    assert approvals[0].recipient_email == "alice@example.com"
    assert "Total Deduction: 1500.00" in approvals[0].body


async def test_approve_managed_unpaid_leave(engine, employees, balance_rows, notifications_for):
    request = await _apply(engine, employees.alice, LeaveType.CASUAL)
    approved = await engine.approve(request.id, employees.admin.id, notes="Enjoy")

    assert approved.salary_deduction == Decimal("0.00")
    assert approved.notes == "Enjoy"
    assert (await balance_rows(employees.alice.id))["CASUAL"] == 7
    [approval] = await notifications_for(request.id, EventType.LEAVE_APPROVED)
    assert "No salary deduction applies" in approval.body


async def test_approve_with_insufficient_balance_leaves_state_unchanged(
    engine, employees, balance_rows, notifications_for,
):
    assert await engine.adjust_balance(employees.alice.id, LeaveType.ANNUAL, -8) == 2
    request = await _apply(engine, employees.alice)

    with pytest.raises(ValidationError) as exc:
        await engine.approve(request.id, employees.admin.id)

    assert "balance" in exc.value.fields
    assert "insufficient balance" in exc.value.fields["balance"]
    unchanged = await engine.get_request(request.id)
    assert unchanged.status == LeaveStatus.PENDING.value
    assert unchanged.approved_by is None
    assert unchanged.salary_deduction == Decimal("0.00")
    assert (await balance_rows(employees.alice.id))["ANNUAL"] == 2
    assert await notifications_for(request.id, EventType.LEAVE_APPROVED) == []


async def test_failed_approval_can_be_retried_after_top_up(engine, employees):
    await engine.adjust_balance(employees.alice.id, LeaveType.ANNUAL, -9)
    request = await _apply(engine, employees.alice)
    with pytest.raises(ValidationError):
        await engine.approve(request.id, employees.admin.id)

    await engine.adjust_balance(employees.alice.id, LeaveType.ANNUAL, 5)
    approved = await engine.approve(request.id, employees.admin.id)
    assert approved.status == LeaveStatus.APPROVED.value


async def test_concurrent_approvals_exactly_one_wins(
    engine, employees, balance_rows, notifications_for,
):
    request = await _apply(engine, employees.alice)

    results = await asyncio.gather(
        engine.approve(request.id, employees.admin.id),
        engine.approve(request.id, employees.admin.id),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    successes = [r for r in results if not isinstance(r, Exception)]
    assert len(successes) == 1
    assert len(conflicts) == 1
    assert (await balance_rows(employees.alice.id))["ANNUAL"] == 7
    assert len(await notifications_for(request.id, EventType.LEAVE_APPROVED)) == 1


async def test_concurrent_approve_and_cancel_one_wins(engine, employees, balance_rows):
    request = await _apply(engine, employees.alice)

    results = await asyncio.gather(
        engine.approve(request.id, employees.admin.id),
        engine.cancel(request.id, employees.alice.id),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ConflictError) for r in results) == 1
    final = await engine.get_request(request.id)
    annual = (await balance_rows(employees.alice.id)).get("ANNUAL")
    if final.status == LeaveStatus.APPROVED.value:
        assert annual == 7
    else:
        assert final.status == LeaveStatus.CANCELLED.value
        assert annual in (None, 10)


async def test_approval_reaching_threshold_warns_low_balance(
    engine, employees, notifications_for,
):
    await engine.adjust_balance(employees.alice.id, LeaveType.ANNUAL, -5)
    request = await _apply(engine, employees.alice)
    await engine.approve(request.id, employees.admin.id)

    [warning] = await notifications_for(request.id, EventType.LOW_BALANCE)
    assert warning.subject == "Low Leave Balance Warning"
    assert "Current Balance: 2 days" in warning.body


async def test_approval_above_threshold_does_not_warn(engine, employees, notifications_for):
    request = await _apply(engine, employees.alice)
    await engine.approve(request.id, employees.admin.id)
    assert await notifications_for(request.id, EventType.LOW_BALANCE) == []


async def test_approve_unknown_request_is_not_found(engine, employees):
    with pytest.raises(ResourceNotFoundError):
        await engine.approve(uuid4(), employees.admin.id)


async def test_approve_unknown_approver_is_not_found(engine, employees):
    request = await _apply(engine, employees.alice)
    with pytest.raises(ResourceNotFoundError):
        await engine.approve(request.id, uuid4())
    assert (await engine.get_request(request.id)).status == LeaveStatus.PENDING.value


# ─── reject & cancel ─────────────────────────────────────────────

async def test_reject_records_reviewer_and_reason(
    engine, employees, balance_rows, notifications_for,
):
    request = await _apply(engine, employees.alice)
    rejected = await engine.reject(request.id, employees.admin.id, "Release week")

    assert rejected.status == LeaveStatus.REJECTED.value
    assert rejected.approved_by == employees.admin.id
    assert rejected.approval_date is None
    assert rejected.notes == "Release week"
    assert await balance_rows(employees.alice.id) == {}
    [notice] = await notifications_for(request.id, EventType.LEAVE_REJECTED)
    assert "Release week" in notice.body


async def test_reject_requires_reason(engine, employees):
    request = await _apply(engine, employees.alice)
    with pytest.raises(ValidationError):
        await engine.reject(request.id, employees.admin.id, "  ")


async def test_apply_then_cancel_leaves_balance_unchanged(
    engine, employees, notifications_for,
):
    before = {b.leave_type: b.balance for b in await engine.get_balances(employees.alice.id)}
    request = await _apply(engine, employees.alice)
    cancelled = await engine.cancel(request.id, employees.alice.id)

    assert cancelled.status == LeaveStatus.CANCELLED.value
    after = {b.leave_type: b.balance for b in await engine.get_balances(employees.alice.id)}
    assert after == before
    assert len(await notifications_for(request.id, EventType.LEAVE_CANCELLED)) == 1


async def test_cancel_by_other_employee_is_forbidden(engine, employees):
    request = await _apply(engine, employees.alice)
    with pytest.raises(ForbiddenError):
        await engine.cancel(request.id, employees.bob.id)
    assert (await engine.get_request(request.id)).status == LeaveStatus.PENDING.value


# ─── terminal states ─────────────────────────────────────────────

async def _terminal_request(engine, employees, status):
    request = await _apply(engine, employees.alice)
    if status is LeaveStatus.APPROVED:
        await engine.approve(request.id, employees.admin.id)
    elif status is LeaveStatus.REJECTED:
        await engine.reject(request.id, employees.admin.id, "No")
    else:
        await engine.cancel(request.id, employees.alice.id)
    return request


@pytest.mark.parametrize("status", [
    LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED,
])
async def test_terminal_requests_reject_every_transition(engine, employees, balance_rows, status):
    request = await _terminal_request(engine, employees, status)
    balances = await balance_rows(employees.alice.id)

    with pytest.raises(ConflictError):
        await engine.approve(request.id, employees.admin.id)
    with pytest.raises(ConflictError):
        await engine.reject(request.id, employees.admin.id, "Too late")
    with pytest.raises(ConflictError):
        await engine.cancel(request.id, employees.alice.id)

    assert (await engine.get_request(request.id)).status == status.value
    assert await balance_rows(employees.alice.id) == balances


# ─── reads & administration ──────────────────────────────────────

async def test_get_balances_initialises_defaults_once(engine, employees):
    first = await engine.get_balances(employees.bob.id)
    assert {b.leave_type: b.balance for b in first} == {
        "ANNUAL": 10, "CASUAL": 10, "MATERNITY": 90, "PATERNITY": 7,
        "PERSONAL": 10, "SICK": 15, "UNPAID": 10,
    }
    await engine.adjust_balance(employees.bob.id, LeaveType.SICK, -5)
    second = await engine.get_balances(employees.bob.id)
    assert {b.leave_type: b.balance for b in second}["SICK"] == 10


async def test_adjust_balance_cannot_go_negative(engine, employees):
    with pytest.raises(ValidationError):
        await engine.adjust_balance(employees.bob.id, LeaveType.PATERNITY, -8)
    balances = {b.leave_type: b.balance for b in await engine.get_balances(employees.bob.id)}
    assert balances["PATERNITY"] == 7


async def test_list_requests_filters_by_status(engine, employees):
    first = await _apply(engine, employees.alice)
    second = await _apply(engine, employees.bob, LeaveType.SICK)
    await engine.cancel(first.id, employees.alice.id)

    pending = await engine.list_requests(LeaveStatus.PENDING)
    assert [r.id for r in pending] == [second.id]
    assert len(await engine.list_requests()) == 2
    assert [r.id for r in await engine.list_employee_requests(employees.alice.id)] == [first.id]


async def test_get_unknown_request_is_not_found(engine):
    with pytest.raises(ResourceNotFoundError):
        await engine.get_request(uuid4())


# ─── delivery isolation ──────────────────────────────────────────

async def test_stopped_queue_does_not_block_lifecycle(
    db_manager, dispatcher, clock, employees, notifications_for,
):
    stopped_queue = DeliveryQueue(dispatcher, db_manager.session, clock)
    outbox = NotificationOutbox(db_manager.session, clock, stopped_queue)
    engine = LeaveLifecycleEngine(db_manager.session, outbox, clock)

    request = await _apply(engine, employees.alice)
    approved = await engine.approve(request.id, employees.admin.id)

    assert approved.status == LeaveStatus.APPROVED.value
    [approval] = await notifications_for(request.id, EventType.LEAVE_APPROVED)
    assert approval.status == NotificationStatus.PENDING.value
