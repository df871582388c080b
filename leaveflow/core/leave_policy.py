"""Leave Policy — working-day counting, eligibility, and the paid/managed lookups.

Invariants:
    - count_working_days counts every calendar day in [start, end] except Saturday and Sunday
    - is_paid_leave and is_managed_leave read separate tables (domain_types)
    - validate_application collects every field problem before raising
    - Pure: "today" is always passed in by the caller
    - Paid approvals carry a deduction_note on the request; admin notes follow it

Design Decisions:
    - Eligibility rules expressed as data (_ELIGIBILITY) so a new gendered leave
      type is a table entry, not a new branch
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from leaveflow.core.domain_types import (
    LeaveType, MANAGED_LEAVE_TYPES, PAID_LEAVE_TYPES,
)
from leaveflow.core.errors import ValidationError

_SATURDAY = 5
_SUNDAY = 6
_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class _EligibilityRule:
    gender: str
    requires_married: bool
    label: str


_ELIGIBILITY: dict[LeaveType, _EligibilityRule] = {
    LeaveType.MATERNITY: _EligibilityRule("female", True, "female"),
    LeaveType.PATERNITY: _EligibilityRule("male", True, "male"),
}


def count_working_days(start: date, end: date) -> int:
    """Number of weekdays in the inclusive range; 0 when end precedes start."""
    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    days = full_weeks * 5
    for offset in range(remainder):
        if (start + timedelta(days=offset)).weekday() not in (_SATURDAY, _SUNDAY):
            days += 1
    return days


def is_paid_leave(leave_type: LeaveType) -> bool:
    return leave_type in PAID_LEAVE_TYPES


def is_managed_leave(leave_type: LeaveType) -> bool:
    return leave_type in MANAGED_LEAVE_TYPES


def compute_salary_deduction(
    leave_type: LeaveType, days_count: int, per_day_rate: Decimal,
) -> Decimal:
    """Deduction for paid leave types; zero for everything else."""
    if not is_paid_leave(leave_type):
        return Decimal("0.00")
    return (Decimal(days_count) * per_day_rate).quantize(_CENTS, ROUND_HALF_UP)


def deduction_note(
    days_count: int,
    per_day_rate: Decimal,
    deduction: Decimal,
    start_date: date,
    end_date: date,
    admin_notes: str | None = None,
) -> str:
    """Human-readable salary deduction record, followed by any admin notes."""
    note = (
        f"Your paid leave for {days_count} days is approved. "
        f"An amount of {per_day_rate} per day (total: {deduction}) "
        f"from {start_date.isoformat()} to {end_date.isoformat()} "
        f"of your leave has been deducted from your salary."
    )
    if admin_notes:
        note = f"{note} Admin notes: {admin_notes}"
    return note


def eligibility_problem(
    leave_type: LeaveType, gender: str | None, is_married: bool,
) -> str | None:
    """Reason the employee may not take this leave type, or None if eligible."""
    rule = _ELIGIBILITY.get(leave_type)
    if rule is None:
        return None
    name = leave_type.value.lower()
    if (gender or "").strip().lower() != rule.gender:
        return f"{name} leave is only available for {rule.label} employees"
    if rule.requires_married and not is_married:
        return f"{name} leave is only available for married employees"
    return None


def validate_application(
    *,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    reason: str | None,
    today: date,
    gender: str | None,
    is_married: bool,
) -> int:
    """Validate a leave application and return its working-day count.

    Raises ValidationError listing every failing field.
    """
    problems: dict[str, str] = {}
    if not reason or not reason.strip():
        problems["reason"] = "reason is required"
    if start_date < today:
        problems["start_date"] = "start_date cannot be in the past"
    if start_date > end_date:
        problems["end_date"] = "end_date must not be before start_date"

    eligibility = eligibility_problem(leave_type, gender, is_married)
    if eligibility:
        problems["leave_type"] = eligibility

    days = count_working_days(start_date, end_date)
    if "end_date" not in problems and days == 0:
        problems["dates"] = "leave period must include at least one working day"

    if problems:
        raise ValidationError(problems)
    return days
