"""Leave Policy — tests for pure day counting, eligibility, and application validation.

Tests cover:
    - count_working_days over weekday, weekend, and straddling ranges
    - compute_salary_deduction for paid and unpaid leave
    - deduction_note wording with and without admin notes
    - eligibility_problem for maternity and paternity
    - validate_application collects every failing field
"""

from datetime import date
from decimal import Decimal

import pytest

from leaveflow.core.domain_types import LeaveType
from leaveflow.core.errors import ValidationError
from leaveflow.core.leave_policy import (
    count_working_days,
    compute_salary_deduction,
    deduction_note,
    eligibility_problem,
    is_managed_leave,
    is_paid_leave,
    validate_application,
)

# 2030-01-07 is a Monday
MONDAY = date(2030, 1, 7)
FRIDAY = date(2030, 1, 11)
SATURDAY = date(2030, 1, 12)
SUNDAY = date(2030, 1, 13)
NEXT_MONDAY = date(2030, 1, 14)
TODAY = date(2030, 1, 1)


# ─── count_working_days ──────────────────────────────────────────

def test_monday_to_friday_is_five_days():
    assert count_working_days(MONDAY, FRIDAY) == 5


def test_saturday_to_sunday_is_zero_days():
    assert count_working_days(SATURDAY, SUNDAY) == 0


def test_friday_to_monday_is_two_days():
    assert count_working_days(FRIDAY, NEXT_MONDAY) == 2


def test_single_weekday_is_one_day():
    assert count_working_days(MONDAY, MONDAY) == 1


def test_two_full_weeks_is_ten_days():
    assert count_working_days(MONDAY, date(2030, 1, 20)) == 10


def test_end_before_start_is_zero():
    assert count_working_days(FRIDAY, MONDAY) == 0


# ─── lookups & deduction ────────────────────────────────────────

def test_paid_and_managed_lookups_are_independent():
    assert is_paid_leave(LeaveType.ANNUAL)
    assert not is_paid_leave(LeaveType.MATERNITY)
    assert is_managed_leave(LeaveType.MATERNITY)


def test_salary_deduction_for_paid_leave():
    assert compute_salary_deduction(
        LeaveType.ANNUAL, 3, Decimal("500.00"),
    ) == Decimal("1500.00")


def test_salary_deduction_zero_for_unpaid_leave():
    assert compute_salary_deduction(
        LeaveType.CASUAL, 3, Decimal("500.00"),
    ) == Decimal("0.00")


def test_deduction_note_without_admin_notes():
    note = deduction_note(5, Decimal("500.00"), Decimal("2500.00"), MONDAY, FRIDAY)
    assert note == (
        "Your paid leave for 5 days is approved. An amount of 500.00 per day "
        "(total: 2500.00) from 2030-01-07 to 2030-01-11 of your leave has been "
        "deducted from your salary."
    )


def test_deduction_note_appends_admin_notes():
    note = deduction_note(
        1, Decimal("500.00"), Decimal("500.00"), MONDAY, MONDAY, "Approved early",
    )
    assert note.endswith("salary. Admin notes: Approved early")


# ─── eligibility ─────────────────────────────────────────────────

def test_maternity_requires_female():
    problem = eligibility_problem(LeaveType.MATERNITY, "male", True)
    assert "female" in problem


def test_maternity_requires_married():
    problem = eligibility_problem(LeaveType.MATERNITY, "Female", False)
    assert "married" in problem


def test_maternity_allowed_for_married_female():
    assert eligibility_problem(LeaveType.MATERNITY, "female", True) is None


def test_paternity_requires_male_and_married():
    assert "male" in eligibility_problem(LeaveType.PATERNITY, "female", True)
    assert "married" in eligibility_problem(LeaveType.PATERNITY, "male", False)
    assert eligibility_problem(LeaveType.PATERNITY, "male", True) is None


def test_annual_has_no_eligibility_rule():
    assert eligibility_problem(LeaveType.ANNUAL, None, False) is None


# ─── validate_application ────────────────────────────────────────

def _validate(**overrides):
    kwargs = dict(
        leave_type=LeaveType.ANNUAL,
        start_date=MONDAY,
        end_date=FRIDAY,
        reason="Family trip",
        today=TODAY,
        gender="female",
        is_married=False,
    )
    kwargs.update(overrides)
    return validate_application(**kwargs)


def test_valid_application_returns_working_days():
    assert _validate() == 5


def test_start_date_today_is_allowed():
    assert _validate(today=MONDAY) == 5


def test_past_start_date_rejected():
    with pytest.raises(ValidationError) as exc:
        _validate(today=date(2030, 1, 8))
    assert "start_date" in exc.value.fields


def test_end_before_start_rejected():
    with pytest.raises(ValidationError) as exc:
        _validate(start_date=FRIDAY, end_date=MONDAY)
    assert "end_date" in exc.value.fields
    assert "dates" not in exc.value.fields


def test_blank_reason_rejected():
    with pytest.raises(ValidationError) as exc:
        _validate(reason="   ")
    assert exc.value.fields["reason"] == "reason is required"


def test_weekend_only_range_rejected():
    with pytest.raises(ValidationError) as exc:
        _validate(start_date=SATURDAY, end_date=SUNDAY)
    assert "dates" in exc.value.fields


def test_ineligible_leave_type_rejected():
    with pytest.raises(ValidationError) as exc:
        _validate(leave_type=LeaveType.MATERNITY, gender="female", is_married=False)
    assert "leave_type" in exc.value.fields


def test_all_problems_reported_together():
    with pytest.raises(ValidationError) as exc:
        _validate(reason="", today=date(2030, 2, 1), leave_type=LeaveType.PATERNITY)
    assert {"reason", "start_date", "leave_type"} <= set(exc.value.fields)


def test_validation_error_response_lists_details():
    with pytest.raises(ValidationError) as exc:
        _validate(reason="")
    response = exc.value.to_response()
    assert response["error"]["code"] == "VALIDATION_ERROR"
    assert response["error"]["details"] == [
        {"field": "reason", "message": "reason is required"},
    ]
