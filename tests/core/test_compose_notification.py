"""Notification Composer — rendered subjects and bodies per event and audience.

Tests cover:
    - Paid vs unpaid approval variants share a template name
    - Admin audience for LEAVE_APPLIED
    - Missing fields raise TemplateFieldMissingError
    - Rendering is deterministic
"""

import pytest

from leaveflow.core.compose_notification import compose_notification, select_template
from leaveflow.core.domain_types import Audience, EventType, LeaveType
from leaveflow.core.errors import TemplateFieldMissingError

BASE_FIELDS = {
    "employee_name": "Ada Lovelace",
    "employee_id": "e-1",
    "start_date": "2030-01-07",
    "end_date": "2030-01-09",
    "total_days": 3,
    "reason": "Conference",
}


def test_applied_employee_template():
    rendered = compose_notification(
        EventType.LEAVE_APPLIED, LeaveType.ANNUAL, True, BASE_FIELDS,
    )
    assert rendered.template_name == "leave_applied_employee"
    assert rendered.subject == "Leave Request Submitted - Pending Approval"
    assert "Hello Ada Lovelace," in rendered.body
    assert "- Leave Type: ANNUAL" in rendered.body
    assert "- Total Days: 3" in rendered.body


def test_applied_admin_template():
    rendered = compose_notification(
        EventType.LEAVE_APPLIED, LeaveType.SICK, True,
        {**BASE_FIELDS, "admin_name": "Grace Hopper"}, Audience.ADMIN,
    )
    assert rendered.template_name == "leave_applied_admin"
    assert rendered.subject == "Action Required: New Leave Request Submitted"
    assert "Hello Grace Hopper," in rendered.body
    assert "Employee ID: e-1" in rendered.body
    assert "Duration: 2030-01-07 to 2030-01-09 (3 days)" in rendered.body


def test_approved_paid_variant_shows_deduction():
    rendered = compose_notification(
        EventType.LEAVE_APPROVED, LeaveType.ANNUAL, True,
        {
            **BASE_FIELDS, "admin_name": "Grace Hopper",
            "per_day_rate": "500.00", "total_deduction": "1500.00",
        },
    )
    assert rendered.template_name == "leave_approved_employee"
    assert rendered.subject == "Leave Approved"
    assert "- Total Deduction: 1500.00" in rendered.body
    assert "Approved By: Grace Hopper" in rendered.body


def test_approved_unpaid_variant_has_no_deduction():
    rendered = compose_notification(
        EventType.LEAVE_APPROVED, LeaveType.CASUAL, False,
        {**BASE_FIELDS, "admin_name": "Grace Hopper"},
    )
    assert rendered.template_name == "leave_approved_employee"
    assert "No salary deduction applies to this leave type" in rendered.body
    assert "Total Deduction" not in rendered.body


def test_rejected_template_includes_reason():
    rendered = compose_notification(
        EventType.LEAVE_REJECTED, LeaveType.ANNUAL, True,
        {**BASE_FIELDS, "rejection_reason": "Release week"},
    )
    assert rendered.template_name == "leave_rejected_employee"
    assert rendered.subject == "Leave Request Rejected"
    assert "Release week" in rendered.body


def test_cancelled_template():
    rendered = compose_notification(
        EventType.LEAVE_CANCELLED, LeaveType.PERSONAL, False, BASE_FIELDS,
    )
    assert rendered.template_name == "leave_cancelled_employee"
    assert "has been CANCELLED" in rendered.body


def test_low_balance_pluralizes_days():
    one = compose_notification(
        EventType.LOW_BALANCE, LeaveType.ANNUAL, True,
        {"employee_name": "Ada", "current_balance": 1},
    )
    two = compose_notification(
        EventType.LOW_BALANCE, LeaveType.ANNUAL, True,
        {"employee_name": "Ada", "current_balance": 2},
    )
    assert one.subject == "Low Leave Balance Warning"
    assert "Current Balance: 1 day\n" in one.body
    assert "Current Balance: 2 days" in two.body


def test_missing_field_raises():
    fields = dict(BASE_FIELDS)
    del fields["reason"]
    with pytest.raises(TemplateFieldMissingError) as exc:
        compose_notification(EventType.LEAVE_APPLIED, LeaveType.ANNUAL, True, fields)
    assert exc.value.template_name == "leave_applied_employee"


def test_rendering_is_deterministic():
    first = compose_notification(
        EventType.LEAVE_CANCELLED, LeaveType.SICK, True, BASE_FIELDS,
    )
    second = compose_notification(
        EventType.LEAVE_CANCELLED, LeaveType.SICK, True, BASE_FIELDS,
    )
    assert first == second


def test_select_template_ignores_audience_for_employee_only_events():
    assert select_template(
        EventType.LEAVE_REJECTED, True, Audience.ADMIN,
    ) == "leave_rejected"
