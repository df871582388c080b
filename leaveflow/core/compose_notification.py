"""Notification Composer — renders (event, leave attributes) into a subject and body.

Invariants:
    - Pure and deterministic: same inputs always produce the same strings
    - Every placeholder must be supplied; a missing field raises TemplateFieldMissingError
    - LEAVE_APPROVED has a paid and an unpaid variant; both share template_name
    - LEAVE_APPLIED has an employee and an admin audience

Design Decisions:
    - Jinja2 with StrictUndefined over str.format: conditional blocks and
      filters in templates, loud failure on missing fields
    - Templates kept in a DictLoader: no filesystem lookups inside the core layer
"""

from dataclasses import dataclass
from typing import Any, Mapping

from jinja2 import DictLoader, Environment, StrictUndefined, UndefinedError

from leaveflow.core.domain_types import Audience, EventType, LeaveType
from leaveflow.core.errors import TemplateFieldMissingError

_SIGNATURE = "Regards,\nHR Management System\n(no-reply)"

_TEMPLATES: dict[str, tuple[str, str]] = {
    "leave_applied_employee": (
        "Leave Request Submitted - Pending Approval",
        """Hello {{ employee_name }},

Your leave request has been submitted successfully and is currently under review.

Leave Details:
- Leave Type: {{ leave_type }}
- Start Date: {{ start_date }}
- End Date: {{ end_date }}
- Total Days: {{ total_days }}
- Reason: {{ reason }}

Current Status: PENDING

Your request has been forwarded to the Admin/Manager for approval.
You will receive another email once a decision is made.

""" + _SIGNATURE,
    ),
    "leave_applied_admin": (
        "Action Required: New Leave Request Submitted",
        """Hello {{ admin_name }},

A new leave request has been submitted and requires your action.

Employee Name: {{ employee_name }}
Employee ID: {{ employee_id }}
Leave Type: {{ leave_type }}
Duration: {{ start_date }} to {{ end_date }} ({{ total_days }} days)
Reason: {{ reason }}

Current Status: PENDING

Please login to the admin portal to approve or reject this request.

HR Management System""",
    ),
    "leave_approved_paid": (
        "Leave Approved",
        """Hello {{ employee_name }},

Your leave request has been APPROVED.

Leave Details:
- Leave Type: {{ leave_type }}
- Duration: {{ start_date }} to {{ end_date }}
- Total Days: {{ total_days }}

Salary Deduction Policy:
- Paid Leave Deduction: {{ per_day_rate }} per day
- Total Deduction: {{ total_deduction }}

This amount will be deducted from your salary.

Approved By: {{ admin_name }}

""" + _SIGNATURE,
    ),
    "leave_approved_unpaid": (
        "Leave Approved",
        """Hello {{ employee_name }},

Your leave request has been APPROVED.

Leave Details:
- Leave Type: {{ leave_type }}
- Duration: {{ start_date }} to {{ end_date }}
- Total Days: {{ total_days }}

Salary Deduction Policy:
- No salary deduction applies to this leave type
- You will receive your full salary during this period

Approved By: {{ admin_name }}

""" + _SIGNATURE,
    ),
    "leave_rejected": (
        "Leave Request Rejected",
        """Hello {{ employee_name }},

Your leave request has been REJECTED.

Leave Type: {{ leave_type }}
Requested Days: {{ total_days }}

Reason for Rejection:
{{ rejection_reason }}

For further clarification, please contact HR/Admin.

""" + _SIGNATURE,
    ),
    "leave_cancelled": (
        "Leave Request Cancelled",
        """Hello {{ employee_name }},

Your leave request has been CANCELLED.

Leave Details:
- Leave Type: {{ leave_type }}
- Duration: {{ start_date }} to {{ end_date }}
- Total Days: {{ total_days }}

If this was unexpected, please contact HR/Admin for assistance.

""" + _SIGNATURE,
    ),
    "low_balance_warning": (
        "Low Leave Balance Warning",
        """Hello {{ employee_name }},

Your {{ leave_type }} leave balance is running low.

Current Balance: {{ current_balance }} day{{ "" if current_balance == 1 else "s" }}

Please plan your leaves accordingly. Contact HR for more information.

""" + _SIGNATURE,
    ),
}

_ENV = Environment(
    loader=DictLoader({
        f"{name}.{part}": text
        for name, (subject, body) in _TEMPLATES.items()
        for part, text in (("subject", subject), ("body", body))
    }),
    undefined=StrictUndefined,
    autoescape=False,
)

# Template names recorded on the notification row (paid/unpaid share one)
_RECORDED_NAMES = {
    "leave_approved_paid": "leave_approved_employee",
    "leave_approved_unpaid": "leave_approved_employee",
    "leave_rejected": "leave_rejected_employee",
    "leave_cancelled": "leave_cancelled_employee",
}


@dataclass(frozen=True)
class RenderedNotification:
    """Result of composing a notification."""
    template_name: str
    subject: str
    body: str


def select_template(
    event_type: EventType, is_paid_leave: bool, audience: Audience,
) -> str:
    """Pick the template key for an event/audience combination."""
    if event_type is EventType.LEAVE_APPLIED:
        if audience is Audience.ADMIN:
            return "leave_applied_admin"
        return "leave_applied_employee"
    if event_type is EventType.LEAVE_APPROVED:
        return "leave_approved_paid" if is_paid_leave else "leave_approved_unpaid"
    if event_type is EventType.LEAVE_REJECTED:
        return "leave_rejected"
    if event_type is EventType.LEAVE_CANCELLED:
        return "leave_cancelled"
    return "low_balance_warning"


def compose_notification(
    event_type: EventType,
    leave_type: LeaveType,
    is_paid_leave: bool,
    fields: Mapping[str, Any],
    audience: Audience = Audience.EMPLOYEE,
) -> RenderedNotification:
    """Render subject and body for an event. Pure, no IO."""
    key = select_template(event_type, is_paid_leave, audience)
    context = {**fields, "leave_type": leave_type.value}
    try:
        subject = _ENV.get_template(f"{key}.subject").render(context)
        body = _ENV.get_template(f"{key}.body").render(context)
    except UndefinedError as e:
        raise TemplateFieldMissingError(key, str(e)) from e
    return RenderedNotification(
        template_name=_RECORDED_NAMES.get(key, key),
        subject=subject.strip(),
        body=body,
    )
