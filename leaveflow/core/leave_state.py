"""Leave State Machine — PENDING is the only state a request can leave.

Invariants:
    - Every allowed transition starts at PENDING and ends in a terminal state
    - A terminal request is never modified again
"""

from leaveflow.core.domain_types import LeaveStatus, TERMINAL_LEAVE_STATUSES
from leaveflow.core.errors import ConflictError

ONLY_PENDING_MESSAGE = "only pending requests may be modified"

_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.PENDING: TERMINAL_LEAVE_STATUSES,
    LeaveStatus.APPROVED: frozenset(),
    LeaveStatus.REJECTED: frozenset(),
    LeaveStatus.CANCELLED: frozenset(),
}


def can_transition(current: LeaveStatus, target: LeaveStatus) -> bool:
    return target in _TRANSITIONS[current]


def ensure_transition(current: LeaveStatus, target: LeaveStatus) -> None:
    """Raise ConflictError unless current -> target is allowed."""
    if not can_transition(current, target):
        raise ConflictError(
            f"Cannot move request from {current.value} to {target.value}: "
            f"{ONLY_PENDING_MESSAGE}",
            current_status=current.value,
        )
