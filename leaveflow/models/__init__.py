"""ORM Models — SQLAlchemy declarative models for all persisted entities.

Invariants:
    - All models inherit from Base (db/base.py)

Design Decisions:
    - One file per entity
    - All models imported here so Base.metadata is complete before create_all
      or Alembic autogenerate runs
"""

from leaveflow.models.employee import Employee  # noqa: F401
from leaveflow.models.leave_request import LeaveRequest  # noqa: F401
from leaveflow.models.leave_balance import LeaveBalance  # noqa: F401
from leaveflow.models.notification import Notification  # noqa: F401
