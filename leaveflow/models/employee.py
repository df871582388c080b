"""Employee ORM — the directory record the lifecycle engine reads.

Invariants:
    - email is unique and non-nullable
    - role is "employee" or "admin"; admins receive LEAVE_APPLIED notifications

Design Decisions:
    - Owned by the employee-management collaborator; this service only reads it
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import UUID

from leaveflow.db.base import Base
from leaveflow.db.types import UTCDateTime


class Employee(Base):
    """Employee directory entry."""
    __tablename__ = "employees"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_married: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default="employee",
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
