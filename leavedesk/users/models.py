"""User ORM model.

SQLAlchemy 2.0 async-compatible model with Mapped[] annotations.
Column names match the PostgreSQL schema defined in 001_initial_schema.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavedesk.common.constants import APPROVER_ROLES, UserRole
from leavedesk.database import Base

if TYPE_CHECKING:
    from leavedesk.leave.models import LeaveBalance, LeaveRequest
    from leavedesk.notifications.models import Notification


class User(Base):
    """An employee who can request leave; admins and managers also review."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(200), nullable=False)
    email: Mapped[str] = mapped_column(
        sa.String(255), unique=True, nullable=False,
    )
    phone: Mapped[Optional[str]] = mapped_column(sa.String(30))
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))
    position: Mapped[Optional[str]] = mapped_column(sa.String(100))
    join_date: Mapped[Optional[date]] = mapped_column(sa.Date)
    role: Mapped[UserRole] = mapped_column(
        sa.Enum(UserRole, name="user_role", create_type=False),
        nullable=False,
        default=UserRole.employee,
        server_default=UserRole.employee.value,
    )
    avatar_url: Mapped[Optional[str]] = mapped_column(sa.Text)
    is_active: Mapped[bool] = mapped_column(
        sa.Boolean, default=True, server_default=sa.text("TRUE"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # ── Relationships ───────────────────────────────────────────────
    leave_balances: Mapped[list[LeaveBalance]] = relationship(
        back_populates="user", cascade="all, delete-orphan",
    )
    leave_requests: Mapped[list[LeaveRequest]] = relationship(
        back_populates="owner", foreign_keys="LeaveRequest.owner_id",
    )
    notifications: Mapped[list[Notification]] = relationship(
        back_populates="recipient", foreign_keys="Notification.recipient_id",
    )

    @property
    def is_approver(self) -> bool:
        return self.role in APPROVER_ROLES

    def __repr__(self) -> str:
        return f"<User {self.email!r} ({self.role.value})>"
