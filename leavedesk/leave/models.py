"""Leave ORM models: LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavedesk.common.constants import LeaveStatus, LeaveType
from leavedesk.database import Base

if TYPE_CHECKING:
    from leavedesk.files.models import LeaveFile
    from leavedesk.users.models import User

# Created by the initial migration; PostgreSQL only
OVERLAP_CONSTRAINT = "ex_leave_requests_no_overlap"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class LeaveBalance(Base):
    """Remaining days for one user and one leave type."""

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint("user_id", "leave_type", name="uq_leave_balance"),
        sa.CheckConstraint("remaining >= 0", name="ck_leave_balance_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(
            LeaveType,
            name="leave_type",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    remaining: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    user: Mapped[User] = relationship(back_populates="leave_balances")


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("start_date <= end_date", name="ck_leave_dates_ordered"),
        sa.CheckConstraint("days >= 1", name="ck_leave_days_positive"),
        sa.Index("ix_leave_requests_owner_dates", "owner_id", "start_date", "end_date"),
        sa.Index("ix_leave_requests_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(
            LeaveType,
            name="leave_type",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    days: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(LeaveStatus, name="leave_status", create_type=False),
        nullable=False,
        default=LeaveStatus.pending,
        server_default=LeaveStatus.pending.value,
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    emergency_contact: Mapped[Optional[str]] = mapped_column(sa.String(200))
    emergency_phone: Mapped[Optional[str]] = mapped_column(sa.String(30))
    actioned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("users.id")
    )
    actioned_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    submitted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    owner: Mapped[User] = relationship(
        back_populates="leave_requests", foreign_keys=[owner_id]
    )
    actioned_by_user: Mapped[Optional[User]] = relationship(
        foreign_keys=[actioned_by]
    )
    attachments: Mapped[list[LeaveFile]] = relationship(
        back_populates="leave", order_by="LeaveFile.uploaded_at",
    )
