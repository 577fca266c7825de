"""Uploaded supporting documents for leave requests."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from leavedesk.database import Base

if TYPE_CHECKING:
    from leavedesk.leave.models import LeaveRequest
    from leavedesk.users.models import User


class LeaveFile(Base):
    """A stored upload. ``leave_id`` stays NULL until a request claims it."""

    __tablename__ = "leave_files"
    __table_args__ = (
        sa.Index("ix_leave_files_leave_id", "leave_id"),
        sa.Index("ix_leave_files_uploaded_by", "uploaded_by"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    leave_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="SET NULL"),
    )
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    original_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    stored_name: Mapped[str] = mapped_column(
        sa.String(255), nullable=False, unique=True,
    )
    url: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    size: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    content_type: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(),
    )

    # Relationships
    leave: Mapped[Optional[LeaveRequest]] = relationship(back_populates="attachments")
    uploader: Mapped[User] = relationship()
