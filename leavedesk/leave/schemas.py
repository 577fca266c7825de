"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Update / *Request → request bodies (write)
  - *Out                          → response bodies (read)
  - *Brief                        → compact embedded representations

Request bodies are deliberately loose (all business rules live in
``leavedesk.leave.rules``) so that a half-filled form comes back as a
field → messages map rather than a schema error.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from leavedesk.common.constants import LeaveStatus, LeaveType
from leavedesk.common.pagination import PaginationMeta
from leavedesk.leave.draft import DraftStep, LeaveDraft
from leavedesk.leave.rules import drop_time_of_day


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class UserBrief(BaseModel):
    """Minimal user info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    department: Optional[str] = None
    position: Optional[str] = None
    avatar_url: Optional[str] = None


class AttachmentBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    original_name: str
    url: str
    size: int
    content_type: str


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Remaining days for one leave type."""

    model_config = ConfigDict(from_attributes=True)

    leave_type: LeaveType
    label: str
    remaining: int


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create / Update
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request.

    ``leave_type`` accepts either the key ("AnnualLeave") or the label
    ("Annual Leave").
    """

    leave_type: Optional[str] = None
    start_date: Optional[date] = Field(None, description="Leave start date (inclusive)")
    end_date: Optional[date] = Field(None, description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)
    emergency_contact: Optional[str] = Field(None, max_length=200)
    emergency_phone: Optional[str] = Field(None, max_length=30)
    file_ids: list[uuid.UUID] = Field(
        default_factory=list,
        description="Previously uploaded, unattached files to attach",
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _drop_time_of_day(cls, v: Any) -> Any:
        return drop_time_of_day(v)


class LeaveRequestUpdate(BaseModel):
    """Partial edit by the owner. Omitted fields keep their current value."""

    leave_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = Field(None, max_length=1000)
    emergency_contact: Optional[str] = Field(None, max_length=200)
    emergency_phone: Optional[str] = Field(None, max_length=30)
    file_ids: list[uuid.UUID] = Field(default_factory=list)
    remove_file_ids: list[uuid.UUID] = Field(default_factory=list)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _drop_time_of_day(cls, v: Any) -> Any:
        return drop_time_of_day(v)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: int
    reason: str
    status: LeaveStatus
    rejection_reason: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    actioned_by: Optional[uuid.UUID] = None
    actioned_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    submitted_at: datetime
    updated_at: datetime

    owner: Optional[UserBrief] = None
    actioned_by_user: Optional[UserBrief] = None
    attachments: list[AttachmentBrief] = []

    # Filled by service
    can_edit: bool = False


class LeaveListResponse(BaseModel):
    data: list[LeaveRequestOut]
    meta: PaginationMeta


# ═════════════════════════════════════════════════════════════════════
# Approve / Reject
# ═════════════════════════════════════════════════════════════════════


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    rejection_reason: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Draft validation
# ═════════════════════════════════════════════════════════════════════


class LeaveDraftValidateRequest(BaseModel):
    """A form draft; the server validates its current step."""

    draft: LeaveDraft


class LeaveDraftValidateOut(BaseModel):
    valid: bool
    errors: dict[str, list[str]] = {}
    step: DraftStep
    days: Optional[int] = None


# ═════════════════════════════════════════════════════════════════════
# Statistics / Calendar
# ═════════════════════════════════════════════════════════════════════


class LeaveStatisticsOut(BaseModel):
    total: int = 0
    by_status: dict[str, int] = {}
    by_type: dict[str, int] = {}
    days_approved: int = 0


class LeaveCalendarEntry(BaseModel):
    """Single entry in the team leave calendar."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    owner: UserBrief
    leave_type: LeaveType
    start_date: date
    end_date: date
    days: int
    status: LeaveStatus


class LeaveCalendarOut(BaseModel):
    """Approved and pending leave overlapping a given month."""

    month: int
    year: int
    entries: list[LeaveCalendarEntry]
    total_entries: int = 0
