"""User Pydantic v2 schemas."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from leavedesk.common.constants import UserRole
from leavedesk.common.pagination import PaginationMeta
from leavedesk.leave.schemas import LeaveBalanceOut


class UserCreate(BaseModel):
    """Admin payload for creating a user.

    ``leave_balances`` overrides the configured defaults per key.
    """

    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=30)
    department: str = Field(..., min_length=1, max_length=100)
    position: str = Field(..., min_length=1, max_length=100)
    join_date: Optional[date] = None
    role: UserRole = UserRole.employee
    leave_balances: dict[str, int] = Field(default_factory=dict)

    @field_validator("name", "department", "position")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class UserUpdate(BaseModel):
    """Profile edit. Only admins may change ``role`` or ``is_active``."""

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    department: Optional[str] = Field(None, min_length=1, max_length=100)
    position: Optional[str] = Field(None, min_length=1, max_length=100)
    join_date: Optional[date] = None
    avatar_url: Optional[str] = None
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


class BalanceUpdate(BaseModel):
    """Key or label → new remaining days."""

    balances: dict[str, int] = Field(..., min_length=1)


class UserBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    role: UserRole
    department: Optional[str] = None
    position: Optional[str] = None
    avatar_url: Optional[str] = None


class UserOut(UserBrief):
    phone: Optional[str] = None
    join_date: Optional[date] = None
    is_active: bool
    created_at: datetime

    # Filled by service
    leave_balances: list[LeaveBalanceOut] = []


class UserListResponse(BaseModel):
    data: list[UserBrief]
    meta: PaginationMeta
