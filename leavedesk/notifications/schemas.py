"""Notification payloads and response envelopes."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from leavedesk.common.constants import NotificationType
from leavedesk.common.pagination import PaginationMeta


class NotificationCreate(BaseModel):
    """Sent by a reviewer. Leave events build their own notifications."""

    recipient_id: uuid.UUID
    type: NotificationType = NotificationType.system
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    leave_id: Optional[uuid.UUID] = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    leave_id: Optional[uuid.UUID] = None
    triggered_by_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListMeta(PaginationMeta):
    # Across all of the user's notifications, ignoring list filters
    unread: int


class NotificationListResponse(BaseModel):
    data: list[NotificationResponse]
    meta: NotificationListMeta


class NotificationEnvelope(BaseModel):
    message: str
    data: NotificationResponse


class CountData(BaseModel):
    count: int


class CountResponse(BaseModel):
    """``{"data": {"count": n}}``, with a message for bulk actions."""

    message: Optional[str] = None
    data: CountData
