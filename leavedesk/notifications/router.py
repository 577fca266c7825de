"""Notification endpoints.

The caller only ever sees and changes their own notifications; reviewers
may additionally send a system notification to anyone.
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import NotificationType, UserRole
from leavedesk.common.exceptions import NotFoundException
from leavedesk.common.pagination import PaginationParams
from leavedesk.database import get_db
from leavedesk.notifications.schemas import (
    CountData,
    CountResponse,
    NotificationCreate,
    NotificationEnvelope,
    NotificationListResponse,
    NotificationResponse,
)
from leavedesk.notifications.service import NotificationService
from leavedesk.users.models import User

router = APIRouter(prefix="", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    is_read: Optional[bool] = Query(default=None),
    type: Optional[NotificationType] = Query(default=None),
    pagination: PaginationParams = Depends(),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest first. ``meta.unread`` feeds the header badge."""
    return await NotificationService.get_notifications(
        db,
        user_id=user.id,
        pagination=pagination,
        is_read=is_read,
        notification_type=type,
    )


# Fixed paths go before the /{notification_id} routes

@router.get("/unread-count", response_model=CountResponse, response_model_exclude_none=True)
async def unread_count(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, user.id)
    return CountResponse(data=CountData(count=count))


@router.put("/read-all", response_model=CountResponse)
async def mark_all_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, user.id)
    return CountResponse(
        message=f"{count} notification(s) marked as read",
        data=CountData(count=count),
    )


@router.delete("/read", response_model=CountResponse)
async def delete_read(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.delete_all_read(db, user.id)
    return CountResponse(
        message=f"{count} read notification(s) deleted",
        data=CountData(count=count),
    )


@router.post("", response_model=NotificationEnvelope, status_code=status.HTTP_201_CREATED)
async def create_notification(
    body: NotificationCreate,
    sender: User = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Send a system notification to any user."""
    if await db.get(User, body.recipient_id) is None:
        raise NotFoundException("User", body.recipient_id)

    notification = await NotificationService.create_notification(
        db,
        recipient_id=body.recipient_id,
        type=body.type,
        title=body.title,
        message=body.message,
        leave_id=body.leave_id,
        triggered_by_id=sender.id,
    )
    return NotificationEnvelope(
        message="Notification created",
        data=NotificationResponse.model_validate(notification),
    )


@router.put("/{notification_id}/read", response_model=NotificationEnvelope)
async def mark_read(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, notification_id, user.id)
    return NotificationEnvelope(
        message="Notification marked as read",
        data=NotificationResponse.model_validate(notification),
    )


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await NotificationService.delete_notification(db, notification_id, user.id)
    return {"message": "Notification deleted"}
