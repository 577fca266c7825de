"""Notification service — CRUD operations and leave-event dispatchers."""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import DATE_FORMAT, NotificationType
from leavedesk.common.exceptions import ForbiddenException, NotFoundException
from leavedesk.common.pagination import PaginationParams
from leavedesk.notifications.models import Notification
from leavedesk.notifications.schemas import (
    NotificationListMeta,
    NotificationListResponse,
    NotificationResponse,
)

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.system,
        title: str,
        message: str,
        leave_id: Optional[uuid.UUID] = None,
        triggered_by_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            leave_id=leave_id,
            triggered_by_id=triggered_by_id,
            is_read=False,
        )
        db.add(notification)
        await db.flush()
        await db.refresh(notification)
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        user_id: uuid.UUID,
        pagination: PaginationParams,
        *,
        is_read: Optional[bool] = None,
        notification_type: Optional[NotificationType] = None,
    ) -> NotificationListResponse:
        """Return paginated notifications for a user, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id)
        )

        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        if notification_type is not None:
            query = query.where(Notification.type == notification_type)

        count_q = query.with_only_columns(func.count()).order_by(None)
        total: int = (await db.execute(count_q)).scalar_one()

        rows = (
            await db.execute(
                query.offset(pagination.offset).limit(pagination.page_size)
            )
        ).scalars().all()

        total_pages = math.ceil(total / pagination.page_size) if total else 0

        # Unfiltered unread count for the badge
        unread = await NotificationService.get_unread_count(db, user_id)

        return NotificationListResponse(
            data=[NotificationResponse.model_validate(n) for n in rows],
            meta=NotificationListMeta(
                page=pagination.page,
                page_size=pagination.page_size,
                total=total,
                total_pages=total_pages,
                has_next=pagination.page < total_pages,
                has_prev=pagination.page > 1,
                unread=unread,
            ),
        )

    @staticmethod
    async def _get_owned(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
        verb: str,
    ) -> Notification:
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        notification = result.scalars().first()

        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != user_id:
            raise ForbiddenException(f"You can only {verb} your own notifications.")
        return notification

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await NotificationService._get_owned(
            db, notification_id, user_id, "mark as read",
        )
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        now = datetime.now(timezone.utc)
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=now)
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Return the number of unread notifications for a user."""
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()

    @staticmethod
    async def delete_notification(
        db: AsyncSession,
        notification_id: uuid.UUID,
        user_id: uuid.UUID,
    ) -> None:
        notification = await NotificationService._get_owned(
            db, notification_id, user_id, "delete",
        )
        await db.delete(notification)
        await db.flush()

    @staticmethod
    async def delete_all_read(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Delete every read notification of a user. Returns count deleted."""
        result = await db.execute(
            delete(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read.is_(True),
            )
            .execution_options(synchronize_session=False)
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]


# ── Leave-event dispatchers ─────────────────────────────────────────
# Called by the leave service. They take the ORM object directly.


def _period(leave_request) -> str:
    start = leave_request.start_date.strftime(DATE_FORMAT)
    end = leave_request.end_date.strftime(DATE_FORMAT)
    return start if start == end else f"{start} to {end}"


async def notify_leave_submitted(
    db: AsyncSession,
    leave_request,  # leavedesk.leave.models.LeaveRequest
    reviewer_ids: Iterable[uuid.UUID],
    *,
    owner_name: str,
) -> list[Notification]:
    """Tell every reviewer that a new request needs a decision."""
    created = []
    for reviewer_id in reviewer_ids:
        if reviewer_id == leave_request.owner_id:
            continue
        created.append(
            await NotificationService.create_notification(
                db,
                recipient_id=reviewer_id,
                type=NotificationType.leave_submitted,
                title="New Leave Request",
                message=(
                    f"{owner_name} requested {leave_request.leave_type.label} "
                    f"for {_period(leave_request)} ({leave_request.days} day(s))."
                ),
                leave_id=leave_request.id,
                triggered_by_id=leave_request.owner_id,
            )
        )
    logger.debug("Leave %s: notified %d reviewer(s)", leave_request.id, len(created))
    return created


async def notify_leave_approved(
    db: AsyncSession,
    leave_request,
    approver_id: uuid.UUID,
) -> Notification:
    """Notify the owner that their leave request was approved."""
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.owner_id,
        type=NotificationType.leave_approved,
        title="Leave Request Approved",
        message=(
            f"Your {leave_request.leave_type.label} request for "
            f"{_period(leave_request)} has been approved."
        ),
        leave_id=leave_request.id,
        triggered_by_id=approver_id,
    )


async def notify_leave_rejected(
    db: AsyncSession,
    leave_request,
    approver_id: uuid.UUID,
) -> Notification:
    """Notify the owner that their leave request was rejected."""
    return await NotificationService.create_notification(
        db,
        recipient_id=leave_request.owner_id,
        type=NotificationType.leave_rejected,
        title="Leave Request Rejected",
        message=(
            f"Your {leave_request.leave_type.label} request for "
            f"{_period(leave_request)} was rejected. "
            f"Reason: {leave_request.rejection_reason}"
        ),
        leave_id=leave_request.id,
        triggered_by_id=approver_id,
    )


async def notify_leave_cancelled(
    db: AsyncSession,
    leave_request,
    reviewer_ids: Iterable[uuid.UUID],
    *,
    owner_name: str,
) -> list[Notification]:
    """Tell reviewers a pending request they may be looking at was withdrawn."""
    created = []
    for reviewer_id in reviewer_ids:
        if reviewer_id == leave_request.owner_id:
            continue
        created.append(
            await NotificationService.create_notification(
                db,
                recipient_id=reviewer_id,
                type=NotificationType.leave_cancelled,
                title="Leave Request Cancelled",
                message=(
                    f"{owner_name} cancelled their {leave_request.leave_type.label} "
                    f"request for {_period(leave_request)}."
                ),
                leave_id=leave_request.id,
                triggered_by_id=leave_request.owner_id,
            )
        )
    return created
