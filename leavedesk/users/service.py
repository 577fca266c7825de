"""User directory service — accounts, profiles, reviewer lookup.

Uses:
  - ``paginate()`` from leavedesk.common.pagination
  - ``apply_filters / apply_search`` from leavedesk.common.filters
  - ``LeaveService.seed_balances`` so every new account starts with a
    full set of balance rows
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.audit import create_audit_entry, snapshot
from leavedesk.common.constants import APPROVER_ROLES, LeaveType, UserRole
from leavedesk.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.filters import apply_filters, apply_search
from leavedesk.common.pagination import PaginationParams, paginate
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User
from leavedesk.users.schemas import (
    UserBrief,
    UserCreate,
    UserListResponse,
    UserOut,
    UserUpdate,
)

logger = logging.getLogger(__name__)

_AUDITED_FIELDS = (
    "name", "email", "phone", "department", "position",
    "join_date", "role", "is_active",
)
_ADMIN_ONLY_FIELDS = {"role", "is_active"}
_OUT_COLUMNS = tuple(name for name in UserOut.model_fields if name != "leave_balances")
_SORTABLE = {"name", "email", "department", "position", "join_date", "created_at"}


class UserService:
    """Async CRUD for user accounts."""

    # ── Read ────────────────────────────────────────────────────────

    @staticmethod
    async def get_user(db: AsyncSession, user_id: uuid.UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFoundException("User", user_id)
        return user

    @staticmethod
    async def to_out(db: AsyncSession, user: User) -> UserOut:
        # The ORM relationship of the same name is never lazy-loaded here
        data = {name: getattr(user, name) for name in _OUT_COLUMNS}
        data["leave_balances"] = await LeaveService.get_balances(db, user.id)
        return UserOut.model_validate(data)

    @staticmethod
    async def list_users(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        department: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> UserListResponse:
        query = select(User).order_by(User.name, User.id)
        query = apply_filters(query, User, {
            "role": role,
            "department": department,
            "is_active": is_active,
        })
        query = apply_search(query, User, search, ("name", "email", "department"))

        page = await paginate(db, query, pagination, model=User, sortable=_SORTABLE)
        return UserListResponse(
            data=[UserBrief.model_validate(u) for u in page.data],
            meta=page.meta,
        )

    @staticmethod
    async def list_admins(db: AsyncSession) -> list[User]:
        """Active users who can review leave requests."""
        result = await db.execute(
            select(User)
            .where(User.role.in_(APPROVER_ROLES), User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())

    # ── Create ──────────────────────────────────────────────────────

    @staticmethod
    async def create_user(
        db: AsyncSession,
        data: UserCreate,
        actor_id: uuid.UUID,
    ) -> User:
        overrides = _normalize_balances(data.leave_balances)

        taken = await db.execute(
            select(func.count()).select_from(User).where(User.email == data.email)
        )
        if taken.scalar_one():
            raise ConflictError("email", data.email)

        user = User(**data.model_dump(exclude={"leave_balances"}))
        db.add(user)
        try:
            await db.flush()
        except IntegrityError as exc:
            raise ConflictError("email", data.email) from exc

        await LeaveService.seed_balances(db, user.id, overrides=overrides)
        await db.refresh(user)

        await create_audit_entry(
            db,
            action="create",
            entity_type="user",
            entity_id=user.id,
            actor_id=actor_id,
            new_values=snapshot(user, _AUDITED_FIELDS),
        )
        logger.info("User %s (%s) created by %s", user.id, user.email, actor_id)
        return user

    # ── Update ──────────────────────────────────────────────────────

    @staticmethod
    async def update_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        data: UserUpdate,
        caller: User,
    ) -> User:
        """Self-service profile edit; admins may edit anyone."""
        is_admin = caller.role == UserRole.admin
        if caller.id != user_id and not is_admin:
            raise ForbiddenException(detail="You can only edit your own profile.")

        changes = data.model_dump(exclude_unset=True)
        restricted = _ADMIN_ONLY_FIELDS.intersection(changes)
        if restricted and not is_admin:
            raise ForbiddenException(
                detail=f"Only admins may change: {', '.join(sorted(restricted))}.",
            )
        if caller.id == user_id and changes.get("is_active") is False:
            raise InvalidStateException(detail="You cannot deactivate your own account.")

        user = await UserService.get_user(db, user_id)
        old = snapshot(user, _AUDITED_FIELDS)
        for field, value in changes.items():
            setattr(user, field, value)
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()
        await db.refresh(user)

        await create_audit_entry(
            db,
            action="update",
            entity_type="user",
            entity_id=user.id,
            actor_id=caller.id,
            old_values=old,
            new_values=snapshot(user, _AUDITED_FIELDS),
        )
        return user

    @staticmethod
    async def deactivate_user(
        db: AsyncSession,
        user_id: uuid.UUID,
        caller: User,
    ) -> User:
        """Soft delete. Leave history and balances stay intact."""
        if caller.id == user_id:
            raise InvalidStateException(detail="You cannot deactivate your own account.")

        user = await UserService.get_user(db, user_id)
        if not user.is_active:
            return user

        user.is_active = False
        user.updated_at = datetime.now(timezone.utc)
        await db.flush()
        await db.refresh(user)

        await create_audit_entry(
            db,
            action="deactivate",
            entity_type="user",
            entity_id=user.id,
            actor_id=caller.id,
            old_values={"is_active": True},
            new_values={"is_active": False},
        )
        logger.info("User %s deactivated by %s", user.id, caller.id)
        return user


def _normalize_balances(raw: dict[str, int]) -> dict[str, int]:
    """Map keys or labels to balance keys, rejecting unknown or negative entries."""
    normalized: dict[str, int] = {}
    errors: dict[str, list[str]] = {}
    for key, value in raw.items():
        lt = LeaveType.parse(key)
        if lt is None:
            errors.setdefault(f"leave_balances.{key}", []).append("Unknown leave type")
        elif value < 0:
            errors.setdefault(f"leave_balances.{key}", []).append("Balance cannot be negative")
        else:
            normalized[lt.value] = value
    if errors:
        raise ValidationException(errors)
    return normalized
