"""User directory router.

Routes:
    /me                — Caller's profile with balances
    /admins            — Active reviewers
    ""                 — List (admin), create (admin)
    /{id}              — Get, update, deactivate
    /{id}/balances     — Balances read / administrative overwrite
"""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_role
from leavedesk.common.constants import UserRole
from leavedesk.common.exceptions import ForbiddenException
from leavedesk.common.pagination import PaginationParams
from leavedesk.database import get_db
from leavedesk.leave.schemas import LeaveBalanceOut
from leavedesk.leave.service import LeaveService
from leavedesk.users.models import User
from leavedesk.users.schemas import (
    BalanceUpdate,
    UserBrief,
    UserCreate,
    UserListResponse,
    UserOut,
    UserUpdate,
)
from leavedesk.users.service import UserService

router = APIRouter(prefix="", tags=["users"])

_admin = require_role(UserRole.admin)


def _ensure_visible(caller: User, user_id: uuid.UUID) -> None:
    if caller.id != user_id and not caller.is_approver:
        raise ForbiddenException(detail="You can only view your own profile.")


# ── GET /me ─────────────────────────────────────────────────────────

@router.get("/me", response_model=UserOut)
async def get_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.to_out(db, user)


# ── GET /admins ─────────────────────────────────────────────────────

@router.get("/admins", response_model=list[UserBrief])
async def list_admins(
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Who will review a submitted request."""
    return await UserService.list_admins(db)


# ── GET "" (admin) ──────────────────────────────────────────────────

@router.get("", response_model=UserListResponse)
async def list_users(
    pagination: PaginationParams = Depends(),
    search: Optional[str] = Query(None, description="Match name, email or department"),
    role: Optional[UserRole] = Query(None),
    department: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    _: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    return await UserService.list_users(
        db, pagination,
        search=search, role=role, department=department, is_active=is_active,
    )


# ── POST "" (admin) ─────────────────────────────────────────────────

@router.post("", response_model=UserOut, status_code=201)
async def create_user(
    body: UserCreate,
    admin: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create an account; balance rows are seeded from defaults plus overrides."""
    user = await UserService.create_user(db, body, admin.id)
    return await UserService.to_out(db, user)


# ── GET /{id} ───────────────────────────────────────────────────────

@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: uuid.UUID,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_visible(caller, user_id)
    user = await UserService.get_user(db, user_id)
    return await UserService.to_out(db, user)


# ── PUT /{id} ───────────────────────────────────────────────────────

@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.update_user(db, user_id, body, caller)
    return await UserService.to_out(db, user)


# ── DELETE /{id} (admin, soft) ──────────────────────────────────────

@router.delete("/{user_id}", response_model=UserOut)
async def deactivate_user(
    user_id: uuid.UUID,
    admin: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await UserService.deactivate_user(db, user_id, admin)
    return await UserService.to_out(db, user)


# ── Balances ────────────────────────────────────────────────────────

@router.get("/{user_id}/balances", response_model=list[LeaveBalanceOut])
async def get_user_balances(
    user_id: uuid.UUID,
    caller: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _ensure_visible(caller, user_id)
    await UserService.get_user(db, user_id)
    return await LeaveService.get_balances(db, user_id)


@router.put("/{user_id}/balances", response_model=list[LeaveBalanceOut])
async def set_user_balances(
    user_id: uuid.UUID,
    body: BalanceUpdate,
    admin: User = Depends(_admin),
    db: AsyncSession = Depends(get_db),
):
    """Overwrite remaining days per leave type (keys or labels)."""
    return await LeaveService.set_balances(db, user_id, body.balances, admin.id)
