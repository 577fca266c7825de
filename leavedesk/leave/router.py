"""Leave router — submit, edit, approve/reject/cancel, balances, reporting.

All endpoints require authentication. Reviewer endpoints (admin, manager)
enforce role checks; ownership rules are decided by the workflow.
"""


import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_actor, get_current_user, require_role
from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.pagination import PaginationParams
from leavedesk.database import get_db
from leavedesk.leave.schemas import (
    LeaveBalanceOut,
    LeaveCalendarOut,
    LeaveDraftValidateOut,
    LeaveDraftValidateRequest,
    LeaveListResponse,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    LeaveStatisticsOut,
)
from leavedesk.leave.service import LeaveService
from leavedesk.leave.workflow import Admin, RegularUser
from leavedesk.users.models import User

router = APIRouter(prefix="", tags=["leave"])

_reviewer = require_role(UserRole.manager)


# ── POST / ──────────────────────────────────────────────────────────

@router.post("", response_model=LeaveRequestOut, status_code=201)
async def submit_leave(
    body: LeaveRequestCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates balance, dates, overlap and attachments."""
    return await LeaveService.submit_leave(db, user.id, body)


# ── POST /validate ──────────────────────────────────────────────────

@router.post("/validate", response_model=LeaveDraftValidateOut)
async def validate_draft(
    body: LeaveDraftValidateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Validate the current step of a request form and report the next step."""
    return await LeaveService.validate_draft(db, user.id, body.draft)


# ── GET /my ─────────────────────────────────────────────────────────

@router.get("/my", response_model=list[LeaveRequestOut])
async def my_leaves(
    status: Optional[LeaveStatus] = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's own requests, newest first."""
    return await LeaveService.list_my_leaves(db, user.id, status=status)


# ── GET / (reviewers) ───────────────────────────────────────────────

@router.get("", response_model=LeaveListResponse)
async def list_leaves(
    status: Optional[LeaveStatus] = Query(None),
    owner_id: Optional[uuid.UUID] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Everyone's requests with filters (paginated)."""
    return await LeaveService.list_leaves(
        db,
        pagination,
        status=status,
        owner_id=owner_id,
        leave_type=leave_type,
        from_date=from_date,
        to_date=to_date,
    )


# ── GET /pending (reviewers) ────────────────────────────────────────

@router.get("/pending", response_model=list[LeaveRequestOut])
async def pending_approvals(
    reviewer: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Pending requests awaiting a decision, excluding the reviewer's own."""
    return await LeaveService.list_pending(db, reviewer.id)


# ── GET /balances ───────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_balances(db, user.id)


# ── GET /statistics ─────────────────────────────────────────────────

@router.get("/statistics", response_model=LeaveStatisticsOut)
async def statistics(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Counts by status and type — own for employees, all for reviewers."""
    owner_id = None if user.is_approver else user.id
    return await LeaveService.get_statistics(db, owner_id)


# ── GET /calendar (reviewers) ───────────────────────────────────────

@router.get("/calendar", response_model=LeaveCalendarOut)
async def team_calendar(
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    _: User = Depends(_reviewer),
    db: AsyncSession = Depends(get_db),
):
    """Approved and pending leave in a month (defaults to the current one)."""
    today = date.today()
    return await LeaveService.get_calendar(db, year or today.year, month or today.month)


# ── GET /{leave_id} ─────────────────────────────────────────────────

@router.get("/{leave_id}", response_model=LeaveRequestOut)
async def get_leave(
    leave_id: uuid.UUID,
    actor: Admin | RegularUser = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave(db, leave_id, actor)


# ── PUT /{leave_id} ─────────────────────────────────────────────────

@router.put("/{leave_id}", response_model=LeaveRequestOut)
async def update_leave(
    leave_id: uuid.UUID,
    body: LeaveRequestUpdate,
    actor: Admin | RegularUser = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Edit a pending request (owner only, until its end date)."""
    return await LeaveService.update_leave(db, leave_id, actor, body)


# ── PUT /{leave_id}/approve ─────────────────────────────────────────

@router.put("/{leave_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    leave_id: uuid.UUID,
    actor: Admin | RegularUser = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending request and deduct the owner's balance."""
    return await LeaveService.approve_leave(db, leave_id, actor)


# ── PUT /{leave_id}/reject ──────────────────────────────────────────

@router.put("/{leave_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    leave_id: uuid.UUID,
    body: LeaveRejectRequest,
    actor: Admin | RegularUser = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.reject_leave(db, leave_id, actor, body.rejection_reason)


# ── PUT /{leave_id}/cancel ──────────────────────────────────────────

@router.put("/{leave_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    leave_id: uuid.UUID,
    actor: Admin | RegularUser = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Withdraw one of your own pending requests."""
    return await LeaveService.cancel_leave(db, leave_id, actor)


# ── DELETE /{leave_id} (admin) ──────────────────────────────────────

@router.delete("/{leave_id}", status_code=200)
async def delete_leave(
    leave_id: uuid.UUID,
    actor: Admin | RegularUser = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    """Delete a request. Approved days are returned to the owner's balance."""
    await LeaveService.delete_leave(db, leave_id, actor)
    return {"message": "Leave request deleted"}
