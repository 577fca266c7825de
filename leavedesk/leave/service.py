"""Leave service layer — submissions, edits, approvals, balances.

Business logic:
  - Serialized check-then-write for submit/edit (owner row lock, then
    validation against the owner's active requests)
  - Approval/rejection/cancellation through the workflow state machine,
    with balance deduction on approval and restoration on admin delete
  - Listing, pending approvals, statistics and the team calendar
  - Balance seeding and administrative balance changes
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date, datetime, timezone
from typing import Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.audit import create_audit_entry, snapshot
from leavedesk.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    APPROVER_ROLES,
    LeaveStatus,
    LeaveType,
)
from leavedesk.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.filters import apply_filters
from leavedesk.common.pagination import PaginationParams, paginate
from leavedesk.config import settings
from leavedesk.files.models import LeaveFile
from leavedesk.files.service import FileService
from leavedesk.leave.draft import LeaveDraft
from leavedesk.leave.models import OVERLAP_CONSTRAINT, LeaveBalance, LeaveRequest
from leavedesk.leave.rules import (
    LeaveRequestInput,
    compute_days,
    validate_request,
)
from leavedesk.leave.schemas import (
    LeaveBalanceOut,
    LeaveCalendarEntry,
    LeaveCalendarOut,
    LeaveDraftValidateOut,
    LeaveListResponse,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveRequestUpdate,
    LeaveStatisticsOut,
)
from leavedesk.leave.workflow import (
    Admin,
    LeaveAction,
    RegularUser,
    transition,
)
from leavedesk.notifications.service import (
    notify_leave_approved,
    notify_leave_cancelled,
    notify_leave_rejected,
    notify_leave_submitted,
)
from leavedesk.users.models import User

logger = logging.getLogger(__name__)

_AUDITED_FIELDS = (
    "leave_type", "start_date", "end_date", "days", "reason", "status",
    "rejection_reason", "emergency_contact", "emergency_phone",
)

_SORTABLE = {"start_date", "end_date", "submitted_at", "days", "status", "leave_type"}


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: balances, requests, approvals, reporting."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _with_details(query):
        return query.options(
            selectinload(LeaveRequest.owner),
            selectinload(LeaveRequest.actioned_by_user),
            selectinload(LeaveRequest.attachments),
        )

    @staticmethod
    async def _load(
        db: AsyncSession,
        leave_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        query = LeaveService._with_details(
            select(LeaveRequest).where(LeaveRequest.id == leave_id)
        ).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update(of=LeaveRequest)
        leave = (await db.execute(query)).scalars().first()
        if leave is None:
            raise NotFoundException("LeaveRequest", leave_id)
        return leave

    @staticmethod
    async def _lock_owner(db: AsyncSession, owner_id: uuid.UUID) -> User:
        """Serialize check-then-write per owner until the transaction ends."""
        result = await db.execute(
            select(User).where(User.id == owner_id).with_for_update()
        )
        owner = result.scalars().first()
        if owner is None:
            raise NotFoundException("User", owner_id)
        return owner

    @staticmethod
    async def _active_requests(
        db: AsyncSession,
        owner_id: uuid.UUID,
    ) -> Sequence[LeaveRequest]:
        result = await db.execute(
            select(LeaveRequest).where(
                LeaveRequest.owner_id == owner_id,
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
            )
        )
        return result.scalars().all()

    @staticmethod
    async def _reviewer_ids(db: AsyncSession) -> list[uuid.UUID]:
        result = await db.execute(
            select(User.id).where(
                User.role.in_(APPROVER_ROLES),
                User.is_active.is_(True),
            )
        )
        return list(result.scalars().all())

    @staticmethod
    async def _claim_files(
        db: AsyncSession,
        file_ids: Sequence[uuid.UUID],
        owner_id: uuid.UUID,
        leave_id: uuid.UUID,
    ) -> None:
        """Attach the owner's unattached uploads to a request."""
        if not file_ids:
            return
        wanted = set(file_ids)
        result = await db.execute(
            select(LeaveFile).where(
                LeaveFile.id.in_(wanted),
                LeaveFile.uploaded_by == owner_id,
                (LeaveFile.leave_id.is_(None)) | (LeaveFile.leave_id == leave_id),
            )
        )
        files = result.scalars().all()
        if len(files) != len(wanted):
            raise ValidationException(
                {"file_ids": ["One or more files are invalid or attached to another leave"]}
            )
        for f in files:
            f.leave_id = leave_id

    @staticmethod
    async def _flush_guarded(db: AsyncSession, leave: LeaveRequest) -> None:
        """Flush, reporting the database overlap constraint as a 409.

        Any other integrity failure propagates unchanged.
        """
        try:
            await db.flush()
        except IntegrityError as exc:
            if OVERLAP_CONSTRAINT not in str(exc.orig):
                raise
            logger.warning(
                "Overlap constraint rejected leave for owner %s (%s to %s)",
                leave.owner_id, leave.start_date, leave.end_date,
            )
            raise ConflictError(
                "dates",
                f"{leave.start_date.isoformat()} to {leave.end_date.isoformat()}",
                detail="You already have a leave request overlapping this period.",
            ) from exc

    @staticmethod
    def to_out(leave: LeaveRequest, today: Optional[date] = None) -> LeaveRequestOut:
        today = today or date.today()
        out = LeaveRequestOut.model_validate(leave)
        out.can_edit = leave.status == LeaveStatus.pending and today <= leave.end_date
        return out

    # ─────────────────────────────────────────────────────────────────
    # Balances
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance_map(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> dict[str, int]:
        """Balance key → remaining days."""
        result = await db.execute(
            select(LeaveBalance).where(LeaveBalance.user_id == user_id)
        )
        return {b.leave_type.value: b.remaining for b in result.scalars().all()}

    @staticmethod
    async def get_balances(
        db: AsyncSession,
        user_id: uuid.UUID,
    ) -> list[LeaveBalanceOut]:
        """Every leave type, with 0 where the user has no row."""
        balances = await LeaveService.get_balance_map(db, user_id)
        return [
            LeaveBalanceOut(
                leave_type=lt, label=lt.label, remaining=balances.get(lt.value, 0),
            )
            for lt in LeaveType
        ]

    @staticmethod
    async def seed_balances(
        db: AsyncSession,
        user_id: uuid.UUID,
        overrides: Optional[Mapping[str, int]] = None,
    ) -> None:
        """Create one balance row per leave type from the configured defaults."""
        defaults = settings.default_leave_balances
        if overrides:
            defaults = {**defaults, **overrides}
        for lt in LeaveType:
            db.add(
                LeaveBalance(
                    user_id=user_id,
                    leave_type=lt,
                    remaining=max(0, int(defaults.get(lt.value, 0))),
                )
            )
        await db.flush()

    @staticmethod
    async def set_balances(
        db: AsyncSession,
        user_id: uuid.UUID,
        changes: Mapping[str, int],
        actor_id: uuid.UUID,
    ) -> list[LeaveBalanceOut]:
        """Overwrite remaining days for the given keys (or labels)."""
        if await db.get(User, user_id) is None:
            raise NotFoundException("User", user_id)

        parsed: dict[LeaveType, int] = {}
        errors: dict[str, list[str]] = {}
        for key, value in changes.items():
            lt = LeaveType.parse(key)
            if lt is None:
                errors.setdefault(str(key), []).append("Unknown leave type")
            elif value < 0:
                errors.setdefault(str(key), []).append("Balance cannot be negative")
            else:
                parsed[lt] = value
        if errors:
            raise ValidationException(errors)

        result = await db.execute(
            select(LeaveBalance)
            .where(LeaveBalance.user_id == user_id)
            .with_for_update()
        )
        rows = {b.leave_type: b for b in result.scalars().all()}
        now = datetime.now(timezone.utc)

        for lt, value in parsed.items():
            row = rows.get(lt)
            old = row.remaining if row is not None else 0
            if row is None:
                row = LeaveBalance(user_id=user_id, leave_type=lt, remaining=value)
                db.add(row)
                await db.flush()
            else:
                row.remaining = value
                row.updated_at = now
            await create_audit_entry(
                db,
                action="adjust",
                entity_type="leave_balance",
                entity_id=row.id,
                actor_id=actor_id,
                old_values={"leave_type": lt.value, "remaining": old},
                new_values={"leave_type": lt.value, "remaining": value},
            )
            logger.info(
                "Balance %s for user %s set %d → %d by %s",
                lt.value, user_id, old, value, actor_id,
            )

        await db.flush()
        return await LeaveService.get_balances(db, user_id)

    # ─────────────────────────────────────────────────────────────────
    # Submit / Edit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_leave(
        db: AsyncSession,
        owner_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Validate and store a new pending request.

        The owner's row lock is held until commit, so a concurrent
        submission by the same user sees this one in its overlap check.
        """
        today = today or date.today()
        owner = await LeaveService._lock_owner(db, owner_id)

        balances = await LeaveService.get_balance_map(db, owner_id)
        active = await LeaveService._active_requests(db, owner_id)

        request = LeaveRequestInput(
            leave_type=data.leave_type,
            start_date=data.start_date,
            end_date=data.end_date,
            reason=data.reason,
            emergency_contact=data.emergency_contact,
            emergency_phone=data.emergency_phone,
            attachment_ids=data.file_ids,
        )
        validate_request(request, active, balances, today=today).raise_for_errors()

        leave = LeaveRequest(
            owner_id=owner_id,
            leave_type=request.parsed_leave_type,
            start_date=request.start_date,
            end_date=request.end_date,
            days=compute_days(request.start_date, request.end_date),
            reason=request.reason.strip(),
            emergency_contact=request.emergency_contact,
            emergency_phone=request.emergency_phone,
            status=LeaveStatus.pending,
        )
        db.add(leave)
        await LeaveService._flush_guarded(db, leave)

        await LeaveService._claim_files(db, data.file_ids, owner_id, leave.id)

        await create_audit_entry(
            db,
            action="create",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=owner_id,
            new_values=snapshot(leave, _AUDITED_FIELDS),
        )
        await notify_leave_submitted(
            db, leave, await LeaveService._reviewer_ids(db), owner_name=owner.name,
        )
        await db.flush()

        logger.info(
            "Leave %s submitted by %s: %s %s to %s (%d days)",
            leave.id, owner_id, leave.leave_type.value,
            leave.start_date, leave.end_date, leave.days,
        )
        return LeaveService.to_out(await LeaveService._load(db, leave.id), today)

    @staticmethod
    async def update_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Admin | RegularUser,
        data: LeaveRequestUpdate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Owner edit of a pending request; re-runs the full validator."""
        today = today or date.today()
        current = await LeaveService._load(db, leave_id)
        await LeaveService._lock_owner(db, current.owner_id)
        leave = await LeaveService._load(db, leave_id, for_update=True)

        fields = data.model_dump(exclude_unset=True)
        attachment_ids = [a.id for a in leave.attachments if a.id not in set(data.remove_file_ids)]
        attachment_ids += [fid for fid in data.file_ids if fid not in attachment_ids]

        edited = LeaveRequestInput(
            leave_type=fields.get("leave_type", leave.leave_type.value),
            start_date=fields.get("start_date", leave.start_date),
            end_date=fields.get("end_date", leave.end_date),
            reason=fields.get("reason", leave.reason),
            emergency_contact=fields.get("emergency_contact", leave.emergency_contact),
            emergency_phone=fields.get("emergency_phone", leave.emergency_phone),
            attachment_ids=attachment_ids,
        )

        outcome = transition(
            leave,
            LeaveAction.edit,
            actor,
            today=today,
            edited=edited,
            active_requests=await LeaveService._active_requests(db, leave.owner_id),
            balances=await LeaveService.get_balance_map(db, leave.owner_id),
        )
        outcome.raise_for_outcome()

        old_values = snapshot(leave, _AUDITED_FIELDS)
        leave.leave_type = edited.parsed_leave_type
        leave.start_date = edited.start_date
        leave.end_date = edited.end_date
        leave.days = compute_days(edited.start_date, edited.end_date)
        leave.reason = edited.reason.strip()
        leave.emergency_contact = edited.emergency_contact
        leave.emergency_phone = edited.emergency_phone
        leave.updated_at = datetime.now(timezone.utc)

        if data.remove_file_ids:
            for f in leave.attachments:
                if f.id in set(data.remove_file_ids):
                    f.leave_id = None
        await LeaveService._claim_files(db, data.file_ids, leave.owner_id, leave.id)
        await LeaveService._flush_guarded(db, leave)

        await create_audit_entry(
            db,
            action="update",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor.user_id,
            old_values=old_values,
            new_values=snapshot(leave, _AUDITED_FIELDS),
        )
        logger.info("Leave %s edited by owner %s", leave.id, actor.user_id)
        return LeaveService.to_out(await LeaveService._load(db, leave.id), today)

    @staticmethod
    async def validate_draft(
        db: AsyncSession,
        owner_id: uuid.UUID,
        draft: LeaveDraft,
        *,
        today: Optional[date] = None,
    ) -> LeaveDraftValidateOut:
        """Check one form step against live balances; nothing is stored."""
        balances = await LeaveService.get_balance_map(db, owner_id)
        active = await LeaveService._active_requests(db, owner_id)
        moved, result = draft.next_step(balances, active, today=today or date.today())
        return LeaveDraftValidateOut(
            valid=result.ok,
            errors=result.errors,
            step=moved.step,
            days=draft.days,
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject / Cancel / Delete
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Admin | RegularUser,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Approve a pending request and deduct the owner's balance."""
        leave = await LeaveService._load(db, leave_id, for_update=True)

        balance: Optional[LeaveBalance] = None
        balances: dict[str, int] = {}
        if leave.leave_type.requires_balance:
            result = await db.execute(
                select(LeaveBalance)
                .where(
                    LeaveBalance.user_id == leave.owner_id,
                    LeaveBalance.leave_type == leave.leave_type,
                )
                .with_for_update()
            )
            balance = result.scalars().first()
            balances = {leave.leave_type.value: balance.remaining if balance else 0}

        outcome = transition(leave, LeaveAction.approve, actor, balances=balances)
        outcome.raise_for_outcome()

        now = datetime.now(timezone.utc)
        old_status = leave.status.value
        leave.status = LeaveStatus.approved
        leave.rejection_reason = None
        leave.actioned_by = actor.user_id
        leave.actioned_at = now
        leave.updated_at = now

        if balance is not None and outcome.balance_change:
            balance.remaining += outcome.balance_change
            balance.updated_at = now

        await db.flush()

        await create_audit_entry(
            db,
            action="approve",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor.user_id,
            old_values={"status": old_status},
            new_values={
                "status": LeaveStatus.approved.value,
                "balance_change": outcome.balance_change,
            },
        )
        await notify_leave_approved(db, leave, actor.user_id)

        logger.info(
            "Leave %s approved by %s (balance change %d)",
            leave.id, actor.user_id, outcome.balance_change,
        )
        return LeaveService.to_out(await LeaveService._load(db, leave.id), today)

    @staticmethod
    async def reject_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Admin | RegularUser,
        rejection_reason: Optional[str],
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        leave = await LeaveService._load(db, leave_id, for_update=True)

        outcome = transition(
            leave, LeaveAction.reject, actor, rejection_reason=rejection_reason,
        )
        outcome.raise_for_outcome()

        now = datetime.now(timezone.utc)
        old_status = leave.status.value
        leave.status = LeaveStatus.rejected
        leave.rejection_reason = rejection_reason.strip()
        leave.actioned_by = actor.user_id
        leave.actioned_at = now
        leave.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="reject",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor.user_id,
            old_values={"status": old_status},
            new_values={
                "status": LeaveStatus.rejected.value,
                "rejection_reason": leave.rejection_reason,
            },
        )
        await notify_leave_rejected(db, leave, actor.user_id)

        logger.info("Leave %s rejected by %s", leave.id, actor.user_id)
        return LeaveService.to_out(await LeaveService._load(db, leave.id), today)

    @staticmethod
    async def cancel_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Admin | RegularUser,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Owner withdraws a pending request."""
        leave = await LeaveService._load(db, leave_id, for_update=True)

        outcome = transition(leave, LeaveAction.cancel, actor)
        outcome.raise_for_outcome()

        now = datetime.now(timezone.utc)
        leave.status = LeaveStatus.cancelled
        leave.cancelled_at = now
        leave.updated_at = now
        await db.flush()

        await create_audit_entry(
            db,
            action="cancel",
            entity_type="leave_request",
            entity_id=leave.id,
            actor_id=actor.user_id,
            old_values={"status": LeaveStatus.pending.value},
            new_values={"status": LeaveStatus.cancelled.value},
        )
        await notify_leave_cancelled(
            db, leave, await LeaveService._reviewer_ids(db), owner_name=leave.owner.name,
        )

        logger.info("Leave %s cancelled by owner %s", leave.id, actor.user_id)
        return LeaveService.to_out(await LeaveService._load(db, leave.id), today)

    @staticmethod
    async def delete_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Admin | RegularUser,
    ) -> None:
        """Administrative hard delete. Approved days go back to the owner
        and the attached files are removed with the request."""
        if not isinstance(actor, Admin):
            raise ForbiddenException("Only administrators can delete leave requests.")

        leave = await LeaveService._load(db, leave_id, for_update=True)
        old_values = snapshot(leave, _AUDITED_FIELDS)
        restored = 0

        if leave.status == LeaveStatus.approved and leave.leave_type.requires_balance:
            result = await db.execute(
                select(LeaveBalance)
                .where(
                    LeaveBalance.user_id == leave.owner_id,
                    LeaveBalance.leave_type == leave.leave_type,
                )
                .with_for_update()
            )
            balance = result.scalars().first()
            if balance is None:
                balance = LeaveBalance(
                    user_id=leave.owner_id, leave_type=leave.leave_type, remaining=0,
                )
                db.add(balance)
            balance.remaining += leave.days
            balance.updated_at = datetime.now(timezone.utc)
            restored = leave.days

        removed_files = len(leave.attachments)
        for f in list(leave.attachments):
            leave.attachments.remove(f)
            await FileService.discard(db, f)

        await db.delete(leave)
        await db.flush()

        await create_audit_entry(
            db,
            action="delete",
            entity_type="leave_request",
            entity_id=leave_id,
            actor_id=actor.user_id,
            old_values=old_values,
            new_values={"balance_restored": restored, "files_removed": removed_files},
        )
        logger.info(
            "Leave %s deleted by %s (restored %d days)", leave_id, actor.user_id, restored,
        )

    # ─────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave(
        db: AsyncSession,
        leave_id: uuid.UUID,
        actor: Admin | RegularUser,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        leave = await LeaveService._load(db, leave_id)
        if not isinstance(actor, Admin) and leave.owner_id != actor.user_id:
            raise ForbiddenException("You can only view your own leave requests.")
        return LeaveService.to_out(leave, today)

    @staticmethod
    async def list_my_leaves(
        db: AsyncSession,
        owner_id: uuid.UUID,
        *,
        status: Optional[LeaveStatus] = None,
        today: Optional[date] = None,
    ) -> list[LeaveRequestOut]:
        """Own requests, newest first."""
        query = LeaveService._with_details(
            select(LeaveRequest)
            .where(LeaveRequest.owner_id == owner_id)
            .order_by(LeaveRequest.submitted_at.desc(), LeaveRequest.start_date.desc())
        )
        if status is not None:
            query = query.where(LeaveRequest.status == status)
        rows = (await db.execute(query)).scalars().all()
        return [LeaveService.to_out(r, today) for r in rows]

    @staticmethod
    async def list_leaves(
        db: AsyncSession,
        pagination: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        owner_id: Optional[uuid.UUID] = None,
        leave_type: Optional[LeaveType] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> LeaveListResponse:
        """All requests (administrators), filtered and paginated.

        ``from_date`` / ``to_date`` select requests overlapping the window.
        """
        query = LeaveService._with_details(
            select(LeaveRequest).order_by(
                LeaveRequest.submitted_at.desc(), LeaveRequest.id,
            )
        )
        query = apply_filters(query, LeaveRequest, {
            "status": status,
            "owner_id": owner_id,
            "leave_type": leave_type,
            "end_date__gte": from_date,
            "start_date__lte": to_date,
        })

        page = await paginate(db, query, pagination, model=LeaveRequest, sortable=_SORTABLE)
        return LeaveListResponse(
            data=[LeaveService.to_out(r, today) for r in page.data],
            meta=page.meta,
        )

    @staticmethod
    async def list_pending(
        db: AsyncSession,
        reviewer_id: uuid.UUID,
        *,
        today: Optional[date] = None,
    ) -> list[LeaveRequestOut]:
        """Pending requests a reviewer may act on; their own are left out."""
        query = LeaveService._with_details(
            select(LeaveRequest)
            .where(
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.owner_id != reviewer_id,
            )
            .order_by(LeaveRequest.submitted_at.asc(), LeaveRequest.start_date.asc())
        )
        rows = (await db.execute(query)).scalars().all()
        return [LeaveService.to_out(r, today) for r in rows]

    @staticmethod
    async def get_statistics(
        db: AsyncSession,
        owner_id: Optional[uuid.UUID] = None,
    ) -> LeaveStatisticsOut:
        """Counts by status and type; everyone's when ``owner_id`` is None."""
        scope = []
        if owner_id is not None:
            scope.append(LeaveRequest.owner_id == owner_id)

        by_status = {s.value: 0 for s in LeaveStatus}
        result = await db.execute(
            select(LeaveRequest.status, func.count())
            .where(*scope)
            .group_by(LeaveRequest.status)
        )
        for status, count in result.all():
            by_status[LeaveStatus(status).value] = count

        by_type = {lt.value: 0 for lt in LeaveType}
        result = await db.execute(
            select(LeaveRequest.leave_type, func.count())
            .where(*scope)
            .group_by(LeaveRequest.leave_type)
        )
        for leave_type, count in result.all():
            by_type[LeaveType(leave_type).value] = count

        days_approved = (
            await db.execute(
                select(func.coalesce(func.sum(LeaveRequest.days), 0)).where(
                    *scope, LeaveRequest.status == LeaveStatus.approved,
                )
            )
        ).scalar_one()

        return LeaveStatisticsOut(
            total=sum(by_status.values()),
            by_status=by_status,
            by_type=by_type,
            days_approved=int(days_approved),
        )

    @staticmethod
    async def get_calendar(
        db: AsyncSession,
        year: int,
        month: int,
    ) -> LeaveCalendarOut:
        """Approved and pending leave overlapping the given month."""
        if not 1 <= month <= 12:
            raise ValidationException({"month": ["Month must be between 1 and 12"]})

        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])

        result = await db.execute(
            select(LeaveRequest)
            .where(
                LeaveRequest.status.in_(ACTIVE_LEAVE_STATUSES),
                LeaveRequest.start_date <= last,
                LeaveRequest.end_date >= first,
            )
            .options(selectinload(LeaveRequest.owner))
            .order_by(LeaveRequest.start_date, LeaveRequest.id)
        )
        entries = [LeaveCalendarEntry.model_validate(r) for r in result.scalars().all()]
        return LeaveCalendarOut(
            month=month, year=year, entries=entries, total_entries=len(entries),
        )
