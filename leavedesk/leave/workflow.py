"""Leave request state machine.

    pending ──approve──▶ approved
       │ ──reject───▶ rejected
       │ ──cancel───▶ cancelled
       └──edit─────▶ pending

approved / rejected / cancelled are terminal. ``transition`` never raises
for a rule violation; it returns a ``TransitionOutcome`` the caller can
inspect or turn into an exception with ``raise_for_outcome()``.
Checks run in a fixed order: actor, then state, then payload.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date
from typing import Annotated, Any, Iterable, Literal, Mapping, Optional, Union

from pydantic import BaseModel, Field

from leavedesk.common.constants import APPROVER_ROLES, LeaveStatus, UserRole
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidStateException,
    ValidationException,
)
from leavedesk.leave.rules import (
    LeaveRequestInput,
    LeaveSnapshot,
    resolve_balance,
    validate_request,
)

STATE_ERROR_MESSAGE = "This request can no longer be modified"


# ── Actors ──────────────────────────────────────────────────────────

class Admin(BaseModel):
    kind: Literal["admin"] = "admin"
    user_id: uuid.UUID

    model_config = {"frozen": True}


class RegularUser(BaseModel):
    kind: Literal["regular"] = "regular"
    user_id: uuid.UUID

    model_config = {"frozen": True}


Actor = Annotated[Union[Admin, RegularUser], Field(discriminator="kind")]


def actor_for(user_id: uuid.UUID, role: UserRole | str) -> Admin | RegularUser:
    """Map a stored role onto the actor variant. Managers review like admins."""
    if UserRole(role) in APPROVER_ROLES:
        return Admin(user_id=user_id)
    return RegularUser(user_id=user_id)


# ── Actions & outcomes ──────────────────────────────────────────────

class LeaveAction(str, enum.Enum):
    approve = "approve"
    reject = "reject"
    cancel = "cancel"
    edit = "edit"


class TransitionErrorKind(str, enum.Enum):
    authorization = "authorization"
    state = "state"
    validation = "validation"


class TransitionOutcome(BaseModel):
    action: LeaveAction
    from_status: LeaveStatus
    to_status: Optional[LeaveStatus] = None
    error_kind: Optional[TransitionErrorKind] = None
    message: Optional[str] = None
    errors: dict[str, list[str]] = {}
    # Signed change to the owner's balance for the request's leave type
    balance_change: int = 0

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def raise_for_outcome(self) -> None:
        if self.error_kind is TransitionErrorKind.authorization:
            raise ForbiddenException(self.message or "You cannot perform this action.")
        if self.error_kind is TransitionErrorKind.state:
            raise InvalidStateException(self.message or STATE_ERROR_MESSAGE)
        if self.error_kind is TransitionErrorKind.validation:
            raise ValidationException(self.errors)


def _fail(
    action: LeaveAction,
    current: LeaveStatus,
    kind: TransitionErrorKind,
    message: Optional[str] = None,
    errors: Optional[dict[str, list[str]]] = None,
) -> TransitionOutcome:
    return TransitionOutcome(
        action=action,
        from_status=current,
        error_kind=kind,
        message=message,
        errors=errors or {},
    )


def _authorize(action: LeaveAction, leave: LeaveSnapshot, actor: Admin | RegularUser) -> Optional[str]:
    is_owner = actor.user_id == leave.owner_id

    if action in (LeaveAction.approve, LeaveAction.reject):
        if not isinstance(actor, Admin):
            return "Only administrators can approve or reject leave requests."
        if is_owner:
            return "You cannot approve or reject your own leave request."
        return None

    if not is_owner:
        verb = "cancel" if action is LeaveAction.cancel else "edit"
        return f"You can only {verb} your own leave requests."
    return None


# ── Transition ──────────────────────────────────────────────────────

def transition(
    leave: Any,
    action: LeaveAction | str,
    actor: Admin | RegularUser,
    *,
    today: Optional[date] = None,
    rejection_reason: Optional[str] = None,
    edited: Optional[LeaveRequestInput] = None,
    active_requests: Iterable[Any] = (),
    balances: Optional[Mapping[Any, int]] = None,
) -> TransitionOutcome:
    """Decide whether *actor* may apply *action* to *leave*.

    Args:
        leave: ORM row or ``LeaveSnapshot`` of the request.
        action: approve | reject | cancel | edit.
        actor: ``Admin`` or ``RegularUser``.
        today: Reference day for the edit window; defaults to ``date.today()``.
        rejection_reason: Required for reject.
        edited: Full proposed request for edit.
        active_requests: Owner's other requests, for the edit overlap check.
        balances: Owner's balances. For approve, sufficiency is re-checked
            only when balances are given.
    """
    action = LeaveAction(action)
    snapshot = leave if isinstance(leave, LeaveSnapshot) else LeaveSnapshot.model_validate(leave)
    current = LeaveStatus(snapshot.status)

    denied = _authorize(action, snapshot, actor)
    if denied:
        return _fail(action, current, TransitionErrorKind.authorization, denied)

    if current.is_terminal:
        return _fail(action, current, TransitionErrorKind.state, STATE_ERROR_MESSAGE)

    days = snapshot.days or 0

    if action is LeaveAction.approve:
        change = 0
        if snapshot.leave_type.requires_balance:
            change = -days
            if balances is not None:
                available = resolve_balance(snapshot.leave_type, balances)
                if days > available:
                    return _fail(
                        action, current, TransitionErrorKind.validation,
                        errors={"balance": [
                            f"Insufficient {snapshot.leave_type.label} balance: "
                            f"{available} days remaining, {days} requested"
                        ]},
                    )
        return TransitionOutcome(
            action=action,
            from_status=current,
            to_status=LeaveStatus.approved,
            balance_change=change,
        )

    if action is LeaveAction.reject:
        if not (rejection_reason or "").strip():
            return _fail(
                action, current, TransitionErrorKind.validation,
                errors={"rejection_reason": ["Please provide a reason for rejection"]},
            )
        return TransitionOutcome(
            action=action, from_status=current, to_status=LeaveStatus.rejected,
        )

    if action is LeaveAction.cancel:
        return TransitionOutcome(
            action=action, from_status=current, to_status=LeaveStatus.cancelled,
        )

    # edit
    today = today or date.today()
    if today > snapshot.end_date:
        return _fail(
            action, current, TransitionErrorKind.state,
            "Leave requests can only be edited until their end date",
        )
    if edited is None:
        return _fail(
            action, current, TransitionErrorKind.validation,
            errors={"request": ["No changes supplied"]},
        )

    # Past-start only matters when the dates themselves move
    dates_moved = (edited.start_date, edited.end_date) != (
        snapshot.start_date, snapshot.end_date,
    )
    result = validate_request(
        edited,
        active_requests,
        balances,
        exclude_id=snapshot.id,
        today=today if dates_moved else None,
    )
    if not result.ok:
        return _fail(
            action, current, TransitionErrorKind.validation, errors=result.errors,
        )
    return TransitionOutcome(
        action=action, from_status=current, to_status=LeaveStatus.pending,
    )
