"""State machine tests — actors, terminal states, transition payloads."""

from __future__ import annotations

import uuid
from datetime import date

import pytest
from pydantic import TypeAdapter

from leavedesk.common.constants import LeaveStatus, LeaveType, UserRole
from leavedesk.common.exceptions import (
    ForbiddenException,
    InvalidStateException,
    ValidationException,
)
from leavedesk.leave.rules import LeaveRequestInput, LeaveSnapshot
from leavedesk.leave.workflow import (
    STATE_ERROR_MESSAGE,
    Actor,
    Admin,
    LeaveAction,
    RegularUser,
    TransitionErrorKind,
    actor_for,
    transition,
)

OWNER = uuid.uuid4()
OTHER = uuid.uuid4()


def _leave(status: LeaveStatus = LeaveStatus.pending, **kw) -> LeaveSnapshot:
    return LeaveSnapshot(
        id=kw.get("id", uuid.uuid4()),
        owner_id=kw.get("owner_id", OWNER),
        leave_type=kw.get("leave_type", LeaveType.annual),
        status=status,
        start_date=kw.get("start_date", date(2024, 5, 6)),
        end_date=kw.get("end_date", date(2024, 5, 8)),
        days=kw.get("days", 3),
    )


def _edit(**overrides) -> LeaveRequestInput:
    data = dict(
        leave_type="AnnualLeave",
        start_date=date(2024, 5, 6),
        end_date=date(2024, 5, 8),
        reason="Moving to a new flat",
    )
    data.update(overrides)
    return LeaveRequestInput(**data)


# ═════════════════════════════════════════════════════════════════════
# 1. Actors
# ═════════════════════════════════════════════════════════════════════


class TestActors:

    @pytest.mark.parametrize("role", [UserRole.admin, UserRole.manager])
    def test_reviewer_roles_map_to_admin(self, role):
        assert isinstance(actor_for(OWNER, role), Admin)

    def test_employee_maps_to_regular(self):
        assert isinstance(actor_for(OWNER, "employee"), RegularUser)

    def test_discriminated_union_parses_kind(self):
        adapter = TypeAdapter(Actor)
        actor = adapter.validate_python({"kind": "admin", "user_id": str(OWNER)})
        assert isinstance(actor, Admin)
        assert actor.user_id == OWNER


# ═════════════════════════════════════════════════════════════════════
# 2. Approve / reject
# ═════════════════════════════════════════════════════════════════════


class TestApprove:

    def test_admin_approves(self):
        outcome = transition(_leave(), LeaveAction.approve, Admin(user_id=OTHER))
        assert outcome.ok
        assert outcome.to_status is LeaveStatus.approved
        assert outcome.balance_change == -3

    def test_unpaid_leaves_balance_alone(self):
        outcome = transition(
            _leave(leave_type=LeaveType.unpaid), "approve", Admin(user_id=OTHER),
        )
        assert outcome.ok
        assert outcome.balance_change == 0

    def test_regular_user_cannot_approve(self):
        outcome = transition(_leave(), LeaveAction.approve, RegularUser(user_id=OTHER))
        assert outcome.error_kind is TransitionErrorKind.authorization

    def test_admin_cannot_approve_own_request(self):
        outcome = transition(_leave(), LeaveAction.approve, Admin(user_id=OWNER))
        assert outcome.error_kind is TransitionErrorKind.authorization
        with pytest.raises(ForbiddenException):
            outcome.raise_for_outcome()

    def test_approval_rechecks_balance(self):
        outcome = transition(
            _leave(days=5), LeaveAction.approve, Admin(user_id=OTHER),
            balances={"AnnualLeave": 4},
        )
        assert outcome.error_kind is TransitionErrorKind.validation
        assert "balance" in outcome.errors

    def test_sufficient_balance_approves(self):
        outcome = transition(
            _leave(days=4), LeaveAction.approve, Admin(user_id=OTHER),
            balances={"AnnualLeave": 4},
        )
        assert outcome.ok

    def test_reject_requires_reason(self):
        outcome = transition(
            _leave(), LeaveAction.reject, Admin(user_id=OTHER), rejection_reason="  ",
        )
        assert outcome.errors == {"rejection_reason": ["Please provide a reason for rejection"]}
        with pytest.raises(ValidationException):
            outcome.raise_for_outcome()

    def test_reject_with_reason(self):
        outcome = transition(
            _leave(), LeaveAction.reject, Admin(user_id=OTHER),
            rejection_reason="Peak season",
        )
        assert outcome.ok
        assert outcome.to_status is LeaveStatus.rejected


# ═════════════════════════════════════════════════════════════════════
# 3. Terminal states
# ═════════════════════════════════════════════════════════════════════


class TestTerminalStates:

    @pytest.mark.parametrize(
        "status", [LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled],
    )
    @pytest.mark.parametrize(
        "action,actor",
        [
            (LeaveAction.approve, Admin(user_id=OTHER)),
            (LeaveAction.reject, Admin(user_id=OTHER)),
            (LeaveAction.cancel, RegularUser(user_id=OWNER)),
            (LeaveAction.edit, RegularUser(user_id=OWNER)),
        ],
    )
    def test_no_transition_out_of_terminal(self, status, action, actor):
        outcome = transition(
            _leave(status), action, actor,
            rejection_reason="x" * 12,
            edited=_edit(),
            today=date(2024, 5, 1),
        )
        assert outcome.error_kind is TransitionErrorKind.state
        assert outcome.message == STATE_ERROR_MESSAGE

    def test_state_error_raises_409(self):
        outcome = transition(_leave(LeaveStatus.approved), "cancel", RegularUser(user_id=OWNER))
        with pytest.raises(InvalidStateException) as exc_info:
            outcome.raise_for_outcome()
        assert exc_info.value.status_code == 409

    def test_authorization_checked_before_state(self):
        outcome = transition(
            _leave(LeaveStatus.approved), LeaveAction.cancel, RegularUser(user_id=OTHER),
        )
        assert outcome.error_kind is TransitionErrorKind.authorization


# ═════════════════════════════════════════════════════════════════════
# 4. Cancel / edit
# ═════════════════════════════════════════════════════════════════════


class TestCancelAndEdit:

    def test_owner_cancels(self):
        outcome = transition(_leave(), LeaveAction.cancel, RegularUser(user_id=OWNER))
        assert outcome.ok
        assert outcome.to_status is LeaveStatus.cancelled

    def test_admin_cannot_cancel_someone_elses(self):
        outcome = transition(_leave(), LeaveAction.cancel, Admin(user_id=OTHER))
        assert outcome.error_kind is TransitionErrorKind.authorization

    def test_only_owner_edits(self):
        outcome = transition(
            _leave(), LeaveAction.edit, Admin(user_id=OTHER),
            edited=_edit(), today=date(2024, 5, 1),
        )
        assert outcome.error_kind is TransitionErrorKind.authorization

    def test_edit_after_end_date_refused(self):
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(), today=date(2024, 5, 9),
            balances={"AnnualLeave": 10},
        )
        assert outcome.error_kind is TransitionErrorKind.state

    def test_edit_on_end_date_allowed(self):
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(reason="Moving to a new flat, movers booked"),
            today=date(2024, 5, 8),
            balances={"AnnualLeave": 10},
        )
        assert outcome.ok
        assert outcome.to_status is LeaveStatus.pending

    def test_edit_runs_full_validation(self):
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(reason="short"), today=date(2024, 5, 1),
            balances={"AnnualLeave": 10},
        )
        assert outcome.error_kind is TransitionErrorKind.validation
        assert "reason" in outcome.errors

    def test_edit_ignores_own_period_in_overlap(self):
        current = _leave()
        outcome = transition(
            current, LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(end_date=date(2024, 5, 9)),
            today=date(2024, 5, 1),
            active_requests=[current],
            balances={"AnnualLeave": 10},
        )
        assert outcome.ok

    def test_edit_overlapping_another_request(self):
        other = _leave(start_date=date(2024, 5, 10), end_date=date(2024, 5, 12))
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(end_date=date(2024, 5, 10)),
            today=date(2024, 5, 1),
            active_requests=[other],
            balances={"AnnualLeave": 10},
        )
        assert outcome.error_kind is TransitionErrorKind.validation

    def test_unmoved_dates_skip_past_start_check(self):
        """A request that has started can still have its reason edited."""
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(reason="Moving house, need the extra day"),
            today=date(2024, 5, 7),
            balances={"AnnualLeave": 10},
        )
        assert outcome.ok

    def test_moved_dates_cannot_start_in_past(self):
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER),
            edited=_edit(start_date=date(2024, 5, 5)),
            today=date(2024, 5, 7),
            balances={"AnnualLeave": 10},
        )
        assert outcome.errors["dates"] == ["Start date cannot be in the past"]

    def test_edit_without_payload(self):
        outcome = transition(
            _leave(), LeaveAction.edit, RegularUser(user_id=OWNER), today=date(2024, 5, 1),
        )
        assert outcome.error_kind is TransitionErrorKind.validation
