"""Leave arithmetic and request validation.

Everything here is pure and synchronous: no session, no clock, no I/O.
The service layer reads balances and the owner's active requests, then
hands them in. Callers that want a raised error use
``ValidationResult.raise_for_errors()``.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, field_validator

from leavedesk.common.constants import (
    MAX_ATTACHMENTS,
    MAX_LEAVE_DAYS,
    MIN_REASON_LENGTH,
    LeaveStatus,
    LeaveType,
)
from leavedesk.common.exceptions import ValidationException


# ── Period calculator ───────────────────────────────────────────────

def as_calendar_date(value: date | datetime) -> date:
    """Strip the time of day; plain dates pass through."""
    if isinstance(value, datetime):
        return value.date()
    return value


def drop_time_of_day(value: Any) -> Any:
    """Before-validator for date fields: ISO timestamps become their calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    return value


def compute_days(start: date | datetime, end: date | datetime) -> int:
    """Inclusive day count between two calendar days.

    Reversed input still yields a positive count; date order is checked
    by the validator, not here.
    """
    delta = as_calendar_date(end) - as_calendar_date(start)
    return abs(delta.days) + 1


# ── Balance resolver ────────────────────────────────────────────────

def resolve_balance(label_or_key: Any, balances: Optional[Mapping[Any, int]]) -> int:
    """Remaining days for a leave type given as label or key.

    Unknown types and missing entries both mean "no entitlement" → 0.
    """
    leave_type = LeaveType.parse(label_or_key)
    if leave_type is None or not balances:
        return 0
    value = balances.get(leave_type.value)
    if value is None:
        value = balances.get(leave_type)
    return int(value or 0)


# ── Calendar windows ────────────────────────────────────────────────

class CalendarWindow(BaseModel):
    """Closed date interval, both ends included."""

    start_date: date
    end_date: date

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"


def overlaps(a: CalendarWindow, b: CalendarWindow) -> bool:
    return a.start_date <= b.end_date and a.end_date >= b.start_date


# ── Inputs ──────────────────────────────────────────────────────────

class LeaveSnapshot(BaseModel):
    """The fields of an existing request the rules care about.

    Built from ORM rows with ``LeaveSnapshot.model_validate(row)``.
    """

    id: Optional[uuid.UUID] = None
    owner_id: Optional[uuid.UUID] = None
    leave_type: LeaveType
    status: LeaveStatus = LeaveStatus.pending
    start_date: date
    end_date: date
    days: Optional[int] = None

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def window(self) -> CalendarWindow:
        return CalendarWindow(start_date=self.start_date, end_date=self.end_date)


class LeaveRequestInput(BaseModel):
    """A proposed request, exactly as the user filled it in.

    Every field is optional so that incomplete input reaches the validator
    and comes back as field errors instead of a schema error.
    """

    leave_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    attachment_ids: list[uuid.UUID] = []

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _drop_time_of_day(cls, v: Any) -> Any:
        return drop_time_of_day(v)

    @field_validator("leave_type", "reason", "emergency_contact", "emergency_phone", mode="before")
    @classmethod
    def _blank_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def parsed_leave_type(self) -> Optional[LeaveType]:
        return LeaveType.parse(self.leave_type)

    @property
    def window(self) -> Optional[CalendarWindow]:
        """The requested interval, or None while dates are missing or reversed."""
        if self.start_date is None or self.end_date is None:
            return None
        if self.end_date < self.start_date:
            return None
        return CalendarWindow(start_date=self.start_date, end_date=self.end_date)

    @property
    def days(self) -> Optional[int]:
        if self.start_date is None or self.end_date is None:
            return None
        return compute_days(self.start_date, self.end_date)


# ── Result ──────────────────────────────────────────────────────────

class ValidationResult(BaseModel):
    """Field name → messages. Empty means the request is admissible."""

    errors: dict[str, list[str]] = {}

    @property
    def ok(self) -> bool:
        return not self.errors

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        for field, messages in other.errors.items():
            for message in messages:
                self.add(field, message)
        return self

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationException(self.errors)


# ── Rules ───────────────────────────────────────────────────────────

def validate_details(
    request: LeaveRequestInput,
    balances: Optional[Mapping[Any, int]] = None,
) -> ValidationResult:
    """Leave type, balance exhaustion, reason and emergency contact."""
    result = ValidationResult()

    leave_type = request.parsed_leave_type
    if leave_type is None:
        result.add("leave_type", "Please select a leave type")
    elif leave_type.requires_balance and resolve_balance(leave_type, balances) <= 0:
        result.add("leave_type", f"You have no {leave_type.label} days remaining")

    reason = (request.reason or "").strip()
    if not reason:
        result.add("reason", "Please provide a reason")
    elif len(reason) < MIN_REASON_LENGTH:
        result.add(
            "reason",
            f"Reason must be at least {MIN_REASON_LENGTH} characters long",
        )

    contact = (request.emergency_contact or "").strip()
    phone = (request.emergency_phone or "").strip()
    if contact and not phone:
        result.add(
            "emergency_phone",
            "Emergency phone is required when contact name is provided",
        )
    if phone and not contact:
        result.add(
            "emergency_contact",
            "Contact name is required when emergency phone is provided",
        )

    return result


def _is_blocking(existing: Any, exclude_id: Optional[uuid.UUID]) -> bool:
    status = LeaveStatus(existing.status)
    if not status.is_active:
        return False
    return exclude_id is None or existing.id != exclude_id


def validate_dates(
    request: LeaveRequestInput,
    existing_active_requests: Iterable[Any] = (),
    balances: Optional[Mapping[Any, int]] = None,
    *,
    exclude_id: Optional[uuid.UUID] = None,
    today: Optional[date] = None,
    check_balance: bool = True,
) -> ValidationResult:
    """Presence, order, span, sufficiency, overlap and (optionally) past start.

    ``existing_active_requests`` may hold ORM rows or ``LeaveSnapshot``s;
    anything rejected or cancelled is ignored, as is ``exclude_id``.
    ``check_balance=False`` skips sufficiency when the caller has already
    reported the balance.
    """
    result = ValidationResult()

    if request.start_date is None:
        result.add("start_date", "Please select a start date")
    if request.end_date is None:
        result.add("end_date", "Please select an end date")

    if request.start_date is None or request.end_date is None:
        return result

    if request.end_date < request.start_date:
        result.add("dates", "End date must be after start date")
        return result

    window = request.window
    days = compute_days(request.start_date, request.end_date)

    if today is not None and request.start_date < today:
        result.add("dates", "Start date cannot be in the past")

    if days > MAX_LEAVE_DAYS:
        result.add("dates", f"Leave period cannot exceed {MAX_LEAVE_DAYS} days")

    leave_type = request.parsed_leave_type
    if check_balance and leave_type is not None and leave_type.requires_balance:
        available = resolve_balance(leave_type, balances)
        if days > available:
            result.add(
                "dates",
                f"You only have {available} {leave_type.label} days remaining, "
                f"but you're requesting {days} days",
            )

    for existing in existing_active_requests:
        if not _is_blocking(existing, exclude_id):
            continue
        other = CalendarWindow(
            start_date=as_calendar_date(existing.start_date),
            end_date=as_calendar_date(existing.end_date),
        )
        if overlaps(window, other):
            result.add(
                "dates",
                "You already have a leave request overlapping this period "
                f"({other}).",
            )
            break

    return result


def validate_attachments(request: LeaveRequestInput) -> ValidationResult:
    result = ValidationResult()
    if len(request.attachment_ids) > MAX_ATTACHMENTS:
        result.add("attachments", f"You can upload a maximum of {MAX_ATTACHMENTS} files")
    return result


def validate_request(
    request: LeaveRequestInput,
    existing_active_requests: Iterable[Any] = (),
    balances: Optional[Mapping[Any, int]] = None,
    *,
    exclude_id: Optional[uuid.UUID] = None,
    today: Optional[date] = None,
) -> ValidationResult:
    """Run every rule and collect all errors, not just the first.

    An exhausted balance is reported once, against the leave type.
    """
    details = validate_details(request, balances)
    return (
        details
        .merge(
            validate_dates(
                request,
                existing_active_requests,
                balances,
                exclude_id=exclude_id,
                today=today,
                check_balance="leave_type" not in details.errors,
            )
        )
        .merge(validate_attachments(request))
    )
