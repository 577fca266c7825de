"""Enums and constants for LeaveDesk — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from typing import Optional


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# Stored roles allowed to act on other people's leave requests
APPROVER_ROLES: frozenset[UserRole] = frozenset({UserRole.manager, UserRole.admin})


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not LeaveStatus.pending

    @property
    def is_active(self) -> bool:
        """Active requests block overlapping dates."""
        return self in (LeaveStatus.pending, LeaveStatus.approved)


ACTIVE_LEAVE_STATUSES: tuple[LeaveStatus, ...] = (
    LeaveStatus.pending,
    LeaveStatus.approved,
)


class LeaveType(str, enum.Enum):
    """Leave categories. The value is the balance key."""

    annual = "AnnualLeave"
    sick = "SickLeave"
    family_responsibility = "FamilyResponsibility"
    unpaid = "UnpaidLeave"
    other = "Other"

    @property
    def label(self) -> str:
        return LEAVE_TYPE_LABELS[self]

    @property
    def requires_balance(self) -> bool:
        return self is not LeaveType.unpaid

    @classmethod
    def parse(cls, value: object) -> Optional["LeaveType"]:
        """Resolve a balance key ("AnnualLeave") or a display label
        ("Annual Leave") to a LeaveType. Unknown values → None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        try:
            return cls(text)
        except ValueError:
            return LABEL_TO_LEAVE_TYPE.get(text)


LEAVE_TYPE_LABELS: dict[LeaveType, str] = {
    LeaveType.annual: "Annual Leave",
    LeaveType.sick: "Sick Leave",
    LeaveType.family_responsibility: "Family Responsibility",
    LeaveType.unpaid: "Unpaid Leave",
    LeaveType.other: "Other",
}

LABEL_TO_LEAVE_TYPE: dict[str, LeaveType] = {
    label: lt for lt, label in LEAVE_TYPE_LABELS.items()
}


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    leave_submitted = "leave_submitted"
    leave_approved = "leave_approved"
    leave_rejected = "leave_rejected"
    leave_cancelled = "leave_cancelled"
    system = "system"


# ── Attachments ─────────────────────────────────────────────────────

ALLOWED_ATTACHMENT_TYPES: frozenset[str] = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
})


MAX_ATTACHMENTS = 5


# ── Leave rules ─────────────────────────────────────────────────────

MAX_LEAVE_DAYS = 365
MIN_REASON_LENGTH = 10


# ── Misc constants ──────────────────────────────────────────────────

DATE_FORMAT = "%b %d, %Y"          # Jan 15, 2024
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
