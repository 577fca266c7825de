"""Common module — shared utilities for LeaveDesk."""

from leavedesk.common.audit import AuditTrail, create_audit_entry, snapshot
from leavedesk.common.constants import (
    APPROVER_ROLES,
    DATE_FORMAT,
    DEFAULT_PAGE_SIZE,
    MAX_ATTACHMENTS,
    MAX_LEAVE_DAYS,
    MAX_PAGE_SIZE,
    MIN_REASON_LENGTH,
    LeaveStatus,
    LeaveType,
    NotificationType,
    UserRole,
)
from leavedesk.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from leavedesk.common.filters import apply_filters, apply_search
from leavedesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    "snapshot",
    # Constants / Enums
    "LeaveStatus",
    "LeaveType",
    "NotificationType",
    "UserRole",
    "APPROVER_ROLES",
    "DATE_FORMAT",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "MAX_ATTACHMENTS",
    "MAX_LEAVE_DAYS",
    "MIN_REASON_LENGTH",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "InvalidStateException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Filters
    "apply_filters",
    "apply_search",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
