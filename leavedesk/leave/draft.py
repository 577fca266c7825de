"""Multi-step leave request form state.

A ``LeaveDraft`` is immutable; every builder returns a new draft. Steps:

    details ─▶ dates_and_documents ─▶ review

``next_step`` only advances when the current step validates.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date
from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, field_validator

from leavedesk.leave.rules import (
    LeaveRequestInput,
    ValidationResult,
    compute_days,
    drop_time_of_day,
    validate_attachments,
    validate_dates,
    validate_details,
    validate_request,
)


class DraftStep(str, enum.Enum):
    details = "details"
    dates_and_documents = "dates_and_documents"
    review = "review"


STEP_ORDER: tuple[DraftStep, ...] = tuple(DraftStep)


class AttachmentRef(BaseModel):
    """An uploaded file the draft points at."""

    id: uuid.UUID
    name: str = ""
    size: int = 0

    model_config = {"frozen": True}


class LeaveDraft(BaseModel):
    step: DraftStep = DraftStep.details
    leave_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    reason: Optional[str] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    attachments: tuple[AttachmentRef, ...] = ()

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _drop_time_of_day(cls, v: Any) -> Any:
        return drop_time_of_day(v)

    model_config = {"frozen": True}

    def _replace(self, **changes: Any) -> "LeaveDraft":
        data = self.model_dump()
        data.update(changes)
        return type(self).model_validate(data)

    # ── builders ────────────────────────────────────────────────────

    def with_leave_type(self, leave_type: Optional[str]) -> "LeaveDraft":
        return self._replace(leave_type=leave_type)

    def with_dates(self, start_date: Optional[date], end_date: Optional[date]) -> "LeaveDraft":
        # Normalized through the request model so datetimes lose their time
        normalized = LeaveRequestInput(start_date=start_date, end_date=end_date)
        return self._replace(
            start_date=normalized.start_date, end_date=normalized.end_date,
        )

    def with_reason(self, reason: Optional[str]) -> "LeaveDraft":
        return self._replace(reason=reason)

    def with_emergency_contact(
        self, name: Optional[str], phone: Optional[str],
    ) -> "LeaveDraft":
        return self._replace(emergency_contact=name, emergency_phone=phone)

    def add_attachment(self, ref: AttachmentRef) -> "LeaveDraft":
        """Append *ref*; adding the same file id twice is a no-op.

        The count limit is reported by ``validate_step``, not enforced here.
        """
        if any(a.id == ref.id for a in self.attachments):
            return self
        return self._replace(attachments=(*self.attachments, ref))

    def remove_attachment(self, file_id: uuid.UUID) -> "LeaveDraft":
        return self._replace(
            attachments=tuple(a for a in self.attachments if a.id != file_id),
        )

    # ── navigation ──────────────────────────────────────────────────

    def next_step(
        self,
        balances: Optional[Mapping[Any, int]] = None,
        existing_active_requests: Iterable[Any] = (),
        *,
        today: Optional[date] = None,
    ) -> tuple["LeaveDraft", ValidationResult]:
        """Validate the current step and move forward if it passes.

        Returns the (possibly unchanged) draft together with the step's
        validation result. The review step has no successor.
        """
        result = validate_step(
            self, balances, existing_active_requests, today=today,
        )
        if not result.ok or self.step is DraftStep.review:
            return self, result
        index = STEP_ORDER.index(self.step)
        return self._replace(step=STEP_ORDER[index + 1]), result

    def previous_step(self) -> "LeaveDraft":
        index = STEP_ORDER.index(self.step)
        if index == 0:
            return self
        return self._replace(step=STEP_ORDER[index - 1])

    # ── conversion ──────────────────────────────────────────────────

    @property
    def days(self) -> Optional[int]:
        if self.start_date is None or self.end_date is None:
            return None
        return compute_days(self.start_date, self.end_date)

    def to_request(self) -> LeaveRequestInput:
        return LeaveRequestInput(
            leave_type=self.leave_type,
            start_date=self.start_date,
            end_date=self.end_date,
            reason=self.reason,
            emergency_contact=self.emergency_contact,
            emergency_phone=self.emergency_phone,
            attachment_ids=[a.id for a in self.attachments],
        )


def validate_step(
    draft: LeaveDraft,
    balances: Optional[Mapping[Any, int]] = None,
    existing_active_requests: Iterable[Any] = (),
    *,
    today: Optional[date] = None,
) -> ValidationResult:
    """Errors for the draft's current step only."""
    request = draft.to_request()
    if draft.step is DraftStep.details:
        return validate_details(request, balances)
    if draft.step is DraftStep.dates_and_documents:
        return validate_dates(
            request, existing_active_requests, balances, today=today,
        ).merge(validate_attachments(request))
    return validate_request(
        request, existing_active_requests, balances, today=today,
    )
