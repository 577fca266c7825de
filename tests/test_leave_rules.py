"""Pure validation tests — period arithmetic, balances, request rules.

No database; everything here runs on plain values.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta

import pytest

from leavedesk.common.constants import LeaveStatus, LeaveType
from leavedesk.common.exceptions import ValidationException
from leavedesk.leave.rules import (
    CalendarWindow,
    LeaveRequestInput,
    LeaveSnapshot,
    ValidationResult,
    compute_days,
    overlaps,
    resolve_balance,
    validate_attachments,
    validate_dates,
    validate_details,
    validate_request,
)


def _request(**overrides) -> LeaveRequestInput:
    data = dict(
        leave_type="AnnualLeave",
        start_date=date(2024, 3, 4),
        end_date=date(2024, 3, 6),
        reason="Family wedding upcountry",
    )
    data.update(overrides)
    return LeaveRequestInput(**data)


def _existing(start: date, end: date, status: LeaveStatus = LeaveStatus.pending, **kw) -> LeaveSnapshot:
    return LeaveSnapshot(
        id=kw.get("id", uuid.uuid4()),
        leave_type=kw.get("leave_type", LeaveType.annual),
        status=status,
        start_date=start,
        end_date=end,
    )


# ═════════════════════════════════════════════════════════════════════
# 1. Period calculator
# ═════════════════════════════════════════════════════════════════════


class TestComputeDays:

    def test_same_day_is_one(self):
        assert compute_days(date(2024, 3, 1), date(2024, 3, 1)) == 1

    def test_inclusive_count(self):
        """Jan 15 – Jan 20 covers six calendar days."""
        assert compute_days(date(2024, 1, 15), date(2024, 1, 20)) == 6

    def test_symmetric(self):
        a, b = date(2024, 2, 1), date(2024, 2, 10)
        assert compute_days(a, b) == compute_days(b, a) == 10

    def test_time_of_day_ignored(self):
        assert compute_days(
            datetime(2024, 5, 1, 23, 59), datetime(2024, 5, 2, 0, 1),
        ) == 2

    def test_spans_leap_day(self):
        assert compute_days(date(2024, 2, 28), date(2024, 3, 1)) == 3

    def test_monotone_in_end(self):
        start = date(2024, 6, 1)
        counts = [compute_days(start, start + timedelta(days=n)) for n in range(10)]
        assert counts == sorted(counts)
        assert counts[-1] == 10


# ═════════════════════════════════════════════════════════════════════
# 2. Balance resolver
# ═════════════════════════════════════════════════════════════════════


class TestResolveBalance:

    def test_by_key(self):
        assert resolve_balance("SickLeave", {"SickLeave": 7}) == 7

    def test_by_label(self):
        assert resolve_balance("Annual Leave", {"AnnualLeave": 12}) == 12

    def test_by_enum_member(self):
        assert resolve_balance(LeaveType.other, {"Other": 2}) == 2

    def test_unknown_type_is_zero(self):
        assert resolve_balance("Sabbatical", {"AnnualLeave": 12}) == 0

    def test_missing_entry_is_zero(self):
        assert resolve_balance("FamilyResponsibility", {"AnnualLeave": 12}) == 0

    def test_no_balances_is_zero(self):
        assert resolve_balance("AnnualLeave", None) == 0


# ═════════════════════════════════════════════════════════════════════
# 3. Overlap
# ═════════════════════════════════════════════════════════════════════


class TestOverlaps:

    def _w(self, s: date, e: date) -> CalendarWindow:
        return CalendarWindow(start_date=s, end_date=e)

    def test_reflexive(self):
        w = self._w(date(2024, 2, 1), date(2024, 2, 5))
        assert overlaps(w, w)

    def test_symmetric(self):
        a = self._w(date(2024, 2, 1), date(2024, 2, 5))
        b = self._w(date(2024, 2, 4), date(2024, 2, 10))
        assert overlaps(a, b) and overlaps(b, a)

    def test_shared_endpoint_overlaps(self):
        a = self._w(date(2024, 2, 1), date(2024, 2, 5))
        b = self._w(date(2024, 2, 5), date(2024, 2, 6))
        assert overlaps(a, b)

    def test_adjacent_ranges_do_not_overlap(self):
        a = self._w(date(2024, 2, 1), date(2024, 2, 5))
        b = self._w(date(2024, 2, 6), date(2024, 2, 9))
        assert not overlaps(a, b)
        assert not overlaps(b, a)

    def test_window_renders_iso_range(self):
        assert str(self._w(date(2024, 2, 1), date(2024, 2, 5))) == "2024-02-01 to 2024-02-05"


# ═════════════════════════════════════════════════════════════════════
# 4. Input normalization
# ═════════════════════════════════════════════════════════════════════


class TestLeaveRequestInput:

    def test_iso_timestamps_become_dates(self):
        req = LeaveRequestInput(start_date="2024-03-01T22:00:00Z", end_date="2024-03-02T08:30:00")
        assert req.start_date == date(2024, 3, 1)
        assert req.end_date == date(2024, 3, 2)

    def test_blank_strings_become_none(self):
        req = LeaveRequestInput(leave_type="  ", reason="", emergency_phone=" ")
        assert req.leave_type is None
        assert req.reason is None
        assert req.emergency_phone is None

    def test_label_parses_to_type(self):
        assert LeaveRequestInput(leave_type="Family Responsibility").parsed_leave_type is (
            LeaveType.family_responsibility
        )

    def test_reversed_dates_have_no_window(self):
        req = _request(start_date=date(2024, 3, 6), end_date=date(2024, 3, 4))
        assert req.window is None
        assert req.days == 3


# ═════════════════════════════════════════════════════════════════════
# 5. Detail rules
# ═════════════════════════════════════════════════════════════════════


class TestValidateDetails:

    def test_missing_leave_type(self):
        result = validate_details(_request(leave_type=None), {"AnnualLeave": 10})
        assert result.errors["leave_type"] == ["Please select a leave type"]

    def test_unknown_leave_type(self):
        result = validate_details(_request(leave_type="Sabbatical"), {"AnnualLeave": 10})
        assert "leave_type" in result.errors

    def test_exhausted_balance(self):
        result = validate_details(_request(), {"AnnualLeave": 0})
        assert result.errors["leave_type"] == ["You have no Annual Leave days remaining"]

    def test_unpaid_needs_no_balance(self):
        result = validate_details(_request(leave_type="UnpaidLeave"), {})
        assert result.ok

    def test_missing_reason(self):
        result = validate_details(_request(reason="   "), {"AnnualLeave": 10})
        assert result.errors["reason"] == ["Please provide a reason"]

    def test_short_reason(self):
        result = validate_details(_request(reason="Too short"), {"AnnualLeave": 10})
        assert result.errors["reason"] == ["Reason must be at least 10 characters long"]

    def test_reason_length_counts_trimmed_text(self):
        result = validate_details(_request(reason="   123456789   "), {"AnnualLeave": 10})
        assert "reason" in result.errors

    def test_contact_without_phone(self):
        result = validate_details(
            _request(emergency_contact="Sipho"), {"AnnualLeave": 10},
        )
        assert result.errors == {
            "emergency_phone": ["Emergency phone is required when contact name is provided"],
        }

    def test_phone_without_contact(self):
        result = validate_details(
            _request(emergency_phone="+27 82 000 0000"), {"AnnualLeave": 10},
        )
        assert result.errors == {
            "emergency_contact": ["Contact name is required when emergency phone is provided"],
        }


# ═════════════════════════════════════════════════════════════════════
# 6. Date rules
# ═════════════════════════════════════════════════════════════════════


class TestValidateDates:

    def test_missing_dates_reported_per_field(self):
        result = validate_dates(_request(start_date=None, end_date=None), [], {"AnnualLeave": 10})
        assert result.errors == {
            "start_date": ["Please select a start date"],
            "end_date": ["Please select an end date"],
        }

    def test_end_before_start(self):
        result = validate_dates(
            _request(start_date=date(2024, 3, 6), end_date=date(2024, 3, 4)),
            [], {"AnnualLeave": 10},
        )
        assert result.errors == {"dates": ["End date must be after start date"]}

    def test_insufficient_balance_message(self):
        """{AnnualLeave: 5}, Jan 15 – Jan 20 → six days requested, five remain."""
        result = validate_dates(
            _request(start_date=date(2024, 1, 15), end_date=date(2024, 1, 20)),
            [], {"AnnualLeave": 5},
        )
        assert result.errors["dates"] == [
            "You only have 5 Annual Leave days remaining, but you're requesting 6 days",
        ]

    def test_unpaid_never_insufficient(self):
        result = validate_dates(
            _request(leave_type="UnpaidLeave", start_date=date(2024, 1, 1), end_date=date(2024, 2, 29)),
            [], {},
        )
        assert result.ok

    def test_span_limit(self):
        start = date(2024, 1, 1)
        result = validate_dates(
            _request(leave_type="UnpaidLeave", start_date=start, end_date=start + timedelta(days=399)),
            [], {},
        )
        assert result.errors["dates"] == ["Leave period cannot exceed 365 days"]

    def test_exactly_365_days_allowed(self):
        start = date(2025, 1, 1)
        result = validate_dates(
            _request(leave_type="UnpaidLeave", start_date=start, end_date=start + timedelta(days=364)),
            [], {},
        )
        assert result.ok

    def test_overlap_cites_existing_period(self):
        existing = [_existing(date(2024, 2, 1), date(2024, 2, 5))]
        result = validate_dates(
            _request(start_date=date(2024, 2, 4), end_date=date(2024, 2, 10)),
            existing, {"AnnualLeave": 20},
        )
        assert result.errors["dates"] == [
            "You already have a leave request overlapping this period (2024-02-01 to 2024-02-05).",
        ]

    def test_inactive_requests_do_not_block(self):
        existing = [
            _existing(date(2024, 2, 1), date(2024, 2, 5), LeaveStatus.rejected),
            _existing(date(2024, 2, 1), date(2024, 2, 5), LeaveStatus.cancelled),
        ]
        result = validate_dates(
            _request(start_date=date(2024, 2, 4), end_date=date(2024, 2, 6)),
            existing, {"AnnualLeave": 20},
        )
        assert result.ok

    def test_approved_requests_block(self):
        existing = [_existing(date(2024, 2, 1), date(2024, 2, 5), LeaveStatus.approved)]
        result = validate_dates(
            _request(start_date=date(2024, 2, 5), end_date=date(2024, 2, 6)),
            existing, {"AnnualLeave": 20},
        )
        assert "dates" in result.errors

    def test_excluded_request_ignored(self):
        own_id = uuid.uuid4()
        existing = [_existing(date(2024, 2, 1), date(2024, 2, 5), id=own_id)]
        result = validate_dates(
            _request(start_date=date(2024, 2, 2), end_date=date(2024, 2, 6)),
            existing, {"AnnualLeave": 20}, exclude_id=own_id,
        )
        assert result.ok

    def test_only_first_overlap_reported(self):
        existing = [
            _existing(date(2024, 2, 1), date(2024, 2, 2)),
            _existing(date(2024, 2, 4), date(2024, 2, 5)),
        ]
        result = validate_dates(
            _request(start_date=date(2024, 2, 1), end_date=date(2024, 2, 10)),
            existing, {"AnnualLeave": 20},
        )
        assert len(result.errors["dates"]) == 1

    def test_past_start_only_checked_with_today(self):
        req = _request(start_date=date(2024, 3, 4), end_date=date(2024, 3, 6))
        assert validate_dates(req, [], {"AnnualLeave": 10}).ok
        result = validate_dates(req, [], {"AnnualLeave": 10}, today=date(2024, 3, 5))
        assert result.errors["dates"] == ["Start date cannot be in the past"]

    def test_starting_today_is_allowed(self):
        req = _request(start_date=date(2024, 3, 4), end_date=date(2024, 3, 6))
        assert validate_dates(req, [], {"AnnualLeave": 10}, today=date(2024, 3, 4)).ok


# ═════════════════════════════════════════════════════════════════════
# 7. Attachments and full request
# ═════════════════════════════════════════════════════════════════════


class TestValidateRequest:

    def test_attachment_limit(self):
        req = _request(attachment_ids=[uuid.uuid4() for _ in range(6)])
        assert validate_attachments(req).errors == {
            "attachments": ["You can upload a maximum of 5 files"],
        }

    def test_five_attachments_allowed(self):
        req = _request(attachment_ids=[uuid.uuid4() for _ in range(5)])
        assert validate_attachments(req).ok

    def test_valid_sick_leave(self):
        """{SickLeave: 10}, single day, 12-char reason → admissible."""
        req = _request(
            leave_type="SickLeave",
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 1),
            reason="Doctor visit",
        )
        assert validate_request(req, [], {"SickLeave": 10}).ok

    def test_collects_every_error(self):
        req = LeaveRequestInput(emergency_contact="Sipho")
        result = validate_request(req, [], {})
        assert set(result.errors) == {
            "leave_type", "reason", "emergency_phone", "start_date", "end_date",
        }

    def test_exhausted_balance_reported_once(self):
        result = validate_request(_request(), [], {"AnnualLeave": 0})
        assert result.errors == {"leave_type": ["You have no Annual Leave days remaining"]}

    def test_partial_balance_still_checked(self):
        result = validate_request(_request(), [], {"AnnualLeave": 2})
        assert result.errors == {
            "dates": ["You only have 2 Annual Leave days remaining, but you're requesting 3 days"],
        }

    def test_400_day_request(self):
        start = date(2024, 1, 1)
        req = _request(leave_type="UnpaidLeave", start_date=start, end_date=start + timedelta(days=399))
        result = validate_request(req, [], {})
        assert any("cannot exceed 365 days" in m for m in result.errors["dates"])

    def test_raise_for_errors(self):
        result = ValidationResult()
        result.add("reason", "Please provide a reason")
        with pytest.raises(ValidationException) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.status_code == 422
        assert exc_info.value.errors == {"reason": ["Please provide a reason"]}

    def test_ok_result_does_not_raise(self):
        ValidationResult().raise_for_errors()
