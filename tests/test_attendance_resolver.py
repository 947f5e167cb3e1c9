"""Tests for attendance day resolution."""

from dataclasses import replace
from datetime import date, datetime, time, timezone

import pytest

from attendance_payroll.calculators.attendance import (
    AttendanceResolver,
    minutes_between,
    resolve_attendance_day,
    shift_for,
)
from attendance_payroll.calculators.errors import (
    MalformedShiftWindowError,
    MissingShiftWindowError,
    PayrollComputationError,
)
from attendance_payroll.calculators.types import AttendanceDay, ResolvedMinutes, ShiftWindow

WORK_DATE = date(2026, 3, 2)


class TestMinutesBetween:
    """Test whole-minute arithmetic."""

    def test_floors_partial_minutes(self):
        """Seconds short of a full minute do not count."""
        start = datetime(2026, 3, 2, 8, 0, 0)
        assert minutes_between(start, datetime(2026, 3, 2, 8, 0, 59)) == 0
        assert minutes_between(start, datetime(2026, 3, 2, 8, 1, 30)) == 1

    def test_reversed_interval_is_zero(self):
        """An end before the start yields zero, never negative."""
        assert minutes_between(datetime(2026, 3, 2, 9), datetime(2026, 3, 2, 8)) == 0


class TestAttendanceResolver:
    """Test minute buckets for a single day."""

    def test_late_arrival(self, make_attendance, day_shift):
        """30 minutes late on an 08:00-17:00 shift: 450 worked, 30 late."""
        day = make_attendance("E1", WORK_DATE, (8, 30), (17, 0))
        result = resolve_attendance_day(day, day_shift)

        assert result.worked_minutes == 450
        assert result.late_minutes == 30
        assert result.undertime_minutes == 0
        assert result.ot_minutes == 0
        assert result.break_minutes_applied == 60

    def test_full_day(self, make_attendance, day_shift):
        """On-time full day nets the break out of the shift."""
        result = resolve_attendance_day(make_attendance("E1", WORK_DATE), day_shift)
        assert result.worked_minutes == 480
        assert result.late_minutes == 0
        assert result.undertime_minutes == 0

    def test_no_logs_yields_zeros(self, day_shift):
        """A day without clock events produces no minutes at all."""
        day = AttendanceDay(employee_id="E1", work_date=WORK_DATE)
        assert resolve_attendance_day(day, day_shift) == ResolvedMinutes()

    def test_single_clock_event_yields_zeros(self, make_attendance, day_shift):
        """A missing clock-out means nothing is derived."""
        day = make_attendance("E1", WORK_DATE, (8, 0), None)
        assert resolve_attendance_day(day, day_shift) == ResolvedMinutes()

    def test_no_logs_without_shift_is_not_an_error(self):
        """Missing shift only matters when there are clock events."""
        day = AttendanceDay(employee_id="E1", work_date=WORK_DATE)
        assert resolve_attendance_day(day, None) == ResolvedMinutes()

    def test_undertime(self, make_attendance, day_shift):
        """Leaving at 16:00 is 60 minutes of undertime."""
        day = make_attendance("E1", WORK_DATE, (8, 0), (16, 0))
        result = resolve_attendance_day(day, day_shift)
        assert result.worked_minutes == 420
        assert result.undertime_minutes == 60

    def test_early_out_approval_excuses_undertime(self, make_attendance, day_shift):
        """Approved early-out removes the undertime but not the short hours."""
        day = make_attendance("E1", WORK_DATE, (8, 0), (16, 0), early_out_approved=True)
        result = resolve_attendance_day(day, day_shift)
        assert result.worked_minutes == 420
        assert result.undertime_minutes == 0

    def test_late_approval_does_not_excuse_undertime(self, make_attendance, day_shift):
        """Each flag excuses only its own deduction."""
        day = make_attendance("E1", WORK_DATE, (8, 30), (16, 0), late_in_approved=True)
        result = resolve_attendance_day(day, day_shift)
        assert result.late_minutes == 0
        assert result.undertime_minutes == 60

    def test_late_approval_never_creates_overtime(self, make_attendance, day_shift):
        """An excused late arrival that stays late is not OT without its own approval."""
        day = make_attendance("E1", WORK_DATE, (8, 30), (17, 30), late_in_approved=True)
        result = resolve_attendance_day(day, day_shift)
        assert result.late_minutes == 0
        assert result.ot_minutes == 0

    def test_late_out_overtime_requires_approval(self, make_attendance, day_shift):
        """Staying until 19:00 is 120 OT minutes only when approved."""
        unapproved = make_attendance("E1", WORK_DATE, (8, 0), (19, 0))
        approved = make_attendance("E1", WORK_DATE, (8, 0), (19, 0), late_out_approved=True)

        assert resolve_attendance_day(unapproved, day_shift).late_ot_minutes == 0
        result = resolve_attendance_day(approved, day_shift)
        assert result.late_ot_minutes == 120
        assert result.early_ot_minutes == 0
        assert result.worked_minutes == 480

    def test_early_in_overtime_requires_its_own_approval(self, make_attendance, day_shift):
        """Arriving at 06:00 counts only with early_in_approved."""
        late_out_only = make_attendance("E1", WORK_DATE, (6, 0), (17, 0), late_out_approved=True)
        early_in = make_attendance("E1", WORK_DATE, (6, 0), (17, 0), early_in_approved=True)

        assert resolve_attendance_day(late_out_only, day_shift).ot_minutes == 0
        assert resolve_attendance_day(early_in, day_shift).early_ot_minutes == 120

    def test_break_not_applied_below_threshold(self, make_attendance, day_shift):
        """A four-hour half day keeps every minute."""
        day = make_attendance("E1", WORK_DATE, (8, 0), (12, 0), early_out_approved=True)
        result = resolve_attendance_day(day, day_shift)
        assert result.break_minutes_applied == 0
        assert result.worked_minutes == 240

    def test_overnight_shift_and_night_minutes(self, make_attendance, night_shift):
        """22:00-07:00: 480 worked, all of them inside the night window."""
        day = make_attendance("E1", WORK_DATE, (22, 0), (7, 0))
        result = resolve_attendance_day(day, night_shift)

        assert result.worked_minutes == 480
        assert result.night_minutes == 480
        assert result.late_minutes == 0
        assert result.undertime_minutes == 0

    def test_day_shift_has_no_night_minutes(self, make_attendance, day_shift):
        result = resolve_attendance_day(make_attendance("E1", WORK_DATE), day_shift)
        assert result.night_minutes == 0

    def test_overtime_into_night_window(self, make_attendance, day_shift):
        """Approved OT until 23:00 has its last hour in the night window."""
        day = make_attendance("E1", WORK_DATE, (8, 0), (23, 0), late_out_approved=True)
        result = resolve_attendance_day(day, day_shift)
        assert result.late_ot_minutes == 360
        assert result.night_ot_minutes == 60
        assert result.night_minutes == 0

    def test_timezone_aware_logs_use_company_timezone(self, day_shift):
        """00:30 UTC is 08:30 in Manila."""
        day = AttendanceDay(
            employee_id="E1",
            work_date=WORK_DATE,
            actual_in=datetime(2026, 3, 2, 0, 30, tzinfo=timezone.utc),
            actual_out=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
        )
        result = AttendanceResolver().resolve(day, day_shift)
        assert result.late_minutes == 30
        assert result.worked_minutes == 450

    def test_missing_shift_window(self, make_attendance):
        """Clock events with no shift assigned is a hard error."""
        with pytest.raises(MissingShiftWindowError) as exc_info:
            resolve_attendance_day(make_attendance("E1", WORK_DATE), None)

        assert exc_info.value.work_date == WORK_DATE
        assert exc_info.value.employee_id == "E1"
        assert exc_info.value.code == "MISSING_SHIFT_WINDOW"

    def test_malformed_shift_window(self, make_attendance):
        """An end before start without the overnight flag is rejected."""
        shift = ShiftWindow(start_time=time(17, 0), end_time=time(8, 0))
        with pytest.raises(MalformedShiftWindowError):
            resolve_attendance_day(make_attendance("E1", WORK_DATE), shift)


class TestBreakOverride:
    """Test a per-day approved break length."""

    def test_skipped_break_becomes_overtime(self, make_attendance, day_shift):
        """No break on a full day: 480 regular plus 60 OT."""
        day = replace(make_attendance("E1", WORK_DATE), break_minutes_applied=0)
        result = resolve_attendance_day(day, day_shift)

        assert result.worked_minutes == 480
        assert result.break_minutes_applied == 0
        assert result.break_ot_minutes == 60
        assert result.ot_minutes == 60
        assert result.undertime_minutes == 0

    def test_skipped_break_covers_early_leave(self, make_attendance, day_shift):
        """Working through the break then leaving at 16:00 is a full day."""
        day = replace(make_attendance("E1", WORK_DATE, (8, 0), (16, 0)), break_minutes_applied=0)
        result = resolve_attendance_day(day, day_shift)

        assert result.worked_minutes == 480
        assert result.undertime_minutes == 0
        assert result.break_ot_minutes == 0

    def test_shortened_break(self, make_attendance, day_shift):
        day = replace(make_attendance("E1", WORK_DATE), break_minutes_applied=30)
        result = resolve_attendance_day(day, day_shift)

        assert result.worked_minutes == 480
        assert result.break_ot_minutes == 30

    def test_longer_break_reduces_worked_minutes(self, make_attendance, day_shift):
        day = replace(make_attendance("E1", WORK_DATE), break_minutes_applied=90)
        result = resolve_attendance_day(day, day_shift)

        assert result.worked_minutes == 450
        assert result.break_ot_minutes == 0
        assert result.undertime_minutes == 0

    def test_negative_override_rejected(self, make_attendance, day_shift):
        day = replace(make_attendance("E1", WORK_DATE), break_minutes_applied=-5)
        with pytest.raises(PayrollComputationError) as exc_info:
            resolve_attendance_day(day, day_shift)
        assert exc_info.value.work_date == WORK_DATE


class TestShiftAssignment:
    """Test per-day shift selection."""

    def test_assigned_shift_overrides_default(self, day_shift, night_shift):
        day = AttendanceDay(employee_id="E1", work_date=WORK_DATE, shift=night_shift)
        assert shift_for(day, day_shift) is night_shift

    def test_default_shift_used_when_unassigned(self, day_shift):
        day = AttendanceDay(employee_id="E1", work_date=WORK_DATE)
        assert shift_for(day, day_shift) is day_shift
