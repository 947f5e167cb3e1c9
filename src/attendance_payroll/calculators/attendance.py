"""Attendance day resolution: clock events to worked/late/undertime/OT minutes."""

from __future__ import annotations

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from attendance_payroll.calculators.errors import (
    MalformedShiftWindowError,
    MissingShiftWindowError,
    PayrollComputationError,
)
from attendance_payroll.calculators.types import (
    AttendanceDay,
    PayrollPolicy,
    ResolvedMinutes,
    ShiftWindow,
)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, zero if end is not after start."""
    if end <= start:
        return 0
    return int((end - start).total_seconds() // 60)


class AttendanceResolver:
    """Derives minute buckets for one employee-day.

    Rules:
    - no premiums without both clock events
    - late/undertime are excused only by their own approval flag
    - early-in OT needs early_in_approved, late-out OT needs late_out_approved;
      an excused late arrival never turns into OT
    - worked minutes are clamped to the shift window and lose the unpaid
      break once the in-shift overlap exceeds the break threshold
    - an approved break override replaces the shift break outright; the
      minutes it saves first cancel undertime, then count as OT once the
      regular schedule is complete
    - night minutes are the worked (or approved OT) time inside the
      company night window
    """

    def __init__(self, policy: PayrollPolicy | None = None):
        self.policy = policy or PayrollPolicy()
        self._tz = ZoneInfo(self.policy.timezone)

    def resolve(self, day: AttendanceDay, shift: ShiftWindow | None) -> ResolvedMinutes:
        """Resolve one attendance day against its shift window.

        Raises:
            MissingShiftWindowError: clock events exist but no shift is assigned
            MalformedShiftWindowError: scheduled end is not after scheduled start
        """
        if not day.has_logs:
            return ResolvedMinutes()

        if shift is None:
            raise MissingShiftWindowError(day.work_date, day.employee_id)

        sched_start, sched_end = shift.scheduled_bounds(day.work_date)
        if sched_end <= sched_start:
            raise MalformedShiftWindowError(
                f"Shift {shift.start_time.isoformat()}-{shift.end_time.isoformat()} "
                "ends before it starts",
                employee_id=day.employee_id,
                work_date=day.work_date,
            )

        clock_in = self._to_local(day.actual_in)  # type: ignore[arg-type]
        clock_out = self._to_local(day.actual_out)  # type: ignore[arg-type]
        if clock_out < clock_in:
            # Clock-out past midnight
            clock_out += timedelta(days=1)

        overlap_start = max(clock_in, sched_start)
        overlap_end = min(clock_out, sched_end)
        overlap = minutes_between(overlap_start, overlap_end)

        break_adjustment = 0
        if day.break_minutes_applied is not None:
            if day.break_minutes_applied < 0:
                raise PayrollComputationError(
                    f"Break override {day.break_minutes_applied} is negative",
                    day.employee_id,
                    day.work_date,
                )
            break_applied = min(day.break_minutes_applied, overlap)
            break_adjustment = max(0, shift.break_minutes - day.break_minutes_applied)
        else:
            break_applied = shift.break_minutes if overlap > shift.break_threshold_minutes else 0
        worked = max(0, overlap - break_applied)

        # A shortened break turns worked time past the regular schedule into OT
        break_ot = 0
        if break_adjustment:
            regular = minutes_between(sched_start, sched_end) - shift.break_minutes
            break_ot = min(break_adjustment, max(0, worked - regular))
            worked -= break_ot

        late = 0
        if not day.late_in_approved:
            late = minutes_between(sched_start, self._clamp(clock_in, sched_start, sched_end))

        undertime = 0
        if not day.early_out_approved:
            undertime = minutes_between(self._clamp(clock_out, sched_start, sched_end), sched_end)
            undertime = max(0, undertime - break_adjustment)

        early_ot_interval: tuple[datetime, datetime] | None = None
        if day.early_in_approved and clock_in < sched_start:
            early_ot_interval = (clock_in, min(clock_out, sched_start))

        late_ot_interval: tuple[datetime, datetime] | None = None
        if day.late_out_approved and clock_out > sched_end:
            late_ot_interval = (max(clock_in, sched_end), clock_out)

        early_ot = minutes_between(*early_ot_interval) if early_ot_interval else 0
        late_ot = minutes_between(*late_ot_interval) if late_ot_interval else 0

        night = 0
        if worked:
            night = min(worked, self.night_overlap(overlap_start, overlap_end))

        night_ot = 0
        for interval in (early_ot_interval, late_ot_interval):
            if interval is not None:
                night_ot += self.night_overlap(*interval)

        return ResolvedMinutes(
            worked_minutes=worked,
            late_minutes=late,
            undertime_minutes=undertime,
            early_ot_minutes=early_ot,
            late_ot_minutes=late_ot,
            night_minutes=night,
            night_ot_minutes=night_ot,
            break_minutes_applied=break_applied,
            break_ot_minutes=break_ot,
        )

    def night_overlap(self, start: datetime, end: datetime) -> int:
        """Minutes of [start, end) that fall inside the night window."""
        if end <= start:
            return 0

        night_start = self.policy.night_start
        night_end = self.policy.night_end
        crosses_midnight = night_end <= night_start

        total = 0
        first = start.date() - timedelta(days=1)
        for offset in range((end.date() - first).days + 1):
            anchor = first + timedelta(days=offset)
            window_start = datetime.combine(anchor, night_start)
            window_end = datetime.combine(
                anchor + timedelta(days=1) if crosses_midnight else anchor, night_end
            )
            total += minutes_between(max(start, window_start), min(end, window_end))
        return total

    def _to_local(self, value: datetime) -> datetime:
        # Naive timestamps are already company-local
        if value.tzinfo is None:
            return value
        return value.astimezone(self._tz).replace(tzinfo=None)

    @staticmethod
    def _clamp(value: datetime, low: datetime, high: datetime) -> datetime:
        return max(low, min(value, high))


def resolve_attendance_day(
    day: AttendanceDay,
    shift: ShiftWindow | None,
    policy: PayrollPolicy | None = None,
) -> ResolvedMinutes:
    """Convenience wrapper around AttendanceResolver.resolve."""
    return AttendanceResolver(policy).resolve(day, shift)


def shift_for(day: AttendanceDay, default_shift: ShiftWindow | None) -> ShiftWindow | None:
    """Batch-assigned shift wins over the employee's default shift."""
    return day.shift if day.shift is not None else default_shift
