"""Tests for day-type classification."""

from datetime import date

import pytest

from attendance_payroll.calculators.day_type import DayTypeClassifier
from attendance_payroll.calculators.errors import ConfigurationIntegrityError
from attendance_payroll.calculators.types import CalendarEvent, CalendarEventType, DayType

MONDAY = date(2026, 3, 2)
SATURDAY = date(2026, 3, 7)
SUNDAY = date(2026, 3, 8)


class TestDayTypeClassifier:
    """Test holiday and rest-day classification."""

    def test_plain_workday(self):
        result = DayTypeClassifier().classify(MONDAY)
        assert result.day_type == DayType.WORKDAY
        assert result.is_rest_day is False

    def test_weekly_rest_day(self):
        """Saturday and Sunday are rest days by default."""
        for d in (SATURDAY, SUNDAY):
            result = DayTypeClassifier().classify(d)
            assert result.day_type == DayType.REST_DAY
            assert result.is_rest_day is True

    def test_custom_rest_days(self):
        """An employee resting on Mondays works on Sundays."""
        classifier = DayTypeClassifier(rest_days=frozenset({0}))
        assert classifier.classify(MONDAY).day_type == DayType.REST_DAY
        assert classifier.classify(SUNDAY).day_type == DayType.WORKDAY

    def test_regular_holiday_on_workday(self):
        event = CalendarEvent(MONDAY, CalendarEventType.REGULAR_HOLIDAY, "Araw ng Kagitingan")
        result = DayTypeClassifier([event]).classify(MONDAY)
        assert result.day_type == DayType.REGULAR_HOLIDAY
        assert result.is_rest_day is False
        assert result.event_name == "Araw ng Kagitingan"

    def test_holiday_on_rest_day_keeps_both_facts(self):
        """A regular holiday on a Sunday is a holiday and a rest day."""
        event = CalendarEvent(SUNDAY, CalendarEventType.REGULAR_HOLIDAY)
        result = DayTypeClassifier([event]).classify(SUNDAY)
        assert result.day_type == DayType.REGULAR_HOLIDAY
        assert result.is_rest_day is True

    def test_special_holiday(self):
        event = CalendarEvent(SATURDAY, CalendarEventType.SPECIAL_HOLIDAY)
        result = DayTypeClassifier([event]).classify(SATURDAY)
        assert result.day_type == DayType.SPECIAL_HOLIDAY
        assert result.is_rest_day is True

    def test_special_working_day_overrides_rest_day(self):
        """A declared working Saturday is an ordinary workday."""
        event = CalendarEvent(SATURDAY, CalendarEventType.SPECIAL_WORKING)
        result = DayTypeClassifier([event]).classify(SATURDAY)
        assert result.day_type == DayType.WORKDAY
        assert result.is_rest_day is False

    def test_duplicate_identical_events_are_accepted(self):
        event = CalendarEvent(MONDAY, CalendarEventType.SPECIAL_HOLIDAY, "Ninoy Aquino Day")
        classifier = DayTypeClassifier([event, event])
        assert classifier.event_for(MONDAY) == event

    def test_conflicting_events_rejected(self):
        """Two different events on one date is a configuration error."""
        events = [
            CalendarEvent(MONDAY, CalendarEventType.REGULAR_HOLIDAY, "A"),
            CalendarEvent(MONDAY, CalendarEventType.SPECIAL_HOLIDAY, "B"),
        ]
        with pytest.raises(ConfigurationIntegrityError) as exc_info:
            DayTypeClassifier(events)

        assert exc_info.value.work_date == MONDAY
