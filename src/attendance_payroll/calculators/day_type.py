"""Day-type classification from the holiday calendar and rest-day policy."""

from __future__ import annotations

from datetime import date

from attendance_payroll.calculators.errors import ConfigurationIntegrityError
from attendance_payroll.calculators.types import (
    CalendarEvent,
    CalendarEventType,
    DayClassification,
    DayType,
)

DEFAULT_REST_DAYS = frozenset({5, 6})  # Saturday, Sunday

_EVENT_DAY_TYPES = {
    CalendarEventType.REGULAR_HOLIDAY: DayType.REGULAR_HOLIDAY,
    CalendarEventType.SPECIAL_HOLIDAY: DayType.SPECIAL_HOLIDAY,
}


class DayTypeClassifier:
    """Classifies dates as workday, rest day, or holiday.

    Holiday type comes from the calendar; the rest-day flag comes from the
    weekly rest-day set and is kept independent, so a regular holiday on a
    Sunday is (REGULAR_HOLIDAY, is_rest_day=True). A SPECIAL_WORKING event
    turns the date into an ordinary workday even on a weekly rest day.
    """

    def __init__(
        self,
        events: list[CalendarEvent] | tuple[CalendarEvent, ...] = (),
        rest_days: frozenset[int] | None = None,
    ):
        self.rest_days = DEFAULT_REST_DAYS if rest_days is None else frozenset(rest_days)
        self._events: dict[date, CalendarEvent] = {}
        for event in events:
            existing = self._events.get(event.event_date)
            if existing is not None and existing != event:
                raise ConfigurationIntegrityError(
                    f"Conflicting calendar events '{existing.name}' and '{event.name}'",
                    work_date=event.event_date,
                )
            self._events[event.event_date] = event

    def classify(self, d: date) -> DayClassification:
        event = self.event_for(d)
        is_rest_day = d.weekday() in self.rest_days

        if event is not None:
            if event.event_type == CalendarEventType.SPECIAL_WORKING:
                return DayClassification(DayType.WORKDAY, False, event.name)
            return DayClassification(_EVENT_DAY_TYPES[event.event_type], is_rest_day, event.name)

        if is_rest_day:
            return DayClassification(DayType.REST_DAY, True)
        return DayClassification(DayType.WORKDAY, False)

    def event_for(self, d: date) -> CalendarEvent | None:
        return self._events.get(d)
