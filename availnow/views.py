"""
Presentation adapters: month grid, day list and day slots.

Each surface calls the engine; none of them decides availability itself.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, timedelta

from availnow.engine import compute_day_pattern, compute_day_slots, find_next_available
from availnow.models import AvailabilitySlot, BusinessHours, CalendarEvent, DayAvailability, DaySlots

GRID_CELLS = 42


@dataclass
class AvailabilityRange:
    """A run of days plus the first one with a free bucket."""

    days: list[DayAvailability] = field(default_factory=list)
    next_available: date | None = None

    def to_dict(self) -> dict:
        return {
            "days": [d.to_dict() for d in self.days],
            "next_available": self.next_available.isoformat() if self.next_available else None,
        }


def month_grid_dates(year: int, month: int) -> list[date]:
    """Six Monday-first weeks covering the month, padded with neighbouring days."""
    first = date(year, month, 1)
    grid_start = first - timedelta(days=first.weekday())
    return [grid_start + timedelta(days=i) for i in range(GRID_CELLS)]


def day_range(start: date, days: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(days)]


def _build(
    dates: Sequence[date],
    events: Sequence[CalendarEvent],
    slots: Sequence[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date,
    allow_list: bool | None,
    month: int | None = None,
) -> AvailabilityRange:
    days = [
        DayAvailability(
            date=day,
            pattern=compute_day_pattern(day, events, slots, hours, interval, today=today, allow_list=allow_list),
            in_month=month is None or day.month == month,
        )
        for day in dates
    ]
    next_available = find_next_available({d.date: d.pattern for d in days}, today)
    return AvailabilityRange(days=days, next_available=next_available)


def build_month_view(
    year: int,
    month: int,
    events: Sequence[CalendarEvent],
    slots: Sequence[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date,
    allow_list: bool | None = None,
) -> AvailabilityRange:
    return _build(month_grid_dates(year, month), events, slots, hours, interval, today, allow_list, month=month)


def build_day_range(
    start: date,
    days: int,
    events: Sequence[CalendarEvent],
    slots: Sequence[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date,
    allow_list: bool | None = None,
) -> AvailabilityRange:
    """Consecutive days for the mobile and embeddable list."""
    return _build(day_range(start, days), events, slots, hours, interval, today, allow_list)


def build_day_slots(
    day: date,
    events: Sequence[CalendarEvent],
    slots: Sequence[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date,
    allow_list: bool | None = None,
) -> DaySlots:
    return compute_day_slots(day, events, slots, hours, interval, today=today, allow_list=allow_list)


__all__ = [
    "AvailabilityRange",
    "GRID_CELLS",
    "build_day_range",
    "build_day_slots",
    "build_month_view",
    "day_range",
    "month_grid_dates",
]
