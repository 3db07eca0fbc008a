"""
Expansion of recurring availability slots into concrete occurrences.

Occurrences are generated in wall-clock time of the given timezone, so a
weekly 09:00 slot stays at 09:00 across daylight-saving changes. Monthly
slots land on the same day of the month and skip months without that day.
"""

import calendar
from collections.abc import Iterable, Iterator
from dataclasses import replace
from datetime import datetime, timedelta, tzinfo

from availnow.models import AvailabilitySlot, Recurrence
from availnow.overlap import overlaps

_STEP_DAYS = {
    Recurrence.DAILY: 1,
    Recurrence.WEEKLY: 7,
}


def _add_months(value: datetime, months: int) -> datetime | None:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    if value.day > calendar.monthrange(year, month)[1]:
        return None
    return value.replace(year=year, month=month)


def _occurrence_starts(first: datetime, recurrence: Recurrence, window_start: datetime) -> Iterator[datetime]:
    if recurrence in _STEP_DAYS:
        step = _STEP_DAYS[recurrence]
        # Jump close to the window instead of walking from the first occurrence
        skip = max(0, (window_start - first).days // step - 1)
        index = skip
        while True:
            yield first + timedelta(days=step * index)
            index += 1
    else:
        months_gap = (window_start.year - first.year) * 12 + (window_start.month - first.month)
        index = max(0, months_gap - 1)
        while True:
            start = _add_months(first, index)
            if start is not None:
                yield start
            index += 1


def expand_slot(
    slot: AvailabilitySlot,
    window_start: datetime,
    window_end: datetime,
    tz: tzinfo,
) -> list[AvailabilitySlot]:
    """Return the occurrences of slot that overlap [window_start, window_end)."""
    if slot.recurrence == Recurrence.NONE:
        if overlaps(slot.start, slot.end, window_start, window_end):
            return [slot]
        return []

    duration = slot.end - slot.start
    first = slot.start.astimezone(tz)
    occurrences = []

    for start in _occurrence_starts(first, slot.recurrence, window_start.astimezone(tz)):
        if start >= window_end:
            break
        end = start + duration
        if overlaps(start, end, window_start, window_end):
            occurrences.append(replace(slot, start=start, end=end))

    return occurrences


def expand_slots(
    slots: Iterable[AvailabilitySlot],
    window_start: datetime,
    window_end: datetime,
    tz: tzinfo,
) -> list[AvailabilitySlot]:
    """Expand every slot and return occurrences sorted by start."""
    expanded = []
    for slot in slots:
        expanded.extend(expand_slot(slot, window_start, window_end, tz))
    expanded.sort(key=lambda s: s.start)
    return expanded


__all__ = ["expand_slot", "expand_slots"]
