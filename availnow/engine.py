"""
Reconciliation engine: per-bucket free/busy decisions.

Pure functions over already-fetched data. Every widget surface (month
grid, day slots, mobile list) goes through _evaluate_day, so they cannot
disagree about a bucket.

A bucket is available iff no busy event (widened by the business-hours
buffers) overlaps it, and either the user has no explicit slots in play or
at least one available explicit slot overlaps it.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timedelta

from availnow.errors import ValidationError
from availnow.models import AvailabilitySlot, BusinessHours, CalendarEvent, DaySlots, Slot
from availnow.overlap import overlaps


def _validate_interval(interval: int) -> int:
    if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
        raise ValidationError(f"Interval must be a positive number of minutes, got {interval!r}")
    return interval


def today_in(hours: BusinessHours) -> date:
    """Current date on the business-hours wall clock."""
    return datetime.now(hours.tzinfo).date()


def bucket_count(hours: BusinessHours, interval: int) -> int:
    _validate_interval(interval)
    start = hours.start_time.hour * 60 + hours.start_time.minute
    end = hours.end_time.hour * 60 + hours.end_time.minute
    return max(0, (end - start) // interval)


def bucket_windows(day: date, hours: BusinessHours, interval: int) -> list[tuple[datetime, datetime]]:
    """
    Bucket boundaries for one day, as aware datetimes in the user's timezone.

    A trailing partial bucket is not emitted.
    """
    tz = hours.tzinfo
    step = timedelta(minutes=interval)
    opening = datetime.combine(day, hours.start_time, tzinfo=tz)
    return [
        (opening + step * i, opening + step * (i + 1))
        for i in range(bucket_count(hours, interval))
    ]


def busy_window(event: CalendarEvent, hours: BusinessHours) -> tuple[datetime, datetime]:
    """
    The span an event blocks.

    All-day events cover their whole calendar dates in the user's timezone;
    timed events are widened by the buffers.
    """
    if event.all_day:
        tz = hours.tzinfo
        first = event.start.date()
        last = event.end.date()
        if last <= first:
            last = first + timedelta(days=1)
        return (
            datetime.combine(first, time.min, tzinfo=tz),
            datetime.combine(last, time.min, tzinfo=tz),
        )

    return (
        event.start - timedelta(minutes=hours.buffer_before),
        event.end + timedelta(minutes=hours.buffer_after),
    )


def _evaluate_day(
    day: date,
    events: Iterable[CalendarEvent],
    explicit_slots: Iterable[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date | None,
    allow_list: bool | None,
) -> list[tuple[datetime, datetime, bool]]:
    """The single decision routine behind every availability surface."""
    windows = bucket_windows(day, hours, interval)
    if today is None:
        today = today_in(hours)

    if not windows:
        return []
    if not hours.is_working_day(day) or day < today:
        return [(start, end, False) for start, end in windows]

    day_start, day_end = windows[0][0], windows[-1][1]
    busy = [
        window
        for window in (busy_window(e, hours) for e in events)
        if overlaps(window[0], window[1], day_start, day_end)
    ]
    slots = list(explicit_slots)
    # allow_list=None: closed-unless-opened applies when any slot was passed
    has_slots = bool(slots) if allow_list is None else allow_list
    open_slots = [s for s in slots if s.available]

    result = []
    for start, end in windows:
        has_event_overlap = any(overlaps(start, end, b_start, b_end) for b_start, b_end in busy)
        has_explicit_available = any(overlaps(start, end, s.start, s.end) for s in open_slots)
        available = not has_event_overlap and (not has_slots or has_explicit_available)
        result.append((start, end, available))
    return result


def compute_day_pattern(
    day: date,
    events: Iterable[CalendarEvent],
    explicit_slots: Iterable[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date | None = None,
    allow_list: bool | None = None,
) -> list[bool]:
    """
    One boolean per bucket of the business day.

    Non-working days and days before today are all-False at full length.

    Args:
        today: Reference date; defaults to today in the business-hours timezone
        allow_list: Force the closed-unless-opened policy on or off. When None
            it is on exactly when explicit_slots is non-empty.
    """
    return [available for _, _, available in _evaluate_day(day, events, explicit_slots, hours, interval, today, allow_list)]


def format_time_label(value: datetime) -> str:
    """12-hour label without a leading zero, e.g. '9:30 AM'."""
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def compute_day_slots(
    day: date,
    events: Iterable[CalendarEvent],
    explicit_slots: Iterable[AvailabilitySlot],
    hours: BusinessHours,
    interval: int,
    today: date | None = None,
    allow_list: bool | None = None,
) -> DaySlots:
    """Labelled buckets for one day, split into morning (before noon) and afternoon."""
    result = DaySlots(date=day)
    for start, end, available in _evaluate_day(day, events, explicit_slots, hours, interval, today, allow_list):
        slot = Slot(time=format_time_label(start), available=available, start=start, end=end)
        if start.hour < 12:
            result.morning.append(slot)
        else:
            result.afternoon.append(slot)
    return result


def find_next_available(day_patterns: Mapping[date, list[bool]], today: date) -> date | None:
    """First date on or after today, ascending, with at least one free bucket."""
    for day in sorted(day_patterns):
        if day >= today and any(day_patterns[day]):
            return day
    return None


__all__ = [
    "bucket_count",
    "bucket_windows",
    "busy_window",
    "compute_day_pattern",
    "compute_day_slots",
    "find_next_available",
    "format_time_label",
    "today_in",
]
