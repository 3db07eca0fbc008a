"""
Availability read path

Request-scoped: gathers business hours, explicit slots and provider busy
events for a window, then hands them to the presentation adapters. The
owner dashboard and the anonymous public widget use the same calls; only a
user id is needed and nothing secret is returned.
"""

from collections.abc import Callable
from datetime import date, datetime, time, timedelta

import structlog

from availnow.config import AvailabilityConfig
from availnow.engine import today_in
from availnow.errors import ValidationError
from availnow.logging_config import get_logger
from availnow.models import AvailabilitySlot, BusinessHours, CalendarEvent, DaySlots, WidgetEventKind
from availnow.orchestrator import IntegrationOrchestrator
from availnow.storage.business_hours import BusinessHoursStore
from availnow.storage.slots import AvailabilitySlotStore
from availnow.storage.widget_stats import WidgetEventTracker
from availnow.views import AvailabilityRange, build_day_range, build_day_slots, build_month_view, month_grid_dates

log = get_logger(__name__)


class AvailabilityService:
    def __init__(
        self,
        orchestrator: IntegrationOrchestrator,
        slots: AvailabilitySlotStore,
        business_hours: BusinessHoursStore,
        tracker: WidgetEventTracker,
        settings: AvailabilityConfig | None = None,
        today_provider: Callable[[BusinessHours], date] = today_in,
    ):
        self.orchestrator = orchestrator
        self.slots = slots
        self.business_hours = business_hours
        self.tracker = tracker
        self.settings = settings or AvailabilityConfig()
        self.today_provider = today_provider

    def _interval(self, interval: int | None) -> int:
        value = self.settings.interval_minutes if interval is None else interval
        if not isinstance(value, int) or value <= 0:
            raise ValidationError(f"Interval must be a positive number of minutes, got {value!r}")
        return value

    async def _gather(
        self,
        user_id: str,
        first: date,
        last: date,
        hours: BusinessHours,
    ) -> tuple[list[CalendarEvent], list[AvailabilitySlot], bool]:
        """Events, slot occurrences and the allow-list flag for [first, last]."""
        tz = hours.tzinfo
        window_start = datetime.combine(first, time.min, tzinfo=tz)
        window_end = datetime.combine(last + timedelta(days=1), time.min, tzinfo=tz)

        # Widen the provider query so buffered events just outside still count
        events = await self.orchestrator.fetch_busy_events_for_all_selected(
            user_id,
            window_start - timedelta(minutes=hours.buffer_after),
            window_end + timedelta(minutes=hours.buffer_before),
        )
        slots = self.slots.list_for_range(user_id, window_start, window_end, tz)
        allow_list = bool(slots) or self.slots.has_any(user_id)

        log.debug(
            "reconciling window",
            first=first.isoformat(),
            last=last.isoformat(),
            events=len(events),
            slots=len(slots),
            allow_list=allow_list,
        )
        return events, slots, allow_list

    async def get_range(
        self,
        user_id: str,
        start: date | None = None,
        days: int | None = None,
        interval: int | None = None,
        today: date | None = None,
        track_view: bool = True,
    ) -> AvailabilityRange:
        """Consecutive days starting at start (default: today), for list surfaces."""
        days = self.settings.display_days if days is None else days
        if days < 1 or days > self.settings.max_display_days:
            raise ValidationError(f"days must be between 1 and {self.settings.max_display_days}")
        interval = self._interval(interval)

        with structlog.contextvars.bound_contextvars(user_id=user_id):
            hours = self.business_hours.get(user_id)
            today = today or self.today_provider(hours)
            start = start or today
            last = start + timedelta(days=days - 1)

            events, slots, allow_list = await self._gather(user_id, start, last, hours)
            if track_view:
                self.tracker.record_event(user_id, WidgetEventKind.VIEW)

            return build_day_range(start, days, events, slots, hours, interval, today, allow_list)

    async def get_month(
        self,
        user_id: str,
        year: int,
        month: int,
        interval: int | None = None,
        today: date | None = None,
        track_view: bool = True,
    ) -> AvailabilityRange:
        """The 42-cell month grid."""
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        interval = self._interval(interval)

        with structlog.contextvars.bound_contextvars(user_id=user_id):
            hours = self.business_hours.get(user_id)
            today = today or self.today_provider(hours)
            grid = month_grid_dates(year, month)

            events, slots, allow_list = await self._gather(user_id, grid[0], grid[-1], hours)
            if track_view:
                self.tracker.record_event(user_id, WidgetEventKind.VIEW)

            return build_month_view(year, month, events, slots, hours, interval, today, allow_list)

    async def get_day_slots(
        self,
        user_id: str,
        day: date,
        interval: int | None = None,
        today: date | None = None,
    ) -> DaySlots:
        """Labelled morning/afternoon buckets for one day."""
        interval = self._interval(interval)

        with structlog.contextvars.bound_contextvars(user_id=user_id):
            hours = self.business_hours.get(user_id)
            today = today or self.today_provider(hours)

            events, slots, allow_list = await self._gather(user_id, day, day, hours)
            return build_day_slots(day, events, slots, hours, interval, today, allow_list)


__all__ = ["AvailabilityService"]
