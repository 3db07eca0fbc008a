"""Tests for availnow/availability.py

The read path is exercised end to end against a temp database, with only
the provider adapters mocked.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from availnow.availability import AvailabilityService
from availnow.config import AvailabilityConfig
from availnow.engine import compute_day_pattern
from availnow.errors import AuthError, ValidationError
from availnow.models import BusinessHours, CalendarEvent, Provider, Recurrence
from availnow.orchestrator import IntegrationOrchestrator
from availnow.storage.business_hours import BusinessHoursStore
from availnow.storage.slots import AvailabilitySlotStore
from availnow.storage.widget_stats import WidgetEventTracker
from tests.conftest import FIXED_NOW


MONDAY = date(2025, 3, 10)


@pytest.fixture
def slot_store(store) -> AvailabilitySlotStore:
    return AvailabilitySlotStore(store)


@pytest.fixture
def hours_store(store) -> BusinessHoursStore:
    return BusinessHoursStore(store)


@pytest.fixture
def tracker(store) -> WidgetEventTracker:
    return WidgetEventTracker(store)


@pytest.fixture
def service(token_store, selected_store, registry, slot_store, hours_store, tracker, clock) -> AvailabilityService:
    orchestrator = IntegrationOrchestrator(token_store, selected_store, registry, clock=clock)
    return AvailabilityService(
        orchestrator,
        slot_store,
        hours_store,
        tracker,
        AvailabilityConfig(),
        today_provider=lambda hours: MONDAY,
    )


@pytest.fixture
def connected(token_store, mock_user_id):
    return token_store.upsert(
        mock_user_id,
        Provider.GOOGLE,
        access_token="access-1",
        refresh_token="refresh-1",
        expires_at=FIXED_NOW + timedelta(hours=1),
    )


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 3, day, hour, minute, tzinfo=timezone.utc)


class TestGetRange:
    """Tests for the day-list surface."""

    @pytest.mark.asyncio
    async def test_busy_event_blocks_buckets(self, service, connected, google_adapter, sample_event, mock_user_id):
        google_adapter.list_events.return_value = [sample_event]
        result = await service.get_range(mock_user_id, days=1)

        pattern = result.days[0].pattern
        assert len(pattern) == 16
        assert pattern[2:4] == [False, False]
        assert pattern.count(False) == 2
        assert result.next_available == MONDAY

    @pytest.mark.asyncio
    async def test_matches_engine(self, service, connected, google_adapter, sample_event, mock_user_id):
        google_adapter.list_events.return_value = [sample_event]
        result = await service.get_range(mock_user_id, start=MONDAY, days=3)

        for day in result.days:
            assert day.pattern == compute_day_pattern(day.date, [sample_event], [], BusinessHours(), 30, today=MONDAY)

    @pytest.mark.asyncio
    async def test_records_view(self, service, tracker, mock_user_id):
        await service.get_range(mock_user_id, days=2)
        await service.get_range(mock_user_id, days=2, track_view=False)
        assert tracker.get_stats(mock_user_id).views == 1

    @pytest.mark.asyncio
    async def test_no_connection_uses_business_hours(self, service, google_adapter, mock_user_id):
        result = await service.get_range(mock_user_id, days=7)

        assert [d.has_availability for d in result.days] == [True] * 5 + [False] * 2
        google_adapter.list_events.assert_not_called()

    @pytest.mark.asyncio
    async def test_query_window_widened_by_buffers(
        self, service, hours_store, connected, google_adapter, mock_user_id
    ):
        hours_store.save(mock_user_id, BusinessHours(buffer_before=15, buffer_after=30, timezone="Europe/Berlin"))
        await service.get_range(mock_user_id, start=MONDAY, days=1)

        _, _, start, end = google_adapter.list_events.call_args.args
        # Berlin is UTC+1 in March before DST
        assert start == _utc(9, 23, 0) - timedelta(minutes=30)
        assert end == _utc(10, 23, 0) + timedelta(minutes=15)

    @pytest.mark.asyncio
    async def test_days_bounds(self, service, mock_user_id):
        with pytest.raises(ValidationError):
            await service.get_range(mock_user_id, days=0)
        with pytest.raises(ValidationError):
            await service.get_range(mock_user_id, days=61)

    @pytest.mark.asyncio
    async def test_bad_interval(self, service, mock_user_id):
        with pytest.raises(ValidationError):
            await service.get_range(mock_user_id, interval=0)

    @pytest.mark.asyncio
    async def test_auth_failure_degrades_to_open_widget(self, service, token_store, google_adapter, mock_user_id):
        token_store.upsert(
            mock_user_id,
            Provider.GOOGLE,
            access_token="stale",
            refresh_token="revoked",
            expires_at=FIXED_NOW - timedelta(minutes=1),
        )
        google_adapter.refresh_token.side_effect = AuthError(provider="google")
        result = await service.get_range(mock_user_id, days=1)

        # Fan-out drops the failing calendar rather than failing the widget
        assert result.days[0].has_availability


class TestExplicitSlots:
    """Tests for explicit slots flowing through the read path."""

    @pytest.mark.asyncio
    async def test_slot_closes_other_days(self, service, slot_store, mock_user_id):
        """Once any slot exists, days without an open slot are closed."""
        slot_store.create(mock_user_id, _utc(10, 9), _utc(10, 10))
        result = await service.get_range(mock_user_id, start=MONDAY, days=2)

        monday, tuesday = result.days
        assert monday.pattern[:2] == [True, True]
        assert monday.available_count == 2
        assert tuesday.has_availability is False

    @pytest.mark.asyncio
    async def test_weekly_slot_repeats(self, service, slot_store, mock_user_id):
        slot_store.create(mock_user_id, _utc(3, 14), _utc(3, 15), recurrence=Recurrence.WEEKLY)
        slots = await service.get_day_slots(mock_user_id, MONDAY)

        free = [s.time for s in slots.slots if s.available]
        assert free == ["2:00 PM", "2:30 PM"]

    @pytest.mark.asyncio
    async def test_event_beats_slot(self, service, slot_store, connected, google_adapter, sample_event, mock_user_id):
        slot_store.create(mock_user_id, _utc(10, 9), _utc(10, 12))
        google_adapter.list_events.return_value = [sample_event]
        result = await service.get_range(mock_user_id, start=MONDAY, days=1)

        assert result.days[0].pattern[:6] == [True, True, False, False, True, True]


class TestMonthAndDay:
    """Tests for the month grid and the day-slot surface."""

    @pytest.mark.asyncio
    async def test_month_grid(self, service, tracker, mock_user_id):
        result = await service.get_month(mock_user_id, 2025, 3)

        assert len(result.days) == 42
        assert result.days[0].date == date(2025, 2, 24)
        assert result.days[0].in_month is False
        assert result.next_available == MONDAY
        assert tracker.get_stats(mock_user_id).views == 1

    @pytest.mark.asyncio
    async def test_month_validation(self, service, mock_user_id):
        with pytest.raises(ValidationError):
            await service.get_month(mock_user_id, 2025, 13)

    @pytest.mark.asyncio
    async def test_day_slots_split_at_noon(self, service, tracker, mock_user_id):
        slots = await service.get_day_slots(mock_user_id, MONDAY, interval=60)

        assert [s.time for s in slots.morning] == ["9:00 AM", "10:00 AM", "11:00 AM"]
        assert slots.afternoon[0].time == "12:00 PM"
        assert len(slots.slots) == 8
        assert tracker.get_stats(mock_user_id).views == 0

    @pytest.mark.asyncio
    async def test_past_day_closed(self, service, mock_user_id):
        slots = await service.get_day_slots(mock_user_id, MONDAY - timedelta(days=1))
        assert len(slots.slots) == 16
        assert not any(s.available for s in slots.slots)

    @pytest.mark.asyncio
    async def test_all_day_event_in_user_timezone(
        self, service, hours_store, connected, google_adapter, mock_user_id
    ):
        hours_store.save(mock_user_id, BusinessHours(timezone="America/New_York"))
        google_adapter.list_events.return_value = [
            CalendarEvent(id="pto", start=_utc(10, 0), end=_utc(11, 0), all_day=True)
        ]
        result = await service.get_range(mock_user_id, start=MONDAY, days=2)

        assert result.days[0].has_availability is False
        assert result.days[1].has_availability is True
