"""Request bodies for the HTTP API."""

from datetime import datetime

from pydantic import BaseModel, Field

from availnow.models import Provider, Recurrence, WidgetEventKind


class SelectedCalendarIn(BaseModel):
    calendar_id: str = Field(min_length=1)
    provider: Provider = Provider.GOOGLE


class SelectedCalendarsUpdate(BaseModel):
    calendars: list[SelectedCalendarIn]


class SlotCreate(BaseModel):
    start: datetime
    end: datetime
    available: bool = True
    recurrence: Recurrence = Recurrence.NONE


class SlotUpdate(BaseModel):
    start: datetime | None = None
    end: datetime | None = None
    available: bool | None = None
    recurrence: Recurrence | None = None
    toggle: bool = False


class BusinessHoursUpdate(BaseModel):
    start_time: str = "09:00"
    end_time: str = "17:00"
    working_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    buffer_before: int = Field(default=0, ge=0)
    buffer_after: int = Field(default=0, ge=0)
    timezone: str = "UTC"


class WidgetEventIn(BaseModel):
    kind: WidgetEventKind
