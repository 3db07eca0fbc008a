"""
Widget Routes - public availability

The /{user_id}/... endpoints are anonymous: they take the widget owner's
id from the path and never return credentials or event details.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from availnow.api.deps import get_availability_service, get_current_user_id, get_tracker
from availnow.api.schemas import WidgetEventIn
from availnow.availability import AvailabilityService
from availnow.storage.widget_stats import WidgetEventTracker

router = APIRouter()


@router.get("/stats")
async def get_stats(
    user_id: str = Depends(get_current_user_id),
    tracker: WidgetEventTracker = Depends(get_tracker),
):
    return tracker.get_stats(user_id).to_dict()


@router.get("/{user_id}/availability")
async def get_availability(
    user_id: str,
    start: date | None = Query(None),
    days: int | None = Query(None, ge=1),
    interval: int | None = Query(None, ge=5, le=240),
    service: AvailabilityService = Depends(get_availability_service),
):
    result = await service.get_range(user_id, start=start, days=days, interval=interval)
    return result.to_dict()


@router.get("/{user_id}/month")
async def get_month(
    user_id: str,
    year: int = Query(..., ge=1970, le=9999),
    month: int = Query(..., ge=1, le=12),
    interval: int | None = Query(None, ge=5, le=240),
    service: AvailabilityService = Depends(get_availability_service),
):
    result = await service.get_month(user_id, year, month, interval=interval)
    return result.to_dict()


@router.get("/{user_id}/day/{day}")
async def get_day(
    user_id: str,
    day: date,
    interval: int | None = Query(None, ge=5, le=240),
    service: AvailabilityService = Depends(get_availability_service),
):
    result = await service.get_day_slots(user_id, day, interval=interval)
    return result.to_dict()


@router.post("/{user_id}/events")
async def record_event(
    user_id: str,
    body: WidgetEventIn,
    tracker: WidgetEventTracker = Depends(get_tracker),
):
    recorded = tracker.record_event(user_id, body.kind)
    return {"recorded": recorded}
