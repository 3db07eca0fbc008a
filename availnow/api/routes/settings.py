"""Business hours (owner only)."""

from fastapi import APIRouter, Depends

from availnow.api.deps import get_business_hours_store, get_current_user_id
from availnow.api.schemas import BusinessHoursUpdate
from availnow.models import BusinessHours
from availnow.storage.business_hours import BusinessHoursStore

router = APIRouter()


@router.get("/business-hours")
async def get_business_hours(
    user_id: str = Depends(get_current_user_id),
    store: BusinessHoursStore = Depends(get_business_hours_store),
):
    return store.get(user_id).to_dict()


@router.put("/business-hours")
async def save_business_hours(
    body: BusinessHoursUpdate,
    user_id: str = Depends(get_current_user_id),
    store: BusinessHoursStore = Depends(get_business_hours_store),
):
    hours = BusinessHours.from_dict(body.model_dump())
    return store.save(user_id, hours).to_dict()
