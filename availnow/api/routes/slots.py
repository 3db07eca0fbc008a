"""Explicit availability slots (owner only)."""

from fastapi import APIRouter, Depends, Query, status

from availnow.api.deps import get_current_user_id, get_slot_store
from availnow.api.schemas import SlotCreate, SlotUpdate
from availnow.models import parse_datetime
from availnow.storage.slots import AvailabilitySlotStore

router = APIRouter()


@router.get("")
async def list_slots(
    start: str = Query(..., description="ISO-8601 range start, with offset"),
    end: str = Query(..., description="ISO-8601 range end, with offset"),
    user_id: str = Depends(get_current_user_id),
    slots: AvailabilitySlotStore = Depends(get_slot_store),
):
    occurrences = slots.list_for_range(user_id, parse_datetime(start), parse_datetime(end))
    return {"slots": [s.to_dict() for s in occurrences]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_slot(
    body: SlotCreate,
    user_id: str = Depends(get_current_user_id),
    slots: AvailabilitySlotStore = Depends(get_slot_store),
):
    slot = slots.create(user_id, body.start, body.end, body.available, body.recurrence)
    return slot.to_dict()


@router.patch("/{slot_id}")
async def update_slot(
    slot_id: str,
    body: SlotUpdate,
    user_id: str = Depends(get_current_user_id),
    slots: AvailabilitySlotStore = Depends(get_slot_store),
):
    if body.toggle:
        return slots.toggle(user_id, slot_id).to_dict()
    slot = slots.update(
        user_id,
        slot_id,
        start=body.start,
        end=body.end,
        available=body.available,
        recurrence=body.recurrence,
    )
    return slot.to_dict()


@router.delete("/{slot_id}")
async def delete_slot(
    slot_id: str,
    user_id: str = Depends(get_current_user_id),
    slots: AvailabilitySlotStore = Depends(get_slot_store),
):
    slots.delete(user_id, slot_id)
    return {"success": True, "id": slot_id}
