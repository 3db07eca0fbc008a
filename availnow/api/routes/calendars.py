"""Calendar listing and selection (owner only)."""

from fastapi import APIRouter, Depends

from availnow.api.deps import get_current_user_id, get_oauth_manager, get_orchestrator, get_selected_store
from availnow.api.schemas import SelectedCalendarsUpdate
from availnow.models import SelectedCalendar
from availnow.oauth_manager import OAuthManager
from availnow.orchestrator import IntegrationOrchestrator
from availnow.storage.selected_calendars import SelectedCalendarStore

router = APIRouter()


@router.get("/selected")
async def get_selected(
    user_id: str = Depends(get_current_user_id),
    selected: SelectedCalendarStore = Depends(get_selected_store),
):
    return {"calendars": [c.to_dict() for c in selected.list_for_user(user_id)]}


@router.put("/selected")
async def save_selected(
    body: SelectedCalendarsUpdate,
    user_id: str = Depends(get_current_user_id),
    manager: OAuthManager = Depends(get_oauth_manager),
):
    saved = manager.save_selected_calendars(
        user_id,
        [SelectedCalendar(user_id=user_id, calendar_id=c.calendar_id, provider=c.provider) for c in body.calendars],
    )
    return {"calendars": [c.to_dict() for c in saved]}


@router.get("/{provider}")
async def list_calendars(
    provider: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: IntegrationOrchestrator = Depends(get_orchestrator),
):
    calendars = await orchestrator.list_calendars(user_id, provider)
    return {"provider": provider, "calendars": [c.to_dict() for c in calendars]}
