"""
Request dependencies.

Components live on app.state (built once by create_app); routes receive
them through these functions so tests can build an app around their own
store and providers.
"""

from fastapi import Header, HTTPException, Request, status

from availnow.availability import AvailabilityService
from availnow.oauth_manager import OAuthManager
from availnow.orchestrator import IntegrationOrchestrator
from availnow.storage.business_hours import BusinessHoursStore
from availnow.storage.selected_calendars import SelectedCalendarStore
from availnow.storage.slots import AvailabilitySlotStore
from availnow.storage.tokens import TokenStore
from availnow.storage.widget_stats import WidgetEventTracker


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """The signed-in owner, as asserted by the host application."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")
    return x_user_id


def get_oauth_manager(request: Request) -> OAuthManager:
    return request.app.state.oauth_manager


def get_orchestrator(request: Request) -> IntegrationOrchestrator:
    return request.app.state.orchestrator


def get_availability_service(request: Request) -> AvailabilityService:
    return request.app.state.availability


def get_token_store(request: Request) -> TokenStore:
    return request.app.state.tokens


def get_selected_store(request: Request) -> SelectedCalendarStore:
    return request.app.state.selected


def get_slot_store(request: Request) -> AvailabilitySlotStore:
    return request.app.state.slots


def get_business_hours_store(request: Request) -> BusinessHoursStore:
    return request.app.state.business_hours


def get_tracker(request: Request) -> WidgetEventTracker:
    return request.app.state.tracker
