"""
API Routes

Route modules:
- oauth: Calendar connection flow (authorize, callback, disconnect)
- calendars: Provider calendar listing and selection
- slots: Explicit availability slots
- settings: Business hours
- widget: Public availability and widget telemetry
"""

from fastapi import APIRouter

from availnow.api.routes.calendars import router as calendars_router
from availnow.api.routes.oauth import router as oauth_router
from availnow.api.routes.settings import router as settings_router
from availnow.api.routes.slots import router as slots_router
from availnow.api.routes.widget import router as widget_router


api_router = APIRouter()

api_router.include_router(oauth_router, tags=["oauth"])
api_router.include_router(calendars_router, prefix="/calendars", tags=["calendars"])
api_router.include_router(slots_router, prefix="/slots", tags=["slots"])
api_router.include_router(settings_router, tags=["settings"])
api_router.include_router(widget_router, prefix="/widget", tags=["widget"])

__all__ = ["api_router"]
