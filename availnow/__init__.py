"""AvailNow: Calendar Availability Reconciliation Engine

Connects a professional's external calendars (Google, Outlook) and answers
one question for every widget surface: which time buckets are free?

Components:
    models.py: Data models (OAuthCredential, CalendarEvent, AvailabilitySlot, ...)
    overlap.py: Half-open interval comparison
    engine.py: Per-bucket free/busy decision (pure)
    views.py: Month grid, day list and mobile list built on the engine
    recurrence.py: Expansion of recurring availability slots
    orchestrator.py: Token refresh and multi-calendar fetch
    oauth_manager.py: Authorization flow, callback handling, disconnect
    availability.py: Request-scoped read path for owner and public widget
    providers/: Google Calendar and Microsoft Graph adapters
    storage/: SQLite-backed stores
    api/: FastAPI application
"""

from pathlib import Path


# Path constants
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "args"
DATA_PATH = PROJECT_ROOT / "data"
DB_PATH = DATA_PATH / "availnow.db"

__version__ = "0.4.0"

__all__ = [
    "PROJECT_ROOT",
    "CONFIG_PATH",
    "DATA_PATH",
    "DB_PATH",
    "__version__",
]
