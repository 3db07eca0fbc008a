"""
AvailNow API - FastAPI Application

Usage:
    uvicorn availnow.api.main:create_app --factory --host 127.0.0.1 --port 8000

    Or through the CLI:
    availnow serve --port 8000
"""

import logging
from datetime import timedelta

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from availnow import __version__
from availnow.api.routes import api_router
from availnow.availability import AvailabilityService
from availnow.config import AvailNowConfig, load_config
from availnow.errors import (
    AuthError,
    AvailNowError,
    IntegrationMissingError,
    InterruptedFlowError,
    NotFoundError,
    PersistenceError,
    ProviderError,
    TransientFetchError,
    UnsupportedProviderError,
    ValidationError,
)
from availnow.logging_config import setup_logging
from availnow.oauth_manager import OAuthManager
from availnow.orchestrator import IntegrationOrchestrator
from availnow.providers import ProviderRegistry
from availnow.security.vault import TokenCipher
from availnow.storage import Store
from availnow.storage.business_hours import BusinessHoursStore
from availnow.storage.pending_auth import PendingAuthorizationStore
from availnow.storage.selected_calendars import SelectedCalendarStore
from availnow.storage.slots import AvailabilitySlotStore
from availnow.storage.tokens import TokenStore
from availnow.storage.widget_stats import WidgetEventTracker

logger = logging.getLogger(__name__)


# Most specific first: InterruptedFlowError is an AuthError
_ERROR_STATUS: list[tuple[type[AvailNowError], int]] = [
    (InterruptedFlowError, status.HTTP_400_BAD_REQUEST),
    (IntegrationMissingError, status.HTTP_404_NOT_FOUND),
    (AuthError, status.HTTP_401_UNAUTHORIZED),
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnsupportedProviderError, status.HTTP_400_BAD_REQUEST),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
    (TransientFetchError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def _status_for(exc: AvailNowError) -> int:
    for error_type, code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def availnow_error_handler(request: Request, exc: AvailNowError) -> JSONResponse:
    code = _status_for(exc)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=code,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def _build_cipher(config: AvailNowConfig) -> TokenCipher | None:
    cipher = TokenCipher.from_env(config.security.master_key_env)
    if cipher is None and config.security.require_encryption:
        raise RuntimeError(f"{config.security.master_key_env} must be set when token encryption is required")
    return cipher


def create_app(
    config: AvailNowConfig | None = None,
    store: Store | None = None,
    registry: ProviderRegistry | None = None,
    cipher: TokenCipher | None = None,
) -> FastAPI:
    """
    Build the application and every component it uses.

    Args:
        config: Loaded configuration (default: args/availnow.yaml + env)
        store: Database (default: config.storage.db_path)
        registry: Provider adapters (default: built from config)
        cipher: Token cipher (default: from the master key env var)
    """
    if config is None:
        load_dotenv()
        setup_logging()
        config = load_config()

    store = store or Store(config.storage.db_path)
    registry = registry or ProviderRegistry.from_config(config)
    if cipher is None:
        cipher = _build_cipher(config)

    tokens = TokenStore(store, cipher)
    selected = SelectedCalendarStore(store)
    slots = AvailabilitySlotStore(store)
    business_hours = BusinessHoursStore(store, config.availability.default_business_hours())
    tracker = WidgetEventTracker(store)

    orchestrator = IntegrationOrchestrator(
        tokens,
        selected,
        registry,
        refresh_threshold=timedelta(minutes=config.oauth.refresh_threshold_minutes),
        max_concurrency=config.http.max_concurrent_fetches,
    )
    oauth_manager = OAuthManager(
        registry,
        tokens,
        PendingAuthorizationStore(store),
        selected,
        pending_ttl=timedelta(minutes=config.oauth.pending_ttl_minutes),
    )
    availability = AvailabilityService(orchestrator, slots, business_hours, tracker, config.availability)

    app = FastAPI(
        title="AvailNow API",
        description="Calendar availability for scheduling widgets",
        version=__version__,
    )

    # Public widget is embedded on arbitrary sites
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AvailNowError, availnow_error_handler)

    app.state.config = config
    app.state.store = store
    app.state.registry = registry
    app.state.tokens = tokens
    app.state.selected = selected
    app.state.slots = slots
    app.state.business_hours = business_hours
    app.state.tracker = tracker
    app.state.orchestrator = orchestrator
    app.state.oauth_manager = oauth_manager
    app.state.availability = availability

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    app.include_router(api_router)
    return app
