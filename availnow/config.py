"""
Configuration models for AvailNow (args/availnow.yaml).

Secrets never live in YAML: client IDs, client secrets, redirect URIs and
the token master key are read from the environment (.env is loaded by the
app and CLI entry points).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

from availnow import CONFIG_PATH, DB_PATH
from availnow.models import BusinessHours

logger = logging.getLogger(__name__)


# =============================================================================
# OAuth
# =============================================================================

class ProviderOAuthConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    client_id: str = Field(default="")
    client_secret: str = Field(default="")
    redirect_uri: str = Field(default="")
    scopes: list[str] = Field(default_factory=list)
    tenant: str = Field(default="common")

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.redirect_uri)


def _google_defaults() -> ProviderOAuthConfig:
    return ProviderOAuthConfig(
        redirect_uri="http://localhost:8000/oauth/google/callback",
        scopes=["https://www.googleapis.com/auth/calendar.readonly"],
    )


def _outlook_defaults() -> ProviderOAuthConfig:
    return ProviderOAuthConfig(
        redirect_uri="http://localhost:8000/oauth/outlook/callback",
        scopes=["Calendars.Read", "User.Read", "offline_access"],
    )


class OAuthConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    google: ProviderOAuthConfig = Field(default_factory=_google_defaults)
    outlook: ProviderOAuthConfig = Field(default_factory=_outlook_defaults)
    pending_ttl_minutes: int = Field(default=10, ge=1)
    refresh_threshold_minutes: int = Field(default=5, ge=0)


# =============================================================================
# HTTP / fan-out
# =============================================================================

class HttpConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_concurrent_fetches: int = Field(default=8, ge=1)
    max_pages: int = Field(default=10, ge=1)


# =============================================================================
# Availability defaults
# =============================================================================

class AvailabilityConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    start_time: str = Field(default="09:00")
    end_time: str = Field(default="17:00")
    working_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    buffer_before: int = Field(default=0, ge=0)
    buffer_after: int = Field(default=0, ge=0)
    timezone: str = Field(default="UTC")
    interval_minutes: int = Field(default=30, ge=5, le=240)
    display_days: int = Field(default=5, ge=1)
    max_display_days: int = Field(default=60, ge=1)

    def default_business_hours(self) -> BusinessHours:
        return BusinessHours(
            start_time=self.start_time,
            end_time=self.end_time,
            working_days=list(self.working_days),
            buffer_before=self.buffer_before,
            buffer_after=self.buffer_after,
            timezone=self.timezone,
        )


# =============================================================================
# Storage / security
# =============================================================================

class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    db_path: str = Field(default=str(DB_PATH))


class SecurityConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    require_encryption: bool = Field(default=False)
    master_key_env: str = Field(default="AVAILNOW_MASTER_KEY")


class AvailNowConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    oauth: OAuthConfig = Field(default_factory=OAuthConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    availability: AvailabilityConfig = Field(default_factory=AvailabilityConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)


# =============================================================================
# Loading
# =============================================================================

_ENV_OVERRIDES = {
    ("google", "client_id"): "GOOGLE_CLIENT_ID",
    ("google", "client_secret"): "GOOGLE_CLIENT_SECRET",
    ("google", "redirect_uri"): "GOOGLE_REDIRECT_URI",
    ("outlook", "client_id"): "OUTLOOK_CLIENT_ID",
    ("outlook", "client_secret"): "OUTLOOK_CLIENT_SECRET",
    ("outlook", "redirect_uri"): "OUTLOOK_REDIRECT_URI",
    ("outlook", "tenant"): "OUTLOOK_TENANT",
}


def apply_env_overrides(config: AvailNowConfig, environ: Optional[dict] = None) -> AvailNowConfig:
    """Overlay provider secrets and the database path from the environment."""
    env = os.environ if environ is None else environ

    for (provider, attr), var in _ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            setattr(getattr(config.oauth, provider), attr, value)

    db_path = env.get("AVAILNOW_DB_PATH")
    if db_path:
        config.storage.db_path = db_path

    return config


def load_config(path: Path | str | None = None, environ: Optional[dict] = None) -> AvailNowConfig:
    """
    Load args/availnow.yaml, validate it, and apply environment overrides.

    Invalid or missing YAML falls back to defaults with a warning.
    """
    yaml_path = Path(path) if path else CONFIG_PATH / "availnow.yaml"

    try:
        if yaml_path.exists():
            with open(yaml_path) as f:
                raw = yaml.safe_load(f) or {}
        else:
            raw = {}

        config = AvailNowConfig.model_validate(raw.get("availnow", raw))
    except Exception as e:
        logger.warning(f"Config validation failed for {yaml_path.name}: {e}, using defaults")
        config = AvailNowConfig()

    return apply_env_overrides(config, environ)


__all__ = [
    "AvailNowConfig",
    "AvailabilityConfig",
    "HttpConfig",
    "OAuthConfig",
    "ProviderOAuthConfig",
    "SecurityConfig",
    "StorageConfig",
    "apply_env_overrides",
    "load_config",
]
