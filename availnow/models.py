"""
Tool: AvailNow Models
Purpose: Data structures for calendar connections, events and availability

Usage:
    from availnow.models import CalendarEvent, OAuthCredential, BusinessHours

Every instant is a timezone-aware datetime. Rows are persisted in UTC and
converted back on read.
"""

import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from availnow.errors import UnsupportedProviderError, ValidationError


class Provider(str, Enum):
    """Calendar providers a user can connect."""

    GOOGLE = "google"
    OUTLOOK = "outlook"
    APPLE = "apple"
    CALENDLY = "calendly"

    @classmethod
    def parse(cls, value: "str | Provider") -> "Provider":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise UnsupportedProviderError(f"Unknown calendar provider: {value}") from None


# Providers with a working adapter
IMPLEMENTED_PROVIDERS = frozenset({Provider.GOOGLE, Provider.OUTLOOK})


class Recurrence(str, Enum):
    """Repeat rule for an explicit availability slot."""

    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class WidgetEventKind(str, Enum):
    """Telemetry kinds counted per widget owner."""

    VIEW = "view"
    CLICK = "click"
    BOOKING = "booking"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    """Generate a unique ID."""
    return str(uuid.uuid4())


def require_aware(value: datetime, name: str = "datetime") -> datetime:
    """Reject naive datetimes instead of guessing a timezone."""
    if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
        raise ValidationError(f"{name} must be timezone-aware")
    return value


def parse_datetime(value: str | datetime) -> datetime:
    """Parse an ISO-8601 string (Z suffix allowed) into an aware datetime."""
    if isinstance(value, datetime):
        return require_aware(value)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError) as e:
        raise ValidationError(f"Invalid datetime: {value!r}") from e
    return require_aware(parsed)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class OAuthCredential:
    """
    Stored OAuth tokens for one user and provider.

    The pair (user_id, provider) is unique. An access token is never stored
    without its expiry.
    """

    user_id: str
    provider: Provider
    access_token: str
    expires_at: datetime | None
    refresh_token: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.provider = Provider.parse(self.provider)
        if self.access_token and self.expires_at is None:
            raise ValidationError("access token stored without an expiry")
        if self.expires_at is not None:
            require_aware(self.expires_at, "expires_at")

    def is_expiring(self, now: datetime, threshold_seconds: float) -> bool:
        """True when the token expires within the threshold of now."""
        if self.expires_at is None:
            return True
        return (now.timestamp() + threshold_seconds) >= self.expires_at.timestamp()

    def to_public_dict(self) -> dict[str, Any]:
        """Connection summary without any secret material."""
        return {
            "provider": self.provider.value,
            "connected": True,
            "has_refresh_token": bool(self.refresh_token),
            "expires_at": _iso(self.expires_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass
class TokenGrant:
    """Token endpoint response, normalized across providers."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "TokenGrant":
        return cls(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in", 3600)),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )


@dataclass
class CalendarDescriptor:
    """A calendar as listed by the provider. Never cached."""

    id: str
    name: str
    provider: Provider
    primary: bool = False
    email: str | None = None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["provider"] = self.provider.value
        return d


@dataclass
class SelectedCalendar:
    """A calendar the user chose to include in availability."""

    user_id: str
    calendar_id: str
    provider: Provider = Provider.GOOGLE
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        self.provider = Provider.parse(self.provider)

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "calendar_id": self.calendar_id,
            "provider": self.provider.value,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class CalendarEvent:
    """
    Normalized busy event from any provider.

    All-day events keep the provider's dates at UTC midnight; the engine
    re-anchors them to the user's own timezone.
    """

    id: str
    start: datetime
    end: datetime
    title: str = ""
    all_day: bool = False
    calendar_id: str = "primary"
    provider: Provider = Provider.GOOGLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "all_day": self.all_day,
            "calendar_id": self.calendar_id,
            "provider": Provider.parse(self.provider).value,
        }


@dataclass
class AvailabilitySlot:
    """An explicit availability (or unavailability) window set by the user."""

    user_id: str
    start: datetime
    end: datetime
    available: bool = True
    recurrence: Recurrence = Recurrence.NONE
    id: str = field(default_factory=generate_id)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        require_aware(self.start, "start")
        require_aware(self.end, "end")
        if self.end <= self.start:
            raise ValidationError("Slot end must be after its start")
        try:
            self.recurrence = Recurrence(self.recurrence or Recurrence.NONE)
        except ValueError:
            raise ValidationError(f"Invalid recurrence: {self.recurrence}") from None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "available": self.available,
            "recurrence": self.recurrence.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def _parse_time(value: str | time) -> time:
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid time of day: {value!r}") from e


@dataclass
class BusinessHours:
    """
    Working-hours policy for one user.

    working_days uses 0=Sunday .. 6=Saturday. Buffers are minutes added
    around provider events only; explicit slots are never widened.
    """

    start_time: time = time(9, 0)
    end_time: time = time(17, 0)
    working_days: list[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    buffer_before: int = 0
    buffer_after: int = 0
    timezone: str = "UTC"

    def __post_init__(self):
        self.start_time = _parse_time(self.start_time)
        self.end_time = _parse_time(self.end_time)
        if self.end_time <= self.start_time:
            raise ValidationError("Business hours must end after they start")
        days = sorted(set(int(d) for d in self.working_days))
        if any(d < 0 or d > 6 for d in days):
            raise ValidationError("working_days must be between 0 (Sunday) and 6 (Saturday)")
        self.working_days = days
        if self.buffer_before < 0 or self.buffer_after < 0:
            raise ValidationError("Buffers cannot be negative")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValidationError(f"Unknown timezone: {self.timezone}") from e

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_working_day(self, day: date) -> bool:
        # isoweekday: Monday=1 .. Sunday=7
        return (day.isoweekday() % 7) in self.working_days

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "working_days": list(self.working_days),
            "buffer_before": self.buffer_before,
            "buffer_after": self.buffer_after,
            "timezone": self.timezone,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BusinessHours":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class Slot:
    """One bucket of a day, labelled for display."""

    time: str
    available: bool
    start: datetime
    end: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time,
            "available": self.available,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class DaySlots:
    """A day's buckets split at noon."""

    date: date
    morning: list[Slot] = field(default_factory=list)
    afternoon: list[Slot] = field(default_factory=list)

    @property
    def slots(self) -> list[Slot]:
        return self.morning + self.afternoon

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "morning": [s.to_dict() for s in self.morning],
            "afternoon": [s.to_dict() for s in self.afternoon],
        }


@dataclass
class DayAvailability:
    """Per-day availability pattern. Recomputed per request."""

    date: date
    pattern: list[bool]
    in_month: bool = True

    @property
    def available_count(self) -> int:
        return sum(1 for bucket in self.pattern if bucket)

    @property
    def has_availability(self) -> bool:
        return any(self.pattern)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "pattern": list(self.pattern),
            "available_count": self.available_count,
            "has_availability": self.has_availability,
            "in_month": self.in_month,
        }


@dataclass
class PendingAuthorization:
    """Server-side record of an authorization in progress, keyed by state."""

    state: str
    user_id: str
    provider: Provider
    expires_at: datetime
    code_verifier: str | None = None

    def __post_init__(self):
        self.provider = Provider.parse(self.provider)


@dataclass
class AuthorizationRequest:
    """Where to send the user to grant calendar access."""

    authorization_url: str
    state: str
    provider: Provider

    def to_dict(self) -> dict[str, Any]:
        return {
            "authorization_url": self.authorization_url,
            "state": self.state,
            "provider": self.provider.value,
        }


@dataclass
class ConnectionResult:
    """Outcome of a completed authorization callback."""

    success: bool
    provider: Provider
    user_id: str
    calendars: list[CalendarDescriptor] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "provider": self.provider.value,
            "user_id": self.user_id,
            "calendars": [c.to_dict() for c in self.calendars],
        }


@dataclass
class WidgetStats:
    """Counters for one widget owner."""

    user_id: str
    views: int = 0
    clicks: int = 0
    bookings: int = 0
    last_updated: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "views": self.views,
            "clicks": self.clicks,
            "bookings": self.bookings,
            "last_updated": _iso(self.last_updated),
        }
