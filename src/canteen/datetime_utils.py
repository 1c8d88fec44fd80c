"""
Datetime utilities.

Instants are stored in UTC; calendar questions ("is this order for today?",
"is it lunch time?") are answered in the configured canteen time zone so the
result does not depend on the caller's locale.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from canteen.config import get_active_config


def utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def canteen_zone() -> ZoneInfo:
    return ZoneInfo(get_active_config().timezone)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive values read back from the database."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_now(now: datetime | None = None) -> datetime:
    """Current (or given) instant expressed in the canteen time zone."""
    return ensure_utc(now or utcnow()).astimezone(canteen_zone())


def local_today(now: datetime | None = None) -> date:
    return local_now(now).date()


def to_iso(value: datetime | None) -> str | None:
    """Serialize an instant as an ISO 8601 UTC string."""
    if value is None:
        return None
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


def resolve_now(now: datetime | None = None) -> datetime:
    """UTC instant for ``now``, defaulting to the current time."""
    return ensure_utc(now) if now is not None else utcnow()
