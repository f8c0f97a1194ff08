"""UTC datetime utilities."""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def expires_after(days: int, start: datetime | None = None) -> datetime:
    """Expiry timestamp `days` after `start` (defaults to now)."""
    return (start or utc_now()) + timedelta(days=days)


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
