"""Common utilities for the Leasehold backend."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive input is treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def unit_label(property_name: str | None, unit_name: str | None) -> str:
    """Human readable unit label like 'Sunset Villas - A1'."""
    if property_name and unit_name:
        return f"{property_name} - {unit_name}"
    return unit_name or property_name or "Unknown unit"
