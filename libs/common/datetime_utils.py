"""Timezone-aware timestamps for model defaults and status stamps."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def from_paystack_timestamp(value: object) -> datetime | None:
    """Parse Paystack's ISO-8601 timestamps (``...Z`` suffix); None if unusable."""
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
