"""UTC timestamps for orders, events and API payloads.

Everything the service stores or returns is timezone-aware UTC. Rows read
back from the journal are normalized with as_utc() because a naive
TIMESTAMP column loses the zone.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive value, convert an aware one."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime | None) -> str:
    """ISO8601 string for API payloads; empty string when unset."""
    return as_utc(value).isoformat() if value else ""
