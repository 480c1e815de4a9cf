"""
UTC timestamp helpers

Stored timestamps use the JavaScript ISO form (``2024-01-31T10:00:00.000Z``)
so documents written by this API and by older clients compare cleanly.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(utcnow())


def epoch_ms(value: Optional[datetime] = None) -> int:
    return int((value or utcnow()).timestamp() * 1000)


def parse_iso(value: Any) -> Optional[datetime]:
    """Parse an ISO string into an aware UTC datetime; None if unparseable"""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)


def sort_key(value: Any) -> float:
    """Timestamp sort key; missing or invalid timestamps sort as the epoch"""
    parsed = parse_iso(value)
    return parsed.timestamp() if parsed else 0.0
