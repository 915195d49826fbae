from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class Frequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat()


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Dates are stored as naive UTC ISO strings so that range filters can
    compare them lexicographically. Aware datetimes are shifted to UTC first.
    """
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def reject_null(value):
    """For partial updates: a field may be omitted, but a required field cannot be cleared with null."""
    if value is None:
        raise ValueError("field cannot be null")
    return value
