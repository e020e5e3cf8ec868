from datetime import datetime, timezone
from typing import Optional
import os

from botocore.utils import parse_timestamp


def getenv_str(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.getenv(name)
    return val if (val is not None and val.strip() != "") else default


def to_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def to_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value is not None else None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_expiry(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 or epoch expiry into an aware UTC datetime."""
    if value is None:
        return None
    return as_utc(parse_timestamp(value))
