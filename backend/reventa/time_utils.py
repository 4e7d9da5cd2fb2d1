from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.utcnow()


def start_of_month(now: Optional[datetime] = None) -> datetime:
    """First instant of the current UTC month (naive)."""
    now = now or utcnow()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def start_of_year(now: Optional[datetime] = None) -> datetime:
    """First instant of the current UTC year (naive)."""
    now = now or utcnow()
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


def month_key(dt: datetime) -> str:
    """"YYYY-MM" bucket of a naive UTC datetime."""
    return f"{dt.year:04d}-{dt.month:02d}"


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def minutes_since(dt: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
    """Whole minutes elapsed since dt (naive UTC), or None when dt is None."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    now = now or utcnow()
    return int((now - dt).total_seconds() // 60)
