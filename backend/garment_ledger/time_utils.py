# Overview: UTC clock and ISO-8601 helpers shared by models, services and routes.

"""
All stored datetimes are naive UTC. Input may carry a "Z" or an offset and
is converted; output always carries a trailing "Z".
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """The default ledger clock: naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-10-05T09:30:00Z", "...+05:30", a naive timestamp (taken as UTC)
    or a bare "YYYY-MM-DD" (midnight UTC). Blank -> None; anything else
    raises ValueError.
    """
    if _blank(value):
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return _to_naive_utc(datetime.fromisoformat(text))


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    if _blank(value):
        return None
    return date.fromisoformat(value.strip())


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return _to_naive_utc(dt).isoformat(timespec="microseconds") + "Z"
