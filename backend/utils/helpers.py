"""
Helper Functions

This module contains utility functions used throughout the application.
"""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from dateutil import parser as dtparser

IPV4_MAPPED_PREFIX = "::ffff:"
CENTS = Decimal("0.01")


def parse_ts(x: Any) -> Optional[datetime]:
    """Parse timestamp from various formats"""
    if not x:
        return None
    try:
        dt = x if isinstance(x, datetime) else dtparser.isoparse(str(x))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except Exception:
        return None


def format_ts(dt: datetime) -> str:
    """Sortable ISO-8601 UTC text, millisecond precision"""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def floor_to_hour(dt: datetime) -> datetime:
    """Truncate to the start of the containing UTC hour"""
    return dt.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def floor_to_day(dt: datetime) -> datetime:
    """Truncate to UTC midnight"""
    return dt.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def round2(x: float) -> float:
    """Two decimals, halves rounded up"""
    return float(Decimal(x).quantize(CENTS, rounding=ROUND_HALF_UP))


def safe_str(x: Any) -> Optional[str]:
    """Stringify non-empty values, keep None"""
    if x is None or x == "":
        return None
    return str(x)


def get_nested(d: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    """Safely read nested dict keys"""
    cur: Any = d
    for k in path:
        if not isinstance(cur, dict) or k not in cur:
            return None
        cur = cur[k]
    return cur


def client_ip(headers: Mapping[str, str], remote_addr: Optional[str]) -> str:
    """
    Best-effort client address.
    Precedence: first X-Forwarded-For hop, X-Real-IP, then socket address.
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    if remote_addr:
        if remote_addr.startswith(IPV4_MAPPED_PREFIX):
            return remote_addr[len(IPV4_MAPPED_PREFIX):]
        return remote_addr

    return "unknown"
