"""
Enrollment window timestamps.

The server sends ISO-8601 strings, sometimes without an offset. Those are UTC.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional

from uniportal.api.models import EnrollmentSetting

logger = logging.getLogger(__name__)

# trailing Z or +HH:MM / -HH:MM
TIMEZONE_SUFFIX = re.compile(r"(?:Z|[+-]\d{2}:\d{2})$", re.IGNORECASE)
# fractional seconds, padded or cut to microseconds before parsing
FRACTION = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$)")


def parse_enrollment_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp into an aware datetime; None when empty or invalid."""
    if not value:
        return None
    raw = value.strip()
    if not raw:
        return None
    if raw[-1] in "zZ":
        raw = raw[:-1] + "+00:00"
    elif not TIMEZONE_SUFFIX.search(raw):
        raw = raw + "+00:00"
    raw = FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), raw)
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError:
        logger.debug(f"Unparseable enrollment timestamp: {value!r}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_remaining_time(close_at: Optional[str], now: Optional[datetime] = None) -> str:
    """'N/A' without a usable close time, 'Expired' once passed, else 'Hh Mm Ss'."""
    close_dt = parse_enrollment_datetime(close_at)
    if close_dt is None:
        return "N/A"
    now = now or datetime.now(timezone.utc)
    remaining = (close_dt - now).total_seconds()
    if remaining <= 0:
        return "Expired"
    total_seconds = int(remaining)
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    seconds = total_seconds % 60
    return f"{hours}h {minutes}m {seconds}s"


def format_local_datetime(value: Optional[str]) -> str:
    dt = parse_enrollment_datetime(value)
    if dt is None:
        return "N/A"
    return dt.astimezone().strftime("%b %d, %Y %H:%M")


def describe_window(setting: Optional[EnrollmentSetting], now: Optional[datetime] = None) -> dict:
    """Display fields for the enrollment status card."""
    if setting is None:
        return {"status": "Unknown", "open": "N/A", "close": "N/A", "remaining": "N/A"}
    return {
        "status": "Open" if setting.is_active else "Closed",
        "open": format_local_datetime(setting.enrollment_open_at),
        "close": format_local_datetime(setting.enrollment_close_at),
        "remaining": format_remaining_time(setting.enrollment_close_at, now=now),
    }
