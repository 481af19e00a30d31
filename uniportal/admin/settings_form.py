"""Admin form for the enrollment window: draft <-> setting, validation, PUT payload."""

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from uniportal.api.models import EnrollmentSetting
from uniportal.enrollment.window import parse_enrollment_datetime

MINUTES_IN_DAY = 24 * 60
DURATION_TYPES = ("days", "minutes")


@dataclass
class SettingsDraft:
    """Raw form values, kept as strings the way an admin types them."""

    duration_type: str = "days"
    duration_value: str = "1"
    max_credits: str = "18"
    max_courses: str = ""
    allow_waitlist: bool = False
    is_active: bool = False


def duration_from_setting(setting: EnrollmentSetting) -> Tuple[str, int]:
    """Whole days when the window divides evenly, minutes otherwise; at least 1."""
    open_at = parse_enrollment_datetime(setting.enrollment_open_at)
    close_at = parse_enrollment_datetime(setting.enrollment_close_at)
    if open_at is None or close_at is None or close_at <= open_at:
        return "days", 1
    minutes = round((close_at - open_at).total_seconds() / 60)
    if minutes % MINUTES_IN_DAY == 0:
        return "days", max(1, minutes // MINUTES_IN_DAY)
    return "minutes", max(1, minutes)


def draft_from_setting(setting: EnrollmentSetting) -> SettingsDraft:
    duration_type, duration_value = duration_from_setting(setting)
    return SettingsDraft(
        duration_type=duration_type,
        duration_value=str(duration_value),
        max_credits=str(setting.max_credits),
        max_courses=str(setting.max_courses) if setting.max_courses else "",
        allow_waitlist=setting.allow_waitlist,
        is_active=setting.is_active,
    )


def _number(value: str) -> Optional[float]:
    try:
        number = float(value.strip())
    except (AttributeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def validate_draft(draft: SettingsDraft) -> Tuple[Optional[Dict[str, Any]], Dict[str, str]]:
    """Return (payload, {}) when valid, else (None, field -> message)."""
    errors: Dict[str, str] = {}

    if draft.duration_type not in DURATION_TYPES:
        errors["duration_type"] = f"Duration type must be one of {', '.join(DURATION_TYPES)}."

    duration = _number(draft.duration_value)
    if duration is None or duration <= 0:
        errors["duration_value"] = "Duration must be a number greater than 0."

    max_credits = _number(draft.max_credits)
    if max_credits is None or max_credits <= 0:
        errors["max_credits"] = "Max credits must be a number greater than 0."

    max_courses = None
    if draft.max_courses.strip():
        max_courses = _number(draft.max_courses)
        if max_courses is None or max_courses <= 0:
            errors["max_courses"] = "Max courses must be empty or a number greater than 0."

    if errors:
        return None, errors

    payload: Dict[str, Any] = {
        "max_credits": math.floor(max_credits),
        "allow_waitlist": draft.allow_waitlist,
        "is_active": draft.is_active,
    }
    if max_courses is not None:
        payload["max_courses"] = math.floor(max_courses)
    if draft.duration_type == "minutes":
        payload["window_minutes"] = math.floor(duration)
    else:
        payload["window_days"] = math.floor(duration)
    return payload, {}
