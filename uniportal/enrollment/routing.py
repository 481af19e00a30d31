"""
Where a finalized selection goes: straight to the enroll endpoint, or first
through track / major selection.

The server may decide this itself (`enrollment_routing_decision`). When it
does not, the student's major-state record is normalised into a
`StudentProfile` once and a single rule is applied:

- no Major-type course selected            -> SUBMIT
- new student in year 1 or 2               -> reroute
- returning student missing track or major -> reroute

A rerouted student goes to TRACK_SELECTION when on the 5-year program without
a track, otherwise to MAJOR_SELECTION. Both reroute conditions share that one
destination rule, so they cannot disagree.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from uniportal.api.models import CourseOffering, MajorState

logger = logging.getLogger(__name__)


class RoutingDecision(str, Enum):
    SUBMIT = "submit"
    TRACK_SELECTION = "track_selection"
    MAJOR_SELECTION = "major_selection"


FIVE_YEAR = "5-year"
EARLY_YEARS = 2

YEAR_WORDS = {"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5}

# first non-empty alias wins
IS_NEW_KEYS = ("is_new", "isNew", "is_new_student", "new_student")
YEAR_KEYS = ("current_year_num", "current_year", "currentYear", "year")
TRACK_KEYS = ("selected_track", "profile_major_track", "track", "major_track")
MAJOR_KEYS = ("selected_major", "profile_major_id", "major", "major_id")


@dataclass(frozen=True)
class StudentProfile:
    is_new: bool = False
    year: Optional[int] = None
    program_type: str = "4-year"
    track: Optional[str] = None
    major: Optional[str] = None

    @property
    def is_five_year(self) -> bool:
        return self.program_type == FIVE_YEAR

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "StudentProfile":
        return cls(
            is_new=_as_bool(_first(raw, IS_NEW_KEYS)),
            year=_as_year(_first(raw, YEAR_KEYS)),
            program_type=str(raw.get("program_type") or "4-year"),
            track=_as_text(_first(raw, TRACK_KEYS)),
            major=_as_text(_first(raw, MAJOR_KEYS)),
        )


def _first(raw: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "y")
    return bool(value)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_year(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip().lower()
    match = re.search(r"\d+", text)
    if match:
        return int(match.group())
    for word, number in YEAR_WORDS.items():
        if text.startswith(word):
            return number
    return None


def _destination(profile: StudentProfile) -> RoutingDecision:
    if profile.is_five_year and not profile.track:
        return RoutingDecision.TRACK_SELECTION
    return RoutingDecision.MAJOR_SELECTION


def decide_route(profile: StudentProfile, selection: Iterable[CourseOffering]) -> RoutingDecision:
    if not any(c.is_major for c in selection):
        return RoutingDecision.SUBMIT
    if profile.is_new and profile.year is not None and profile.year <= EARLY_YEARS:
        return _destination(profile)
    if not profile.is_new:
        missing_track = profile.is_five_year and not profile.track
        if missing_track or not profile.major:
            return _destination(profile)
    return RoutingDecision.SUBMIT


def resolve_route(state: Optional[MajorState], selection: Iterable[CourseOffering]) -> RoutingDecision:
    """Server decision if present and valid, else the client rule.

    Either way only a selection with a Major-type course can be rerouted.
    """
    selection = list(selection)
    if state is None or not any(c.is_major for c in selection):
        return RoutingDecision.SUBMIT
    if state.routing_decision:
        try:
            return RoutingDecision(state.routing_decision)
        except ValueError:
            logger.warning(f"Unknown routing decision from server: {state.routing_decision!r}")
    return decide_route(StudentProfile.from_raw(state.raw), selection)
