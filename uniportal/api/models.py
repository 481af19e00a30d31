"""
Typed records for the portal API responses.

Each record is built with `from_payload`, which checks the documented shape
and raises `ResponseShapeError` on anything else. Nothing downstream looks at
raw JSON.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from uniportal.core.http import ResponseShapeError

LOCKED = "locked"
SELECTED = "selected"
AVAILABLE = "available"


def _expect_dict(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise ResponseShapeError(f"{what}: expected an object, got {type(payload).__name__}")
    return payload


def _str(payload: Dict[str, Any], key: str, what: str, required: bool = False) -> Optional[str]:
    value = payload.get(key)
    if value is None:
        if required:
            raise ResponseShapeError(f"{what}: missing '{key}'")
        return None
    if not isinstance(value, str):
        raise ResponseShapeError(f"{what}: '{key}' must be a string")
    return value


def _int(payload: Dict[str, Any], key: str, what: str, required: bool = False) -> Optional[int]:
    value = payload.get(key)
    if value is None:
        if required:
            raise ResponseShapeError(f"{what}: missing '{key}'")
        return None
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResponseShapeError(f"{what}: '{key}' must be a number")
    if isinstance(value, float) and not value.is_integer():
        raise ResponseShapeError(f"{what}: '{key}' must be a whole number")
    return int(value)


def _bool(payload: Dict[str, Any], key: str, what: str, required: bool = False) -> Optional[bool]:
    value = payload.get(key)
    if value is None:
        if required:
            raise ResponseShapeError(f"{what}: missing '{key}'")
        return None
    if not isinstance(value, bool):
        raise ResponseShapeError(f"{what}: '{key}' must be a boolean")
    return value


def data_list(payload: Any, what: str) -> List[Any]:
    """List endpoints answer `{"data": [...]}`."""
    body = _expect_dict(payload, what)
    items = body.get("data")
    if not isinstance(items, list):
        raise ResponseShapeError(f"{what}: 'data' must be a list")
    return items


def _schedule(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


@dataclass(frozen=True)
class CourseOffering:
    """A course the student may pick during enrollment."""

    code: str
    title: str
    credits: int
    type: str = ""
    enrollable: Optional[bool] = None
    schedule: str = ""
    error: Optional[str] = None  # prerequisite problem reported by the server
    desc: str = ""
    is_retake: bool = False
    message: Optional[str] = None
    status: str = AVAILABLE

    @property
    def is_locked(self) -> bool:
        return self.status == LOCKED or self.enrollable is False

    @property
    def is_major(self) -> bool:
        return self.type.strip().lower() == "major"

    @classmethod
    def from_payload(cls, payload: Any) -> "CourseOffering":
        what = "course"
        body = _expect_dict(payload, what)
        credits = _int(body, "credits", what, required=True)
        if credits < 0:
            raise ResponseShapeError(f"{what}: 'credits' must be >= 0")
        enrollable = _bool(body, "enrollable", what)
        status = _str(body, "status", what) or AVAILABLE
        if enrollable is False:
            status = LOCKED
        return cls(
            code=_str(body, "code", what, required=True),
            title=_str(body, "title", what) or "",
            credits=credits,
            type=_str(body, "type", what) or "",
            enrollable=enrollable,
            schedule=_schedule(body.get("schedule")),
            error=_str(body, "error", what) or None,
            desc=_str(body, "desc", what) or "",
            is_retake=bool(_bool(body, "is_retake", what)),
            message=_str(body, "message", what),
            status=status,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EnrollmentSetting:
    """Server-defined enrollment window and credit ceiling."""

    is_active: bool
    max_credits: int
    enrollment_open_at: Optional[str] = None
    enrollment_close_at: Optional[str] = None
    max_courses: Optional[int] = None
    allow_waitlist: bool = False
    current_semester: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "EnrollmentSetting":
        what = "enrollment setting"
        body = _expect_dict(payload, what)
        return cls(
            is_active=_bool(body, "is_active", what, required=True),
            max_credits=_int(body, "max_credits", what, required=True),
            enrollment_open_at=_str(body, "enrollment_open_at", what),
            enrollment_close_at=_str(body, "enrollment_close_at", what),
            max_courses=_int(body, "max_courses", what),
            allow_waitlist=bool(_bool(body, "allow_waitlist", what)),
            current_semester=_str(body, "current_semester", what),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DropCandidate:
    code: str
    title: str = ""
    credits: int = 0
    reason: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DropCandidate":
        what = "drop candidate"
        body = _expect_dict(payload, what)
        return cls(
            code=_str(body, "code", what, required=True),
            title=_str(body, "title", what) or "",
            credits=_int(body, "credits", what) or 0,
            reason=_str(body, "reason", what),
        )


@dataclass(frozen=True)
class DropRecommendation:
    """Server-suggested courses to drop to get back under the credit ceiling."""

    elective: Optional[DropCandidate]
    others: List[DropCandidate] = field(default_factory=list)
    credits_to_drop: int = 0
    current_total_credits: Optional[int] = None
    credit_limit: Optional[int] = None
    message: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "DropRecommendation":
        what = "drop recommendation"
        body = _expect_dict(payload, what)
        elective = body.get("elective")
        others = body.get("others")
        if others is None:
            others = []
        if not isinstance(others, list):
            raise ResponseShapeError(f"{what}: 'others' must be a list")
        return cls(
            elective=DropCandidate.from_payload(elective) if elective is not None else None,
            others=[DropCandidate.from_payload(o) for o in others],
            credits_to_drop=_int(body, "credits_to_drop", what) or 0,
            current_total_credits=_int(body, "current_total_credits", what),
            credit_limit=_int(body, "credit_limit", what),
            message=_str(body, "message", what) or "",
        )

    def suggested_codes(self) -> List[str]:
        """Elective first, then the others, without repeats."""
        codes: List[str] = []
        if self.elective is not None:
            codes.append(self.elective.code)
        for other in self.others:
            if other.code not in codes:
                codes.append(other.code)
        return codes

    def reason_for(self, code: str) -> Optional[str]:
        if self.elective is not None and self.elective.code == code and self.elective.reason:
            return self.elective.reason
        for other in self.others:
            if other.code == code:
                return other.reason
        return None


@dataclass(frozen=True)
class EnrollResult:
    success: bool
    message: str = ""

    @classmethod
    def from_payload(cls, payload: Any) -> "EnrollResult":
        what = "enroll result"
        body = _expect_dict(payload, what)
        return cls(
            success=_bool(body, "success", what, required=True),
            message=_str(body, "message", what) or "",
        )


@dataclass(frozen=True)
class EnrolledCourse:
    code: str
    title: str = ""
    credits: int = 0
    tag: str = ""
    instructor: str = ""
    location: str = ""
    is_retake: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "EnrolledCourse":
        what = "enrolled course"
        body = _expect_dict(payload, what)
        return cls(
            code=_str(body, "code", what, required=True),
            title=_str(body, "title", what) or "",
            credits=_int(body, "credits", what) or 0,
            tag=_str(body, "tag", what) or "",
            instructor=_str(body, "instructor", what) or "",
            location=_str(body, "location", what) or "",
            is_retake=bool(_bool(body, "is_retake", what)),
        )


@dataclass(frozen=True)
class CurrentCourses:
    """Courses the student already holds this semester."""

    semester_name: str
    total_credits: int
    max_credits: Optional[int]
    courses: List[EnrolledCourse] = field(default_factory=list)

    @property
    def courses_count(self) -> int:
        return len(self.courses)

    @classmethod
    def from_payload(cls, payload: Any) -> "CurrentCourses":
        what = "current courses"
        body = _expect_dict(payload, what)
        courses = body.get("courses") or []
        if not isinstance(courses, list):
            raise ResponseShapeError(f"{what}: 'courses' must be a list")
        return cls(
            semester_name=_str(body, "semester_name", what) or "",
            total_credits=_int(body, "total_credits", what) or 0,
            max_credits=_int(body, "max_credits", what),
            courses=[EnrolledCourse.from_payload(c) for c in courses],
        )


@dataclass(frozen=True)
class MajorState:
    """Raw major/track state; `enrollment.routing` normalises it."""

    raw: Dict[str, Any]
    routing_decision: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "MajorState":
        what = "major state"
        body = _expect_dict(payload, what)
        return cls(raw=dict(body), routing_decision=_str(body, "enrollment_routing_decision", what))


@dataclass(frozen=True)
class User:
    name: str
    role: str
    email: str = ""
    user_id: Optional[str] = None
    must_reset_password: bool = False
    student_profile: Optional[Dict[str, Any]] = None

    @classmethod
    def from_login_payload(cls, payload: Any) -> "User":
        """Login answers `{"user": {...}}`."""
        body = _expect_dict(payload, "login")
        return cls.from_payload(body.get("user"))

    @classmethod
    def from_payload(cls, payload: Any) -> "User":
        what = "user"
        body = _expect_dict(payload, what)
        profile = body.get("student_profile")
        return cls(
            name=_str(body, "name", what) or "",
            role=_str(body, "role", what, required=True),
            email=_str(body, "email", what) or "",
            user_id=_str(body, "user_id", what) or _str(body, "_id", what),
            must_reset_password=bool(_bool(body, "must_reset_password", what)),
            student_profile=profile if isinstance(profile, dict) else None,
        )
