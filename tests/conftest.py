import json
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from uniportal.api.client import PortalApi
from uniportal.api.models import (
    CourseOffering,
    CurrentCourses,
    DropRecommendation,
    EnrollmentSetting,
    EnrollResult,
    MajorState,
)
from uniportal.core.http import ApiError, HttpClient


def make_course(code: str, credits: int = 3, **kwargs) -> CourseOffering:
    kwargs.setdefault("title", f"Course {code}")
    return CourseOffering(code=code, credits=credits, **kwargs)


class FakeApi:
    """In-memory stand-in for PortalApi used by the session tests."""

    def __init__(
        self,
        courses: Optional[List[CourseOffering]] = None,
        setting: Optional[EnrollmentSetting] = None,
        base_credits: int = 0,
        major_state: Optional[MajorState] = None,
    ) -> None:
        self.courses = courses or []
        self.setting = setting or EnrollmentSetting(is_active=True, max_credits=18)
        self.base_credits = base_credits
        self.major_state_value = major_state or MajorState(raw={})
        self.recommendation = DropRecommendation(elective=None)
        self.drop_error: Optional[ApiError] = None
        self.enroll_result = EnrollResult(success=True, message="Enrolled successfully")
        self.enroll_error: Optional[ApiError] = None
        self.assistance: List[CourseOffering] = []
        self.calls: List[str] = []
        self.enrolled: List[List[str]] = []
        self.sorts: List[Optional[str]] = []
        self.on_drop_recommendation: Optional[Callable[[], None]] = None

    def enrollment_setting_current(self) -> EnrollmentSetting:
        self.calls.append("setting")
        return self.setting

    def current_courses(self) -> CurrentCourses:
        self.calls.append("current_courses")
        return CurrentCourses(semester_name="2026 Fall", total_credits=self.base_credits, max_credits=None)

    def major_state(self) -> MajorState:
        self.calls.append("major_state")
        return self.major_state_value

    def available_courses(self, sort: Optional[str] = None) -> List[CourseOffering]:
        self.calls.append("available_courses")
        self.sorts.append(sort)
        return list(self.courses)

    def drop_recommendation(self) -> DropRecommendation:
        self.calls.append("drop_recommendation")
        hook, self.on_drop_recommendation = self.on_drop_recommendation, None
        if hook is not None:
            hook()
        if self.drop_error is not None:
            raise self.drop_error
        return self.recommendation

    def enroll(self, selected_codes: List[str]) -> EnrollResult:
        self.calls.append("enroll")
        if self.enroll_error is not None:
            raise self.enroll_error
        self.enrolled.append(list(selected_codes))
        return self.enroll_result

    def enrollment_assistance(self, message: str) -> List[CourseOffering]:
        self.calls.append("assistance")
        return list(self.assistance)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


class Recorder:
    """Routes requests to canned JSON answers and records what was sent."""

    def __init__(self) -> None:
        self.routes: Dict[tuple, httpx.Response] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, status: int = 200, json_body=None, text: Optional[str] = None) -> None:
        if text is not None:
            self.routes[(method, path)] = httpx.Response(status, text=text)
        else:
            self.routes[(method, path)] = httpx.Response(status, json=json_body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.routes.get((request.method, request.url.path))
        if response is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        return response

    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def portal(recorder: Recorder) -> PortalApi:
    http = HttpClient(
        base_url="http://portal.test/",
        timeout=5,
        max_retries=1,
        transport=httpx.MockTransport(recorder.handler),
    )
    api = PortalApi(http)
    yield api
    api.close()
