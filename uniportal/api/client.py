import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from uniportal.api.models import (
    CourseOffering,
    CurrentCourses,
    DropRecommendation,
    EnrollmentSetting,
    EnrollResult,
    MajorState,
    User,
    data_list,
)
from uniportal.config.settings import Settings
from uniportal.core.cookies import load_cookies, save_cookies
from uniportal.core.http import HttpClient

logger = logging.getLogger(__name__)

ROLES = ("student", "admin")


class PortalApi:
    """One method per portal endpoint the client consumes."""

    def __init__(self, http: HttpClient) -> None:
        self.http = http

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        use_saved_cookies: bool = True,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> "PortalApi":
        cookies: Dict[str, str] = {}
        if use_saved_cookies and settings.cookies_path.exists():
            cookies = load_cookies(settings.cookies_path)
        http = HttpClient(
            base_url=settings.api_base_url,
            headers={"User-Agent": settings.user_agent},
            cookies=cookies,
            timeout=settings.timeout,
            max_retries=settings.max_retries,
            transport=transport,
        )
        return cls(http)

    def save_session(self, path: Path) -> None:
        save_cookies(path, self.http.cookies)

    def close(self) -> None:
        self.http.close()

    # --- auth ---

    def login(self, username: str, password: str, role: str = "student") -> User:
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {role!r}")
        data = self.http.post_json(
            "/api/v1/auth/login",
            {"username": username, "password": password, "role": role},
        )
        user = User.from_login_payload(data)
        logger.info(f"Logged in as {user.name or username} ({user.role})")
        return user

    def me(self) -> User:
        return User.from_payload(self.http.get_json("/api/v1/auth/me"))

    def logout(self) -> None:
        self.http.post_json("/api/v1/auth/logout")

    # --- student enrollment ---

    def current_courses(self) -> CurrentCourses:
        return CurrentCourses.from_payload(self.http.get_json("/api/v1/student/courses/current"))

    def available_courses(self, sort: Optional[str] = None) -> List[CourseOffering]:
        params = {"sort": sort} if sort else None
        data = self.http.get_json("/api/v1/student/enrollment/available-courses", params=params)
        return [CourseOffering.from_payload(c) for c in data_list(data, "available courses")]

    def enrollment_setting_current(self) -> EnrollmentSetting:
        return EnrollmentSetting.from_payload(
            self.http.get_json("/api/v1/student/enrollment-setting/current")
        )

    def drop_recommendation(self) -> DropRecommendation:
        return DropRecommendation.from_payload(
            self.http.get_json("/api/v1/student/enrollment/drop-recommendation")
        )

    def enroll(self, selected_codes: List[str]) -> EnrollResult:
        body = {"selected_code": ",".join(selected_codes)}
        return EnrollResult.from_payload(self.http.post_json("/api/v1/student/enrollment/enroll", body))

    def enrollment_assistance(self, message: str) -> List[CourseOffering]:
        data = self.http.post_json("/api/v1/student/enrollment/assistance", {"message": message})
        return [CourseOffering.from_payload(c) for c in data_list(data, "enrollment assistance")]

    def major_state(self) -> MajorState:
        return MajorState.from_payload(self.http.get_json("/api/v1/student/major/state"))

    # --- admin ---

    def admin_enrollment_setting_current(self) -> EnrollmentSetting:
        return EnrollmentSetting.from_payload(
            self.http.get_json("/api/v1/admin/enrollment-setting/current")
        )

    def admin_update_enrollment_setting(self, payload: Dict[str, Any]) -> EnrollmentSetting:
        return EnrollmentSetting.from_payload(
            self.http.put_json("/api/v1/admin/enrollment-setting", payload)
        )
