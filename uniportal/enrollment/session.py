"""
EnrollmentSession: the in-memory state behind the enrollment page.

    catalog --(toggle)--> registry --> credit summary
                                          |
                            over limit? --+--> drop recommendation
                                          |
                                          v
                                  finalization gate --> POST enroll

One session serves one student for one visit to the enrollment page. After a
successful commit the session stays COMMITTED; start a new session to enroll
again.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Set

from uniportal.api.models import CourseOffering, DropRecommendation, EnrollmentSetting, MajorState
from uniportal.core.http import ApiError
from uniportal.enrollment.cache import EnrollmentCache
from uniportal.enrollment.catalog import CourseCatalog
from uniportal.enrollment.credits import CreditSummary, has_prereq_error
from uniportal.enrollment.registry import SelectionRegistry
from uniportal.enrollment.routing import RoutingDecision, resolve_route

logger = logging.getLogger(__name__)

DEFAULT_MAX_CREDITS = 18


class GateState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    COMMITTED = "committed"


@dataclass(frozen=True)
class FinalizeOutcome:
    committed: bool
    route: RoutingDecision = RoutingDecision.SUBMIT
    message: str = ""


class EnrollmentSession:
    def __init__(
        self,
        api,
        cache: Optional[EnrollmentCache] = None,
        default_max_credits: int = DEFAULT_MAX_CREDITS,
    ) -> None:
        self.api = api
        self.cache = cache
        self.catalog = CourseCatalog()
        self.registry = SelectionRegistry()

        # cached values until the server answers
        self.setting: Optional[EnrollmentSetting] = cache.enrollment_setting() if cache else None
        self.max_credits: int = cache.max_credits(default_max_credits) if cache else default_max_credits
        self.base_credits: int = cache.current_credits() if cache else 0
        self.major_state: Optional[MajorState] = None

        self.show_validation = False
        self.gate = GateState.IDLE
        self.success_message: Optional[str] = None
        self.commit_error: Optional[str] = None

        self.catalog_error: Optional[str] = None
        self.setting_error: Optional[str] = None

        self.drop_recommendation: Optional[DropRecommendation] = None
        self.drop_selected_codes: Set[str] = set()
        self.drop_error: Optional[str] = None
        self.drop_loading = False
        self._drop_token = 0

        self.assistance_results: List[CourseOffering] = []
        self.assistance_error: Optional[str] = None

    # --- loading ---

    def load(self) -> None:
        """Fetch everything the page needs. Each fetch fails independently."""
        self.refresh_setting()
        self.refresh_base_credits()
        self.refresh_major_state()
        self.refresh_catalog()

    def refresh_setting(self) -> None:
        self.setting_error = None
        try:
            setting = self.api.enrollment_setting_current()
        except ApiError as e:
            logger.error(f"Failed to load enrollment setting: {e.message}")
            self.setting_error = e.message
            return
        self.setting = setting
        self.max_credits = setting.max_credits
        if self.cache:
            self.cache.store_enrollment_setting(setting)
        self._after_selection_change()

    def refresh_base_credits(self) -> None:
        try:
            current = self.api.current_courses()
        except ApiError as e:
            logger.warning(f"Failed to load current courses, keeping {self.base_credits} credits: {e.message}")
            return
        self.base_credits = current.total_credits
        if self.cache:
            self.cache.set_current_credits(current.total_credits)
            if current.semester_name:
                self.cache.set_current_semester(current.semester_name)
        self._after_selection_change()

    def refresh_major_state(self) -> None:
        try:
            self.major_state = self.api.major_state()
        except ApiError as e:
            logger.warning(f"Failed to load major state: {e.message}")

    def refresh_catalog(self) -> None:
        self.catalog_error = None
        try:
            courses = self.api.available_courses(self.catalog.sort_param)
        except ApiError as e:
            logger.error(f"Failed to fetch courses: {e.message}")
            self.catalog_error = e.message
            return
        self.catalog.replace(courses)

    def toggle_filter(self, key: str) -> None:
        self.catalog.toggle_filter(key)
        self.refresh_catalog()

    # --- selection ---

    @property
    def window_active(self) -> bool:
        # no setting yet: treat the window as open, the server still decides
        return self.setting.is_active if self.setting is not None else True

    def toggle(self, course: CourseOffering) -> bool:
        if self.gate == GateState.COMMITTED:
            return False
        before = self.registry.size()
        added = self.registry.toggle(course, window_active=self.window_active)
        if added:
            self.show_validation = True
        if self.registry.size() != before:
            self._after_selection_change()
        return added

    def toggle_code(self, code: str) -> bool:
        course = self.catalog.find(code)
        if course is None:
            raise KeyError(f"Course {code} is not in the catalog")
        return self.toggle(course)

    def hide_validation(self) -> None:
        self.show_validation = False

    def reset(self) -> None:
        """Forget unsubmitted picks, as when leaving the page."""
        self.registry.clear()
        self.show_validation = False
        self._clear_drops()

    # --- credits ---

    @property
    def credits(self) -> CreditSummary:
        return CreditSummary.build(self.base_credits, self.registry.values(), self.max_credits)

    @property
    def is_over_limit(self) -> bool:
        return self.credits.is_over_limit

    @property
    def has_prereq_error(self) -> bool:
        return has_prereq_error(self.registry.values())

    # --- drop recommendation ---

    def _after_selection_change(self) -> None:
        if self.is_over_limit:
            self.refresh_drop_recommendation()
        else:
            self._clear_drops()

    def _clear_drops(self) -> None:
        # invalidate anything still in flight
        self._drop_token += 1
        self.drop_recommendation = None
        self.drop_selected_codes = set()
        self.drop_error = None
        self.drop_loading = False

    def refresh_drop_recommendation(self) -> None:
        """Fetch a fresh suggestion; only the newest request's answer is kept."""
        self._drop_token += 1
        token = self._drop_token
        self.drop_loading = True
        self.drop_error = None
        try:
            recommendation = self.api.drop_recommendation()
        except ApiError as e:
            if token != self._drop_token:
                logger.debug(f"Discarding stale drop recommendation failure (request {token})")
                return
            logger.error(f"Failed to get drop recommendation: {e.message}")
            self.drop_recommendation = None
            self.drop_selected_codes = set()
            self.drop_error = e.message
            self.drop_loading = False
            return
        if token != self._drop_token:
            logger.debug(f"Discarding stale drop recommendation (request {token})")
            return
        self.drop_recommendation = recommendation
        self.drop_selected_codes = set(recommendation.suggested_codes())
        self.drop_loading = False

    def toggle_drop_selection(self, code: str) -> None:
        if code in self.drop_selected_codes:
            self.drop_selected_codes.discard(code)
        else:
            self.drop_selected_codes.add(code)

    def apply_selected_drops(self) -> List[str]:
        if not self.drop_selected_codes:
            return []
        removed = self.registry.remove_many(sorted(self.drop_selected_codes))
        logger.info(f"Dropped {len(removed)} course(s): {', '.join(removed)}")
        self._after_selection_change()
        return removed

    # --- finalization gate ---

    def route(self) -> RoutingDecision:
        return resolve_route(self.major_state, self.registry.values())

    def blocked_reason(self) -> Optional[str]:
        """Why the commit action is disabled, or None when it is enabled."""
        if self.gate == GateState.COMMITTED:
            return "Enrollment already finalized"
        if not self.window_active:
            return "Enrollment window is closed"
        if self.registry.size() == 0:
            return "Select at least one course"
        if self.route() != RoutingDecision.SUBMIT:
            return None
        if self.is_over_limit:
            return f"Over the credit limit by {self.credits.over_by}"
        if self.has_prereq_error:
            return "Resolve prerequisite errors first"
        return None

    def can_commit(self) -> bool:
        return self.blocked_reason() is None

    def finalize(self) -> FinalizeOutcome:
        reason = self.blocked_reason()
        if reason is not None:
            return FinalizeOutcome(committed=False, message=reason)

        route = self.route()
        if route != RoutingDecision.SUBMIT:
            logger.info(f"Selection needs {route.value} before enrolling")
            return FinalizeOutcome(committed=False, route=route)

        self.gate = GateState.VALIDATING
        self.commit_error = None
        codes = self.registry.codes()
        try:
            result = self.api.enroll(codes)
        except ApiError as e:
            logger.error(f"Enrollment failed: {e.message}")
            self.commit_error = e.message
            self.gate = GateState.IDLE
            return FinalizeOutcome(committed=False, message=e.message)

        if not result.success:
            message = result.message or "Enrollment was rejected"
            logger.error(f"Enrollment rejected: {message}")
            self.commit_error = message
            self.gate = GateState.IDLE
            return FinalizeOutcome(committed=False, message=message)

        self.gate = GateState.COMMITTED
        self.success_message = result.message
        self.registry.clear()
        self._clear_drops()
        logger.info(f"Enrolled in {', '.join(codes)}")
        return FinalizeOutcome(committed=True, message=result.message)

    # --- enrollment assistance ---

    def ask_assistant(self, message: str) -> List[CourseOffering]:
        message = message.strip()
        if not message:
            raise ValueError("Ask the assistant something first")
        self.assistance_error = None
        try:
            self.assistance_results = self.api.enrollment_assistance(message)
        except ApiError as e:
            logger.error(f"Enrollment assistance failed: {e.message}")
            self.assistance_error = e.message
            self.assistance_results = []
        return self.assistance_results

    def apply_suggestion(self, course: CourseOffering) -> bool:
        return self.toggle(course)
