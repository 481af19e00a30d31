import dataclasses
import logging
import math
from typing import Iterable, List, Optional, Set

from uniportal.api.models import LOCKED, SELECTED, CourseOffering
from uniportal.enrollment.registry import SelectionRegistry

logger = logging.getLogger(__name__)

FILTER_KEYS = ("enrollable", "track:cs", "track:ct", "major")
ITEMS_PER_PAGE = 20


class CourseCatalog:
    """Fetched course offerings plus the student's active filters and search text."""

    def __init__(self, courses: Optional[Iterable[CourseOffering]] = None) -> None:
        self.courses: List[CourseOffering] = list(courses or [])
        self.filters: Set[str] = set()
        self.query: str = ""

    def replace(self, courses: Iterable[CourseOffering]) -> None:
        self.courses = list(courses)
        logger.debug(f"Catalog holds {len(self.courses)} courses")

    def toggle_filter(self, key: str) -> None:
        if key not in FILTER_KEYS:
            raise ValueError(f"Unknown filter {key!r}; expected one of {FILTER_KEYS}")
        if key in self.filters:
            self.filters.discard(key)
        else:
            self.filters.add(key)

    @property
    def sort_param(self) -> Optional[str]:
        """Server `sort` value: active filters joined by commas, in a stable order."""
        keys = [k for k in FILTER_KEYS if k in self.filters]
        return ",".join(keys) or None

    def find(self, code: str) -> Optional[CourseOffering]:
        for course in self.courses:
            if course.code == code:
                return course
        return None

    def visible(self, window_active: bool = True) -> List[CourseOffering]:
        """Courses matching the search; nothing when 'enrollable' is on and the window is closed."""
        if "enrollable" in self.filters and not window_active:
            return []
        q = self.query.strip().lower()
        if not q:
            return list(self.courses)
        return [c for c in self.courses if _matches(c, q)]

    def page_count(self, window_active: bool = True, per_page: int = ITEMS_PER_PAGE) -> int:
        return math.ceil(len(self.visible(window_active)) / per_page)

    def page(self, number: int = 1, window_active: bool = True, per_page: int = ITEMS_PER_PAGE) -> List[CourseOffering]:
        start = (max(number, 1) - 1) * per_page
        return self.visible(window_active)[start:start + per_page]

    @staticmethod
    def display(courses: Iterable[CourseOffering], registry: SelectionRegistry) -> List[CourseOffering]:
        """Annotate derived status: selected beats locked beats the server status."""
        out = []
        for course in courses:
            if course.code in registry:
                course = dataclasses.replace(course, status=SELECTED)
            elif course.enrollable is False:
                course = dataclasses.replace(course, status=LOCKED)
            out.append(course)
        return out


def _matches(course: CourseOffering, q: str) -> bool:
    return (
        q in course.title.lower()
        or q in course.code.lower()
        or q in course.desc.lower()
        or q in course.type.lower()
        or q in str(course.credits)
    )
