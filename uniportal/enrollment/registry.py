import logging
from typing import Dict, Iterable, Iterator, List

from uniportal.api.models import CourseOffering

logger = logging.getLogger(__name__)


class SelectionRegistry:
    """Unsubmitted course picks, keyed by course code in insertion order."""

    def __init__(self) -> None:
        self._courses: Dict[str, CourseOffering] = {}

    def toggle(self, course: CourseOffering, window_active: bool = True) -> bool:
        """
        Add the course if absent, remove it if present.

        Locked courses and toggles while the window is closed are ignored.
        Returns True only when the course was added.
        """
        if course.is_locked or not window_active:
            logger.debug(f"Ignored toggle of {course.code} (locked={course.is_locked}, active={window_active})")
            return False
        if course.code in self._courses:
            del self._courses[course.code]
            return False
        self._courses[course.code] = course
        return True

    def remove_many(self, codes: Iterable[str]) -> List[str]:
        """Drop every given code in one batch; unknown codes are skipped."""
        removed = []
        for code in codes:
            if self._courses.pop(code, None) is not None:
                removed.append(code)
        return removed

    def clear(self) -> None:
        self._courses.clear()

    def size(self) -> int:
        return len(self._courses)

    def values(self) -> List[CourseOffering]:
        return list(self._courses.values())

    def codes(self) -> List[str]:
        return list(self._courses.keys())

    def __contains__(self, code: object) -> bool:
        return code in self._courses

    def __len__(self) -> int:
        return len(self._courses)

    def __iter__(self) -> Iterator[CourseOffering]:
        return iter(self.values())
