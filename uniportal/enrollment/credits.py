"""Credit arithmetic over the current selection. Recomputed on demand, never stored."""

from dataclasses import dataclass
from typing import Iterable

from uniportal.api.models import CourseOffering


def selected_credits(courses: Iterable[CourseOffering]) -> int:
    return sum(c.credits for c in courses)


def total_credits(base_credits: int, courses: Iterable[CourseOffering]) -> int:
    return base_credits + selected_credits(courses)


def is_over_limit(total: int, max_credits: int) -> bool:
    return total > max_credits


def has_prereq_error(courses: Iterable[CourseOffering]) -> bool:
    return any(c.error for c in courses)


@dataclass(frozen=True)
class CreditSummary:
    base: int
    selected: int
    max_credits: int

    @property
    def total(self) -> int:
        return self.base + self.selected

    @property
    def is_over_limit(self) -> bool:
        return is_over_limit(self.total, self.max_credits)

    @property
    def over_by(self) -> int:
        return max(0, self.total - self.max_credits)

    @property
    def usage_ratio(self) -> float:
        """Fill level for progress bars, capped at 1.0."""
        return min(self.total / max(self.max_credits, 1), 1.0)

    @classmethod
    def build(cls, base_credits: int, courses: Iterable[CourseOffering], max_credits: int) -> "CreditSummary":
        return cls(base=base_credits, selected=selected_credits(courses), max_credits=max_credits)
