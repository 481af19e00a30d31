import random

from conftest import make_course

from uniportal.api.models import LOCKED
from uniportal.enrollment.registry import SelectionRegistry


class TestToggle:
    def test_adds_then_removes(self):
        reg = SelectionRegistry()
        course = make_course("CS101")
        assert reg.toggle(course) is True
        assert "CS101" in reg
        assert reg.toggle(course) is False
        assert reg.size() == 0

    def test_locked_status_is_ignored(self):
        reg = SelectionRegistry()
        assert reg.toggle(make_course("CS101", status=LOCKED)) is False
        assert reg.size() == 0

    def test_not_enrollable_is_ignored(self):
        reg = SelectionRegistry()
        reg.toggle(make_course("CS101", enrollable=False))
        assert reg.size() == 0

    def test_inactive_window_is_ignored(self):
        reg = SelectionRegistry()
        reg.toggle(make_course("CS101"), window_active=False)
        assert reg.size() == 0

    def test_inactive_window_does_not_remove(self):
        reg = SelectionRegistry()
        course = make_course("CS101")
        reg.toggle(course)
        reg.toggle(course, window_active=False)
        assert reg.codes() == ["CS101"]

    def test_keeps_insertion_order(self):
        reg = SelectionRegistry()
        for code in ("MA201", "CS101", "PH110"):
            reg.toggle(make_course(code))
        assert reg.codes() == ["MA201", "CS101", "PH110"]

    def test_random_sequence_never_duplicates(self):
        rng = random.Random(7)
        courses = [make_course(f"C{i}") for i in range(6)]
        reg = SelectionRegistry()
        on = set()
        for _ in range(200):
            course = rng.choice(courses)
            reg.toggle(course)
            on ^= {course.code}
            assert len(reg.codes()) == len(set(reg.codes()))
            assert reg.size() == len(on)


class TestRemoveMany:
    def test_removes_only_given_codes(self):
        reg = SelectionRegistry()
        for code in ("CS101", "CS202", "MA201"):
            reg.toggle(make_course(code))
        removed = reg.remove_many(["CS101", "CS202"])
        assert removed == ["CS101", "CS202"]
        assert reg.codes() == ["MA201"]

    def test_unknown_codes_are_skipped(self):
        reg = SelectionRegistry()
        reg.toggle(make_course("CS101"))
        assert reg.remove_many(["XX999"]) == []
        assert reg.size() == 1
