import pytest
from conftest import FakeApi, make_course

from uniportal.api.models import DropCandidate, DropRecommendation, EnrollmentSetting, EnrollResult, MajorState
from uniportal.core.http import ApiError, ConnectionFailed
from uniportal.enrollment.cache import EnrollmentCache
from uniportal.enrollment.routing import RoutingDecision
from uniportal.enrollment.session import EnrollmentSession, GateState


def loaded_session(api: FakeApi, cache=None) -> EnrollmentSession:
    session = EnrollmentSession(api, cache=cache)
    session.load()
    return session


class TestLoad:
    def test_setting_overrides_default_limit(self):
        api = FakeApi(setting=EnrollmentSetting(is_active=True, max_credits=24))
        session = loaded_session(api)
        assert session.max_credits == 24

    def test_base_credits_from_current_courses(self):
        session = loaded_session(FakeApi(base_credits=12))
        assert session.base_credits == 12

    def test_setting_failure_keeps_cached_values(self, tmp_path):
        cache = EnrollmentCache(tmp_path / "cache.json")
        cache.store_enrollment_setting(EnrollmentSetting(is_active=False, max_credits=21))

        api = FakeApi()
        api.enrollment_setting_current = lambda: (_ for _ in ()).throw(ApiError("boom", status=500))
        session = loaded_session(api, cache=cache)

        assert session.setting_error == "boom"
        assert session.max_credits == 21
        assert session.window_active is False

    def test_fresh_setting_overwrites_cache(self, tmp_path):
        cache = EnrollmentCache(tmp_path / "cache.json")
        cache.set_max_credits(30)
        loaded_session(FakeApi(setting=EnrollmentSetting(is_active=True, max_credits=20)), cache=cache)
        assert EnrollmentCache(tmp_path / "cache.json").max_credits(18) == 20

    def test_catalog_failure_is_local(self):
        api = FakeApi()
        api.available_courses = lambda sort=None: (_ for _ in ()).throw(ConnectionFailed())
        session = loaded_session(api)
        assert session.catalog_error == "Failed to connect to server"
        assert session.setting_error is None

    def test_filter_change_refetches_with_sort(self):
        api = FakeApi(courses=[make_course("CS101")])
        session = loaded_session(api)
        session.toggle_filter("major")
        session.toggle_filter("enrollable")
        assert api.sorts[-1] == "enrollable,major"


class TestSelection:
    def test_first_selection_opens_validation(self):
        session = loaded_session(FakeApi())
        session.toggle(make_course("CS101"))
        assert session.show_validation is True
        session.hide_validation()
        assert session.registry.size() == 1

    def test_closed_window_blocks_toggle(self):
        session = loaded_session(FakeApi(setting=EnrollmentSetting(is_active=False, max_credits=18)))
        session.toggle(make_course("CS101"))
        assert session.registry.size() == 0

    def test_toggle_code_uses_catalog(self):
        session = loaded_session(FakeApi(courses=[make_course("CS101")]))
        assert session.toggle_code("CS101") is True
        with pytest.raises(KeyError):
            session.toggle_code("NOPE")

    def test_reset_forgets_picks(self):
        session = loaded_session(FakeApi())
        session.toggle(make_course("CS101"))
        session.reset()
        assert session.registry.size() == 0
        assert session.show_validation is False


class TestDropRecommendation:
    def over_limit_session(self):
        api = FakeApi(setting=EnrollmentSetting(is_active=True, max_credits=18), base_credits=15)
        api.recommendation = DropRecommendation(
            elective=DropCandidate(code="EL300", credits=3, reason="Elective, lowest priority"),
            others=[DropCandidate(code="CS101", credits=4)],
            credits_to_drop=1,
            message="Drop one course",
        )
        return api, loaded_session(api)

    def test_not_fetched_under_limit(self):
        api = FakeApi(base_credits=10)
        session = loaded_session(api)
        session.toggle(make_course("CS101", 3))
        assert "drop_recommendation" not in api.calls

    def test_fetched_and_seeded_when_over_limit(self):
        api, session = self.over_limit_session()
        session.toggle(make_course("CS101", 4))
        assert api.calls.count("drop_recommendation") == 1
        assert session.drop_selected_codes == {"EL300", "CS101"}

    def test_refetched_on_every_change_while_over(self):
        api, session = self.over_limit_session()
        session.toggle(make_course("CS101", 4))
        session.toggle(make_course("EL300", 3))
        assert api.calls.count("drop_recommendation") == 2

    def test_cleared_when_back_under_limit(self):
        api, session = self.over_limit_session()
        course = make_course("CS101", 4)
        session.toggle(course)
        session.toggle(course)
        assert session.drop_recommendation is None
        assert session.drop_selected_codes == set()

    def test_failure_clears_and_reports(self):
        api, session = self.over_limit_session()
        api.drop_error = ApiError("AI unavailable", status=503)
        session.toggle(make_course("CS101", 4))
        assert session.drop_recommendation is None
        assert session.drop_selected_codes == set()
        assert session.drop_error == "AI unavailable"
        assert api.calls.count("drop_recommendation") == 1

    def test_stale_response_is_discarded(self):
        api, session = self.over_limit_session()
        newer = DropRecommendation(elective=None, others=[DropCandidate(code="MA201")], message="newer")

        def overlap():
            # a second request starts and finishes while the first is in flight
            api.recommendation, older = newer, api.recommendation
            session.refresh_drop_recommendation()
            api.recommendation = older

        api.on_drop_recommendation = overlap
        session.toggle(make_course("CS101", 4))
        assert session.drop_recommendation.message == "newer"
        assert session.drop_selected_codes == {"MA201"}

    def test_toggle_drop_selection(self):
        api, session = self.over_limit_session()
        session.toggle(make_course("CS101", 4))
        session.toggle_drop_selection("EL300")
        assert session.drop_selected_codes == {"CS101"}
        session.toggle_drop_selection("EL300")
        assert "EL300" in session.drop_selected_codes

    def test_apply_removes_exactly_selected(self):
        session = loaded_session(FakeApi(base_credits=0))
        for code in ("CS101", "CS202", "MA201"):
            session.toggle(make_course(code))
        session.drop_selected_codes = {"CS101", "CS202"}
        removed = session.apply_selected_drops()
        assert sorted(removed) == ["CS101", "CS202"]
        assert session.registry.codes() == ["MA201"]

    def test_apply_with_nothing_selected_is_noop(self):
        session = loaded_session(FakeApi())
        session.toggle(make_course("CS101"))
        assert session.apply_selected_drops() == []
        assert session.registry.size() == 1


class TestFinalizationGate:
    def test_disabled_on_fresh_load(self):
        session = loaded_session(FakeApi())
        assert session.can_commit() is False
        assert session.blocked_reason() == "Select at least one course"

    def test_disabled_when_window_closed(self):
        session = loaded_session(FakeApi())
        session.toggle(make_course("CS101"))
        session.setting = EnrollmentSetting(is_active=False, max_credits=18)
        assert session.can_commit() is False

    def test_disabled_on_prereq_error(self):
        session = loaded_session(FakeApi())
        session.toggle(make_course("CS301", error="Needs CS201"))
        assert session.can_commit() is False

    def test_end_to_end_over_limit_then_drop(self):
        api = FakeApi(setting=EnrollmentSetting(is_active=True, max_credits=18), base_credits=15)
        api.recommendation = DropRecommendation(elective=DropCandidate(code="CS400", credits=4))
        session = loaded_session(api)

        session.toggle(make_course("CS400", 4))
        assert session.credits.total == 19
        assert session.is_over_limit is True
        assert "drop_recommendation" in api.calls
        assert session.can_commit() is False

        session.apply_selected_drops()
        session.toggle(make_course("MA101", 3))
        assert session.credits.total == 18
        assert session.can_commit() is True

    def test_commit_posts_codes_in_order(self):
        api = FakeApi()
        session = loaded_session(api)
        session.toggle(make_course("CS101"))
        session.toggle(make_course("MA201"))
        outcome = session.finalize()
        assert outcome.committed is True
        assert api.enrolled == [["CS101", "MA201"]]
        assert session.gate == GateState.COMMITTED
        assert session.success_message == "Enrolled successfully"
        assert session.registry.size() == 0

    def test_committed_is_terminal(self):
        session = loaded_session(FakeApi())
        session.toggle(make_course("CS101"))
        session.finalize()
        assert session.toggle(make_course("MA201")) is False
        assert session.finalize().committed is False
        assert session.gate == GateState.COMMITTED

    def test_rejection_returns_to_idle(self):
        api = FakeApi()
        api.enroll_result = EnrollResult(success=False, message="Window closed")
        session = loaded_session(api)
        session.toggle(make_course("CS101"))
        outcome = session.finalize()
        assert outcome.committed is False
        assert session.commit_error == "Window closed"
        assert session.gate == GateState.IDLE
        assert session.registry.size() == 1

    def test_api_error_returns_to_idle(self):
        api = FakeApi()
        api.enroll_error = ApiError("Enrollment is closed", status=400)
        session = loaded_session(api)
        session.toggle(make_course("CS101"))
        assert session.finalize().message == "Enrollment is closed"
        assert session.gate == GateState.IDLE

    def test_blocked_finalize_does_not_post(self):
        api = FakeApi()
        session = loaded_session(api)
        session.finalize()
        assert "enroll" not in api.calls


class TestSpecialRouting:
    def session_with_state(self, raw):
        api = FakeApi(major_state=MajorState(raw=raw))
        return api, loaded_session(api)

    def test_new_student_major_course_reroutes(self):
        api, session = self.session_with_state({"is_new": True, "current_year": "First Year"})
        session.toggle(make_course("SE300", type="Major"))
        outcome = session.finalize()
        assert outcome.route == RoutingDecision.MAJOR_SELECTION
        assert "enroll" not in api.calls

    def test_reroute_ignores_credit_limit(self):
        api, session = self.session_with_state({"isNew": "true", "year": 1, "program_type": "5-year"})
        session.max_credits = 2
        session.toggle(make_course("SE300", 4, type="Major"))
        assert session.can_commit() is True
        assert session.finalize().route == RoutingDecision.TRACK_SELECTION

    def test_reroute_still_needs_selection_and_window(self):
        api, session = self.session_with_state({"is_new": True, "current_year": 1})
        session.toggle(make_course("SE300", type="Major"))
        session.setting = EnrollmentSetting(is_active=False, max_credits=18)
        assert session.can_commit() is False

    def test_server_decision_wins(self):
        api = FakeApi(major_state=MajorState(raw={"is_new": True, "current_year": 1}, routing_decision="submit"))
        session = loaded_session(api)
        session.toggle(make_course("SE300", type="Major"))
        assert session.finalize().committed is True


class TestAssistant:
    def test_blank_message_rejected(self):
        session = loaded_session(FakeApi())
        with pytest.raises(ValueError):
            session.ask_assistant("   ")

    def test_suggestions_can_be_applied(self):
        api = FakeApi()
        api.assistance = [make_course("AI200", 3), make_course("AI300", 3, enrollable=False)]
        session = loaded_session(api)
        results = session.ask_assistant("something about AI")
        assert [c.code for c in results] == ["AI200", "AI300"]
        assert session.apply_suggestion(results[0]) is True
        assert session.apply_suggestion(results[1]) is False
        assert session.registry.codes() == ["AI200"]

    def test_failure_reported(self):
        api = FakeApi()
        api.enrollment_assistance = lambda message: (_ for _ in ()).throw(ApiError("nope", status=500))
        session = loaded_session(api)
        assert session.ask_assistant("hi") == []
        assert session.assistance_error == "nope"
