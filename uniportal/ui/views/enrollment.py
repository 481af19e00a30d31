"""
Enrollment View
Pick courses, watch the credit ceiling, apply suggested drops, finalize.
"""

import streamlit as st

from uniportal.enrollment.catalog import FILTER_KEYS, ITEMS_PER_PAGE, CourseCatalog
from uniportal.enrollment.routing import RoutingDecision
from uniportal.enrollment.session import EnrollmentSession, GateState
from uniportal.enrollment.window import describe_window

FILTER_LABELS = {"track:cs": "CS", "track:ct": "CT", "major": "Major", "enrollable": "Enrollable"}


def render_enrollment_view(session: EnrollmentSession):
    st.header("📝 Course Enrollment")
    _render_window_card(session)
    st.divider()

    col_main, col_side = st.columns([3, 2])
    with col_main:
        _render_filters(session)
        _render_catalog(session)
        _render_assistant(session)
    with col_side:
        _render_selection_panel(session)


def _render_window_card(session: EnrollmentSession):
    window = describe_window(session.setting)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Enrollment", window["status"])
    c2.metric("Opens", window["open"])
    c3.metric("Closes", window["close"])
    c4.metric("Remaining", window["remaining"])
    if session.setting_error:
        st.error(session.setting_error)


def _render_filters(session: EnrollmentSession):
    query = st.text_input("🔍 Search courses", value=session.catalog.query)
    if query != session.catalog.query:
        session.catalog.query = query
        st.session_state["enroll_page"] = 1

    cols = st.columns(len(FILTER_KEYS))
    for col, key in zip(cols, FILTER_KEYS):
        active = key in session.catalog.filters
        if col.button(FILTER_LABELS[key], key=f"filter_{key}", type="primary" if active else "secondary"):
            session.toggle_filter(key)
            st.session_state["enroll_page"] = 1
            st.rerun()


def _render_catalog(session: EnrollmentSession):
    if session.catalog_error:
        st.error(f"Failed to fetch courses: {session.catalog_error}")
        return

    active = session.window_active
    pages = max(session.catalog.page_count(window_active=active), 1)
    page = min(st.session_state.get("enroll_page", 1), pages)
    courses = CourseCatalog.display(session.catalog.page(page, window_active=active), session.registry)
    if not courses:
        st.info("No courses match.")
        return

    for course in courses:
        with st.container(border=True):
            left, right = st.columns([4, 1])
            left.markdown(f"**{course.code}** · {course.title}  \n`{course.type}` · {course.credits} credits")
            if course.schedule:
                left.caption(course.schedule)
            if course.error:
                left.warning(course.error)
            label = "Remove" if course.status == "selected" else "Select"
            if right.button(label, key=f"toggle_{course.code}", disabled=course.is_locked or not active):
                session.toggle(course)
                st.rerun()

    prev_col, info_col, next_col = st.columns([1, 2, 1])
    if prev_col.button("◀", disabled=page <= 1):
        st.session_state["enroll_page"] = page - 1
        st.rerun()
    info_col.caption(f"Page {page}/{pages} ({ITEMS_PER_PAGE} per page)")
    if next_col.button("▶", disabled=page >= pages):
        st.session_state["enroll_page"] = page + 1
        st.rerun()


def _render_assistant(session: EnrollmentSession):
    with st.expander("🤖 Enrollment assistant", expanded=False):
        message = st.text_input("What are you looking for?", key="assist_message")
        if st.button("Ask", disabled=not message.strip()):
            with st.spinner("Thinking..."):
                session.ask_assistant(message)
        if session.assistance_error:
            st.error(session.assistance_error)
        for course in session.assistance_results:
            cols = st.columns([4, 1])
            cols[0].markdown(f"**{course.code}** · {course.title} ({course.credits} cr)")
            if course.message:
                cols[0].caption(course.message)
            if cols[1].button("Add", key=f"assist_{course.code}", disabled=course.is_locked):
                session.apply_suggestion(course)
                st.rerun()


def _render_selection_panel(session: EnrollmentSession):
    st.subheader("Selection")
    summary = session.credits
    st.progress(summary.usage_ratio, text=f"{summary.total}/{summary.max_credits} credits")
    if summary.is_over_limit:
        st.error(f"Over the credit limit by {summary.over_by}.")

    if session.show_validation:
        if session.has_prereq_error:
            st.warning("Some selected courses have unmet prerequisites.")
        else:
            st.success("Prerequisites look fine.")
        for course in session.registry.values():
            st.markdown(f"- {course.code} ({course.credits} cr)")

    if summary.is_over_limit:
        _render_drop_panel(session)

    _render_gate(session)


def _render_drop_panel(session: EnrollmentSession):
    head, refresh = st.columns([3, 1])
    head.markdown("**Suggested drops**")
    if refresh.button("Refresh", disabled=session.drop_loading):
        session.refresh_drop_recommendation()
        st.rerun()

    if session.drop_error:
        st.error(session.drop_error)
        return
    rec = session.drop_recommendation
    if rec is None:
        return
    st.caption(rec.message or "Retakes go first, then electives, then core courses.")
    st.caption(f"Current: {rec.current_total_credits} | Limit: {rec.credit_limit} | Need to drop: {rec.credits_to_drop}")
    recommended = set(rec.suggested_codes())
    for course in session.registry.values():
        label = f"{course.code} · {course.title}"
        if course.code in recommended:
            label += " (recommended)"
        checked = st.checkbox(label, value=course.code in session.drop_selected_codes, key=f"drop_{course.code}")
        if checked != (course.code in session.drop_selected_codes):
            session.toggle_drop_selection(course.code)
        reason = rec.reason_for(course.code)
        if reason:
            st.caption(reason)
    count = len(session.drop_selected_codes)
    if st.button(f"Apply Selected Drops ({count})", disabled=count == 0):
        session.apply_selected_drops()
        st.rerun()


def _render_gate(session: EnrollmentSession):
    if session.gate == GateState.COMMITTED:
        st.success(session.success_message or "Enrollment finalized.")
        return

    reason = session.blocked_reason()
    if reason:
        st.caption(reason)
    if st.button("Finalize Enrollment", type="primary", disabled=reason is not None):
        outcome = session.finalize()
        if outcome.route == RoutingDecision.TRACK_SELECTION:
            st.warning("Choose your track before enrolling in major courses.")
        elif outcome.route == RoutingDecision.MAJOR_SELECTION:
            st.warning("Choose your major before enrolling in major courses.")
        elif not outcome.committed:
            st.error(outcome.message)
        else:
            st.rerun()
