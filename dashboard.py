import logging

import streamlit as st

from uniportal.api.client import ROLES, PortalApi
from uniportal.config.settings import Settings
from uniportal.core.cookies import clear_cookies, verify_login_status
from uniportal.core.http import ApiError
from uniportal.enrollment.cache import EnrollmentCache
from uniportal.enrollment.session import EnrollmentSession
from uniportal.ui.views.enrollment import render_enrollment_view

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title="University Portal",
    page_icon="🎓",
    layout="wide",
    initial_sidebar_state="expanded",
)


def _new_session(settings: Settings) -> EnrollmentSession:
    api = PortalApi.from_settings(settings)
    session = EnrollmentSession(
        api,
        cache=EnrollmentCache(settings.cache_path),
        default_max_credits=settings.default_max_credits,
    )
    with st.spinner("Loading enrollment data..."):
        session.load()
    return session


def _drop_session():
    session = st.session_state.pop("enrollment_session", None)
    if session is not None:
        session.api.close()


def _render_login(settings: Settings):
    with st.expander("👤 Login", expanded=True):
        uid = st.text_input("ID", value=settings.username or "", key="login_id")
        upw = st.text_input("PW", type="password", key="login_pw")
        role = st.selectbox("Role", ROLES, index=ROLES.index(settings.role) if settings.role in ROLES else 0)
        if st.button("Login") and uid and upw:
            api = PortalApi.from_settings(settings, use_saved_cookies=False)
            try:
                api.login(uid, upw, role)
                api.save_session(settings.cookies_path)
                st.rerun()
            except ApiError as e:
                st.error(f"Login failed: {e.message}")
            finally:
                api.close()


def main():
    settings = Settings.from_env()

    with st.sidebar:
        st.title("🎓 University Portal")
        if not verify_login_status(settings.cookies_path):
            _render_login(settings)
            st.stop()

        st.success("✅ Logged In")
        if st.button("Logout"):
            session = st.session_state.get("enrollment_session")
            if session is not None:
                try:
                    session.api.logout()
                except ApiError as e:
                    logger.warning(f"Server logout failed: {e.message}")
            _drop_session()
            clear_cookies(settings.cookies_path)
            st.rerun()

        st.divider()
        if st.button("🔄 Reload enrollment page"):
            # leaving the page forgets unsubmitted picks
            _drop_session()
            st.rerun()

    if "enrollment_session" not in st.session_state:
        st.session_state["enrollment_session"] = _new_session(settings)
    session: EnrollmentSession = st.session_state["enrollment_session"]

    render_enrollment_view(session)


if __name__ == "__main__":
    main()
