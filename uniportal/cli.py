import argparse
import getpass
import logging
import sys
from typing import List, Optional

from uniportal.admin.settings_form import SettingsDraft, draft_from_setting, validate_draft
from uniportal.api.client import ROLES, PortalApi
from uniportal.config.settings import Settings
from uniportal.core.cookies import clear_cookies, verify_login_status
from uniportal.core.http import ApiError
from uniportal.enrollment.cache import EnrollmentCache
from uniportal.enrollment.catalog import FILTER_KEYS, CourseCatalog
from uniportal.enrollment.routing import RoutingDecision
from uniportal.enrollment.session import EnrollmentSession
from uniportal.enrollment.window import describe_window

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="uniportal", description="University portal enrollment client")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Log in and keep the session cookies")
    login.add_argument("--username", help="Defaults to PORTAL_USERNAME")
    login.add_argument("--password", help="Defaults to PORTAL_PASSWORD, prompted otherwise")
    login.add_argument("--role", choices=ROLES, help="Defaults to PORTAL_ROLE")

    sub.add_parser("logout", help="End the session and delete saved cookies")
    sub.add_parser("setting", help="Show the current enrollment window")

    courses = sub.add_parser("courses", help="List courses open for enrollment")
    courses.add_argument("--filter", action="append", choices=FILTER_KEYS, default=[], help="Repeatable")
    courses.add_argument("--search", default="", help="Match title, code, description, type or credits")
    courses.add_argument("--page", type=int, default=1)

    enroll = sub.add_parser("enroll", help="Select courses and finalize enrollment")
    enroll.add_argument("--code", action="append", required=True, help="Course code (repeatable)")
    enroll.add_argument(
        "--apply-drops",
        action="store_true",
        help="Drop the recommended courses when the selection is over the credit limit",
    )
    enroll.add_argument("--dry-run", action="store_true", help="Validate only, do not submit")

    assist = sub.add_parser("assist", help="Ask the enrollment assistant for course suggestions")
    assist.add_argument("message")

    admin = sub.add_parser("admin-setting", help="Show or update the enrollment window (admin)")
    admin.add_argument("--duration", help="Window length")
    admin.add_argument("--duration-type", choices=("days", "minutes"))
    admin.add_argument("--max-credits")
    admin.add_argument("--max-courses", help="Empty string clears the limit")
    admin.add_argument("--waitlist", dest="allow_waitlist", action="store_true", default=None)
    admin.add_argument("--no-waitlist", dest="allow_waitlist", action="store_false")
    admin.add_argument("--open", dest="is_active", action="store_true", default=None)
    admin.add_argument("--close", dest="is_active", action="store_false")

    return parser


def _print_course_line(course, marker: str = " ") -> None:
    flags = []
    if course.is_locked:
        flags.append("locked")
    if course.error:
        flags.append(f"prereq: {course.error}")
    if course.is_retake:
        flags.append("retake")
    extra = f"  [{'; '.join(flags)}]" if flags else ""
    print(f" {marker} {course.code:<10} {course.credits:>2}cr  {course.type:<10} {course.title}{extra}")


def cmd_login(args, settings: Settings) -> int:
    username = args.username or settings.username or input("Username: ").strip()
    password = args.password or settings.password or getpass.getpass("Password: ")
    role = args.role or settings.role
    api = PortalApi.from_settings(settings, use_saved_cookies=False)
    try:
        user = api.login(username, password, role)
        api.save_session(settings.cookies_path)
    except ApiError as e:
        print(f"Login failed: {e.message}")
        return 1
    finally:
        api.close()
    print(f"Logged in as {user.name or username} ({user.role}).")
    if user.must_reset_password:
        print("Your password must be reset before continuing.")
    return 0


def cmd_logout(args, settings: Settings) -> int:
    if verify_login_status(settings.cookies_path):
        api = PortalApi.from_settings(settings)
        try:
            api.logout()
        except ApiError as e:
            logger.warning(f"Server logout failed: {e.message}")
        finally:
            api.close()
    clear_cookies(settings.cookies_path)
    print("Logged out.")
    return 0


def cmd_setting(args, session: EnrollmentSession) -> int:
    session.refresh_setting()
    if session.setting_error:
        print(f"Could not load the enrollment setting: {session.setting_error}")
        if session.setting is None:
            return 1
        print("Showing the last known setting.")
    window = describe_window(session.setting)
    print(f"Enrollment: {window['status']}")
    print(f"  Opens:     {window['open']}")
    print(f"  Closes:    {window['close']}")
    print(f"  Remaining: {window['remaining']}")
    print(f"  Max credits: {session.max_credits}")
    return 0


def cmd_courses(args, session: EnrollmentSession) -> int:
    session.refresh_setting()
    for key in args.filter:
        session.catalog.filters.add(key)
    session.catalog.query = args.search
    session.refresh_catalog()
    if session.catalog_error:
        print(f"Could not load courses: {session.catalog_error}")
        return 1
    active = session.window_active
    pages = session.catalog.page_count(window_active=active)
    courses = CourseCatalog.display(session.catalog.page(args.page, window_active=active), session.registry)
    if not courses:
        print("No courses match.")
        return 0
    for course in courses:
        _print_course_line(course)
    print(f"Page {args.page}/{max(pages, 1)}")
    return 0


def _print_summary(session: EnrollmentSession) -> None:
    summary = session.credits
    print(f"Credits: {summary.base} enrolled + {summary.selected} selected = {summary.total}/{summary.max_credits}")
    if summary.is_over_limit:
        print(f"Over the limit by {summary.over_by} credit(s).")


def _print_drops(session: EnrollmentSession) -> None:
    if session.drop_error:
        print(f"Drop recommendation failed: {session.drop_error}")
        return
    rec = session.drop_recommendation
    if rec is None:
        return
    print(rec.message or "Suggested drops:")
    for course in session.registry.values():
        if course.code in session.drop_selected_codes:
            reason = rec.reason_for(course.code)
            print(f"  - {course.code} {course.title}" + (f" ({reason})" if reason else ""))


def cmd_enroll(args, session: EnrollmentSession) -> int:
    session.load()
    if not session.window_active:
        print("The enrollment window is closed.")
        return 1

    for code in dict.fromkeys(args.code):
        if code in session.registry:
            continue
        course = session.catalog.find(code)
        if course is None:
            print(f"Unknown course {code}; skipped.")
            continue
        if not session.toggle(course):
            print(f"{code} could not be selected (locked).")

    for course in session.registry.values():
        _print_course_line(course, marker="*")
    _print_summary(session)

    if session.is_over_limit:
        _print_drops(session)
        if args.apply_drops and session.drop_selected_codes:
            removed = session.apply_selected_drops()
            print(f"Applied drops: {', '.join(removed)}")
            _print_summary(session)

    route = session.route()
    if route != RoutingDecision.SUBMIT:
        print(f"Finish {route.value.replace('_', ' ')} in the portal before enrolling in major courses.")
        return 2

    reason = session.blocked_reason()
    if reason:
        print(f"Cannot finalize: {reason}.")
        return 1
    if args.dry_run:
        print("Selection is valid (dry run, nothing submitted).")
        return 0

    outcome = session.finalize()
    if not outcome.committed:
        print(f"Enrollment failed: {outcome.message}")
        return 1
    print(outcome.message or "Enrollment finalized.")
    return 0


def cmd_assist(args, session: EnrollmentSession) -> int:
    try:
        suggestions = session.ask_assistant(args.message)
    except ValueError as e:
        print(e)
        return 1
    if session.assistance_error:
        print(f"Assistant failed: {session.assistance_error}")
        return 1
    if not suggestions:
        print("No suggestions.")
        return 0
    for course in suggestions:
        _print_course_line(course)
        if course.message:
            print(f"      {course.message}")
    return 0


def cmd_admin_setting(args, api: PortalApi) -> int:
    current = api.admin_enrollment_setting_current()
    updates = {
        "duration_value": args.duration,
        "duration_type": args.duration_type,
        "max_credits": args.max_credits,
        "max_courses": args.max_courses,
        "allow_waitlist": args.allow_waitlist,
        "is_active": args.is_active,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        window = describe_window(current)
        print(f"Enrollment: {window['status']} ({window['open']} - {window['close']})")
        print(f"  Max credits: {current.max_credits}  Max courses: {current.max_courses or '-'}")
        print(f"  Waitlist: {'on' if current.allow_waitlist else 'off'}")
        return 0

    draft: SettingsDraft = draft_from_setting(current)
    for key, value in updates.items():
        setattr(draft, key, value)
    payload, errors = validate_draft(draft)
    if errors:
        for field_name, message in errors.items():
            print(f"{field_name}: {message}")
        return 1
    saved = api.admin_update_enrollment_setting(payload)
    print(f"Saved. Enrollment is {'open' if saved.is_active else 'closed'}, max credits {saved.max_credits}.")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    settings = Settings.from_env()
    if args.command == "login":
        return cmd_login(args, settings)
    if args.command == "logout":
        return cmd_logout(args, settings)

    if not verify_login_status(settings.cookies_path):
        print("Not logged in. Run `uniportal login` first.")
        return 1

    api = PortalApi.from_settings(settings)
    try:
        if args.command == "admin-setting":
            return cmd_admin_setting(args, api)
        session = EnrollmentSession(
            api,
            cache=EnrollmentCache(settings.cache_path),
            default_max_credits=settings.default_max_credits,
        )
        if args.command == "setting":
            return cmd_setting(args, session)
        if args.command == "courses":
            return cmd_courses(args, session)
        if args.command == "enroll":
            return cmd_enroll(args, session)
        if args.command == "assist":
            return cmd_assist(args, session)
        parser.error(f"Unknown command: {args.command}")
    except ApiError as e:
        logger.error(f"{args.command} failed: {e.message}")
        if e.status in (401, 403):
            print("Session expired. Run `uniportal login` again.")
        return 1
    finally:
        api.close()
    return 1


if __name__ == "__main__":
    sys.exit(main())
