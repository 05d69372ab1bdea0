"""
Identity adapter for Contxtra
Supabase auth (signup, login, logout, password reset) bound to the Streamlit session
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Set

import streamlit as st
from supabase import Client

from database import get_supabase_client
from models import Session

logger = logging.getLogger(__name__)

MAILING_LIST_FUNCTION = "add-to-mailerlite"

SESSION_DEFAULTS = {
    'authenticated': False,
    'user': None,
    'user_id': None,
    'user_email': None,
}

RATE_LIMIT_MARKER = "for security purposes, you can only request this after"


@dataclass
class AuthResult:
    """Outcome of an auth form action, ready to show to the user."""
    success: bool
    message: str
    user: Any = None


def get_auth_client() -> Client:
    """Supabase client that carries the auth session for this browser session"""
    if st.session_state.get('supabase_client') is None:
        st.session_state.supabase_client = get_supabase_client()
    return st.session_state.supabase_client


def initialize_session_state():
    for key, value in SESSION_DEFAULTS.items():
        if key not in st.session_state:
            st.session_state[key] = value


def _store_user(user) -> None:
    st.session_state.update({
        'authenticated': True,
        'user': user,
        'user_id': user.id,
        'user_email': user.email,
    })


def _clear_user() -> None:
    st.session_state.update(SESSION_DEFAULTS)


def _friendly_auth_error(error_msg: str, is_signup: bool) -> str:
    """Map provider errors to what the forms show."""
    lowered = error_msg.lower()

    if RATE_LIMIT_MARKER in lowered:
        return "Too many attempts. Please wait a few minutes before trying again."
    if "already registered" in lowered or (is_signup and "invalid login credentials" in lowered):
        return "This email is already registered. Please try signing in instead."
    if "invalid login credentials" in lowered:
        return "Invalid email or password. Please check your credentials and try again."
    if "email not confirmed" in lowered:
        return "Please verify your email before logging in. Check your inbox for a verification link."
    if "password" in lowered:
        return "Password must be at least 6 characters long"
    return error_msg


def subscribe_to_mailing_list(client: Client, email: str, full_name: str) -> bool:
    """
    Add a new user to the mailing list through the Supabase edge function.

    Never raises; signup must not fail because the mailing list is down.
    """
    try:
        client.functions.invoke(
            MAILING_LIST_FUNCTION,
            invoke_options={"body": {"email": email, "full_name": full_name}},
        )
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.warning("Mailing list integration failed for %s: %s", email, e)
        return False

    logger.info("Added %s to mailing list", email)
    return True


def signup_user(email: str, password: str, full_name: str) -> AuthResult:
    """
    Create an account and subscribe it to the mailing list.

    The user is only signed in right away when the provider returns a
    session; otherwise they must confirm their email first.
    """
    client = get_auth_client()
    credentials = {"email": email, "password": password, "options": {"data": {"full_name": full_name}}}

    try:
        response = client.auth.sign_up(credentials)
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.info("Signup rejected for %s: %s", email, e)
        return AuthResult(False, _friendly_auth_error(str(e), is_signup=True))

    if not response.user:
        return AuthResult(False, "Signup failed. Please try again.")

    subscribe_to_mailing_list(client, email, full_name)

    if response.session:
        _store_user(response.user)

    return AuthResult(True, "Account created! Please check your email to verify your account.", response.user)


def login_user(email: str, password: str) -> AuthResult:
    client = get_auth_client()

    try:
        response = client.auth.sign_in_with_password({"email": email, "password": password})
    except Exception as e:  # pylint: disable=broad-exception-caught
        return AuthResult(False, _friendly_auth_error(str(e), is_signup=False))

    if not response.user:
        return AuthResult(False, "Login failed. Please check your credentials.")

    _store_user(response.user)
    logger.info("User %s logged in", response.user.id)
    return AuthResult(True, "Login successful!", response.user)


def logout_user():
    """Sign out with the provider and forget the user and their visit marker"""
    try:
        get_auth_client().auth.sign_out()
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.error("Error signing out: %s", e)

    tracker = st.session_state.get('visit_tracker')
    if tracker is not None:
        tracker.clear()

    _clear_user()


def reset_password(email: str) -> AuthResult:
    try:
        get_auth_client().auth.reset_password_email(email)
    except Exception as e:  # pylint: disable=broad-exception-caught
        return AuthResult(False, f"Error sending reset email: {e}")
    return AuthResult(True, "Password reset email sent! Check your inbox.")


def check_authentication() -> bool:
    """
    True when a user is signed in, restoring the provider session into
    session state if the page was reloaded.
    """
    initialize_session_state()

    if st.session_state.authenticated and st.session_state.user:
        return True

    try:
        provider_session = get_auth_client().auth.get_session()
    except Exception as e:  # pylint: disable=broad-exception-caught
        logger.warning("Failed to restore session: %s", e)
        return False

    if provider_session and provider_session.user:
        _store_user(provider_session.user)
        return True
    return False


def get_current_session() -> Session:
    """Current identity as a Session (anonymous when not logged in)"""
    if not check_authentication():
        return Session.anonymous()
    return Session(user_id=st.session_state.user_id, email=st.session_state.user_email)


class VisitTracker:
    """Makes sure the visit counter is bumped at most once per user per session."""

    def __init__(self):
        self._tracked: Set[str] = set()

    def track(self, user_id: str, bump: Callable[[str], bool]) -> bool:
        """
        Returns:
            bool: True if this call bumped the counter
        """
        if user_id in self._tracked:
            return False
        if not bump(user_id):
            # left unmarked so a later page load can retry
            return False
        self._tracked.add(user_id)
        return True

    def has_tracked(self, user_id: str) -> bool:
        return user_id in self._tracked

    def clear(self) -> None:
        self._tracked.clear()


def get_visit_tracker() -> VisitTracker:
    tracker: Optional[VisitTracker] = st.session_state.get('visit_tracker')
    if tracker is None:
        tracker = st.session_state.visit_tracker = VisitTracker()
    return tracker
