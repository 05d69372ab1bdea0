"""Tests for authentication helpers and form validation."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

import auth
from auth import (
    VisitTracker,
    get_current_session,
    login_user,
    logout_user,
    signup_user,
    subscribe_to_mailing_list,
)
from auth_ui import validate_email, validate_password, validate_signup
from models import Session


class FakeSessionState(dict):
    """Dict with attribute access, like st.session_state."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name)

    def __setattr__(self, name, value):
        self[name] = value


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def session_state(client):
    state = FakeSessionState()
    fake_st = SimpleNamespace(session_state=state)
    with patch.object(auth, "st", fake_st), patch.object(auth, "get_supabase_client", return_value=client):
        yield state


def user(user_id="u1", email="ann@example.com"):
    return SimpleNamespace(id=user_id, email=email)


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------

def test_signup_subscribes_to_mailing_list(session_state, client):
    client.auth.sign_up.return_value = SimpleNamespace(user=user(), session=None)

    result = signup_user("ann@example.com", "secret123", "Ann Example")

    assert result.success
    sign_up_args = client.auth.sign_up.call_args[0][0]
    assert sign_up_args["options"]["data"]["full_name"] == "Ann Example"
    client.functions.invoke.assert_called_once_with(
        "add-to-mailerlite",
        invoke_options={"body": {"email": "ann@example.com", "full_name": "Ann Example"}},
    )
    # email confirmation pending: not signed in yet
    assert not session_state.get("authenticated")


def test_signup_survives_mailing_list_failure(session_state, client):
    client.auth.sign_up.return_value = SimpleNamespace(user=user(), session=object())
    client.functions.invoke.side_effect = RuntimeError("mailerlite down")

    result = signup_user("ann@example.com", "secret123", "Ann Example")

    assert result.success
    assert session_state.user_id == "u1"


def test_signup_rate_limit_message(session_state, client):
    client.auth.sign_up.side_effect = Exception(
        "For security purposes, you can only request this after 42 seconds."
    )

    result = signup_user("ann@example.com", "secret123", "Ann Example")

    assert not result.success
    assert result.message == "Too many attempts. Please wait a few minutes before trying again."
    client.functions.invoke.assert_not_called()


def test_signup_already_registered(session_state, client):
    client.auth.sign_up.side_effect = Exception("User already registered")

    result = signup_user("ann@example.com", "secret123", "Ann Example")

    assert result.message == "This email is already registered. Please try signing in instead."


def test_subscribe_reports_failure_without_raising(client):
    client.functions.invoke.side_effect = RuntimeError("boom")
    assert subscribe_to_mailing_list(client, "ann@example.com", "Ann") is False


# ---------------------------------------------------------------------------
# Login / logout / session
# ---------------------------------------------------------------------------

def test_login_stores_user(session_state, client):
    client.auth.sign_in_with_password.return_value = SimpleNamespace(user=user(), session=object())

    result = login_user("ann@example.com", "secret123")

    assert result.success
    assert session_state.authenticated is True
    assert session_state.user_id == "u1"
    assert get_current_session() == Session(user_id="u1", email="ann@example.com")


def test_login_with_bad_credentials(session_state, client):
    client.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

    result = login_user("ann@example.com", "wrong-password")

    assert not result.success
    assert result.message == "Invalid email or password. Please check your credentials and try again."
    assert not session_state.get("authenticated")


def test_current_session_is_anonymous_without_provider_session(session_state, client):
    client.auth.get_session.return_value = None
    assert get_current_session().is_anonymous


def test_current_session_restored_from_provider(session_state, client):
    client.auth.get_session.return_value = SimpleNamespace(user=user("u9", "zed@example.com"))

    assert get_current_session() == Session(user_id="u9", email="zed@example.com")


def test_logout_clears_user_and_visit_markers(session_state, client):
    client.auth.sign_in_with_password.return_value = SimpleNamespace(user=user(), session=object())
    login_user("ann@example.com", "secret123")
    tracker = auth.get_visit_tracker()
    tracker.track("u1", lambda _: True)

    logout_user()

    client.auth.sign_out.assert_called_once()
    assert session_state.authenticated is False
    assert session_state.user_id is None
    assert not tracker.has_tracked("u1")


# ---------------------------------------------------------------------------
# Visit tracking
# ---------------------------------------------------------------------------

def test_visit_counted_once_per_session():
    bump = MagicMock(return_value=True)
    tracker = VisitTracker()

    assert tracker.track("u1", bump) is True
    assert tracker.track("u1", bump) is False
    bump.assert_called_once_with("u1")


def test_failed_visit_bump_is_retried():
    bump = MagicMock(side_effect=[False, True])
    tracker = VisitTracker()

    assert tracker.track("u1", bump) is False
    assert not tracker.has_tracked("u1")
    assert tracker.track("u1", bump) is True
    assert tracker.has_tracked("u1")


# ---------------------------------------------------------------------------
# Form validation
# ---------------------------------------------------------------------------

def test_validate_email():
    assert validate_email("ann@example.com")
    assert not validate_email("ann@")
    assert not validate_email("not an email")


def test_validate_password_bounds():
    assert validate_password("12345") == (False, "Password must be at least 6 characters long")
    assert validate_password("123456") == (True, "")
    assert not validate_password("x" * 73)[0]


def test_validate_signup():
    assert validate_signup("ann@example.com", "secret123", "Ann", True) is None
    assert validate_signup("", "secret123", "Ann", True) == "Please enter both email and password"
    assert validate_signup("ann@example.com", "secret123", "  ", True) == "Please enter your name"
    assert validate_signup("ann@example.com", "secret123", "Ann", False) == "Please read and agree to our Privacy Policy"
