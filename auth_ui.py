"""
Auth forms for the Streamlit pages
Log in, sign up, reset password, and the prompt shown once the trial runs out
"""

import re
from typing import Callable, Optional

import streamlit as st

from auth import AuthResult, login_user, reset_password, signup_user

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
MIN_PASSWORD_LENGTH = 6
MAX_PASSWORD_LENGTH = 72


def validate_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email or "") is not None


def validate_password(password: str) -> tuple[bool, str]:
    """
    Check the password against the provider's length limits.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return False, f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if len(password) > MAX_PASSWORD_LENGTH:
        return False, f"Password must be less than {MAX_PASSWORD_LENGTH} characters"
    return True, ""


def validate_login(email: str, password: str) -> Optional[str]:
    if not email or not password:
        return "Please enter both email and password"
    if not validate_email(email):
        return "Please enter a valid email address"
    return None


def validate_signup(email: str, password: str, full_name: str, agreed_to_privacy: bool) -> Optional[str]:
    """Return the first problem with a signup form, or None if it can be submitted"""
    problem = validate_login(email, password)
    if problem:
        return problem
    password_ok, password_error = validate_password(password)
    if not password_ok:
        return password_error
    if not full_name or not full_name.strip():
        return "Please enter your name"
    if not agreed_to_privacy:
        return "Please read and agree to our Privacy Policy"
    return None


def validate_reset(email: str) -> Optional[str]:
    if not email:
        return "Please enter your email address"
    if not validate_email(email):
        return "Please enter a valid email address"
    return None


def _run_action(problem: Optional[str], spinner: str, action: Callable[[], AuthResult]) -> Optional[AuthResult]:
    """Show the validation problem, or run the action and show its message"""
    if problem:
        st.error(problem)
        return None

    with st.spinner(spinner):
        result = action()

    if result.success:
        st.success(result.message)
    else:
        st.error(result.message)
    return result


def _login_tab():
    with st.form("login_form"):
        email = st.text_input("Email", placeholder="you@example.com")
        password = st.text_input("Password", type="password", placeholder="Enter your password")
        submitted = st.form_submit_button("Log In", use_container_width=True, type="primary")

    if submitted:
        result = _run_action(
            validate_login(email, password),
            "Logging in...",
            lambda: login_user(email, password),
        )
        if result and result.success:
            st.session_state.show_auth = False
            st.rerun()


def _signup_tab():
    st.markdown("Create an account for unlimited access.")

    with st.form("signup_form"):
        full_name = st.text_input("Full Name", placeholder="Jane Doe", key="signup_name")
        email = st.text_input("Email", placeholder="you@example.com", key="signup_email")
        password = st.text_input(
            "Password",
            type="password",
            placeholder=f"At least {MIN_PASSWORD_LENGTH} characters",
            key="signup_password",
        )
        agreed = st.checkbox("I have read and agree to the Privacy Policy")
        submitted = st.form_submit_button("Create Account", use_container_width=True, type="primary")

    if submitted:
        _run_action(
            validate_signup(email, password, full_name, agreed),
            "Creating your account...",
            lambda: signup_user(email, password, full_name.strip()),
        )


def _reset_tab():
    with st.form("reset_form"):
        email = st.text_input("Email", placeholder="you@example.com", key="reset_email")
        submitted = st.form_submit_button("Send Reset Link", use_container_width=True, type="primary")

    if submitted:
        _run_action(validate_reset(email), "Sending reset email...", lambda: reset_password(email))


def show_auth_forms():
    """Log in, sign up, and password reset tabs"""
    login, signup, reset = st.tabs(["Log In", "Sign Up", "Reset Password"])
    with login:
        _login_tab()
    with signup:
        _signup_tab()
    with reset:
        _reset_tab()


def show_trial_expired_prompt():
    """Upsell shown when the anonymous trial has no uses left"""
    with st.container(border=True):
        st.markdown("### Thank You for Using CONTXTRA!")
        st.markdown("#### Your Trial Period Has Ended")
        st.write(
            "You've reached the limit of your free trial. Sign up now to continue "
            "adding context to posts and unlock all features!"
        )
        if st.button("Sign Up Now", type="primary", use_container_width=True):
            st.session_state.show_auth = True
            st.rerun()
