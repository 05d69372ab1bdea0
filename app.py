"""
CONTXTRA
Paste an X or Bluesky post URL and get matched news articles for context
"""

import logging
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

import streamlit as st

from app_config import configure_locale, configure_logging
from auth import get_current_session, get_visit_tracker, logout_user
from auth_ui import show_auth_forms, show_trial_expired_prompt
from database import get_user_metrics, increment_visit_count
from errors import ConfigurationError, RatingError, SubmissionInProgress, TransportError
from history_cache import HistoryCache, JsonFileStore, format_age, is_valid_browser_id
from models import Session
from orchestrator import AnalysisOrchestrator, OrchestratorState
from rating import RatingValue

configure_logging()
configure_locale()
logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.05
BROWSER_ID_PARAM = "browser"


# ============================================================================
# SESSION WIRING
# ============================================================================

def get_browser_id() -> str:
    """
    Random id naming this browser's history store.

    Kept in session state and mirrored into the page URL, so a reload or a
    bookmark of the page keeps the same history.
    """
    browser_id = st.session_state.get('browser_id') or st.query_params.get(BROWSER_ID_PARAM)
    if not is_valid_browser_id(browser_id):
        browser_id = uuid.uuid4().hex
    st.session_state.browser_id = browser_id
    if st.query_params.get(BROWSER_ID_PARAM) != browser_id:
        st.query_params[BROWSER_ID_PARAM] = browser_id
    return browser_id


def get_orchestrator(session: Session) -> AnalysisOrchestrator:
    """One orchestrator per browser session, kept in session state"""
    browser_id = get_browser_id()
    orchestrator = st.session_state.get('orchestrator')

    if orchestrator is None:
        orchestrator = AnalysisOrchestrator(
            session=session,
            history=HistoryCache(JsonFileStore.for_browser(browser_id)),
        )
        orchestrator.bootstrap()
        st.session_state.orchestrator = orchestrator
    elif orchestrator.session != session:
        orchestrator.set_session(session)
        orchestrator.bootstrap()

    return orchestrator


def get_executor() -> ThreadPoolExecutor:
    # A single worker keeps the page responsive while one analysis runs
    if st.session_state.get('analysis_executor') is None:
        st.session_state.analysis_executor = ThreadPoolExecutor(max_workers=1)
    return st.session_state.analysis_executor


def start_submission(orchestrator: AnalysisOrchestrator, url: str) -> None:
    if st.session_state.get('pending_analysis') is not None:
        st.warning("An analysis is already running.")
        return
    st.session_state.pending_analysis = get_executor().submit(orchestrator.submit, url)


def wait_for_submission(orchestrator: AnalysisOrchestrator) -> None:
    """Show the progress bar until the pending analysis finishes"""
    future: Optional[Future] = st.session_state.get('pending_analysis')
    if future is None:
        return

    bar = st.progress(0, text="Fetching context...")
    while not future.done():
        progress = orchestrator.progress
        bar.progress(int(progress.percent()), text=f"{progress.label()}...")
        time.sleep(POLL_INTERVAL_SECONDS)
    bar.progress(100)
    bar.empty()

    st.session_state.pending_analysis = None
    try:
        future.result()
    except SubmissionInProgress as e:
        st.warning(str(e))
    except Exception:  # pylint: disable=broad-exception-caught
        # the orchestrator has already moved to a terminal state
        logger.exception("Analysis worker failed")


# ============================================================================
# PAGE SECTIONS
# ============================================================================

def show_header(orchestrator: AnalysisOrchestrator, session: Session):
    st.title("CONTXTRA")
    st.caption("Paste any X or Bluesky URL below and get additional context")

    if session.is_anonymous:
        label = orchestrator.quota.remaining_label()
        if label:
            st.caption(label)

        button_text = "Sign up for full access" if orchestrator.quota.expired else "Log in or sign up for unlimited access"
        if st.button(button_text):
            st.session_state.show_auth = not st.session_state.get('show_auth', False)
        return

    metrics = get_user_metrics(session.user_id)
    links_analyzed = metrics.links_analyzed if metrics else (orchestrator.links_analyzed or 0)
    st.caption(f"Posts Analysed: **{links_analyzed}**")

    col1, col2 = st.columns(2)
    with col1:
        if metrics and metrics.is_admin:
            st.page_link("pages/1_Admin_Dashboard.py", label="Admin Dashboard")
    with col2:
        if st.button("Sign Out"):
            logout_user()
            st.rerun()


def show_link_input(orchestrator: AnalysisOrchestrator):
    busy = orchestrator.busy or st.session_state.get('pending_analysis') is not None

    with st.form("link_form", clear_on_submit=False):
        url = st.text_input(
            "Post URL",
            placeholder="Enter a URL to analyze...",
            max_chars=2000,
            disabled=busy,
        )
        submitted = st.form_submit_button("Analyze", type="primary", disabled=busy)

    if submitted:
        start_submission(orchestrator, url)

    if orchestrator.state == OrchestratorState.IDLE and orchestrator.error_kind == "validation":
        st.error(orchestrator.error)


def show_history(orchestrator: AnalysisOrchestrator):
    items = orchestrator.history.list()
    if not items:
        return

    with st.expander(f"Recent Links ({len(items)})"):
        for item in items:
            col1, col2 = st.columns([4, 1])
            with col1:
                if st.button(item.url, key=f"history_{item.url}", use_container_width=True):
                    start_submission(orchestrator, item.url)
                    st.rerun()
            with col2:
                st.caption(format_age(item.timestamp))

        if st.button("Clear History"):
            orchestrator.clear_history()
            st.rerun()


def show_rating_buttons(orchestrator: AnalysisOrchestrator, session: Session):
    state = orchestrator.rating.state
    authenticated = not session.is_anonymous
    disabled = not authenticated or state.has_rated

    col1, col2, col3 = st.columns([3, 1, 1])
    with col1:
        st.subheader("Analysis Results")

    for column, is_positive, label in ((col2, True, "Helpful"), (col3, False, "Not Helpful")):
        chosen = state.value == (RatingValue.POSITIVE if is_positive else RatingValue.NEGATIVE)
        with column:
            if st.button(
                f"{'✓ ' if chosen else ''}{label}",
                key=f"rate_{label}",
                disabled=disabled,
                help=orchestrator.rating.button_hint(authenticated, is_positive),
            ):
                try:
                    orchestrator.rate(is_positive)
                    st.rerun()
                except RatingError as e:
                    logger.info("Rating ignored: %s", e)
                except TransportError as e:
                    st.toast(str(e))


def show_results(orchestrator: AnalysisOrchestrator, session: Session):
    state = orchestrator.state

    if state == OrchestratorState.TRIAL_EXPIRED:
        show_trial_expired_prompt()
        return

    if state == OrchestratorState.ERROR:
        st.error(orchestrator.error)
        return

    if state != OrchestratorState.SUCCESS or orchestrator.result is None:
        return

    result = orchestrator.result
    if result.is_empty:
        st.info(
            "No matching articles found. This could be due to one of the following reasons:\n\n"
            "1. The post doesn't include text\n"
            "2. The post doesn't include sufficient content for CONTXTRA to analyse\n"
            "3. No articles found - post doesn't contain newsworthy topic, "
            "or articles are yet to be written about this topic"
        )
        return

    show_rating_buttons(orchestrator, session)

    for article in result.matched_articles:
        with st.container(border=True):
            text_col, image_col = st.columns([4, 1])
            with text_col:
                st.markdown(f"**[{article.title}]({article.url})**")
                st.write(article.description)
                st.caption(f"Source: {article.source}")
            with image_col:
                if article.image_url:
                    st.image(article.image_url, use_container_width=True)


# ============================================================================
# MAIN
# ============================================================================

st.set_page_config(page_title="CONTXTRA", layout="centered")

try:
    session = get_current_session()
except ConfigurationError as e:
    st.error(f"⚠️ {e}")
    st.stop()

if not session.is_anonymous:
    get_visit_tracker().track(session.user_id, increment_visit_count)

orchestrator = get_orchestrator(session)

show_header(orchestrator, session)

if st.session_state.get('show_auth'):
    with st.container(border=True):
        show_auth_forms()

show_link_input(orchestrator)
show_history(orchestrator)
wait_for_submission(orchestrator)
show_results(orchestrator, session)

st.divider()
st.caption("v1.1.0 · © CONTXTRA 2025. All rights reserved.")
