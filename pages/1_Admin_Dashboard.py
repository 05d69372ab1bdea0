import logging
import time

import streamlit as st

from admin_stats import (
    SortState,
    clear_exclusions,
    compute_stats,
    profiles_table,
    require_admin,
    sort_profiles,
    toggle_select_all,
)
from app_config import ADMIN_DENIED_REDIRECT_SECONDS, configure_locale, configure_logging
from auth import get_current_session
from database import fetch_all_profiles
from errors import AccessDenied, ConfigurationError, TransportError

configure_logging()
configure_locale()
logger = logging.getLogger(__name__)

SORT_COLUMNS = [
    ("email", "Email"),
    ("full_name", "Name"),
    ("created_at", "Joined"),
    ("links_analyzed", "Links"),
    ("visit_count", "Visits"),
    ("positive_ratings", "Positive"),
    ("negative_ratings", "Negative"),
]

st.set_page_config(page_title="Admin Dashboard", layout="wide")
st.page_link("app.py", label="← Back to CONTXTRA")
st.title("Admin Dashboard")

try:
    session = get_current_session()
    require_admin(session)
except (AccessDenied, ConfigurationError) as e:
    st.error(f"Access Denied: {e}")
    time.sleep(ADMIN_DENIED_REDIRECT_SECONDS)
    st.switch_page("app.py")

if 'admin_profiles' not in st.session_state:
    try:
        with st.spinner("Loading users..."):
            st.session_state.admin_profiles = fetch_all_profiles()
    except TransportError as e:
        st.error(str(e))
        st.stop()

if 'excluded_users' not in st.session_state:
    st.session_state.excluded_users = clear_exclusions()
if 'admin_sort' not in st.session_state:
    st.session_state.admin_sort = SortState()

profiles = st.session_state.admin_profiles
excluded = st.session_state.excluded_users
sort_state = st.session_state.admin_sort

# Stats cards
stats = compute_stats(profiles, excluded)

if excluded:
    col1, col2 = st.columns([4, 1])
    with col1:
        count = len(excluded)
        st.info(f"{count} user{'s' if count != 1 else ''} excluded from statistics")
    with col2:
        if st.button("Clear selection"):
            st.session_state.excluded_users = clear_exclusions()
            st.rerun()

cols = st.columns(5)
cols[0].metric("Total Users", stats.total_users)
cols[1].metric("Links Analyzed", stats.total_links_analyzed, help=f"{stats.average_links_per_user} per user")
cols[2].metric("Total Visits", stats.total_visits, help=f"{stats.average_visits_per_user} per user")
cols[3].metric("Positive Ratings", stats.total_positive_ratings)
cols[4].metric("Negative Ratings", stats.total_negative_ratings)

st.caption(
    f"Avg links per user: **{stats.average_links_per_user}** • "
    f"Avg visits per user: **{stats.average_visits_per_user}**"
)

# Users table
st.subheader("Users")

all_excluded = bool(profiles) and len(excluded) == len(profiles)
if st.button("Deselect All" if all_excluded else "Select All"):
    st.session_state.excluded_users = toggle_select_all(excluded, profiles)
    st.rerun()

header = st.columns(len(SORT_COLUMNS))
for column, (key, label) in zip(header, SORT_COLUMNS):
    with column:
        if st.button(f"{label} {sort_state.indicator(key)}".strip(), key=f"sort_{key}", use_container_width=True):
            sort_state.toggle(key)
            st.rerun()

ordered = sort_profiles(profiles, sort_state.key, sort_state.order)
edited = st.data_editor(
    profiles_table(ordered, excluded),
    hide_index=True,
    use_container_width=True,
    disabled=['Email', 'Name', 'Joined', 'Links', 'Visits', 'Positive', 'Negative', 'Admin'],
    # new key whenever the exclusion set changes so stale edits are dropped
    key=f"users_table_{sort_state.key}_{sort_state.order}_{hash(frozenset(excluded))}",
)

new_excluded = {user_id for user_id, row in edited.iterrows() if row['Excluded']}
if new_excluded != excluded:
    st.session_state.excluded_users = new_excluded
    st.rerun()
