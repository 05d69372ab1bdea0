"""Tests for admin dashboard aggregation."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from admin_stats import (
    SortState,
    clear_exclusions,
    compute_stats,
    profiles_table,
    require_admin,
    sort_profiles,
    toggle_exclusion,
    toggle_select_all,
)
from errors import AccessDenied, AuthorizationError
from models import Session, UserProfile


def profile(user_id, links=0, visits=0, positive=0, negative=0, email=None, full_name=None, day=1, is_admin=False):
    return UserProfile(
        id=user_id,
        email=email or f"{user_id}@example.com",
        full_name=full_name,
        created_at=datetime(2025, 3, day, tzinfo=timezone.utc),
        links_analyzed=links,
        visit_count=visits,
        positive_ratings=positive,
        negative_ratings=negative,
        is_admin=is_admin,
    )


@pytest.fixture
def profiles():
    return [
        profile("a", links=4, visits=10, positive=2, negative=1, email="carol@example.com", full_name="carol", day=1),
        profile("b", links=6, visits=5, positive=0, negative=3, email="alice@example.com", full_name="alice", day=3),
        profile("c", links=0, visits=1, positive=1, negative=0, email="bob@example.com", full_name=None, day=2),
    ]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------

def test_stats_without_exclusions(profiles):
    stats = compute_stats(profiles, set())

    assert stats.total_users == 3
    assert stats.total_links_analyzed == 10
    assert stats.total_visits == 16
    assert stats.total_positive_ratings == 3
    assert stats.total_negative_ratings == 4
    assert stats.average_links_per_user == 3.33
    assert stats.average_visits_per_user == 5.33


def test_excluded_users_are_left_out_of_totals_and_averages():
    users = [profile("a", links=4), profile("b", links=6)]

    stats = compute_stats(users, {"b"})

    assert stats.total_users == 1
    assert stats.total_links_analyzed == 4
    assert stats.average_links_per_user == 4


def test_excluding_everyone_gives_zero_averages(profiles):
    stats = compute_stats(profiles, {"a", "b", "c"})

    assert stats.total_users == 0
    assert stats.total_links_analyzed == 0
    assert stats.average_links_per_user == 0
    assert stats.average_visits_per_user == 0


def test_unknown_excluded_ids_are_ignored(profiles):
    assert compute_stats(profiles, {"zzz"}) == compute_stats(profiles)


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

def test_sort_by_number_descending(profiles):
    ordered = sort_profiles(profiles, "links_analyzed", "desc")
    assert [p.id for p in ordered] == ["b", "a", "c"]


def test_sort_by_string_ascending(profiles):
    ordered = sort_profiles(profiles, "email", "asc")
    assert [p.email for p in ordered] == ["alice@example.com", "bob@example.com", "carol@example.com"]


def test_string_sort_ignores_case():
    users = [
        profile("d", email="Dave@x.com"),
        profile("b", email="bob@x.com"),
        profile("a", email="Alice@x.com"),
        profile("c", email="carol@x.com"),
    ]

    ordered = sort_profiles(users, "email", "asc")

    assert [p.email for p in ordered] == ["Alice@x.com", "bob@x.com", "carol@x.com", "Dave@x.com"]


def test_sort_by_created_at(profiles):
    assert [p.id for p in sort_profiles(profiles, "created_at", "asc")] == ["a", "c", "b"]
    assert [p.id for p in sort_profiles(profiles, "created_at", "desc")] == ["b", "c", "a"]


def test_sort_is_stable_for_ties():
    users = [profile("x", links=1), profile("y", links=2), profile("z", links=1)]

    assert [p.id for p in sort_profiles(users, "links_analyzed", "asc")] == ["x", "z", "y"]
    assert [p.id for p in sort_profiles(users, "links_analyzed", "desc")] == ["y", "x", "z"]


def test_missing_values_compare_equal():
    users = [profile("x", full_name=None), profile("y", full_name="dana"), profile("z", full_name=None)]

    ordered = sort_profiles(users, "full_name", "asc")

    assert [p.id for p in ordered] == ["x", "y", "z"]


def test_booleans_do_not_sort_as_numbers():
    users = [profile("x", is_admin=True), profile("y", is_admin=False)]
    assert [p.id for p in sort_profiles(users, "is_admin", "asc")] == ["x", "y"]


def test_sort_does_not_mutate_input(profiles):
    before = list(profiles)
    sort_profiles(profiles, "visit_count", "asc")
    assert profiles == before


def test_sort_rejects_unknown_key_or_order(profiles):
    with pytest.raises(ValueError):
        sort_profiles(profiles, "password", "asc")
    with pytest.raises(ValueError):
        sort_profiles(profiles, "email", "sideways")


def test_sort_state_toggles():
    state = SortState()
    assert (state.key, state.order) == ("created_at", "desc")

    state.toggle("created_at")
    assert state.order == "asc"
    assert state.indicator("created_at") == "↑"

    state.toggle("email")
    assert (state.key, state.order) == ("email", "desc")
    assert state.indicator("email") == "↓"
    assert state.indicator("created_at") == ""


# ---------------------------------------------------------------------------
# Exclusion set
# ---------------------------------------------------------------------------

def test_toggle_exclusion_returns_new_set():
    excluded = {"a"}

    assert toggle_exclusion(excluded, "b") == {"a", "b"}
    assert toggle_exclusion(excluded, "a") == set()
    assert excluded == {"a"}


def test_toggle_select_all(profiles):
    everyone = toggle_select_all(set(), profiles)
    assert everyone == {"a", "b", "c"}

    assert toggle_select_all(everyone, profiles) == set()
    assert toggle_select_all({"a"}, profiles) == {"a", "b", "c"}


def test_clear_exclusions():
    assert clear_exclusions() == set()


# ---------------------------------------------------------------------------
# Access and table
# ---------------------------------------------------------------------------

def test_require_admin_allows_admins():
    is_admin = MagicMock(return_value=True)
    require_admin(Session(user_id="u1"), is_admin=is_admin)
    is_admin.assert_called_once_with("u1")


def test_require_admin_rejects_non_admins():
    with pytest.raises(AccessDenied):
        require_admin(Session(user_id="u1"), is_admin=MagicMock(return_value=False))


def test_require_admin_rejects_anonymous_without_lookup():
    is_admin = MagicMock(return_value=True)

    with pytest.raises(AuthorizationError):
        require_admin(Session.anonymous(), is_admin=is_admin)

    is_admin.assert_not_called()


def test_profiles_table_keeps_order_and_marks_exclusions(profiles):
    ordered = sort_profiles(profiles, "links_analyzed", "desc")

    table = profiles_table(ordered, {"a"})

    assert list(table.index) == ["b", "a", "c"]
    assert list(table["Excluded"]) == [False, True, False]
    assert table.loc["c", "Name"] == ""
    assert table.loc["b", "Joined"] == "Mar 03, 2025 12:00 AM"


def test_profiles_table_empty():
    table = profiles_table([], set())
    assert table.empty
    assert "Email" in table.columns
