"""
Admin dashboard aggregation.

Statistics are recomputed from the full profile list every time the
profiles or the exclusion set change; the exclusion set only filters the
view and never touches the stored profiles.
"""

import locale
import logging
from dataclasses import dataclass, fields
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Callable, Iterable, List, Literal, Optional, Set

import pandas as pd

import database
from errors import AccessDenied
from models import Session, UserProfile

logger = logging.getLogger(__name__)

SortOrder = Literal["asc", "desc"]

SORTABLE_KEYS = {f.name for f in fields(UserProfile)}


@dataclass(frozen=True)
class AdminStats:
    total_users: int
    total_links_analyzed: int
    total_visits: int
    total_positive_ratings: int
    total_negative_ratings: int
    average_links_per_user: float
    average_visits_per_user: float


def _average(total: int, count: int) -> float:
    return round(total / count, 2) if count > 0 else 0


def compute_stats(profiles: Iterable[UserProfile], excluded: Optional[Set[str]] = None) -> AdminStats:
    """
    Sum the counters over profiles whose id is not excluded.

    Args:
        profiles: All user profiles
        excluded: Profile ids removed from the statistics

    Returns:
        AdminStats with totals and per-user averages (0 when no users remain)
    """
    excluded = excluded or set()
    included = [p for p in profiles if p.id not in excluded]

    total_users = len(included)
    total_links = sum(p.links_analyzed for p in included)
    total_visits = sum(p.visit_count for p in included)

    return AdminStats(
        total_users=total_users,
        total_links_analyzed=total_links,
        total_visits=total_visits,
        total_positive_ratings=sum(p.positive_ratings for p in included),
        total_negative_ratings=sum(p.negative_ratings for p in included),
        average_links_per_user=_average(total_links, total_users),
        average_visits_per_user=_average(total_visits, total_users),
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def collation_key(value: str) -> tuple[str, str]:
    """Case-insensitive locale order first, then the exact string as a tiebreak."""
    return locale.strxfrm(value.casefold()), locale.strxfrm(value)


def _compare(a: Any, b: Any) -> int:
    """Compare two column values; unlike or missing values compare equal."""
    if isinstance(a, str) and isinstance(b, str):
        ka, kb = collation_key(a), collation_key(b)
        return (ka > kb) - (ka < kb)
    if _is_number(a) and _is_number(b):
        return (a > b) - (a < b)
    if isinstance(a, datetime) and isinstance(b, datetime):
        try:
            return (a > b) - (a < b)
        except TypeError:
            # naive vs aware timestamps
            return 0
    return 0


def sort_profiles(profiles: Iterable[UserProfile], key: str, order: SortOrder = "desc") -> List[UserProfile]:
    """
    Stable sort of profiles by one column.

    Raises:
        ValueError: If ``key`` is not a profile field or ``order`` is unknown
    """
    if key not in SORTABLE_KEYS:
        raise ValueError(f"Cannot sort by {key!r}")
    if order not in ("asc", "desc"):
        raise ValueError(f"Unknown sort order {order!r}")

    sign = 1 if order == "asc" else -1

    def compare(a: UserProfile, b: UserProfile) -> int:
        return sign * _compare(getattr(a, key), getattr(b, key))

    return sorted(profiles, key=cmp_to_key(compare))


@dataclass
class SortState:
    """Column header sort: same column flips the order, a new column starts descending."""
    key: str = "created_at"
    order: SortOrder = "desc"

    def toggle(self, key: str) -> "SortState":
        if key not in SORTABLE_KEYS:
            raise ValueError(f"Cannot sort by {key!r}")
        if key == self.key:
            self.order = "asc" if self.order == "desc" else "desc"
        else:
            self.key = key
            self.order = "desc"
        return self

    def indicator(self, key: str) -> str:
        if key != self.key:
            return ""
        return "↑" if self.order == "asc" else "↓"


# ============================================================================
# EXCLUSION SET
# ============================================================================

def toggle_exclusion(excluded: Set[str], user_id: str) -> Set[str]:
    """Return a new exclusion set with ``user_id`` flipped."""
    updated = set(excluded)
    if user_id in updated:
        updated.remove(user_id)
    else:
        updated.add(user_id)
    return updated


def toggle_select_all(excluded: Set[str], profiles: Iterable[UserProfile]) -> Set[str]:
    """Exclude everyone, or nobody if everyone is already excluded."""
    ids = {p.id for p in profiles}
    if ids and ids <= excluded:
        return set()
    return ids


def clear_exclusions() -> Set[str]:
    return set()


# ============================================================================
# ACCESS
# ============================================================================

def require_admin(session: Session, is_admin: Optional[Callable[[str], bool]] = None) -> None:
    """
    Raises:
        AccessDenied: If the caller is anonymous or lacks the admin flag
    """
    check = is_admin or database.is_admin
    if session.is_anonymous:
        raise AccessDenied("Please log in to view the admin dashboard.")
    if not check(session.user_id):
        logger.warning("Admin access denied for %s", session.user_id)
        raise AccessDenied("Access denied. Admin privileges required.")


def profiles_table(profiles: Iterable[UserProfile], excluded: Optional[Set[str]] = None) -> pd.DataFrame:
    """Tabular view of profiles for the dashboard, preserving the given order."""
    excluded = excluded or set()
    profiles = list(profiles)
    rows = [
        {
            'Excluded': p.id in excluded,
            'Email': p.email,
            'Name': p.full_name or '',
            'Joined': p.created_at.strftime('%b %d, %Y %I:%M %p'),
            'Links': p.links_analyzed,
            'Visits': p.visit_count,
            'Positive': p.positive_ratings,
            'Negative': p.negative_ratings,
            'Admin': p.is_admin,
        }
        for p in profiles
    ]
    columns = ['Excluded', 'Email', 'Name', 'Joined', 'Links', 'Visits', 'Positive', 'Negative', 'Admin']
    return pd.DataFrame(rows, columns=columns, index=pd.Index([p.id for p in profiles], name='id'))
