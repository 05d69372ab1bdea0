"""
Database Helper Functions
Trial quota RPCs, per-user counters, and profile queries backed by Supabase
"""

import logging
from typing import List, Optional

from supabase import create_client, Client

from app_config import get_secret
from errors import ConfigurationError, TransportError
from models import TrialUsage, UserMetrics, UserProfile

logger = logging.getLogger(__name__)


def get_supabase_client(service: bool = False) -> Client:
    """
    Get Supabase client using credentials from secrets or environment

    Args:
        service: Use the service key (admin listing) instead of the anon key

    Raises:
        ConfigurationError: If credentials are missing
    """
    key_name = "SUPABASE_SERVICE_KEY" if service else "SUPABASE_ANON_KEY"
    supabase_url = get_secret("SUPABASE_URL")
    supabase_key = get_secret(key_name)

    if not supabase_url or not supabase_key:
        raise ConfigurationError(f"Supabase credentials not found. Please configure SUPABASE_URL and {key_name}")

    return create_client(supabase_url, supabase_key)


# ============================================================================
# TRIAL QUOTA
# ============================================================================

def check_trial_usage(ip: str) -> TrialUsage:
    """
    Read the trial usage for an IP without consuming a use

    Raises:
        Exception: Whatever the Supabase client raises; callers decide how to degrade
    """
    supabase = get_supabase_client()
    result = supabase.rpc('check_trial_usage', {'client_ip': ip}).execute()
    return TrialUsage.from_payload(result.data)


def track_analyzer_usage(ip: str) -> TrialUsage:
    """Consume one trial use for an IP and return the updated usage"""
    supabase = get_supabase_client()
    result = supabase.rpc('track_analyzer_usage', {'client_ip': ip}).execute()
    return TrialUsage.from_payload(result.data)


# ============================================================================
# USER COUNTERS
# ============================================================================

def get_user_metrics(user_id: str) -> Optional[UserMetrics]:
    """
    Get the header counters for a user

    Returns:
        UserMetrics, or None if the profile could not be read
    """
    supabase = get_supabase_client()

    try:
        result = supabase.table('profiles').select(
            'links_analyzed, visit_count, positive_ratings, negative_ratings, is_admin'
        ).eq('id', user_id).single().execute()
        return UserMetrics.from_row(result.data) if result.data else None
    except Exception as e:
        logger.error("Failed to fetch user metrics for %s: %s", user_id, e)
        return None


def is_admin(user_id: str) -> bool:
    """Check the admin flag on a user's profile (False on any failure)"""
    supabase = get_supabase_client()

    try:
        result = supabase.table('profiles').select('is_admin').eq('id', user_id).single().execute()
        return bool(result.data and result.data.get('is_admin'))
    except Exception as e:
        logger.error("Failed to check admin status for %s: %s", user_id, e)
        return False


def increment_visit_count(user_id: str) -> bool:
    """
    Bump the visit counter through the atomic RPC

    Returns:
        bool: True if successful, False otherwise
    """
    supabase = get_supabase_client()

    try:
        supabase.rpc('increment_visit_count', {'user_id': user_id}).execute()
        return True
    except Exception as e:
        logger.error("Error incrementing visit count for %s: %s", user_id, e)
        return False


def increment_links_analyzed(user_id: str) -> Optional[int]:
    """
    Add one to the user's analyzed-links count

    This is a read followed by a separate write of current + 1, so two
    analyses finishing close together for the same user can under-count.

    Returns:
        The new count, or None if the read or write failed
    """
    try:
        supabase = get_supabase_client()
        current = supabase.table('profiles').select('links_analyzed').eq('id', user_id).single().execute()
        current_count = (current.data or {}).get('links_analyzed') or 0

        new_count = current_count + 1
        supabase.table('profiles').update({
            'links_analyzed': new_count
        }).eq('id', user_id).execute()

        return new_count
    except Exception as e:
        logger.error("Failed to increment links_analyzed for %s: %s", user_id, e)
        return None


def increment_rating(user_id: str, is_positive: bool) -> None:
    """
    Bump the positive or negative rating counter through the atomic RPC

    Raises:
        TransportError: If the RPC fails
    """
    function = 'increment_positive_rating' if is_positive else 'increment_negative_rating'

    try:
        supabase = get_supabase_client()
        supabase.rpc(function, {'user_id': user_id}).execute()
    except Exception as e:
        logger.error("Error submitting rating for %s: %s", user_id, e)
        raise TransportError(f"Could not submit rating: {e}")


# ============================================================================
# ADMIN / ANALYTICS FUNCTIONS
# ============================================================================

def fetch_all_profiles() -> List[UserProfile]:
    """
    Get every user profile, newest first

    Raises:
        TransportError: If the profiles table cannot be read
    """
    supabase = get_supabase_client(service=True)

    try:
        result = supabase.table('profiles').select('*').order('created_at', desc=True).execute()
    except Exception as e:
        logger.error("Failed to fetch users: %s", e)
        raise TransportError("Failed to fetch user data")

    return [UserProfile.from_row(row) for row in (result.data or [])]
