"""
Configuration helpers for Contxtra
Secrets come from environment variables (deployment) or Streamlit secrets (local)
"""

import locale
import logging
import os
from pathlib import Path
from typing import Optional

import streamlit as st


# Analysis service
DEFAULT_ANALYSIS_API_URL = "https://contxtra-api-267101235988.us-central1.run.app/find-articles"
DEFAULT_IP_LOOKUP_URL = "https://api.ipify.org?format=json"

# History cache
HISTORY_STORAGE_KEY = "link-analyzer-history"
HISTORY_LIMIT = 10

# Loading feedback
EXPECTED_ANALYSIS_SECONDS = 9.5
PROGRESS_CEILING = 98.0

# Input limits
MAX_URL_LENGTH = 2000

# Admin dashboard
ADMIN_DENIED_REDIRECT_SECONDS = 3


def get_secret(key: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get secret from environment variables or Streamlit secrets.

    Checks in this order:
    1. Environment variables (production)
    2. Streamlit secrets (local development)
    3. Default value

    Args:
        key: Secret key to retrieve
        default: Default value if not found

    Returns:
        Secret value or default
    """
    value = os.getenv(key)
    if value is not None:
        return value

    # st.secrets raises when no secrets.toml exists
    try:
        if hasattr(st, 'secrets') and key in st.secrets:
            return st.secrets[key]
    except Exception:
        pass

    return default


def get_analysis_api_url() -> str:
    return get_secret("ANALYSIS_API_URL", DEFAULT_ANALYSIS_API_URL)


def get_ip_lookup_url() -> str:
    return get_secret("IP_LOOKUP_URL", DEFAULT_IP_LOOKUP_URL)


def get_analysis_timeout() -> Optional[float]:
    """Timeout for the analysis call in seconds, or None to rely on the transport."""
    raw = get_secret("ANALYSIS_TIMEOUT_SECONDS")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring invalid ANALYSIS_TIMEOUT_SECONDS=%r", raw)
        return None


def get_data_dir() -> Path:
    """Directory holding locally persisted state (history cache)."""
    override = get_secret("CONTXTRA_DATA_DIR")
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".contxtra"


def configure_logging() -> None:
    """Configure root logging once for the Streamlit process."""
    level_name = (get_secret("LOG_LEVEL", "INFO") or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def configure_locale() -> bool:
    """
    Use the environment's collation so admin table sorting follows it.

    Returns:
        False if the environment locale is unavailable (collation stays "C")
    """
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as e:
        logging.getLogger(__name__).warning("Falling back to default collation: %s", e)
        return False
    return True
