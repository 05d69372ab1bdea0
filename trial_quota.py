"""
Trial quota tracking for anonymous users
Wraps the IP lookup and the check/track RPCs keyed by the caller's address
"""

import logging
from typing import Callable, Optional

import analysis_api
import database
from errors import QuotaCheckFailed
from models import TrialUsage

logger = logging.getLogger(__name__)


class TrialQuotaTracker:
    """Holds the last known trial usage for this anonymous session."""

    def __init__(
        self,
        lookup_ip: Optional[Callable[[], str]] = None,
        check_usage: Optional[Callable[[str], TrialUsage]] = None,
        track_usage: Optional[Callable[[str], TrialUsage]] = None,
    ):
        self._lookup_ip = lookup_ip or analysis_api.get_client_ip
        self._check_usage = check_usage or database.check_trial_usage
        self._track_usage = track_usage or database.track_analyzer_usage
        self.usage: Optional[TrialUsage] = None

    @property
    def expired(self) -> bool:
        return bool(self.usage and self.usage.trial_expired)

    def bootstrap(self) -> Optional[TrialUsage]:
        """
        Read the usage without consuming a use.

        Failures are logged and leave the usage unknown so the page can
        still render and accept a submission.
        """
        try:
            ip = self._lookup_ip()
            self.usage = self._check_usage(ip)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Failed to check trial usage: %s", e)
            return None

        logger.info("Trial usage: %d remaining, expired=%s", self.usage.remaining_uses, self.usage.trial_expired)
        return self.usage

    def track(self) -> TrialUsage:
        """
        Consume one use for the current submission attempt.

        Raises:
            QuotaCheckFailed: If the IP lookup or the RPC fails
        """
        try:
            ip = self._lookup_ip()
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("IP lookup failed: %s", e)
            raise QuotaCheckFailed("Could not verify your trial usage. Please try again.")

        try:
            usage = self._track_usage(ip)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Failed to track analyzer usage: %s", e)
            raise QuotaCheckFailed("Could not verify your trial usage. Please try again.")

        self.usage = usage
        return usage

    def reset(self) -> None:
        """Forget the usage (user signed in or out)."""
        self.usage = None

    def remaining_label(self) -> Optional[str]:
        if self.usage is None or self.usage.trial_expired:
            return None
        return f"Trial Mode: {self.usage.remaining_uses} uses remaining"
