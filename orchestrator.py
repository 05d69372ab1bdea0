"""
Analysis request orchestration.

Takes a post URL from the page and drives it through trial-quota gating,
the remote analysis call, and the local bookkeeping that follows a
successful result (history, rating reset, analyzed-count).

    IDLE -> CHECKING_QUOTA (anonymous only) -> SUBMITTING
         -> SUCCESS | ERROR | TRIAL_EXPIRED

Every terminal state returns to the start on the next ``submit``.
"""

import enum
import logging
from ipaddress import ip_address
from typing import Callable, Optional
from urllib.parse import urlparse

import database
from analysis_api import AnalysisClient
from app_config import MAX_URL_LENGTH
from errors import QuotaCheckFailed, QuotaExhausted, SubmissionInProgress, TransportError, ValidationError
from history_cache import HistoryCache
from models import AnalysisResult, Session
from progress import ProgressEstimator
from rating import RatingController, RatingState
from trial_quota import TrialQuotaTracker

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred"

BLOCKED_HOSTS = {'localhost', '127.0.0.1', '0.0.0.0', '::', '::1'}


class OrchestratorState(enum.Enum):
    IDLE = "idle"
    CHECKING_QUOTA = "checking_quota"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"
    TRIAL_EXPIRED = "trial_expired"


BUSY_STATES = {OrchestratorState.CHECKING_QUOTA, OrchestratorState.SUBMITTING}


def validate_url(url: str) -> tuple[bool, str]:
    """
    Validate a post URL before it is sent anywhere.

    Args:
        url: URL to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not url or not url.strip():
        return False, "Please enter a URL"

    url = url.strip()

    if len(url) > MAX_URL_LENGTH:
        return False, f"URL is too long (max {MAX_URL_LENGTH} characters)"

    try:
        parsed = urlparse(url)
    except ValueError:
        return False, "Please enter a valid URL"

    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        return False, "Please enter a valid URL"

    if parsed.hostname.lower() in BLOCKED_HOSTS:
        return False, "Cannot analyze localhost URLs"

    try:
        ip = ip_address(parsed.hostname)
        if ip.is_private or ip.is_loopback or ip.is_reserved:
            return False, "Cannot analyze private or internal IP addresses"
    except ValueError:
        # Not an IP address, which is fine (it's a domain name)
        pass

    return True, ""


def require_valid_url(url: str) -> None:
    """
    Raises:
        ValidationError: With the message from ``validate_url``
    """
    is_valid, message = validate_url(url)
    if not is_valid:
        raise ValidationError(message)


class AnalysisOrchestrator:
    """
    Owns the state of the analysis page for one browser session.

    Collaborators are injected so the page can wire the real Supabase and
    HTTP clients while tests pass fakes.
    """

    def __init__(
        self,
        session: Session,
        history: HistoryCache,
        analyze: Optional[Callable[[str], AnalysisResult]] = None,
        quota: Optional[TrialQuotaTracker] = None,
        rating: Optional[RatingController] = None,
        increment_links_analyzed: Optional[Callable[[str], Optional[int]]] = None,
        progress_factory: Callable[[], ProgressEstimator] = ProgressEstimator,
    ):
        self.session = session
        self.history = history
        self._analyze = analyze or AnalysisClient()
        self.quota = quota or TrialQuotaTracker()
        self.rating = rating or RatingController()
        self._increment_links_analyzed = increment_links_analyzed or database.increment_links_analyzed
        self._progress_factory = progress_factory

        self.state = OrchestratorState.IDLE
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[str] = None
        self.error_kind: Optional[str] = None
        self.generation = 0
        self.result_generation: Optional[int] = None
        self.links_analyzed: Optional[int] = None
        self.progress = progress_factory()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def busy(self) -> bool:
        return self.state in BUSY_STATES

    def bootstrap(self) -> None:
        """Fetch the trial usage once for anonymous visitors."""
        if self.session.is_anonymous:
            self.quota.bootstrap()

    def set_session(self, session: Session) -> None:
        """Apply a sign-in or sign-out; trial usage only applies while anonymous."""
        if session == self.session:
            return
        logger.info("Session changed (anonymous=%s)", session.is_anonymous)
        self.session = session
        self.quota.reset()
        self.links_analyzed = None

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def _reject(self, message: str, state: OrchestratorState) -> OrchestratorState:
        self.state = state
        self.result = None
        self.result_generation = None
        self.error = message
        self.error_kind = "validation"
        return self.state

    def _begin(self) -> int:
        self.generation += 1
        self.rating.reset(self.generation)
        self.result = None
        self.result_generation = None
        self.error = None
        self.error_kind = None
        return self.generation

    def _fail(self, generation: int, message: str, kind: str) -> OrchestratorState:
        if generation == self.generation:
            self.state = OrchestratorState.ERROR
            self.error = message
            self.error_kind = kind
        return self.state

    def _admit_anonymous(self) -> None:
        """
        Consume one trial use for this attempt.

        Raises:
            QuotaExhausted: No use is left for this attempt
            QuotaCheckFailed: The IP lookup or the track RPC failed
        """
        if self.quota.expired:
            raise QuotaExhausted("Your trial period has ended")

        self.state = OrchestratorState.CHECKING_QUOTA
        previous = self.quota.usage
        usage = self.quota.track()

        # The attempt that consumes the last remaining use still runs
        consumed_last_use = previous is not None and previous.remaining_uses >= 1
        if usage.trial_expired and not consumed_last_use:
            raise QuotaExhausted("Your trial period has ended")

    def submit(self, url: str) -> OrchestratorState:
        """
        Run one analysis attempt for ``url``.

        Whatever happens inside the attempt, it ends in a terminal state.

        Returns:
            The state after the attempt

        Raises:
            SubmissionInProgress: If a previous submission has not finished
        """
        if self.busy:
            raise SubmissionInProgress("An analysis is already running")

        try:
            return self._attempt(url)
        finally:
            if self.busy:
                self.progress.finish()
                self._fail(self.generation, UNEXPECTED_ERROR_MESSAGE, "transport")

    def _attempt(self, url: str) -> OrchestratorState:
        url = (url or "").strip()
        try:
            require_valid_url(url)
        except ValidationError as e:
            # a blank field is not an attempt
            return self._reject(str(e), OrchestratorState.ERROR if url else OrchestratorState.IDLE)

        generation = self._begin()

        if self.session.is_anonymous:
            try:
                self._admit_anonymous()
            except QuotaExhausted:
                logger.info("Trial expired; analysis of %s not sent", url)
                self.state = OrchestratorState.TRIAL_EXPIRED
                return self.state
            except QuotaCheckFailed as e:
                return self._fail(generation, str(e), "quota")

        self.state = OrchestratorState.SUBMITTING
        self.progress = self._progress_factory()
        self.progress.start()

        try:
            result = self._analyze(url)
        except TransportError as e:
            return self._fail(generation, str(e), "transport")
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Unexpected failure analyzing %s", url)
            return self._fail(generation, UNEXPECTED_ERROR_MESSAGE, "transport")
        finally:
            self.progress.finish()

        if generation != self.generation:
            logger.info("Discarding superseded result for %s", url)
            return self.state

        self.result = result
        self.result_generation = generation
        self.state = OrchestratorState.SUCCESS

        try:
            self.history.record(url)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.warning("Could not add %s to history: %s", url, e)

        if not self.session.is_anonymous:
            count = self._increment_links_analyzed(self.session.user_id)
            if count is not None:
                self.links_analyzed = count

        return self.state

    def select_history(self, url: str) -> OrchestratorState:
        return self.submit(url)

    def clear_history(self) -> None:
        self.history.clear()

    # ------------------------------------------------------------------
    # Rating
    # ------------------------------------------------------------------

    def rate(self, is_positive: bool) -> RatingState:
        """
        Rate the current result.

        Raises:
            RatingError: Anonymous caller, no result, or already rated
            TransportError: The counter RPC failed
        """
        result_generation = self.result_generation if self.state == OrchestratorState.SUCCESS else None
        return self.rating.submit(self.session, is_positive, result_generation)
