"""
One-shot "was this helpful?" rating for the current analysis result
"""

import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import database
from errors import RatingError
from models import Session

logger = logging.getLogger(__name__)


class RatingValue(enum.Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NONE = "none"


@dataclass(frozen=True)
class RatingState:
    has_rated: bool = False
    value: RatingValue = RatingValue.NONE


INITIAL_RATING = RatingState()


class RatingController:
    """
    Tracks whether the current result has been rated.

    The state belongs to a result generation. Advancing the generation
    (a new submission, a failed one, a sign-in) discards the previous
    rating, so a stale flag can never carry over to a newer result.
    """

    def __init__(self, increment: Optional[Callable[[str, bool], None]] = None):
        self._increment = increment or database.increment_rating
        self.generation = 0
        self._state = INITIAL_RATING

    @property
    def state(self) -> RatingState:
        return self._state

    def reset(self, generation: int) -> None:
        if generation < self.generation:
            raise ValueError("rating generation cannot go backwards")
        self.generation = generation
        self._state = INITIAL_RATING

    def submit(self, session: Session, is_positive: bool, result_generation: Optional[int]) -> RatingState:
        """
        Record a rating for the result of ``result_generation``.

        Raises:
            RatingError: Anonymous caller, no current result, or already rated.
                No remote call is made in these cases.
            TransportError: The counter RPC failed; the result stays unrated.
        """
        if session.is_anonymous:
            raise RatingError("Log in to rate")
        if result_generation is None or result_generation != self.generation:
            raise RatingError("There is no result to rate")
        if self._state.has_rated:
            raise RatingError("You have already rated this result")

        self._increment(session.user_id, is_positive)

        self._state = RatingState(
            has_rated=True,
            value=RatingValue.POSITIVE if is_positive else RatingValue.NEGATIVE,
        )
        logger.info("User %s rated result %d as %s", session.user_id, self.generation, self._state.value.value)
        return self._state

    def button_hint(self, authenticated: bool, is_positive: bool) -> str:
        if not authenticated:
            return "Log in to rate"
        if self._state.has_rated:
            return "You have already rated this result"
        return "Rate Positive" if is_positive else "Rate Negative"
