"""
Elapsed-time progress estimate shown while an analysis is pending
"""

import time
from typing import Callable, Optional

from app_config import EXPECTED_ANALYSIS_SECONDS, PROGRESS_CEILING


class ProgressEstimator:
    """
    Purely cosmetic: the percentage grows with wall-clock time, stops at
    the ceiling while the request is pending, and only reaches 100 on
    ``finish()``.
    """

    def __init__(
        self,
        expected_seconds: float = EXPECTED_ANALYSIS_SECONDS,
        ceiling: float = PROGRESS_CEILING,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.expected_seconds = expected_seconds
        self.ceiling = ceiling
        self.clock = clock
        self._started_at: Optional[float] = None
        self._finished = False

    def start(self) -> None:
        self._started_at = self.clock()
        self._finished = False

    def finish(self) -> None:
        self._finished = True

    @property
    def running(self) -> bool:
        return self._started_at is not None and not self._finished

    def percent(self) -> float:
        if self._finished:
            return 100.0
        if self._started_at is None:
            return 0.0
        elapsed = max(0.0, self.clock() - self._started_at)
        return min(elapsed / self.expected_seconds * 100, self.ceiling)

    def label(self) -> str:
        progress = self.percent()
        if progress >= 75:
            return "Matching relevant articles"
        if progress >= 50:
            return "Searching thousands of articles"
        return "Fetching context"
