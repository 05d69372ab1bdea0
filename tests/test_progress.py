"""Tests for the loading progress estimate."""

import pytest

from progress import ProgressEstimator


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_progress_grows_with_elapsed_time():
    clock = FakeClock()
    progress = ProgressEstimator(expected_seconds=10, ceiling=98, clock=clock)
    progress.start()

    clock.now += 2.5
    assert progress.percent() == pytest.approx(25)
    assert progress.label() == "Fetching context"

    clock.now += 3
    assert progress.percent() == pytest.approx(55)
    assert progress.label() == "Searching thousands of articles"

    clock.now += 2
    assert progress.label() == "Matching relevant articles"


def test_progress_never_reaches_100_while_pending():
    clock = FakeClock()
    progress = ProgressEstimator(expected_seconds=10, ceiling=98, clock=clock)
    progress.start()

    readings = []
    for _ in range(50):
        clock.now += 1
        readings.append(progress.percent())

    assert readings == sorted(readings)
    assert max(readings) == 98
    assert progress.running


def test_finish_snaps_to_100():
    clock = FakeClock()
    progress = ProgressEstimator(expected_seconds=10, clock=clock)
    progress.start()
    clock.now += 1

    progress.finish()

    assert progress.percent() == 100
    assert not progress.running


def test_not_started_is_zero():
    assert ProgressEstimator().percent() == 0
