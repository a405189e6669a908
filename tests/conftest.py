"""Pytest configuration and fixtures for importflow tests."""

from __future__ import annotations

import pytest

from importflow.core.progress_core import ImportProgressCore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """Fixture providing a controllable clock for run timing."""
    return FakeClock()


@pytest.fixture
def core(clock: FakeClock) -> ImportProgressCore:
    """Fixture providing an idle ImportProgressCore driven by the fake clock."""
    return ImportProgressCore(clock=clock)
