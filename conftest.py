"""Shared pytest fixtures."""

import pytest

from admission.app.core.clock import ManualClock


@pytest.fixture
def manual_clock():
    """A clock frozen at t=0 that tests advance explicitly."""
    return ManualClock(start_ms=0)
