"""Core utilities for the admission toolkit."""

from admission.app.core.clock import Clock, ManualClock, SystemClock
from admission.app.core.config import Settings, settings
from admission.app.core.logging import get_logger, setup_logging

__all__ = [
    "Clock",
    "ManualClock",
    "SystemClock",
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
]
