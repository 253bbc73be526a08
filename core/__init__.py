"""
Core Module Package.

Infrastructure shared by every other package.

Components:
- clock: Testable UTC wall clock
- exceptions: Exception taxonomy for the signal pipeline
"""

from core.clock import ClockProtocol, MockClock, SystemClock
from core.exceptions import (
    CollectorError,
    ConfigurationError,
    MandatorySignalMissingError,
    PersistenceError,
    RateLimitExhaustedError,
    SignalPipelineError,
)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "SignalPipelineError",
    "ConfigurationError",
    "RateLimitExhaustedError",
    "CollectorError",
    "MandatorySignalMissingError",
    "PersistenceError",
]
