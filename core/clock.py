"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
Wall-clock source for snapshot timestamps, backfill cutoffs
and news lookback windows.

- Always timezone-aware UTC
- Swappable: tests inject MockClock to age snapshots
  without sleeping

Rate limiter pacing does NOT use this clock; it measures
intervals on a monotonic clock (see data_sources.rate_limiter).

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading
import time


# ============================================================
# CLOCK PROTOCOL
# ============================================================

class ClockProtocol(ABC):
    """Source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        pass

    @abstractmethod
    def timestamp(self) -> float:
        """Current time as seconds since the epoch."""
        pass

    def ago(self, **kwargs) -> datetime:
        """now() minus timedelta(**kwargs), e.g. clock.ago(hours=24)."""
        return self.now() - timedelta(**kwargs)


# ============================================================
# SYSTEM CLOCK
# ============================================================

class SystemClock(ClockProtocol):
    """Reads the host clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def timestamp(self) -> float:
        return time.time()


# ============================================================
# MOCK CLOCK
# ============================================================

class MockClock(ClockProtocol):
    """
    Manually driven clock.

    Time only moves through set_time() and advance(), so a test can
    place snapshots 25 hours in the past and run backfill "now".
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        # Naive datetimes are taken as UTC
        self._current = _ensure_utc(initial_time or datetime.now(timezone.utc))
        self._guard = threading.Lock()

    def now(self) -> datetime:
        with self._guard:
            return self._current

    def timestamp(self) -> float:
        return self.now().timestamp()

    def set_time(self, new_time: datetime) -> None:
        with self._guard:
            self._current = _ensure_utc(new_time)

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """Move forward by `seconds` plus any timedelta kwargs (hours=, days=)."""
        step = timedelta(seconds=seconds, **kwargs)
        with self._guard:
            self._current += step


# ============================================================
# ISO-8601 HELPERS
# ============================================================

def _ensure_utc(dt: datetime) -> datetime:
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def to_iso8601(dt: datetime) -> str:
    return _ensure_utc(dt).isoformat()


def from_iso8601(iso_string: str) -> datetime:
    """Parse an ISO-8601 string; a trailing 'Z' and naive values mean UTC."""
    return _ensure_utc(datetime.fromisoformat(iso_string.replace("Z", "+00:00")))


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "to_iso8601",
    "from_iso8601",
]
