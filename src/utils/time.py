"""
Clock abstractions for conversion timing and log timestamps.

A conversion run stamps every log entry and progress event with the current
time and the milliseconds elapsed since the run started. Reading "now" through
an injected clock instead of calling datetime.now() directly keeps those
values reproducible in tests: a FrozenClock makes every elapsed time 0, and
advancing it by hand gives exact step timings.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """
    Abstract time source.

    **Usage**: Accept a Clock (constructor or function parameter) and call
    clock.now() whenever the current time is needed. Production code passes a
    RealClock; tests pass a FrozenClock.

    **Example**:
        converter = ObservationConverter(clock=RealClock())
        converter = ObservationConverter(clock=FrozenClock(datetime(2024, 6, 1, tzinfo=timezone.utc)))
    """

    def now(self) -> datetime:
        """Return the current time (timezone-aware, UTC)."""
        ...


class RealClock:
    """Clock backed by the system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FrozenClock:
    """
    Clock that returns a fixed timestamp until advanced.

    **Usage**:
        clock = FrozenClock(datetime(2024, 6, 1, tzinfo=timezone.utc))
        clock.now()                      # 2024-06-01T00:00:00+00:00
        clock.advance(milliseconds=250)
        clock.now()                      # 2024-06-01T00:00:00.250000+00:00
    """

    def __init__(self, fixed_now: datetime):
        """
        Args:
            fixed_now: The datetime to return from now(). Should be
                       timezone-aware (UTC recommended).
        """
        self._fixed_now = fixed_now

    def now(self) -> datetime:
        return self._fixed_now

    def advance(self, **delta) -> datetime:
        """Move the frozen time forward by timedelta(**delta) and return it."""
        self._fixed_now = self._fixed_now + timedelta(**delta)
        return self._fixed_now


def elapsed_ms(start: datetime, clock: Clock) -> int:
    """
    Whole milliseconds between start and clock.now(), never negative.

    Args:
        start: Time the measured interval began.
        clock: Clock supplying the end time.
    """
    delta = clock.now() - start
    return max(0, int(delta.total_seconds() * 1000))


def get_real_clock() -> Clock:
    """Factory for the production clock."""
    return RealClock()
