"""
Injectable clock.

Every lifecycle operation takes ``now`` explicitly; routes and background
tasks obtain it from a Clock so tests can pin time.
Times are naive UTC, like the rest of the ORM.
"""
from datetime import datetime, timedelta


class Clock:
    """Supplies the current time."""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.utcnow()


class FrozenClock(Clock):
    """Clock pinned to a fixed instant; moved only by ``advance``."""

    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at

    def advance(self, **kwargs) -> datetime:
        self._at = self._at + timedelta(**kwargs)
        return self._at


_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return _clock

