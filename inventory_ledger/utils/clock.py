from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Injectable time source. Returns naive UTC datetimes, the storage convention."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Test clock: returns the same instant until advanced."""

    def __init__(self, fixed_time: datetime | None = None):
        self._time = fixed_time or datetime(2024, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self._time

    def advance(self, seconds: int = 1) -> datetime:
        self._time = self._time + timedelta(seconds=seconds)
        return self._time
