from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


# Wall clock used in production; always timezone-aware UTC
class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


# Deterministic clock for tests
class FixedClock:
    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, delta):
        self.moment = self.moment + delta
        return self.moment


# FastAPI dependency; overridden in tests
def get_clock() -> Clock:
    return SystemClock()
