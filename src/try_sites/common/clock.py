"""Clock abstraction so handlers never read the wall clock directly."""

import os
from datetime import datetime, timezone


class Clock:
    """Current UTC time and the server's time zone identifier."""

    def __init__(self, time_zone: str = ""):
        self._time_zone = time_zone

    @property
    def utc_now(self) -> datetime:
        return datetime.now(timezone.utc)

    def get_system_time_zone_id(self) -> str:
        return self._time_zone or os.environ.get("TZ") or "UTC"


class FrozenClock(Clock):
    """Clock pinned to a fixed instant, movable by tests and scripts."""

    def __init__(self, now: datetime, time_zone: str = "UTC"):
        super().__init__(time_zone)
        self._now = now

    @property
    def utc_now(self) -> datetime:
        return self._now

    def advance(self, delta) -> None:
        self._now = self._now + delta
