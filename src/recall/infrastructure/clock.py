"""System wall clock bound to the user's calendar time zone."""

from datetime import datetime, tzinfo
from zoneinfo import ZoneInfo

from recall.domain.ports import Clock


class SystemClock(Clock):
    def __init__(self, timezone: str | None = None):
        """
        Args:
            timezone: IANA zone name; None uses the system local zone.
        """
        self._tz: tzinfo = ZoneInfo(timezone) if timezone else datetime.now().astimezone().tzinfo

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return datetime.now(self._tz)
