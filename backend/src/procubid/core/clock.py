"""Civil-time clock shared by liveness, bidding and scheduling."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo


class Clock:
    """Resolves "now" in a fixed civil timezone.

    Every scheduling computation goes through one instance of this class so
    that the timezone is configured in one place and can be swapped for a
    FixedClock in tests.
    """

    def __init__(self, timezone_name: str):
        self.timezone_name = timezone_name
        self.tz = ZoneInfo(timezone_name)

    def now(self) -> datetime:
        """Current instant as an aware datetime in the civil timezone."""
        return datetime.now(self.tz)

    def localize(self, day: date, wall_time: time) -> datetime:
        """Combine a calendar date and a wall-clock time in the civil timezone."""
        return datetime.combine(day, wall_time, tzinfo=self.tz)

    def format(self, instant: datetime) -> str:
        return instant.astimezone(self.tz).strftime("%Y-%m-%d %H:%M:%S")


class FixedClock(Clock):
    """Clock frozen at a settable instant."""

    def __init__(self, instant: datetime, timezone_name: str = "Asia/Colombo"):
        super().__init__(timezone_name)
        self.set(instant)

    def set(self, instant: datetime) -> None:
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=self.tz)
        self._instant = instant.astimezone(self.tz)

    def advance(self, **kwargs) -> datetime:
        self._instant = self._instant + timedelta(**kwargs)
        return self._instant

    def now(self) -> datetime:
        return self._instant
