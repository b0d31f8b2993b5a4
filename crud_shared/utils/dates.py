"""
Time-zone aware day boundaries for epoch-millisecond timestamps.

Date columns store epoch milliseconds; filters that are not exact compare
against the start and end of the calendar day in the deployment's zone.
"""

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from crud_shared.config.settings import settings

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_epoch_millis(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return (moment - _EPOCH) // _ONE_MS


class DayBoundaryClock:
    """
    Computes start-of-day / end-of-day for epoch millis in one time zone.

    Usage:
        clock = DayBoundaryClock("America/Argentina/Buenos_Aires")
        clock.start_of_day(1700000000000)
    """

    def __init__(self, tz: str | ZoneInfo = "UTC"):
        self._tz = tz if isinstance(tz, ZoneInfo) else ZoneInfo(tz)

    @property
    def tz(self) -> ZoneInfo:
        return self._tz

    def to_datetime(self, epoch_millis: int) -> datetime:
        return (_EPOCH + timedelta(milliseconds=epoch_millis)).astimezone(self._tz)

    def start_of_day(self, epoch_millis: int) -> int:
        """First millisecond of the local day containing ``epoch_millis``."""
        local_day = self.to_datetime(epoch_millis).date()
        start = datetime.combine(local_day, time.min, tzinfo=self._tz)
        return to_epoch_millis(start)

    def end_of_day(self, epoch_millis: int) -> int:
        """Last millisecond of the local day containing ``epoch_millis``."""
        local_day = self.to_datetime(epoch_millis).date()
        next_start = datetime.combine(local_day + timedelta(days=1), time.min, tzinfo=self._tz)
        return to_epoch_millis(next_start) - 1

    def format(self, epoch_millis: int, fmt: str) -> str:
        return self.to_datetime(epoch_millis).strftime(fmt)


def get_clock() -> DayBoundaryClock:
    """Clock for the configured deployment time zone."""
    return DayBoundaryClock(settings.timezone)
