from __future__ import annotations

# Civil calendar helpers.
#
# Daily statistics roll over at midnight of a fixed region, not at midnight of
# whatever zone the server host happens to run in.

from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Clock:
    """Wall clock bound to one civil timezone.

    `now` is injectable so tests can move time across a day boundary.
    """

    def __init__(self, tz_name: str = DEFAULT_TIMEZONE, now: Callable[[], datetime] | None = None) -> None:
        self.tz_name = tz_name
        self._tz = ZoneInfo(tz_name)
        self._now = now or _utcnow

    def now(self) -> datetime:
        """Current time as an aware UTC datetime."""
        return self._now().astimezone(timezone.utc)

    def today(self) -> str:
        """Current civil date in the configured zone, as YYYY-MM-DD."""
        return self._now().astimezone(self._tz).date().isoformat()

    def timestamp_ms(self) -> int:
        return int(self.now().timestamp() * 1000)

    def iso_now(self) -> str:
        """UTC timestamp with millisecond precision and a `Z` suffix."""
        return format_iso(self.now())


def format_iso(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
