from datetime import datetime, timedelta, timezone

import pytest

from walkin_queue.clock import Clock


class ManualTime:
    """Settable UTC time source for Clock."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeChannel:
    def __init__(self, *, is_open: bool = True, fail: bool = False) -> None:
        self.sent: list[str] = []
        self.open = is_open
        self.fail = fail

    @property
    def is_open(self) -> bool:
        return self.open

    def send(self, text: str) -> None:
        if self.fail:
            raise ConnectionError("gone")
        self.sent.append(text)


@pytest.fixture
def manual_time():
    # 15:00 UTC is noon in Buenos Aires (UTC-3).
    return ManualTime(datetime(2026, 10, 19, 15, 0, tzinfo=timezone.utc))


@pytest.fixture
def clock(manual_time):
    return Clock(now=manual_time)


@pytest.fixture
def make_channel():
    return FakeChannel
