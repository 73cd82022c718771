from datetime import datetime, timedelta, timezone

import pytest

from priority_crm.crud import ContactStore
from priority_crm.database import open_persistence


class SteppingClock:
    """호출할 때마다 1분씩 증가하는 테스트용 시계."""

    def __init__(self, start=None, step=timedelta(minutes=1)):
        self.now = start or datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


class ManualTimer:
    def __init__(self, service, interval, callback):
        self.service = service
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTimerService:
    """테스트가 직접 틱을 발생시키는 타이머 서비스."""

    def __init__(self):
        self.timers = []

    def start(self, interval, callback):
        timer = ManualTimer(self, interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self):
        return [timer for timer in self.timers if not timer.cancelled]

    def fire(self, times=1):
        for _ in range(times):
            for timer in self.active:
                timer.callback()


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'contacts.db'}"


@pytest.fixture
def persistence(database_url):
    return open_persistence(database_url)


@pytest.fixture
def clock():
    return SteppingClock()


@pytest.fixture
def store(persistence, clock):
    return ContactStore.open(persistence, clock=clock)


@pytest.fixture
def timers():
    return ManualTimerService()
