from datetime import date, datetime, timedelta, timezone, tzinfo

import pytest

from recall.application.config import EngineConfig
from recall.application.engine import StudyEngine
from recall.domain.ports import Clock
from recall.infrastructure.adapters import InMemoryRepository

START = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class ManualClock(Clock):
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime = START, tz: tzinfo = timezone.utc):
        self._now = start
        self._tz = tz

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs) -> datetime:
        self._now += timedelta(**kwargs)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    def set_day(self, day: date, hour: int = 9) -> datetime:
        self._now = datetime(day.year, day.month, day.day, hour, tzinfo=self._tz)
        return self._now


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def config(tmp_path):
    return EngineConfig(data_dir=tmp_path / "data", backend="memory", timezone="UTC")


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def engine(repository, clock, config):
    """Engine over an in-memory repository with the default packs in place (not opened)."""
    eng = StudyEngine(repository, clock, config)
    eng.store.ensure_default_packs()
    return eng


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    return home
