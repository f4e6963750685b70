import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from gombesafe.core.config import Settings
from gombesafe.main import create_app
from gombesafe.services.store.incident_store import IncidentStore

START = datetime(2025, 3, 1, 12, 30, tzinfo=timezone.utc)


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def sequential_ids(prefix: str = "inc"):
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter):04d}"


def make_report(**overrides):
    report = {
        "type": "theft",
        "location": "Pantami Market",
        "latitude": 10.27,
        "longitude": 11.17,
        "severity": "medium",
    }
    report.update(overrides)
    return report


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return Settings(seed_demo_data=False, event_log_url=None, stats_cache_enabled=False)


@pytest.fixture
def store(settings, clock):
    return IncidentStore(settings, clock=clock, id_factory=sequential_ids())


@pytest.fixture
def client(settings):
    """A fresh app with an empty, real-time store per test."""
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
