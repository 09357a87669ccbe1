import os
import random
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before anything from the package is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SIMULATED_TEST_DELAY"] = "0"
os.environ["SIMULATED_SUITE_DELAY_SCALE"] = "0"

from service_nexus.main import app, get_rng, get_store
from service_nexus.app import schemas
from service_nexus.app.storage import MemoryKeyValueStore


class FakeClock:
    """Deterministic clock that advances one second per call."""

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self.current = start or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + self.step
        return value


class FrozenClock:
    """Clock that never moves."""

    def __init__(self, moment: datetime | None = None):
        self.moment = moment or datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.moment


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def postgres_draft():
    return schemas.ServiceCreate(
        name="Main database",
        type="PostgreSQL",
        url="db.internal",
        database="app",
        username="app_user",
        password="s3cret",
        port=5432,
        ssl_mode="require",
    )


@pytest.fixture
def rest_draft():
    return schemas.ServiceCreate(
        name="Orders API",
        type="REST API",
        url="https://api.example.com/rest/v1",
        api_key="anon-key",
        status="Active",
    )


@pytest.fixture
def client(store):
    """TestClient backed by an in-memory store and a seeded random source."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_rng] = lambda: random.Random(1234)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def frozen_clock():
    return FrozenClock()
