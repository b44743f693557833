# tests/conftest.py
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from account_service.app import build_service, create_app
from account_service.config import Settings
from account_service.database import Database
from account_service.notifications import DispatchResult, NotificationDispatcher


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingDispatcher(NotificationDispatcher):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, channel, destination, code):
        self.sent.append((channel, destination, code))
        if self.fail:
            return DispatchResult(ok=False, error="transport down")
        return DispatchResult(ok=True)

    @property
    def last_code(self):
        return self.sent[-1][2]


@pytest.fixture
def settings():
    return Settings(
        auth_secret_key="test-secret",
        database_url="sqlite+pysqlite:///:memory:",
        app_env="test",
        bcrypt_rounds=4,
    )


@pytest.fixture
def database(settings):
    db = Database(settings.database_url).connect()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def service(settings, database, dispatcher, clock):
    svc = build_service(settings, database, dispatcher)
    svc.codes.clock = clock
    return svc


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def client(settings, database, service):
    app = create_app(settings=settings, database=database, service=service)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def alice(service):
    account, _ = service.register("Alice_01", "secret123", email="alice@example.com", phone="13812345678")
    return account
