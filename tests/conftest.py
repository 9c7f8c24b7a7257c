"""Shared fixtures: controllable clock, stores, session core and Flask client."""
from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from models.db_storage import DBStorage
from models.memory_storage import MemoryStorage
from utils.security import TokenCodec
from utils.sessions import RequestMeta, SessionManager
from utils.settings import AuthSettings

TEST_SECRET = "unit-test-secret-that-is-long-enough-for-hs256"
PASSWORD = "P@ssw0rd!"


class FakeClock:
    """Callable clock the tests move forward by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingMailer:
    def __init__(self):
        self.sent = []

    def send_verification(self, email, name, token):
        self.sent.append({"email": email, "name": name, "token": token})
        return True


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def settings():
    return AuthSettings(jwt_secret=TEST_SECRET)


@pytest.fixture
def codec(settings, clock):
    return TokenCodec(settings, clock=clock)


@pytest.fixture
def memory_storage():
    storage = MemoryStorage()
    storage.reload()
    return storage


@pytest.fixture
def sql_storage(tmp_path):
    storage = DBStorage(f"sqlite:///{tmp_path / 'auth.db'}")
    storage.reload()
    yield storage
    storage.close()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def sessions(memory_storage, codec, settings, clock, mailer):
    return SessionManager(memory_storage, codec, settings, clock=clock, mailer=mailer)


@pytest.fixture
def meta():
    return RequestMeta(ip="203.0.113.7", user_agent="pytest-agent/1.0")


@pytest.fixture
def app(clock, mailer):
    app = create_app("testing", storage=MemoryStorage(), clock=clock, mailer=mailer)
    yield app


@pytest.fixture
def client(app):
    return app.test_client()
