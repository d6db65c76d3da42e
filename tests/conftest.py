import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from profileapi.config import Settings  # noqa: E402
from profileapi.database.connection import create_db_engine  # noqa: E402
from profileapi.main import create_app  # noqa: E402
from profileapi.repositories.memory_adapter import MemoryStorageAdapter  # noqa: E402
from profileapi.repositories.sql_adapter import SqlStorageAdapter  # noqa: E402


class FakeClock:
    """Controllable replacement for utc_now"""

    def __init__(self, start: datetime = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


def make_settings(**overrides) -> Settings:
    values = {
        "STORAGE_BACKEND": "memory",
        "DATABASE_URL": "sqlite://",
        "CORS_ORIGINS": "*.example.com,http://localhost:*",
        "COOKIE_DOMAIN": ".example.com",
        "ADMIN_TOKEN": "",
        "TIMEZONE": "UTC",
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def memory_storage(clock):
    return MemoryStorageAdapter(clock=clock)


@pytest.fixture
def sql_storage(clock):
    engine = create_db_engine(make_settings(STORAGE_BACKEND="sql"))
    adapter = SqlStorageAdapter(engine, clock=clock)
    adapter.create_schema()
    yield adapter
    engine.dispose()


@pytest.fixture(params=["memory", "sql"])
def storage(request):
    """Every storage backend, one test run each"""
    return request.getfixturevalue(f"{request.param}_storage")


@pytest.fixture
def app(settings, clock):
    return create_app(settings=settings, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def anon_headers():
    return {"X-Anon-Id": "anon-test-1"}
