"""
Pytest Configuration for Proctor Service Tests
"""
import os
import sys
import pytest
from datetime import datetime, timedelta, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


T0 = datetime(2025, 1, 6, 9, 0, 0, tzinfo=timezone.utc)


def at(ms: int) -> datetime:
    """Session-relative time: T0 + ms milliseconds"""
    return T0 + timedelta(milliseconds=ms)


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> datetime:
        self.now = self.now + timedelta(milliseconds=ms)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    """Default settings, ignoring any local .env"""
    from proctor_service.config import Settings
    return Settings(_env_file=None)


@pytest.fixture
def make_session(test_settings, clock):
    """Factory for started sessions with a fake clock"""
    from proctor_service.proctor.session import ProctorSession

    def _make(session_id: str = "EXM_TEST", store=None, **overrides):
        config = test_settings.model_copy(update=overrides) if overrides else test_settings
        session = ProctorSession(session_id=session_id, config=config, store=store, clock=clock)
        session.start()
        return session

    return _make


@pytest.fixture
def session(make_session):
    return make_session()


@pytest.fixture
def client():
    """FastAPI test client"""
    from fastapi.testclient import TestClient
    from proctor_service.main import app

    with TestClient(app) as test_client:
        yield test_client
