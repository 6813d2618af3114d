import pytest

import backend.main as main
from tutor.config import Settings
from tutor.session import TutorSession


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def no_network(monkeypatch):
    """Prevent accidental network calls in unit tests by stubbing socket.create_connection."""

    import socket

    def fake_create_connection(*a, **k):
        raise RuntimeError("Network calls disabled in tests")

    monkeypatch.setattr(socket, "create_connection", fake_create_connection)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def offline_settings():
    return Settings(api_key=None)


@pytest.fixture(autouse=True)
def fresh_session(monkeypatch):
    """Give every test its own backend session that answers locally without waiting."""

    session = TutorSession.from_settings(Settings(api_key=None), sleep=SleepRecorder())
    monkeypatch.setattr(main, "session", session)
    yield session
