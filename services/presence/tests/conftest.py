from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from presence.config import AppConfig, LimitsConfig
from presence.main import create_app
from presence.service import PresenceService


class FakeChannel:
    """Stands in for a PushChannel: records queued events."""

    def __init__(self, nick: str) -> None:
        self.nick = nick
        self.is_open = True
        self.sent: list[Any] = []

    def enqueue(self, event) -> None:
        if self.is_open:
            self.sent.append(event)

    def close(self) -> None:
        self.is_open = False

    def topics(self) -> list[str]:
        return [e.topic for e in self.sent]

    def last(self):
        return self.sent[-1]


@pytest.fixture
def service() -> PresenceService:
    return PresenceService()


@pytest.fixture
def connect(service: PresenceService):
    """Sign a nick in and attach a fake push channel to it.

    Roster traffic caused by the setup itself is cleared from every channel
    connected so far.
    """
    connected: list[FakeChannel] = []

    def _connect(nick: str) -> FakeChannel:
        resolved, _ = service.sign_in(nick)
        channel = FakeChannel(resolved)
        assert service.connect(channel)
        connected.append(channel)
        for ch in connected:
            ch.sent.clear()
        return channel

    return _connect


@pytest.fixture
def client():
    app = create_app(AppConfig(limits=LimitsConfig(enabled=False)))
    with TestClient(app) as c:
        yield c
