"""Shared fixtures for harmonyctl tests."""

import os
from collections.abc import Generator
from typing import Any

import pytest

from harmonyctl.core.cache import CacheStore
from harmonyctl.core.config import ConfigManager
from harmonyctl.core.notifications import NotificationLevel, Notifier
from harmonyctl.core.session import SessionStore
from harmonyctl.models.hub import Hub

# Run Qt headless so the suite works without a display server.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


class FakeClock:
    """Controllable epoch clock for session tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def config() -> Generator[ConfigManager, None, None]:
    """Return a fresh ConfigManager for each test."""
    # Unique organization/app to avoid touching real settings
    config = ConfigManager("HarmonyCTLTest", "TestConfig")
    config.clear()
    yield config
    config.clear()


@pytest.fixture
def clock() -> FakeClock:
    """Return a controllable clock."""
    return FakeClock()


@pytest.fixture
def notifier() -> Notifier:
    """Return a notification sink."""
    return Notifier()


@pytest.fixture
def notifications(notifier: Notifier) -> list[tuple[NotificationLevel, str, str]]:
    """Return the list of notifications emitted during the test."""
    received: list[tuple[NotificationLevel, str, str]] = []
    notifier.notification.connect(lambda level, title, msg: received.append((level, title, msg)))
    return received


@pytest.fixture
def sessions(config: ConfigManager, notifier: Notifier, clock: FakeClock) -> SessionStore:
    """Return a session store backed by the test config."""
    return SessionStore(config, notifier, clock=clock)


@pytest.fixture
def cache(config: ConfigManager) -> CacheStore:
    """Return a cache store backed by the test config."""
    return CacheStore(config)


@pytest.fixture
def hub() -> Hub:
    """Return a sample hub."""
    return Hub(
        id="hub-uuid-1",
        friendly_name="Living Room",
        ip="192.168.1.50",
        remote_id="12345678",
    )


@pytest.fixture
def raw_config() -> dict[str, Any]:
    """Return a hub configuration shaped like the engine?config response."""
    return {
        "activity": [
            {"id": "-1", "label": "PowerOff"},
            {"id": "100", "label": "Watch TV"},
            {"id": "200", "label": "Listen to Music"},
        ],
        "device": [
            {
                "id": "53161234",
                "label": "Samsung TV",
                "type": "Television",
                "controlGroup": [
                    {
                        "name": "Power",
                        "function": [
                            {"name": "PowerOn", "label": "Power On"},
                            {"name": "PowerOff", "label": "Power Off"},
                        ],
                    },
                    {
                        "name": "Volume",
                        "function": [
                            {"name": "VolumeUp", "label": "Volume Up"},
                            {"name": "VolumeDown"},
                        ],
                    },
                ],
            },
        ],
    }
