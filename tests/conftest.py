"""Pytest configuration, Hypothesis profiles and shared fixtures."""

import logging
import os

import pytest
from hypothesis import settings

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.event import OutboxEvent
from learnlite_notifications.sinks.base import Sink
from learnlite_notifications.stores.memory import InMemoryEventStore
from learnlite_notifications.stores.sql import SqlEventStore

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=20)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Keep developer NOTIFICATIONS_* variables and .env files out of a test."""
    for key in list(os.environ):
        if key.startswith("NOTIFICATIONS_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class LogCapture(logging.Handler):
    """Custom handler to capture log records for testing."""

    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()

    def messages(self, level: int | None = None) -> list[str]:
        return [r.getMessage() for r in self.records if level is None or r.levelno == level]


@pytest.fixture
def capture_logger():
    """Attach a LogCapture handler to a named logger for the duration of a test.

    Package loggers do not propagate, so caplog never sees their records.
    """
    attached: list[tuple[logging.Logger, LogCapture, int]] = []

    def attach(name: str, level: int = logging.DEBUG) -> LogCapture:
        logger = logging.getLogger(name)
        handler = LogCapture()
        attached.append((logger, handler, logger.level))
        logger.addHandler(handler)
        logger.setLevel(level)
        return handler

    yield attach

    for logger, handler, level in attached:
        logger.removeHandler(handler)
        logger.setLevel(level)


class RecordingSink(Sink):
    """Sink that records delivered events and can fail on demand."""

    kind = "recording"

    def __init__(self, fail_on: set[int] | None = None, name: str | None = None):
        super().__init__(name=name)
        self.delivered: list[OutboxEvent] = []
        self.fail_on = set(fail_on or ())

    def deliver(self, event: OutboxEvent) -> None:
        if event.id in self.fail_on:
            raise RuntimeError(f"delivery failed for event {event.id}")
        self.delivered.append(event)

    @property
    def delivered_ids(self) -> list[int]:
        return [e.id for e in self.delivered]


@pytest.fixture
def enabled_settings() -> NotificationSettings:
    return NotificationSettings(enabled=True, poll_interval=0.05, batch_size=50)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
async def memory_store():
    store = InMemoryEventStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def sql_store(tmp_path):
    """SQLite-backed store in a per-test database file."""
    store = SqlEventStore(f"sqlite+aiosqlite:///{tmp_path / 'outbox.db'}")
    await store.initialize()
    yield store
    await store.close()
