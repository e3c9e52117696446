"""Event store implementations for the outbox."""

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.errors import StoreError
from learnlite_notifications.stores.base import EventStore, StoreTransaction
from learnlite_notifications.stores.memory import InMemoryEventStore
from learnlite_notifications.stores.redis import RedisEventStore
from learnlite_notifications.stores.sql import SqlEventStore


def build_store(settings: NotificationSettings) -> EventStore:
    """Create the store named by ``NOTIFICATIONS_STORE_URL``.

    ``memory://`` selects the in-memory store, ``redis://``/``rediss://`` the
    Redis store; any other URL is handed to SQLAlchemy.

    Raises:
        StoreError: If the URL has no scheme.
    """
    url = settings.store_url.strip()
    if "://" not in url:
        raise StoreError(f"Store URL must include a scheme, got: {url!r}")

    scheme = url.split("://", 1)[0].lower()
    if scheme == "memory":
        return InMemoryEventStore()
    if scheme in ("redis", "rediss"):
        return RedisEventStore(redis_url=url)
    return SqlEventStore(url)


__all__ = [
    "EventStore",
    "StoreTransaction",
    "InMemoryEventStore",
    "RedisEventStore",
    "SqlEventStore",
    "build_store",
]
