"""Outbox publisher used by business operations.

Publishing is best-effort: a failed publish is logged and reported as ``None``,
never raised, so a notification problem can not abort the enrollment or
certificate write that triggered it.
"""

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.event import MAX_TOPIC_LENGTH, serialize_payload
from learnlite_notifications.core.logging import get_logger

if TYPE_CHECKING:
    from learnlite_notifications.stores.base import EventStore

logger = get_logger("learnlite_notifications.publisher")


def is_delivery_enabled(settings: NotificationSettings | None = None) -> bool:
    """Return the ``NOTIFICATIONS_ENABLED`` flag.

    Callers check this before publishing at all. When no settings are passed
    they are read from the environment.
    """
    if settings is None:
        settings = NotificationSettings()
    return settings.enabled


class Publisher:
    """Appends domain events to the outbox."""

    def __init__(self, store: "EventStore", settings: NotificationSettings | None = None) -> None:
        self.store = store
        self.settings = settings or NotificationSettings()

    def is_delivery_enabled(self) -> bool:
        return is_delivery_enabled(self.settings)

    async def publish(
        self,
        topic: str,
        payload: Mapping[str, Any],
        *,
        session: Any = None,
    ) -> int | None:
        """Record one event for asynchronous delivery.

        Args:
            topic: Dotted event kind, e.g. ``"enrollment.created"``.
            payload: JSON-like mapping. Values JSON can not represent are nulled.
            session: Optional caller-owned SQLAlchemy ``AsyncSession`` (SQL
                store only). The row then commits or rolls back with the
                caller's own transaction.

        Returns:
            The store-assigned event id, or None if the event was not recorded.
        """
        if not isinstance(topic, str) or not topic.strip():
            logger.warning("Refusing to publish event with empty topic", extra={"topic": topic})
            return None
        topic = topic.strip()
        if len(topic) > MAX_TOPIC_LENGTH:
            logger.warning(
                f"Refusing to publish event with topic longer than {MAX_TOPIC_LENGTH} characters",
                extra={"topic": topic[:MAX_TOPIC_LENGTH]},
            )
            return None

        if session is not None and not getattr(self.store, "supports_caller_session", False):
            logger.warning(
                f"{type(self.store).__name__} can not publish inside a caller session, "
                f"event {topic} not recorded",
                extra={"topic": topic},
            )
            return None

        try:
            serialized = serialize_payload(payload)
        except (TypeError, ValueError) as e:
            logger.warning(
                f"Failed to serialize payload for {topic}: {e}",
                extra={"topic": topic, "error": str(e)},
            )
            return None

        try:
            if session is not None:
                event_id = await self.store.append(topic, serialized, session=session)
            else:
                event_id = await self.store.append(topic, serialized)
        except Exception as e:
            logger.error(
                f"Failed to publish event to outbox: {topic}",
                extra={"topic": topic, "error": str(e)},
                exc_info=True,
            )
            return None

        logger.debug(f"Published {topic}", extra={"topic": topic, "event_id": event_id})
        return event_id
