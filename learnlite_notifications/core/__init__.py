"""Core components of the notifications outbox.

Types:
    OutboxEvent: Immutable, validated outbox record.
    Publisher: Best-effort appender used by business operations.
    NotificationWorker: Poll-cycle delivery worker.
    WorkerState / WorkerStats / WorkerStatus: Worker lifecycle, counters, health snapshot.
    StatusReporter / HealthResponse: Health-check view over a worker.
    NotificationSettings / SinkKind: Environment-driven configuration.

Errors:
    NotificationError: Base class.
    SinkDeliveryError: A sink could not deliver an event.
    DeliveryTimeoutError: An async sink exceeded the delivery timeout.
    StoreError: Store misconfiguration.
"""

from learnlite_notifications.core.config import NotificationSettings, SinkKind
from learnlite_notifications.core.errors import (
    DeliveryTimeoutError,
    NotificationError,
    SinkDeliveryError,
    StoreError,
)
from learnlite_notifications.core.event import OutboxEvent, serialize_payload
from learnlite_notifications.core.publisher import Publisher, is_delivery_enabled
from learnlite_notifications.core.status import HealthResponse, StatusReporter
from learnlite_notifications.core.worker import (
    NotificationWorker,
    WorkerState,
    WorkerStats,
    WorkerStatus,
)

__all__ = [
    "OutboxEvent",
    "serialize_payload",
    "Publisher",
    "is_delivery_enabled",
    "NotificationWorker",
    "WorkerState",
    "WorkerStats",
    "WorkerStatus",
    "StatusReporter",
    "HealthResponse",
    "NotificationSettings",
    "SinkKind",
    "NotificationError",
    "SinkDeliveryError",
    "DeliveryTimeoutError",
    "StoreError",
]
