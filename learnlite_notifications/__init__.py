"""learnlite-notifications - transactional outbox and async notification delivery."""

__version__ = "0.1.0"

from learnlite_notifications.core import (  # noqa: E402
    DeliveryTimeoutError,
    HealthResponse,
    NotificationError,
    NotificationSettings,
    NotificationWorker,
    OutboxEvent,
    Publisher,
    SinkDeliveryError,
    SinkKind,
    StatusReporter,
    StoreError,
    WorkerState,
    WorkerStats,
    WorkerStatus,
    is_delivery_enabled,
)
from learnlite_notifications.sinks import ConsoleSink, FileSink, Sink, build_sink  # noqa: E402
from learnlite_notifications.stores import (  # noqa: E402
    EventStore,
    InMemoryEventStore,
    RedisEventStore,
    SqlEventStore,
    build_store,
)

__all__ = [
    # Core
    "OutboxEvent",
    "Publisher",
    "is_delivery_enabled",
    "NotificationWorker",
    "WorkerState",
    "WorkerStats",
    "WorkerStatus",
    "StatusReporter",
    "HealthResponse",
    # Configuration
    "NotificationSettings",
    "SinkKind",
    # Errors
    "NotificationError",
    "SinkDeliveryError",
    "DeliveryTimeoutError",
    "StoreError",
    # Sinks
    "Sink",
    "ConsoleSink",
    "FileSink",
    "build_sink",
    # Stores
    "EventStore",
    "InMemoryEventStore",
    "RedisEventStore",
    "SqlEventStore",
    "build_store",
    # Meta
    "__version__",
]
