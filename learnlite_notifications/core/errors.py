"""Exceptions raised inside the notifications subsystem."""


class NotificationError(Exception):
    """Base class for notification subsystem errors."""


class SinkDeliveryError(NotificationError):
    """Raised when a sink cannot deliver an event.

    Attributes:
        event_id: Id of the outbox event that failed.
        original: The underlying exception, if any.
    """

    def __init__(self, message: str, event_id: int | None = None, original: Exception | None = None):
        self.event_id = event_id
        self.original = original
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.original is not None:
            return f"{base} ({type(self.original).__name__}: {self.original})"
        return base


class DeliveryTimeoutError(SinkDeliveryError):
    """Raised when an async sink exceeds the delivery timeout."""


class StoreError(NotificationError):
    """Raised for event store misconfiguration (e.g. unsupported URL)."""
