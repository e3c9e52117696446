"""Sink base class for notification delivery targets."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from typing import ClassVar

from learnlite_notifications.core.event import OutboxEvent


class Sink(ABC):
    """Base class for delivery targets.

    A sink renders one outbox event somewhere (a console line, a file line,
    later an email or webhook). Sinks are stateless per call and must tolerate
    receiving the same event more than once: the worker redelivers a whole
    batch whenever any part of it fails.

    Subclasses set ``kind`` to the identifier reported in worker status.
    """

    kind: ClassVar[str] = "custom"

    def __init__(self, name: str | None = None) -> None:
        """Initialize the Sink.

        Args:
            name: Optional name for the sink. Defaults to the class name.
        """
        self.name = name or self.__class__.__name__

    @abstractmethod
    def deliver(self, event: OutboxEvent) -> None | Awaitable[None]:
        """Deliver one event.

        Args:
            event: The claimed outbox event.

        Returns:
            None, or an awaitable resolving to None.

        Raises:
            Exception: Any error marks the delivery failed and rolls back the batch.
        """
        ...
