"""Event store protocol for the transactional outbox.

ALL persistence lives in stores, not in the worker. The worker only ever sees
events through a store transaction: claim a batch, then mark it processed.
"""

from collections.abc import Sequence
from contextlib import AbstractAsyncContextManager
from typing import Protocol

from learnlite_notifications.core.event import OutboxEvent


class StoreTransaction(Protocol):
    """One unit of work against the store.

    Obtained from ``EventStore.transaction()``. Leaving the context normally
    commits; leaving it with an exception rolls back, so nothing marked inside
    a failed transaction is persisted.
    """

    async def claim(self, limit: int) -> list[OutboxEvent]:
        """Select up to ``limit`` unprocessed events in ascending id order.

        Args:
            limit: Maximum number of events to return.
        """
        ...

    async def mark_processed(self, event_ids: Sequence[int]) -> None:
        """Mark the given events processed, effective on commit.

        Args:
            event_ids: Ids previously returned by ``claim``.
        """
        ...


class EventStore(Protocol):
    """Protocol defining the interface for durable outbox stores.

    Stores are responsible for:
    - Appending events with a store-assigned, increasing id (append)
    - Claiming and marking batches atomically (transaction)
    - Answering diagnostic queries (count_pending, get)

    ``supports_caller_session`` is True only for stores whose ``append``
    accepts a caller-owned ``session`` keyword.
    """

    supports_caller_session: bool

    async def initialize(self) -> None:
        """Create tables/keys needed by the store. Safe to call repeatedly."""
        ...

    async def append(self, topic: str, payload: str) -> int:
        """Durably insert one unprocessed event.

        Args:
            topic: Event topic.
            payload: Serialized JSON payload, stored verbatim.

        Returns:
            The store-assigned event id.
        """
        ...

    def transaction(self) -> AbstractAsyncContextManager[StoreTransaction]:
        """Open a claim/mark transaction."""
        ...

    async def count_pending(self) -> int:
        """Best-effort count of unprocessed events."""
        ...

    async def get(self, event_id: int) -> OutboxEvent | None:
        """Fetch one event by id, or None if it does not exist."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...
