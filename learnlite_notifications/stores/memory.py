"""In-memory event store with transactional claim/mark semantics."""

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from learnlite_notifications.core.event import OutboxEvent, deserialize_payload


class InMemoryTransaction:
    """Stages mark_processed calls until the owning context commits."""

    def __init__(self, store: "InMemoryEventStore") -> None:
        self._store = store
        self._staged: list[int] = []

    async def claim(self, limit: int) -> list[OutboxEvent]:
        return self._store._pending(limit)

    async def mark_processed(self, event_ids: Sequence[int]) -> None:
        self._staged.extend(event_ids)


class InMemoryEventStore:
    """Outbox store kept in process memory.

    This store is suitable for development and testing. It provides
    no durability guarantees: events are lost if the process terminates.
    Transactions are serialized with a lock; appends never wait on them.
    """

    supports_caller_session = False

    def __init__(self) -> None:
        self._rows: dict[int, dict] = {}
        self._next_id = 1
        self._tx_lock = asyncio.Lock()
        self.commits = 0
        self.rollbacks = 0

    async def initialize(self) -> None:
        pass

    async def append(self, topic: str, payload: str) -> int:
        """Store an event and return its id.

        Args:
            topic: Event topic.
            payload: Serialized JSON payload.
        """
        event_id = self._next_id
        self._next_id += 1
        self._rows[event_id] = {
            "id": event_id,
            "topic": topic,
            "payload": payload,
            "created_at": datetime.now(UTC),
            "processed": False,
            "processed_at": None,
        }
        return event_id

    def _to_event(self, row: dict) -> OutboxEvent:
        return OutboxEvent(**{**row, "payload": deserialize_payload(row["payload"])})

    def _pending(self, limit: int) -> list[OutboxEvent]:
        pending = sorted(i for i, row in self._rows.items() if not row["processed"])
        return [self._to_event(self._rows[i]) for i in pending[:limit]]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryTransaction]:
        """Claim/mark unit of work; staged marks apply only on clean exit."""
        async with self._tx_lock:
            tx = InMemoryTransaction(self)
            try:
                yield tx
            except BaseException:
                self.rollbacks += 1
                raise
            now = datetime.now(UTC)
            for event_id in tx._staged:
                row = self._rows.get(event_id)
                if row is not None and not row["processed"]:
                    row["processed"] = True
                    row["processed_at"] = now
            self.commits += 1

    async def count_pending(self) -> int:
        return sum(1 for row in self._rows.values() if not row["processed"])

    async def get(self, event_id: int) -> OutboxEvent | None:
        row = self._rows.get(event_id)
        return self._to_event(row) if row is not None else None

    async def close(self) -> None:
        """Close is a no-op; events stay readable for inspection."""
        pass

    def __len__(self) -> int:
        return len(self._rows)
