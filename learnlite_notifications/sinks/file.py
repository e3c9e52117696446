"""Append-only JSONL file sink."""

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path

from learnlite_notifications.core.errors import SinkDeliveryError
from learnlite_notifications.core.event import OutboxEvent
from learnlite_notifications.sinks.base import Sink


class FileSink(Sink):
    """Appends one JSON record per event to a log file.

    Each line has the shape::

        {"timestamp": ..., "id": ..., "topic": ..., "payload": {...}, "created_at": ...}

    The parent directory is created when missing. Any filesystem error is
    raised as SinkDeliveryError so the worker rolls back the whole batch.
    File I/O runs in a thread to keep the event loop responsive.
    """

    kind = "file"

    def __init__(self, path: str | Path, name: str | None = None) -> None:
        super().__init__(name)
        self.path = Path(path)

    def format_record(self, event: OutboxEvent) -> str:
        record = {
            "timestamp": datetime.now(UTC).isoformat(),
            "id": event.id,
            "topic": event.topic,
            "payload": event.payload,
            "created_at": event.created_at.isoformat(),
        }
        return json.dumps(record, default=str)

    def _append(self, line: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")

    async def deliver(self, event: OutboxEvent) -> None:
        line = self.format_record(event)
        try:
            await asyncio.to_thread(self._append, line)
        except OSError as e:
            raise SinkDeliveryError(
                f"Failed to append event {event.id} to {self.path}",
                event_id=event.id,
                original=e,
            ) from e
