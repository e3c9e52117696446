"""Console sink: one readable line per event on stderr."""

import json
import sys
from datetime import UTC, datetime
from typing import TextIO

from learnlite_notifications.core.event import OutboxEvent
from learnlite_notifications.sinks.base import Sink


class ConsoleSink(Sink):
    """Writes ``[<delivered_at>] <topic> #<id>: <payload>`` to a text stream."""

    kind = "console"

    def __init__(self, stream: TextIO | None = None, name: str | None = None) -> None:
        """Initialize the console sink.

        Args:
            stream: Target stream. Defaults to the current ``sys.stderr``,
                resolved at delivery time so redirection keeps working.
            name: Optional sink name.
        """
        super().__init__(name)
        self._stream = stream

    def format_line(self, event: OutboxEvent) -> str:
        timestamp = datetime.now(UTC).isoformat()
        payload = json.dumps(event.payload, default=str, sort_keys=True)
        return f"[{timestamp}] {event.topic} #{event.id}: {payload}"

    def deliver(self, event: OutboxEvent) -> None:
        stream = self._stream or sys.stderr
        stream.write(self.format_line(event) + "\n")
        stream.flush()
