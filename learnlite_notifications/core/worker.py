"""Notification delivery worker.

The worker is the only reader of the outbox. Every poll cycle:
- Opens one store transaction
- Claims up to ``batch_size`` unprocessed events in ascending id order
- Hands each event to the sink, in order
- Marks the whole batch processed and commits

Any error inside the cycle rolls the transaction back, so either every event
in the batch becomes processed or none does. The batch is simply claimed again
on the next tick, which makes delivery at-least-once.

IMPORTANT: The worker holds no queue of its own. Pending work lives only in
the store.
"""

import asyncio
import inspect
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.errors import DeliveryTimeoutError
from learnlite_notifications.core.event import OutboxEvent
from learnlite_notifications.core.logging import configure_worker_logger
from learnlite_notifications.sinks.base import Sink

if TYPE_CHECKING:
    from learnlite_notifications.stores.base import EventStore


class WorkerState(Enum):
    """Lifecycle state of a worker."""

    STOPPED = "stopped"
    RUNNING = "running"


@dataclass
class WorkerStats:
    """Counters accumulated across poll cycles."""

    cycles_run: int = 0
    cycles_failed: int = 0
    events_delivered: int = 0
    consecutive_failures: int = 0
    last_error: str | None = None


class WorkerStatus(BaseModel):
    """Operational snapshot exposed to health checks.

    Serializes with camelCase keys (``lastRunAt``, ``pendingEstimate``).
    ``interval`` is in seconds.
    """

    enabled: bool
    interval: float
    last_run_at: datetime | None = None
    pending_estimate: int = 0
    sink: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class NotificationWorker:
    """Periodic claim, deliver and commit loop over one event store."""

    def __init__(
        self,
        store: "EventStore",
        sink: Sink,
        settings: NotificationSettings | None = None,
        *,
        interval: float | None = None,
        batch_size: int | None = None,
        delivery_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.sink = sink
        self.settings = settings or NotificationSettings()
        self.interval = interval if interval is not None else self.settings.poll_interval
        self.batch_size = batch_size if batch_size is not None else self.settings.batch_size
        self.delivery_timeout = (
            delivery_timeout if delivery_timeout is not None else self.settings.delivery_timeout
        )
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {self.batch_size}")

        self._log = configure_worker_logger()
        self._state = WorkerState.STOPPED
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._cycle_lock = asyncio.Lock()
        self._cycle_count = 0
        self._last_run_at: datetime | None = None
        self._pending_estimate = 0
        self._stats = WorkerStats()

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is WorkerState.RUNNING

    async def start(self) -> None:
        """Begin polling. Runs a cycle immediately, then every ``interval`` seconds."""
        if self._state is WorkerState.RUNNING:
            self._log.warning("Notifications worker already running", extra={"sink": self.sink.kind})
            return

        self._stop_event = asyncio.Event()
        self._state = WorkerState.RUNNING
        self._task = asyncio.create_task(self._run(), name="notifications-worker")
        self._log.info(
            f"Notifications worker started: sink={self.sink.kind}, interval={self.interval}s",
            extra={
                "sink": self.sink.kind,
                "interval": self.interval,
                "batch_size": self.batch_size,
            },
        )

    async def stop(self) -> None:
        """Stop polling, waiting for an in-flight cycle to finish first."""
        if self._state is WorkerState.STOPPED:
            return

        self._stop_event.set()
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
        self._task = None
        self._state = WorkerState.STOPPED
        self._log.info("Notifications worker stopped", extra={"sink": self.sink.kind})

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            await self.run_cycle()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except TimeoutError:
                pass

    async def run_cycle(self) -> int:
        """Run one poll cycle.

        Never raises for store or sink errors: those roll the batch back and
        are logged. Cycles never overlap.

        Returns:
            Number of events marked processed (0 for an empty batch or rollback).
        """
        async with self._cycle_lock:
            self._cycle_count += 1
            cycle = self._cycle_count
            processed = 0
            try:
                processed = await self._claim_and_deliver(cycle)
            except Exception as e:
                self._stats.cycles_failed += 1
                self._stats.consecutive_failures += 1
                self._stats.last_error = str(e)
                self._log.error(
                    f"Poll cycle {cycle} failed, batch rolled back: {e}",
                    extra={
                        "cycle": cycle,
                        "batch_size": self.batch_size,
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "consecutive_failures": self._stats.consecutive_failures,
                    },
                    exc_info=True,
                )
            else:
                self._stats.consecutive_failures = 0
                self._stats.events_delivered += processed
            finally:
                self._stats.cycles_run += 1
                self._last_run_at = datetime.now(UTC)

            await self.refresh_pending_estimate()
            return processed

    async def _claim_and_deliver(self, cycle: int) -> int:
        async with self.store.transaction() as tx:
            events = sorted(await tx.claim(self.batch_size), key=lambda e: e.id)
            if not events:
                return 0

            self._log.debug(
                f"Claimed {len(events)} event(s)",
                extra={"cycle": cycle, "first_id": events[0].id, "last_id": events[-1].id},
            )
            for event in events:
                await self._deliver(event)

            await tx.mark_processed([event.id for event in events])

        self._log.info(
            f"Processed {len(events)} notification event(s)",
            extra={"cycle": cycle, "count": len(events), "sink": self.sink.kind},
        )
        return len(events)

    async def _deliver(self, event: OutboxEvent) -> None:
        """Invoke the sink, bounding async deliveries by ``delivery_timeout``."""
        result = self.sink.deliver(event)
        if inspect.isawaitable(result):
            try:
                await asyncio.wait_for(result, timeout=self.delivery_timeout)
            except TimeoutError as e:
                raise DeliveryTimeoutError(
                    f"Sink {self.sink.name} timed out after {self.delivery_timeout}s",
                    event_id=event.id,
                ) from e

        self._log.debug(
            f"Delivered {event.topic} to {self.sink.name}",
            extra={"event_id": event.id, "topic": event.topic, "sink": self.sink.kind},
        )

    async def refresh_pending_estimate(self) -> None:
        """Re-count unprocessed events; failures are logged and ignored."""
        try:
            self._pending_estimate = await self.store.count_pending()
        except Exception as e:
            self._log.warning(
                f"Failed to update pending count: {e}",
                extra={"error": str(e)},
            )

    async def drain(self, max_cycles: int = 1000) -> int:
        """Run cycles back to back until one claims nothing (or fails).

        Returns:
            Total number of events marked processed.
        """
        total = 0
        for _ in range(max_cycles):
            processed = await self.run_cycle()
            total += processed
            if processed == 0:
                break
        return total

    def get_status(self) -> WorkerStatus:
        """Synchronous, side-effect-free status snapshot."""
        return WorkerStatus(
            enabled=self.settings.enabled,
            interval=self.interval,
            last_run_at=self._last_run_at,
            pending_estimate=self._pending_estimate,
            sink=self.sink.kind,
        )

    def get_stats(self) -> WorkerStats:
        """Return a copy of current statistics."""
        return replace(self._stats)
