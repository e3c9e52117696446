"""Redis-backed event store.

Layout under ``key_prefix``:
- ``<prefix>:seq``      INCR counter handing out event ids
- ``<prefix>:events``   hash of id -> JSON event record
- ``<prefix>:pending``  sorted set of unprocessed ids, scored by id

Claims read the head of the pending set; marks are staged on the transaction
and applied in one MULTI/EXEC on commit. A rolled-back transaction simply never
executes its MULTI, so nothing it marked is persisted. Durability follows the
server's persistence settings (AOF recommended).
"""

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse, urlunparse

from learnlite_notifications.core.event import OutboxEvent, deserialize_payload
from learnlite_notifications.core.logging import get_logger

logger = get_logger("learnlite_notifications.stores.redis")


def _sanitize_url(url: str) -> str:
    """Mask password in Redis URL for logging."""
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = f"{parsed.username or ''}:****@{parsed.hostname}"
            if parsed.port:
                netloc += f":{parsed.port}"
            return urlunparse(
                (parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment)
            )
        return f"{parsed.hostname}:{parsed.port or 6379}"
    except Exception:
        return "<url>"


class RedisTransaction:
    """Reads pending ids directly; stages marks for the commit MULTI."""

    def __init__(self, store: "RedisEventStore", redis: Any) -> None:
        self._store = store
        self._redis = redis
        self._claimed: dict[int, dict[str, Any]] = {}
        self._staged: list[int] = []
        self._orphans: list[str] = []

    async def claim(self, limit: int) -> list[OutboxEvent]:
        ids = await self._redis.zrange(self._store.pending_key, 0, limit - 1)
        if not ids:
            return []
        raw_records = await self._redis.hmget(self._store.events_key, ids)

        events = []
        for raw_id, raw in zip(ids, raw_records):
            if raw is None:
                logger.warning(f"Pending id {raw_id} has no event record, dropping it")
                self._orphans.append(raw_id)
                continue
            record = json.loads(raw)
            self._claimed[record["id"]] = record
            events.append(self._store._to_event(record))
        return events

    async def mark_processed(self, event_ids: Sequence[int]) -> None:
        self._staged.extend(event_ids)

    async def commit(self) -> None:
        if not self._staged and not self._orphans:
            return
        now = datetime.now(UTC).isoformat()
        async with self._redis.pipeline(transaction=True) as pipe:
            if self._orphans:
                pipe.zrem(self._store.pending_key, *self._orphans)
            for event_id in self._staged:
                record = self._claimed.get(event_id)
                if record is None:
                    continue
                record = {**record, "processed": True, "processed_at": now}
                pipe.hset(self._store.events_key, str(event_id), json.dumps(record))
                pipe.zrem(self._store.pending_key, str(event_id))
            await pipe.execute()


class RedisEventStore:
    """Outbox store kept in Redis."""

    supports_caller_session = False

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        key_prefix: str = "learnlite:outbox",
        pool_size: int = 10,
    ) -> None:
        """Initialize Redis store.

        Args:
            redis_url: Redis connection URL.
            key_prefix: Prefix for all keys owned by this store.
            pool_size: Connection pool size.
        """
        self._url = redis_url
        self._url_safe = _sanitize_url(redis_url)
        self.key_prefix = key_prefix
        self._pool_size = pool_size

        self._redis: Any = None
        self._connected = False
        self._conn_lock = asyncio.Lock()
        self._tx_lock = asyncio.Lock()

    @property
    def seq_key(self) -> str:
        return f"{self.key_prefix}:seq"

    @property
    def events_key(self) -> str:
        return f"{self.key_prefix}:events"

    @property
    def pending_key(self) -> str:
        return f"{self.key_prefix}:pending"

    async def _get_client(self) -> Any:
        """Get Redis client with connection pooling.

        Connection creation is guarded by _conn_lock so concurrent callers
        never race to open (and leak) parallel pools.
        """
        try:
            from redis.asyncio import ConnectionPool, Redis
        except ImportError as e:
            raise ImportError("Install redis: pip install learnlite-notifications[redis]") from e

        if self._redis is not None:
            try:
                await self._redis.ping()
                return self._redis
            except Exception as e:
                logger.warning(f"Redis connection lost: {e}, reconnecting...")

        async with self._conn_lock:
            # Another coroutine may have reconnected while we waited
            if self._redis is not None:
                try:
                    await self._redis.ping()
                    return self._redis
                except Exception:
                    pass

            old_redis = self._redis
            if old_redis is not None:
                try:
                    await old_redis.aclose()
                except Exception as close_err:
                    logger.debug(f"Error closing old connection: {close_err}")

            is_reconnection = self._connected

            pool = ConnectionPool.from_url(
                self._url, max_connections=self._pool_size, decode_responses=True
            )
            new_redis = Redis(connection_pool=pool)
            try:
                await new_redis.ping()
            except Exception:
                try:
                    await new_redis.aclose()
                except Exception:
                    pass
                raise

            self._redis = new_redis
            self._connected = True
            if is_reconnection:
                logger.info(f"Reconnected to Redis at {self._url_safe}")
            else:
                logger.info(f"Connected to Redis at {self._url_safe}")

            return self._redis

    def _to_event(self, record: dict[str, Any]) -> OutboxEvent:
        return OutboxEvent(
            id=record["id"],
            topic=record["topic"],
            payload=deserialize_payload(record["payload"]),
            created_at=datetime.fromisoformat(record["created_at"]),
            processed=record.get("processed", False),
            processed_at=(
                datetime.fromisoformat(record["processed_at"])
                if record.get("processed_at")
                else None
            ),
        )

    async def initialize(self) -> None:
        await self._get_client()

    async def append(self, topic: str, payload: str) -> int:
        """Assign an id with INCR, then write record and pending entry atomically."""
        redis = await self._get_client()
        event_id = int(await redis.incr(self.seq_key))
        record = {
            "id": event_id,
            "topic": topic,
            "payload": payload,
            "created_at": datetime.now(UTC).isoformat(),
            "processed": False,
            "processed_at": None,
        }
        async with redis.pipeline(transaction=True) as pipe:
            pipe.hset(self.events_key, str(event_id), json.dumps(record))
            pipe.zadd(self.pending_key, {str(event_id): event_id})
            await pipe.execute()
        logger.debug(f"Appended event {event_id} to {self.key_prefix}")
        return event_id

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[RedisTransaction]:
        """Claim/mark unit of work; marks are applied only on clean exit."""
        async with self._tx_lock:
            redis = await self._get_client()
            tx = RedisTransaction(self, redis)
            yield tx
            await tx.commit()

    async def count_pending(self) -> int:
        redis = await self._get_client()
        return int(await redis.zcard(self.pending_key))

    async def get(self, event_id: int) -> OutboxEvent | None:
        redis = await self._get_client()
        raw = await redis.hget(self.events_key, str(event_id))
        return self._to_event(json.loads(raw)) if raw is not None else None

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("Closed Redis connection")

    async def delete_keys(self) -> None:
        """Delete every key owned by this store (for testing)."""
        redis = await self._get_client()
        await redis.delete(self.seq_key, self.events_key, self.pending_key)
