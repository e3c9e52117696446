"""Tests for the SQLAlchemy event store (SQLite via aiosqlite)."""

import pytest
from sqlalchemy import inspect

from learnlite_notifications.core.config import NotificationSettings
from learnlite_notifications.core.errors import StoreError
from learnlite_notifications.core.worker import NotificationWorker
from learnlite_notifications.sinks.base import Sink
from learnlite_notifications.stores.sql import SqlEventStore


class CollectingSink(Sink):
    def __init__(self, fail_on: set[int] | None = None):
        super().__init__()
        self.ids: list[int] = []
        self.fail_on = set(fail_on or ())

    def deliver(self, event) -> None:
        if event.id in self.fail_on:
            raise RuntimeError("sink down")
        self.ids.append(event.id)


class TestUrlHandling:
    @pytest.mark.parametrize(
        "url", ["sqlite+aiosqlite://", "sqlite+aiosqlite:///:memory:"]
    )
    def test_in_memory_sqlite_rejected(self, url):
        with pytest.raises(StoreError) as exc_info:
            SqlEventStore(url)
        assert "memory://" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_uncommitted_caller_event_not_claimed(self, sql_store):
        sink = CollectingSink()
        worker = NotificationWorker(
            sql_store, sink, NotificationSettings(enabled=True, poll_interval=0.05)
        )

        async with sql_store.session_factory() as session:
            await session.begin()
            await sql_store.append("enrollment.created", "{}", session=session)
            assert await worker.run_cycle() == 0
            await session.rollback()

        assert sink.ids == []
        assert await sql_store.count_pending() == 0


class TestSchema:
    @pytest.mark.asyncio
    async def test_initialize_creates_table_and_indexes(self, sql_store):
        async with sql_store.engine.connect() as conn:
            tables, indexes = await conn.run_sync(
                lambda sync_conn: (
                    inspect(sync_conn).get_table_names(),
                    {ix["name"] for ix in inspect(sync_conn).get_indexes("outbox_events")},
                )
            )

        assert "outbox_events" in tables
        assert {"ix_outbox_events_pending", "ix_outbox_events_topic_created_at"} <= indexes

    @pytest.mark.asyncio
    async def test_initialize_is_idempotent(self, sql_store):
        await sql_store.append("x.y", "{}")
        await sql_store.initialize()
        assert await sql_store.count_pending() == 1

    @pytest.mark.asyncio
    async def test_creates_database_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "outbox.db"
        store = SqlEventStore(f"sqlite+aiosqlite:///{db_path}")
        await store.initialize()
        await store.close()

        assert db_path.exists()


class TestAppendAndGet:
    @pytest.mark.asyncio
    async def test_ids_increase(self, sql_store):
        ids = [await sql_store.append("x.y", "{}") for _ in range(3)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 3

    @pytest.mark.asyncio
    async def test_round_trip(self, sql_store):
        event_id = await sql_store.append("enrollment.created", '{"enrollmentId": 1}')
        event = await sql_store.get(event_id)

        assert event.topic == "enrollment.created"
        assert event.payload == {"enrollmentId": 1}
        assert event.processed is False
        assert event.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_missing(self, sql_store):
        assert await sql_store.get(999) is None

    @pytest.mark.asyncio
    async def test_events_survive_reopen(self, tmp_path):
        url = f"sqlite+aiosqlite:///{tmp_path / 'outbox.db'}"
        store = SqlEventStore(url)
        await store.initialize()
        event_id = await store.append("x.y", '{"a": 1}')
        await store.close()

        reopened = SqlEventStore(url)
        await reopened.initialize()
        event = await reopened.get(event_id)
        await reopened.close()

        assert event.payload == {"a": 1}


class TestTransactions:
    @pytest.mark.asyncio
    async def test_claim_is_ordered_and_limited(self, sql_store):
        ids = [await sql_store.append("x.y", "{}") for _ in range(5)]

        async with sql_store.transaction() as tx:
            claimed = await tx.claim(3)

        assert [e.id for e in claimed] == ids[:3]

    @pytest.mark.asyncio
    async def test_mark_commits(self, sql_store):
        ids = [await sql_store.append("x.y", "{}") for _ in range(2)]

        async with sql_store.transaction() as tx:
            await tx.mark_processed(ids)

        event = await sql_store.get(ids[0])
        assert event.processed is True
        assert event.processed_at is not None
        assert await sql_store.count_pending() == 0

    @pytest.mark.asyncio
    async def test_exception_rolls_back_marks(self, sql_store):
        ids = [await sql_store.append("x.y", "{}") for _ in range(2)]

        with pytest.raises(RuntimeError):
            async with sql_store.transaction() as tx:
                await tx.claim(10)
                await tx.mark_processed(ids)
                raise RuntimeError("sink failed")

        assert await sql_store.count_pending() == 2

    @pytest.mark.asyncio
    async def test_processed_at_not_overwritten(self, sql_store):
        event_id = await sql_store.append("x.y", "{}")
        async with sql_store.transaction() as tx:
            await tx.mark_processed([event_id])
        first = (await sql_store.get(event_id)).processed_at

        async with sql_store.transaction() as tx:
            await tx.mark_processed([event_id])

        assert (await sql_store.get(event_id)).processed_at == first


class TestWorkerOnSql:
    @pytest.mark.asyncio
    async def test_failed_batch_redelivered(self, sql_store):
        ids = [await sql_store.append("x.y", "{}") for _ in range(3)]
        sink = CollectingSink(fail_on={ids[2]})
        worker = NotificationWorker(
            sql_store, sink, NotificationSettings(enabled=True, poll_interval=0.05)
        )

        assert await worker.run_cycle() == 0
        assert await sql_store.count_pending() == 3

        sink.fail_on.clear()
        assert await worker.run_cycle() == 3
        assert sink.ids == [ids[0], ids[1], ids[0], ids[1], ids[2]]
        assert await sql_store.count_pending() == 0
