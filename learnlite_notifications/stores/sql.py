"""Relational event store built on SQLAlchemy's asyncio extension.

Works with any async driver SQLAlchemy supports. The two that matter here:

- ``sqlite+aiosqlite:///var/outbox.db`` for single-host deployments and tests
- ``postgresql+asyncpg://...`` in production, where claims use
  ``FOR UPDATE SKIP LOCKED`` so concurrent workers never double-claim a row
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, event, func, select, update
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from learnlite_notifications.core.errors import StoreError
from learnlite_notifications.core.event import MAX_TOPIC_LENGTH, OutboxEvent, deserialize_payload
from learnlite_notifications.core.logging import get_logger

logger = get_logger("learnlite_notifications.stores.sql")


class Base(DeclarativeBase):
    pass


class OutboxEventRow(Base):
    """Database model for the outbox table.

    One row per published event. Rows are never deleted here; retention is
    handled outside this package.
    """

    __tablename__ = "outbox_events"
    __table_args__ = (
        Index("ix_outbox_events_pending", "processed", "id"),
        Index("ix_outbox_events_topic_created_at", "topic", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic: Mapped[str] = mapped_column(String(MAX_TOPIC_LENGTH), nullable=False)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_event(self) -> OutboxEvent:
        return OutboxEvent(
            id=self.id,
            topic=self.topic,
            payload=deserialize_payload(self.payload),
            created_at=self.created_at,
            processed=self.processed,
            processed_at=self.processed_at,
        )


class SqlTransaction:
    """Claim/mark operations bound to one session transaction."""

    def __init__(self, session: AsyncSession, skip_locked: bool) -> None:
        self._session = session
        self._skip_locked = skip_locked

    async def claim(self, limit: int) -> list[OutboxEvent]:
        stmt = (
            select(OutboxEventRow)
            .where(OutboxEventRow.processed.is_(False))
            .order_by(OutboxEventRow.id)
            .limit(limit)
        )
        if self._skip_locked:
            stmt = stmt.with_for_update(skip_locked=True)

        result = await self._session.execute(stmt)
        return [row.to_event() for row in result.scalars().all()]

    async def mark_processed(self, event_ids: Sequence[int]) -> None:
        if not event_ids:
            return
        stmt = (
            update(OutboxEventRow)
            .where(OutboxEventRow.id.in_(list(event_ids)))
            .where(OutboxEventRow.processed.is_(False))
            .values(processed=True, processed_at=datetime.now(UTC))
        )
        await self._session.execute(stmt)


def _enable_sqlite_savepoints(sync_engine) -> None:
    """Let SQLAlchemy, not the sqlite3 module, emit BEGIN.

    The driver otherwise defers BEGIN to the first DML statement, and a
    SAVEPOINT issued before it would release (commit) the whole transaction.
    """

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _emit_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")


class SqlEventStore:
    """Durable outbox store backed by a relational database."""

    supports_caller_session = True

    def __init__(self, url: str, echo: bool = False) -> None:
        """Initialize the store.

        Args:
            url: SQLAlchemy async database URL.
            echo: Log emitted SQL (debugging only).
        """
        parsed = make_url(url)
        is_sqlite = parsed.get_backend_name() == "sqlite"

        if is_sqlite:
            database = parsed.database
            if not database or database == ":memory:":
                raise StoreError(
                    "In-memory SQLite can not isolate outbox transactions; "
                    "use memory:// or a SQLite file URL instead"
                )
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        self._url_safe = parsed.render_as_string(hide_password=True)
        self._skip_locked = parsed.get_backend_name() == "postgresql"
        self._engine = create_async_engine(url, echo=echo)
        if is_sqlite:
            _enable_sqlite_savepoints(self._engine.sync_engine)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @property
    def engine(self):
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Session factory for callers that publish inside their own transaction."""
        return self._session_factory

    async def initialize(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Outbox schema ready at {self._url_safe}")

    async def append(self, topic: str, payload: str, session: AsyncSession | None = None) -> int:
        """Insert one unprocessed event.

        Args:
            topic: Event topic.
            payload: Serialized JSON payload.
            session: Optional caller-owned session. When given, the row joins
                the caller's transaction and is committed (or rolled back)
                together with the business write. The insert runs under a
                SAVEPOINT, so a failed insert leaves the caller's transaction
                usable.

        Returns:
            The new event id.
        """
        row = OutboxEventRow(topic=topic, payload=payload, processed=False)

        if session is not None:
            async with session.begin_nested():
                session.add(row)
                await session.flush()
            return row.id

        async with self._session_factory() as own_session:
            async with own_session.begin():
                own_session.add(row)
                await own_session.flush()
        return row.id

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlTransaction]:
        """Open a session transaction: commit on clean exit, rollback on error."""
        async with self._session_factory() as session:
            async with session.begin():
                yield SqlTransaction(session, self._skip_locked)

    async def count_pending(self) -> int:
        async with self._session_factory() as session:
            stmt = (
                select(func.count())
                .select_from(OutboxEventRow)
                .where(OutboxEventRow.processed.is_(False))
            )
            result = await session.execute(stmt)
            return int(result.scalar_one())

    async def get(self, event_id: int) -> OutboxEvent | None:
        async with self._session_factory() as session:
            row = await session.get(OutboxEventRow, event_id)
            return row.to_event() if row is not None else None

    async def close(self) -> None:
        await self._engine.dispose()
