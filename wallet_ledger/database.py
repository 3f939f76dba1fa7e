from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from wallet_ledger.config import settings
from wallet_ledger.core.exceptions import InternalError
from wallet_ledger.core.logging import app_logger


class Base(DeclarativeBase):
    pass


class Database:
    """
    Owns the async engine and session factory for the ledger store.

    One instance is created per process (or per test) and handed to the
    services that need it; nothing in the package reaches for a global engine.
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        lock_timeout_ms: int = settings.DB_LOCK_TIMEOUT_MS,
        statement_timeout_ms: int = settings.DB_STATEMENT_TIMEOUT_MS,
        busy_timeout_seconds: float = settings.DB_BUSY_TIMEOUT_SECONDS,
        **engine_options: Any,
    ):
        self.url = url
        self.is_sqlite = url.startswith("sqlite")

        if self.is_sqlite:
            engine_options.setdefault("connect_args", {"timeout": busy_timeout_seconds})
        else:
            engine_options.setdefault("pool_pre_ping", True)
            if "poolclass" not in engine_options:
                engine_options.setdefault("pool_size", settings.DB_POOL_SIZE)
                engine_options.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
            if url.startswith("postgresql+asyncpg"):
                # A stuck lock wait fails with a retryable error instead of hanging
                engine_options.setdefault(
                    "connect_args",
                    {
                        "server_settings": {
                            "lock_timeout": str(lock_timeout_ms),
                            "statement_timeout": str(statement_timeout_ms),
                        }
                    },
                )

        self.engine = create_async_engine(url, echo=echo, **engine_options)

        if self.is_sqlite:
            _configure_sqlite(self.engine)

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[AsyncSession]:
        """
        Run a block as one store transaction.

        Commits when the block exits cleanly and rolls back on any exception.
        Store failures are logged and re-raised as InternalError; typed ledger
        errors raised inside the block pass through unchanged.
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    yield session
        except SQLAlchemyError as exc:
            app_logger.error(f"Ledger store transaction rolled back: {exc!r}")
            retryable = isinstance(exc, OperationalError) or (
                isinstance(exc, DBAPIError) and exc.connection_invalidated
            )
            raise InternalError(retryable=retryable) from exc

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def _configure_sqlite(engine) -> None:
    """
    SQLite has no row locks, so every transaction takes the database write
    lock up front with BEGIN IMMEDIATE; concurrent writers queue on the busy
    timeout exactly like contended row locks queue on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Stop the driver from emitting its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
