"""Async database connection and session management.

The database layer is *optional*: the application degrades gracefully when
the database is unreachable: quotes are still computed and returned, and
store operations raise ``StoreUnavailable`` instead of crashing the process.
A database that was down at startup is retried from ``session()``, at most
once per ``retry_interval`` seconds.
"""

from __future__ import annotations
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.models.db_models import Base

logger = logging.getLogger(__name__)


class Database:
    """Owns one async engine and its session factory.

    Created unconnected; ``connect()`` builds the pool and ensures the schema.
    Only a database that has been through ``connect()`` is retried later.
    """

    def __init__(
        self,
        url: str = settings.DATABASE_URL,
        timeout: float = settings.STORE_TIMEOUT_SECONDS,
        retry_interval: Optional[float] = None,
    ):
        self.url = url
        self.timeout = timeout
        self.retry_interval = timeout if retry_interval is None else retry_interval
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._available: bool = False
        self._retry_enabled: bool = False
        self._last_attempt: float = 0.0
        self._connect_lock = asyncio.Lock()

    @property
    def available(self) -> bool:
        return self._available

    def _engine_options(self) -> dict:
        if self.url.startswith("sqlite"):
            return {}
        options = {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "pool_timeout": self.timeout,
        }
        if "+asyncpg" in self.url:
            options["connect_args"] = {"timeout": self.timeout, "command_timeout": self.timeout}
        return options

    async def connect(self) -> bool:
        """Initialise the async engine, session factory, and create tables."""
        self._retry_enabled = True
        self._last_attempt = time.monotonic()
        await self._drop_engine()
        try:
            self._engine = create_async_engine(self.url, echo=False, **self._engine_options())
            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._available = True
            logger.info("Database connection established successfully.")
        except Exception as exc:
            self._available = False
            logger.warning(
                "Database unavailable, running without persistence. Error: %s",
                exc,
            )
        return self._available

    async def _drop_engine(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._available = False

    async def _maybe_reconnect(self) -> None:
        if not self._retry_enabled:
            return
        async with self._connect_lock:
            if self._available:
                return
            if time.monotonic() - self._last_attempt < self.retry_interval:
                return
            logger.info("Retrying database connection.")
            await self.connect()

    async def dispose(self) -> None:
        """Dispose of the connection pool and stop reconnect attempts."""
        self._retry_enabled = False
        if self._engine is not None:
            await self._drop_engine()
            logger.info("Database connection pool closed.")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[Optional[AsyncSession], None]:
        """Yield an async session if the database is available, otherwise None.

        The session commits on clean exit and rolls back on error.
        """
        if not self._available:
            await self._maybe_reconnect()
        if not self._available or self._session_factory is None:
            yield None
            return

        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
