"""Persistent menu cache keyed by (url, date).

Entries expire at local midnight following their date rather than after
a rolling TTL: a menu for 2025-10-22 is valid until 2025-10-23 00:00.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Callable

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.models.menu_cache import Base, MenuCacheEntry

logger = logging.getLogger(__name__)

IN_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class CacheUnavailableError(Exception):
    """Raised when the cache database cannot be read or written."""

    pass


def expiry_for(iso_date: str) -> datetime:
    """Local midnight immediately following *iso_date*."""
    return datetime.combine(date.fromisoformat(iso_date) + timedelta(days=1), time.min)


class MenuCache:
    """SQLite-backed cache of serialized menu results.

    The store must be opened before use and closed on shutdown; whoever
    creates it owns that lifecycle.  Reads expire rows lazily, so a
    stale entry is never returned even if no sweep has run.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///./menu_cache.db``.
        clock: Returns the current local time; injectable for tests.
    """

    def __init__(
        self,
        database_url: str,
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.database_url = database_url
        self._clock = clock
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None
        self._write_lock = asyncio.Lock()

    @classmethod
    def in_memory(cls, **kwargs) -> MenuCache:
        """A non-persistent cache, for tests."""
        return cls(IN_MEMORY_URL, **kwargs)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def _create_engine(self) -> AsyncEngine:
        url = make_url(self.database_url)
        if url.database in (None, "", ":memory:"):
            # One shared connection, otherwise every session sees an empty DB
            return create_async_engine(
                self.database_url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return create_async_engine(self.database_url)

    async def open(self) -> None:
        """Create the schema (idempotent) and drop already expired rows."""
        if self._engine is not None:
            return
        self._engine = self._create_engine()
        self._sessions = async_sessionmaker(self._engine, expire_on_commit=False)
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            await self.close()
            raise CacheUnavailableError(f"Cannot initialise menu cache: {exc}") from exc
        logger.info("Menu cache ready (%s)", self.database_url)
        await self.sweep()

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None

    def _session(self) -> AsyncSession:
        if self._sessions is None:
            raise CacheUnavailableError("Menu cache is not open")
        return self._sessions()

    async def get(self, url: str, iso_date: str) -> str | None:
        """Return the payload stored for (*url*, *iso_date*), or ``None``.

        An expired row is deleted as part of the read.

        Raises:
            CacheUnavailableError: On database errors.
        """
        now = self._clock()
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(MenuCacheEntry.data, MenuCacheEntry.expires_at).where(
                        MenuCacheEntry.url == url, MenuCacheEntry.date == iso_date
                    )
                )
                row = result.first()
                if row is None:
                    return None
                if now < row.expires_at:
                    return row.data

            async with self._write_lock, self._session() as session:
                await session.execute(
                    delete(MenuCacheEntry).where(
                        MenuCacheEntry.url == url,
                        MenuCacheEntry.date == iso_date,
                        MenuCacheEntry.expires_at <= now,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheUnavailableError(f"Cache read failed: {exc}") from exc

        logger.debug("Dropped expired cache entry for %s on %s", url, iso_date)
        return None

    async def set(self, url: str, iso_date: str, payload: str) -> None:
        """Store *payload*, replacing any existing row for the same key.

        Raises:
            CacheUnavailableError: On database errors.
        """
        values = {
            "url": url,
            "date": iso_date,
            "data": payload,
            "created_at": self._clock(),
            "expires_at": expiry_for(iso_date),
        }
        stmt = sqlite_insert(MenuCacheEntry).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[MenuCacheEntry.url, MenuCacheEntry.date],
            set_={
                "data": stmt.excluded.data,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
            },
        )
        try:
            async with self._write_lock, self._session() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as exc:
            raise CacheUnavailableError(f"Cache write failed: {exc}") from exc

    async def sweep(self) -> int:
        """Delete every expired row and return how many were removed.

        Never raises: maintenance failures are logged and reported as 0.
        """
        now = self._clock()
        try:
            async with self._write_lock, self._session() as session:
                result = await session.execute(
                    delete(MenuCacheEntry).where(MenuCacheEntry.expires_at < now)
                )
                await session.commit()
        except (SQLAlchemyError, CacheUnavailableError) as exc:
            logger.error("Error cleaning up menu cache: %s", exc)
            return 0

        removed = result.rowcount or 0
        if removed:
            logger.info("Cleaned up %d expired cache entries", removed)
        return removed

    async def size(self) -> int:
        """Number of stored rows, expired or not."""
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(func.count()).select_from(MenuCacheEntry)
                )
                return int(result.scalar_one())
        except SQLAlchemyError as exc:
            raise CacheUnavailableError(f"Cache read failed: {exc}") from exc
