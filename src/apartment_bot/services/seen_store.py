"""Seen-listing store: which (source, listing id) pairs were already processed."""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from ..db import open_postgres_pool, parse_database_url, pooled_connection, sqlite_connection
from ..models.listing import SeenRecord, SourceTag

logger = logging.getLogger(__name__)

Source = Union[SourceTag, str]


def _partition(source: Source) -> str:
    return getattr(source, "value", source)


class SeenStore(ABC):
    """
    Durable seen-set partitioned by source.

    Records are append-only: created on first successful processing, never
    updated and never expired. Marking an already-seen listing is a no-op.

    All public methods are coroutines. The database drivers are blocking, so
    each call runs in a worker thread and never stalls the event loop.
    Use as an async context manager to scope the backing connection:

        async with create_seen_store(url) as store:
            if not await store.has(SourceTag.GEWOBAG, "123"):
                ...
    """

    async def __aenter__(self) -> "SeenStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def initialize(self) -> None:
        """Acquire the backing store and create the schema if absent."""
        await asyncio.to_thread(self._initialize)

    async def close(self) -> None:
        await asyncio.to_thread(self._close)

    async def has(self, source: Source, listing_id: str) -> bool:
        return await asyncio.to_thread(self._has, _partition(source), listing_id)

    async def mark_seen(self, source: Source, listing_id: str) -> None:
        await asyncio.to_thread(self._mark_seen, _partition(source), listing_id)

    async def get(self, source: Source, listing_id: str) -> Optional[SeenRecord]:
        return await asyncio.to_thread(self._get, _partition(source), listing_id)

    async def seen_ids(self, source: Source) -> List[str]:
        return await asyncio.to_thread(self._seen_ids, _partition(source))

    async def get_stats(self) -> dict:
        """Get statistics about tracked listings."""
        return await asyncio.to_thread(self._get_stats)

    @abstractmethod
    def _initialize(self) -> None: ...

    @abstractmethod
    def _close(self) -> None: ...

    @abstractmethod
    def _has(self, source: str, listing_id: str) -> bool: ...

    @abstractmethod
    def _mark_seen(self, source: str, listing_id: str) -> None: ...

    @abstractmethod
    def _get(self, source: str, listing_id: str) -> Optional[SeenRecord]: ...

    @abstractmethod
    def _seen_ids(self, source: str) -> List[str]: ...

    @abstractmethod
    def _get_stats(self) -> dict: ...


class SqliteSeenStore(SeenStore):
    """
    Embedded SQLite seen-set.

    Each operation opens its own short-lived connection, so concurrent
    pipelines never share a connection across threads. SQLite's file locking
    (with a busy timeout) serializes writers.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path

    def _initialize(self) -> None:
        db_dir = Path(self.db_path).parent
        if db_dir and not db_dir.exists():
            db_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

        with sqlite_connection(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS seen_listings (
                    source TEXT NOT NULL,
                    listing_id TEXT NOT NULL,
                    first_seen_at TEXT NOT NULL,
                    PRIMARY KEY (source, listing_id)
                )
            """)

        logger.debug(f"SQLite seen store initialized at {self.db_path}")

    def _close(self) -> None:
        pass

    def _has(self, source: str, listing_id: str) -> bool:
        with sqlite_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT 1 FROM seen_listings WHERE source = ? AND listing_id = ?",
                (source, listing_id),
            ).fetchone()
        return row is not None

    def _mark_seen(self, source: str, listing_id: str) -> None:
        with sqlite_connection(self.db_path) as conn:
            conn.execute(
                "INSERT OR IGNORE INTO seen_listings (source, listing_id, first_seen_at) VALUES (?, ?, ?)",
                (source, listing_id, datetime.now(timezone.utc).isoformat()),
            )

    def _get(self, source: str, listing_id: str) -> Optional[SeenRecord]:
        with sqlite_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT source, listing_id, first_seen_at FROM seen_listings "
                "WHERE source = ? AND listing_id = ?",
                (source, listing_id),
            ).fetchone()
        if row is None:
            return None
        return SeenRecord(
            source=row["source"],
            listing_id=row["listing_id"],
            first_seen_at=datetime.fromisoformat(row["first_seen_at"]),
        )

    def _seen_ids(self, source: str) -> List[str]:
        with sqlite_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT listing_id FROM seen_listings WHERE source = ? ORDER BY first_seen_at",
                (source,),
            ).fetchall()
        return [row["listing_id"] for row in rows]

    def _get_stats(self) -> dict:
        with sqlite_connection(self.db_path) as conn:
            total = conn.execute("SELECT COUNT(*) FROM seen_listings").fetchone()[0]
            by_source = {}
            for row in conn.execute(
                "SELECT source, COUNT(*) AS count FROM seen_listings GROUP BY source"
            ):
                by_source[row["source"]] = row["count"]
        return {"total_tracked": total, "by_source": by_source}


class PostgresSeenStore(SeenStore):
    """PostgreSQL seen-set backed by a thread-safe connection pool."""

    def __init__(self, dsn: str, maxconn: int = 5):
        self.dsn = dsn
        self.maxconn = maxconn
        self._pool = None

    def _connection(self):
        if self._pool is None:
            raise RuntimeError("PostgresSeenStore used before initialize()")
        return pooled_connection(self._pool)

    def _initialize(self) -> None:
        if self._pool is None:
            self._pool = open_postgres_pool(self.dsn, self.maxconn)

        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute("""
                CREATE TABLE IF NOT EXISTS seen_listings (
                    source TEXT NOT NULL,
                    listing_id TEXT NOT NULL,
                    first_seen_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                    PRIMARY KEY (source, listing_id)
                )
            """)

        logger.debug("PostgreSQL seen store initialized")

    def _close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None

    def _has(self, source: str, listing_id: str) -> bool:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT 1 FROM seen_listings WHERE source = %s AND listing_id = %s",
                (source, listing_id),
            )
            return cur.fetchone() is not None

    def _mark_seen(self, source: str, listing_id: str) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "INSERT INTO seen_listings (source, listing_id) VALUES (%s, %s) "
                "ON CONFLICT (source, listing_id) DO NOTHING",
                (source, listing_id),
            )

    def _get(self, source: str, listing_id: str) -> Optional[SeenRecord]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT source, listing_id, first_seen_at FROM seen_listings "
                "WHERE source = %s AND listing_id = %s",
                (source, listing_id),
            )
            row = cur.fetchone()
        if row is None:
            return None
        return SeenRecord(
            source=row["source"],
            listing_id=row["listing_id"],
            first_seen_at=row["first_seen_at"],
        )

    def _seen_ids(self, source: str) -> List[str]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT listing_id FROM seen_listings WHERE source = %s ORDER BY first_seen_at",
                (source,),
            )
            return [row["listing_id"] for row in cur.fetchall()]

    def _get_stats(self) -> dict:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) AS total FROM seen_listings")
            total = cur.fetchone()["total"]
            cur.execute("SELECT source, COUNT(*) AS count FROM seen_listings GROUP BY source")
            by_source = {row["source"]: row["count"] for row in cur.fetchall()}
        return {"total_tracked": total, "by_source": by_source}


def create_seen_store(database_url: str) -> SeenStore:
    """Build the store matching the DATABASE_URL scheme."""
    backend, target = parse_database_url(database_url)
    if backend == "postgres":
        return PostgresSeenStore(target)
    return SqliteSeenStore(target)
