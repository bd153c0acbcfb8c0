"""Database connection helpers for SQLite and PostgreSQL."""

import sqlite3
from contextlib import contextmanager
from typing import Tuple

from psycopg2.extras import RealDictCursor
from psycopg2.pool import ThreadedConnectionPool

from .exceptions import ConfigError

POSTGRES_SCHEMES = ("postgres://", "postgresql://")
SQLITE_SCHEME = "sqlite:///"

# Seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT = 30


def parse_database_url(url: str) -> Tuple[str, str]:
    """
    Split a DATABASE_URL into (backend, target).

    postgres://... and postgresql://... select PostgreSQL and keep the URL as
    the DSN. sqlite:///path or a bare file path select SQLite.

    Raises:
        ConfigError: If the URL is empty, has an unsupported scheme or names
                     an in-memory SQLite database
    """
    if not url:
        raise ConfigError("DATABASE_URL is empty")
    if url.startswith(POSTGRES_SCHEMES):
        return "postgres", url
    if url.startswith(SQLITE_SCHEME):
        path = url[len(SQLITE_SCHEME):]
    elif "://" in url:
        scheme = url.split("://", 1)[0]
        raise ConfigError(
            f"Unsupported DATABASE_URL scheme: {scheme}:// (use postgresql://... or sqlite:///path)"
        )
    else:
        path = url
    if not path or path == ":memory:":
        raise ConfigError("An in-memory SQLite database cannot persist seen listings")
    return "sqlite", path


@contextmanager
def sqlite_connection(path: str):
    """Context manager that yields a short-lived SQLite connection.

    Commits on success and rolls back on error.
    """
    conn = sqlite3.connect(path, timeout=SQLITE_BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


@contextmanager
def pooled_connection(pool):
    """Context manager that borrows a psycopg2 connection from a pool.

    Usage:
        with pooled_connection(pool) as conn:
            cur = conn.cursor()
            cur.execute("SELECT ...")
    """
    conn = pool.getconn()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def open_postgres_pool(dsn: str, maxconn: int = 5):
    """Create a thread-safe psycopg2 pool returning RealDictCursor rows."""
    return ThreadedConnectionPool(1, maxconn, dsn, cursor_factory=RealDictCursor)
