"""
Postgres connection management.

Uses psycopg3 with connection pooling. Persistence is optional: the core
pipeline runs without a database; these helpers back the Postgres few-shot
source and structure executor.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from content_trust.config import config

logger = logging.getLogger(__name__)

# Global connection pool
_pool: Optional[ConnectionPool] = None

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS content_assertions (
    id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
    source_id TEXT NOT NULL,
    assertion TEXT NOT NULL,
    content_hash TEXT NOT NULL,
    category TEXT NOT NULL,
    chapter TEXT,
    tags TEXT[] NOT NULL DEFAULT '{}',
    parent_id TEXT REFERENCES content_assertions(id) ON DELETE SET NULL,
    depth INTEGER,
    order_index INTEGER NOT NULL DEFAULT 0,
    topic_slug TEXT,
    created_by_structuring BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS content_assertions_source_idx ON content_assertions (source_id);

CREATE TABLE IF NOT EXISTS classification_corrections (
    id BIGSERIAL PRIMARY KEY,
    domain_id TEXT,
    file_name TEXT NOT NULL,
    text_sample TEXT NOT NULL,
    original_type TEXT,
    corrected_type TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS classification_corrections_domain_idx
    ON classification_corrections (domain_id, created_at DESC);
"""

TABLES = ("content_assertions", "classification_corrections")


def get_pg_pool(min_size: int = 1, max_size: int = 5) -> ConnectionPool:
    """
    Get or create the global connection pool.

    Args:
        min_size: Minimum number of connections to maintain
        max_size: Maximum number of connections allowed

    Returns:
        ConnectionPool instance
    """
    global _pool

    if _pool is None:
        logger.info(f"Creating Postgres connection pool (min={min_size}, max={max_size})")
        _pool = ConnectionPool(
            config.POSTGRES_DSN,
            min_size=min_size,
            max_size=max_size,
            kwargs={"row_factory": dict_row},
        )

    return _pool


@contextmanager
def get_pg_connection() -> Generator[psycopg.Connection, None, None]:
    """
    Get a connection from the pool.

    Usage:
        with get_pg_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM content_assertions LIMIT 10")
                results = cur.fetchall()
    """
    pool = get_pg_pool()
    with pool.connection() as conn:
        yield conn


def init_schema() -> None:
    """Create the tables used by Content Trust if they don't exist."""
    with get_pg_connection() as conn:
        conn.execute(SCHEMA_SQL)
        conn.commit()
    logger.info("Content Trust schema ready")


def check_health() -> dict[str, Any]:
    """Check database health and return status."""
    result = {
        "status": "unknown",
        "connection": False,
        "tables": [],
    }

    try:
        with get_pg_connection() as conn:
            result["connection"] = True
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT tablename FROM pg_tables "
                    "WHERE schemaname = 'public' AND tablename = ANY(%s)",
                    (list(TABLES),),
                )
                result["tables"] = [row["tablename"] for row in cur.fetchall()]

        result["status"] = "healthy" if len(result["tables"]) == len(TABLES) else "degraded"

    except psycopg.Error as e:
        result["status"] = "unhealthy"
        result["error"] = str(e)

    return result


def close_pool() -> None:
    """Close the connection pool."""
    global _pool
    if _pool is not None:
        _pool.close()
        _pool = None
        logger.info("Postgres connection pool closed")
