"""PostgreSQL connection pool for the contact store.

psycopg 3 async pool, opened in the FastAPI lifespan and closed on shutdown.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from config import settings

logger = logging.getLogger(__name__)

CONTACTS_DDL = """
CREATE TABLE IF NOT EXISTS contacts (
    id uuid PRIMARY KEY,
    event_id uuid NOT NULL,
    first_name text,
    last_name text,
    email text,
    phone text,
    company text,
    title text,
    industry text,
    address text,
    website text,
    notes text,
    image_url text,
    ocr_confidence numeric(3, 2),
    needs_review boolean NOT NULL DEFAULT false,
    raw_ocr_data text,
    field_confidence_scores jsonb,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS contacts_review_idx ON contacts (needs_review, created_at);
CREATE INDEX IF NOT EXISTS contacts_event_idx ON contacts (event_id, created_at);
"""


class DatabaseManager:
    """Owns the connection pool: connect() at startup, disconnect() at shutdown."""

    def __init__(
        self,
        dsn: str | None = None,
        pool_min: int | None = None,
        pool_max: int | None = None,
    ):
        self._dsn = dsn or settings.DATABASE_URL
        self._pool_min = pool_min if pool_min is not None else settings.DB_POOL_MIN
        self._pool_max = pool_max if pool_max is not None else settings.DB_POOL_MAX
        self._pool: AsyncConnectionPool | None = None

    async def connect(self) -> None:
        if self._pool is not None:
            logger.warning("Connection pool already initialized")
            return

        self._pool = AsyncConnectionPool(
            self._dsn,
            min_size=self._pool_min,
            max_size=self._pool_max,
            open=False,
        )
        await self._pool.open()
        logger.info(
            "PostgreSQL connection pool opened (min=%d, max=%d)",
            self._pool_min, self._pool_max,
        )

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("PostgreSQL connection pool closed")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")

        async with self._pool.connection() as conn:
            yield conn

    async def fetch_all(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Run a query and return rows as dicts (empty for statements without rows)."""
        async with self.connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                if cur.description is None:
                    return []
                return list(await cur.fetchall())

    async def ensure_schema(self) -> None:
        async with self.connection() as conn:
            await conn.execute(CONTACTS_DDL)

    async def health_check(self) -> bool:
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
                return True
        except Exception as e:
            logger.warning("Database health check failed: %s", e)
            return False

    @property
    def is_connected(self) -> bool:
        return self._pool is not None
