"""asyncpg pool behind the PostgreSQL document store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import asyncpg

LOGGER = logging.getLogger("Database")

SchemaSetup = Callable[[asyncpg.Connection], Awaitable[None]]


class DatabaseManager:
    """Owns the pool: connect with backoff, create the schema once, close."""

    def __init__(
        self,
        database_url: str,
        *,
        min_size: int = 1,
        max_size: int = 5,
        command_timeout: float = 15.0,
        retries: int = 3,
        retry_delay: float = 2.0,
        schema: SchemaSetup | None = None,
    ) -> None:
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self.retries = retries
        self.retry_delay = retry_delay
        self.schema = schema
        self._pool: asyncpg.Pool | None = None

    async def _on_connection(self, conn: asyncpg.Connection) -> None:
        await conn.execute(f"SET statement_timeout = {int(self.command_timeout * 1000)}")

    async def _open_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(
            dsn=self.database_url,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
            init=self._on_connection,
        )
        try:
            async with pool.acquire() as conn:
                if self.schema is not None:
                    await self.schema(conn)
                else:
                    await conn.fetchval("SELECT 1")
        except BaseException:
            pool.terminate()
            raise
        return pool

    async def connect(self) -> None:
        if self._pool is not None:
            return

        for attempt in range(1, self.retries + 1):
            try:
                self._pool = await self._open_pool()
            except (OSError, asyncpg.PostgresError) as e:
                if attempt == self.retries:
                    LOGGER.error(f"Could not reach PostgreSQL after {attempt} attempts: {e}")
                    raise
                delay = self.retry_delay * 2 ** (attempt - 1)
                LOGGER.warning(
                    f"PostgreSQL connect attempt {attempt}/{self.retries} failed "
                    f"({type(e).__name__}: {e}), retrying in {delay:g}s"
                )
                await asyncio.sleep(delay)
            else:
                LOGGER.info(f"PostgreSQL pool ready ({self.min_size}-{self.max_size} connections)")
                return

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        if pool is None:
            return
        try:
            await pool.close()
        except (OSError, asyncpg.PostgresError) as e:
            LOGGER.warning(f"Error closing PostgreSQL pool: {e}")
            pool.terminate()
        else:
            LOGGER.info("PostgreSQL pool closed")

    async def check_health(self) -> bool:
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncio.TimeoutError, asyncpg.PostgresError) as e:
            LOGGER.debug(f"PostgreSQL health check failed: {e}")
            return False
        return True

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool is not open, call connect() first")
        return self._pool
