"""Keyed JSON document stores: a flat JSON file or a PostgreSQL JSONB table.

Both stores expose the same coroutine interface so the record
repositories never care which backend they run on.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Protocol

import asyncpg

from alphabot.core.exceptions import PersistenceError
from alphabot.shared.database import DatabaseManager

logger = logging.getLogger(__name__)

Document = dict[str, Any]


class DocumentStore(Protocol):
    async def get(self, key: str) -> Document | None: ...

    async def put(self, key: str, doc: Document) -> None: ...

    async def update(self, key: str, fields: Document) -> None: ...

    async def set_path(self, key: str, path: list[str], value: Any) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def all(self) -> dict[str, Document]: ...


async def _retry_on_db_error(func, max_retries: int = 2):
    """Retry helper for write operations."""
    for attempt in range(1, max_retries + 1):
        try:
            return await func()
        except asyncio.CancelledError:
            raise
        except (asyncpg.PostgresError, OSError) as e:
            if attempt < max_retries:
                delay = 0.5 * attempt
                logger.warning(
                    f"DB operation attempt {attempt}/{max_retries} failed: {type(e).__name__}, "
                    f"retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.exception(f"DB operation failed after {max_retries} attempts")
                raise PersistenceError(f"{type(e).__name__}: {e}") from e


def _assign_path(doc: Document, path: list[str], value: Any) -> None:
    node = doc
    for part in path[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[path[-1]] = value


class JsonDocumentStore:
    """Whole-file JSON object keyed by ID, held in memory and flushed on write.

    A missing file is created as ``{}``. A corrupt file is logged and reset
    to ``{}`` rather than stopping startup. Flushes write a temporary
    sibling file and ``os.replace`` it over the original.
    """

    def __init__(self, path: Path | str, *, beautify: bool = False) -> None:
        self.path = Path(path)
        self.beautify = beautify
        self._docs: dict[str, Document] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    def _read(self) -> dict[str, Document]:
        try:
            raw = self.path.read_text(encoding="utf-8")
            parsed = json.loads(raw) if raw.strip() else {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"{self.path.name} is unreadable: {e}") from e
        if not isinstance(parsed, dict):
            raise PersistenceError(f"{self.path.name} does not hold a JSON object")
        return {str(k): v for k, v in parsed.items() if isinstance(v, dict)}

    def _write(self, docs: dict[str, Document]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        indent = 4 if self.beautify else None
        payload = json.dumps(docs, ensure_ascii=False, indent=indent)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, self.path)

    def load(self) -> int:
        """Read the file into memory, resetting it if corrupt. Returns the doc count."""
        if not self.path.exists():
            self._docs = {}
            self._write(self._docs)
        else:
            try:
                self._docs = self._read()
            except PersistenceError as e:
                logger.warning(f"{e}; resetting to an empty store")
                self._docs = {}
                self._write(self._docs)
        self._loaded = True
        return len(self._docs)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    async def _flush(self) -> None:
        snapshot = copy.deepcopy(self._docs)
        try:
            await asyncio.to_thread(self._write, snapshot)
        except OSError as e:
            raise PersistenceError(f"Could not write {self.path}: {e}") from e

    async def get(self, key: str) -> Document | None:
        self._ensure_loaded()
        doc = self._docs.get(key)
        return copy.deepcopy(doc) if doc is not None else None

    async def put(self, key: str, doc: Document) -> None:
        self._ensure_loaded()
        async with self._lock:
            self._docs[key] = copy.deepcopy(doc)
            await self._flush()

    async def update(self, key: str, fields: Document) -> None:
        self._ensure_loaded()
        async with self._lock:
            self._docs.setdefault(key, {}).update(copy.deepcopy(fields))
            await self._flush()

    async def set_path(self, key: str, path: list[str], value: Any) -> None:
        self._ensure_loaded()
        async with self._lock:
            _assign_path(self._docs.setdefault(key, {}), path, copy.deepcopy(value))
            await self._flush()

    async def delete(self, key: str) -> bool:
        self._ensure_loaded()
        async with self._lock:
            if self._docs.pop(key, None) is None:
                return False
            await self._flush()
            return True

    async def all(self) -> dict[str, Document]:
        self._ensure_loaded()
        return copy.deepcopy(self._docs)


class PostgresDocumentStore:
    """One JSONB document per natural key in ``table``, upserted in place.

    Partial writes (``update``, ``set_path``) are single statements, so
    concurrent handlers touching different fields of one record do not
    overwrite each other.
    """

    def __init__(self, db: DatabaseManager, table: str, key_column: str) -> None:
        self.db = db
        self.table = table
        self.key_column = key_column

    async def get(self, key: str) -> Document | None:
        async with self.db.pool.acquire() as conn:
            raw = await conn.fetchval(
                f"SELECT data FROM {self.table} WHERE {self.key_column} = $1", key
            )
        return json.loads(raw) if raw is not None else None

    async def put(self, key: str, doc: Document) -> None:
        async def _query():
            async with self.db.pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.table} ({self.key_column}, data)
                    VALUES ($1, $2::jsonb)
                    ON CONFLICT ({self.key_column}) DO UPDATE SET
                        data       = EXCLUDED.data,
                        updated_at = NOW()
                    """,
                    key,
                    json.dumps(doc, ensure_ascii=False),
                )

        await _retry_on_db_error(_query)

    async def update(self, key: str, fields: Document) -> None:
        async def _query():
            async with self.db.pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.table} ({self.key_column}, data)
                    VALUES ($1, $2::jsonb)
                    ON CONFLICT ({self.key_column}) DO UPDATE SET
                        data       = {self.table}.data || EXCLUDED.data,
                        updated_at = NOW()
                    """,
                    key,
                    json.dumps(fields, ensure_ascii=False),
                )

        await _retry_on_db_error(_query)

    async def set_path(self, key: str, path: list[str], value: Any) -> None:
        # jsonb_set only creates the last path element, so missing parents
        # are seeded with empty objects first.
        async def _query():
            async with self.db.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        f"""
                        INSERT INTO {self.table} ({self.key_column}, data)
                        VALUES ($1, '{{}}'::jsonb)
                        ON CONFLICT ({self.key_column}) DO NOTHING
                        """,
                        key,
                    )
                    for depth in range(1, len(path)):
                        await conn.execute(
                            f"""
                            UPDATE {self.table}
                            SET data = jsonb_set(data, $2::text[], '{{}}'::jsonb, true)
                            WHERE {self.key_column} = $1
                              AND jsonb_typeof(data #> $2::text[]) IS DISTINCT FROM 'object'
                            """,
                            key,
                            path[:depth],
                        )
                    await conn.execute(
                        f"""
                        UPDATE {self.table}
                        SET data       = jsonb_set(data, $2::text[], $3::jsonb, true),
                            updated_at = NOW()
                        WHERE {self.key_column} = $1
                        """,
                        key,
                        path,
                        json.dumps(value, ensure_ascii=False),
                    )

        await _retry_on_db_error(_query)

    async def delete(self, key: str) -> bool:
        async with self.db.pool.acquire() as conn:
            status = await conn.execute(
                f"DELETE FROM {self.table} WHERE {self.key_column} = $1", key
            )
        return status.endswith(" 1")

    async def all(self) -> dict[str, Document]:
        async with self.db.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {self.key_column} AS key, data FROM {self.table}")
        return {r["key"]: json.loads(r["data"]) for r in rows}
