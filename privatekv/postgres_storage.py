"""
PostgreSQL storage backend for encrypted entries.

Stores each entry as its JSON wire representation, keyed by the fully
qualified key. The database only ever holds wrapped keys and ciphertext.

Schema (created by ``ensure_schema``):

    CREATE TABLE IF NOT EXISTS privatekv_entries (
        key        TEXT PRIMARY KEY,
        entry      TEXT NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

from __future__ import annotations

import logging
from typing import List, Optional

import asyncpg

from .entry import EncryptedEntry
from .errors import StorageError
from .storage import StorageAdapter, WriteReceipt

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "privatekv_entries"


def _escape_like(prefix: str) -> str:
    """Escape LIKE wildcards so a prefix matches literally."""
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresStorage(StorageAdapter):
    """
    PostgreSQL storage backend for encrypted entries.

    Overwrites are upserts; deletes remove the row.
    """

    def __init__(self, pool: asyncpg.Pool, table: str = DEFAULT_TABLE) -> None:
        """
        Initialize PostgreSQL storage.

        Args:
            pool: asyncpg connection pool
            table: Table name (must be a plain identifier)
        """
        if not table.replace("_", "").isalnum():
            raise StorageError(f"Invalid table name: {table}")
        self._pool = pool
        self._table = table

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the connection pool."""
        return self._pool

    async def ensure_schema(self) -> None:
        """Create the entries table if it does not exist."""
        query = f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                key        TEXT PRIMARY KEY,
                entry      TEXT NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
        """
        try:
            await self._pool.execute(query)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to create schema: {e}") from e

    async def set(self, key: str, entry: EncryptedEntry) -> WriteReceipt:
        query = f"""
            INSERT INTO {self._table} (key, entry, updated_at)
            VALUES ($1, $2, now())
            ON CONFLICT (key) DO UPDATE
            SET entry = EXCLUDED.entry, updated_at = EXCLUDED.updated_at
        """
        try:
            await self._pool.execute(query, key, entry.to_json())
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to store entry: {e}") from e
        logger.debug("Stored %s", key)
        return WriteReceipt()

    async def get(self, key: str) -> Optional[EncryptedEntry]:
        query = f"SELECT entry FROM {self._table} WHERE key = $1"
        try:
            row = await self._pool.fetchrow(query, key)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to get entry: {e}") from e
        if row is None:
            return None
        return EncryptedEntry.from_json(row["entry"])

    async def delete(self, key: str) -> WriteReceipt:
        query = f"DELETE FROM {self._table} WHERE key = $1"
        try:
            await self._pool.execute(query, key)
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to delete entry: {e}") from e
        return WriteReceipt()

    async def list(self, prefix: str = "") -> List[str]:
        query = f"SELECT key FROM {self._table} WHERE key LIKE $1 ESCAPE '\\' ORDER BY key"
        try:
            rows = await self._pool.fetch(query, _escape_like(prefix) + "%")
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to list entries: {e}") from e
        return [row["key"] for row in rows]

    async def truncate(self) -> None:
        """Remove every entry (used by tests)."""
        try:
            await self._pool.execute(f"TRUNCATE TABLE {self._table}")
        except asyncpg.PostgresError as e:
            raise StorageError(f"Failed to truncate entries: {e}") from e
