"""
SQLite account store.

Embedded remote store for single-host deployments and testing.
Snapshots are stored as JSON text; upserts use ON CONFLICT so a user
never has more than one row.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import aiosqlite

from ..exceptions import RemoteStoreError, StorageConnectionError
from .base import AccountStore, RemoteRecord

logger = logging.getLogger(__name__)


@dataclass
class SQLiteConfig:
    """Configuration for SQLite storage."""

    db_path: str | Path = ":memory:"


class SQLiteAccountStore(AccountStore):
    """
    SQLite account store.

    Tables:
    - user_data: one row per user_id (local_storage, cookies)
    - user_preferences: one row per (user_id, data_type)
    """

    def __init__(self, config: SQLiteConfig | None = None):
        self.config = config or SQLiteConfig()
        self.conn: aiosqlite.Connection | None = None
        self._initialized = False

    @classmethod
    async def create(cls, config: SQLiteConfig | None = None) -> SQLiteAccountStore:
        """Create and initialize a SQLite account store."""
        store = cls(config)
        await store.initialize()
        return store

    async def initialize(self) -> None:
        """Initialize SQLite connection and schema."""
        if self._initialized:
            return

        db_path = self.config.db_path
        if db_path != ":memory:":
            Path(db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            db_path = str(Path(db_path).expanduser())

        try:
            self.conn = await aiosqlite.connect(str(db_path))

            await self.conn.execute("""
                CREATE TABLE IF NOT EXISTS user_data (
                    user_id TEXT NOT NULL PRIMARY KEY,
                    local_storage TEXT NOT NULL DEFAULT '{}',
                    cookies TEXT NOT NULL DEFAULT '{}',
                    updated_at TEXT NOT NULL
                )
            """)

            await self.conn.execute("""
                CREATE TABLE IF NOT EXISTS user_preferences (
                    user_id TEXT NOT NULL,
                    data_type TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, data_type)
                )
            """)

            await self.conn.commit()
            self._initialized = True
            logger.info(
                f"Account store initialized: {self.config.db_path}", extra={"backend": "sqlite"}
            )

        except (aiosqlite.Error, OSError) as e:
            raise StorageConnectionError(str(self.config.db_path), e) from e

    async def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None
        self._initialized = False

    def _require_conn(self, operation: str) -> aiosqlite.Connection:
        if self.conn is None:
            raise RemoteStoreError(operation, RuntimeError("Store not initialized"))
        return self.conn

    async def upsert_record(self, record: RemoteRecord) -> RemoteRecord:
        conn = self._require_conn("upsert_record")
        updated_at = datetime.now(UTC)

        try:
            await conn.execute(
                """
                INSERT INTO user_data (user_id, local_storage, cookies, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id) DO UPDATE SET
                    local_storage = excluded.local_storage,
                    cookies = excluded.cookies,
                    updated_at = excluded.updated_at
                """,
                (
                    record.user_id,
                    json.dumps(record.local_storage),
                    json.dumps(record.cookies),
                    updated_at.isoformat(),
                ),
            )
            await conn.commit()
        except (aiosqlite.Error, TypeError, ValueError) as e:
            raise RemoteStoreError("upsert_record", e) from e

        return RemoteRecord(
            user_id=record.user_id,
            local_storage=record.local_storage,
            cookies=record.cookies,
            updated_at=updated_at,
        )

    async def get_record(self, user_id: str) -> RemoteRecord | None:
        conn = self._require_conn("get_record")

        try:
            async with conn.execute(
                "SELECT local_storage, cookies, updated_at FROM user_data WHERE user_id = ?",
                (user_id,),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise RemoteStoreError("get_record", e) from e

        if row is None:
            return None

        try:
            return RemoteRecord(
                user_id=user_id,
                local_storage=json.loads(row[0]),
                cookies=json.loads(row[1]),
                updated_at=datetime.fromisoformat(row[2]),
            )
        except (json.JSONDecodeError, ValueError) as e:
            raise RemoteStoreError("get_record", e) from e

    async def delete_record(self, user_id: str) -> bool:
        conn = self._require_conn("delete_record")

        try:
            cursor = await conn.execute("DELETE FROM user_data WHERE user_id = ?", (user_id,))
            await conn.commit()
        except aiosqlite.Error as e:
            raise RemoteStoreError("delete_record", e) from e

        return cursor.rowcount > 0

    async def upsert_preference(self, user_id: str, data_type: str, data: Any) -> None:
        conn = self._require_conn("upsert_preference")

        try:
            await conn.execute(
                """
                INSERT INTO user_preferences (user_id, data_type, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (user_id, data_type) DO UPDATE SET
                    data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (user_id, data_type, json.dumps(data), datetime.now(UTC).isoformat()),
            )
            await conn.commit()
        except (aiosqlite.Error, TypeError, ValueError) as e:
            raise RemoteStoreError("upsert_preference", e) from e

    async def get_preference(self, user_id: str, data_type: str) -> Any | None:
        conn = self._require_conn("get_preference")

        try:
            async with conn.execute(
                "SELECT data FROM user_preferences WHERE user_id = ? AND data_type = ?",
                (user_id, data_type),
            ) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise RemoteStoreError("get_preference", e) from e

        if row is None:
            return None

        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            raise RemoteStoreError("get_preference", e) from e
