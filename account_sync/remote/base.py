"""
Remote account store interface.

One logical table keyed by user id. Each row holds two opaque JSON
blobs: the local storage snapshot and the cookie snapshot. Rows are
upserted by user id and replaced wholesale (last writer wins).

Stores also keep per-preference rows keyed by (user_id, data_type),
used for preferences that are synced on their own (favorites).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


@dataclass
class RemoteRecord:
    """Account row for one user.

    Attributes:
        user_id: Identity key of the row
        local_storage: Most recently pushed local snapshot
        cookies: Most recently pushed cookie snapshot
        updated_at: When the row was last written
    """

    user_id: str
    local_storage: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "user_id": self.user_id,
            "local_storage": self.local_storage,
            "cookies": self.cookies,
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteRecord:
        """Deserialize from dictionary."""
        updated_at = data.get("updated_at")
        return cls(
            user_id=data["user_id"],
            local_storage=data.get("local_storage") or {},
            cookies=data.get("cookies") or {},
            updated_at=datetime.fromisoformat(updated_at) if updated_at else datetime.now(UTC),
        )


class AccountStore(ABC):
    """Abstract remote account store.

    Implementations raise RemoteStoreError (or StorageConnectionError /
    AuthenticationError) on failure; the sync client turns those into
    logged, falsy results.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Open connections and create tables/containers if needed."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release connections."""
        ...

    @abstractmethod
    async def upsert_record(self, record: RemoteRecord) -> RemoteRecord:
        """Insert or replace the row for record.user_id."""
        ...

    @abstractmethod
    async def get_record(self, user_id: str) -> RemoteRecord | None:
        """Return the row for user_id, or None if absent."""
        ...

    @abstractmethod
    async def delete_record(self, user_id: str) -> bool:
        """Delete the row for user_id. Returns False if absent."""
        ...

    @abstractmethod
    async def upsert_preference(self, user_id: str, data_type: str, data: Any) -> None:
        """Insert or replace the (user_id, data_type) preference row."""
        ...

    @abstractmethod
    async def get_preference(self, user_id: str, data_type: str) -> Any | None:
        """Return the data of a preference row, or None if absent."""
        ...

    async def __aenter__(self) -> AccountStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
