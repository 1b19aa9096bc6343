"""
In-memory account store.

Used for offline mode and tests. Values are deep-copied on the way in
and out, so callers can never mutate stored rows by reference.
"""

import copy
from datetime import UTC, datetime
from typing import Any

from .base import AccountStore, RemoteRecord


class InMemoryAccountStore(AccountStore):
    """Account store held in a dict."""

    def __init__(self) -> None:
        self._records: dict[str, RemoteRecord] = {}
        self._preferences: dict[tuple[str, str], Any] = {}
        self.upsert_count = 0
        self.preference_upsert_count = 0

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def upsert_record(self, record: RemoteRecord) -> RemoteRecord:
        stored = RemoteRecord(
            user_id=record.user_id,
            local_storage=copy.deepcopy(record.local_storage),
            cookies=dict(record.cookies),
            updated_at=datetime.now(UTC),
        )
        self._records[record.user_id] = stored
        self.upsert_count += 1
        return copy.deepcopy(stored)

    async def get_record(self, user_id: str) -> RemoteRecord | None:
        record = self._records.get(user_id)
        return copy.deepcopy(record) if record else None

    async def delete_record(self, user_id: str) -> bool:
        return self._records.pop(user_id, None) is not None

    async def upsert_preference(self, user_id: str, data_type: str, data: Any) -> None:
        self._preferences[(user_id, data_type)] = copy.deepcopy(data)
        self.preference_upsert_count += 1

    async def get_preference(self, user_id: str, data_type: str) -> Any | None:
        return copy.deepcopy(self._preferences.get((user_id, data_type)))

    def __len__(self) -> int:
        return len(self._records)
