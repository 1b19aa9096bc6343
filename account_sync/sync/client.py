"""
Remote sync client.

Best-effort push/pull of account snapshots. Failures are logged and
reported as a falsy result; nothing is raised and nothing is retried.
The user's local state stays authoritative whatever happens here.
"""

from __future__ import annotations

import logging
from typing import Any

from ..local.adapter import CookieSnapshot, LocalSnapshot
from ..remote.base import AccountStore, RemoteRecord
from .guard import SessionLifecycleGuard

logger = logging.getLogger(__name__)


class RemoteSyncClient:
    """Reads and writes the per-user account record.

    Example:
        >>> client = RemoteSyncClient(store, guard)
        >>> await client.push("user-1", {"theme": "dark"}, {"lang": "en"})
        True
        >>> record = await client.pull("user-1")
    """

    def __init__(self, store: AccountStore, guard: SessionLifecycleGuard | None = None):
        """Initialize the client.

        Args:
            store: Remote account store
            guard: Logout guard; pushes are refused while it suppresses
        """
        self.store = store
        self.guard = guard

    async def push(
        self,
        user_id: str | None,
        local_snapshot: LocalSnapshot,
        cookie_snapshot: CookieSnapshot,
    ) -> bool:
        """Replace the user's record with the given snapshots.

        Returns:
            True if the record was written
        """
        if not user_id:
            logger.debug("Not logged in, skipping push")
            return False

        if self.guard is not None and self.guard.suppressed:
            logger.debug("Push refused while logging out")
            return False

        try:
            await self.store.upsert_record(
                RemoteRecord(
                    user_id=user_id,
                    local_storage=local_snapshot,
                    cookies=cookie_snapshot,
                )
            )
        except Exception as e:
            logger.error(f"Error saving to account: {e}", extra={"user_id": user_id})
            return False

        logger.info(
            f"Saved {len(local_snapshot)} keys and {len(cookie_snapshot)} cookies to account",
            extra={"user_id": user_id},
        )
        return True

    async def pull(self, user_id: str | None) -> RemoteRecord | None:
        """Fetch the user's record.

        Returns:
            The record, or None when not logged in, absent, or on error
        """
        if not user_id:
            logger.debug("Not logged in, skipping pull")
            return None

        try:
            record = await self.store.get_record(user_id)
        except Exception as e:
            logger.error(f"Error loading from account: {e}", extra={"user_id": user_id})
            return None

        if record is None:
            logger.info("No account record yet", extra={"user_id": user_id})
        return record

    async def get_preference(self, user_id: str | None, data_type: str) -> Any | None:
        """Fetch a single preference row. None when absent or on error."""
        if not user_id:
            return None

        try:
            return await self.store.get_preference(user_id, data_type)
        except Exception as e:
            logger.warning(
                f"Error loading preference {data_type}: {e}", extra={"user_id": user_id}
            )
            return None

    async def put_preference(self, user_id: str | None, data_type: str, data: Any) -> bool:
        """Replace a single preference row. Returns whether it was written."""
        if not user_id:
            return False

        try:
            await self.store.upsert_preference(user_id, data_type, data)
        except Exception as e:
            logger.error(
                f"Error syncing preference {data_type}: {e}", extra={"user_id": user_id}
            )
            return False
        return True
