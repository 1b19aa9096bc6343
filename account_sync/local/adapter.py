"""
Local key-value store adapter.

Takes and restores whole-store snapshots of local storage and cookies.
The identity record is never part of a snapshot and is never overwritten
by a restore; the identity provider owns it.

Every per-key failure is logged and skipped so one bad entry never
aborts a whole snapshot operation.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from ..exceptions import SerializationError
from .base import CookieJar, KeyValueStorage
from .cookies import expire_cookie, format_cookie, one_year_from_now, parse_cookie_string

logger = logging.getLogger(__name__)

LocalSnapshot = dict[str, Any]
CookieSnapshot = dict[str, str]


def is_identity_key(key: str, identity_key: str) -> bool:
    """Check whether key belongs to the identity record.

    Matches any key containing the identity key, so namespaced variants
    (``app:hideout_user``) are protected as well.
    """
    return identity_key in key


def decode_value(raw: str) -> Any:
    """Decode a stored value, keeping the raw string if it is not JSON."""
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, ValueError):
        return raw


def encode_value(key: str, value: Any) -> str:
    """Encode a snapshot value for storage. Strings are stored verbatim.

    Raises:
        SerializationError: If the value is not JSON serializable
    """
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise SerializationError(key, e) from e


@dataclass
class ClearResult:
    """Result of a local purge."""

    keys_removed: int = 0
    cookies_expired: int = 0


class LocalStoreAdapter:
    """Snapshot access to local storage and cookies.

    Example:
        >>> adapter = LocalStoreAdapter(storage, cookie_jar, identity_key="hideout_user")
        >>> snapshot = await adapter.read_all()
        >>> await adapter.write_all({"hideout_settings": {"theme": "dark"}})
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        cookie_jar: CookieJar,
        identity_key: str = "hideout_user",
        cookie_max_age_days: int = 365,
    ):
        """Initialize the adapter.

        Args:
            storage: Local key-value storage to snapshot
            cookie_jar: Cookie jar to snapshot
            identity_key: Reserved key of the identity record
            cookie_max_age_days: Lifetime of restored cookies
        """
        self.storage = storage
        self.cookie_jar = cookie_jar
        self.identity_key = identity_key
        self.cookie_max_age_days = cookie_max_age_days

    def is_identity_key(self, key: str) -> bool:
        return is_identity_key(key, self.identity_key)

    async def read_all(self) -> LocalSnapshot:
        """Read every stored preference except the identity record."""
        snapshot: LocalSnapshot = {}

        for key in await self.storage.keys():
            if self.is_identity_key(key):
                continue
            raw = await self.storage.get_item(key)
            if not raw:
                continue
            snapshot[key] = decode_value(raw)

        return snapshot

    async def write_all(self, snapshot: LocalSnapshot, storage: KeyValueStorage | None = None) -> int:
        """Apply a snapshot entry by entry.

        Args:
            snapshot: Values to write
            storage: Target storage (defaults to the adapter's storage)

        Returns:
            Number of keys written
        """
        target = storage or self.storage
        written = 0

        for key, value in snapshot.items():
            if self.is_identity_key(key):
                continue
            try:
                await target.set_item(key, encode_value(key, value))
                written += 1
            except Exception as e:
                logger.warning(f"Error setting {key}: {e}")

        return written

    async def read_all_cookies(self) -> CookieSnapshot:
        """Parse the full cookie string into a snapshot."""
        return parse_cookie_string(await self.cookie_jar.get_cookie_string())

    async def write_all_cookies(self, snapshot: CookieSnapshot) -> int:
        """Set every cookie with a one-year expiry, root path and lax same-site.

        Returns:
            Number of cookies written
        """
        expires = one_year_from_now(self.cookie_max_age_days)
        written = 0

        for name, value in snapshot.items():
            try:
                await self.cookie_jar.set_cookie(format_cookie(name, str(value), expires=expires))
                written += 1
            except Exception as e:
                logger.warning(f"Error setting cookie {name}: {e}")

        return written

    async def clear_all(self) -> ClearResult:
        """Remove every local entry and cookie except the identity record."""
        result = ClearResult()

        for key in await self.storage.keys():
            if self.is_identity_key(key):
                continue
            try:
                await self.storage.remove_item(key)
                result.keys_removed += 1
            except Exception as e:
                logger.warning(f"Error removing {key}: {e}")

        for name in await self.read_all_cookies():
            if self.is_identity_key(name):
                continue
            try:
                await self.cookie_jar.set_cookie(expire_cookie(name))
                result.cookies_expired += 1
            except Exception as e:
                logger.warning(f"Error expiring cookie {name}: {e}")

        return result
