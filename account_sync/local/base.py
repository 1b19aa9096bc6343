"""
Local storage substrate interfaces.

Models the two browser primitives the sync engine works against:
a persistent string key-value store (``localStorage``) and a cookie
jar (``document.cookie``). Both are shared by the whole application.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class StorageEvent:
    """Change made to a shared storage area by another view (tab).

    Attributes:
        key: Changed key, or None when the whole area was cleared
        old_value: Value before the change
        new_value: Value after the change (None when removed)
    """

    key: str | None
    old_value: str | None = None
    new_value: str | None = None


StorageListener = Callable[[StorageEvent], None]


class KeyValueStorage(ABC):
    """Persistent string key-value storage.

    Values are always strings; callers serialize structured data as JSON.
    """

    @abstractmethod
    async def get_item(self, key: str) -> str | None:
        """Return the value for key, or None if absent."""
        ...

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove key. Removing a missing key is a no-op."""
        ...

    @abstractmethod
    async def keys(self) -> list[str]:
        """Return all stored keys."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""
        ...

    def add_listener(self, listener: StorageListener) -> None:
        """Register for changes made through other views of the same area.

        Storages without a shared area never call the listener.
        """

    def remove_listener(self, listener: StorageListener) -> None:
        """Unregister a listener added with add_listener()."""


class CookieJar(ABC):
    """Cookie storage with ``document.cookie`` semantics."""

    @abstractmethod
    async def get_cookie_string(self) -> str:
        """Return all live cookies as ``name=value; name2=value2``."""
        ...

    @abstractmethod
    async def set_cookie(self, header: str) -> None:
        """Apply one ``name=value; attr=...`` assignment.

        An expiry in the past deletes the cookie.
        """
        ...
