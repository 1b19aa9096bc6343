"""
In-memory key-value storage.

A MemoryStorageArea holds the data; each MemoryKeyValueStorage is one
view onto it, the way each browser tab sees the same localStorage.
Writes through one view raise a StorageEvent in every other view.
"""

import logging

from .base import KeyValueStorage, StorageEvent, StorageListener

logger = logging.getLogger(__name__)


class MemoryStorageArea:
    """Shared backing data for one or more storage views."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})
        self._views: list["MemoryKeyValueStorage"] = []

    def view(self) -> "MemoryKeyValueStorage":
        """Create a new view (tab) attached to this area."""
        return MemoryKeyValueStorage(area=self)

    def _attach(self, view: "MemoryKeyValueStorage") -> None:
        self._views.append(view)

    def _broadcast(self, source: "MemoryKeyValueStorage", event: StorageEvent) -> None:
        for view in self._views:
            if view is not source:
                view._dispatch(event)


class MemoryKeyValueStorage(KeyValueStorage):
    """Key-value storage held in memory.

    Example:
        >>> area = MemoryStorageArea()
        >>> tab_a, tab_b = area.view(), area.view()
        >>> tab_b.add_listener(lambda event: print(event.key))
        >>> await tab_a.set_item("theme", "dark")
        theme
    """

    def __init__(self, area: MemoryStorageArea | None = None):
        self.area = area or MemoryStorageArea()
        self.area._attach(self)
        self._listeners: list[StorageListener] = []

    async def get_item(self, key: str) -> str | None:
        return self.area.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be strings, got {type(value).__name__}")
        old_value = self.area.data.get(key)
        self.area.data[key] = value
        if old_value != value:
            self.area._broadcast(self, StorageEvent(key, old_value, value))

    async def remove_item(self, key: str) -> None:
        if key not in self.area.data:
            return
        old_value = self.area.data.pop(key)
        self.area._broadcast(self, StorageEvent(key, old_value, None))

    async def keys(self) -> list[str]:
        return list(self.area.data)

    async def clear(self) -> None:
        if not self.area.data:
            return
        self.area.data.clear()
        self.area._broadcast(self, StorageEvent(None))

    def add_listener(self, listener: StorageListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: StorageListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _dispatch(self, event: StorageEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Storage listener failed for key {event.key}: {e}")
