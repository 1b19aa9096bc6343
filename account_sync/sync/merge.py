"""
Preference merge resolver.

Array-valued preferences (favorites, bookmarks) are reconciled with
their remote copy by set union: the merged list holds every entry of
either side, local order first. A merge never removes anything; removal
is a deliberate local mutation that syncs like any other write.

Merged values are written back to local storage and announced on a
same-page event bus so other open views update without a reload.
Changes made in other tabs arrive as storage events and are re-read
and re-announced the same way.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from typing import Any

from ..local.base import KeyValueStorage, StorageEvent

logger = logging.getLogger(__name__)

PreferenceCallback = Callable[[str, list[Any]], None]


def union_merge(local: Iterable[Any], remote: Iterable[Any]) -> list[Any]:
    """Deduplicated union of two arrays, local order first.

    Entries are compared by value; unhashable entries (dicts) are compared
    through their JSON form.
    """
    merged: list[Any] = []
    seen: set[Any] = set()

    for item in [*local, *remote]:
        marker = _identity_of(item)
        if marker in seen:
            continue
        seen.add(marker)
        merged.append(item)

    return merged


def _identity_of(item: Any) -> Any:
    try:
        hash(item)
    except TypeError:
        return ("json", json.dumps(item, sort_keys=True, default=str))
    return ("value", type(item).__name__, item)


def as_list(raw: Any) -> list[Any]:
    """Coerce a stored value to a list; anything else reads as empty."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, ValueError):
            return []
    return list(raw) if isinstance(raw, list) else []


class PreferenceEvents:
    """Same-page notification bus for preference updates.

    Example:
        >>> events = PreferenceEvents()
        >>> unsubscribe = events.subscribe("hideout_game_favorites", on_update)
        >>> events.emit("hideout_game_favorites", ["Snake"])
        >>> unsubscribe()
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[PreferenceCallback]] = {}

    def subscribe(self, key: str, callback: PreferenceCallback) -> Callable[[], None]:
        """Register callback for key. Returns a function that unregisters it."""
        self._subscribers.setdefault(key, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(key, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def emit(self, key: str, values: list[Any]) -> None:
        """Deliver values to every subscriber of key."""
        for callback in list(self._subscribers.get(key, [])):
            try:
                callback(key, list(values))
            except Exception as e:
                logger.error(f"Preference subscriber failed for {key}: {e}")


class PreferenceMergeResolver:
    """Reconciles local array preferences with their remote copies."""

    def __init__(self, storage: KeyValueStorage, events: PreferenceEvents | None = None):
        """Initialize the resolver.

        Args:
            storage: Local storage the merged values are written to
            events: Same-page bus for update notifications
        """
        self.storage = storage
        self.events = events or PreferenceEvents()
        self._tracked: set[str] = set()
        self._attached = False

    async def read_local(self, key: str) -> list[Any]:
        """Current local value of key as a list."""
        raw = await self.storage.get_item(key)
        return as_list(raw) if raw else []

    async def reconcile(
        self,
        key: str,
        remote: Iterable[Any] | None,
        local: Iterable[Any] | None = None,
    ) -> list[Any]:
        """Merge the remote copy of key into the local one.

        Args:
            key: Preference key
            remote: Remote copy (None counts as empty)
            local: Local copy as last displayed (defaults to what is stored now)

        Returns:
            The merged list, as now stored locally
        """
        stored = await self.read_local(key)
        displayed = stored if local is None else list(local)
        merged = union_merge(displayed, remote or [])

        if merged != stored:
            await self.storage.set_item(key, json.dumps(merged))

        if merged != displayed:
            logger.debug(f"Merged {key}: {len(displayed)} local -> {len(merged)} entries")
            self.events.emit(key, merged)

        return merged

    async def apply_local(self, key: str, values: list[Any]) -> list[Any]:
        """Deliberately replace the local value of key and announce it."""
        values = list(values)
        await self.storage.set_item(key, json.dumps(values))
        self.events.emit(key, values)
        return values

    def track(self, key: str) -> None:
        """Follow cross-tab changes of key."""
        self._tracked.add(key)
        self.attach()

    def attach(self) -> None:
        """Start receiving storage events from other tabs."""
        if not self._attached:
            self.storage.add_listener(self.handle_storage_event)
            self._attached = True

    def detach(self) -> None:
        """Stop receiving storage events."""
        if self._attached:
            self.storage.remove_listener(self.handle_storage_event)
            self._attached = False

    def handle_storage_event(self, event: StorageEvent) -> None:
        """Re-apply a tracked key changed by another tab."""
        if event.key is None:
            for key in self._tracked:
                self.events.emit(key, [])
            return

        if event.key not in self._tracked:
            return

        values = as_list(event.new_value) if event.new_value else []
        self.events.emit(event.key, values)
