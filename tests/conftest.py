"""
Shared test configuration and fixtures.

Provides a manually advanced clock so debounce and cooldown timing can be
tested without real sleeps, plus in-memory storages, cookie jar, account
store and identity wiring.
"""

import json
from collections.abc import Callable

import pytest

from account_sync import InMemoryAccountStore, StorageIdentityProvider, SyncConfig, SyncEngine
from account_sync.local import MemoryCookieJar, MemoryKeyValueStorage, MemoryStorageArea

USER_ID = "user-1"


class ManualTimer:
    """Timer handle returned by ManualClock."""

    def __init__(self, when: float, callback: Callable[[], None]):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """
    Clock that only moves when advance() is called.

    Due callbacks run synchronously inside advance(), in deadline order,
    including callbacks armed by other callbacks.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._timers: list[ManualTimer] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self._timers.append(timer)
        return timer

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self._timers if not t.cancelled and t.when <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.when)
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target
        self._timers = [t for t in self._timers if not t.cancelled]

    @property
    def active_timers(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def storage_area() -> MemoryStorageArea:
    return MemoryStorageArea()


@pytest.fixture
def local_storage(storage_area: MemoryStorageArea) -> MemoryKeyValueStorage:
    return storage_area.view()


@pytest.fixture
def session_storage() -> MemoryKeyValueStorage:
    return MemoryKeyValueStorage()


@pytest.fixture
def cookie_jar() -> MemoryCookieJar:
    return MemoryCookieJar()


@pytest.fixture
def account_store() -> InMemoryAccountStore:
    return InMemoryAccountStore()


@pytest.fixture
def identity(local_storage, session_storage) -> StorageIdentityProvider:
    return StorageIdentityProvider(local_storage, session_storage, identity_key="hideout_user")


@pytest.fixture
async def logged_in(local_storage) -> str:
    """Store an identity record for USER_ID and return the id."""
    await local_storage.set_item("hideout_user", json.dumps({"id": USER_ID, "username": "alice"}))
    return USER_ID


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig()


@pytest.fixture
async def engine(local_storage, cookie_jar, account_store, identity, sync_config, clock):
    """Engine wired to in-memory collaborators and the manual clock (not started)."""
    engine = SyncEngine(
        local_storage,
        cookie_jar,
        account_store,
        identity,
        config=sync_config,
        clock=clock,
    )
    yield engine
    await engine.close()
