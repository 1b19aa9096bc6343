"""
Change interception for local storage and cookies.

Every mutation made by any part of the application must reach the
scheduler without call sites notifying it themselves:
- Key-value writes go through ObservedKeyValueStorage, a decorator that
  reports each set/remove after the wrapped operation completes.
- Cookies have no change notification, so CookieWatcher polls the cookie
  string on a fixed interval and reports any difference.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..state import SyncEngineState
from .adapter import is_identity_key
from .base import CookieJar, KeyValueStorage, StorageListener

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[str], None]


class ObservedKeyValueStorage(KeyValueStorage):
    """Key-value storage that reports every mutation.

    The identity record is excluded: writes to it never notify.
    Notification happens only after the wrapped call returns, so a
    failing write raises as before and notifies nobody.
    """

    def __init__(
        self,
        inner: KeyValueStorage,
        on_change: ChangeCallback,
        identity_key: str = "hideout_user",
    ):
        """Wrap a storage.

        Args:
            inner: Storage that actually holds the data
            on_change: Called with the affected key after each mutation
            identity_key: Reserved key of the identity record
        """
        self.inner = inner
        self.on_change = on_change
        self.identity_key = identity_key

    def _notify(self, key: str) -> None:
        if is_identity_key(key, self.identity_key):
            return
        self.on_change(key)

    async def get_item(self, key: str) -> str | None:
        return await self.inner.get_item(key)

    async def set_item(self, key: str, value: str) -> None:
        result = await self.inner.set_item(key, value)
        self._notify(key)
        return result

    async def remove_item(self, key: str) -> None:
        result = await self.inner.remove_item(key)
        self._notify(key)
        return result

    async def keys(self) -> list[str]:
        return await self.inner.keys()

    async def clear(self) -> None:
        tracked = [k for k in await self.inner.keys() if not is_identity_key(k, self.identity_key)]
        result = await self.inner.clear()
        if tracked:
            self.on_change(tracked[0])
        return result

    def add_listener(self, listener: StorageListener) -> None:
        self.inner.add_listener(listener)

    def remove_listener(self, listener: StorageListener) -> None:
        self.inner.remove_listener(listener)


def observe_storage(
    storage: KeyValueStorage,
    on_change: ChangeCallback,
    identity_key: str = "hideout_user",
) -> ObservedKeyValueStorage:
    """Wrap storage for change reporting, at most once.

    One storage is owned by one change callback (one engine). Observing
    an already observed storage with the same callback returns it
    unchanged; with a different callback it raises.

    Raises:
        ValueError: If storage already reports to another callback
    """
    if isinstance(storage, ObservedKeyValueStorage):
        if storage.on_change != on_change:
            raise ValueError("Storage is already observed by another sync engine")
        return storage
    return ObservedKeyValueStorage(storage, on_change, identity_key)


class CookieWatcher:
    """Polls the cookie string and reports changes.

    Example:
        >>> watcher = CookieWatcher(cookie_jar, on_change=scheduler.notify, state=state)
        >>> await watcher.start()
        >>> ...
        >>> await watcher.stop()
    """

    def __init__(
        self,
        cookie_jar: CookieJar,
        on_change: Callable[[], object],
        state: SyncEngineState,
        interval: float = 1.0,
    ):
        """Initialize the watcher.

        Args:
            cookie_jar: Cookie jar to poll
            on_change: Called once per detected change
            state: Engine state holding the last observed cookie string
            interval: Seconds between polls
        """
        self.cookie_jar = cookie_jar
        self.on_change = on_change
        self.state = state
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def mark_observed(self, cookie_string: str | None = None) -> None:
        """Record the current cookie string as seen without reporting it."""
        if cookie_string is None:
            cookie_string = await self.cookie_jar.get_cookie_string()
        self.state.last_observed_cookie_string = cookie_string

    async def check(self) -> bool:
        """Run one poll. Returns True if the cookie string changed."""
        current = await self.cookie_jar.get_cookie_string()
        if current == self.state.last_observed_cookie_string:
            return False
        self.state.last_observed_cookie_string = current
        self.on_change()
        return True

    async def start(self) -> None:
        """Start polling in the background."""
        if self.running:
            return

        if self.state.last_observed_cookie_string is None:
            await self.mark_observed()

        async def poll_loop() -> None:
            while True:
                try:
                    await asyncio.sleep(self.interval)
                    await self.check()
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.warning(f"Cookie poll failed: {e}")

        self._task = asyncio.create_task(poll_loop())
        logger.debug(f"Cookie watcher started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Stop polling."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.debug("Cookie watcher stopped")
