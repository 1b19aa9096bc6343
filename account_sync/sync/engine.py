"""
Account synchronization engine.

Keeps locally stored preferences consistent with the user's remote
account record while the application keeps mutating local state:

    local write -> interceptor -> debounce (1s quiet) -> push
    cookie poll (1s) ----------^

- Push: local snapshot + cookie snapshot -> remote record (upsert)
- Pull: remote record -> local storage and cookies (on bootstrap)
- Merge: array preferences are union-merged instead of overwritten
- Logout: pushes are suppressed while local data is purged
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..clock import Clock, LoopClock
from ..config import SyncConfig
from ..identity.provider import IdentityProvider
from ..local.adapter import ClearResult, LocalStoreAdapter
from ..local.base import CookieJar, KeyValueStorage
from ..local.interceptor import CookieWatcher, ObservedKeyValueStorage, observe_storage
from ..logging_utils import SyncLoggerAdapter, get_sync_logger
from ..remote.base import AccountStore
from ..state import SyncEngineState
from .client import RemoteSyncClient
from .guard import SessionLifecycleGuard
from .merge import PreferenceEvents, PreferenceMergeResolver, as_list
from .scheduler import DebouncedScheduler

logger = logging.getLogger(__name__)


class SyncEngine:
    """Local/remote state synchronization engine.

    Application code must write through ``engine.storage``, the
    intercepting view of local storage, so every change is seen.

    Example:
        >>> engine = SyncEngine(local_storage, cookie_jar, store, identity)
        >>> async with engine:
        ...     await engine.load_from_account()
        ...     await engine.storage.set_item("hideout_settings", '{"theme": "dark"}')
        ...     # pushed about one second later
        ...     await engine.clear_local_data()  # on logout
    """

    def __init__(
        self,
        local_storage: KeyValueStorage,
        cookie_jar: CookieJar,
        store: AccountStore,
        identity: IdentityProvider,
        config: SyncConfig | None = None,
        clock: Clock | None = None,
        events: PreferenceEvents | None = None,
    ):
        """Initialize the engine.

        Args:
            local_storage: Persistent local key-value storage
            cookie_jar: Cookie storage
            store: Remote account store
            identity: Resolves the signed-in user
            config: Engine configuration
            clock: Timer source (the running event loop if None)
            events: Same-page preference notification bus
        """
        self.config = config or SyncConfig()
        self.clock = clock or LoopClock()
        self.state = SyncEngineState()
        self.identity = identity

        self.guard = SessionLifecycleGuard(
            self.state, self.clock, cooldown=self.config.logout_cooldown_seconds
        )
        self.scheduler = DebouncedScheduler(
            self._scheduled_push,
            self.state,
            self.guard,
            self.clock,
            delay=self.config.debounce_seconds,
        )

        self.storage: ObservedKeyValueStorage = observe_storage(
            local_storage, self.scheduler.notify, self.config.identity_key
        )
        self.raw_storage = self.storage.inner

        self.adapter = LocalStoreAdapter(
            self.storage,
            cookie_jar,
            identity_key=self.config.identity_key,
            cookie_max_age_days=self.config.cookie_max_age_days,
        )
        self.client = RemoteSyncClient(store, self.guard)
        self.cookie_watcher = CookieWatcher(
            cookie_jar,
            self.scheduler.notify,
            self.state,
            interval=self.config.cookie_poll_seconds,
        )
        self.resolver = PreferenceMergeResolver(self.storage, events)

        self._push_lock = asyncio.Lock()
        self._started = False

    @property
    def events(self) -> PreferenceEvents:
        return self.resolver.events

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Start cookie polling and cross-tab tracking of merged preferences."""
        if self._started:
            return

        await self.cookie_watcher.mark_observed()
        await self.cookie_watcher.start()
        for key in self.config.merge_keys:
            self.resolver.track(key)

        self._started = True
        logger.info("Sync engine started")

    async def close(self) -> None:
        """Stop polling, drop the pending timer and wait for in-flight pushes."""
        await self.cookie_watcher.stop()
        self.scheduler.cancel()
        self.guard.dispose()
        self.resolver.detach()
        await self.scheduler.wait_idle()
        self._started = False
        logger.info("Sync engine stopped")

    async def __aenter__(self) -> SyncEngine:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Public operations
    # =========================================================================

    async def is_logged_in(self) -> bool:
        """True when an identity record is present."""
        return await self._get_user_id() is not None

    def set_logging_out(self, flag: bool) -> None:
        """Raise (with cooldown) or lower push suppression."""
        self.guard.set_logging_out(flag)

    async def save_to_account(self) -> bool:
        """Push the current local state now, bypassing the debounce.

        Returns:
            True if the account record was written
        """
        user_id = await self._get_user_id()
        if user_id is None:
            logger.info("Not logged in, skipping save to account")
            return False
        return await self._push(user_id, reason="explicit")

    async def load_from_account(self) -> bool:
        """Restore local state from the account record and merge array preferences.

        Returns:
            True if a record was found and applied
        """
        user_id = await self._get_user_id()
        if user_id is None:
            logger.info("Not logged in, skipping load from account")
            return False

        log = self._log(user_id)
        record = await self.client.pull(user_id)
        if record is None:
            return False

        try:
            local_before = {key: await self.resolver.read_local(key) for key in self.config.merge_keys}

            # Restores bypass the interceptor so they do not echo back as a push
            await self.adapter.write_all(record.local_storage, storage=self.raw_storage)
            await self.adapter.write_all_cookies(record.cookies)
            await self.cookie_watcher.mark_observed()

            for key in self.config.merge_keys:
                if key in record.local_storage:
                    await self.resolver.reconcile(
                        key, as_list(record.local_storage[key]), local=local_before[key]
                    )
        except Exception as e:
            log.error(f"Error applying account data: {e}")
            return False

        log.info(
            f"Loaded {len(record.local_storage)} keys and {len(record.cookies)} cookies from account"
        )
        return True

    async def clear_local_data(self) -> ClearResult:
        """Purge local preferences and cookies on logout.

        Suppression starts before the first deletion, so none of the
        deletions can schedule a push that would revive the data.
        """
        self.guard.begin_logout()
        self.scheduler.cancel()

        try:
            result = await self.adapter.clear_all()
            await self.cookie_watcher.mark_observed()
        except Exception as e:
            logger.error(f"Error clearing local data: {e}")
            return ClearResult()

        logger.info(
            f"Cleared local data: {result.keys_removed} keys, {result.cookies_expired} cookies"
        )
        return result

    # =========================================================================
    # Push path
    # =========================================================================

    async def _scheduled_push(self) -> bool:
        user_id = await self._get_user_id()
        if user_id is None:
            return False
        return await self._push(user_id, reason="debounced")

    async def _push(self, user_id: str, reason: str) -> bool:
        """Serialized push. The snapshot is taken under the lock so the
        last push to run always carries the newest state."""
        log = self._log(user_id).bind(reason=reason)

        async with self._push_lock:
            if self.guard.suppressed:
                log.debug("Skipping push while logging out")
                return False

            try:
                local_snapshot = await self.adapter.read_all()
                cookie_snapshot = await self.adapter.read_all_cookies()
            except Exception as e:
                log.error(f"Error reading local state for push: {e}")
                return False

            pushed = await self.client.push(user_id, local_snapshot, cookie_snapshot)

        if pushed:
            log.debug("Completed push")
        return pushed

    async def wait_idle(self) -> None:
        """Wait for scheduled pushes that have already started."""
        await self.scheduler.wait_idle()

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_user_id(self) -> str | None:
        try:
            return await self.identity.get_user_id()
        except Exception as e:
            logger.warning(f"Could not resolve identity: {e}")
            return None

    def _log(self, user_id: str) -> SyncLoggerAdapter:
        return get_sync_logger(__name__, user_id=user_id)
