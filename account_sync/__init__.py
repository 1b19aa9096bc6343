"""
Account Sync

Keeps locally stored user preferences (settings, history, bookmarks,
favorites, cookies) in sync with a per-user remote account record.

Provides:
- Transparent interception of local storage and cookie changes
- Debounced, serialized pushes of the full local snapshot
- Union merge of array-valued preferences
- Push suppression while local data is purged on logout
- Remote store backends (in-memory, SQLite, Cosmos DB)

Usage:

    >>> from account_sync import SyncConfig, SyncEngine, StorageIdentityProvider
    >>> from account_sync import configure_sync_logging
    >>> from account_sync.local import JsonFileKeyValueStorage, MemoryCookieJar
    >>> from account_sync.remote import create_account_store
    >>>
    >>> configure_sync_logging()
    >>> config = SyncConfig.load("~/.hideout/settings.yaml")
    >>> local = JsonFileKeyValueStorage("~/.hideout/local_storage.json")
    >>> identity = StorageIdentityProvider(local, identity_key=config.identity_key)
    >>> async with create_account_store(config) as store:
    ...     async with SyncEngine(local, MemoryCookieJar(), store, identity, config) as engine:
    ...         await engine.load_from_account()
    ...         await engine.storage.set_item("browser_history", "[]")
"""

from .config import SyncConfig
from .exceptions import (
    AccountSyncError,
    AuthenticationError,
    ConfigurationError,
    RemoteStoreError,
    SerializationError,
    StorageConnectionError,
    StorageIOError,
)
from .favorites import FavoritesManager
from .identity import IdentityProvider, StorageIdentityProvider, UserIdentity
from .logging_utils import configure_sync_logging
from .remote import AccountStore, InMemoryAccountStore, RemoteRecord, create_account_store
from .state import SyncEngineState
from .sync import (
    DebouncedScheduler,
    PreferenceEvents,
    PreferenceMergeResolver,
    RemoteSyncClient,
    SessionLifecycleGuard,
    SyncEngine,
    union_merge,
)

__all__ = [
    # Engine
    "SyncEngine",
    "SyncEngineState",
    "SyncConfig",
    # Components
    "DebouncedScheduler",
    "SessionLifecycleGuard",
    "RemoteSyncClient",
    "PreferenceEvents",
    "PreferenceMergeResolver",
    "union_merge",
    "FavoritesManager",
    # Logging
    "configure_sync_logging",
    # Identity
    "IdentityProvider",
    "StorageIdentityProvider",
    "UserIdentity",
    # Remote
    "AccountStore",
    "InMemoryAccountStore",
    "RemoteRecord",
    "create_account_store",
    # Exceptions
    "AccountSyncError",
    "StorageIOError",
    "SerializationError",
    "RemoteStoreError",
    "StorageConnectionError",
    "AuthenticationError",
    "ConfigurationError",
]

__version__ = "0.1.0"
