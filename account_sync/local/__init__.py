"""
Local storage layer.

Storage substrates (key-value storage, cookie jar), whole-store
snapshot access, and change interception.
"""

from .adapter import (
    ClearResult,
    CookieSnapshot,
    LocalSnapshot,
    LocalStoreAdapter,
    decode_value,
    encode_value,
    is_identity_key,
)
from .base import CookieJar, KeyValueStorage, StorageEvent, StorageListener
from .cookies import MemoryCookieJar, expire_cookie, format_cookie, parse_cookie_string
from .file_storage import JsonFileKeyValueStorage
from .interceptor import CookieWatcher, ObservedKeyValueStorage, observe_storage
from .memory import MemoryKeyValueStorage, MemoryStorageArea

__all__ = [
    # Substrate
    "KeyValueStorage",
    "CookieJar",
    "StorageEvent",
    "StorageListener",
    "MemoryKeyValueStorage",
    "MemoryStorageArea",
    "JsonFileKeyValueStorage",
    "MemoryCookieJar",
    # Cookie helpers
    "parse_cookie_string",
    "format_cookie",
    "expire_cookie",
    # Snapshots
    "LocalStoreAdapter",
    "LocalSnapshot",
    "CookieSnapshot",
    "ClearResult",
    "decode_value",
    "encode_value",
    "is_identity_key",
    # Interception
    "ObservedKeyValueStorage",
    "observe_storage",
    "CookieWatcher",
]
