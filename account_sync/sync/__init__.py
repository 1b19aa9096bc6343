"""
Synchronization module.

Debounced push scheduling, logout suppression, remote push/pull,
array preference merging, and the engine that ties them together.
"""

from .client import RemoteSyncClient
from .engine import SyncEngine
from .guard import SessionLifecycleGuard
from .merge import PreferenceEvents, PreferenceMergeResolver, union_merge
from .scheduler import DebouncedScheduler

__all__ = [
    "SyncEngine",
    "RemoteSyncClient",
    "SessionLifecycleGuard",
    "DebouncedScheduler",
    "PreferenceEvents",
    "PreferenceMergeResolver",
    "union_merge",
]
