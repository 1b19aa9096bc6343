"""
Identity for account sync.

Resolves which user's remote record local state syncs with.
"""

from .provider import IdentityProvider
from .storage_provider import StorageIdentityProvider
from .types import UserIdentity

__all__ = [
    "IdentityProvider",
    "StorageIdentityProvider",
    "UserIdentity",
]
