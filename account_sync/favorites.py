"""
Game favorites.

Favorites are kept locally under one key and, for signed-in users, in a
dedicated remote preference row. On load the two are union-merged so a
favorite added on any device survives; toggling writes the whole list
locally and to the remote row.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .identity.provider import IdentityProvider
from .sync.client import RemoteSyncClient
from .sync.merge import PreferenceMergeResolver, as_list

if TYPE_CHECKING:
    from .sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class FavoritesManager:
    """Favorites list shared by every open view.

    Example:
        >>> favorites = FavoritesManager.from_engine(engine)
        >>> await favorites.load()
        >>> await favorites.toggle("Slope")
        ['Slope']
    """

    def __init__(
        self,
        resolver: PreferenceMergeResolver,
        client: RemoteSyncClient,
        identity: IdentityProvider,
        key: str = "hideout_game_favorites",
        data_type: str = "game_favorites",
    ):
        """Initialize the manager.

        Args:
            resolver: Merge resolver writing to the intercepted local storage
            client: Remote client for the preference row
            identity: Resolves the signed-in user
            key: Local storage key of the list
            data_type: Remote preference row name
        """
        self.resolver = resolver
        self.client = client
        self.identity = identity
        self.key = key
        self.data_type = data_type
        self._favorites: list[str] = []

        self._unsubscribe = self.resolver.events.subscribe(self.key, self._on_update)
        self.resolver.track(self.key)

    @classmethod
    def from_engine(cls, engine: SyncEngine) -> FavoritesManager:
        """Build a manager sharing the engine's storage, client and event bus."""
        return cls(
            engine.resolver,
            engine.client,
            engine.identity,
            key=engine.config.favorites_key,
            data_type=engine.config.favorites_data_type,
        )

    @property
    def favorites(self) -> list[str]:
        return list(self._favorites)

    def _on_update(self, key: str, values: list[Any]) -> None:
        self._favorites = [str(v) for v in values]

    async def _remote_favorites(self, user_id: str | None) -> list[Any] | None:
        data = await self.client.get_preference(user_id, self.data_type)
        return as_list(data) if data is not None else None

    async def load(self) -> list[str]:
        """Merge local favorites with the remote row. Remote is not written."""
        local = await self.resolver.read_local(self.key)
        user_id = await self.identity.get_user_id()
        remote = await self._remote_favorites(user_id) if user_id else None

        merged = await self.resolver.reconcile(self.key, remote, local=local)
        self._favorites = [str(v) for v in merged]
        return self.favorites

    async def toggle(self, name: str) -> list[str]:
        """Add or remove a favorite and sync the whole list."""
        current = await self.resolver.read_local(self.key)

        if name in current:
            updated = [f for f in current if f != name]
        else:
            updated = [*current, name]

        await self.resolver.apply_local(self.key, updated)
        self._favorites = [str(v) for v in updated]

        user_id = await self.identity.get_user_id()
        if user_id:
            await self.client.put_preference(user_id, self.data_type, updated)

        return self.favorites

    async def is_favorite(self, name: str) -> bool:
        """True if name is a favorite locally or in the remote row."""
        if name in await self.resolver.read_local(self.key):
            return True

        user_id = await self.identity.get_user_id()
        if not user_id:
            return False

        remote = await self._remote_favorites(user_id)
        return remote is not None and name in remote

    def close(self) -> None:
        """Stop following updates."""
        self._unsubscribe()
