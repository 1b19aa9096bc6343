"""
Storage-backed identity provider.

Reads the identity record from persistent storage first and falls back
to session-scoped storage ("remember me" off).
"""

import json
import logging

from ..local.base import KeyValueStorage
from .provider import IdentityProvider
from .types import UserIdentity

logger = logging.getLogger(__name__)


class StorageIdentityProvider(IdentityProvider):
    """Identity provider reading a JSON record from local storage.

    Stored record:

    ```json
    {"id": "8c1f...", "username": "alice"}
    ```

    A missing, unparseable or id-less record means "not logged in".
    """

    def __init__(
        self,
        persistent: KeyValueStorage,
        session: KeyValueStorage | None = None,
        identity_key: str = "hideout_user",
    ):
        """Initialize the provider.

        Args:
            persistent: Persistent key-value storage (checked first)
            session: Session-scoped storage (fallback)
            identity_key: Key holding the identity record
        """
        self.persistent = persistent
        self.session = session
        self.identity_key = identity_key

    async def _read_record(self) -> str | None:
        record = await self.persistent.get_item(self.identity_key)
        if record:
            return record
        if self.session is not None:
            return await self.session.get_item(self.identity_key)
        return None

    async def get_current_identity(self) -> UserIdentity | None:
        record = await self._read_record()
        if not record:
            return None

        try:
            data = json.loads(record)
            if not isinstance(data, dict):
                raise ValueError("Identity record is not an object")
            return UserIdentity.from_dict(data)
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug(f"Ignoring unusable identity record: {e}")
            return None

    async def sign_out(self) -> None:
        """Remove the identity record from both storages."""
        await self.persistent.remove_item(self.identity_key)
        if self.session is not None:
            await self.session.remove_item(self.identity_key)

    async def sign_in(self, identity: UserIdentity, remember: bool = True) -> None:
        """Store an identity record.

        Args:
            identity: Identity to store
            remember: Store in persistent storage (else session storage)
        """
        target = self.persistent if remember or self.session is None else self.session
        await target.set_item(self.identity_key, json.dumps(identity.to_dict()))
