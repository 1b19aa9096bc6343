"""
Identity provider abstract interface.

Defines the contract that all identity providers must implement.
"""

from abc import ABC, abstractmethod

from .types import UserIdentity


class IdentityProvider(ABC):
    """Abstract identity provider.

    The sync engine only ever asks "who is signed in?". It never creates
    or validates identities; an absent identity simply means "not logged
    in" and turns every remote operation into a no-op.
    """

    @abstractmethod
    async def get_current_identity(self) -> UserIdentity | None:
        """Get the signed-in user, or None when nobody is signed in."""
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        """Forget the current identity.

        After sign out, get_current_identity() returns None.
        """
        ...

    async def get_user_id(self) -> str | None:
        """Convenience: get just user_id."""
        identity = await self.get_current_identity()
        return identity.user_id if identity else None
