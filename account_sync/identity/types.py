"""
Identity types.

The identity record is written by the account/login UI, not by this
package. It is stored as JSON under a reserved local key.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class UserIdentity:
    """Identity of the signed-in user.

    Only user_id is required; it keys the remote account record.
    """

    user_id: str
    username: str | None = None
    email: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the stored record shape."""
        data = dict(self.raw)
        data["id"] = self.user_id
        if self.username is not None:
            data["username"] = self.username
        if self.email is not None:
            data["email"] = self.email
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserIdentity":
        """Deserialize from a stored record.

        Accepts both ``id`` (login UI shape) and ``user_id``.

        Raises:
            ValueError: If the record has no usable id
        """
        user_id = data.get("id", data.get("user_id"))
        if user_id is None or user_id == "":
            raise ValueError("Identity record has no id")

        return cls(
            user_id=str(user_id),
            username=data.get("username"),
            email=data.get("email"),
            raw=dict(data),
        )
