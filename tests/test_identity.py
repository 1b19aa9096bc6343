"""Tests for identity module."""

from __future__ import annotations

import json

import pytest

from account_sync.identity import StorageIdentityProvider, UserIdentity
from account_sync.local import MemoryKeyValueStorage


class TestUserIdentity:
    """Tests for UserIdentity dataclass."""

    def test_to_dict(self) -> None:
        """Serialization writes the login UI record shape."""
        identity = UserIdentity(user_id="user-123", username="alice")

        data = identity.to_dict()

        assert data == {"id": "user-123", "username": "alice"}

    def test_from_dict(self) -> None:
        """Deserialization keeps unknown fields in raw."""
        identity = UserIdentity.from_dict(
            {"id": "user-123", "username": "alice", "avatar": "cat.png"}
        )

        assert identity.user_id == "user-123"
        assert identity.username == "alice"
        assert identity.email is None
        assert identity.raw["avatar"] == "cat.png"

    def test_from_dict_accepts_user_id(self) -> None:
        """The user_id field is accepted as an alternative to id."""
        assert UserIdentity.from_dict({"user_id": 42}).user_id == "42"

    def test_from_dict_requires_id(self) -> None:
        """A record without an id is rejected."""
        with pytest.raises(ValueError):
            UserIdentity.from_dict({"username": "alice"})
        with pytest.raises(ValueError):
            UserIdentity.from_dict({"id": ""})

    def test_roundtrip_keeps_extra_fields(self) -> None:
        """Extra fields survive a save/load cycle."""
        original = UserIdentity.from_dict({"id": "u", "avatar": "cat.png"})
        assert UserIdentity.from_dict(original.to_dict()) == original


class TestStorageIdentityProvider:
    """Tests for StorageIdentityProvider."""

    @pytest.fixture
    def persistent(self) -> MemoryKeyValueStorage:
        return MemoryKeyValueStorage()

    @pytest.fixture
    def session(self) -> MemoryKeyValueStorage:
        return MemoryKeyValueStorage()

    @pytest.fixture
    def provider(self, persistent, session) -> StorageIdentityProvider:
        return StorageIdentityProvider(persistent, session, identity_key="hideout_user")

    @pytest.mark.asyncio
    async def test_not_logged_in(self, provider) -> None:
        """No record means no identity."""
        assert await provider.get_current_identity() is None
        assert await provider.get_user_id() is None

    @pytest.mark.asyncio
    async def test_reads_persistent_record(self, provider, persistent) -> None:
        """The persistent record is used when present."""
        await persistent.set_item("hideout_user", json.dumps({"id": "user-1"}))

        assert await provider.get_user_id() == "user-1"

    @pytest.mark.asyncio
    async def test_persistent_wins_over_session(self, provider, persistent, session) -> None:
        """Persistent storage is consulted before session storage."""
        await persistent.set_item("hideout_user", json.dumps({"id": "persistent"}))
        await session.set_item("hideout_user", json.dumps({"id": "session"}))

        assert await provider.get_user_id() == "persistent"

    @pytest.mark.asyncio
    async def test_falls_back_to_session(self, provider, session) -> None:
        """Session storage is used when nothing is remembered."""
        await session.set_item("hideout_user", json.dumps({"id": "session"}))

        assert await provider.get_user_id() == "session"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", ["{not json", "[1, 2]", '"user-1"', '{"username": "x"}'])
    async def test_unusable_record(self, provider, persistent, record) -> None:
        """Unparseable or id-less records read as not logged in."""
        await persistent.set_item("hideout_user", record)

        assert await provider.get_current_identity() is None

    @pytest.mark.asyncio
    async def test_sign_in_and_out(self, provider, persistent, session) -> None:
        """sign_in stores the record; sign_out removes it everywhere."""
        await provider.sign_in(UserIdentity(user_id="user-1"), remember=False)
        assert await persistent.get_item("hideout_user") is None
        assert await provider.get_user_id() == "user-1"

        await provider.sign_in(UserIdentity(user_id="user-2"))
        assert await provider.get_user_id() == "user-2"

        await provider.sign_out()
        assert await provider.get_user_id() is None
        assert await session.get_item("hideout_user") is None

    @pytest.mark.asyncio
    async def test_without_session_storage(self, persistent) -> None:
        """A provider without session storage signs in persistently."""
        provider = StorageIdentityProvider(persistent)

        await provider.sign_in(UserIdentity(user_id="user-1"), remember=False)

        assert json.loads(await persistent.get_item("hideout_user")) == {"id": "user-1"}
