"""
Tests for SyncEngine.

Covers the end-to-end timing and consistency properties: debounce
coalescing, logout suppression, pull/push round trips and bootstrap merge.
"""

import asyncio
import json

import pytest

from account_sync import InMemoryAccountStore, RemoteRecord, SyncConfig, SyncEngine
from account_sync.exceptions import RemoteStoreError

from .conftest import USER_ID


class FailingAccountStore(InMemoryAccountStore):
    """Account store whose every operation fails."""

    async def upsert_record(self, record):
        raise RemoteStoreError("upsert_record", RuntimeError("network down"))

    async def get_record(self, user_id):
        raise RemoteStoreError("get_record", RuntimeError("network down"))


class TestDebouncedPush:
    """Bursts of local writes coalesce into one push."""

    @pytest.mark.asyncio
    async def test_five_writes_200ms_apart_push_once(self, engine, clock, account_store, logged_in):
        """Five writes 200ms apart produce exactly one push ~1s after the last."""
        for i in range(5):
            await engine.storage.set_item(f"setting_{i}", json.dumps(i))
            if i < 4:
                clock.advance(0.2)

        clock.advance(0.99)
        await engine.wait_idle()
        assert account_store.upsert_count == 0

        clock.advance(0.02)
        await engine.wait_idle()
        assert account_store.upsert_count == 1

        record = await account_store.get_record(USER_ID)
        assert record is not None
        assert record.local_storage == {f"setting_{i}": i for i in range(5)}

    @pytest.mark.asyncio
    async def test_push_carries_state_of_last_write(self, engine, clock, account_store, logged_in):
        """The coalesced push carries the final value of a rewritten key."""
        await engine.storage.set_item("theme", "light")
        clock.advance(0.5)
        await engine.storage.set_item("theme", "dark")
        clock.advance(0.5)
        await engine.storage.remove_item("theme")
        await engine.storage.set_item("theme", "solarized")

        clock.advance(1.0)
        await engine.wait_idle()

        assert account_store.upsert_count == 1
        record = await account_store.get_record(USER_ID)
        assert record.local_storage == {"theme": "solarized"}

    @pytest.mark.asyncio
    async def test_separate_bursts_push_separately(self, engine, clock, account_store, logged_in):
        """Writes separated by a full quiet period push once each."""
        await engine.storage.set_item("a", "1")
        clock.advance(1.0)
        await engine.wait_idle()

        await engine.storage.set_item("b", "2")
        clock.advance(1.0)
        await engine.wait_idle()

        assert account_store.upsert_count == 2

    @pytest.mark.asyncio
    async def test_identity_write_does_not_schedule(self, engine, clock, account_store, logged_in):
        """Writing the identity record never triggers a push."""
        await engine.storage.set_item("hideout_user", json.dumps({"id": "user-2"}))

        assert not engine.scheduler.pending
        clock.advance(2.0)
        await engine.wait_idle()
        assert account_store.upsert_count == 0

    @pytest.mark.asyncio
    async def test_identity_never_pushed(self, engine, clock, account_store, logged_in):
        """The identity record is excluded from the pushed snapshot."""
        await engine.storage.set_item("hideout_settings", json.dumps({"theme": "dark"}))
        clock.advance(1.0)
        await engine.wait_idle()

        record = await account_store.get_record(USER_ID)
        assert "hideout_user" not in record.local_storage
        assert record.local_storage["hideout_settings"] == {"theme": "dark"}

    @pytest.mark.asyncio
    async def test_cookie_change_schedules_push(
        self, engine, clock, cookie_jar, account_store, logged_in
    ):
        """A changed cookie string detected by the poll schedules a push."""
        await engine.cookie_watcher.mark_observed()
        await cookie_jar.set_cookie("lang=en; path=/")

        assert await engine.cookie_watcher.check() is True
        clock.advance(1.0)
        await engine.wait_idle()

        record = await account_store.get_record(USER_ID)
        assert record.cookies == {"lang": "en"}

    @pytest.mark.asyncio
    async def test_not_logged_in_scheduled_push_is_noop(self, engine, clock, account_store):
        """Without an identity the scheduled push does not reach the store."""
        await engine.storage.set_item("a", "1")
        clock.advance(1.0)
        await engine.wait_idle()

        assert account_store.upsert_count == 0


class TestLogoutSuppression:
    """Pushes are suppressed during and briefly after logout."""

    @pytest.mark.asyncio
    async def test_set_logging_out_then_write_then_wait(
        self, engine, clock, account_store, logged_in
    ):
        """A write during suppression never pushes; one after the cooldown does."""
        engine.set_logging_out(True)
        await engine.storage.set_item("during", "1")

        clock.advance(2.5)
        await engine.wait_idle()
        assert account_store.upsert_count == 0

        await engine.storage.set_item("after", "2")
        clock.advance(1.0)
        await engine.wait_idle()

        assert account_store.upsert_count == 1
        record = await account_store.get_record(USER_ID)
        assert record.local_storage == {"during": 1, "after": 2}

    @pytest.mark.asyncio
    async def test_timer_armed_before_logout_is_skipped(
        self, engine, clock, account_store, logged_in
    ):
        """A timer already running when logout starts does not push on fire."""
        await engine.storage.set_item("a", "1")
        clock.advance(0.5)
        engine.set_logging_out(True)

        clock.advance(0.6)
        await engine.wait_idle()

        assert account_store.upsert_count == 0

    @pytest.mark.asyncio
    async def test_clear_local_data_does_not_repersist(
        self, engine, clock, local_storage, cookie_jar, account_store, logged_in
    ):
        """Purging local data and writing during the cooldown never pushes."""
        await engine.storage.set_item("hideout_settings", json.dumps({"theme": "dark"}))
        await cookie_jar.set_cookie("lang=en; path=/")
        assert await engine.save_to_account() is True
        assert account_store.upsert_count == 1

        await engine.storage.set_item("browser_history", "[]")  # pending timer
        result = await engine.clear_local_data()
        await engine.storage.set_item("late_write", "x")

        clock.advance(1.9)
        await engine.wait_idle()

        assert result.keys_removed == 2
        assert result.cookies_expired == 1
        assert account_store.upsert_count == 1
        assert await local_storage.keys() == ["hideout_user", "late_write"]
        assert await cookie_jar.get_cookie_string() == ""

        record = await account_store.get_record(USER_ID)
        assert record.local_storage == {"hideout_settings": {"theme": "dark"}}

    @pytest.mark.asyncio
    async def test_clear_keeps_identity(self, engine, local_storage, logged_in):
        """The identity record survives the purge."""
        await engine.storage.set_item("a", "1")

        await engine.clear_local_data()

        assert await local_storage.get_item("hideout_user") is not None
        assert await engine.is_logged_in() is True

    @pytest.mark.asyncio
    async def test_cookie_purge_not_seen_as_change(self, engine, clock, cookie_jar, logged_in):
        """After the cooldown the purged cookies do not register as a change."""
        await cookie_jar.set_cookie("lang=en; path=/")
        await engine.cookie_watcher.mark_observed()

        await engine.clear_local_data()
        clock.advance(2.5)

        assert await engine.cookie_watcher.check() is False

    @pytest.mark.asyncio
    async def test_explicit_save_refused_while_logging_out(
        self, engine, account_store, logged_in
    ):
        """An explicit save during suppression does not write."""
        engine.set_logging_out(True)

        assert await engine.save_to_account() is False
        assert account_store.upsert_count == 0


class TestSaveAndLoad:
    """Explicit save/load operations."""

    @pytest.mark.asyncio
    async def test_save_without_identity(self, engine, account_store):
        """Saving while not logged in makes no remote call and does not raise."""
        await engine.storage.set_item("a", "1")

        assert await engine.save_to_account() is False
        assert account_store.upsert_count == 0

    @pytest.mark.asyncio
    async def test_load_without_identity(self, engine):
        """Loading while not logged in is a no-op."""
        assert await engine.load_from_account() is False

    @pytest.mark.asyncio
    async def test_is_logged_in_from_session_storage(self, engine, session_storage):
        """An identity in session storage counts as logged in."""
        assert await engine.is_logged_in() is False

        await session_storage.set_item("hideout_user", json.dumps({"id": "session-user"}))

        assert await engine.is_logged_in() is True

    @pytest.mark.asyncio
    async def test_push_then_pull_round_trip(
        self, engine, local_storage, cookie_jar, account_store, logged_in
    ):
        """Pulling right after a push yields the pushed snapshots."""
        await engine.storage.set_item("hideout_settings", json.dumps({"theme": "dark"}))
        await engine.storage.set_item("browser_bookmarks", json.dumps([{"url": "https://a.test"}]))
        await engine.storage.set_item("plain", "hello")
        await cookie_jar.set_cookie("lang=en; path=/")

        assert await engine.save_to_account() is True
        pushed = await engine.adapter.read_all()

        record = await engine.client.pull(USER_ID)

        assert record is not None
        assert record.local_storage == pushed
        assert record.cookies == {"lang": "en"}

    @pytest.mark.asyncio
    async def test_load_restores_snapshot(
        self, engine, clock, local_storage, cookie_jar, account_store, logged_in
    ):
        """Loading writes remote values locally without echoing a push."""
        await account_store.upsert_record(
            RemoteRecord(
                user_id=USER_ID,
                local_storage={
                    "hideout_settings": {"theme": "dark"},
                    "hideout_user": {"id": "someone-else"},
                    "plain": "text",
                },
                cookies={"lang": "fr"},
            )
        )
        upserts = account_store.upsert_count

        assert await engine.load_from_account() is True

        assert json.loads(await local_storage.get_item("hideout_settings")) == {"theme": "dark"}
        assert await local_storage.get_item("plain") == "text"
        assert json.loads(await local_storage.get_item("hideout_user"))["id"] == USER_ID
        assert await cookie_jar.get_cookie_string() == "lang=fr"

        assert await engine.cookie_watcher.check() is False
        clock.advance(2.0)
        await engine.wait_idle()
        assert account_store.upsert_count == upserts

    @pytest.mark.asyncio
    async def test_load_absent_record(self, engine, logged_in):
        """A user without a record loads nothing and does not fail."""
        assert await engine.load_from_account() is False

    @pytest.mark.asyncio
    async def test_load_merges_favorites(
        self, engine, clock, local_storage, account_store, logged_in
    ):
        """Bootstrap union-merges favorites instead of overwriting them."""
        await local_storage.set_item("hideout_game_favorites", json.dumps(["A", "B"]))
        await account_store.upsert_record(
            RemoteRecord(user_id=USER_ID, local_storage={"hideout_game_favorites": ["B", "C"]})
        )
        upserts = account_store.upsert_count
        seen = []
        engine.events.subscribe("hideout_game_favorites", lambda key, values: seen.append(values))

        assert await engine.load_from_account() is True

        merged = json.loads(await local_storage.get_item("hideout_game_favorites"))
        assert set(merged) == {"A", "B", "C"}
        assert seen == [merged]

        # The merge itself does not write the remote store
        assert account_store.upsert_count == upserts
        record = await account_store.get_record(USER_ID)
        assert record.local_storage["hideout_game_favorites"] == ["B", "C"]

        # The merged union is persisted by the regular debounce path
        clock.advance(1.0)
        await engine.wait_idle()
        record = await account_store.get_record(USER_ID)
        assert set(record.local_storage["hideout_game_favorites"]) == {"A", "B", "C"}


class TestFailures:
    """Remote failures never escape the public operations."""

    @pytest.fixture
    async def failing_engine(self, local_storage, cookie_jar, identity, clock):
        engine = SyncEngine(
            local_storage, cookie_jar, FailingAccountStore(), identity, SyncConfig(), clock=clock
        )
        yield engine
        await engine.close()

    @pytest.mark.asyncio
    async def test_save_failure_returns_false(self, failing_engine, logged_in):
        """A failing upsert is logged and reported as False."""
        assert await failing_engine.save_to_account() is False

    @pytest.mark.asyncio
    async def test_load_failure_returns_false(self, failing_engine, logged_in):
        """A failing pull is logged and reported as False."""
        assert await failing_engine.load_from_account() is False

    @pytest.mark.asyncio
    async def test_scheduled_push_failure_is_swallowed(self, failing_engine, clock, logged_in):
        """A failing debounced push does not raise out of the timer."""
        await failing_engine.storage.set_item("a", "1")
        clock.advance(1.0)
        await failing_engine.wait_idle()

        assert not failing_engine.scheduler.pending


class TestSerializedPushes:
    """Explicit and scheduled pushes never interleave."""

    @pytest.mark.asyncio
    async def test_explicit_and_scheduled_pushes_serialize(
        self, engine, clock, account_store, logged_in
    ):
        """The last push to complete carries the newest state."""
        await engine.storage.set_item("value", "1")
        clock.advance(1.0)  # scheduled push starts
        await engine.storage.set_item("value", "2")
        await engine.save_to_account()
        await engine.wait_idle()

        record = await account_store.get_record(USER_ID)
        assert record.local_storage["value"] == 2

    @pytest.mark.asyncio
    async def test_storage_owned_by_one_engine(
        self, engine, cookie_jar, account_store, identity, clock
    ):
        """A storage observed by one engine cannot be handed to another."""
        with pytest.raises(ValueError):
            SyncEngine(engine.storage, cookie_jar, account_store, identity, clock=clock)


class TestConfiguredKeys:
    """Engine behavior under non-default configuration."""

    @pytest.mark.asyncio
    async def test_custom_favorites_key_is_merged(
        self, local_storage, cookie_jar, account_store, identity, clock, logged_in
    ):
        """A renamed favorites key is union-merged on load, not overwritten."""
        config = SyncConfig(favorites_key="my_favs")
        await local_storage.set_item("my_favs", json.dumps(["A"]))
        await account_store.upsert_record(
            RemoteRecord(user_id=USER_ID, local_storage={"my_favs": ["B"]})
        )

        async with SyncEngine(
            local_storage, cookie_jar, account_store, identity, config, clock=clock
        ) as engine:
            assert await engine.load_from_account() is True

        assert json.loads(await local_storage.get_item("my_favs")) == ["A", "B"]


class TestEventLoopClock:
    """Timers on the real event loop."""

    @pytest.mark.asyncio
    async def test_debounced_push_on_running_loop(
        self, local_storage, cookie_jar, account_store, identity, logged_in
    ):
        """Without an injected clock the debounce runs on loop timers."""
        config = SyncConfig(debounce_seconds=0.05)
        engine = SyncEngine(local_storage, cookie_jar, account_store, identity, config)

        await engine.storage.set_item("theme", "dark")
        await engine.storage.set_item("theme", "light")
        assert account_store.upsert_count == 0

        for _ in range(50):
            if account_store.upsert_count:
                break
            await asyncio.sleep(0.02)
        await engine.wait_idle()
        await engine.close()

        assert account_store.upsert_count == 1
        record = await account_store.get_record(USER_ID)
        assert record.local_storage == {"theme": "light"}
