"""Tests for the channel ledger: favorites, ordering and follow sync."""

import asyncio
from datetime import UTC, datetime

import pytest

from presence.errors import NotFound, PersistenceFailure, ValidationFailure
from presence.models.channel import ChannelIdentity
from presence.repositories.channel import (
    SELECT_ALL_SQL,
    SET_FAVORITE_ORDER_SQL,
    UPSERT_IDENTITY_SQL,
)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def identity(channel_id, name=None, image="https://img/x.png"):
    return ChannelIdentity(channel_id=channel_id, display_name=name or channel_id, profile_image_url=image)


@pytest.fixture
def followed(db):
    for cid in ("a", "b", "c", "d"):
        db.add_channel(cid, cid.upper())


class TestReads:
    async def test_list_all_returns_records(self, ledger, followed):
        channels = await ledger.list_all()
        assert [c.channel_id for c in channels] == ["a", "b", "c", "d"]
        assert channels[0].display_name == "A"
        assert channels[0].is_favorite is False

    async def test_favorite_state_unknown_channel_is_none(self, ledger, followed):
        assert await ledger.get_favorite_state("zzz") is None
        assert await ledger.is_favorite("zzz") is False

    async def test_storage_error_becomes_persistence_failure(self, db, ledger):
        db.fail_on.add(SELECT_ALL_SQL)
        with pytest.raises(PersistenceFailure):
            await ledger.list_all()


class TestFavorites:
    async def test_mark_favorite_appends_in_call_order(self, db, ledger, followed):
        assert await ledger.mark_favorite("c") is True
        assert await ledger.mark_favorite("a") is True

        assert db.favorite_orders() == {"c": 0, "a": 1}
        assert [f.channel_id for f in await ledger.list_favorites()] == ["c", "a"]

    async def test_mark_favorite_twice_keeps_order(self, db, ledger, followed):
        await ledger.mark_favorite("a")
        await ledger.mark_favorite("b")
        assert await ledger.mark_favorite("a") is False
        assert db.favorite_orders() == {"a": 0, "b": 1}

    async def test_mark_favorite_unknown_channel(self, ledger, followed):
        with pytest.raises(NotFound):
            await ledger.mark_favorite("zzz")

    async def test_remove_favorite_clears_order_and_keeps_row(self, db, ledger, followed):
        db.channels["a"]["last_seen_at"] = T0
        await ledger.mark_favorite("a")

        assert await ledger.remove_favorite("a") is True
        assert db.channels["a"]["is_favorite"] is False
        assert db.channels["a"]["favorite_order"] is None
        assert db.channels["a"]["last_seen_at"] == T0

    async def test_remove_favorite_unknown_channel(self, ledger, followed):
        assert await ledger.remove_favorite("zzz") is False

    async def test_readded_favorite_goes_to_the_end(self, db, ledger, followed):
        for cid in ("a", "b", "c"):
            await ledger.mark_favorite(cid)
        await ledger.remove_favorite("a")
        await ledger.mark_favorite("a")

        assert [f.channel_id for f in await ledger.list_favorites()] == ["b", "c", "a"]

    async def test_add_favorite_creates_row(self, db, ledger):
        assert await ledger.add_favorite(identity("new", "Newcomer")) is True
        assert db.channels["new"]["display_name"] == "Newcomer"
        assert db.favorite_orders() == {"new": 0}

    async def test_add_favorite_is_idempotent(self, db, ledger, followed):
        await ledger.add_favorite(identity("a"))
        await ledger.add_favorite(identity("b"))
        assert await ledger.add_favorite(identity("a", "Renamed")) is False

        assert db.favorite_orders() == {"a": 0, "b": 1}
        assert db.channels["a"]["display_name"] == "Renamed"

    async def test_concurrent_adds_get_distinct_orders(self, db, ledger, followed):
        await asyncio.gather(*(ledger.mark_favorite(cid) for cid in ("a", "b", "c", "d")))

        orders = sorted(db.favorite_orders().values())
        assert orders == [0, 1, 2, 3]


class TestReorder:
    @pytest.fixture
    async def favorites(self, ledger, followed):
        for cid in ("a", "b", "c"):
            await ledger.mark_favorite(cid)

    async def test_reorder_rewrites_dense_sequence(self, db, ledger, favorites):
        assert await ledger.reorder_favorites(["c", "a", "b"]) == ["c", "a", "b"]
        assert db.favorite_orders() == {"c": 0, "a": 1, "b": 2}

    async def test_partial_reorder_appends_unlisted_favorites(self, db, ledger, favorites):
        assert await ledger.reorder_favorites(["c"]) == ["c", "a", "b"]
        assert db.favorite_orders() == {"c": 0, "a": 1, "b": 2}

    async def test_empty_reorder_compacts_gaps(self, db, ledger, favorites):
        await ledger.remove_favorite("b")
        assert db.favorite_orders() == {"a": 0, "c": 2}

        assert await ledger.reorder_favorites([]) == ["a", "c"]
        assert db.favorite_orders() == {"a": 0, "c": 1}

    async def test_reorder_rejects_non_favorite_without_writing(self, db, ledger, favorites):
        with pytest.raises(ValidationFailure):
            await ledger.reorder_favorites(["c", "d", "a"])

        assert db.favorite_orders() == {"a": 0, "b": 1, "c": 2}
        assert SET_FAVORITE_ORDER_SQL not in db.statements

    async def test_reorder_rejects_duplicates(self, db, ledger, favorites):
        with pytest.raises(ValidationFailure):
            await ledger.reorder_favorites(["a", "a"])
        assert db.favorite_orders() == {"a": 0, "b": 1, "c": 2}

    async def test_failed_write_rolls_back_whole_reorder(self, db, ledger, favorites):
        original = db.run

        async def fail_midway(sql, args):
            if sql == SET_FAVORITE_ORDER_SQL and args[1] == 2:
                raise ConnectionError("connection reset")
            return await original(sql, args)

        db.run = fail_midway
        with pytest.raises(PersistenceFailure):
            await ledger.reorder_favorites(["c", "b", "a"])

        assert db.favorite_orders() == {"a": 0, "b": 1, "c": 2}


class TestFollowSync:
    async def test_upsert_preserves_favorite_and_watermark(self, db, ledger, followed):
        await ledger.mark_favorite("a")
        db.channels["a"]["last_seen_at"] = T0

        await ledger.upsert_channels([identity("a", "New Name", "https://img/new.png")])

        row = db.channels["a"]
        assert row["display_name"] == "New Name"
        assert row["profile_image_url"] == "https://img/new.png"
        assert row["is_favorite"] is True
        assert row["favorite_order"] == 0
        assert row["last_seen_at"] == T0

    async def test_upsert_empty_is_noop(self, db, ledger):
        await ledger.upsert_channels([])
        assert UPSERT_IDENTITY_SQL not in db.statements

    async def test_remove_unfollowed(self, db, ledger, followed):
        removed = await ledger.remove_unfollowed(["a", "c"])
        assert sorted(removed) == ["b", "d"]
        assert sorted(db.channels) == ["a", "c"]

    async def test_remove_unfollowed_empty_list_keeps_everything(self, db, ledger, followed):
        assert await ledger.remove_unfollowed([]) == []
        assert len(db.channels) == 4

    async def test_mark_offline_returns_matched_ids(self, db, ledger, followed):
        assert await ledger.mark_offline(["a", "ghost"], T0) == ["a"]
        assert db.channels["a"]["last_seen_at"] == T0
