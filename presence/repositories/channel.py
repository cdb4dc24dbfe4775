"""Repository for the ``followed_channels`` ledger."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

import asyncpg

from presence.database import translate_errors
from presence.errors import NotFound, ValidationFailure
from presence.models.channel import ChannelIdentity, ChannelRecord

logger = logging.getLogger(__name__)

# Transaction-scoped advisory lock that serializes favorite order allocation.
FAVORITES_LOCK_KEY = 7_201_455

_COLUMNS = (
    "channel_id, display_name, profile_image_url, is_favorite, "
    "favorite_order, last_seen_at, followed_at"
)

SELECT_ALL_SQL = f"SELECT {_COLUMNS} FROM followed_channels ORDER BY channel_id"

SELECT_FAVORITES_SQL = (
    f"SELECT {_COLUMNS} FROM followed_channels "
    "WHERE is_favorite ORDER BY favorite_order, channel_id"
)

SELECT_FAVORITE_FLAG_SQL = "SELECT is_favorite FROM followed_channels WHERE channel_id = $1"

LOCK_FAVORITES_SQL = "SELECT pg_advisory_xact_lock($1)"

NEXT_FAVORITE_ORDER_SQL = (
    "SELECT COALESCE(MAX(favorite_order) + 1, 0) FROM followed_channels WHERE is_favorite"
)

MARK_FAVORITE_SQL = """
    UPDATE followed_channels SET
        is_favorite    = TRUE,
        favorite_order = $2,
        updated_at     = NOW()
    WHERE channel_id = $1
"""

CLEAR_FAVORITE_SQL = """
    UPDATE followed_channels SET
        is_favorite    = FALSE,
        favorite_order = NULL,
        updated_at     = NOW()
    WHERE channel_id = $1
    RETURNING channel_id
"""

SELECT_FAVORITE_IDS_FOR_UPDATE_SQL = (
    "SELECT channel_id FROM followed_channels "
    "WHERE is_favorite ORDER BY favorite_order, channel_id FOR UPDATE"
)

SET_FAVORITE_ORDER_SQL = (
    "UPDATE followed_channels SET favorite_order = $2, updated_at = NOW() WHERE channel_id = $1"
)

UPSERT_IDENTITY_SQL = """
    INSERT INTO followed_channels (channel_id, display_name, profile_image_url, followed_at)
    VALUES ($1, $2, $3, $4)
    ON CONFLICT (channel_id) DO UPDATE SET
        display_name      = EXCLUDED.display_name,
        profile_image_url = EXCLUDED.profile_image_url,
        followed_at       = COALESCE(EXCLUDED.followed_at, followed_channels.followed_at),
        updated_at        = NOW()
"""

DELETE_UNFOLLOWED_SQL = (
    "DELETE FROM followed_channels WHERE NOT (channel_id = ANY($1::text[])) RETURNING channel_id"
)

MARK_OFFLINE_SQL = """
    UPDATE followed_channels SET
        last_seen_at = $2,
        updated_at   = NOW()
    WHERE channel_id = ANY($1::text[])
    RETURNING channel_id
"""


def _identity_args(identity: ChannelIdentity) -> tuple:
    return (
        identity.channel_id,
        identity.display_name,
        identity.profile_image_url,
        identity.followed_at,
    )


class ChannelRepository:
    """SQL operations for followed channels, favorites and last-seen watermarks."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # ==================== Reads ====================

    async def list_all(self) -> list[ChannelRecord]:
        """Return every tracked channel."""
        async with translate_errors("get followed channels"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(SELECT_ALL_SQL)
        return [ChannelRecord(**dict(r)) for r in rows]

    async def list_favorites(self) -> list[ChannelRecord]:
        """Return favorites in manual order."""
        async with translate_errors("get favorites"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(SELECT_FAVORITES_SQL)
        return [ChannelRecord(**dict(r)) for r in rows]

    async def get_favorite_state(self, channel_id: str) -> bool | None:
        """Return the favorite flag, or ``None`` if the channel is unknown."""
        async with translate_errors("check favorite status"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(SELECT_FAVORITE_FLAG_SQL, channel_id)
        if row is None:
            return None
        return bool(row["is_favorite"])

    async def is_favorite(self, channel_id: str) -> bool:
        return bool(await self.get_favorite_state(channel_id))

    # ==================== Favorites ====================

    async def _mark_favorite(self, conn: asyncpg.Connection, channel_id: str) -> bool:
        """Give *channel_id* the next order slot. Caller holds the favorites lock."""
        row = await conn.fetchrow(SELECT_FAVORITE_FLAG_SQL, channel_id)
        if row is None:
            raise NotFound(f"Channel {channel_id} is not followed")
        if row["is_favorite"]:
            return False

        next_order = await conn.fetchval(NEXT_FAVORITE_ORDER_SQL)
        await conn.execute(MARK_FAVORITE_SQL, channel_id, next_order)
        logger.debug(f"Channel {channel_id} favorited at position {next_order}")
        return True

    async def add_favorite(self, identity: ChannelIdentity) -> bool:
        """Insert or refresh the channel row and mark it favorite.

        Returns ``False`` when it already was a favorite (its order is kept).
        """
        async with translate_errors("add favorite"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(LOCK_FAVORITES_SQL, FAVORITES_LOCK_KEY)
                    await conn.execute(UPSERT_IDENTITY_SQL, *_identity_args(identity))
                    return await self._mark_favorite(conn, identity.channel_id)

    async def mark_favorite(self, channel_id: str) -> bool:
        """Mark an existing ledger row favorite. Raises ``NotFound`` for unknown ids."""
        async with translate_errors("add favorite"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(LOCK_FAVORITES_SQL, FAVORITES_LOCK_KEY)
                    return await self._mark_favorite(conn, channel_id)

    async def remove_favorite(self, channel_id: str) -> bool:
        """Clear the favorite flag and order. The row and its history stay."""
        async with translate_errors("remove favorite"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(LOCK_FAVORITES_SQL, FAVORITES_LOCK_KEY)
                    rows = await conn.fetch(CLEAR_FAVORITE_SQL, channel_id)
        return len(rows) > 0

    async def reorder_favorites(self, ordered_ids: Sequence[str]) -> list[str]:
        """Rewrite favorite orders as a dense 0..n-1 sequence.

        *ordered_ids* leads the new order; favorites it does not mention keep
        their relative order after it. An id that is not a current favorite,
        or a repeated id, rejects the whole call with nothing written.
        Returns the resulting order.
        """
        seen: set[str] = set()
        duplicates: set[str] = set()
        for cid in ordered_ids:
            if cid in seen:
                duplicates.add(cid)
            seen.add(cid)
        if duplicates:
            raise ValidationFailure(f"Duplicate ids in reorder request: {sorted(duplicates)}")

        async with translate_errors("reorder favorites"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(LOCK_FAVORITES_SQL, FAVORITES_LOCK_KEY)
                    rows = await conn.fetch(SELECT_FAVORITE_IDS_FOR_UPDATE_SQL)
                    current = [r["channel_id"] for r in rows]

                    favorites = set(current)
                    unknown = [cid for cid in ordered_ids if cid not in favorites]
                    if unknown:
                        raise ValidationFailure(f"Not favorites: {unknown}")

                    final = list(ordered_ids) + [cid for cid in current if cid not in seen]
                    await conn.executemany(
                        SET_FAVORITE_ORDER_SQL,
                        [(cid, index) for index, cid in enumerate(final)],
                    )

        logger.debug(f"Favorites reordered: {final}")
        return final

    # ==================== Follow sync ====================

    async def upsert_channels(self, identities: Sequence[ChannelIdentity]) -> None:
        """Create or refresh identity rows; favorite and last-seen fields are untouched."""
        if not identities:
            return
        async with translate_errors("upsert followed channels"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.executemany(
                        UPSERT_IDENTITY_SQL, [_identity_args(i) for i in identities]
                    )

    async def remove_unfollowed(self, followed_ids: Sequence[str]) -> list[str]:
        """Delete rows whose id is not in *followed_ids*. Empty input is a no-op."""
        if not followed_ids:
            logger.warning("remove_unfollowed skipped: empty follow list")
            return []
        async with translate_errors("remove unfollowed channels"):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(DELETE_UNFOLLOWED_SQL, list(followed_ids))
        return [r["channel_id"] for r in rows]

    # ==================== Watermarks ====================

    async def mark_offline(self, channel_ids: Sequence[str], seen_at: datetime) -> list[str]:
        """Set ``last_seen_at`` for channels that just went offline.

        Returns the ids that matched a ledger row.
        """
        if not channel_ids:
            return []
        async with translate_errors("update last seen"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    rows = await conn.fetch(MARK_OFFLINE_SQL, list(channel_ids), seen_at)
        return [r["channel_id"] for r in rows]
