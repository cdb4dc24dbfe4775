"""Presence list and favorites operations exposed to the routers.

All SQL is delegated to ``ChannelRepository``; this layer orchestrates the
poll → reconcile → assemble pipeline.
"""

import logging
from collections.abc import Sequence

from presence.assembler import assemble
from presence.errors import NotFound, PersistenceFailure
from presence.models.channel import AssembledChannel, ChannelIdentity, ChannelRecord, LiveSnapshotEntry
from presence.models.credential import Credentials
from presence.reconciler import PresenceReconciler
from presence.repositories.channel import ChannelRepository

from .auth_state_service import AuthStateService
from .follow_sync_service import FollowSyncService
from .twitch_api import TwitchAPIClient

logger = logging.getLogger(__name__)


def snapshot_from_streams(streams: Sequence[dict]) -> list[LiveSnapshotEntry]:
    """Convert Helix ``streams`` objects to snapshot entries."""
    return [
        LiveSnapshotEntry(
            channel_id=stream["user_id"],
            viewer_count=int(stream.get("viewer_count") or 0),
            game_name=stream.get("game_name") or "",
            title=stream.get("title") or "",
        )
        for stream in streams
    ]


class PresenceService:
    """Followed-channel list, favorites toggling and reordering."""

    def __init__(
        self,
        ledger: ChannelRepository,
        reconciler: PresenceReconciler,
        auth_state: AuthStateService,
        twitch_api: TwitchAPIClient,
        follow_sync: FollowSyncService | None = None,
    ) -> None:
        self.ledger = ledger
        self.reconciler = reconciler
        self.auth_state = auth_state
        self.twitch_api = twitch_api
        self.follow_sync = follow_sync

    # ==================== Presence list ====================

    async def fetch_snapshot(self) -> list[LiveSnapshotEntry]:
        """Poll Twitch for the signed-in user's live followed streams."""

        async def _fetch(credentials: Credentials, token: str) -> list[dict]:
            return await self.twitch_api.get_followed_streams(credentials.user_id or "", token)

        streams = await self.auth_state.call_with_token(_fetch)
        return snapshot_from_streams(streams)

    async def get_presence_list(self) -> list[AssembledChannel]:
        """Poll, advance last-seen watermarks, and return the ordered list."""
        snapshot = await self.fetch_snapshot()

        try:
            await self.reconciler.reconcile(snapshot)
        except PersistenceFailure as e:
            # Assembly continues with whatever watermarks are persisted
            logger.warning(f"Reconciliation failed, assembling stored state: {e}")

        channels = await self.ledger.list_all()
        if not channels and self.follow_sync is not None:
            logger.info("Ledger is empty, running initial follow sync")
            await self.follow_sync.sync()
            channels = await self.ledger.list_all()

        return assemble(channels, snapshot)

    # ==================== Favorites ====================

    async def list_favorites(self) -> list[ChannelRecord]:
        return await self.ledger.list_favorites()

    async def add_favorite(self, identity: ChannelIdentity) -> bool:
        added = await self.ledger.add_favorite(identity)
        if added:
            logger.info(f"Favorite added: {identity.channel_id}")
        return added

    async def toggle_favorite(self, channel_id: str) -> dict:
        """Flip the favorite flag; returns ``{"is_favorite": new_state}``."""
        state = await self.ledger.get_favorite_state(channel_id)
        if state is None:
            raise NotFound(f"Channel {channel_id} is not followed")

        if state:
            await self.ledger.remove_favorite(channel_id)
            logger.info(f"Favorite removed: {channel_id}")
            return {"is_favorite": False}

        await self.ledger.mark_favorite(channel_id)
        logger.info(f"Favorite added: {channel_id}")
        return {"is_favorite": True}

    async def reorder_favorites(self, ordered_ids: Sequence[str]) -> list[str]:
        return await self.ledger.reorder_favorites(ordered_ids)
