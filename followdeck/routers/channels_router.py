"""Followed channel presence list"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from followdeck.core.dependencies import get_follow_sync_service, get_presence_service
from followdeck.core.errors import http_error
from followdeck.services import FollowSyncService, PresenceService, TwitchAPIError
from presence.errors import PresenceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/channels", tags=["channels"])


# ============================================
# Response Models
# ============================================


class FollowedChannelResponse(BaseModel):
    id: str
    channel_name: str
    profile_image: str
    is_live: bool
    is_favorite: bool
    viewer_count: int | None = None
    game_name: str | None = None
    stream_title: str | None = None
    last_seen_at: datetime | None = None


class SyncResponse(BaseModel):
    followed: int


# ============================================
# Endpoints
# ============================================


@router.get("/followed", response_model=list[FollowedChannelResponse])
async def get_followed_channels(
    presence: PresenceService = Depends(get_presence_service),
) -> list[FollowedChannelResponse]:
    """Followed channels with live status, favorites first"""
    try:
        channels = await presence.get_presence_list()
    except (PresenceError, TwitchAPIError) as e:
        raise http_error(e) from None

    return [
        FollowedChannelResponse(
            id=ch.channel_id,
            channel_name=ch.display_name,
            profile_image=ch.profile_image_url,
            is_live=ch.is_live,
            is_favorite=ch.is_favorite,
            viewer_count=ch.viewer_count,
            game_name=ch.game_name,
            stream_title=ch.stream_title,
            last_seen_at=ch.last_seen_at,
        )
        for ch in channels
    ]


@router.post("/sync", response_model=SyncResponse)
async def sync_followed_channels(
    follow_sync: FollowSyncService = Depends(get_follow_sync_service),
) -> SyncResponse:
    """Refresh the ledger from the Twitch follow list"""
    try:
        followed = await follow_sync.sync()
    except (PresenceError, TwitchAPIError) as e:
        raise http_error(e) from None
    return SyncResponse(followed=followed)
