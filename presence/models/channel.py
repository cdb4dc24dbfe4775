"""Data models for followed channels and live snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ChannelRecord:
    """Ledger row for one followed channel."""

    channel_id: str
    display_name: str
    profile_image_url: str = ""
    is_favorite: bool = False
    favorite_order: int | None = None
    # Written only when the channel drops out of the live snapshot
    last_seen_at: datetime | None = None
    followed_at: datetime | None = None


@dataclass(frozen=True)
class ChannelIdentity:
    """Identity fields used to create or refresh a ledger row."""

    channel_id: str
    display_name: str
    profile_image_url: str = ""
    followed_at: datetime | None = None


@dataclass(frozen=True)
class LiveSnapshotEntry:
    """One currently-live channel from a single provider poll. Never persisted."""

    channel_id: str
    viewer_count: int
    game_name: str
    title: str = ""


@dataclass
class AssembledChannel:
    """Ledger state merged with the live snapshot, as returned to clients."""

    channel_id: str
    display_name: str
    profile_image_url: str
    is_live: bool
    is_favorite: bool
    viewer_count: int | None = None
    game_name: str | None = None
    stream_title: str | None = None
    last_seen_at: datetime | None = None
