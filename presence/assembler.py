"""Merge ledger records with a live snapshot into the ordered channel list."""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable

from presence.models.channel import AssembledChannel, ChannelRecord, LiveSnapshotEntry


def name_collation_key(name: str) -> tuple[str, str, str]:
    """Sort key approximating locale-aware collation.

    Compares letters ignoring accents and case first, then accents, then
    case with lowercase ahead of uppercase.
    """
    decomposed = unicodedata.normalize("NFKD", name)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), decomposed.casefold(), name.swapcase()


def _sort_key(channel: AssembledChannel) -> tuple:
    seen = channel.last_seen_at
    return (
        not channel.is_favorite,
        seen is None,
        -seen.timestamp() if seen is not None else 0.0,
        name_collation_key(channel.display_name),
    )


def assemble(
    channels: Iterable[ChannelRecord],
    snapshot: Iterable[LiveSnapshotEntry],
) -> list[AssembledChannel]:
    """Build the client-facing list.

    Order: favorites first; then channels with a recorded last-seen time,
    most recent first; then the rest (live or never seen offline) by name.
    A live channel never reports a last-seen time.
    """
    live_by_id = {entry.channel_id: entry for entry in snapshot}

    result: list[AssembledChannel] = []
    for record in channels:
        stream = live_by_id.get(record.channel_id)
        is_live = stream is not None
        result.append(
            AssembledChannel(
                channel_id=record.channel_id,
                display_name=record.display_name,
                profile_image_url=record.profile_image_url,
                is_live=is_live,
                is_favorite=record.is_favorite,
                viewer_count=stream.viewer_count if stream else None,
                game_name=stream.game_name if stream else None,
                stream_title=stream.title if stream else None,
                last_seen_at=None if is_live else record.last_seen_at,
            )
        )

    result.sort(key=_sort_key)
    return result
