"""Live→offline edge detection across successive provider polls.

No snapshot history is persisted. The previous poll's live id set lives on
the reconciler instance, so after a process restart the first call has
nothing to diff against and writes nothing; at most one poll interval of
"went offline" timestamps can be missed that way.

Flapping channels are not debounced: every live→offline edge moves the
watermark.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from presence.errors import PersistenceFailure
from presence.models.channel import LiveSnapshotEntry
from presence.repositories.channel import ChannelRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class PresenceReconciler:
    """Advances ``last_seen_at`` exactly when a channel leaves the live snapshot."""

    def __init__(
        self,
        ledger: ChannelRepository,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ledger = ledger
        self._clock = clock
        self._previous_live: frozenset[str] | None = None
        self._lock = asyncio.Lock()

    @property
    def has_baseline(self) -> bool:
        """Whether a previous snapshot exists to diff against."""
        return self._previous_live is not None

    async def reconcile(self, snapshot: Iterable[LiveSnapshotEntry]) -> list[str]:
        """Diff *snapshot* against the previous call and persist offline edges.

        Returns the ids that went offline. If the watermark write fails, the
        ids it missed are kept in the previous snapshot together with this
        poll's live set, so they are retried on the next poll and channels
        that came online meanwhile are still tracked. ``PersistenceFailure``
        propagates to the caller.
        """
        live_ids = frozenset(entry.channel_id for entry in snapshot)

        async with self._lock:
            previous = self._previous_live
            if previous is None:
                logger.info(
                    f"First reconciliation since startup ({len(live_ids)} live), "
                    "no previous snapshot to diff"
                )
                self._previous_live = live_ids
                return []

            went_offline = sorted(previous - live_ids)
            if went_offline:
                seen_at = self._clock()
                try:
                    updated = await self.ledger.mark_offline(went_offline, seen_at)
                except PersistenceFailure:
                    # Unwritten edges stay pending; this poll's live set still counts
                    self._previous_live = live_ids | frozenset(went_offline)
                    raise
                logger.debug(f"Went offline at {seen_at.isoformat()}: {went_offline}")
                if len(updated) < len(went_offline):
                    logger.debug(
                        f"{len(went_offline) - len(updated)} offline channel(s) "
                        "no longer in the ledger"
                    )

            self._previous_live = live_ids

        if went_offline:
            logger.info(f"Reconciled snapshot: {len(live_ids)} live, {len(went_offline)} went offline")
        return went_offline

    def reset(self) -> None:
        """Forget the previous snapshot (e.g. after the signed-in user changes)."""
        self._previous_live = None
