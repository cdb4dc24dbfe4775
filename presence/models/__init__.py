"""Data models for the channel ledger and the credential vault."""

from .channel import AssembledChannel, ChannelIdentity, ChannelRecord, LiveSnapshotEntry
from .credential import Credentials

__all__ = [
    "AssembledChannel",
    "ChannelIdentity",
    "ChannelRecord",
    "Credentials",
    "LiveSnapshotEntry",
]
