"""Repository layer for the channel ledger and the credential vault."""

from .channel import ChannelRepository
from .credential import CredentialRepository

__all__ = [
    "ChannelRepository",
    "CredentialRepository",
]
