"""Services layer - Business logic

Services are initialized with their dependencies and accessed through
dependency injection (see ``followdeck.core.dependencies``).
"""

from .auth_state_service import AuthStateService
from .follow_sync_service import FollowSyncService
from .oauth_state import OAuthStateService
from .presence_service import PresenceService
from .twitch_api import (
    TokenExchangeResult,
    TokenRefreshResult,
    TwitchAPIClient,
    TwitchAPIError,
    TwitchUnauthorized,
)

__all__ = [
    "AuthStateService",
    "FollowSyncService",
    "OAuthStateService",
    "PresenceService",
    "TokenExchangeResult",
    "TokenRefreshResult",
    "TwitchAPIClient",
    "TwitchAPIError",
    "TwitchUnauthorized",
]
