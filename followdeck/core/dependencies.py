"""Dependency injection utilities for FastAPI"""

import logging
from functools import lru_cache

import asyncpg
from fastapi import Depends, HTTPException

from followdeck.core.config import get_settings
from followdeck.core.database import get_database_manager
from followdeck.services import (
    AuthStateService,
    FollowSyncService,
    OAuthStateService,
    PresenceService,
    TwitchAPIClient,
)
from presence.crypto import TokenCipher
from presence.reconciler import PresenceReconciler
from presence.repositories import ChannelRepository, CredentialRepository

logger = logging.getLogger(__name__)


# ============================================
# Process-wide singletons
# ============================================


_twitch_api: TwitchAPIClient | None = None
_reconciler: PresenceReconciler | None = None


def get_twitch_api() -> TwitchAPIClient:
    """Get shared TwitchAPIClient singleton (connection reuse)."""
    global _twitch_api
    if _twitch_api is None:
        settings = get_settings()
        _twitch_api = TwitchAPIClient(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            redirect_uri=settings.redirect_uri,
            scopes=settings.oauth_scopes.split(),
        )
    return _twitch_api


async def close_twitch_api() -> None:
    """Close the shared TwitchAPIClient. Call on app shutdown."""
    global _twitch_api
    if _twitch_api is not None:
        await _twitch_api.close()
        _twitch_api = None


@lru_cache
def get_token_cipher() -> TokenCipher:
    """Derive the token cipher once per process."""
    settings = get_settings()
    return TokenCipher.from_secret(settings.token_encryption_key, settings.token_encryption_salt)


def get_oauth_state_service() -> OAuthStateService:
    settings = get_settings()
    return OAuthStateService(
        secret_key=settings.effective_state_secret,
        expire_minutes=settings.state_expire_minutes,
    )


# ============================================
# Database-backed dependencies
# ============================================


def get_db_pool() -> asyncpg.Pool:
    try:
        db_manager = get_database_manager()
    except RuntimeError:
        raise HTTPException(status_code=503, detail="Database not ready") from None
    if not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


def get_channel_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> ChannelRepository:
    return ChannelRepository(pool)


def get_credential_repository(
    pool: asyncpg.Pool = Depends(get_db_pool),
    cipher: TokenCipher = Depends(get_token_cipher),
) -> CredentialRepository:
    return CredentialRepository(pool, cipher)


def get_reconciler(ledger: ChannelRepository = Depends(get_channel_repository)) -> PresenceReconciler:
    """Return the process-wide reconciler.

    Its previous-snapshot state must outlive individual requests, so it is
    built once and keeps the first ledger it was given (the pool is shared).
    """
    global _reconciler
    if _reconciler is None:
        _reconciler = PresenceReconciler(ledger)
    return _reconciler


# ============================================
# Service Dependencies
# ============================================


def get_auth_state_service(
    vault: CredentialRepository = Depends(get_credential_repository),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    reconciler: PresenceReconciler = Depends(get_reconciler),
) -> AuthStateService:
    return AuthStateService(vault, twitch_api, reconciler)


def get_follow_sync_service(
    ledger: ChannelRepository = Depends(get_channel_repository),
    auth_state: AuthStateService = Depends(get_auth_state_service),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
) -> FollowSyncService:
    return FollowSyncService(ledger, auth_state, twitch_api)


def get_presence_service(
    ledger: ChannelRepository = Depends(get_channel_repository),
    reconciler: PresenceReconciler = Depends(get_reconciler),
    auth_state: AuthStateService = Depends(get_auth_state_service),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    follow_sync: FollowSyncService = Depends(get_follow_sync_service),
) -> PresenceService:
    return PresenceService(ledger, reconciler, auth_state, twitch_api, follow_sync)
