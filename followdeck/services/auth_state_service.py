"""Authentication state backed by the credential vault.

Also owns calling Twitch with the stored user token: a 401 triggers one
refresh-and-retry, and a failed refresh signs the user out.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from presence.errors import NotAuthenticated
from presence.models.credential import Credentials
from presence.reconciler import PresenceReconciler
from presence.repositories.credential import CredentialRepository

from .twitch_api import TwitchAPIClient, TwitchUnauthorized

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthStateService:
    """Get, set and clear the signed-in Twitch session."""

    def __init__(
        self,
        vault: CredentialRepository,
        twitch_api: TwitchAPIClient,
        reconciler: PresenceReconciler | None = None,
    ) -> None:
        self.vault = vault
        self.twitch_api = twitch_api
        self.reconciler = reconciler

    def _forget_live_snapshot(self) -> None:
        # The previous live set belongs to the account that just left
        if self.reconciler is not None:
            self.reconciler.reset()

    async def get_auth_state(self) -> dict:
        """Return ``{"authenticated": bool, "user_id": str | None}``."""
        credentials = await self.vault.get()
        return {
            "authenticated": credentials.authenticated,
            "user_id": credentials.user_id,
        }

    async def set_auth_state(
        self,
        access_token: str,
        refresh_token: str,
        user_id: str,
        expires_in: int | None = None,
    ) -> None:
        await self.vault.set(access_token, refresh_token, user_id, expires_in)
        self._forget_live_snapshot()
        logger.info(f"Signed in as Twitch user {user_id}")

    async def clear_auth_state(self) -> None:
        await self.vault.clear()
        self._forget_live_snapshot()
        logger.info("Signed out")

    async def require_credentials(self) -> Credentials:
        """Return credentials or raise ``NotAuthenticated``."""
        credentials = await self.vault.get()
        if not credentials.authenticated:
            raise NotAuthenticated("Not authenticated")
        return credentials

    async def _refresh(self, credentials: Credentials) -> str:
        if credentials.refresh_token is None or credentials.user_id is None:
            await self.clear_auth_state()
            raise NotAuthenticated("Access token expired and no refresh token is stored")

        result = await self.twitch_api.refresh_access_token(credentials.refresh_token)
        if not result.success or result.access_token is None:
            logger.warning(f"Token refresh failed, signing out: {result.error}")
            await self.clear_auth_state()
            raise NotAuthenticated("Access token expired and refresh failed")

        await self.vault.set(
            result.access_token,
            result.refresh_token or credentials.refresh_token,
            credentials.user_id,
            result.expires_in,
        )
        logger.info(f"Access token refreshed for user {credentials.user_id}")
        return result.access_token

    async def call_with_token(
        self,
        call: Callable[[Credentials, str], Awaitable[T]],
    ) -> T:
        """Run *call* with the stored access token, refreshing once on 401."""
        credentials = await self.require_credentials()

        try:
            return await call(credentials, credentials.access_token)  # type: ignore[arg-type]
        except TwitchUnauthorized:
            logger.info("Twitch rejected the access token, refreshing")

        token = await self._refresh(credentials)
        try:
            return await call(credentials, token)
        except TwitchUnauthorized as e:
            raise NotAuthenticated("Twitch rejected the refreshed access token") from e

    async def logout(self) -> None:
        """Revoke the access token (best effort) and clear the vault."""
        credentials = await self.vault.get()
        if credentials.access_token is not None:
            revoked = await self.twitch_api.revoke_token(credentials.access_token)
            if not revoked:
                logger.warning("Token revocation failed, clearing local credentials anyway")
        await self.clear_auth_state()
