"""Twitch API client service.

All calls here use the signed-in user's access token (the followed-streams
and followed-channels endpoints require ``user:read:follows``). Unlike a
best-effort lookup, a failed poll must never look like "nobody is live", so
non-200 responses raise ``TwitchAPIError`` instead of returning empty data.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, cast
from urllib.parse import urlencode

import httpx

logger = logging.getLogger(__name__)

HELIX_BASE = "https://api.twitch.tv/helix"
OAUTH_BASE = "https://id.twitch.tv/oauth2"

# Helix caps page size and id lists at 100
PAGE_SIZE = 100


class TwitchAPIError(Exception):
    """Twitch returned an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TwitchUnauthorized(TwitchAPIError):
    """The user access token was rejected (HTTP 401)."""


@dataclass
class TokenRefreshResult:
    """Result of a token refresh operation."""

    success: bool
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    error: str | None = None


@dataclass
class TokenExchangeResult:
    """Tokens and identity obtained from an OAuth authorization code."""

    access_token: str
    refresh_token: str
    expires_in: int
    user_id: str


class TwitchAPIClient:
    """Client for interacting with Twitch API.

    Manages a shared httpx client for connection reuse.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        scopes: Sequence[str] = ("user:read:follows",),
        http_client: httpx.AsyncClient | None = None,
    ):
        if not client_id or not client_secret:
            raise ValueError("Twitch client_id and client_secret are required")

        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes)

        # Shared HTTP client, reuses TCP connections across requests
        self._http = http_client or httpx.AsyncClient(timeout=10.0)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _user_headers(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}", "Client-Id": self.client_id}

    async def _helix_get(self, path: str, params: list[tuple[str, str]], token: str) -> dict:
        """GET a Helix endpoint with a user token and return the JSON body."""
        try:
            response = await self._http.get(
                f"{HELIX_BASE}/{path}",
                params=params,
                headers=self._user_headers(token),
            )
        except httpx.HTTPError as e:
            logger.error(f"Helix GET /{path} error: {type(e).__name__}: {e}")
            raise TwitchAPIError(f"Twitch API unreachable: {type(e).__name__}") from e

        if response.status_code == 401:
            raise TwitchUnauthorized("Twitch rejected the access token", 401)
        if response.status_code != 200:
            logger.error(f"Helix GET /{path} failed: {response.status_code}")
            raise TwitchAPIError(f"Twitch API error: {response.status_code}", response.status_code)

        return cast(dict, response.json())

    async def _helix_paginate(
        self, path: str, params: list[tuple[str, str]], token: str
    ) -> list[dict]:
        """Follow Helix cursors until the last page."""
        items: list[dict] = []
        cursor: str | None = None
        while True:
            page_params = [*params, ("first", str(PAGE_SIZE))]
            if cursor:
                page_params.append(("after", cursor))
            body = await self._helix_get(path, page_params, token)
            items.extend(body.get("data", []))
            cursor = (body.get("pagination") or {}).get("cursor")
            if not cursor:
                return items

    async def _oauth_post(self, data: dict[str, str]) -> httpx.Response:
        try:
            return await self._http.post(f"{OAUTH_BASE}/token", data=data)
        except httpx.HTTPError as e:
            logger.error(f"OAuth token request error: {type(e).__name__}: {e}")
            raise TwitchAPIError(f"Twitch OAuth unreachable: {type(e).__name__}") from e

    # ------------------------------------------------------------------
    # OAuth flow
    # ------------------------------------------------------------------

    def generate_oauth_url(self, state: str) -> str:
        """Generate Twitch OAuth authorization URL."""
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_uri,
                "response_type": "code",
                "scope": " ".join(self.scopes),
                "state": state,
            }
        )
        return f"{OAUTH_BASE}/authorize?{query}"

    async def exchange_code_for_token(self, code: str) -> TokenExchangeResult:
        """Exchange an OAuth code for tokens and resolve the user id."""
        response = await self._oauth_post(
            {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
            }
        )
        if response.status_code != 200:
            logger.error(f"Failed to exchange code: {response.status_code}")
            raise TwitchAPIError("Failed to exchange code for tokens", response.status_code)

        data: dict[str, Any] = response.json()
        access_token = data.get("access_token")
        refresh_token = data.get("refresh_token")
        expires_in = data.get("expires_in")
        if not isinstance(access_token, str) or not isinstance(refresh_token, str):
            raise TwitchAPIError("Invalid token response")
        if not isinstance(expires_in, int):
            raise TwitchAPIError("Invalid token expiry")

        body = await self._helix_get("users", [], access_token)
        users = body.get("data", [])
        if not users or not isinstance(users[0].get("id"), str):
            raise TwitchAPIError("Invalid user data")

        user_id = users[0]["id"]
        logger.debug(f"Token exchanged for user: {user_id}")
        return TokenExchangeResult(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=expires_in,
            user_id=user_id,
        )

    async def refresh_access_token(self, refresh_token: str) -> TokenRefreshResult:
        """Refresh a user's access token using their refresh token.

        Twitch may rotate the refresh token too; the caller stores both.
        """
        try:
            response = await self._oauth_post(
                {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                }
            )
        except TwitchAPIError as e:
            return TokenRefreshResult(success=False, error=str(e))

        if response.status_code != 200:
            try:
                error_msg = response.json().get("message", f"HTTP {response.status_code}")
            except ValueError:
                error_msg = f"HTTP {response.status_code}"
            logger.error(f"Token refresh failed: {error_msg}")
            return TokenRefreshResult(success=False, error=error_msg)

        data = response.json()
        new_access_token = data.get("access_token")
        if not new_access_token:
            return TokenRefreshResult(success=False, error="No access_token in refresh response")

        logger.debug("Successfully refreshed user access token")
        return TokenRefreshResult(
            success=True,
            access_token=new_access_token,
            refresh_token=data.get("refresh_token") or refresh_token,
            expires_in=data.get("expires_in"),
        )

    async def revoke_token(self, access_token: str) -> bool:
        """Revoke an access token. Best effort; returns whether Twitch accepted it."""
        try:
            response = await self._http.post(
                f"{OAUTH_BASE}/revoke",
                data={"client_id": self.client_id, "token": access_token},
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"Token revocation failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Follows and streams
    # ------------------------------------------------------------------

    async def get_followed_streams(self, user_id: str, access_token: str) -> list[dict]:
        """Live streams among the channels *user_id* follows."""
        return await self._helix_paginate(
            "streams/followed", [("user_id", user_id)], access_token
        )

    async def get_followed_channels(self, user_id: str, access_token: str) -> list[dict]:
        """Every channel *user_id* follows."""
        return await self._helix_paginate(
            "channels/followed", [("user_id", user_id)], access_token
        )

    async def get_users_by_ids(self, user_ids: Sequence[str], access_token: str) -> list[dict]:
        """Get user profiles by id, batching 100 ids per request."""
        users: list[dict] = []
        for start in range(0, len(user_ids), PAGE_SIZE):
            chunk = user_ids[start : start + PAGE_SIZE]
            body = await self._helix_get("users", [("id", uid) for uid in chunk], access_token)
            users.extend(body.get("data", []))
        return users
