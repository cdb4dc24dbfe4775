"""Twitch sign-in, sign-out and authentication status"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from followdeck.core.config import get_settings
from followdeck.core.dependencies import (
    get_auth_state_service,
    get_oauth_state_service,
    get_twitch_api,
)
from followdeck.core.errors import http_error
from followdeck.services import (
    AuthStateService,
    OAuthStateService,
    TwitchAPIClient,
    TwitchAPIError,
)
from presence.errors import PresenceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


# ============================================
# Response Models
# ============================================


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user_id: str | None = None


class AuthUrlResponse(BaseModel):
    url: str
    state: str


class SuccessResponse(BaseModel):
    success: bool = True


# ============================================
# Endpoints
# ============================================


@router.get("/status", response_model=AuthStatusResponse)
async def get_auth_status(
    auth_state: AuthStateService = Depends(get_auth_state_service),
) -> AuthStatusResponse:
    """Whether usable Twitch credentials are stored"""
    try:
        return AuthStatusResponse(**await auth_state.get_auth_state())
    except PresenceError as e:
        raise http_error(e) from None


@router.get("/url", response_model=AuthUrlResponse)
async def get_auth_url(
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    oauth_state: OAuthStateService = Depends(get_oauth_state_service),
) -> AuthUrlResponse:
    """Build the Twitch authorize URL with a signed state"""
    state = oauth_state.create_state()
    return AuthUrlResponse(url=twitch_api.generate_oauth_url(state), state=state)


@router.get("/callback")
async def oauth_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    error: str | None = Query(None),
    twitch_api: TwitchAPIClient = Depends(get_twitch_api),
    oauth_state: OAuthStateService = Depends(get_oauth_state_service),
    auth_state: AuthStateService = Depends(get_auth_state_service),
) -> RedirectResponse:
    """Handle the Twitch OAuth redirect and store the credentials"""
    if error is not None:
        raise HTTPException(status_code=400, detail=f"OAuth error: {error}")
    if state is None:
        raise HTTPException(status_code=400, detail="Missing state parameter")
    if not oauth_state.verify_state(state):
        raise HTTPException(status_code=400, detail="Invalid or expired state parameter")
    if code is None:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    try:
        tokens = await twitch_api.exchange_code_for_token(code)
        await auth_state.set_auth_state(
            tokens.access_token,
            tokens.refresh_token,
            tokens.user_id,
            tokens.expires_in,
        )
    except (PresenceError, TwitchAPIError) as e:
        logger.error(f"OAuth callback failed: {e}")
        raise http_error(e) from None

    return RedirectResponse(url=get_settings().frontend_url, status_code=302)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
    auth_state: AuthStateService = Depends(get_auth_state_service),
) -> SuccessResponse:
    """Revoke and clear the stored credentials"""
    try:
        await auth_state.logout()
    except PresenceError as e:
        raise http_error(e) from None
    return SuccessResponse()
