"""Favorite channels: add, toggle, list and manual ordering"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field, StringConstraints

from followdeck.core.dependencies import get_auth_state_service, get_presence_service
from followdeck.core.errors import http_error
from followdeck.services import AuthStateService, PresenceService
from presence.errors import PresenceError
from presence.models.channel import ChannelIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/favorites", tags=["favorites"])

MAX_ID_LENGTH = 50
MAX_CHANNEL_NAME_LENGTH = 100
MAX_PROFILE_IMAGE_LENGTH = 500
MAX_ORDERED_IDS_COUNT = 1000

ChannelId = Annotated[str, StringConstraints(min_length=1, max_length=MAX_ID_LENGTH)]


# ============================================
# Request/Response Models
# ============================================


class AddFavoriteRequest(BaseModel):
    id: ChannelId
    channel_name: str = Field(..., min_length=1, max_length=MAX_CHANNEL_NAME_LENGTH)
    profile_image: str = Field(..., min_length=1, max_length=MAX_PROFILE_IMAGE_LENGTH)


class ReorderFavoritesRequest(BaseModel):
    ordered_ids: list[ChannelId] = Field(..., max_length=MAX_ORDERED_IDS_COUNT)


class FavoriteResponse(BaseModel):
    id: str
    channel_name: str
    profile_image: str


class ToggleResponse(BaseModel):
    is_favorite: bool


class ReorderResponse(BaseModel):
    success: bool = True
    ordered_ids: list[str]


class SuccessResponse(BaseModel):
    success: bool = True


async def require_auth(auth_state: AuthStateService = Depends(get_auth_state_service)) -> None:
    """Reject requests when no Twitch session is stored"""
    try:
        await auth_state.require_credentials()
    except PresenceError as e:
        raise http_error(e) from None


# ============================================
# Endpoints
# ============================================


@router.get("", response_model=list[FavoriteResponse], dependencies=[Depends(require_auth)])
async def list_favorites(
    presence: PresenceService = Depends(get_presence_service),
) -> list[FavoriteResponse]:
    """Favorites in manual order"""
    try:
        favorites = await presence.list_favorites()
    except PresenceError as e:
        raise http_error(e) from None
    return [
        FavoriteResponse(id=f.channel_id, channel_name=f.display_name, profile_image=f.profile_image_url)
        for f in favorites
    ]


@router.post(
    "",
    response_model=SuccessResponse,
    status_code=201,
    dependencies=[Depends(require_auth)],
)
async def add_favorite(
    body: AddFavoriteRequest,
    presence: PresenceService = Depends(get_presence_service),
) -> SuccessResponse:
    """Add a channel to favorites (idempotent)"""
    try:
        await presence.add_favorite(
            ChannelIdentity(
                channel_id=body.id,
                display_name=body.channel_name,
                profile_image_url=body.profile_image,
            )
        )
    except PresenceError as e:
        raise http_error(e) from None
    return SuccessResponse()


@router.post(
    "/toggle/{channel_id}",
    response_model=ToggleResponse,
    dependencies=[Depends(require_auth)],
)
async def toggle_favorite(
    channel_id: str = Path(..., min_length=1, max_length=MAX_ID_LENGTH),
    presence: PresenceService = Depends(get_presence_service),
) -> ToggleResponse:
    """Flip a followed channel's favorite flag"""
    try:
        result = await presence.toggle_favorite(channel_id)
    except PresenceError as e:
        raise http_error(e) from None
    return ToggleResponse(**result)


@router.put("/reorder", response_model=ReorderResponse, dependencies=[Depends(require_auth)])
async def reorder_favorites(
    body: ReorderFavoritesRequest,
    presence: PresenceService = Depends(get_presence_service),
) -> ReorderResponse:
    """Persist the manual order of favorites"""
    try:
        final = await presence.reorder_favorites(body.ordered_ids)
    except PresenceError as e:
        raise http_error(e) from None
    return ReorderResponse(ordered_ids=final)
