"""Translate engine and provider failures into HTTP errors"""

import logging

from fastapi import HTTPException

from followdeck.services.twitch_api import TwitchAPIError
from presence.errors import (
    NotAuthenticated,
    NotFound,
    PersistenceFailure,
    PresenceError,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[PresenceError], int]] = [
    (NotAuthenticated, 401),
    (NotFound, 404),
    (ValidationFailure, 400),
    (PersistenceFailure, 500),
]


def http_error(exc: PresenceError | TwitchAPIError) -> HTTPException:
    """Build the HTTPException a router should raise for *exc*."""
    if isinstance(exc, TwitchAPIError):
        return HTTPException(status_code=502, detail=str(exc))
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))
