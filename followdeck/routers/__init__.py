"""API Routers package

Routers are organized by feature domain.
"""

from . import auth_router, channels_router, favorites_router

__all__ = [
    "auth_router",
    "channels_router",
    "favorites_router",
]
