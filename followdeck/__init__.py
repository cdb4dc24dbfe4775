"""followdeck API service: followed-channel presence list, favorites and Twitch sign-in."""

__version__ = "1.0.0"
