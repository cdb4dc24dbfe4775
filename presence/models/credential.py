"""Decrypted view of the singleton credential row."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Credentials:
    """Provider tokens and the authenticated user id.

    A field whose cipher failed to decrypt is ``None``.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None
    expires_at: int | None = None

    @property
    def authenticated(self) -> bool:
        return self.access_token is not None and self.user_id is not None
