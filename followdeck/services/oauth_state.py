"""Signed, short-lived OAuth ``state`` values"""

import logging
import secrets
from datetime import UTC, datetime, timedelta

import jwt

logger = logging.getLogger(__name__)


class OAuthStateService:
    """Issue and verify the ``state`` parameter of the Twitch OAuth redirect.

    The state is an HS256 JWT carrying a random nonce, so the callback can be
    checked without server-side storage.
    """

    PURPOSE = "twitch-oauth-state"

    def __init__(self, secret_key: str, expire_minutes: int = 10, algorithm: str = "HS256"):
        if not secret_key:
            raise ValueError("OAuth state secret cannot be empty")

        self.secret_key = secret_key
        self.expire_minutes = expire_minutes
        self.algorithm = algorithm

    def create_state(self) -> str:
        now = datetime.now(UTC)
        payload = {
            "purpose": self.PURPOSE,
            "nonce": secrets.token_hex(16),
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_state(self, state: str) -> bool:
        try:
            payload = jwt.decode(state, self.secret_key, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            logger.warning("OAuth state expired")
            return False
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid OAuth state: {e}")
            return False

        return payload.get("purpose") == self.PURPOSE
