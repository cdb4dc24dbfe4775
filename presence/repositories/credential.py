"""Repository for the singleton ``credentials`` row (the token vault)."""

from __future__ import annotations

import logging
import time

import asyncpg

from presence.crypto import TokenCipher
from presence.database import translate_errors
from presence.errors import DecryptionFailure
from presence.models.credential import Credentials

logger = logging.getLogger(__name__)

# The table's CHECK (id = 1) makes this the only row that can ever exist.
SINGLETON_ID = 1

ENSURE_ROW_SQL = "INSERT INTO credentials (id) VALUES ($1) ON CONFLICT (id) DO NOTHING"

SELECT_ROW_SQL = (
    "SELECT access_token, refresh_token, user_id, expires_at FROM credentials WHERE id = $1"
)

UPDATE_ROW_SQL = """
    UPDATE credentials SET
        access_token  = $2,
        refresh_token = $3,
        user_id       = $4,
        expires_at    = $5,
        updated_at    = NOW()
    WHERE id = $1
"""


class CredentialRepository:
    """Encrypted single-record store for provider tokens.

    Every call lazily materializes the row with an insert-ignore; concurrent
    first touches collapse onto the primary key.
    """

    def __init__(self, pool: asyncpg.Pool, cipher: TokenCipher) -> None:
        self.pool = pool
        self.cipher = cipher

    def _open(self, field: str, cipher_text: str | None) -> str | None:
        if cipher_text is None:
            return None
        try:
            return self.cipher.decrypt(cipher_text)
        except DecryptionFailure as e:
            logger.warning(f"Stored {field} is unreadable, treating as absent: {e}")
            return None

    async def get(self) -> Credentials:
        """Return the decrypted credentials (all ``None`` when signed out)."""
        async with translate_errors("get authentication data"):
            async with self.pool.acquire() as conn:
                await conn.execute(ENSURE_ROW_SQL, SINGLETON_ID)
                row = await conn.fetchrow(SELECT_ROW_SQL, SINGLETON_ID)

        if row is None:
            return Credentials()

        return Credentials(
            access_token=self._open("access token", row["access_token"]),
            refresh_token=self._open("refresh token", row["refresh_token"]),
            user_id=row["user_id"],
            expires_at=row["expires_at"],
        )

    async def set(
        self,
        access_token: str,
        refresh_token: str,
        user_id: str,
        expires_in: int | None = None,
    ) -> None:
        """Encrypt and store a token pair, overwriting whatever was there."""
        expires_at = int(time.time()) + expires_in if expires_in is not None else None
        sealed_access = self.cipher.encrypt(access_token)
        sealed_refresh = self.cipher.encrypt(refresh_token)

        async with translate_errors("save authentication data"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(ENSURE_ROW_SQL, SINGLETON_ID)
                    await conn.execute(
                        UPDATE_ROW_SQL,
                        SINGLETON_ID,
                        sealed_access,
                        sealed_refresh,
                        user_id,
                        expires_at,
                    )
        logger.debug(f"Credentials stored for user {user_id}")

    async def clear(self) -> None:
        """Null every token and identity field, keeping the row."""
        async with translate_errors("clear authentication data"):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(ENSURE_ROW_SQL, SINGLETON_ID)
                    await conn.execute(UPDATE_ROW_SQL, SINGLETON_ID, None, None, None, None)
        logger.debug("Credentials cleared")
