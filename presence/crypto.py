"""At-rest encryption for provider tokens.

Tokens are sealed with Fernet (AES-128-CBC + HMAC-SHA256). The Fernet key is
derived from a configured secret with scrypt so operators can supply any
passphrase-like value.
"""

from __future__ import annotations

import base64

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from presence.errors import DecryptionFailure

DEFAULT_SALT = "followdeck-token-vault"

# scrypt cost parameters (2^14 keeps startup well under a second)
_SCRYPT_N = 2**14
_SCRYPT_R = 8
_SCRYPT_P = 1


def derive_key(secret: str, salt: str = DEFAULT_SALT) -> bytes:
    """Derive a urlsafe-base64 Fernet key from *secret*."""
    if not secret:
        raise ValueError("Token encryption secret cannot be empty")
    kdf = Scrypt(salt=salt.encode("utf-8"), length=32, n=_SCRYPT_N, r=_SCRYPT_R, p=_SCRYPT_P)
    return base64.urlsafe_b64encode(kdf.derive(secret.encode("utf-8")))


class TokenCipher:
    """Encrypt and decrypt token strings."""

    def __init__(self, key: bytes | str):
        self._fernet = Fernet(key)

    @classmethod
    def from_secret(cls, secret: str, salt: str = DEFAULT_SALT) -> TokenCipher:
        return cls(derive_key(secret, salt))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, cipher: str) -> str:
        """Return the plaintext for *cipher*.

        Raises ``DecryptionFailure`` on a wrong key, tampered data or a value
        that is not a Fernet token at all.
        """
        try:
            return self._fernet.decrypt(cipher.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as e:
            raise DecryptionFailure("Failed to decrypt token - key mismatch or corrupted data") from e
