"""Service settings read from the environment and ``.env``"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from presence.crypto import DEFAULT_SALT

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """followdeck settings. Field names map to upper-case env variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch application
    client_id: str = Field(..., description="Twitch application client id")
    client_secret: str = Field(..., description="Twitch application client secret")
    oauth_scopes: str = Field(default="user:read:follows", description="Space-separated scopes")

    # Credential vault
    token_encryption_key: str = Field(
        ..., min_length=16, description="Passphrase the token cipher key is derived from"
    )
    token_encryption_salt: str = Field(default=DEFAULT_SALT, description="Key derivation salt")

    # OAuth redirect state
    state_secret: str = Field(default="", description="HS256 secret for OAuth state values")
    state_expire_minutes: int = Field(default=10, ge=1, description="OAuth state lifetime")

    # PostgreSQL
    database_url: str = Field(..., description="PostgreSQL DSN for the ledger and vault")
    db_ssl: bool = Field(default=False, description="Require TLS to PostgreSQL")
    db_pool_max_size: int = Field(default=5, ge=1, description="Upper bound of pooled connections")

    # Where the browser client and this API are reachable
    frontend_url: str = Field(default="http://localhost:3000", description="Browser client origin")
    api_url: str = Field(default="http://localhost:8000", description="Public base URL of this API")

    environment: str = Field(default="development", description="Deployment environment")
    log_level: str = Field(default="INFO", description="Root log level")

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8000, description="Bind port")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the level; unknown names fall back to INFO"""
        level = v.upper()
        if level not in LOG_LEVELS:
            logger.warning(f"Unknown log level '{v}', using INFO")
            return "INFO"
        return level

    @property
    def cors_origins(self) -> list[str]:
        return [self.frontend_url.rstrip("/")]

    @property
    def redirect_uri(self) -> str:
        """OAuth callback registered with Twitch"""
        return f"{self.api_url.rstrip('/')}/api/auth/callback"

    @property
    def effective_state_secret(self) -> str:
        return self.state_secret or self.token_encryption_key

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
