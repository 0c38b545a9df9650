"""Application configuration via environment variables."""

import base64
import binascii
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    debug: bool = False
    allowed_hosts: list[str] = ["localhost", "127.0.0.1"]
    cors_origins: list[str] = []

    # Document store. Deployments that can only pass opaque blobs supply the
    # base64-encoded URL instead of the direct value.
    database_url: str = ""
    database_url_b64: str = ""
    rates_collection: str = "config"
    rates_document: str = "rates"

    # Identity provider (bearer tokens signed with a shared secret)
    identity_jwt_secret: str = ""
    identity_jwt_algorithm: str = "HS256"
    identity_audience: str | None = None
    admin_role: str = "admin"

    # Redis (for rate limiting)
    redis_url: str = "redis://localhost:6379"
    rate_limit_enabled: bool = True

    # Client
    api_base_url: str = "http://localhost:8000"
    client_state_path: Path = Path.home() / ".calculator" / "state.json"
    request_timeout: float = 10.0
    indicator_delay_seconds: float = 1.5  # Price change annotation lifetime

    def resolved_database_url(self) -> str:
        """Return the document store URL, decoding the base64 variant if needed."""
        if self.database_url:
            return self.database_url
        if not self.database_url_b64:
            raise ValueError(
                "DATABASE_URL or DATABASE_URL_B64 must be set to reach the document store"
            )
        try:
            return base64.b64decode(self.database_url_b64, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError(f"DATABASE_URL_B64 is not valid base64: {e}") from e


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
