"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the credential services
and the operational scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from canva_bridge.clients.canva_auth import DEFAULT_CANVA_SCOPES, AuthNotConfigured


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class CanvaSettings(_EnvSettings):
    """Configuration required for talking to the Canva Connect API."""

    client_id: Optional[str] = Field(None, alias="CANVA_CLIENT_ID")
    client_secret: Optional[str] = Field(None, alias="CANVA_CLIENT_SECRET")
    redirect_uri: str = Field(
        "http://localhost:8787/api/auth/canva/callback", alias="CANVA_REDIRECT_URI"
    )
    default_account_id: str = Field(
        "organization",
        alias="CANVA_DEFAULT_ACCOUNT_ID",
        description="Account key used when callers do not name one.",
    )
    token_timeout_seconds: float = Field(10.0, alias="CANVA_TOKEN_TIMEOUT_SECONDS")
    api_timeout_seconds: float = Field(30.0, alias="CANVA_API_TIMEOUT_SECONDS")

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def require_credentials(self) -> None:
        """Fail fast when the OAuth client credentials are absent."""
        if not self.is_configured:
            raise AuthNotConfigured(
                "Canva OAuth not configured. Please set CANVA_CLIENT_ID and "
                "CANVA_CLIENT_SECRET."
            )


class OAuthSettings(_EnvSettings):
    """OAuth flow configuration."""

    attempt_ttl_seconds: int = Field(600, alias="CANVA_OAUTH_ATTEMPT_TTL")
    refresh_buffer_seconds: int = Field(300, alias="CANVA_REFRESH_BUFFER_SECONDS")
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_CANVA_SCOPES, alias="CANVA_OAUTH_SCOPES"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class SecuritySettings(_EnvSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    session_secret: Optional[str] = Field(
        None,
        alias="SESSION_SECRET",
        description="Secret used to sign the authorization attempt cookie.",
    )


class StorageSettings(_EnvSettings):
    """Filesystem locations for persisted state."""

    data_dir: Path = Field(Path("./data"), alias="DATA_DIR")

    @property
    def credentials_file(self) -> Path:
        return self.data_dir / "tokens.encrypted.json"


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    canva: CanvaSettings = Field(default_factory=CanvaSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "CanvaSettings",
    "DEFAULT_CANVA_SCOPES",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
