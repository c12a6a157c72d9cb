"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

import logging
from functools import lru_cache

from canva_bridge.clients import CanvaOAuthClient, OAuthStateEncoder
from canva_bridge.core.config import AppSettings, get_settings
from canva_bridge.services import (
    AuthorizationAttemptStore,
    CanvaTokenService,
    EncryptedCredentialStore,
    TokenCipherService,
)

logger = logging.getLogger(__name__)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide the signer for the authorization attempt cookie."""
    settings = _settings()
    secret = (
        settings.security.session_secret
        or settings.security.token_encryption_secret
        or settings.canva.client_secret
    )
    if not secret:
        raise ValueError("SESSION_SECRET must be provided to sign OAuth attempts.")
    return OAuthStateEncoder(secret_key=secret)


@lru_cache()
def get_canva_oauth_client() -> CanvaOAuthClient:
    """Create a singleton Canva OAuth client."""
    settings = _settings()
    return CanvaOAuthClient(settings.canva)


def resolve_encryption_secret(settings: AppSettings) -> str:
    """Return the credential encryption secret.

    Outside production a missing ``TOKEN_ENCRYPTION_SECRET`` falls back to the
    Canva client secret, with a warning.
    """
    secret = settings.security.token_encryption_secret
    if not secret:
        if settings.is_production or not settings.canva.client_secret:
            raise ValueError("TOKEN_ENCRYPTION_SECRET must be provided to encrypt credentials.")
        logger.warning(
            "TOKEN_ENCRYPTION_SECRET is not set; encrypting credentials with "
            "CANVA_CLIENT_SECRET, so rotating it will make stored credentials unreadable."
        )
        secret = settings.canva.client_secret
    return secret


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for credential storage."""
    return TokenCipherService(secret=resolve_encryption_secret(_settings()))


@lru_cache()
def get_credential_store() -> EncryptedCredentialStore:
    """Provide the shared encrypted credential file."""
    settings = _settings()
    return EncryptedCredentialStore(
        settings.storage.credentials_file, get_token_cipher_service()
    )


@lru_cache()
def get_authorization_attempt_store() -> AuthorizationAttemptStore:
    """Provide the process-local registry of pending authorization attempts."""
    settings = _settings()
    return AuthorizationAttemptStore(ttl_seconds=settings.oauth.attempt_ttl_seconds)


@lru_cache()
def get_canva_token_service() -> CanvaTokenService:
    """Provide helper for managing Canva OAuth tokens."""
    settings = _settings()
    return CanvaTokenService(
        store=get_credential_store(),
        oauth_client=get_canva_oauth_client(),
        refresh_buffer_ms=settings.oauth.refresh_buffer_seconds * 1000,
        api_timeout=settings.canva.api_timeout_seconds,
    )


__all__ = [
    "get_authorization_attempt_store",
    "get_canva_oauth_client",
    "get_canva_token_service",
    "get_credential_store",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "resolve_encryption_secret",
]
