"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_authorization_attempt_store,
    get_canva_oauth_client,
    get_canva_token_service,
    get_credential_store,
    get_oauth_state_encoder,
    get_token_cipher_service,
    resolve_encryption_secret,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_authorization_attempt_store",
    "get_canva_oauth_client",
    "get_canva_token_service",
    "get_credential_store",
    "get_oauth_state_encoder",
    "get_token_cipher_service",
    "resolve_encryption_secret",
]
