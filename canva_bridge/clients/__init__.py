"""Expose constructed client wrappers."""

from .canva_api import (
    CanvaApiClient,
    CanvaAuthenticationError,
    RemoteRequestFailed,
    filter_public_designs,
)
from .canva_auth import (
    AuthExchangeFailed,
    AuthNotConfigured,
    AuthRefreshFailed,
    AuthRefreshUnavailable,
    CanvaAuthError,
    CanvaOAuthClient,
    OAuthStateEncoder,
    StateMismatch,
)

__all__ = [
    "AuthExchangeFailed",
    "AuthNotConfigured",
    "AuthRefreshFailed",
    "AuthRefreshUnavailable",
    "CanvaApiClient",
    "CanvaAuthError",
    "CanvaAuthenticationError",
    "CanvaOAuthClient",
    "OAuthStateEncoder",
    "RemoteRequestFailed",
    "StateMismatch",
    "filter_public_designs",
]
