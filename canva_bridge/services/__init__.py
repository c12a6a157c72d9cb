"""Service layer exports."""

from .authorization_attempts import AuthorizationAttemptStore
from .canva_tokens import CanvaTokenService, is_near_expiry
from .credential_store import (
    CredentialNotFound,
    CredentialStoreCorrupt,
    EncryptedCredentialStore,
)
from .token_cipher import TokenCipherService

__all__ = [
    "AuthorizationAttemptStore",
    "CanvaTokenService",
    "CredentialNotFound",
    "CredentialStoreCorrupt",
    "EncryptedCredentialStore",
    "TokenCipherService",
    "is_near_expiry",
]
