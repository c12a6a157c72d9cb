"""
Domain models for OAuth credential persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AuthStatus(str, Enum):
    """Outcome reported to callers asking whether an account is usable."""

    NOT_AUTHENTICATED = "not_authenticated"
    REAUTHORIZATION_REQUIRED = "reauthorization_required"
    AUTHENTICATED = "authenticated"


class TokenData(BaseModel):
    """Token material returned by the provider's token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_at: int = Field(..., description="Epoch milliseconds.")
    scope: str = ""
    user_id: str = "unknown"


class CredentialRecord(BaseModel):
    """Represents one account's credentials as persisted in the encrypted store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str = Field(..., min_length=1)
    expires_at: int
    scope: str = ""
    user_id: str = "unknown"
    created_at: int
    last_refreshed_at: int
    reauthorization_required: bool = False

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True, slots=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str


@dataclass(frozen=True, slots=True)
class AuthorizationAttempt:
    """A single pending authorization round-trip, consumed at callback time."""

    attempt_id: str
    account_id: str
    state: str
    code_verifier: str
    issued_at: float
    redirect_to: Optional[str] = None


__all__ = [
    "AuthStatus",
    "AuthorizationAttempt",
    "CredentialRecord",
    "PKCEPair",
    "TokenData",
]
