"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from canva_bridge.models.oauth import AuthStatus


class AuthorizationStartResponse(BaseModel):
    """Returned to non-browser clients that start the Canva OAuth flow."""

    authorization_url: str
    account_id: str


class OAuthCallbackResult(BaseModel):
    status: str = "connected"
    account_id: str
    redirect_to: Optional[str] = None


class AuthStatusResponse(BaseModel):
    """Connection state for one account."""

    account_id: str
    status: AuthStatus
    authenticated: bool
    user_id: Optional[str] = None
    expires_at: Optional[int] = Field(None, description="Epoch milliseconds.")
    is_expired: Optional[bool] = None


__all__ = ["AuthStatusResponse", "AuthorizationStartResponse", "OAuthCallbackResult"]
