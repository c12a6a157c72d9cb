"""
Canva OAuth utilities.

These helpers manage the PKCE authorization flow and the token refresh lifecycle.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
import time
from hashlib import sha256
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional
from urllib.parse import urlencode

import httpx

from canva_bridge.models.oauth import PKCEPair, TokenData

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from canva_bridge.core.config import CanvaSettings

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://www.canva.com/api/oauth/authorize"
TOKEN_URL = "https://api.canva.com/rest/v1/oauth/token"
CODE_CHALLENGE_METHOD = "S256"

DEFAULT_CANVA_SCOPES: tuple[str, ...] = (
    "folder:read",
    "folder:permission:read",
    "design:meta:read",
    "design:content:read",
    "design:content:write",
    "asset:read",
    "brandtemplate:meta:read",
    "brandtemplate:content:read",
)

_VERIFIER_BYTES = 96
_STATE_BYTES = 32


class CanvaAuthError(Exception):
    """Base class for failures in the Canva authorization lifecycle."""


class AuthNotConfigured(CanvaAuthError):
    """Raised when the OAuth client id or secret is missing."""


class StateMismatch(CanvaAuthError):
    """Raised when a callback does not match a pending authorization attempt."""


class _TokenEndpointError(CanvaAuthError):
    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AuthExchangeFailed(_TokenEndpointError):
    """Raised when the provider rejects an authorization code."""


class AuthRefreshFailed(_TokenEndpointError):
    """Raised when a refresh token is rejected; a new authorization is required."""


class AuthRefreshUnavailable(CanvaAuthError):
    """Raised when a refresh could not reach the provider; retry later."""


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_code_challenge(code_verifier: str) -> str:
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return _b64url(digest)


def generate_pkce_pair() -> PKCEPair:
    """Generate a PKCE verifier (128 URL-safe chars) and its S256 challenge."""
    code_verifier = _b64url(secrets.token_bytes(_VERIFIER_BYTES))
    return PKCEPair(
        code_verifier=code_verifier,
        code_challenge=generate_code_challenge(code_verifier),
    )


def generate_state() -> str:
    """Generate an anti-forgery state token for one authorization attempt."""
    return secrets.token_hex(_STATE_BYTES)


def build_authorization_url(
    settings: "CanvaSettings",
    state: str,
    code_challenge: str,
    scopes: Iterable[str] = DEFAULT_CANVA_SCOPES,
) -> str:
    """Construct the Canva consent URL for a PKCE authorization attempt."""
    settings.require_credentials()
    params = {
        "response_type": "code",
        "client_id": settings.client_id,
        "redirect_uri": settings.redirect_uri,
        "scope": " ".join(scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": CODE_CHALLENGE_METHOD,
    }
    return f"{AUTHORIZE_URL}?{urlencode(params)}"


def now_ms() -> int:
    return int(time.time() * 1000)


class OAuthStateEncoder:
    """Sign and verify small payloads carried through the browser."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except ValueError as exc:
            raise StateMismatch("Malformed authorization attempt token.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise StateMismatch("Invalid authorization attempt signature.")
        return json.loads(serialized)


class CanvaOAuthClient:
    """Exchange authorization codes and refresh tokens against Canva's token endpoint."""

    TOKEN_URL = TOKEN_URL

    def __init__(
        self,
        canva_settings: "CanvaSettings",
        *,
        clock: Callable[[], int] = now_ms,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._canva = canva_settings
        self._clock = clock
        self._transport = transport

    async def _post(self, payload: Dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._canva.token_timeout_seconds, transport=self._transport
        ) as client:
            return await client.post(
                self.TOKEN_URL,
                data=payload,
                headers={"Accept": "application/json"},
            )

    def _token_data(
        self,
        response: httpx.Response,
        error_cls: type[_TokenEndpointError],
        *,
        require_refresh_token: bool,
    ) -> TokenData:
        """Parse a 2xx token response, raising ``error_cls`` when it is unusable."""

        def _unusable(reason: str) -> _TokenEndpointError:
            return error_cls(
                f"{reason} returned from Canva.",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise _unusable("Unreadable token payload") from exc
        if not isinstance(token_payload, dict):
            raise _unusable("Unreadable token payload")

        if not token_payload.get("access_token") or not token_payload.get("expires_in"):
            raise _unusable("Incomplete token payload")
        if require_refresh_token and not token_payload.get("refresh_token"):
            raise _unusable("Incomplete token payload")
        try:
            expires_in = int(token_payload["expires_in"])
        except (TypeError, ValueError) as exc:
            raise _unusable("Invalid token lifetime") from exc

        user = token_payload.get("user")
        user_id = user.get("id") if isinstance(user, dict) else None
        return TokenData(
            access_token=str(token_payload["access_token"]),
            refresh_token=token_payload.get("refresh_token") or None,
            expires_at=self._clock() + expires_in * 1000,
            scope=str(token_payload.get("scope") or ""),
            user_id=str(user_id or token_payload.get("user_id") or "unknown"),
        )

    async def exchange_code(self, code: str, code_verifier: str) -> TokenData:
        """Exchange an authorization code plus its PKCE verifier for tokens."""
        self._canva.require_credentials()
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
            "client_id": self._canva.client_id,
            "client_secret": self._canva.client_secret,
            "redirect_uri": self._canva.redirect_uri,
        }

        try:
            response = await self._post(payload)
        except httpx.HTTPError as exc:
            raise AuthExchangeFailed(f"Token exchange failed: {exc}") from exc

        if not response.is_success:
            raise AuthExchangeFailed(
                f"Token exchange failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        return self._token_data(response, AuthExchangeFailed, require_refresh_token=True)

    async def refresh(self, refresh_token: str) -> TokenData:
        """
        Refresh the access token using a stored refresh token.

        The returned data always carries a refresh token; when Canva does not
        rotate it, the one passed in is kept.
        """
        self._canva.require_credentials()
        payload = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self._canva.client_id,
            "client_secret": self._canva.client_secret,
        }

        try:
            response = await self._post(payload)
        except httpx.HTTPError as exc:
            raise AuthRefreshUnavailable(f"Token refresh could not reach Canva: {exc}") from exc

        if response.status_code >= 500:
            raise AuthRefreshUnavailable(
                f"Token refresh failed upstream: {response.status_code}"
            )
        if not response.is_success:
            raise AuthRefreshFailed(
                f"Token refresh failed: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        token_data = self._token_data(
            response, AuthRefreshFailed, require_refresh_token=False
        )
        if not token_data.refresh_token:
            token_data.refresh_token = refresh_token
        return token_data


__all__ = [
    "AUTHORIZE_URL",
    "DEFAULT_CANVA_SCOPES",
    "AuthExchangeFailed",
    "AuthNotConfigured",
    "AuthRefreshFailed",
    "AuthRefreshUnavailable",
    "CanvaAuthError",
    "CanvaOAuthClient",
    "OAuthStateEncoder",
    "StateMismatch",
    "TOKEN_URL",
    "build_authorization_url",
    "generate_code_challenge",
    "generate_pkce_pair",
    "generate_state",
    "now_ms",
]
