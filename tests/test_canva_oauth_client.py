try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs

import httpx
import pytest

from canva_bridge.clients.canva_auth import (
    AuthExchangeFailed,
    AuthNotConfigured,
    AuthRefreshFailed,
    AuthRefreshUnavailable,
    CanvaOAuthClient,
)
from canva_bridge.core.config import CanvaSettings


class TokenEndpoint:
    """Records form posts and answers with a canned response."""

    def __init__(self, status_code: int = 200, payload: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = payload if payload is not None else {}
        self.forms: list[dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode("utf-8"))
        self.forms.append({key: values[0] for key, values in form.items()})
        return httpx.Response(self.status_code, json=self.payload)


def _client(settings, clock, endpoint) -> CanvaOAuthClient:
    return CanvaOAuthClient(settings, clock=clock, transport=httpx.MockTransport(endpoint))


@pytest.mark.asyncio
async def test_exchange_code_posts_pkce_verifier(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(
        payload={
            "access_token": "at1",
            "refresh_token": "rt1",
            "expires_in": 3600,
            "scope": "folder:read design:meta:read",
            "user": {"id": "U123"},
        }
    )

    token = await _client(canva_settings, clock, endpoint).exchange_code("abc", "v1")

    assert endpoint.forms == [
        {
            "grant_type": "authorization_code",
            "code": "abc",
            "code_verifier": "v1",
            "client_id": "client",
            "client_secret": "secret",
            "redirect_uri": "https://example.com/callback",
        }
    ]
    assert token.access_token == "at1"
    assert token.refresh_token == "rt1"
    assert token.expires_at == clock.now + 3_600_000
    assert token.scope == "folder:read design:meta:read"
    assert token.user_id == "U123"


@pytest.mark.asyncio
async def test_exchange_code_failure_carries_status_and_body(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(status_code=400, payload={"error": "invalid_grant"})

    with pytest.raises(AuthExchangeFailed) as excinfo:
        await _client(canva_settings, clock, endpoint).exchange_code("used", "v1")

    assert excinfo.value.status_code == 400
    assert "invalid_grant" in excinfo.value.body


@pytest.mark.asyncio
async def test_exchange_code_requires_client_credentials(clock) -> None:
    settings = CanvaSettings(CANVA_CLIENT_ID="client", CANVA_CLIENT_SECRET="")
    endpoint = TokenEndpoint()

    with pytest.raises(AuthNotConfigured):
        await _client(settings, clock, endpoint).exchange_code("abc", "v1")
    assert endpoint.forms == []


@pytest.mark.asyncio
async def test_refresh_retains_previous_refresh_token_when_omitted(
    canva_settings, clock
) -> None:
    endpoint = TokenEndpoint(payload={"access_token": "at2", "expires_in": 1800})

    token = await _client(canva_settings, clock, endpoint).refresh("rt1")

    assert endpoint.forms[0] == {
        "grant_type": "refresh_token",
        "refresh_token": "rt1",
        "client_id": "client",
        "client_secret": "secret",
    }
    assert token.access_token == "at2"
    assert token.refresh_token == "rt1"
    assert token.expires_at == clock.now + 1_800_000


@pytest.mark.asyncio
async def test_refresh_uses_rotated_refresh_token(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(
        payload={"access_token": "at2", "refresh_token": "rt2", "expires_in": 3600}
    )

    token = await _client(canva_settings, clock, endpoint).refresh("rt1")

    assert token.refresh_token == "rt2"


@pytest.mark.asyncio
async def test_refresh_rejection_is_not_transient(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(status_code=401, payload={"error": "invalid_grant"})

    with pytest.raises(AuthRefreshFailed) as excinfo:
        await _client(canva_settings, clock, endpoint).refresh("revoked")

    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_refresh_network_failure_is_transient(canva_settings, clock) -> None:
    def _unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client = CanvaOAuthClient(
        canva_settings, clock=clock, transport=httpx.MockTransport(_unreachable)
    )

    with pytest.raises(AuthRefreshUnavailable):
        await client.refresh("rt1")


@pytest.mark.asyncio
async def test_refresh_server_error_is_transient(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(status_code=503)

    with pytest.raises(AuthRefreshUnavailable):
        await _client(canva_settings, clock, endpoint).refresh("rt1")


def _html_endpoint(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html>sign in to the network</html>")


@pytest.mark.asyncio
async def test_exchange_code_rejects_non_json_success(canva_settings, clock) -> None:
    client = _client(canva_settings, clock, _html_endpoint)

    with pytest.raises(AuthExchangeFailed) as excinfo:
        await client.exchange_code("abc", "v1")

    assert excinfo.value.status_code == 200
    assert "<html>" in excinfo.value.body


@pytest.mark.asyncio
async def test_refresh_rejects_non_json_success(canva_settings, clock) -> None:
    client = _client(canva_settings, clock, _html_endpoint)

    with pytest.raises(AuthRefreshFailed) as excinfo:
        await client.refresh("rt")

    assert excinfo.value.status_code == 200


@pytest.mark.asyncio
async def test_refresh_rejects_non_numeric_lifetime(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(payload={"access_token": "at2", "expires_in": "soon"})

    with pytest.raises(AuthRefreshFailed):
        await _client(canva_settings, clock, endpoint).refresh("rt")


@pytest.mark.asyncio
async def test_exchange_code_tolerates_unexpected_user_shape(canva_settings, clock) -> None:
    endpoint = TokenEndpoint(
        payload={
            "access_token": "at1",
            "refresh_token": "rt1",
            "expires_in": 3600,
            "user": "U123",
        }
    )

    token = await _client(canva_settings, clock, endpoint).exchange_code("abc", "v1")

    assert token.user_id == "unknown"
