"""
FastAPI routes for the Canva integration service.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus
from typing import Annotated, Any, AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from canva_bridge.clients import (
    AuthExchangeFailed,
    AuthNotConfigured,
    AuthRefreshFailed,
    AuthRefreshUnavailable,
    CanvaApiClient,
    CanvaAuthenticationError,
    RemoteRequestFailed,
    StateMismatch,
    filter_public_designs,
)
from canva_bridge.clients.canva_auth import build_authorization_url
from canva_bridge.dependencies import (
    get_app_settings,
    get_authorization_attempt_store,
    get_canva_token_service,
    get_oauth_state_encoder,
)
from canva_bridge.models.oauth import AuthStatus
from canva_bridge.schemas import (
    AuthStatusResponse,
    AuthorizationStartResponse,
    BrandTemplateDesignRequest,
    CopyDesignRequest,
    OAuthCallbackResult,
)

router = APIRouter()
logger = logging.getLogger(__name__)

ATTEMPT_COOKIE = "canva_oauth_attempt"

_NOT_AUTHENTICATED = {
    "code": AuthStatus.NOT_AUTHENTICATED.value,
    "message": "Canva account not connected. Please authenticate.",
}
_REAUTHORIZATION_REQUIRED = {
    "code": AuthStatus.REAUTHORIZATION_REQUIRED.value,
    "message": "Canva authorization expired or was revoked. Please re-authenticate.",
}


def _wants_html(request: Request) -> bool:
    return "text/html" in request.headers.get("accept", "").lower()


def _resolve_account(settings: Any, account_id: str | None) -> str:
    return account_id or settings.canva.default_account_id


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/canva/authorize", status_code=HTTPStatus.OK)
async def start_canva_oauth_flow(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    attempts: Annotated[Any, Depends(get_authorization_attempt_store)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    account_id: str | None = Query(
        default=None, description="Account the resulting credentials are stored under."
    ),
    redirect_to: str | None = Query(
        default=None,
        description="Optional URL to redirect back to on successful authentication.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Canva consent screen.",
    ),
) -> Response:
    """
    Kick off the PKCE flow by registering an attempt and building the consent URL.
    """
    try:
        settings.canva.require_credentials()
    except AuthNotConfigured as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc

    account = _resolve_account(settings, account_id)
    attempt, code_challenge = attempts.create(account, redirect_to=redirect_to)
    authorization_url = build_authorization_url(
        settings.canva, attempt.state, code_challenge, settings.oauth.scopes
    )

    if redirect or _wants_html(request):
        response: Response = RedirectResponse(
            url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(
            content=AuthorizationStartResponse(
                authorization_url=authorization_url, account_id=account
            ).model_dump()
        )
    response.set_cookie(
        ATTEMPT_COOKIE,
        state_encoder.encode({"attempt_id": attempt.attempt_id}),
        max_age=settings.oauth.attempt_ttl_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )
    return response


@router.get("/auth/canva/callback", status_code=HTTPStatus.OK)
async def handle_canva_oauth_callback(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    attempts: Annotated[Any, Depends(get_authorization_attempt_store)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    state: str | None = Query(default=None, description="OAuth state token."),
    code: str | None = Query(default=None, description="Authorization code from Canva."),
    error: str | None = Query(default=None, description="Error reported by Canva."),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    """Validate the attempt, exchange the code, and store the credentials."""
    cookie = request.cookies.get(ATTEMPT_COOKIE)
    try:
        if not cookie:
            raise StateMismatch("No authorization attempt bound to this browser.")
        attempt_id = state_encoder.decode(cookie).get("attempt_id", "")
        attempt = attempts.consume(attempt_id, state or "")
    except StateMismatch as exc:
        logger.warning("Rejected Canva OAuth callback: %s", exc)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    if error or not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Authorization was not granted: {error or 'missing authorization code'}",
        )

    try:
        await token_service.complete_authorization(
            attempt.account_id, code, attempt.code_verifier
        )
    except AuthExchangeFailed as exc:
        logger.warning(
            "Canva code exchange failed for account %s (status %s)",
            attempt.account_id,
            exc.status_code,
        )
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Failed to exchange authorization code. Please try connecting again.",
        ) from exc

    result = OAuthCallbackResult(
        account_id=attempt.account_id, redirect_to=attempt.redirect_to
    )
    redirect_target = attempt.redirect_to or settings.frontend_base_url
    if redirect_target and (redirect or _wants_html(request)):
        response: Response = RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(content=result.model_dump())
    response.delete_cookie(ATTEMPT_COOKIE)
    return response


@router.get("/auth/canva/status", response_model=AuthStatusResponse)
async def canva_auth_status(
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    account_id: str | None = Query(default=None),
) -> AuthStatusResponse:
    account = _resolve_account(settings, account_id)
    status = token_service.status(account)
    if status is AuthStatus.NOT_AUTHENTICATED:
        return AuthStatusResponse(account_id=account, status=status, authenticated=False)

    record = token_service.get_record(account)
    return AuthStatusResponse(
        account_id=account,
        status=status,
        authenticated=status is AuthStatus.AUTHENTICATED,
        user_id=record.user_id if record else None,
        expires_at=record.expires_at if record else None,
        is_expired=token_service.is_near_expiry(record) if record else None,
    )


@router.post("/auth/canva/logout", status_code=HTTPStatus.OK)
async def canva_logout(
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    account_id: str | None = Query(default=None),
) -> dict:
    account = _resolve_account(settings, account_id)
    removed = await token_service.logout(account)
    return {"account_id": account, "logged_out": removed}


@asynccontextmanager
async def _canva_client(token_service: Any, account_id: str) -> AsyncIterator[CanvaApiClient]:
    """Yield an authenticated client, translating credential failures to HTTP errors."""
    try:
        client = await token_service.get_client(account_id)
    except AuthRefreshUnavailable as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Canva is unreachable right now. Please try again shortly.",
        ) from exc

    if client is None:
        detail = (
            _REAUTHORIZATION_REQUIRED
            if token_service.status(account_id) is AuthStatus.REAUTHORIZATION_REQUIRED
            else _NOT_AUTHENTICATED
        )
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail=detail)

    try:
        async with client:
            yield client
    except (AuthRefreshFailed, CanvaAuthenticationError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED, detail=_REAUTHORIZATION_REQUIRED
        ) from exc
    except AuthRefreshUnavailable as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Canva is unreachable right now. Please try again shortly.",
        ) from exc
    except RemoteRequestFailed as exc:
        status_code = (
            exc.status_code
            if exc.status_code in (HTTPStatus.NOT_FOUND, HTTPStatus.TOO_MANY_REQUESTS)
            else HTTPStatus.BAD_GATEWAY
        )
        raise HTTPException(status_code=status_code, detail=str(exc)) from exc


@router.get("/canva/folders")
async def list_canva_folders(
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    account_id: str | None = Query(default=None),
) -> dict:
    async with _canva_client(token_service, _resolve_account(settings, account_id)) as client:
        folders = await client.list_folders()
    return {"folders": folders}


@router.get("/canva/folders/{folder_id}/designs")
async def list_canva_folder_designs(
    folder_id: str,
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    account_id: str | None = Query(default=None),
    public_only: bool = Query(
        default=True, description="Only include designs shared via a public view link."
    ),
) -> dict:
    async with _canva_client(token_service, _resolve_account(settings, account_id)) as client:
        designs = await client.list_folder_designs(folder_id)
        if public_only:
            designs = await filter_public_designs(client, designs)
    return {"designs": designs}


@router.get("/canva/brand-templates")
async def list_canva_brand_templates(
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    account_id: str | None = Query(default=None),
) -> dict:
    async with _canva_client(token_service, _resolve_account(settings, account_id)) as client:
        templates = await client.list_brand_templates()
    return {"brand_templates": templates}


@router.post("/canva/designs/{design_id}/copy", status_code=HTTPStatus.CREATED)
async def copy_canva_design(
    design_id: str,
    payload: CopyDesignRequest,
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    account_id: str | None = Query(default=None),
) -> dict:
    async with _canva_client(token_service, _resolve_account(settings, account_id)) as client:
        return await client.copy_design(design_id, title=payload.title)


@router.post("/canva/brand-templates/{template_id}/designs", status_code=HTTPStatus.CREATED)
async def create_design_from_brand_template(
    template_id: str,
    settings: Annotated[Any, Depends(get_app_settings)],
    token_service: Annotated[Any, Depends(get_canva_token_service)],
    payload: BrandTemplateDesignRequest | None = None,
    account_id: str | None = Query(default=None),
) -> dict:
    """Brand templates are shared organization-wide, so designs are created, not copied."""
    data = payload.data if payload else {}
    async with _canva_client(token_service, _resolve_account(settings, account_id)) as client:
        created = await client.create_from_brand_template(template_id, data)
    return {**created, "original_template_id": template_id}
