"""
FastAPI application entrypoint for the Canva integration service.
"""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from canva_bridge.api.routes import router as api_router
from canva_bridge.core.config import get_settings
from canva_bridge.core.logging import configure_logging
from canva_bridge.services import CredentialStoreCorrupt

logger = logging.getLogger(__name__)


async def _credential_store_corrupt_handler(
    request: Request, exc: CredentialStoreCorrupt
) -> JSONResponse:
    logger.error("Refusing request %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        content={"detail": "Stored Canva credentials are unreadable."},
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Canva Bridge",
        version="0.1.0",
        description="Delegated Canva access with encrypted, self-renewing credentials.",
    )
    app.add_exception_handler(CredentialStoreCorrupt, _credential_store_corrupt_handler)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
