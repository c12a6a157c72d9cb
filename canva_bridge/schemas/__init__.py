"""Public schema exports."""

from .auth import AuthStatusResponse, AuthorizationStartResponse, OAuthCallbackResult
from .canva import BrandTemplateDesignRequest, CopyDesignRequest

__all__ = [
    "AuthStatusResponse",
    "AuthorizationStartResponse",
    "BrandTemplateDesignRequest",
    "CopyDesignRequest",
    "OAuthCallbackResult",
]
