"""Request bodies for Canva-backed endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class CopyDesignRequest(BaseModel):
    title: Optional[str] = None


class BrandTemplateDesignRequest(BaseModel):
    """Autofill data for a design created from a brand template."""

    data: Dict[str, Any] = Field(default_factory=dict)


__all__ = ["BrandTemplateDesignRequest", "CopyDesignRequest"]
