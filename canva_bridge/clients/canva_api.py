"""Canva Connect API client wrapper with a single automatic re-authentication."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

import httpx

logger = logging.getLogger(__name__)

CANVA_API_BASE = "https://api.canva.com/rest/v1"

TokenRefresher = Callable[[str], Awaitable[str]]


class RemoteRequestFailed(Exception):
    """Raised for Canva API failures that are not authentication problems."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CanvaAuthenticationError(Exception):
    """Raised when Canva still rejects the credentials after one refresh."""

    def __init__(self, message: str, *, status_code: int = 401) -> None:
        super().__init__(message)
        self.status_code = status_code


_STATUS_MESSAGES = {
    403: "You don't have permission to access this resource.",
    404: "Resource not found.",
    429: "Rate limit exceeded. Please try again in a moment.",
}


def _edit_url(design: dict) -> str:
    urls = design.get("urls") or {}
    return urls.get("edit_url") or f"https://www.canva.com/design/{design['id']}/edit"


class CanvaApiClient:
    """
    Authenticated Canva Connect client.

    A 401 from Canva triggers the ``on_token_refresh`` callback once; the
    request is replayed with the new token and any further 401 is surfaced
    as :class:`CanvaAuthenticationError`.
    """

    def __init__(
        self,
        access_token: str,
        *,
        on_token_refresh: Optional[TokenRefresher] = None,
        timeout: float = 30.0,
        base_url: str = CANVA_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._access_token = access_token
        self._on_token_refresh = on_token_refresh
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    @property
    def access_token(self) -> str:
        return self._access_token

    def update_token(self, access_token: str) -> None:
        self._access_token = access_token

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "CanvaApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            return await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteRequestFailed(f"Canva request {method} {path} failed: {exc}") from exc

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Perform a request and return the decoded JSON body."""
        response = await self._send(method, path, **kwargs)

        if response.status_code == 401 and self._on_token_refresh is not None:
            rejected = self._access_token
            logger.info("Canva rejected access token; refreshing once before retry")
            self.update_token(await self._on_token_refresh(rejected))
            response = await self._send(method, path, **kwargs)

        if response.status_code == 401:
            raise CanvaAuthenticationError(
                "Authentication failed. Please reconnect your Canva account.",
                status_code=401,
            )
        if not response.is_success:
            raise RemoteRequestFailed(
                self._error_message(response, f"Canva request {method} {path} failed"),
                status_code=response.status_code,
            )
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response, default_message: str) -> str:
        known = _STATUS_MESSAGES.get(response.status_code)
        if known:
            return known
        try:
            detail = response.json().get("message")
        except ValueError:
            detail = None
        return f"{default_message}: {detail or response.reason_phrase}"

    async def list_folders(self) -> list[dict]:
        """List folders in the root folder of the connected account."""
        data = await self.request(
            "GET", "/folders/root/items", params={"item_types": "folder", "limit": 100}
        )
        return [
            {
                "id": item["folder"]["id"],
                "name": item["folder"].get("name"),
                "type": item["type"],
                "created_at": item["folder"].get("created_at"),
                "updated_at": item["folder"].get("updated_at"),
            }
            for item in data.get("items", [])
            if item.get("type") == "folder" and item.get("folder")
        ]

    async def list_folder_designs(self, folder_id: str) -> list[dict]:
        """List designs contained in a folder."""
        data = await self.request(
            "GET", f"/folders/{folder_id}/items", params={"item_types": "design"}
        )
        designs = []
        for item in data.get("items", []):
            design = item.get("design")
            if item.get("type") != "design" or not design:
                continue
            designs.append(
                {
                    "id": design["id"],
                    "title": design.get("title"),
                    "width": design.get("width"),
                    "height": design.get("height"),
                    "thumbnail": item.get("thumbnail") or design.get("thumbnail"),
                    "urls": design.get("urls"),
                    "created_at": design.get("created_at"),
                    "updated_at": design.get("updated_at"),
                }
            )
        return designs

    async def get_design_details(self, design_id: str) -> dict:
        """Fetch a design including whether its view link is public."""
        data = await self.request("GET", f"/designs/{design_id}")
        design = dict(data.get("design") or {})
        view_link = ((design.get("sharing") or {}).get("access") or {}).get("view_link") or {}
        design["is_shared_publicly"] = bool(view_link.get("enabled"))
        return design

    async def is_design_publicly_shared(self, design_id: str) -> bool:
        try:
            design = await self.get_design_details(design_id)
        except RemoteRequestFailed as exc:
            logger.warning("Could not check sharing for design %s: %s", design_id, exc)
            return False
        return design["is_shared_publicly"]

    async def list_brand_templates(self) -> list[dict]:
        data = await self.request("GET", "/brand-templates")
        return data.get("items", [])

    async def copy_design(self, design_id: str, title: str | None = None) -> dict:
        """Copy a design and return the new design id and edit URL."""
        body = {"title": title} if title else {}
        data = await self.request("POST", f"/designs/{design_id}/copy", json=body)
        design = data["design"]
        return {"design_id": design["id"], "edit_url": _edit_url(design)}

    async def create_from_brand_template(
        self, template_id: str, data: dict | None = None
    ) -> dict:
        """Create a design from a brand template dataset."""
        result = await self.request(
            "POST", f"/brand-templates/{template_id}/dataset", json={"data": data or {}}
        )
        design = result["design"]
        return {"design_id": design["id"], "edit_url": _edit_url(design)}

    async def get_current_user(self) -> dict:
        data = await self.request("GET", "/users/me")
        return data.get("user") or {}


async def filter_public_designs(
    client: CanvaApiClient, designs: Iterable[dict]
) -> list[dict]:
    """Return detailed records for the designs whose view link is public."""

    async def _details(design: dict) -> dict | None:
        try:
            return await client.get_design_details(design["id"])
        except RemoteRequestFailed as exc:
            logger.warning("Error fetching design %s: %s", design["id"], exc)
            return None

    results = await asyncio.gather(*(_details(design) for design in designs))
    return [design for design in results if design and design["is_shared_publicly"]]


__all__ = [
    "CANVA_API_BASE",
    "CanvaApiClient",
    "CanvaAuthenticationError",
    "RemoteRequestFailed",
    "TokenRefresher",
    "filter_public_designs",
]
