"""
Helpers for retrieving and refreshing Canva OAuth tokens.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Dict, Optional

from canva_bridge.clients.canva_api import CanvaApiClient
from canva_bridge.clients.canva_auth import AuthRefreshFailed, now_ms
from canva_bridge.models.oauth import AuthStatus, CredentialRecord
from canva_bridge.services.credential_store import (
    CredentialNotFound,
    EncryptedCredentialStore,
)

if TYPE_CHECKING:  # pragma: no cover - type hints only
    import httpx

    from canva_bridge.clients.canva_auth import CanvaOAuthClient

logger = logging.getLogger(__name__)

REFRESH_BUFFER_MS = 5 * 60 * 1000


def is_near_expiry(
    record: CredentialRecord, now: int, buffer_ms: int = REFRESH_BUFFER_MS
) -> bool:
    """True when the access token expires within ``buffer_ms`` of ``now``."""
    return now + buffer_ms >= record.expires_at


class CanvaTokenService:
    """Hands out valid Canva access tokens per account, refreshing them lazily."""

    def __init__(
        self,
        store: EncryptedCredentialStore,
        oauth_client: "CanvaOAuthClient",
        *,
        refresh_buffer_ms: int = REFRESH_BUFFER_MS,
        api_timeout: float = 30.0,
        clock: Callable[[], int] = now_ms,
        api_transport: Optional["httpx.AsyncBaseTransport"] = None,
    ) -> None:
        self._store = store
        self._oauth = oauth_client
        self._buffer_ms = refresh_buffer_ms
        self._api_timeout = api_timeout
        self._clock = clock
        self._api_transport = api_transport
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, account_id: str) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        return lock

    def is_near_expiry(self, record: CredentialRecord) -> bool:
        return is_near_expiry(record, self._clock(), self._buffer_ms)

    async def complete_authorization(
        self, account_id: str, code: str, code_verifier: str
    ) -> CredentialRecord:
        """Exchange an authorization code and persist the resulting credentials."""
        token_data = await self._oauth.exchange_code(code, code_verifier)
        async with self._lock_for(account_id):
            return self._store.store_token(account_id, token_data)

    def get_record(self, account_id: str) -> Optional[CredentialRecord]:
        return self._store.get_token(account_id)

    def status(self, account_id: str) -> AuthStatus:
        record = self._store.get_token(account_id)
        if record is None:
            return AuthStatus.NOT_AUTHENTICATED
        if record.reauthorization_required:
            return AuthStatus.REAUTHORIZATION_REQUIRED
        return AuthStatus.AUTHENTICATED

    async def get_valid_access_token(self, account_id: str) -> Optional[str]:
        """
        Return a usable access token, or ``None`` when the account must (re)authorize.

        ``AuthRefreshUnavailable`` propagates so callers can retry later
        instead of treating the account as logged out.
        """
        record = self._store.get_token(account_id)
        if record is None or record.reauthorization_required:
            return None
        if not self.is_near_expiry(record):
            return record.access_token

        try:
            refreshed = await self._refresh(account_id, force=False)
        except AuthRefreshFailed:
            return None
        return refreshed.access_token

    async def force_refresh(
        self, account_id: str, rejected_token: Optional[str] = None
    ) -> str:
        """
        Refresh regardless of the stored expiry, e.g. after Canva answered 401.

        When ``rejected_token`` is given and another caller already replaced
        it, the newer token is returned without a second refresh.
        """
        record = await self._refresh(account_id, force=True, rejected_token=rejected_token)
        return record.access_token

    async def _refresh(
        self,
        account_id: str,
        *,
        force: bool,
        rejected_token: Optional[str] = None,
    ) -> CredentialRecord:
        async with self._lock_for(account_id):
            record = self._store.get_token(account_id)
            if record is None:
                raise AuthRefreshFailed(f"No credentials stored for account {account_id}.")
            if record.reauthorization_required:
                raise AuthRefreshFailed(
                    f"Account {account_id} must re-authorize with Canva."
                )
            if force and rejected_token is not None and record.access_token != rejected_token:
                return record
            if not force and not self.is_near_expiry(record):
                return record

            try:
                token_data = await self._oauth.refresh(record.refresh_token)
            except AuthRefreshFailed as exc:
                logger.warning(
                    "Canva refresh rejected for account %s (status %s); re-authorization required",
                    account_id,
                    exc.status_code,
                )
                try:
                    self._store.update_token(account_id, reauthorization_required=True)
                except CredentialNotFound:
                    # deleted directly through the store while refreshing
                    pass
                raise

            try:
                updated = self._store.update_token(
                    account_id,
                    access_token=token_data.access_token,
                    refresh_token=token_data.refresh_token,
                    expires_at=max(token_data.expires_at, record.expires_at + 1),
                    scope=token_data.scope or None,
                )
            except CredentialNotFound as exc:
                raise AuthRefreshFailed(
                    f"Credentials for account {account_id} were removed during refresh."
                ) from exc
            logger.info("Refreshed Canva token for account %s", account_id)
            return updated

    async def logout(self, account_id: str) -> bool:
        """Delete stored credentials once any in-flight refresh has finished."""
        async with self._lock_for(account_id):
            return self._store.delete_token(account_id)

    async def get_client(self, account_id: str) -> Optional[CanvaApiClient]:
        """Build an API client bound to the account, or ``None`` if not usable."""
        access_token = await self.get_valid_access_token(account_id)
        if access_token is None:
            return None

        async def _on_token_refresh(rejected: str) -> str:
            return await self.force_refresh(account_id, rejected_token=rejected)

        return CanvaApiClient(
            access_token,
            on_token_refresh=_on_token_refresh,
            timeout=self._api_timeout,
            transport=self._api_transport,
        )


__all__ = ["CanvaTokenService", "REFRESH_BUFFER_MS", "is_near_expiry"]
