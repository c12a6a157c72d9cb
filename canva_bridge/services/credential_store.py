"""File-backed, encrypted storage for per-account Canva credentials."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from canva_bridge.clients.canva_auth import now_ms
from canva_bridge.models.oauth import CredentialRecord, TokenData
from canva_bridge.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

CREDENTIALS_FILE_NAME = "tokens.encrypted.json"


class CredentialStoreCorrupt(Exception):
    """Raised when the credential file cannot be decrypted or parsed."""


class CredentialNotFound(KeyError):
    """Raised when updating credentials for an account that has none."""


def _ensure_directory(path: Path) -> None:
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


class EncryptedCredentialStore:
    """
    Keeps one :class:`CredentialRecord` per account identifier.

    The whole ``{account_id: record}`` map is serialized to JSON, encrypted as
    one envelope and atomically replaced on every mutation. Read-modify-write
    cycles are serialized by a process-wide lock.
    """

    def __init__(
        self,
        path: str | Path,
        cipher: TokenCipherService,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._path = Path(path)
        self._cipher = cipher
        self._clock = clock
        self._lock = threading.RLock()
        _ensure_directory(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, CredentialRecord]:
        if not self._path.exists():
            return {}
        try:
            envelope = self._path.read_bytes().decode("utf-8").strip()
            raw: Dict[str, Any] = json.loads(self._cipher.decrypt(envelope))
            return {
                account_id: CredentialRecord.model_validate(record)
                for account_id, record in raw.items()
            }
        except (ValueError, ValidationError, AttributeError) as exc:
            logger.error("Credential store %s could not be decrypted", self._path)
            raise CredentialStoreCorrupt(
                f"Credential store {self._path} is unreadable; "
                "check TOKEN_ENCRYPTION_SECRET or re-authorize."
            ) from exc

    def _save(self, records: Dict[str, CredentialRecord]) -> None:
        serialized = json.dumps(
            {account_id: record.to_storage() for account_id, record in records.items()}
        )
        envelope = self._cipher.encrypt(serialized)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(envelope)
                handle.flush()
                os.fsync(handle.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def store_token(self, account_id: str, token_data: TokenData) -> CredentialRecord:
        """Persist credentials from a fresh authorization, replacing any previous ones."""
        if not token_data.refresh_token:
            raise ValueError("Cannot store credentials without a refresh token.")
        with self._lock:
            records = self._load()
            now = self._clock()
            record = CredentialRecord(
                access_token=token_data.access_token,
                refresh_token=token_data.refresh_token,
                expires_at=token_data.expires_at,
                scope=token_data.scope,
                user_id=token_data.user_id,
                created_at=now,
                last_refreshed_at=now,
            )
            records[account_id] = record
            self._save(records)
        logger.info("Stored Canva credentials for account %s", account_id)
        return record

    def get_token(self, account_id: str) -> Optional[CredentialRecord]:
        with self._lock:
            return self._load().get(account_id)

    def update_token(self, account_id: str, **changes: Any) -> CredentialRecord:
        """Merge non-empty ``changes`` into an existing record."""
        with self._lock:
            records = self._load()
            existing = records.get(account_id)
            if existing is None:
                raise CredentialNotFound(f"No token found for account {account_id}")
            updates = {key: value for key, value in changes.items() if value is not None}
            if "refresh_token" in updates and not updates["refresh_token"]:
                updates.pop("refresh_token")
            updates["last_refreshed_at"] = self._clock()
            record = existing.model_copy(update=updates)
            records[account_id] = record
            self._save(records)
        return record

    def delete_token(self, account_id: str) -> bool:
        with self._lock:
            records = self._load()
            removed = records.pop(account_id, None)
            if removed is None:
                return False
            self._save(records)
        logger.info("Deleted Canva credentials for account %s", account_id)
        return True

    def has_token(self, account_id: str) -> bool:
        with self._lock:
            return account_id in self._load()

    def list_accounts(self) -> list[str]:
        with self._lock:
            return list(self._load())


__all__ = [
    "CREDENTIALS_FILE_NAME",
    "CredentialNotFound",
    "CredentialStoreCorrupt",
    "EncryptedCredentialStore",
]
