"""Authenticated symmetric encryption for protecting stored credentials."""

from __future__ import annotations

import hashlib
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

IV_LENGTH = 16
AUTH_TAG_LENGTH = 16


class TokenCipherService:
    """
    Encrypt and decrypt strings with AES-256-GCM under a derived key.

    Ciphertext is rendered as ``hex(iv) || hex(auth_tag) || hex(ciphertext)``.
    """

    def __init__(self, *, secret: str) -> None:
        if not secret:
            raise ValueError("Token encryption secret must be provided.")
        key = hashlib.sha256(secret.encode("utf-8")).digest()
        self._aead = AESGCM(key)

    def encrypt(self, plaintext: str) -> str:
        """Encrypt a plaintext string and return the hex-encoded envelope."""
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, auth_tag = sealed[:-AUTH_TAG_LENGTH], sealed[-AUTH_TAG_LENGTH:]
        return iv.hex() + auth_tag.hex() + ciphertext.hex()

    def decrypt(self, envelope: str) -> str:
        """Decrypt an envelope produced by :meth:`encrypt`."""
        header_length = (IV_LENGTH + AUTH_TAG_LENGTH) * 2
        if len(envelope) < header_length:
            raise ValueError("Failed to decrypt token; ciphertext is truncated.")
        try:
            iv = bytes.fromhex(envelope[: IV_LENGTH * 2])
            auth_tag = bytes.fromhex(envelope[IV_LENGTH * 2 : header_length])
            ciphertext = bytes.fromhex(envelope[header_length:])
        except ValueError as exc:
            raise ValueError("Failed to decrypt token; ciphertext is not hex.") from exc
        try:
            plaintext = self._aead.decrypt(iv, ciphertext + auth_tag, None)
        except InvalidTag as exc:
            raise ValueError(
                "Failed to decrypt token; invalid ciphertext provided."
            ) from exc
        return plaintext.decode("utf-8")


__all__ = ["AUTH_TAG_LENGTH", "IV_LENGTH", "TokenCipherService"]
