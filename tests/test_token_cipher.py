try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

import pytest

from canva_bridge.services.token_cipher import (
    AUTH_TAG_LENGTH,
    IV_LENGTH,
    TokenCipherService,
)


def test_token_cipher_roundtrip() -> None:
    cipher = TokenCipherService(secret="super-secret-key")
    plaintext = json.dumps({"organization": {"accessToken": "at1", "refreshToken": "rt1"}})

    encrypted = cipher.encrypt(plaintext)
    assert "at1" not in encrypted

    decrypted = cipher.decrypt(encrypted)
    assert decrypted == plaintext


def test_token_cipher_envelope_layout() -> None:
    cipher = TokenCipherService(secret="layout")

    envelope = cipher.encrypt("abc")

    header = (IV_LENGTH + AUTH_TAG_LENGTH) * 2
    assert len(envelope) == header + len("abc") * 2
    bytes.fromhex(envelope)


def test_token_cipher_uses_fresh_iv_per_call() -> None:
    cipher = TokenCipherService(secret="iv")

    assert cipher.encrypt("same") != cipher.encrypt("same")


def test_token_cipher_accepts_any_secret_length() -> None:
    short = TokenCipherService(secret="x")
    long = TokenCipherService(secret="y" * 500)

    assert short.decrypt(short.encrypt("value")) == "value"
    assert long.decrypt(long.encrypt("value")) == "value"


def test_token_cipher_rejects_empty_secret() -> None:
    with pytest.raises(ValueError):
        TokenCipherService(secret="")


def test_token_cipher_rejects_bad_ciphertext() -> None:
    cipher = TokenCipherService(secret="another-secret")

    with pytest.raises(ValueError):
        cipher.decrypt("not-valid")


def test_token_cipher_rejects_wrong_key() -> None:
    envelope = TokenCipherService(secret="one").encrypt("payload")

    with pytest.raises(ValueError):
        TokenCipherService(secret="two").decrypt(envelope)
