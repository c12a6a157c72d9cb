try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import importlib
import logging

import pytest

from canva_bridge.core.config import get_settings
from canva_bridge.services import TokenCipherService

providers = importlib.import_module("canva_bridge.dependencies.clients")


def _settings_without_encryption_secret(environment: str):
    settings = get_settings().model_copy(deep=True)
    settings.environment = environment
    settings.security.token_encryption_secret = None
    settings.canva.client_secret = "client-secret"
    return settings


def test_cipher_falls_back_to_client_secret_with_warning(monkeypatch, caplog) -> None:
    settings = _settings_without_encryption_secret("development")
    monkeypatch.setattr(providers, "_settings", lambda: settings)

    with caplog.at_level(logging.WARNING, logger=providers.__name__):
        cipher = providers.get_token_cipher_service.__wrapped__()

    envelope = TokenCipherService(secret="client-secret").encrypt("payload")
    assert cipher.decrypt(envelope) == "payload"
    assert "TOKEN_ENCRYPTION_SECRET is not set" in caplog.text


def test_cipher_requires_encryption_secret_in_production(monkeypatch) -> None:
    settings = _settings_without_encryption_secret("production")
    monkeypatch.setattr(providers, "_settings", lambda: settings)

    with pytest.raises(ValueError, match="TOKEN_ENCRYPTION_SECRET"):
        providers.get_token_cipher_service.__wrapped__()
