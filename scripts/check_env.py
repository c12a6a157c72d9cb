"""Preflight check for a Canva bridge deployment.

Loads settings from an env file and confirms the service can serve the OAuth
flow before it is (re)started:

1. ``AppSettings`` parses and the Canva client id and secret are present.
2. A credential encryption secret is available.
3. ``DATA_DIR`` exists (or can be created) and is writable.
4. An existing credential file decrypts with the configured secret, so a
   rotated or mistyped secret is caught before every account looks revoked.

Example usage::

    python -m scripts.check_env --env-file /srv/canva-bridge/.env
"""

from __future__ import annotations

import argparse
import sys
import tempfile
from pathlib import Path

from pydantic import ValidationError

from canva_bridge.clients.canva_auth import AuthNotConfigured
from canva_bridge.core.config import AppSettings, _load_env_file
from canva_bridge.dependencies.clients import resolve_encryption_secret
from canva_bridge.services import (
    CredentialStoreCorrupt,
    EncryptedCredentialStore,
    TokenCipherService,
)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2
EXIT_CREDENTIALS_UNREADABLE = 3
EXIT_STORAGE_ERROR = 4
EXIT_RUNTIME_ERROR = 5


class PreflightFailed(Exception):
    """A check failed; carries the process exit code to report."""

    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


def _load_settings(env_file: Path) -> AppSettings:
    if not env_file.exists():
        raise PreflightFailed(
            f"Environment file {env_file} does not exist.", EXIT_RUNTIME_ERROR
        )
    _load_env_file(str(env_file))
    try:
        settings = AppSettings(_env_file=env_file)  # type: ignore[call-arg]
        settings.canva.require_credentials()
    except ValidationError as exc:
        raise PreflightFailed(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            EXIT_CONFIG_ERROR,
        ) from exc
    except AuthNotConfigured as exc:
        raise PreflightFailed(str(exc), EXIT_CONFIG_ERROR) from exc
    return settings


def _check_encryption_secret(settings: AppSettings) -> str:
    try:
        return resolve_encryption_secret(settings)
    except ValueError as exc:
        raise PreflightFailed(str(exc), EXIT_CONFIG_ERROR) from exc


def _check_data_dir(data_dir: Path) -> None:
    try:
        data_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=data_dir, prefix=".preflight-"):
            pass
    except OSError as exc:
        raise PreflightFailed(
            f"DATA_DIR {data_dir} is not writable: {exc}", EXIT_STORAGE_ERROR
        ) from exc


def _check_credential_file(credentials_file: Path, secret: str) -> list[str]:
    if not credentials_file.exists():
        return []
    store = EncryptedCredentialStore(credentials_file, TokenCipherService(secret=secret))
    try:
        return store.list_accounts()
    except CredentialStoreCorrupt as exc:
        raise PreflightFailed(str(exc), EXIT_CREDENTIALS_UNREADABLE) from exc


def run_checks(env_file: Path) -> list[str]:
    """Run every check in order and return the accounts with stored credentials."""
    settings = _load_settings(env_file)
    secret = _check_encryption_secret(settings)
    _check_data_dir(settings.storage.data_dir)
    return _check_credential_file(settings.storage.credentials_file, secret)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check that the Canva bridge can start with the given environment."
    )
    parser.add_argument(
        "--env-file",
        default=".env",
        type=Path,
        help="Path to the environment file (default: .env in the repo root).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        accounts = run_checks(args.env_file)
    except PreflightFailed as exc:
        print(str(exc), file=sys.stderr)
        return exc.exit_code

    if accounts:
        print(f"Environment OK. Stored Canva credentials for: {', '.join(accounts)}")
    else:
        print("Environment OK. No Canva account connected yet.")
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
