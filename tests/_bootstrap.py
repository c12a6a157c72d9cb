"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "CANVA_CLIENT_ID": "test-client-id",
    "CANVA_CLIENT_SECRET": "test-client-secret",
    "CANVA_REDIRECT_URI": "https://example.com/api/auth/canva/callback",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "SESSION_SECRET": "test-session-secret",
    "DATA_DIR": tempfile.mkdtemp(prefix="canva-bridge-tests-"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
