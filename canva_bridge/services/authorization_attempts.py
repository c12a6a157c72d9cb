"""In-process registry of pending PKCE authorization attempts."""

from __future__ import annotations

import hmac
import threading
import time
from typing import Callable, Dict, Optional, Tuple
from uuid import uuid4

from canva_bridge.clients.canva_auth import (
    StateMismatch,
    generate_pkce_pair,
    generate_state,
)
from canva_bridge.models.oauth import AuthorizationAttempt


class AuthorizationAttemptStore:
    """Hold each attempt's verifier and state until its callback arrives, with TTL pruning."""

    def __init__(
        self,
        ttl_seconds: int = 600,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._attempts: Dict[str, AuthorizationAttempt] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._attempts)

    def _prune(self, now: float) -> None:
        expired = [
            attempt_id
            for attempt_id, attempt in self._attempts.items()
            if now - attempt.issued_at > self._ttl
        ]
        for attempt_id in expired:
            del self._attempts[attempt_id]

    def create(
        self, account_id: str, redirect_to: Optional[str] = None
    ) -> Tuple[AuthorizationAttempt, str]:
        """Start an attempt; returns it with the PKCE challenge to send upstream."""
        pkce = generate_pkce_pair()
        now = self._clock()
        attempt = AuthorizationAttempt(
            attempt_id=uuid4().hex,
            account_id=account_id,
            state=generate_state(),
            code_verifier=pkce.code_verifier,
            issued_at=now,
            redirect_to=redirect_to,
        )
        with self._lock:
            self._prune(now)
            self._attempts[attempt.attempt_id] = attempt
        return attempt, pkce.code_challenge

    def consume(self, attempt_id: str, state: str) -> AuthorizationAttempt:
        """Remove the attempt and return it if ``state`` matches and it is still fresh."""
        with self._lock:
            attempt = self._attempts.pop(attempt_id, None)
        if attempt is None:
            raise StateMismatch("No pending authorization attempt; restart the flow.")
        if self._clock() - attempt.issued_at > self._ttl:
            raise StateMismatch("Authorization attempt has expired; restart the flow.")
        if not hmac.compare_digest(attempt.state.encode(), (state or "").encode()):
            raise StateMismatch("OAuth state does not match the pending attempt.")
        return attempt

    def discard(self, attempt_id: str) -> None:
        with self._lock:
            self._attempts.pop(attempt_id, None)


__all__ = ["AuthorizationAttemptStore"]
