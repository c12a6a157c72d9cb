try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import pytest

from canva_bridge.clients.canva_auth import StateMismatch, generate_code_challenge
from canva_bridge.services.authorization_attempts import AuthorizationAttemptStore


class SecondsClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


def test_attempt_binds_state_to_verifier() -> None:
    attempts = AuthorizationAttemptStore(ttl_seconds=600)

    attempt, challenge = attempts.create("organization", redirect_to="https://app/done")

    assert generate_code_challenge(attempt.code_verifier) == challenge
    consumed = attempts.consume(attempt.attempt_id, attempt.state)
    assert consumed == attempt
    assert consumed.redirect_to == "https://app/done"


def test_attempt_is_single_use() -> None:
    attempts = AuthorizationAttemptStore()
    attempt, _ = attempts.create("organization")

    attempts.consume(attempt.attempt_id, attempt.state)

    with pytest.raises(StateMismatch):
        attempts.consume(attempt.attempt_id, attempt.state)


def test_mismatched_state_discards_the_attempt() -> None:
    attempts = AuthorizationAttemptStore()
    attempt, _ = attempts.create("organization")

    with pytest.raises(StateMismatch):
        attempts.consume(attempt.attempt_id, "forged-state")
    with pytest.raises(StateMismatch):
        attempts.consume(attempt.attempt_id, attempt.state)


def test_expired_attempts_are_rejected_and_pruned() -> None:
    clock = SecondsClock()
    attempts = AuthorizationAttemptStore(ttl_seconds=60, clock=clock)
    stale, _ = attempts.create("organization")

    clock.now += 61
    with pytest.raises(StateMismatch):
        attempts.consume(stale.attempt_id, stale.state)

    attempts.create("organization")
    clock.now += 61
    attempts.create("organization")
    assert len(attempts) == 1
