"""
Connect-retry policy helpers.

Purpose:
- Centralize the conversation channel retry rule
- Keep reducer pure

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from spec import CHANNEL_CONNECT_RETRY_COUNT


@dataclass(frozen=True)
class RetryAttempt:
    """
    Immutable retry attempt counter.

    Semantics:
    - attempt == 0 represents the initial attempt (no retry yet).
    - attempt >= 1 represents the Nth retry attempt.
    """
    attempt: int = 0


def next_attempt(current: RetryAttempt) -> RetryAttempt:
    """Return a new RetryAttempt with attempt incremented by 1."""
    return RetryAttempt(attempt=current.attempt + 1)


def should_retry_connect(attempt: RetryAttempt) -> bool:
    """
    Returns True if another connect attempt is allowed.

    attempt = number of retries already performed. A failed warmup is
    retried exactly once, and only when a conversation actually needs
    the channel.
    """
    return attempt.attempt < CHANNEL_CONNECT_RETRY_COUNT


def reset_attempt() -> RetryAttempt:
    """Returns a fresh retry attempt counter."""
    return RetryAttempt(attempt=0)
