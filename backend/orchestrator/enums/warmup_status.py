"""
Warmup status as observed by the reducer.

Mirrors the orchestrator's knowledge of the current warmup handle, not the
channel itself: the channel may still be CONNECTING after a cancel.
"""

from __future__ import annotations

from enum import Enum


class WarmupStatus(str, Enum):
    """
    NONE:
        No warmup started, or the channel was closed.

    PENDING:
        Connect attempt in flight; consumers must join, not restart.

    READY:
        Channel reached READY; reused by later turns.

    FAILED:
        Attempt failed, or a READY channel dropped. The next conversational
        need performs the single retry-connect.
    """

    NONE = "NONE"
    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"
