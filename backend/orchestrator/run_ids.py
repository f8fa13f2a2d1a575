"""
Run ID container for versioned concurrent work.

Rules:
- Run IDs are monotonic integers.
- They are owned and incremented ONLY by the orchestrator reducer.
- This module defines structure, not behavior.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RunIds:
    """
    Immutable container for active run IDs per task kind.

    Semantics:
    - A value of 0 means "no run has been started yet".
    - Once a run ID is incremented, it is never reused.
    - speech doubles as the utterance cycle id.
    """

    speech: int = 0
    warmup: int = 0
    classification: int = 0
    execution: int = 0
    send: int = 0
