"""
Task kind enumeration for run-id–versioned concurrent work.

Rules:
- This enum identifies versioned handles only.
- It must NOT encode behavior or lifecycle rules.
- Reducer logic decides how handles are started, superseded, and joined.
"""

from __future__ import annotations

from enum import Enum


class TaskKind(str, Enum):
    """
    Concurrent work owned by the orchestrator.

    Each kind:
    - Has at most one live handle at a time
    - Is identified by a monotonically increasing run_id
    """

    SPEECH = "SPEECH"
    WARMUP = "WARMUP"
    CLASSIFICATION = "CLASSIFICATION"
    EXECUTION = "EXECUTION"
    SEND = "SEND"
