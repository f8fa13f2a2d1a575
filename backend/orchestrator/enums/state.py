"""
Authoritative session state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class State(str, Enum):
    """
    High-level deterministic control states for one utterance cycle.

    These states represent orchestration intent, NOT channel status
    and NOT collaborator lifecycles.
    """

    IDLE = "IDLE"
    LISTENING = "LISTENING"
    CLASSIFYING = "CLASSIFYING"
    EXECUTING_COMMAND = "EXECUTING_COMMAND"
    CONVERSING = "CONVERSING"
