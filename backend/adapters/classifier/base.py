"""
Remote intent classifier contract.

Purpose:
- Define the interface for a remote command/conversation verdict.
- Keep all orchestration, timing and fallback semantics OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No fallback decisions (the reducer applies the failure policy).
- No knowledge of the channel, executor, or state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IntentClassifier(ABC):
    """
    Abstract base class for remote intent classifiers.

    The adapter is a *dumb pipe*:
    text -> vendor -> is_command verdict.

    Orchestrator responsibilities (NOT here):
    - Whether to call it at all (local heuristic first)
    - The hard deadline
    - What a failure means
    """

    @abstractmethod
    async def classify(self, text: str, timeout_s: float) -> bool:
        """
        Return True if text is a discrete command, False for conversation.

        Contract:
        - Must honour timeout_s for its own I/O.
        - Must raise MissingCredentialError when no credential is configured,
          without touching the network.
        - Must raise ClassificationTimeout on its own deadline expiry.
        - Must raise ClassificationTransportError for every other failure
          (network, HTTP status, malformed body).
        - Must NOT retry internally.
        """
        raise NotImplementedError
