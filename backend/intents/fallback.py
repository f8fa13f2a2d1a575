"""
Remote classification failure policy.

Every failure cause maps to the same deterministic verdict: an unresolved
utterance is handed to the live agent rather than executed blindly.
The table is explicit so a future per-cause policy is a one-line change
and never an accidental mix.

This module contains NO timers, NO async, NO side effects.
"""

from __future__ import annotations

from typing import Final, Mapping

from errors import (
    ClassificationTimeout,
    MissingCredentialError,
)
from intents.classification import (
    ClassificationFailure,
    ClassificationResult,
    IsConversation,
)


FAILURE_FALLBACK: Final[Mapping[ClassificationFailure, ClassificationResult]] = {
    ClassificationFailure.TIMEOUT: IsConversation(),
    ClassificationFailure.TRANSPORT: IsConversation(),
    ClassificationFailure.MISSING_CREDENTIAL: IsConversation(),
}


def fallback_for(failure: ClassificationFailure) -> ClassificationResult:
    """Return the verdict applied when the remote stage fails."""
    return FAILURE_FALLBACK[failure]


def failure_from_exception(exc: BaseException) -> ClassificationFailure:
    """
    Classify an exception raised by a remote classifier.

    Anything that is not a timeout or a missing credential is transport.
    """
    if isinstance(exc, MissingCredentialError):
        return ClassificationFailure.MISSING_CREDENTIAL
    if isinstance(exc, (ClassificationTimeout, TimeoutError)):
        return ClassificationFailure.TIMEOUT
    return ClassificationFailure.TRANSPORT
