"""
Error taxonomy.

Rules:
- Adapters raise these; they never decide what happens next.
- Runtime converts them into failure events at task boundaries.
- Reducer applies recovery policy (fallback, reroute, retry).
"""

from __future__ import annotations


class VoiceRouterError(Exception):
    """Base class for all orchestrator-visible failures."""


# -----------------------------------------------------------------------------
# Classification (never user-visible; recovered by fallback policy)
# -----------------------------------------------------------------------------

class ClassificationTimeout(VoiceRouterError):
    """Remote classifier did not answer within its hard deadline."""


class ClassificationTransportError(VoiceRouterError):
    """Remote classifier failed (network, HTTP status, malformed body)."""


class MissingCredentialError(ClassificationTransportError):
    """No API key / bearer token available for the remote classifier."""


# -----------------------------------------------------------------------------
# Conversation channel
# -----------------------------------------------------------------------------

class ChannelConnectFailure(VoiceRouterError):
    """Channel could not reach READY."""


class ChannelSendFailure(VoiceRouterError):
    """Channel was not READY within the grace period, or the send failed."""


# -----------------------------------------------------------------------------
# Command execution
# -----------------------------------------------------------------------------

class CommandExecutionFailure(VoiceRouterError):
    """Executor could not carry out a recognized command."""


class CommandUnrecognized(CommandExecutionFailure):
    """Parser produced Unknown for an utterance classified as a command."""
