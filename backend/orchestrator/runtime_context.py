"""
Runtime execution context.

Provides Runtime with live access to session-owned imperative resources
needed for effect execution (collaborators, session identity).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Awaitable, Callable, Protocol, runtime_checkable

from intents.commands import Command, CommandResult
from orchestrator.enums.channel_state import ChannelState

if TYPE_CHECKING:
    from session.voice_session import VoiceSession


TranscriptCallback = Callable[[str], Awaitable[None]]
EndOfSpeechCallback = Callable[[], Awaitable[None]]
ChannelStateCallback = Callable[[ChannelState], None]


# ---------------------------------------------------------------------
# Collaborator Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class SpeechSourceProtocol(Protocol):
    """
    Push-based transcript source.

    Contract:
    - on_transcript receives the full text so far, never a delta
    - on_end_of_speech fires at most once per start()
    - stop() is idempotent
    """

    async def start(
        self,
        on_transcript: TranscriptCallback,
        on_end_of_speech: EndOfSpeechCallback,
    ) -> None: ...

    async def stop(self) -> None: ...


@runtime_checkable
class RemoteClassifierProtocol(Protocol):
    """
    Binary command/conversation verdict from a remote model.

    Returns True for "command". Raises MissingCredentialError,
    ClassificationTimeout or ClassificationTransportError.
    """

    async def classify(self, text: str, timeout_s: float) -> bool: ...


@runtime_checkable
class ConversationChannelProtocol(Protocol):
    """
    Connection to the live conversational agent.

    Contract:
    - connect() returns once READY, raises ChannelConnectFailure otherwise
    - wait_ready() returns False if not READY within timeout_s
    - close() is idempotent
    - state changes are pushed to subscribers
    """

    @property
    def state(self) -> ChannelState: ...

    async def connect(self) -> None: ...

    async def wait_ready(self, timeout_s: float) -> bool: ...

    async def send(self, text: str) -> None: ...

    async def close(self) -> None: ...

    def subscribe(self, callback: ChannelStateCallback) -> None: ...


@runtime_checkable
class CommandExecutorProtocol(Protocol):
    async def execute(self, command: Command) -> CommandResult: ...


@runtime_checkable
class FeedbackSinkProtocol(Protocol):
    """Success / error cue for the user. Must not block."""

    def notify(self, kind: str, message: str) -> None: ...


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    This object provides *live views* into session-owned resources
    so Runtime does not need to synchronize or cache anything.

    Runtime is allowed to:
    - Call collaborators
    - Observe session identity

    Runtime is NOT allowed to:
    - Mutate session state directly
    - Perform orchestration decisions
    """

    def __init__(self, session: VoiceSession) -> None:
        self.session = session

    # ----------------------------
    # Session metadata
    # ----------------------------

    @property
    def session_id(self) -> str:
        return self.session.session_id

    # ----------------------------
    # Collaborators
    # ----------------------------

    @property
    def speech_source(self) -> SpeechSourceProtocol | None:
        return self.session.speech_source

    @property
    def classifier(self) -> RemoteClassifierProtocol | None:
        return self.session.classifier

    @property
    def channel(self) -> ConversationChannelProtocol | None:
        return self.session.channel

    @property
    def executor(self) -> CommandExecutorProtocol | None:
        return self.session.executor

    @property
    def feedback(self) -> FeedbackSinkProtocol | None:
        return self.session.feedback
