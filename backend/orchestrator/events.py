"""
Unified event definitions for the orchestrator reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Timer events are not TaskEvents, but must carry run_id for stale gating.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from intents.classification import ClassificationFailure
from orchestrator.enums.channel_state import ChannelState
from orchestrator.enums.task_kind import TaskKind


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_ENDED = "SESSION_ENDED"

    # ------------------------------------------------------------------
    # User control
    # ------------------------------------------------------------------
    START_LISTENING = "START_LISTENING"
    STOP_LISTENING = "STOP_LISTENING"
    SEND_MESSAGE = "SEND_MESSAGE"
    SWITCH_TO_CONVERSATION = "SWITCH_TO_CONVERSATION"
    EXIT_CONVERSATION = "EXIT_CONVERSATION"
    RESET = "RESET"

    # ------------------------------------------------------------------
    # Speech source
    # ------------------------------------------------------------------
    TRANSCRIPT_UPDATED = "TRANSCRIPT_UPDATED"
    END_OF_SPEECH = "END_OF_SPEECH"

    # ------------------------------------------------------------------
    # Conversation channel
    # ------------------------------------------------------------------
    WARMUP_COMPLETED = "WARMUP_COMPLETED"
    WARMUP_FAILED = "WARMUP_FAILED"
    MESSAGE_SENT = "MESSAGE_SENT"
    MESSAGE_SEND_FAILED = "MESSAGE_SEND_FAILED"
    CHANNEL_STATE_CHANGED = "CHANNEL_STATE_CHANGED"

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    CLASSIFICATION_COMPLETED = "CLASSIFICATION_COMPLETED"
    CLASSIFICATION_FAILED = "CLASSIFICATION_FAILED"
    CLASSIFICATION_TIMEOUT = "CLASSIFICATION_TIMEOUT"

    # ------------------------------------------------------------------
    # Command execution
    # ------------------------------------------------------------------
    COMMAND_EXECUTED = "COMMAND_EXECUTED"

    # ------------------------------------------------------------------
    # Fatal
    # ------------------------------------------------------------------
    FATAL_ERROR = "FATAL_ERROR"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Task-Scoped Events
# =============================================================================

@dataclass(frozen=True)
class TaskEvent(Event):
    """
    Base class for events reported by a versioned concurrent task.

    The reducer MUST ignore events whose run_id does not match the
    currently active run for that kind, or whose kind is no longer
    outstanding (cancelled or superseded).
    """

    kind: TaskKind
    run_id: int


# =============================================================================
# Session Events
# =============================================================================

@dataclass(frozen=True)
class SessionStarted(Event):
    """Session created."""
    session_id: str


@dataclass(frozen=True)
class SessionEnded(Event):
    """Session torn down."""
    session_id: str


# =============================================================================
# User Control Events
# =============================================================================

@dataclass(frozen=True)
class StartListening(Event):
    """User began an utterance."""


@dataclass(frozen=True)
class StopListening(Event):
    """User ended capture manually (treated like end-of-speech)."""


@dataclass(frozen=True)
class SendMessage(Event):
    """Follow-up conversational turn while CONVERSING."""
    text: str


@dataclass(frozen=True)
class SwitchToConversation(Event):
    """Enter conversation mode directly, without an utterance."""


@dataclass(frozen=True)
class ExitConversation(Event):
    """User dismissed the conversation."""


@dataclass(frozen=True)
class Reset(Event):
    """Cancel everything and return to IDLE."""


# =============================================================================
# Speech Events
# =============================================================================

@dataclass(frozen=True)
class TranscriptUpdated(TaskEvent):
    """
    Live transcript snapshot (full text so far, not a delta).
    """
    text: str


@dataclass(frozen=True)
class EndOfSpeech(TaskEvent):
    """Speech source detected the end of the utterance."""


# =============================================================================
# Channel Events
# =============================================================================

@dataclass(frozen=True)
class WarmupCompleted(TaskEvent):
    """Connect attempt reached READY."""


@dataclass(frozen=True)
class WarmupFailed(TaskEvent):
    """Connect attempt failed."""
    reason: str


@dataclass(frozen=True)
class MessageSent(TaskEvent):
    """Transcript forwarded over the channel."""


@dataclass(frozen=True)
class MessageSendFailed(TaskEvent):
    """Channel not READY within the grace period, or the send raised."""
    reason: str


@dataclass(frozen=True)
class ChannelStateChanged(Event):
    """
    Channel adapter pushed a state change.

    Not run-gated: it describes the single shared channel.
    """
    channel_state: ChannelState


# =============================================================================
# Classification Events
# =============================================================================

@dataclass(frozen=True)
class ClassificationCompleted(TaskEvent):
    """Remote classifier answered before the deadline."""
    is_command: bool


@dataclass(frozen=True)
class ClassificationFailed(TaskEvent):
    """Remote classifier raised."""
    failure: ClassificationFailure
    reason: str


@dataclass(frozen=True)
class ClassificationTimeout(Event):
    """Classification deadline elapsed."""
    run_id: int


# =============================================================================
# Command Events
# =============================================================================

@dataclass(frozen=True)
class CommandExecuted(TaskEvent):
    """Executor returned."""
    success: bool
    message: str


# =============================================================================
# Fatal
# =============================================================================

@dataclass(frozen=True)
class FatalError(Event):
    """Non-recoverable error forcing everything back to IDLE."""
    reason: str
    context: dict[str, Any] | None = None
