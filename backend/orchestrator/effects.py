"""
Side-effect definitions for the orchestrator.

Rules:
- Effects are declarative requests for side effects.
- Effects are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Effect subclasses MUST be frozen dataclasses.
    - Effect execution never blocks the event loop: anything that waits
      on I/O runs as a task that reports back through an event.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from intents.commands import Command
from orchestrator.enums.task_kind import TaskKind
from orchestrator.events import EventType

# =============================================================================
# Effect Type Enumeration
# =============================================================================

class EffectType(str, Enum):
    """
    Canonical effect types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Speech source
    START_SPEECH = "START_SPEECH"
    STOP_SPEECH = "STOP_SPEECH"

    # Conversation channel
    START_WARMUP = "START_WARMUP"
    SEND_TO_CHANNEL = "SEND_TO_CHANNEL"
    CLOSE_CHANNEL = "CLOSE_CHANNEL"

    # Classification
    START_CLASSIFICATION = "START_CLASSIFICATION"

    # Command execution
    EXECUTE_COMMAND = "EXECUTE_COMMAND"

    # Any task kind
    CANCEL_TASK = "CANCEL_TASK"

    # User feedback
    NOTIFY_USER = "NOTIFY_USER"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"
    RECORD_METRIC = "RECORD_METRIC"


class FeedbackKind(str, Enum):
    """Cue shown or played to the user."""
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


# =============================================================================
# Base Effect
# =============================================================================

class Effect:
    """
    Base effect type.

    effect_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    effect_type: EffectType


# =============================================================================
# Speech Effects
# =============================================================================

@dataclass(frozen=True)
class StartSpeech(Effect):
    """Start capturing a new utterance."""
    run_id: int
    effect_type: EffectType = EffectType.START_SPEECH


@dataclass(frozen=True)
class StopSpeech(Effect):
    """Stop the active capture."""
    run_id: int
    effect_type: EffectType = EffectType.STOP_SPEECH


# =============================================================================
# Channel Effects
# =============================================================================

@dataclass(frozen=True)
class StartWarmup(Effect):
    """
    Open the conversation channel in the background.

    The adapter must emit exactly one WarmupCompleted or WarmupFailed.
    reconnect=True closes any existing connection first.
    """
    run_id: int
    reconnect: bool = False
    effect_type: EffectType = EffectType.START_WARMUP


@dataclass(frozen=True)
class SendToChannel(Effect):
    """
    Forward text to the live agent.

    The runtime waits up to grace_ms for READY before giving up with
    MessageSendFailed.
    """
    run_id: int
    text: str
    grace_ms: int
    effect_type: EffectType = EffectType.SEND_TO_CHANNEL


@dataclass(frozen=True)
class CloseChannel(Effect):
    """Close the conversation channel."""
    reason: str | None = None
    effect_type: EffectType = EffectType.CLOSE_CHANNEL


# =============================================================================
# Classification / Execution Effects
# =============================================================================

@dataclass(frozen=True)
class StartClassification(Effect):
    """
    Ask the remote classifier about text.

    Exactly one ClassificationCompleted or ClassificationFailed follows,
    unless the run is cancelled first.
    """
    run_id: int
    text: str
    timeout_ms: int
    effect_type: EffectType = EffectType.START_CLASSIFICATION


@dataclass(frozen=True)
class ExecuteCommand(Effect):
    """Run a parsed Command; the runtime emits CommandExecuted."""
    run_id: int
    command: Command
    effect_type: EffectType = EffectType.EXECUTE_COMMAND


@dataclass(frozen=True)
class CancelTask(Effect):
    """
    Cancel the task registered for (kind, run_id).

    Idempotent: cancelling a finished or unknown run is a no-op.
    """
    kind: TaskKind
    run_id: int
    effect_type: EffectType = EffectType.CANCEL_TASK


# =============================================================================
# Feedback
# =============================================================================

@dataclass(frozen=True)
class NotifyUser(Effect):
    """Surface a success / error cue."""
    kind: FeedbackKind
    message: str
    effect_type: EffectType = EffectType.NOTIFY_USER


# =============================================================================
# Timer Effects
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Effect):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event,
    tagged with run_id.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    run_id: int
    effect_type: EffectType = EffectType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Effect):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    effect_type: EffectType = EffectType.CANCEL_TIMER


# =============================================================================
# Observability Effects
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Effect):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    effect_type: EffectType = EffectType.LOG_EVENT


@dataclass(frozen=True)
class RecordMetric(Effect):
    """Request to record a metric value."""
    name: str
    value: float
    tags: tuple[tuple[str, str], ...] | None = None
    effect_type: EffectType = EffectType.RECORD_METRIC
