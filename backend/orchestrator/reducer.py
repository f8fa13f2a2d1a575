# pylint: disable=too-many-lines,too-many-return-statements
"""
Pure orchestrator reducer.

(state, event) -> (new_state, effects)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

# Reducer owns timer semantics; runtime must not cancel timers implicitly.

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from typing import Any

from intents.classification import (
    ClassificationFailure,
    ClassificationResult,
    ClassificationSource,
    IsCommand,
    IsConversation,
)
from intents.fallback import fallback_for
from intents.heuristic import match_command_keyword
from intents.parser import parse_command
from orchestrator.effects import (
    CancelTask,
    CancelTimer,
    CloseChannel,
    Effect,
    ExecuteCommand,
    FeedbackKind,
    LogEvent,
    NotifyUser,
    RecordMetric,
    SendToChannel,
    StartClassification,
    StartSpeech,
    StartTimer,
    StartWarmup,
    StopSpeech,
)
from orchestrator.enums.channel_state import ChannelState
from orchestrator.enums.state import State
from orchestrator.enums.task_kind import TaskKind
from orchestrator.enums.warmup_status import WarmupStatus
from orchestrator.events import (
    ChannelStateChanged,
    ClassificationCompleted,
    ClassificationFailed,
    ClassificationTimeout,
    CommandExecuted,
    EndOfSpeech,
    Event,
    EventType,
    ExitConversation,
    FatalError,
    MessageSendFailed,
    MessageSent,
    Reset,
    SendMessage,
    SessionEnded,
    SessionStarted,
    StartListening,
    StopListening,
    SwitchToConversation,
    TaskEvent,
    TranscriptUpdated,
    WarmupCompleted,
    WarmupFailed,
)
from orchestrator.retry import next_attempt, reset_attempt, should_retry_connect
from orchestrator.run_ids import RunIds
from orchestrator.state_dataclass import OrchestratorState
from spec import (
    CLASSIFICATION_TIMEOUT_MS,
    CONVERSATION_ACTIVE_MESSAGE,
    SEND_GRACE_PERIOD_MS,
)


Transition = tuple[OrchestratorState, tuple[Effect, ...]]


# =============================================================================
# Invariants (run ids & handles)
# =============================================================================
# - Run IDs are bumped ONLY when a new handle of that kind is started
# - Cancellation never bumps run IDs; it removes the kind from `outstanding`
# - A TaskEvent is admitted only for the active run of an outstanding kind
# - At most one outstanding handle per kind; starting one supersedes the old

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_CLASSIFICATION = "classification_timeout"

# Fixed order so cancellation effects are deterministic.
_CANCEL_ORDER: tuple[TaskKind, ...] = (
    TaskKind.SEND,
    TaskKind.EXECUTION,
    TaskKind.CLASSIFICATION,
    TaskKind.SPEECH,
    TaskKind.WARMUP,
)

_RUN_FIELDS: dict[TaskKind, str] = {
    TaskKind.SPEECH: "speech",
    TaskKind.WARMUP: "warmup",
    TaskKind.CLASSIFICATION: "classification",
    TaskKind.EXECUTION: "execution",
    TaskKind.SEND: "send",
}


# =============================================================================
# Small helpers
# =============================================================================

def _bump_run_id(active_runs: RunIds, kind: TaskKind) -> RunIds:
    name = _RUN_FIELDS[kind]
    return replace(active_runs, **{name: getattr(active_runs, name) + 1})


def _active_run_for(active_runs: RunIds, kind: TaskKind) -> int:
    return getattr(active_runs, _RUN_FIELDS[kind])


def _is_current(state: OrchestratorState, event: TaskEvent) -> bool:
    return (
        event.kind in state.outstanding
        and event.run_id == _active_run_for(state.active_runs, event.kind)
    )


def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "run_ids": {
                "speech": state.active_runs.speech,
                "warmup": state.active_runs.warmup,
                "classification": state.active_runs.classification,
                "execution": state.active_runs.execution,
                "send": state.active_runs.send,
            },
            "outstanding": sorted(k.value for k in state.outstanding),
            "warmup_status": state.warmup_status.value,
            "details": details or {},
        }
    )


def _state_changed(
    old: OrchestratorState,
    new: OrchestratorState,
    event: Event,
    source: str,
) -> LogEvent:
    return _log(
        new,
        event,
        "state_changed",
        {
            "from_state": old.state.value,
            "to_state": new.state.value,
            "source": source,
        },
    )


def _logs_last(effects: tuple[Effect, ...]) -> tuple[Effect, ...]:
    non_logs: list[Effect] = []
    logs: list[Effect] = []
    state_change_logs: list[Effect] = []

    for effect in effects:
        if isinstance(effect, LogEvent):
            if effect.event.get("decision") == "state_changed":
                state_change_logs.append(effect)
            else:
                logs.append(effect)
        else:
            non_logs.append(effect)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(state: OrchestratorState, event: Event, reason: str) -> Transition:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _utterance_time(state: OrchestratorState, event: Event) -> datetime:
    """Reference "now" for due-date phrases: when the user stopped talking."""
    ts_ms = state.speech_ended_ts_ms if state.speech_ended_ts_ms is not None else event.ts_ms
    return datetime.fromtimestamp(ts_ms / 1000)


# =============================================================================
# Handle bookkeeping
# =============================================================================

def _start_task(
    state: OrchestratorState,
    event: Event,
    kind: TaskKind,
) -> tuple[OrchestratorState, list[Effect]]:
    """
    Bump the run id for kind and mark it outstanding.

    A live handle of the same kind is superseded (cancelled) first. Callers
    append the kind-specific start effect using the new run id.
    """
    effects: list[Effect] = []
    if kind in state.outstanding:
        old_run = _active_run_for(state.active_runs, kind)
        effects.append(CancelTask(kind=kind, run_id=old_run))
        effects.append(
            _log(state, event, "supersede", {"kind": kind.value, "run_id": old_run})
        )

    new_state = replace(
        state,
        active_runs=_bump_run_id(state.active_runs, kind),
        outstanding=state.outstanding | {kind},
    )
    return new_state, effects


def _finish_task(state: OrchestratorState, kind: TaskKind) -> OrchestratorState:
    return replace(state, outstanding=state.outstanding - {kind})


def _cancel_task(
    state: OrchestratorState,
    event: Event,
    kind: TaskKind,
    source: str,
) -> tuple[OrchestratorState, list[Effect]]:
    """
    Cancel the outstanding handle of kind, if any.

    - Cancellation does NOT bump run IDs
    - Any late result for the cancelled run fails the outstanding check
    - Cancelling a kind with no live handle is a no-op
    """
    if kind not in state.outstanding:
        return state, []

    run_id = _active_run_for(state.active_runs, kind)
    new_state = _finish_task(state, kind)
    effects: list[Effect] = []

    if kind is TaskKind.SPEECH:
        effects.append(StopSpeech(run_id=run_id))
    else:
        effects.append(CancelTask(kind=kind, run_id=run_id))

    if kind is TaskKind.CLASSIFICATION:
        effects.append(CancelTimer(timer_id=TIMER_CLASSIFICATION))

    if kind is TaskKind.WARMUP:
        new_state = replace(
            new_state,
            warmup_status=WarmupStatus.NONE,
            pending_send_text=None,
        )

    effects.append(
        _log(
            new_state,
            event,
            "request_cancel",
            {"kind": kind.value, "run_id": run_id, "source": source},
        )
    )
    return new_state, effects


def _cancel_all(
    state: OrchestratorState,
    event: Event,
    source: str,
) -> tuple[OrchestratorState, list[Effect]]:
    effects: list[Effect] = []
    new_state = state
    for kind in _CANCEL_ORDER:
        new_state, more = _cancel_task(new_state, event, kind, source)
        effects.extend(more)
    return new_state, effects


def _start_warmup(
    state: OrchestratorState,
    event: Event,
    *,
    source: str,
    reconnect: bool = False,
) -> tuple[OrchestratorState, list[Effect]]:
    new_state, effects = _start_task(state, event, TaskKind.WARMUP)
    new_state = replace(new_state, warmup_status=WarmupStatus.PENDING)
    run_id = new_state.active_runs.warmup
    effects.append(StartWarmup(run_id=run_id, reconnect=reconnect))
    effects.append(
        _log(
            new_state,
            event,
            "start_warmup",
            {"warmup_run_id": run_id, "reconnect": reconnect, "source": source},
        )
    )
    return new_state, effects


def _start_send(
    state: OrchestratorState,
    event: Event,
    text: str,
) -> tuple[OrchestratorState, list[Effect]]:
    new_state, effects = _start_task(state, event, TaskKind.SEND)
    new_state = replace(new_state, pending_send_text=None)
    run_id = new_state.active_runs.send
    effects.append(
        SendToChannel(run_id=run_id, text=text, grace_ms=SEND_GRACE_PERIOD_MS)
    )
    effects.append(
        _log(new_state, event, "send_to_channel", {"send_run_id": run_id, "text_len": len(text)})
    )
    return new_state, effects


def _reset_cycle(state: OrchestratorState) -> OrchestratorState:
    """Clear per-utterance bookkeeping. Channel fields are untouched."""
    return replace(
        state,
        transcript="",
        started_at_ms=None,
        speech_ended_ts_ms=None,
        last_command=None,
        fallback_used=False,
        command_error=None,
        pending_send_text=None,
        connect_retry=reset_attempt(),
    )


# =============================================================================
# Conversation path
# =============================================================================

def _conversation_failed(
    state: OrchestratorState,
    event: Event,
    reason: str,
) -> tuple[OrchestratorState, list[Effect]]:
    """
    Terminal failure of a conversational attempt.

    The session stays CONVERSING with last_error set. A command failure that
    was rerouted here is surfaced now, alongside the channel failure.
    """
    message = f"Conversation unavailable: {reason}"
    if state.command_error:
        message = f"{state.command_error}. {message}"

    new_state = replace(state, last_error=message, pending_send_text=None)
    return new_state, [
        NotifyUser(kind=FeedbackKind.ERROR, message=message),
        _log(
            new_state,
            event,
            "conversation_failed",
            {"reason": reason, "command_error": state.command_error},
        ),
    ]


def _request_channel(
    state: OrchestratorState,
    event: Event,
    text: str | None,
    source: str,
) -> tuple[OrchestratorState, list[Effect]]:
    """
    Make sure the channel is (becoming) READY, then deliver text if given.

    READY   -> send now
    PENDING -> join: text waits for WarmupCompleted / WarmupFailed
    FAILED  -> single retry-connect, else user-visible failure
    NONE    -> start a warmup (e.g. cancelled on the command path earlier)
    """
    status = state.warmup_status

    if status is WarmupStatus.READY:
        if text is None:
            return state, [_log(state, event, "channel_ready", {"source": source})]
        return _start_send(state, event, text)

    if status is WarmupStatus.PENDING:
        new_state = replace(state, pending_send_text=text)
        return new_state, [
            _log(
                new_state,
                event,
                "join_warmup",
                {"warmup_run_id": state.active_runs.warmup, "source": source},
            )
        ]

    if status is WarmupStatus.FAILED:
        if not should_retry_connect(state.connect_retry):
            return _conversation_failed(state, event, "connect failed")

        new_state = replace(state, connect_retry=next_attempt(state.connect_retry))
        new_state, effects = _start_warmup(
            new_state, event, source="retry_connect", reconnect=True
        )
        new_state = replace(new_state, pending_send_text=text)
        effects.append(
            _log(
                new_state,
                event,
                "retry_connect",
                {"attempt": new_state.connect_retry.attempt, "source": source},
            )
        )
        return new_state, effects

    new_state, effects = _start_warmup(state, event, source=source)
    return replace(new_state, pending_send_text=text), effects


def _enter_conversation(
    state: OrchestratorState,
    event: Event,
    source: str,
) -> Transition:
    """Transition to CONVERSING and forward the current transcript."""
    new_state = replace(state, state=State.CONVERSING)
    text = state.transcript.strip() or None
    new_state, effects = _request_channel(new_state, event, text, source)
    return new_state, _logs_last(
        tuple(effects) + (_state_changed(state, new_state, event, source),)
    )


# =============================================================================
# Classification pipeline
# =============================================================================

def _route(
    state: OrchestratorState,
    event: Event,
    result: ClassificationResult,
    source: ClassificationSource,
    details: dict[str, Any] | None = None,
) -> Transition:
    """
    Act on a classification decision. state.state is CLASSIFYING.

    Provenance (source, details) is logged only; routing depends on the
    result variant alone.
    """
    effects: list[Effect] = []
    if state.speech_ended_ts_ms is not None:
        effects.append(
            RecordMetric(
                name="speech_end_to_route_ms",
                value=float(event.ts_ms - state.speech_ended_ts_ms),
                tags=(("source", source.value),),
            )
        )
    decision = {"source": source.value, "is_command": result.is_command, **(details or {})}

    if isinstance(result, IsCommand):
        new_state = state
        if state.warmup_status is WarmupStatus.PENDING:
            new_state, more = _cancel_task(new_state, event, TaskKind.WARMUP, "command_path")
            effects.extend(more)

        new_state, more = _start_task(new_state, event, TaskKind.EXECUTION)
        effects.extend(more)
        new_state = replace(
            new_state,
            state=State.EXECUTING_COMMAND,
            last_command=result.command,
        )
        run_id = new_state.active_runs.execution
        effects.append(ExecuteCommand(run_id=run_id, command=result.command))
        effects.append(
            _log(
                new_state,
                event,
                "route_command",
                {**decision, "command": result.command.describe(), "execution_run_id": run_id},
            )
        )
        effects.append(_state_changed(state, new_state, event, f"classified_{source.value.lower()}"))
        return new_state, _logs_last(tuple(effects))

    new_state, more = _enter_conversation(state, event, f"classified_{source.value.lower()}")
    effects.extend(more)
    effects.append(_log(new_state, event, "route_conversation", decision))
    return new_state, _logs_last(tuple(effects))


def _end_utterance(state: OrchestratorState, event: Event, source: str) -> Transition:
    """LISTENING -> IDLE (empty) or CLASSIFYING (non-empty)."""
    new_state, effects = _cancel_task(state, event, TaskKind.SPEECH, source)
    text = state.transcript.strip()

    if not text:
        if new_state.warmup_status is WarmupStatus.PENDING:
            new_state, more = _cancel_task(new_state, event, TaskKind.WARMUP, "empty_transcript")
            effects.extend(more)
        new_state = replace(_reset_cycle(new_state), state=State.IDLE)
        effects.append(_log(new_state, event, "empty_transcript", {"source": source}))
        effects.append(_state_changed(state, new_state, event, "empty_transcript"))
        return new_state, _logs_last(tuple(effects))

    classifying = replace(
        new_state,
        state=State.CLASSIFYING,
        transcript=text,
        speech_ended_ts_ms=event.ts_ms,
    )
    effects.append(_state_changed(state, classifying, event, source))

    keyword = match_command_keyword(text)
    if keyword is not None:
        command = parse_command(text, _utterance_time(classifying, event))
        routed, more = _route(
            classifying,
            event,
            IsCommand(command=command),
            ClassificationSource.LOCAL,
            {"keyword": keyword},
        )
        return routed, _logs_last(tuple(effects) + more)

    classifying, more = _start_task(classifying, event, TaskKind.CLASSIFICATION)
    effects.extend(more)
    run_id = classifying.active_runs.classification
    effects.extend([
        StartClassification(run_id=run_id, text=text, timeout_ms=CLASSIFICATION_TIMEOUT_MS),
        StartTimer(
            timer_id=TIMER_CLASSIFICATION,
            duration_ms=CLASSIFICATION_TIMEOUT_MS,
            timeout_event_type=EventType.CLASSIFICATION_TIMEOUT,
            run_id=run_id,
        ),
        _log(
            classifying,
            event,
            "start_classification",
            {"classification_run_id": run_id, "text_len": len(text)},
        ),
    ])
    return classifying, _logs_last(tuple(effects))


def _classification_fallback(
    state: OrchestratorState,
    event: Event,
    failure: ClassificationFailure,
    reason: str,
) -> Transition:
    return _route(
        state,
        event,
        fallback_for(failure),
        ClassificationSource.FALLBACK,
        {"failure": failure.value, "reason": reason},
    )


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(state: OrchestratorState, event: Event) -> Transition:
    """
    Pure reducer for the voice intent router state machine.

    Given the current orchestrator state and a single event, returns:
    - the next state
    - a tuple of effects describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Version-safe: ignores events with stale run IDs
    """
    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    if isinstance(event, SessionStarted):
        return state, (
            _log(state, event, "session_started", {"session_id": event.session_id}),
        )

    if isinstance(event, SessionEnded):
        return state, (
            _log(state, event, "session_ended", {"session_id": event.session_id}),
        )

    if isinstance(event, FatalError):
        new_state, effects = _cancel_all(state, event, "fatal_error")
        new_state = replace(
            _reset_cycle(new_state),
            state=State.IDLE,
            last_error=event.reason,
        )
        effects.append(NotifyUser(kind=FeedbackKind.ERROR, message=event.reason))
        effects.append(
            _log(
                state,
                event,
                "fatal_error",
                {"reason": event.reason, "context": event.context or {}},
            )
        )
        effects.append(_state_changed(state, new_state, event, "fatal_error"))
        return new_state, _logs_last(tuple(effects))

    # ------------------------------------------------------------------
    # Reset (any state)
    # ------------------------------------------------------------------
    if isinstance(event, Reset):
        new_state, effects = _cancel_all(state, event, "reset")
        new_state = replace(
            _reset_cycle(new_state),
            state=State.IDLE,
            last_error=None,
            last_result=None,
            warmup_status=WarmupStatus.NONE,
        )
        new_state, more = _start_warmup(new_state, event, source="reset", reconnect=True)
        effects.extend(more)
        effects.append(_log(new_state, event, "reset"))
        effects.append(_state_changed(state, new_state, event, "reset"))
        return new_state, _logs_last(tuple(effects))

    # ------------------------------------------------------------------
    # Channel status (not run-gated)
    # ------------------------------------------------------------------
    if isinstance(event, ChannelStateChanged):
        new_state = replace(state, channel_state=event.channel_state)
        dropped = (
            state.warmup_status is WarmupStatus.READY
            and event.channel_state in (ChannelState.CLOSED, ChannelState.FAILED)
        )
        if dropped:
            new_state = replace(new_state, warmup_status=WarmupStatus.FAILED)
            return new_state, (
                _log(new_state, event, "channel_dropped", {"channel_state": event.channel_state.value}),
            )
        return new_state, (
            _log(new_state, event, "channel_state", {"channel_state": event.channel_state.value}),
        )

    # ------------------------------------------------------------------
    # Stale gating for task results
    # ------------------------------------------------------------------
    if isinstance(event, TaskEvent) and not _is_current(state, event):
        return _ignore(state, event, f"stale_{event.kind.value.lower()}")

    if isinstance(event, ClassificationTimeout):
        if (
            TaskKind.CLASSIFICATION not in state.outstanding
            or event.run_id != state.active_runs.classification
        ):
            return _ignore(state, event, "stale_classification_timeout")

    # ------------------------------------------------------------------
    # Warmup results (any state)
    # ------------------------------------------------------------------
    if isinstance(event, WarmupCompleted):
        new_state = replace(
            _finish_task(state, TaskKind.WARMUP),
            warmup_status=WarmupStatus.READY,
            connect_retry=reset_attempt(),
        )
        effects: list[Effect] = [_log(new_state, event, "warmup_ready")]
        if new_state.state is State.CONVERSING and new_state.pending_send_text is not None:
            new_state, more = _start_send(new_state, event, new_state.pending_send_text)
            effects.extend(more)
        return new_state, _logs_last(tuple(effects))

    if isinstance(event, WarmupFailed):
        new_state = replace(
            _finish_task(state, TaskKind.WARMUP),
            warmup_status=WarmupStatus.FAILED,
        )
        effects = [_log(new_state, event, "warmup_failed", {"reason": event.reason})]
        if new_state.state is State.CONVERSING:
            new_state, more = _request_channel(
                new_state, event, new_state.pending_send_text, "warmup_failed"
            )
            effects.extend(more)
        return new_state, _logs_last(tuple(effects))

    # ============================
    # IDLE
    # ============================
    if state.state is State.IDLE:
        if isinstance(event, StartListening):
            new_state = replace(
                _reset_cycle(state),
                last_error=None,
                last_result=None,
                started_at_ms=event.ts_ms,
            )
            new_state, effects = _start_task(new_state, event, TaskKind.SPEECH)
            new_state = replace(new_state, state=State.LISTENING)
            effects.append(StartSpeech(run_id=new_state.active_runs.speech))
            effects.append(
                _log(new_state, event, "start_speech", {"speech_run_id": new_state.active_runs.speech})
            )

            if new_state.warmup_status in (WarmupStatus.PENDING, WarmupStatus.READY):
                effects.append(
                    _log(
                        new_state,
                        event,
                        "warmup_reused",
                        {"warmup_run_id": new_state.active_runs.warmup},
                    )
                )
            else:
                new_state, more = _start_warmup(new_state, event, source="start_listening")
                effects.extend(more)

            effects.append(_state_changed(state, new_state, event, "start_listening"))
            return new_state, _logs_last(tuple(effects))

        if isinstance(event, SwitchToConversation):
            new_state = replace(_reset_cycle(state), last_error=None, last_result=None)
            return _enter_conversation(new_state, event, "switch_to_conversation")

        return _ignore(state, event, "idle_unhandled")

    # ============================
    # LISTENING
    # ============================
    if state.state is State.LISTENING:
        if isinstance(event, TranscriptUpdated):
            if len(event.text) < len(state.transcript):
                return _ignore(state, event, "transcript_shrank")
            new_state = replace(state, transcript=event.text)
            return new_state, ()

        if isinstance(event, EndOfSpeech):
            return _end_utterance(state, event, "end_of_speech")

        if isinstance(event, StopListening):
            return _end_utterance(state, event, "stop_listening")

        return _ignore(state, event, "listening_unhandled")

    # ============================
    # CLASSIFYING
    # ============================
    if state.state is State.CLASSIFYING:
        if isinstance(event, ClassificationCompleted):
            new_state = _finish_task(state, TaskKind.CLASSIFICATION)
            result: ClassificationResult
            if event.is_command:
                result = IsCommand(
                    command=parse_command(new_state.transcript, _utterance_time(new_state, event))
                )
            else:
                result = IsConversation()
            routed, effects = _route(new_state, event, result, ClassificationSource.REMOTE)
            return routed, _logs_last(
                (CancelTimer(timer_id=TIMER_CLASSIFICATION),) + effects
            )

        if isinstance(event, ClassificationFailed):
            new_state = _finish_task(state, TaskKind.CLASSIFICATION)
            routed, effects = _classification_fallback(
                new_state, event, event.failure, event.reason
            )
            return routed, _logs_last(
                (CancelTimer(timer_id=TIMER_CLASSIFICATION),) + effects
            )

        if isinstance(event, ClassificationTimeout):
            new_state, cancels = _cancel_task(
                state, event, TaskKind.CLASSIFICATION, "classification_timeout"
            )
            routed, effects = _classification_fallback(
                new_state, event, ClassificationFailure.TIMEOUT, "deadline elapsed"
            )
            return routed, _logs_last(tuple(cancels) + effects)

        return _ignore(state, event, "classifying_unhandled")

    # ============================
    # EXECUTING_COMMAND
    # ============================
    if state.state is State.EXECUTING_COMMAND:
        if isinstance(event, CommandExecuted):
            new_state = _finish_task(state, TaskKind.EXECUTION)

            if event.success:
                new_state = replace(
                    _reset_cycle(new_state),
                    state=State.IDLE,
                    last_result=event.message,
                    last_error=None,
                )
                return new_state, _logs_last((
                    NotifyUser(kind=FeedbackKind.SUCCESS, message=event.message),
                    _log(new_state, event, "command_succeeded", {"message": event.message}),
                    _state_changed(state, new_state, event, "command_succeeded"),
                ))

            # Guard only: a cycle reaches EXECUTING_COMMAND before any reroute.
            if new_state.fallback_used:
                new_state = replace(
                    _reset_cycle(new_state),
                    state=State.IDLE,
                    last_error=event.message,
                )
                return new_state, _logs_last((
                    NotifyUser(kind=FeedbackKind.ERROR, message=event.message),
                    _log(new_state, event, "command_failed", {"message": event.message}),
                    _state_changed(state, new_state, event, "command_failed"),
                ))

            # Reroute once per cycle; the error stays hidden unless the
            # conversational attempt fails as well.
            new_state = replace(new_state, fallback_used=True, command_error=event.message)
            routed, effects = _enter_conversation(new_state, event, "command_fallback")
            return routed, _logs_last((
                RecordMetric(name="command_fallback", value=1.0),
                _log(routed, event, "command_fallback", {"message": event.message}),
            ) + effects)

        return _ignore(state, event, "executing_unhandled")

    # ============================
    # CONVERSING
    # ============================
    if state.state is State.CONVERSING:
        if isinstance(event, MessageSent):
            new_state = replace(
                _finish_task(state, TaskKind.SEND),
                last_result=CONVERSATION_ACTIVE_MESSAGE,
                last_error=None,
                command_error=None,
            )
            return new_state, (_log(new_state, event, "message_sent"),)

        if isinstance(event, MessageSendFailed):
            new_state = _finish_task(state, TaskKind.SEND)
            if new_state.warmup_status is WarmupStatus.READY:
                new_state = replace(new_state, warmup_status=WarmupStatus.FAILED)
            new_state, effects = _conversation_failed(new_state, event, event.reason)
            return new_state, _logs_last(tuple(effects))

        if isinstance(event, SendMessage):
            text = event.text.strip()
            if not text:
                return _ignore(state, event, "empty_message")
            if TaskKind.SEND in state.outstanding:
                return _ignore(state, event, "send_in_flight")
            new_state = replace(
                state,
                transcript=text,
                command_error=None,
                last_error=None,
                connect_retry=reset_attempt(),
            )
            new_state, effects = _request_channel(new_state, event, text, "send_message")
            return new_state, _logs_last(tuple(effects))

        if isinstance(event, ExitConversation):
            new_state = state
            effects = []
            for kind in (TaskKind.SEND, TaskKind.WARMUP):
                new_state, more = _cancel_task(new_state, event, kind, "exit_conversation")
                effects.extend(more)
            new_state = replace(
                _reset_cycle(new_state),
                state=State.IDLE,
                warmup_status=WarmupStatus.NONE,
            )
            effects.append(CloseChannel(reason="exit_conversation"))
            effects.append(_state_changed(state, new_state, event, "exit_conversation"))
            return new_state, _logs_last(tuple(effects))

        if isinstance(event, SwitchToConversation):
            return _ignore(state, event, "already_conversing")

        return _ignore(state, event, "conversing_unhandled")

    return _ignore(state, event, "unhandled")
