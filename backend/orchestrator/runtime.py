"""
Runtime execution shell for a single voice session.

Responsibilities:
- Own orchestrator state
- Call pure reducer
- Execute effects (speech source, classifier, channel, executor, feedback)
- Schedule and cancel timers
- Convert timer expiry and task results into events

Non-responsibilities:
- Routing decisions (reducer)
- Transport concerns (gateway)
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from intents.classification import ClassificationFailure
from intents.commands import Command
from intents.fallback import failure_from_exception
from observability.logger import log_event, now_ms
from observability.metrics import record_metric, timed
from orchestrator.effects import (
    CancelTask,
    CancelTimer,
    CloseChannel,
    Effect,
    ExecuteCommand,
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
from orchestrator.enums.task_kind import TaskKind
from orchestrator.events import (
    ChannelStateChanged,
    ClassificationCompleted,
    ClassificationFailed,
    ClassificationTimeout,
    CommandExecuted,
    EndOfSpeech,
    Event,
    EventType,
    FatalError,
    MessageSendFailed,
    MessageSent,
    TranscriptUpdated,
    WarmupCompleted,
    WarmupFailed,
)
from orchestrator.handles import HandleRegistry
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState
from spec import CHANNEL_NOT_CONNECTED_MESSAGE, ms_to_seconds

if TYPE_CHECKING:
    from orchestrator.runtime_context import (
        EndOfSpeechCallback,
        RuntimeExecutionContext,
        TranscriptCallback,
    )


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class Runtime:
    """
    Runtime execution boundary for a single voice session.

    Responsibilities:
    - Own the authoritative orchestrator state
    - Act as the universal event sink for the session
      (gateway events, collaborator results, timer events)
    - Invoke the pure reducer deterministically
    - Execute emitted effects
    - Schedule and cancel timers

    Architectural role:
    Runtime is the bridge between the pure orchestration layer
    (reducer + immutable state) and the imperative world
    (collaborators, logging, IO, time).

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - Events are processed one at a time, in arrival order (FIFO lock)
    - All side effects occur *after* state has been updated
    - Effects never wait on I/O: slow work runs as tasks that report
      back through handle_event
    - Runtime never performs orchestration logic itself
    """

    def __init__(
        self,
        *,
        initial_state: OrchestratorState,
        context: RuntimeExecutionContext,
        on_transition: Callable[[OrchestratorState, OrchestratorState], None] | None = None,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._on_transition = on_transition
        self._lock = asyncio.Lock()
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._background: set[asyncio.Task[Any]] = set()
        self._handles = HandleRegistry(emit_event=self.handle_event)

        channel = context.channel
        if channel is not None:
            channel.subscribe(self._on_channel_state)

    @property
    def state(self) -> OrchestratorState:
        """
        Return the current immutable orchestrator state.

        Notes:
        - The returned object must be treated as read-only
        - State is only mutated internally by Runtime via the reducer
        """
        return self._state

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Wait for earlier events to finish (single inbound queue)
        2. Pass the current state and event to the pure reducer
        3. Swap in the new orchestrator state
        4. Execute all emitted effects in order

        All event sources converge here:
        - Gateway / facade (user controls)
        - Speech source callbacks
        - Collaborator tasks (classification, connect, send, execution)
        - Timers

        Effects must never call handle_event directly; doing so from
        inside the lock would deadlock.
        """
        async with self._lock:
            old_state = self._state
            new_state, effects = reduce(old_state, event)
            self._state = new_state

            if self._on_transition is not None and new_state is not old_state:
                self._on_transition(old_state, new_state)

            for effect in effects:
                try:
                    await self._execute_effect(effect)
                except Exception as exc:  # pylint: disable=broad-exception-caught
                    log_event({
                        "ts_ms": now_ms(),
                        "event_type": "EFFECT_EXECUTION_ERROR",
                        "session_id": self._ctx.session_id,
                        "effect_type": effect.effect_type.value,
                        "exception": type(exc).__name__,
                        "message": str(exc),
                    })
                    # A failing effect while handling FatalError must not loop.
                    if isinstance(event, FatalError):
                        continue
                    self._spawn_background(
                        self.handle_event(
                            FatalError(
                                event_type=EventType.FATAL_ERROR,
                                ts_ms=now_ms(),
                                reason=f"{effect.effect_type.value} failed: {_describe(exc)}",
                                context={"exception": type(exc).__name__},
                            )
                        )
                    )

    async def settle(self) -> None:
        """
        Wait until no collaborator task or background task is running.

        Pending timers are not awaited; a timer that fires later is
        processed normally.
        """
        while True:
            tasks = self._handles.live_tasks() + [
                t for t in self._background if not t.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def shutdown(self) -> None:
        """
        Clean shutdown of runtime.

        Cancels timers and collaborator tasks, stops capture and closes the
        channel. Called by the gateway on session disconnect.
        """
        for timer_id in list(self._timers.keys()):
            self._cancel_timer(timer_id)

        await self._handles.clear_all()

        speech = self._ctx.speech_source
        if speech is not None:
            await speech.stop()

        channel = self._ctx.channel
        if channel is not None:
            await channel.close()

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Effect execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_effect(self, effect: Effect) -> None:
        """Execute a single effect. Never blocks on collaborator I/O."""

        if isinstance(effect, LogEvent):
            log_event({
                **effect.event,
                "session_id": self._ctx.session_id,
            })

        elif isinstance(effect, RecordMetric):
            record_metric(
                effect.name,
                effect.value,
                session_id=self._ctx.session_id,
                state=self._state.state.value,
                tags=dict(effect.tags or ()),
            )

        elif isinstance(effect, StartSpeech):
            speech = self._ctx.speech_source
            if speech is None:
                self._log_missing("speech_source", effect)
                return
            on_transcript, on_end_of_speech = self._speech_callbacks(effect.run_id)
            await speech.start(on_transcript, on_end_of_speech)

        elif isinstance(effect, StopSpeech):
            speech = self._ctx.speech_source
            if speech is not None:
                await speech.stop()

        elif isinstance(effect, StartWarmup):
            run_id, reconnect = effect.run_id, effect.reconnect
            self._handles.spawn(
                kind=TaskKind.WARMUP,
                run_id=run_id,
                work=lambda: self._warmup(run_id, reconnect),
            )

        elif isinstance(effect, SendToChannel):
            run_id, text, grace_ms = effect.run_id, effect.text, effect.grace_ms
            self._handles.spawn(
                kind=TaskKind.SEND,
                run_id=run_id,
                work=lambda: self._send(run_id, text, grace_ms),
            )

        elif isinstance(effect, CloseChannel):
            channel = self._ctx.channel
            if channel is not None:
                self._spawn_background(channel.close())

        elif isinstance(effect, StartClassification):
            run_id, text, timeout_ms = effect.run_id, effect.text, effect.timeout_ms
            self._handles.spawn(
                kind=TaskKind.CLASSIFICATION,
                run_id=run_id,
                work=lambda: self._classify(run_id, text, timeout_ms),
            )

        elif isinstance(effect, ExecuteCommand):
            run_id, command = effect.run_id, effect.command
            self._handles.spawn(
                kind=TaskKind.EXECUTION,
                run_id=run_id,
                work=lambda: self._execute(run_id, command),
            )

        elif isinstance(effect, CancelTask):
            cancelled = self._handles.cancel(kind=effect.kind, run_id=effect.run_id)
            log_event({
                "ts_ms": now_ms(),
                "event_type": "TASK_CANCEL_EXECUTED",
                "session_id": self._ctx.session_id,
                "kind": effect.kind.value,
                "run_id": effect.run_id,
                "was_live": cancelled,
            })

        elif isinstance(effect, NotifyUser):
            feedback = self._ctx.feedback
            if feedback is None:
                self._log_missing("feedback", effect)
                return
            feedback.notify(effect.kind.value, effect.message)

        elif isinstance(effect, StartTimer):
            self._start_timer(
                timer_id=effect.timer_id,
                duration_ms=effect.duration_ms,
                timeout_event_type=effect.timeout_event_type,
                run_id=effect.run_id,
            )

        elif isinstance(effect, CancelTimer):
            self._cancel_timer(effect.timer_id)

        else:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "EFFECT_NOT_IMPLEMENTED",
                "session_id": self._ctx.session_id,
                "effect_type": type(effect).__name__,
            })

    def _log_missing(self, collaborator: str, effect: Effect) -> None:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "COLLABORATOR_MISSING",
            "session_id": self._ctx.session_id,
            "collaborator": collaborator,
            "effect_type": effect.effect_type.value,
        })

    # ------------------------------------------------------------------
    # Collaborator tasks (each returns exactly one result event)
    # ------------------------------------------------------------------

    async def _warmup(self, run_id: int, reconnect: bool) -> Event:
        channel = self._ctx.channel
        if channel is None:
            return WarmupFailed(
                event_type=EventType.WARMUP_FAILED,
                ts_ms=now_ms(),
                kind=TaskKind.WARMUP,
                run_id=run_id,
                reason="no conversation channel configured",
            )

        try:
            if reconnect:
                await channel.close()
            with timed(
                "channel_connect",
                session_id=self._ctx.session_id,
                details={"warmup_run_id": run_id, "reconnect": reconnect},
            ):
                await channel.connect()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return WarmupFailed(
                event_type=EventType.WARMUP_FAILED,
                ts_ms=now_ms(),
                kind=TaskKind.WARMUP,
                run_id=run_id,
                reason=_describe(exc),
            )

        return WarmupCompleted(
            event_type=EventType.WARMUP_COMPLETED,
            ts_ms=now_ms(),
            kind=TaskKind.WARMUP,
            run_id=run_id,
        )

    async def _send(self, run_id: int, text: str, grace_ms: int) -> Event:
        channel = self._ctx.channel
        reason: str | None = None

        if channel is None or not await channel.wait_ready(ms_to_seconds(grace_ms)):
            reason = CHANNEL_NOT_CONNECTED_MESSAGE
        else:
            try:
                await channel.send(text)
            except Exception as exc:  # pylint: disable=broad-exception-caught
                reason = _describe(exc)

        if reason is not None:
            return MessageSendFailed(
                event_type=EventType.MESSAGE_SEND_FAILED,
                ts_ms=now_ms(),
                kind=TaskKind.SEND,
                run_id=run_id,
                reason=reason,
            )

        return MessageSent(
            event_type=EventType.MESSAGE_SENT,
            ts_ms=now_ms(),
            kind=TaskKind.SEND,
            run_id=run_id,
        )

    async def _classify(self, run_id: int, text: str, timeout_ms: int) -> Event:
        classifier = self._ctx.classifier
        if classifier is None:
            return ClassificationFailed(
                event_type=EventType.CLASSIFICATION_FAILED,
                ts_ms=now_ms(),
                kind=TaskKind.CLASSIFICATION,
                run_id=run_id,
                failure=ClassificationFailure.MISSING_CREDENTIAL,
                reason="no remote classifier configured",
            )

        timeout_s = ms_to_seconds(timeout_ms)
        try:
            with timed(
                "remote_classification",
                session_id=self._ctx.session_id,
                details={"classification_run_id": run_id},
            ) as info:
                verdict = await asyncio.wait_for(
                    classifier.classify(text, timeout_s),
                    timeout=timeout_s,
                )
                info["is_command"] = verdict
        except asyncio.TimeoutError:
            return ClassificationFailed(
                event_type=EventType.CLASSIFICATION_FAILED,
                ts_ms=now_ms(),
                kind=TaskKind.CLASSIFICATION,
                run_id=run_id,
                failure=ClassificationFailure.TIMEOUT,
                reason="deadline elapsed",
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            return ClassificationFailed(
                event_type=EventType.CLASSIFICATION_FAILED,
                ts_ms=now_ms(),
                kind=TaskKind.CLASSIFICATION,
                run_id=run_id,
                failure=failure_from_exception(exc),
                reason=_describe(exc),
            )

        return ClassificationCompleted(
            event_type=EventType.CLASSIFICATION_COMPLETED,
            ts_ms=now_ms(),
            kind=TaskKind.CLASSIFICATION,
            run_id=run_id,
            is_command=bool(verdict),
        )

    async def _execute(self, run_id: int, command: Command) -> Event:
        executor = self._ctx.executor
        if executor is None:
            success, message = False, "no command executor configured"
        else:
            try:
                result = await executor.execute(command)
                success, message = result.success, result.message
            except Exception as exc:  # pylint: disable=broad-exception-caught
                success, message = False, _describe(exc)

        return CommandExecuted(
            event_type=EventType.COMMAND_EXECUTED,
            ts_ms=now_ms(),
            kind=TaskKind.EXECUTION,
            run_id=run_id,
            success=success,
            message=message,
        )

    # ------------------------------------------------------------------
    # Push-based collaborator callbacks
    # ------------------------------------------------------------------

    def _speech_callbacks(
        self, run_id: int
    ) -> tuple[TranscriptCallback, EndOfSpeechCallback]:
        """Callbacks bound to one speech run; stale runs are gated by the reducer."""

        async def on_transcript(text: str) -> None:
            await self.handle_event(
                TranscriptUpdated(
                    event_type=EventType.TRANSCRIPT_UPDATED,
                    ts_ms=now_ms(),
                    kind=TaskKind.SPEECH,
                    run_id=run_id,
                    text=text,
                )
            )

        async def on_end_of_speech() -> None:
            await self.handle_event(
                EndOfSpeech(
                    event_type=EventType.END_OF_SPEECH,
                    ts_ms=now_ms(),
                    kind=TaskKind.SPEECH,
                    run_id=run_id,
                )
            )

        return on_transcript, on_end_of_speech

    def _on_channel_state(self, channel_state: ChannelState) -> None:
        self._spawn_background(self._deliver_channel_state(channel_state))

    async def _deliver_channel_state(self, reported: ChannelState) -> None:
        # Report the state as of delivery: a CLOSED pushed by a reconnect's
        # close() must not be read as a drop of the new connection.
        channel = self._ctx.channel
        current = channel.state if channel is not None else reported
        await self.handle_event(
            ChannelStateChanged(
                event_type=EventType.CHANNEL_STATE_CHANGED,
                ts_ms=now_ms(),
                channel_state=current,
            )
        )

    def _spawn_background(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
        run_id: int,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        # Cancel existing timer if present (idempotent)
        self._cancel_timer(timer_id)

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(ms_to_seconds(duration_ms))
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            # Unregister first so the handler's CancelTimer is a no-op;
            # settle() tracks the firing timer as background work.
            current = asyncio.current_task()
            if self._timers.get(timer_id) is current:
                del self._timers[timer_id]
            if current is not None:
                self._background.add(current)
                current.add_done_callback(self._background.discard)

            await self.handle_event(
                self._construct_timeout_event(
                    timeout_event_type=timeout_event_type,
                    run_id=run_id,
                )
            )

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done():
            task.cancel()

    def _construct_timeout_event(
        self,
        *,
        timeout_event_type: EventType,
        run_id: int,
    ) -> Event:
        """
        Construct the timeout event for an expired timer.

        The reducer tags each timer with the run it guards, so a late
        expiry for a superseded run is ignored.
        """
        if timeout_event_type is EventType.CLASSIFICATION_TIMEOUT:
            return ClassificationTimeout(
                event_type=EventType.CLASSIFICATION_TIMEOUT,
                ts_ms=now_ms(),
                run_id=run_id,
            )

        # This should never happen if reducer is correct
        raise ValueError(f"Unknown timeout event type: {timeout_event_type}")
