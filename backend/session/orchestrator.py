"""
VoiceSessionOrchestrator: the public control surface for one session.

Thin facade over Runtime. Each operation turns a user control into an
event and hands it to the runtime; all decisions stay in the reducer.
Operations return once the event has been processed, not once the work
it started has finished (use settle() for that).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from observability.logger import now_ms
from orchestrator.enums.state import State
from orchestrator.enums.warmup_status import WarmupStatus
from orchestrator.events import (
    EventType,
    ExitConversation,
    Reset,
    SendMessage,
    StartListening,
    StopListening,
    SwitchToConversation,
)

if TYPE_CHECKING:
    from adapters.speech.relay import RelaySpeechSource
    from orchestrator.runtime import Runtime
    from orchestrator.state_dataclass import OrchestratorState


STATUS_TEXT: dict[State, str] = {
    State.IDLE: "Ready to listen",
    State.LISTENING: "Listening...",
    State.CLASSIFYING: "Processing...",
    State.EXECUTING_COMMAND: "Executing command...",
    State.CONVERSING: "Conversation mode",
}


class VoiceSessionOrchestrator:
    def __init__(
        self,
        *,
        runtime: Runtime,
        speech: RelaySpeechSource | None = None,
    ) -> None:
        self._runtime = runtime
        self._speech = speech

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> OrchestratorState:
        return self._runtime.state

    @property
    def state(self) -> State:
        return self._runtime.state.state

    @property
    def transcript(self) -> str:
        return self._runtime.state.transcript

    @property
    def last_result(self) -> str | None:
        return self._runtime.state.last_result

    @property
    def last_error(self) -> str | None:
        return self._runtime.state.last_error

    @property
    def status_text(self) -> str:
        snap = self._runtime.state
        if snap.state is State.CONVERSING and snap.warmup_status is not WarmupStatus.READY:
            return "Connecting..."
        return STATUS_TEXT[snap.state]

    # ------------------------------------------------------------------
    # User controls
    # ------------------------------------------------------------------

    async def start_listening(self) -> None:
        await self._runtime.handle_event(
            StartListening(event_type=EventType.START_LISTENING, ts_ms=now_ms())
        )

    async def stop_listening(self) -> None:
        await self._runtime.handle_event(
            StopListening(event_type=EventType.STOP_LISTENING, ts_ms=now_ms())
        )

    async def send_message(self, text: str) -> None:
        await self._runtime.handle_event(
            SendMessage(event_type=EventType.SEND_MESSAGE, ts_ms=now_ms(), text=text)
        )

    async def switch_to_conversation(self) -> None:
        await self._runtime.handle_event(
            SwitchToConversation(
                event_type=EventType.SWITCH_TO_CONVERSATION, ts_ms=now_ms()
            )
        )

    async def exit_conversation(self) -> None:
        await self._runtime.handle_event(
            ExitConversation(event_type=EventType.EXIT_CONVERSATION, ts_ms=now_ms())
        )

    async def reset(self) -> None:
        await self._runtime.handle_event(Reset(event_type=EventType.RESET, ts_ms=now_ms()))

    # ------------------------------------------------------------------
    # Client-relayed speech
    # ------------------------------------------------------------------

    async def update_transcript(self, text: str) -> None:
        if self._speech is not None:
            await self._speech.push_transcript(text)

    async def end_of_speech(self) -> None:
        if self._speech is not None:
            await self._speech.end_of_speech()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def settle(self) -> None:
        """Wait for every in-flight collaborator task to report back."""
        await self._runtime.settle()

    async def shutdown(self) -> None:
        await self._runtime.shutdown()
