"""
In-process collaborators for runtime and gateway tests.

Each fake honours the matching protocol in orchestrator.runtime_context and
records what it was asked to do.
"""

from __future__ import annotations

import asyncio

from adapters.executor.memory import InMemoryCommandExecutor
from adapters.speech.relay import RelaySpeechSource
from errors import ChannelConnectFailure, ClassificationTransportError
from orchestrator.enums.channel_state import ChannelState
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import ChannelStateCallback, RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState
from session.orchestrator import VoiceSessionOrchestrator
from session.voice_session import VoiceSession


class FakeConversationChannel:
    def __init__(
        self,
        *,
        connect_failures: int = 0,
        send_error: Exception | None = None,
    ) -> None:
        self._state = ChannelState.UNCONNECTED
        self._subscribers: list[ChannelStateCallback] = []
        self.connect_failures = connect_failures
        self.send_error = send_error
        self.connect_calls = 0
        self.close_calls = 0
        self.sent: list[str] = []
        # Cleared to hold connect() in CONNECTING.
        self.connect_gate = asyncio.Event()
        self.connect_gate.set()

    @property
    def state(self) -> ChannelState:
        return self._state

    def subscribe(self, callback: ChannelStateCallback) -> None:
        self._subscribers.append(callback)

    def _set(self, state: ChannelState) -> None:
        if state is self._state:
            return
        self._state = state
        for callback in list(self._subscribers):
            callback(state)

    async def connect(self) -> None:
        self.connect_calls += 1
        self._set(ChannelState.CONNECTING)
        await self.connect_gate.wait()
        if self.connect_failures > 0:
            self.connect_failures -= 1
            self._set(ChannelState.FAILED)
            raise ChannelConnectFailure("connect failed")
        self._set(ChannelState.READY)

    async def wait_ready(self, timeout_s: float) -> bool:
        return self._state is ChannelState.READY

    async def send(self, text: str) -> None:
        if self.send_error is not None:
            self._set(ChannelState.FAILED)
            raise self.send_error
        self.sent.append(text)

    async def close(self) -> None:
        self.close_calls += 1
        if self._state not in (ChannelState.UNCONNECTED, ChannelState.CLOSED):
            self._set(ChannelState.CLOSED)

    def drop(self) -> None:
        """Simulate the server closing a live connection."""
        self._set(ChannelState.FAILED)


class FakeClassifier:
    def __init__(
        self,
        verdict: bool = False,
        *,
        delay_s: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.verdict = verdict
        self.delay_s = delay_s
        self.error = error
        self.calls: list[str] = []

    async def classify(self, text: str, timeout_s: float) -> bool:
        self.calls.append(text)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.verdict


class BrokenClassifier(FakeClassifier):
    def __init__(self) -> None:
        super().__init__(error=ClassificationTransportError("HTTP 500"))


class RecordingFeedback:
    def __init__(self) -> None:
        self.notifications: list[tuple[str, str]] = []

    def notify(self, kind: str, message: str) -> None:
        self.notifications.append((kind, message))


def build_session(
    *,
    channel: FakeConversationChannel | None = None,
    classifier: FakeClassifier | None = None,
    executor: InMemoryCommandExecutor | None = None,
) -> tuple[VoiceSession, VoiceSessionOrchestrator]:
    """Wire a session the way SessionGateway does, with fakes. Call inside a loop."""
    session = VoiceSession(session_id="sess_test")
    speech = RelaySpeechSource(session_id=session.session_id)
    session.speech_source = speech
    session.channel = channel if channel is not None else FakeConversationChannel()
    session.classifier = classifier if classifier is not None else FakeClassifier()
    session.executor = executor if executor is not None else InMemoryCommandExecutor()
    session.feedback = RecordingFeedback()

    runtime = Runtime(
        initial_state=OrchestratorState(),
        context=RuntimeExecutionContext(session=session),
    )
    session.attach_runtime(runtime)
    return session, VoiceSessionOrchestrator(runtime=runtime, speech=speech)


async def say(orch: VoiceSessionOrchestrator, text: str) -> None:
    """One push-to-talk utterance, then wait for all follow-up work."""
    await orch.start_listening()
    await orch.update_transcript(text)
    await orch.end_of_speech()
    await orch.settle()
