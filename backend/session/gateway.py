"""
Session gateway.

Responsibilities:
- Owns VoiceSession lifecycle
- Builds the session's collaborators from AppConfig
- Tracks connection_status independently of orchestrator state
- Routes inbound JSON control messages -> orchestrator operations
- Queues STATE snapshots and FEEDBACK messages for the client

NOT responsible for:
- Any state machine logic
- Executing effects (runtime)

Inbound messages ({"type": ...}):
    START_LISTENING, STOP_LISTENING, TRANSCRIPT {"text"}, END_OF_SPEECH,
    SEND_MESSAGE {"text"}, SWITCH_TO_CONVERSATION, EXIT_CONVERSATION, RESET

Outbound messages:
    SESSION_INIT, STATE, FEEDBACK
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING
from uuid import uuid4

from adapters.channel.websocket_channel import WebSocketConversationChannel
from adapters.classifier.backend_classifier import BackendIntentClassifier
from adapters.classifier.openai_classifier import OpenAIIntentClassifier
from adapters.executor.backend import BackendCommandExecutor
from adapters.executor.memory import InMemoryCommandExecutor
from adapters.speech.relay import RelaySpeechSource
from observability.logger import log_event, now_ms
from orchestrator.events import EventType, SessionEnded, SessionStarted
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import (
    ConversationChannelProtocol,
    RuntimeExecutionContext,
)
from orchestrator.state_dataclass import OrchestratorState
from session.connection_status import ConnectionStatus
from session.feedback import SessionFeedbackSink
from session.orchestrator import VoiceSessionOrchestrator
from session.voice_session import VoiceSession
from spec import SESSION_ID_HEX_LEN

if TYPE_CHECKING:
    from config import AppConfig


ChannelFactory = Callable[[str], ConversationChannelProtocol]


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:SESSION_ID_HEX_LEN]}"


def state_message(snap: OrchestratorState, status_text: str) -> dict[str, Any]:
    return {
        "type": "STATE",
        "state": snap.state.value,
        "status_text": status_text,
        "transcript": snap.transcript,
        "warmup_status": snap.warmup_status.value,
        "last_result": snap.last_result,
        "last_error": snap.last_error,
    }


def _client_visible(snap: OrchestratorState) -> tuple[Any, ...]:
    return (
        snap.state,
        snap.transcript,
        snap.warmup_status,
        snap.last_result,
        snap.last_error,
    )


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one voice session."""

    def __init__(
        self,
        *,
        config: AppConfig,
        openai_client: Any | None = None,  # Type: openai.AsyncOpenAI
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        self._config = config
        self._openai_client = openai_client
        self._channel_factory = channel_factory
        self.session: VoiceSession | None = None
        self.orchestrator: VoiceSessionOrchestrator | None = None

    # ------------------------------------------------------------------
    # Collaborator construction
    # ------------------------------------------------------------------

    def _build_classifier(self, session_id: str) -> Any:
        provider = self._config.classifier_provider.lower()
        if provider == "backend":
            return BackendIntentClassifier(
                base_url=self._config.api_base_url,
                auth_token=self._config.api_auth_token,
                session_id=session_id,
            )
        if provider == "openai":
            return OpenAIIntentClassifier(
                client=self._openai_client,
                model=self._config.classifier_model,
                session_id=session_id,
            )
        raise RuntimeError(f"Unknown CLASSIFIER_PROVIDER: {self._config.classifier_provider}")

    def _build_executor(self, session_id: str) -> Any:
        provider = self._config.executor_provider.lower()
        if provider == "backend":
            return BackendCommandExecutor(
                base_url=self._config.api_base_url,
                auth_token=self._config.api_auth_token,
                session_id=session_id,
            )
        if provider == "memory":
            return InMemoryCommandExecutor(session_id=session_id)
        raise RuntimeError(f"Unknown EXECUTOR_PROVIDER: {self._config.executor_provider}")

    def _build_channel(self, session_id: str) -> ConversationChannelProtocol:
        if self._channel_factory is not None:
            return self._channel_factory(session_id)
        return WebSocketConversationChannel(
            url=self._config.voice_ws_url,
            auth_token=self._config.api_auth_token,
            voice=self._config.voice_name,
            session_id=session_id,
        )

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        session_id = _new_session_id()

        session = VoiceSession(session_id=session_id)
        session.connection_status = ConnectionStatus.UP
        self.session = session

        speech = RelaySpeechSource(session_id=session_id)
        session.speech_source = speech
        session.classifier = self._build_classifier(session_id)
        session.channel = self._build_channel(session_id)
        session.executor = self._build_executor(session_id)
        session.feedback = SessionFeedbackSink(session)

        # Runtime subscribes to the channel, so it comes last.
        runtime = Runtime(
            initial_state=OrchestratorState(),
            context=RuntimeExecutionContext(session=session),
            on_transition=self._on_transition,
        )
        session.attach_runtime(runtime)
        self.orchestrator = VoiceSessionOrchestrator(runtime=runtime, speech=speech)

        await runtime.handle_event(
            SessionStarted(
                event_type=EventType.SESSION_STARTED,
                ts_ms=now_ms(),
                session_id=session_id,
            )
        )

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "session_id": session_id,
            "state": runtime.state.state.value,
            "status_text": self.orchestrator.status_text,
        }
        return GatewayResult(outbound_json=(init_msg,) + self._drain_control_out())

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects."""
        if self.session is None:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        session = self.session
        session.connection_status = ConnectionStatus.DOWN

        runtime = session.runtime
        if runtime is not None:
            await runtime.shutdown()
            await runtime.handle_event(
                SessionEnded(
                    event_type=EventType.SESSION_ENDED,
                    ts_ms=now_ms(),
                    session_id=session.session_id,
                )
            )

        log_event({
            "ts_ms": now_ms(),
            "event_type": "WS_DISCONNECTED",
            "reason": reason,
            **session.log_context(),
        })
        return GatewayResult()

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to orchestrator operations."""
        if self.session is None or self.orchestrator is None:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "session_id": self.session.session_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        if not isinstance(data, dict):
            data = {}
        msg_type = data.get("type")
        text = data.get("text")
        orch = self.orchestrator

        if msg_type == "START_LISTENING":
            await orch.start_listening()
        elif msg_type == "STOP_LISTENING":
            await orch.stop_listening()
        elif msg_type == "TRANSCRIPT" and isinstance(text, str):
            await orch.update_transcript(text)
        elif msg_type == "END_OF_SPEECH":
            await orch.end_of_speech()
        elif msg_type == "SEND_MESSAGE" and isinstance(text, str):
            await orch.send_message(text)
        elif msg_type == "SWITCH_TO_CONVERSATION":
            await orch.switch_to_conversation()
        elif msg_type == "EXIT_CONVERSATION":
            await orch.exit_conversation()
        elif msg_type == "RESET":
            await orch.reset()
        else:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                "session_id": self.session.session_id,
            })
            return GatewayResult()

        return GatewayResult(outbound_json=self._drain_control_out())

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def next_outbound(self) -> GatewayResult:
        """
        Wait for queued control messages produced without inbound traffic
        (task results, timers, channel drops) and drain them.
        """
        if self.session is None:
            return GatewayResult()
        await self.session.wait_control()
        return GatewayResult(outbound_json=self._drain_control_out())

    def _on_transition(self, old: OrchestratorState, new: OrchestratorState) -> None:
        if self.session is None or self.orchestrator is None:
            return
        if _client_visible(old) == _client_visible(new):
            return
        self.session.enqueue_control(state_message(new, self.orchestrator.status_text))

    def _drain_control_out(self) -> tuple[dict[str, Any], ...]:
        if self.session is None:
            return ()
        return self.session.drain_control()
