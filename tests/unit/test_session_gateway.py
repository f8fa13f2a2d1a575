# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from dataclasses import replace
from typing import Any

import pytest

from config import AppConfig
from fakes import FakeConversationChannel
from observability import logger
from session.connection_status import ConnectionStatus
from session.gateway import SessionGateway


CONFIG = AppConfig(
    env="test",
    log_level="INFO",
    api_base_url="https://api.example.test/api",
    api_auth_token=None,
    classifier_provider="openai",
    classifier_model="gpt-4o-mini",
    openai_api_key=None,
    voice_ws_url="wss://api.example.test/api/voice/ws",
    voice_name="shimmer",
    executor_provider="memory",
    enable_json_logs=True,
)


@pytest.fixture
def logs(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    lines: list[dict[str, Any]] = []
    monkeypatch.setattr(logger, "_print", lambda line: lines.append(json.loads(line)))
    return lines


def _gateway(channel: FakeConversationChannel, config: AppConfig = CONFIG) -> SessionGateway:
    return SessionGateway(config=config, channel_factory=lambda session_id: channel)


def _msg(msg_type: str, **fields: Any) -> str:
    return json.dumps({"type": msg_type, **fields})


def _of_type(messages: tuple[dict[str, Any], ...], msg_type: str) -> list[dict[str, Any]]:
    return [m for m in messages if m["type"] == msg_type]


def test_connect_returns_session_init(logs: list[dict[str, Any]]):
    async def scenario():
        gateway = _gateway(FakeConversationChannel())
        result = await gateway.on_ws_connect()

        init = result.outbound_json[0]
        assert init["type"] == "SESSION_INIT"
        assert init["session_id"].startswith("sess_")
        assert init["state"] == "IDLE"
        assert init["status_text"] == "Ready to listen"
        assert gateway.session.connection_status is ConnectionStatus.UP
        assert any(e.get("decision") == "session_started" for e in logs)

    asyncio.run(scenario())


def test_command_utterance_round_trip(logs: list[dict[str, Any]]):
    async def scenario():
        gateway = _gateway(FakeConversationChannel())
        await gateway.on_ws_connect()

        started = await gateway.on_json_message(_msg("START_LISTENING"))
        state = _of_type(started.outbound_json, "STATE")[-1]
        assert state["state"] == "LISTENING"
        assert state["status_text"] == "Listening..."

        partial = await gateway.on_json_message(_msg("TRANSCRIPT", text="set a timer"))
        assert _of_type(partial.outbound_json, "STATE")[-1]["transcript"] == "set a timer"

        await gateway.on_json_message(_msg("TRANSCRIPT", text="set a timer for 5 minutes"))
        ended = await gateway.on_json_message(_msg("END_OF_SPEECH"))
        assert _of_type(ended.outbound_json, "STATE")[-1]["state"] == "EXECUTING_COMMAND"

        await gateway.orchestrator.settle()
        pushed = await gateway.next_outbound()

        assert _of_type(pushed.outbound_json, "FEEDBACK") == [
            {"type": "FEEDBACK", "kind": "success", "message": "Timer set"}
        ]
        final = _of_type(pushed.outbound_json, "STATE")[-1]
        assert final["state"] == "IDLE"
        assert final["last_result"] == "Timer set"
        assert final["status_text"] == "Ready to listen"

    asyncio.run(scenario())


def test_unconfigured_classifier_falls_back_to_conversation(logs: list[dict[str, Any]]):
    async def scenario():
        channel = FakeConversationChannel()
        gateway = _gateway(channel)
        await gateway.on_ws_connect()

        await gateway.on_json_message(_msg("START_LISTENING"))
        await gateway.on_json_message(_msg("TRANSCRIPT", text="what's the weather like"))
        await gateway.on_json_message(_msg("END_OF_SPEECH"))
        await gateway.orchestrator.settle()
        pushed = await gateway.next_outbound()

        assert channel.sent == ["what's the weather like"]
        final = _of_type(pushed.outbound_json, "STATE")[-1]
        assert final["state"] == "CONVERSING"
        assert final["warmup_status"] == "READY"
        assert final["status_text"] == "Conversation mode"
        assert any(
            e.get("decision") == "route_conversation"
            and e["details"].get("failure") == "MISSING_CREDENTIAL"
            for e in logs
        )

    asyncio.run(scenario())


def test_switch_send_and_exit_conversation(logs: list[dict[str, Any]]):
    async def scenario():
        channel = FakeConversationChannel()
        gateway = _gateway(channel)
        await gateway.on_ws_connect()

        switched = await gateway.on_json_message(_msg("SWITCH_TO_CONVERSATION"))
        state = _of_type(switched.outbound_json, "STATE")[-1]
        assert state["state"] == "CONVERSING"
        assert state["status_text"] == "Connecting..."
        await gateway.orchestrator.settle()

        await gateway.on_json_message(_msg("SEND_MESSAGE", text="hello there"))
        await gateway.orchestrator.settle()
        assert channel.sent == ["hello there"]

        exited = await gateway.on_json_message(_msg("EXIT_CONVERSATION"))
        assert _of_type(exited.outbound_json, "STATE")[-1]["state"] == "IDLE"

        await gateway.on_json_message(_msg("RESET"))
        await gateway.orchestrator.settle()
        assert gateway.orchestrator.state.value == "IDLE"

    asyncio.run(scenario())


def test_bad_inbound_messages_are_logged_and_dropped(logs: list[dict[str, Any]]):
    async def scenario():
        gateway = _gateway(FakeConversationChannel())

        early = await gateway.on_json_message(_msg("START_LISTENING"))
        assert early.outbound_json == ()

        await gateway.on_ws_connect()
        unknown = await gateway.on_json_message(_msg("DANCE"))
        broken = await gateway.on_json_message("{not json")
        missing_text = await gateway.on_json_message(_msg("SEND_MESSAGE"))

        assert unknown.outbound_json == ()
        assert broken.outbound_json == ()
        assert missing_text.outbound_json == ()

        types = [e["event_type"] for e in logs]
        assert "MESSAGE_WITHOUT_SESSION" in types
        assert "UNKNOWN_MESSAGE_TYPE" in types
        assert "JSON_DECODE_ERROR" in types

    asyncio.run(scenario())


def test_disconnect_shuts_down_session(logs: list[dict[str, Any]]):
    async def scenario():
        channel = FakeConversationChannel()
        gateway = _gateway(channel)
        await gateway.on_ws_connect()
        await gateway.on_json_message(_msg("START_LISTENING"))

        await gateway.on_ws_disconnect("client_closed")

        assert gateway.session.connection_status is ConnectionStatus.DOWN
        assert channel.close_calls >= 1
        assert not gateway.session.speech_source.active
        disconnected = [e for e in logs if e["event_type"] == "WS_DISCONNECTED"]
        assert disconnected[0]["reason"] == "client_closed"
        assert disconnected[0]["connection_status"] == "DOWN"

    asyncio.run(scenario())


def test_unknown_provider_is_rejected(logs: list[dict[str, Any]]):
    gateway = _gateway(FakeConversationChannel(), replace(CONFIG, executor_provider="carrier-pigeon"))
    with pytest.raises(RuntimeError, match="EXECUTOR_PROVIDER"):
        asyncio.run(gateway.on_ws_connect())
