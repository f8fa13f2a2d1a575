# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest
from fastapi.testclient import TestClient

from observability import logger
from server.app import create_app


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setattr(logger, "_print", lambda line: None)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("VOICE_WS_URL", "ws://127.0.0.1:9/voice/ws")
    monkeypatch.setenv("EXECUTOR_PROVIDER", "memory")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "1")
    return TestClient(create_app())


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_app_without_openai_key_has_no_client(client: TestClient):
    assert client.app.state.openai_client is None
    assert client.app.state.config.executor_provider == "memory"


def test_websocket_session_init(client: TestClient):
    with client.websocket_connect("/ws") as ws:
        init = ws.receive_json()
        assert init["type"] == "SESSION_INIT"
        assert init["state"] == "IDLE"
        assert init["status_text"] == "Ready to listen"

        ws.send_text('{"type": "SWITCH_TO_CONVERSATION"}')
        state = ws.receive_json()
        assert state["type"] == "STATE"
        assert state["state"] == "CONVERSING"
