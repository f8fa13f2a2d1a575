# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import pytest

from observability import logger
from observability.metrics import record_metric, timed


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    lines: list[dict[str, Any]] = []
    monkeypatch.setattr(logger, "_print", lambda line: lines.append(json.loads(line)))
    monkeypatch.setattr(logger, "_enabled", True)
    return lines


def test_log_event_emits_valid_jsonl(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """
    Contract:
    - log_event emits exactly one JSONL line
    - payload is serialized as-is
    - output sink is patchable
    """
    captured: list[str] = []

    def fake_print(line: str) -> None:
        captured.append(line)

    monkeypatch.setattr(logger, "_print", fake_print)
    monkeypatch.setattr(logger, "_enabled", True)

    payload: dict[str, Any] = {
        "event_type": "TEST",
        "value": 123,
    }

    logger.log_event(payload)

    assert len(captured) == 1
    assert "\n" not in captured[0]
    assert json.loads(captured[0]) == payload


def test_unserializable_event_logs_fallback(captured: list[dict[str, Any]]) -> None:
    logger.log_event({"ts_ms": 5, "event_type": "TEST", "obj": object()})

    assert len(captured) == 1
    assert captured[0]["event_type"] == "LOGGER_SERIALIZATION_ERROR"
    assert captured[0]["ts_ms"] == 5
    assert "TEST" in captured[0]["original_event_repr"]


def test_configure_disables_output(captured: list[dict[str, Any]]) -> None:
    logger.configure(enabled=False)
    logger.log_event({"event_type": "SILENT"})
    logger.configure(enabled=True)
    logger.log_event({"event_type": "LOUD"})

    assert [e["event_type"] for e in captured] == ["LOUD"]


def test_bind_merges_context_and_event_wins(captured: list[dict[str, Any]]) -> None:
    log = logger.bind(component="classifier", session_id="sess_1")
    log({"event_type": "X"})
    log({"event_type": "Y", "session_id": "override"})

    assert captured[0]["component"] == "classifier"
    assert captured[0]["session_id"] == "sess_1"
    assert isinstance(captured[0]["ts_ms"], int)
    assert captured[1]["session_id"] == "override"


def test_record_metric(captured: list[dict[str, Any]]) -> None:
    record_metric("route", 1, session_id="s", state="CLASSIFYING", tags={"route": "command"})

    assert captured == [
        {
            "ts_ms": captured[0]["ts_ms"],
            "event_type": "METRIC",
            "metric": "route",
            "value": 1,
            "session_id": "s",
            "state": "CLASSIFYING",
            "tags": {"route": "command"},
        }
    ]


def test_timed_emits_once_with_details(captured: list[dict[str, Any]]) -> None:
    with timed("remote_classification", session_id="s", details={"a": 1}) as info:
        info["verdict"] = "command"

    assert len(captured) == 1
    event = captured[0]
    assert event["event_type"] == "METRIC_TIMER"
    assert event["metric"] == "remote_classification"
    assert event["outcome"] == "ok"
    assert event["details"] == {"a": 1, "verdict": "command"}
    assert event["value_ms"] >= 0


def test_timed_records_exception_outcome(captured: list[dict[str, Any]]) -> None:
    with pytest.raises(TimeoutError):
        with timed("remote_classification"):
            raise TimeoutError

    assert len(captured) == 1
    assert captured[0]["outcome"] == "TimeoutError"
