# pylint: disable=missing-module-docstring,missing-function-docstring

from normalize_log import format_event, normalize_events


LINES = [
    "INFO:     Started server process",
    '{"ts_ms":1000,"event_type":"START_LISTENING","decision":"start_speech","state":"LISTENING","session_id":"a"}',
    '{"ts_ms":1250,"event_type":"METRIC","session_id":"b"}',
    '{"ts_ms":1500,"event_type":"END_OF_SPEECH","decision":"route_command","state":"EXECUTING_COMMAND","session_id":"a","details":{"source":"LOCAL"}}',
    "{broken",
]


def test_rebases_timestamps_and_skips_noise():
    events = normalize_events(LINES)
    assert [e["t_s"] for e in events] == [0.0, 0.25, 0.5]
    assert all("ts_ms" not in e for e in events)


def test_filters_by_session():
    events = normalize_events(LINES, session_id="a")
    assert [e["decision"] for e in events] == ["start_speech", "route_command"]
    assert events[-1]["t_s"] == 0.5


def test_format_event():
    line = format_event(normalize_events(LINES, session_id="a")[-1])
    assert line.startswith("   0.500s EXECUTING_COMMAND")
    assert "route_command" in line
    assert line.endswith('{"source":"LOCAL"}')
