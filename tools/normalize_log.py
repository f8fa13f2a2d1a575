import json
import sys
from pathlib import Path
from typing import Any


def normalize_events(lines: list[str], session_id: str | None = None) -> list[dict[str, Any]]:
    """
    Parse JSONL log lines and rebase 'ts_ms' on the first kept event:
    - non-JSON lines are skipped
    - session_id filters to one session
    - ts_ms becomes seconds since the first kept event ('t_s')
    """
    events: list[dict[str, Any]] = []
    for line in lines:
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            event = json.loads(line)
        except ValueError:
            continue
        if session_id is not None and event.get("session_id") != session_id:
            continue
        events.append(event)

    stamped = [e for e in events if isinstance(e.get("ts_ms"), int)]
    if not stamped:
        return events

    t0 = stamped[0]["ts_ms"]
    for event in stamped:
        event["t_s"] = (event.pop("ts_ms") - t0) / 1e3
    return events


def format_event(event: dict[str, Any]) -> str:
    t_s = event.get("t_s")
    stamp = f"{t_s:8.3f}s" if isinstance(t_s, float) else " " * 9
    label = event.get("decision") or event.get("event_type", "?")
    state = event.get("state", "")
    details = event.get("details") or {}
    return f"{stamp} {state:<18} {label:<24} {json.dumps(details, separators=(',', ':'))}"


if __name__ == "__main__":
    if len(sys.argv) < 2:
        sys.exit("usage: normalize_log.py LOG_FILE [SESSION_ID]")

    raw = Path(sys.argv[1]).read_text(encoding="utf-8").splitlines()
    session = sys.argv[2] if len(sys.argv) > 2 else None

    out_path = Path(__file__).parent / "temp_log.txt"
    out_path.write_text(
        "\n".join(format_event(e) for e in normalize_events(raw, session)) + "\n",
        encoding="utf-8",
    )
