"""
Session feedback sink.

Replaces on-device success / error sounds: each notification becomes a
FEEDBACK control message queued for the client.
"""

from __future__ import annotations

from observability.logger import log_event, now_ms
from session.voice_session import VoiceSession


class SessionFeedbackSink:
    def __init__(self, session: VoiceSession) -> None:
        self._session = session

    def notify(self, kind: str, message: str) -> None:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "user_feedback",
            "session_id": self._session.session_id,
            "kind": kind,
            "message": message,
        })
        self._session.enqueue_control({
            "type": "FEEDBACK",
            "kind": kind,
            "message": message,
        })
