"""
Client-relayed speech source.

Speech recognition happens on the client device; the gateway relays
transcript snapshots and the end-of-speech marker into this adapter,
which forwards them to the runtime callbacks bound to the current
listening run.
"""

from __future__ import annotations

from orchestrator.runtime_context import EndOfSpeechCallback, TranscriptCallback
from observability.logger import bind


class RelaySpeechSource:
    """
    Push-based speech source fed by the gateway.

    Contract:
    - Pushes outside a start() / stop() window are dropped and logged
    - end_of_speech fires at most once per start()
    - stop() is idempotent
    """

    def __init__(self, *, session_id: str | None = None) -> None:
        self._on_transcript: TranscriptCallback | None = None
        self._on_end_of_speech: EndOfSpeechCallback | None = None
        self._log = bind(component="speech_relay", session_id=session_id)

    @property
    def active(self) -> bool:
        return self._on_transcript is not None

    async def start(
        self,
        on_transcript: TranscriptCallback,
        on_end_of_speech: EndOfSpeechCallback,
    ) -> None:
        self._on_transcript = on_transcript
        self._on_end_of_speech = on_end_of_speech

    async def stop(self) -> None:
        self._on_transcript = None
        self._on_end_of_speech = None

    async def push_transcript(self, text: str) -> None:
        callback = self._on_transcript
        if callback is None:
            self._log({"event_type": "transcript_dropped", "reason": "not_listening"})
            return
        await callback(text)

    async def end_of_speech(self) -> None:
        callback = self._on_end_of_speech
        if callback is None:
            self._log({"event_type": "end_of_speech_dropped", "reason": "not_listening"})
            return
        self._on_end_of_speech = None
        await callback()
