# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio

import pytest

from adapters.speech.relay import RelaySpeechSource
from observability import logger


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_print", lambda line: None)


def test_relay_forwards_within_start_stop_window():
    async def scenario():
        transcripts: list[str] = []
        ends: list[bool] = []

        async def on_transcript(text: str) -> None:
            transcripts.append(text)

        async def on_end() -> None:
            ends.append(True)

        relay = RelaySpeechSource(session_id="s")
        await relay.push_transcript("dropped")
        assert not relay.active

        await relay.start(on_transcript, on_end)
        assert relay.active
        await relay.push_transcript("set a")
        await relay.push_transcript("set a timer")
        await relay.end_of_speech()
        await relay.end_of_speech()

        await relay.stop()
        await relay.stop()
        await relay.push_transcript("late")

        assert transcripts == ["set a", "set a timer"]
        assert ends == [True]
        assert not relay.active

    asyncio.run(scenario())
