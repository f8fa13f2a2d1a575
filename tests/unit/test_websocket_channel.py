# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from typing import Any, Awaitable, Callable

import pytest
from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from adapters.channel.websocket_channel import WebSocketConversationChannel, encode_message
from errors import ChannelConnectFailure, ChannelSendFailure
from observability import logger
from orchestrator.enums.channel_state import ChannelState


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_print", lambda line: None)


class AgentServer:
    """Minimal voice-socket peer: answers session.config, records frames."""

    def __init__(self, *, reply: dict[str, Any] | None = None) -> None:
        self.reply = reply if reply is not None else {"type": "status", "data": {"connected": True}}
        self.frames: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self.headers: list[str | None] = []
        self.drop = asyncio.Event()
        # Cleared to hold the connected reply back.
        self.release = asyncio.Event()
        self.release.set()
        self.closed = asyncio.Event()

    async def handler(self, ws: ServerConnection) -> None:
        self.headers.append(ws.request.headers.get("Authorization"))
        drop_task = asyncio.create_task(self._drop_when_asked(ws))
        try:
            async for raw in ws:
                message = json.loads(raw)
                await self.frames.put(message)
                if message["type"] == "session.config":
                    await self.release.wait()
                    await ws.send(json.dumps(self.reply))
        except ConnectionClosed:
            pass
        finally:
            drop_task.cancel()
            self.closed.set()

    async def _drop_when_asked(self, ws: ServerConnection) -> None:
        await self.drop.wait()
        await ws.close()


async def _with_server(
    server: AgentServer,
    body: Callable[[str], Awaitable[None]],
) -> None:
    async with serve(server.handler, "127.0.0.1", 0) as ws_server:
        port = ws_server.sockets[0].getsockname()[1]
        await body(f"ws://127.0.0.1:{port}")


def _recording(channel: WebSocketConversationChannel) -> list[ChannelState]:
    states: list[ChannelState] = []
    channel.subscribe(states.append)
    return states


def test_encode_message():
    assert encode_message("ping") == '{"type":"ping"}'
    assert json.loads(encode_message("text.send", {"text": "hi"})) == {
        "type": "text.send",
        "data": {"text": "hi"},
    }


def test_connect_send_close():
    server = AgentServer()

    async def body(url: str) -> None:
        channel = WebSocketConversationChannel(url=url, auth_token="tok", voice="alloy")
        states = _recording(channel)

        await channel.connect()
        assert channel.state is ChannelState.READY
        assert await channel.wait_ready(0.1)

        config = await asyncio.wait_for(server.frames.get(), 1)
        assert config["type"] == "session.config"
        assert config["data"]["voice"] == "alloy"
        assert server.headers == ["Bearer tok"]

        # Already READY: no second socket.
        await channel.connect()
        assert len(server.headers) == 1

        await channel.send("hello")
        sent = await asyncio.wait_for(server.frames.get(), 1)
        assert sent == {"type": "text.send", "data": {"text": "hello"}}

        await channel.close()
        await channel.close()
        assert channel.state is ChannelState.CLOSED
        assert states == [
            ChannelState.CONNECTING,
            ChannelState.READY,
            ChannelState.SENDING,
            ChannelState.READY,
            ChannelState.CLOSED,
        ]

    asyncio.run(_with_server(server, body))


def test_server_error_fails_connect():
    server = AgentServer(reply={"type": "error", "data": {"message": "bad voice"}})

    async def body(url: str) -> None:
        channel = WebSocketConversationChannel(url=url)
        with pytest.raises(ChannelConnectFailure, match="bad voice"):
            await channel.connect()
        assert channel.state is ChannelState.FAILED
        assert not await channel.wait_ready(0.01)

    asyncio.run(_with_server(server, body))


def test_unreachable_server_fails_connect():
    async def scenario():
        async with serve(AgentServer().handler, "127.0.0.1", 0) as ws_server:
            port = ws_server.sockets[0].getsockname()[1]
        channel = WebSocketConversationChannel(url=f"ws://127.0.0.1:{port}")
        with pytest.raises(ChannelConnectFailure):
            await channel.connect()
        assert channel.state is ChannelState.FAILED

    asyncio.run(scenario())


def test_server_drop_marks_channel_failed():
    server = AgentServer()

    async def body(url: str) -> None:
        channel = WebSocketConversationChannel(url=url)
        failed = asyncio.Event()
        channel.subscribe(lambda state: failed.set() if state is ChannelState.FAILED else None)

        await channel.connect()
        server.drop.set()
        await asyncio.wait_for(failed.wait(), 2)

        with pytest.raises(ChannelSendFailure):
            await channel.send("anyone there?")

        # A later connect opens a fresh socket.
        server.drop.clear()
        await channel.connect()
        assert channel.state is ChannelState.READY
        assert len(server.headers) == 2
        await channel.close()

    asyncio.run(_with_server(server, body))


def test_cancelled_connect_releases_socket():
    server = AgentServer()
    server.release.clear()

    async def body(url: str) -> None:
        channel = WebSocketConversationChannel(url=url)
        states = _recording(channel)

        connecting = asyncio.create_task(channel.connect())
        config = await asyncio.wait_for(server.frames.get(), 1)
        assert config["type"] == "session.config"

        connecting.cancel()
        with pytest.raises(asyncio.CancelledError):
            await connecting

        assert channel.state is ChannelState.CLOSED
        assert states == [ChannelState.CONNECTING, ChannelState.CLOSED]
        assert not await channel.wait_ready(0.01)

        # The half-open server session goes away once the reply is released.
        server.release.set()
        await asyncio.wait_for(server.closed.wait(), 2)

        await channel.connect()
        assert channel.state is ChannelState.READY
        assert len(server.headers) == 2
        await channel.close()

    asyncio.run(_with_server(server, body))


def test_send_before_connect_fails():
    channel = WebSocketConversationChannel(url="ws://127.0.0.1:9")
    with pytest.raises(ChannelSendFailure, match="UNCONNECTED"):
        asyncio.run(channel.send("hi"))
