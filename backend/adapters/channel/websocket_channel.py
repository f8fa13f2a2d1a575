"""
WebSocket conversation channel.

Connection to the remote conversational agent over the backend's voice
socket. One channel per session; connect / close are serialized by an
internal lock so a warmup and a reset never race on the socket.

Wire protocol (JSON text frames, {"type": ..., "data": {...}}):

  client -> server: session.config, text.send, interrupt, ping
  server -> client: status, transcript, audio, text, function, error, pong

The channel is READY once the server answers session.config with
status {"connected": true}.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

from websockets.asyncio.client import ClientConnection, connect as ws_connect
from websockets.exceptions import WebSocketException

from errors import ChannelConnectFailure, ChannelSendFailure
from observability.logger import bind
from orchestrator.enums.channel_state import ChannelState
from orchestrator.runtime_context import ChannelStateCallback
from spec import (
    CHANNEL_CONNECT_TIMEOUT_S,
    CHANNEL_DEFAULT_TEMPERATURE,
    CHANNEL_DEFAULT_VOICE,
    CHANNEL_OPEN_TIMEOUT_S,
    CHANNEL_PING_INTERVAL_S,
)


def encode_message(msg_type: str, data: dict[str, Any] | None = None) -> str:
    payload: dict[str, Any] = {"type": msg_type}
    if data is not None:
        payload["data"] = data
    return json.dumps(payload, separators=(",", ":"))


class WebSocketConversationChannel:
    """
    Conversation channel backed by a websockets client connection.

    State machine:
        UNCONNECTED -> CONNECTING -> READY <-> SENDING
        any -> CLOSED (close) | FAILED (connect / receive error)

    Every transition is pushed to subscribers synchronously.
    """

    def __init__(
        self,
        *,
        url: str,
        auth_token: str | None = None,
        voice: str = CHANNEL_DEFAULT_VOICE,
        temperature: float = CHANNEL_DEFAULT_TEMPERATURE,
        conversation_id: str | None = None,
        session_id: str | None = None,
    ) -> None:
        self._url = url
        self._auth_token = auth_token
        self._voice = voice
        self._temperature = temperature
        self._conversation_id = conversation_id

        self._state = ChannelState.UNCONNECTED
        self._subscribers: list[ChannelStateCallback] = []
        self._lock = asyncio.Lock()
        self._ready = asyncio.Event()

        self._ws: ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._ping_task: asyncio.Task[None] | None = None
        self._connected: asyncio.Future[None] | None = None

        self._log = bind(component="conversation_channel", session_id=session_id)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ChannelState:
        return self._state

    def subscribe(self, callback: ChannelStateCallback) -> None:
        self._subscribers.append(callback)

    def _set_state(self, new_state: ChannelState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state

        if new_state in (ChannelState.READY, ChannelState.SENDING):
            self._ready.set()
        else:
            self._ready.clear()

        self._log({
            "event_type": "channel_state_changed",
            "from": old.value,
            "to": new_state.value,
        })
        for callback in list(self._subscribers):
            callback(new_state)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Open the socket and wait for the server's connected status."""
        async with self._lock:
            if self._state in (ChannelState.READY, ChannelState.SENDING):
                return

            await self._drop_connection_locked()
            self._set_state(ChannelState.CONNECTING)
            try:
                await self._open_locked()
            except asyncio.CancelledError:
                # Cancelled warmup: release the half-open socket.
                await self._drop_connection_locked()
                self._set_state(ChannelState.CLOSED)
                raise

    async def _open_locked(self) -> None:
        headers = {}
        if self._auth_token:
            headers["Authorization"] = f"Bearer {self._auth_token}"

        try:
            self._ws = await ws_connect(
                self._url,
                additional_headers=headers,
                open_timeout=CHANNEL_OPEN_TIMEOUT_S,
                ping_interval=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self._ws = None
            self._set_state(ChannelState.FAILED)
            raise ChannelConnectFailure(f"connect failed: {e!r}") from e

        self._connected = asyncio.get_running_loop().create_future()
        self._recv_task = asyncio.create_task(self._recv_loop(self._ws))

        try:
            await self._ws.send(encode_message("session.config", self._session_config()))
            await asyncio.wait_for(
                asyncio.shield(self._connected), timeout=CHANNEL_CONNECT_TIMEOUT_S
            )
        except asyncio.TimeoutError as e:
            await self._drop_connection_locked()
            self._set_state(ChannelState.FAILED)
            raise ChannelConnectFailure("connection timeout") from e
        except ChannelConnectFailure:
            await self._drop_connection_locked()
            self._set_state(ChannelState.FAILED)
            raise
        except WebSocketException as e:
            await self._drop_connection_locked()
            self._set_state(ChannelState.FAILED)
            raise ChannelConnectFailure(f"handshake failed: {e!r}") from e

        if self._recv_task is None or self._recv_task.done():
            await self._drop_connection_locked()
            self._set_state(ChannelState.FAILED)
            raise ChannelConnectFailure("connection closed during handshake")

        self._ping_task = asyncio.create_task(self._ping_loop(self._ws))
        self._set_state(ChannelState.READY)

    async def wait_ready(self, timeout_s: float) -> bool:
        if self._ready.is_set():
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=timeout_s)
        except asyncio.TimeoutError:
            return False
        return True

    async def send(self, text: str) -> None:
        ws = self._ws
        if ws is None or self._state != ChannelState.READY:
            raise ChannelSendFailure(f"channel not ready ({self._state.value})")

        self._set_state(ChannelState.SENDING)
        try:
            await ws.send(encode_message("text.send", {"text": text}))
        except WebSocketException as e:
            self._set_state(ChannelState.FAILED)
            raise ChannelSendFailure(f"send failed: {e!r}") from e

        if self._state == ChannelState.SENDING:
            self._set_state(ChannelState.READY)

    async def interrupt(self) -> None:
        """Ask the agent to stop its current response."""
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.send(encode_message("interrupt"))
        except WebSocketException as e:
            self._log({"event_type": "channel_interrupt_failed", "error": repr(e)})

    async def close(self) -> None:
        """Idempotent. Leaves the channel CLOSED unless it was never opened."""
        async with self._lock:
            had_connection = self._ws is not None
            await self._drop_connection_locked()
            if had_connection or self._state not in (
                ChannelState.UNCONNECTED,
                ChannelState.CLOSED,
            ):
                self._set_state(ChannelState.CLOSED)

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _session_config(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "voice": self._voice,
            "temperature": self._temperature,
            "history": [],
        }
        if self._conversation_id is not None:
            data["conversationId"] = self._conversation_id
        return data

    async def _drop_connection_locked(self) -> None:
        ws = self._ws
        self._ws = None

        current = asyncio.current_task()
        for task in (self._recv_task, self._ping_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._recv_task = None
        self._ping_task = None

        if self._connected is not None and not self._connected.done():
            self._connected.cancel()
        self._connected = None

        if ws is not None:
            try:
                await ws.close()
            except WebSocketException:
                pass

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    async def _recv_loop(self, ws: ClientConnection) -> None:
        try:
            async for raw in ws:
                try:
                    data = json.loads(raw)
                except (TypeError, ValueError) as e:
                    self._log({"event_type": "channel_decode_error", "error": repr(e)})
                    continue
                if isinstance(data, dict):
                    self._handle_message(data)
        except asyncio.CancelledError:
            return
        except WebSocketException as e:
            self._log({"event_type": "channel_recv_failed", "error": repr(e)})

        # Socket ended without close(): surface the drop.
        if ws is self._ws:
            self._fail_pending(ChannelConnectFailure("connection closed during handshake"))
            self._set_state(ChannelState.FAILED)

    def _handle_message(self, message: dict[str, Any]) -> None:
        msg_type = message.get("type")
        data = message.get("data")
        if not isinstance(data, dict):
            data = {}

        if msg_type == "status":
            connected = data.get("connected")
            if connected is True and self._connected is not None and not self._connected.done():
                self._connected.set_result(None)
            elif connected is False and self._state in (ChannelState.READY, ChannelState.SENDING):
                self._set_state(ChannelState.FAILED)

        elif msg_type == "error":
            error_message = data.get("message")
            self._log({"event_type": "channel_server_error", "message": error_message})
            self._fail_pending(ChannelConnectFailure(f"server error: {error_message}"))

        elif msg_type == "pong":
            pass

        else:
            self._log({"event_type": "channel_message", "type": msg_type})

    def _fail_pending(self, exc: Exception) -> None:
        if self._connected is not None and not self._connected.done():
            self._connected.set_exception(exc)

    async def _ping_loop(self, ws: ClientConnection) -> None:
        try:
            while True:
                await asyncio.sleep(CHANNEL_PING_INTERVAL_S)
                try:
                    await ws.send(encode_message("ping"))
                except WebSocketException as e:
                    self._log({"event_type": "channel_ping_failed", "error": repr(e)})
                    return
        except asyncio.CancelledError:
            return
