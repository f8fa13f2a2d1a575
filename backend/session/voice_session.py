"""
Voice session container.

- Owns the session's collaborators (speech source, classifier, channel,
  executor, feedback sink)
- Owns connection status (mutable, gateway-controlled)
- Buffers outbound control messages for the gateway
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

from session.connection_status import ConnectionStatus

if TYPE_CHECKING:
    from orchestrator.runtime import Runtime
    from orchestrator.runtime_context import (
        CommandExecutorProtocol,
        ConversationChannelProtocol,
        FeedbackSinkProtocol,
        RemoteClassifierProtocol,
        SpeechSourceProtocol,
    )


@dataclass
class VoiceSession:
    """Mutable runtime container for a single voice session."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    session_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Connection / gateway-controlled state
    # ------------------------------------------------------------------

    connection_status: ConnectionStatus = ConnectionStatus.DOWN

    # ------------------------------------------------------------------
    # Collaborators (concrete, side-effectful)
    # ------------------------------------------------------------------

    speech_source: SpeechSourceProtocol | None = None
    classifier: RemoteClassifierProtocol | None = None
    channel: ConversationChannelProtocol | None = None
    executor: CommandExecutorProtocol | None = None
    feedback: FeedbackSinkProtocol | None = None

    # ------------------------------------------------------------------
    # Runtime (executes effects + owns authoritative state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._control_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_runtime(self, runtime: Runtime) -> None:
        """
        Attach the runtime executor.

        Must be called after collaborators are attached: the runtime
        subscribes to the channel at construction.
        """
        self.runtime = runtime

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "connection_status": self.connection_status.value,
        }

    # ------------------------------------------------------------------
    # Outbound control queue
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for gateway delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._control_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns a FIFO-ordered tuple, empty if nothing is pending.
        After this call, the control queue is empty.
        """
        self._control_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> None:
        """Block until at least one control message is pending."""
        await self._control_ready.wait()
