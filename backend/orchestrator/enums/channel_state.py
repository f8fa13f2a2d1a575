"""
Conversation channel state, as exposed by channel adapters.

The orchestrator reads this; only the runtime (on reducer instruction)
requests connect / send / close.
"""

from __future__ import annotations

from enum import Enum


class ChannelState(str, Enum):
    UNCONNECTED = "UNCONNECTED"
    CONNECTING = "CONNECTING"
    READY = "READY"
    SENDING = "SENDING"
    CLOSED = "CLOSED"
    FAILED = "FAILED"
