"""
BEHAVIOR CONSTANTS
------------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Intent Classification
# =============================================================================

# Hard deadline for the remote classifier, measured from call start.
CLASSIFICATION_TIMEOUT_MS: Final[int] = 1_000

# Local heuristic keyword table. Order matters: first match wins.
LOCAL_COMMAND_KEYWORDS: Final[Tuple[str, ...]] = (
    "remind",
    "task",
    "timer",
    "alarm",
    "complete",
    "done",
    "delete",
    "remove",
    "shopping",
    "grocery",
)

CLASSIFIER_TEMPERATURE: Final[float] = 0.1
CLASSIFIER_MAX_TOKENS: Final[int] = 100

# =============================================================================
# Conversation Channel
# =============================================================================

# Grace period a send waits for the channel to become READY.
SEND_GRACE_PERIOD_MS: Final[int] = 500

# Exactly one retry-connect when CONVERSING needs a FAILED channel.
CHANNEL_CONNECT_RETRY_COUNT: Final[int] = 1

# Handshake deadline for the status(connected=true) frame.
CHANNEL_CONNECT_TIMEOUT_S: Final[float] = 5.0
CHANNEL_OPEN_TIMEOUT_S: Final[float] = 10.0
CHANNEL_PING_INTERVAL_S: Final[float] = 30.0

CHANNEL_DEFAULT_VOICE: Final[str] = "shimmer"
CHANNEL_DEFAULT_TEMPERATURE: Final[float] = 0.6

# =============================================================================
# Command Handoff
# =============================================================================

COMMAND_NOT_RECOGNIZED_MESSAGE: Final[str] = "Command not recognized"
CHANNEL_NOT_CONNECTED_MESSAGE: Final[str] = "not connected"
CONVERSATION_ACTIVE_MESSAGE: Final[str] = "Conversation mode active"

# =============================================================================
# Command Parsing
# =============================================================================

DEFAULT_LIST_NAME: Final[str] = "Shopping"

# Hours-of-day used by part-of-day phrases.
TONIGHT_HOUR: Final[int] = 20
MORNING_HOUR: Final[int] = 9
AFTERNOON_HOUR: Final[int] = 14
EVENING_HOUR: Final[int] = 18

NEXT_WEEK_DAYS: Final[int] = 7

# =============================================================================
# HTTP
# =============================================================================

HTTP_CONNECT_TIMEOUT_S: Final[float] = 2.0
HTTP_REQUEST_TIMEOUT_S: Final[float] = 30.0

# =============================================================================
# Session Gateway
# =============================================================================

SESSION_ID_HEX_LEN: Final[int] = 12


# =============================================================================
# Helper Functions
# =============================================================================

def ms_to_seconds(duration_ms: int) -> float:
    """
    Convert milliseconds to seconds for asyncio APIs.

    Defensive behavior:
    - Non-positive input returns 0.0.
    """
    if duration_ms <= 0:
        return 0.0
    return duration_ms / 1000.0
