"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from intents.commands import Command
from orchestrator.enums.channel_state import ChannelState
from orchestrator.enums.state import State
from orchestrator.enums.task_kind import TaskKind
from orchestrator.enums.warmup_status import WarmupStatus
from orchestrator.retry import RetryAttempt
from orchestrator.run_ids import RunIds


@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: State = State.IDLE

    # ------------------------------------------------------------------
    # Run/version tracking
    # ------------------------------------------------------------------
    active_runs: RunIds = field(default_factory=RunIds)

    # Kinds with a live handle. A TaskEvent is admitted only if its kind
    # is here and its run_id is the active one.
    outstanding: frozenset[TaskKind] = frozenset()

    # ------------------------------------------------------------------
    # Utterance cycle
    # ------------------------------------------------------------------
    transcript: str = ""
    started_at_ms: int | None = None
    speech_ended_ts_ms: int | None = None
    last_command: Command | None = None

    # True once a failed command was rerouted to conversation this cycle.
    fallback_used: bool = False

    # Executor message from the rerouted command; only surfaced if the
    # conversational attempt fails too.
    command_error: str | None = None

    # ------------------------------------------------------------------
    # Conversation channel
    # ------------------------------------------------------------------
    warmup_status: WarmupStatus = WarmupStatus.NONE
    channel_state: ChannelState = ChannelState.UNCONNECTED
    connect_retry: RetryAttempt = RetryAttempt(attempt=0)

    # Text waiting for a PENDING warmup to finish.
    pending_send_text: str | None = None

    # ------------------------------------------------------------------
    # Outcome
    # ------------------------------------------------------------------
    last_result: str | None = None
    last_error: str | None = None
