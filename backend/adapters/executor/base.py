"""
Command executor contract.

Purpose:
- Map a parsed Command onto the task / timer / list store.
- Report the outcome as a CommandResult; never decide what happens next.

Rules:
- Dispatch is on command_kind, never on Python type identity.
- Unknown yields a failed result, never a crash or a silent success.
- Store errors surface as CommandExecutionFailure; execute() converts them
  into a failed result so the orchestrator can reroute.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from errors import CommandExecutionFailure, CommandUnrecognized
from intents.commands import (
    AddListItem,
    Command,
    CommandKind,
    CommandResult,
    CompleteTask,
    CreateTask,
    DeleteTask,
    Priority,
    SetTimer,
)
from observability.logger import log_event, now_ms
from spec import COMMAND_NOT_RECOGNIZED_MESSAGE


def _count(value: int, unit: str) -> str:
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def timer_summary(duration_s: int, label: str | None) -> str:
    """'Timer set: 5 minutes for pasta', 'Timer set: 30 seconds'"""
    minutes, seconds = divmod(duration_s, 60)
    parts = []
    if minutes:
        parts.append(_count(minutes, "minute"))
    if seconds or not minutes:
        parts.append(_count(seconds, "second"))
    label_text = f" for {label}" if label else ""
    return f"Timer set: {' '.join(parts)}{label_text}"


class CommandExecutor(ABC):
    """
    Base class for command executors.

    Subclasses implement one coroutine per command kind. Each returns the
    short user-facing message on success, or raises
    CommandExecutionFailure with the user-facing failure message.
    """

    def __init__(self, *, session_id: str | None = None) -> None:
        self._session_id = session_id
        self.last_result: str | None = None

    async def execute(self, command: Command) -> CommandResult:
        kind = command.command_kind
        try:
            if kind is CommandKind.CREATE_TASK:
                assert isinstance(command, CreateTask)
                message = await self.create_task(
                    command.title, command.due_date, command.priority
                )
            elif kind is CommandKind.COMPLETE_TASK:
                assert isinstance(command, CompleteTask)
                message = await self.complete_task(command.title_or_id)
            elif kind is CommandKind.DELETE_TASK:
                assert isinstance(command, DeleteTask)
                message = await self.delete_task(command.title_or_id)
            elif kind is CommandKind.SET_TIMER:
                assert isinstance(command, SetTimer)
                message = await self.set_timer(command.duration_s, command.label)
            elif kind is CommandKind.ADD_LIST_ITEM:
                assert isinstance(command, AddListItem)
                message = await self.add_list_item(command.item, command.list_name)
            else:
                raise CommandUnrecognized(COMMAND_NOT_RECOGNIZED_MESSAGE)
        except CommandExecutionFailure as exc:
            result = CommandResult(success=False, message=str(exc))
            self._log(command, result)
            return result

        result = CommandResult(success=True, message=message)
        self._log(command, result)
        return result

    def _log(self, command: Command, result: CommandResult) -> None:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "command_executed",
            "session_id": self._session_id,
            "executor": type(self).__name__,
            "command": command.describe(),
            "success": result.success,
            "message": result.message,
            "last_result": self.last_result,
        })

    # ------------------------------------------------------------------
    # Per-kind operations
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_task(
        self, title: str, due_date: datetime | None, priority: Priority
    ) -> str:
        raise NotImplementedError

    @abstractmethod
    async def complete_task(self, reference: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def delete_task(self, reference: str) -> str:
        raise NotImplementedError

    @abstractmethod
    async def set_timer(self, duration_s: int, label: str | None) -> str:
        raise NotImplementedError

    @abstractmethod
    async def add_list_item(self, item: str, list_name: str) -> str:
        raise NotImplementedError
