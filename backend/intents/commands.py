"""
Voice command value objects.

Rules:
- Commands are immutable value objects produced once per cycle by the parser.
- They carry no identity beyond their cycle.
- No behavior, no I/O.

Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - command_kind is an explicit discriminant and must never be inferred
      from Python type identity.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Priority(str, Enum):
    """Task priority extracted from priority keywords."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CommandKind(str, Enum):
    """Stable discriminants used for logging and executor dispatch."""

    CREATE_TASK = "CREATE_TASK"
    COMPLETE_TASK = "COMPLETE_TASK"
    DELETE_TASK = "DELETE_TASK"
    SET_TIMER = "SET_TIMER"
    ADD_LIST_ITEM = "ADD_LIST_ITEM"
    UNKNOWN = "UNKNOWN"


class Command:
    """Base voice command type."""

    command_kind: CommandKind

    def describe(self) -> dict[str, Any]:
        """Loggable, JSON-safe summary of the command."""
        return {"kind": self.command_kind.value}


@dataclass(frozen=True)
class CreateTask(Command):
    """Create a task (reminder)."""
    title: str
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    command_kind: CommandKind = CommandKind.CREATE_TASK

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.command_kind.value,
            "title": self.title,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "priority": self.priority.value,
        }


@dataclass(frozen=True)
class CompleteTask(Command):
    """Mark an existing task complete, referenced by title fragment or id."""
    title_or_id: str
    command_kind: CommandKind = CommandKind.COMPLETE_TASK

    def describe(self) -> dict[str, Any]:
        return {"kind": self.command_kind.value, "title_or_id": self.title_or_id}


@dataclass(frozen=True)
class DeleteTask(Command):
    """Delete an existing task, referenced by title fragment or id."""
    title_or_id: str
    command_kind: CommandKind = CommandKind.DELETE_TASK

    def describe(self) -> dict[str, Any]:
        return {"kind": self.command_kind.value, "title_or_id": self.title_or_id}


@dataclass(frozen=True)
class SetTimer(Command):
    """Start a countdown timer."""
    duration_s: int
    label: str | None = None
    command_kind: CommandKind = CommandKind.SET_TIMER

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.command_kind.value,
            "duration_s": self.duration_s,
            "label": self.label,
        }


@dataclass(frozen=True)
class AddListItem(Command):
    """Append an item to a named list."""
    item: str
    list_name: str
    command_kind: CommandKind = CommandKind.ADD_LIST_ITEM

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.command_kind.value,
            "item": self.item,
            "list_name": self.list_name,
        }


@dataclass(frozen=True)
class Unknown(Command):
    """Utterance could not be parsed into a concrete command."""
    command_kind: CommandKind = CommandKind.UNKNOWN


@dataclass(frozen=True)
class CommandResult:
    """Outcome of CommandExecutor.execute()."""
    success: bool
    message: str
