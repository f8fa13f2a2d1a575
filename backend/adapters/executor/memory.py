"""
In-memory command executor.

Session-local task / list store. Used as the server default when no
backend executor is configured, and by tests.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from adapters.executor.base import CommandExecutor, timer_summary
from errors import CommandExecutionFailure
from intents.commands import Priority


@dataclass
class TaskRecord:
    task_id: str
    title: str
    due_date: datetime | None = None
    priority: Priority = Priority.MEDIUM
    completed: bool = False


@dataclass
class TimerRecord:
    duration_s: int
    label: str | None = None


@dataclass
class ListRecord:
    name: str
    items: list[str] = field(default_factory=list)


def _matches(task_title: str, reference: str) -> bool:
    a, b = task_title.lower(), reference.lower()
    return a in b or b in a


class InMemoryCommandExecutor(CommandExecutor):
    """
    Tasks are matched by case-insensitive containment in either direction,
    first match in creation order. Completed tasks are not completed twice.
    """

    def __init__(self, *, session_id: str | None = None) -> None:
        super().__init__(session_id=session_id)
        self.tasks: list[TaskRecord] = []
        self.timers: list[TimerRecord] = []
        self.lists: dict[str, ListRecord] = {}

    def _find(self, reference: str, *, include_completed: bool) -> TaskRecord | None:
        for task in self.tasks:
            if task.task_id == reference:
                return task
            if not include_completed and task.completed:
                continue
            if _matches(task.title, reference):
                return task
        return None

    async def create_task(
        self, title: str, due_date: datetime | None, priority: Priority
    ) -> str:
        if not title:
            raise CommandExecutionFailure("Task title is empty")
        self.tasks.append(
            TaskRecord(
                task_id=uuid.uuid4().hex,
                title=title,
                due_date=due_date,
                priority=priority,
            )
        )
        self.last_result = f"Created: {title}"
        return "Task created"

    async def complete_task(self, reference: str) -> str:
        if not reference:
            raise CommandExecutionFailure("Task reference is empty")
        task = self._find(reference, include_completed=False)
        if task is None:
            raise CommandExecutionFailure("Task not found")
        task.completed = True
        self.last_result = "Completed task"
        return "Task completed"

    async def delete_task(self, reference: str) -> str:
        if not reference:
            raise CommandExecutionFailure("Task reference is empty")
        task = self._find(reference, include_completed=True)
        if task is None:
            raise CommandExecutionFailure("Task not found")
        self.tasks.remove(task)
        self.last_result = "Deleted task"
        return "Task deleted"

    async def set_timer(self, duration_s: int, label: str | None) -> str:
        self.timers.append(TimerRecord(duration_s=duration_s, label=label))
        self.last_result = timer_summary(duration_s, label)
        return "Timer set"

    async def add_list_item(self, item: str, list_name: str) -> str:
        if not item:
            raise CommandExecutionFailure("Item is empty")
        record = self.lists.setdefault(list_name, ListRecord(name=list_name))
        record.items.append(item)
        self.last_result = f"Added {item} to {list_name} list"
        return "Added to list"
