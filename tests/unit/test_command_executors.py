# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
from datetime import datetime
from typing import Any

import httpx
import pytest

from adapters.executor.backend import BackendCommandExecutor
from adapters.executor.base import timer_summary
from adapters.executor.memory import InMemoryCommandExecutor
from intents.commands import (
    AddListItem,
    CommandResult,
    CompleteTask,
    CreateTask,
    DeleteTask,
    Priority,
    SetTimer,
    Unknown,
)
from observability import logger


@pytest.fixture(autouse=True)
def quiet_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logger, "_print", lambda line: None)


def test_timer_summary():
    assert timer_summary(300, "pasta") == "Timer set: 5 minutes for pasta"
    assert timer_summary(90, None) == "Timer set: 1 minute 30 seconds"
    assert timer_summary(30, None) == "Timer set: 30 seconds"
    assert timer_summary(60, "tea") == "Timer set: 1 minute for tea"


# ---------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------

def test_memory_task_lifecycle():
    async def scenario():
        executor = InMemoryCommandExecutor()
        due = datetime(2026, 2, 1, 9, 0)

        created = await executor.execute(CreateTask("Call Mom", due, Priority.HIGH))
        assert created == CommandResult(success=True, message="Task created")
        assert executor.last_result == "Created: Call Mom"
        assert executor.tasks[0].due_date == due
        assert executor.tasks[0].priority is Priority.HIGH

        completed = await executor.execute(CompleteTask("mom"))
        assert completed == CommandResult(success=True, message="Task completed")
        assert executor.tasks[0].completed

        again = await executor.execute(CompleteTask("mom"))
        assert again == CommandResult(success=False, message="Task not found")

        deleted = await executor.execute(DeleteTask(executor.tasks[0].task_id))
        assert deleted == CommandResult(success=True, message="Task deleted")
        assert executor.tasks == []
        assert executor.last_result == "Deleted task"

    asyncio.run(scenario())


def test_memory_timer_and_list():
    async def scenario():
        executor = InMemoryCommandExecutor()

        timer = await executor.execute(SetTimer(duration_s=300, label="pasta"))
        assert timer == CommandResult(success=True, message="Timer set")
        assert executor.last_result == "Timer set: 5 minutes for pasta"

        added = await executor.execute(AddListItem(item="milk", list_name="Shopping"))
        assert added == CommandResult(success=True, message="Added to list")
        await executor.execute(AddListItem(item="eggs", list_name="Shopping"))
        assert executor.lists["Shopping"].items == ["milk", "eggs"]
        assert executor.last_result == "Added eggs to Shopping list"

    asyncio.run(scenario())


@pytest.mark.parametrize(
    ("command", "message"),
    [
        (Unknown(), "Command not recognized"),
        (CreateTask(title=""), "Task title is empty"),
        (CompleteTask(title_or_id=""), "Task reference is empty"),
        (DeleteTask(title_or_id="dentist"), "Task not found"),
        (AddListItem(item="", list_name="Shopping"), "Item is empty"),
    ],
)
def test_memory_failures_are_results(command: Any, message: str):
    executor = InMemoryCommandExecutor()
    result = asyncio.run(executor.execute(command))
    assert result == CommandResult(success=False, message=message)


# ---------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------

class Recorder:
    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json={})

    def body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


def _backend(handler: Any, token: str | None = "tok") -> BackendCommandExecutor:
    return BackendCommandExecutor(
        base_url="https://api.example.test/api",
        auth_token=token,
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def test_backend_requests():
    async def scenario():
        recorder = Recorder()
        executor = _backend(recorder)

        await executor.execute(CreateTask("call mom", datetime(2026, 2, 1, 9, 0), Priority.LOW))
        assert recorder.requests[-1].url.path == "/api/tasks"
        assert recorder.requests[-1].headers["Authorization"] == "Bearer tok"
        assert recorder.body() == {
            "title": "call mom",
            "dueDate": "2026-02-01T09:00:00",
            "priority": "low",
        }

        await executor.execute(CompleteTask("mom"))
        assert recorder.requests[-1].url.path == "/api/tasks/complete"
        assert recorder.body() == {"reference": "mom"}

        await executor.execute(DeleteTask("mom"))
        assert recorder.requests[-1].url.path == "/api/tasks/delete"

        await executor.execute(SetTimer(duration_s=60, label=None))
        assert recorder.body() == {"durationSeconds": 60, "label": None}
        assert executor.last_result == "Timer set: 1 minute"

        result = await executor.execute(AddListItem(item="milk", list_name="Shopping"))
        assert recorder.requests[-1].url.path == "/api/lists/Shopping/items"
        assert recorder.body() == {"item": "milk"}
        assert result == CommandResult(success=True, message="Added to list")

    asyncio.run(scenario())


def test_backend_not_found_and_errors():
    missing = _backend(Recorder(status=404))
    assert asyncio.run(missing.execute(CompleteTask("mom"))) == CommandResult(
        success=False, message="Task not found"
    )

    broken = _backend(Recorder(status=500))
    assert asyncio.run(broken.execute(SetTimer(duration_s=60))) == CommandResult(
        success=False, message="Failed to set timer"
    )


def test_backend_without_token_fails_without_request():
    recorder = Recorder()
    executor = _backend(recorder, token=None)

    result = asyncio.run(executor.execute(CreateTask("call mom")))

    assert result == CommandResult(success=False, message="Not authenticated")
    assert recorder.requests == []


def test_backend_network_error_is_failed_result():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    executor = _backend(handler)
    result = asyncio.run(executor.execute(AddListItem(item="milk", list_name="Shopping")))
    assert result == CommandResult(success=False, message="Failed to add to list")
