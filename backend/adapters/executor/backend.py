"""Command executor backed by the app backend's REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx

from adapters.executor.base import CommandExecutor, timer_summary
from errors import CommandExecutionFailure
from intents.commands import Priority
from spec import HTTP_CONNECT_TIMEOUT_S, HTTP_REQUEST_TIMEOUT_S


class BackendCommandExecutor(CommandExecutor):
    """
    One POST per command, bearer-authenticated.

    Endpoints (relative to base_url):
        POST /tasks                 {"title", "dueDate", "priority"}
        POST /tasks/complete        {"reference"}
        POST /tasks/delete          {"reference"}
        POST /timers                {"durationSeconds", "label"}
        POST /lists/{name}/items    {"item"}

    A 404 on complete / delete means no task matched the reference.
    """

    def __init__(
        self,
        *,
        base_url: str,
        auth_token: str | None,
        session_id: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(session_id=session_id)
        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._client = client

    async def create_task(
        self, title: str, due_date: datetime | None, priority: Priority
    ) -> str:
        await self._post(
            "/tasks",
            {
                "title": title,
                "dueDate": due_date.isoformat() if due_date else None,
                "priority": priority.value,
            },
            failure="Failed to create task",
        )
        self.last_result = f"Created: {title}"
        return "Task created"

    async def complete_task(self, reference: str) -> str:
        await self._post(
            "/tasks/complete",
            {"reference": reference},
            failure="Failed to complete task",
        )
        self.last_result = "Completed task"
        return "Task completed"

    async def delete_task(self, reference: str) -> str:
        await self._post(
            "/tasks/delete",
            {"reference": reference},
            failure="Failed to delete task",
        )
        self.last_result = "Deleted task"
        return "Task deleted"

    async def set_timer(self, duration_s: int, label: str | None) -> str:
        await self._post(
            "/timers",
            {"durationSeconds": duration_s, "label": label},
            failure="Failed to set timer",
        )
        self.last_result = timer_summary(duration_s, label)
        return "Timer set"

    async def add_list_item(self, item: str, list_name: str) -> str:
        await self._post(
            f"/lists/{list_name}/items",
            {"item": item},
            failure="Failed to add to list",
        )
        self.last_result = f"Added {item} to {list_name} list"
        return "Added to list"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _post(self, path: str, body: dict[str, Any], *, failure: str) -> None:
        if not self._auth_token:
            raise CommandExecutionFailure("Not authenticated")

        timeout = httpx.Timeout(HTTP_REQUEST_TIMEOUT_S, connect=HTTP_CONNECT_TIMEOUT_S)
        headers = {"Authorization": f"Bearer {self._auth_token}"}
        url = f"{self._base_url}{path}"

        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, headers=headers, timeout=timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=body, headers=headers, timeout=timeout)
        except httpx.HTTPError as exc:
            raise CommandExecutionFailure(failure) from exc

        if response.status_code == 404 and path.startswith("/tasks/"):
            raise CommandExecutionFailure("Task not found")
        if response.is_error:
            raise CommandExecutionFailure(failure)
