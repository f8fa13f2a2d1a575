"""
Task handle registry.

Responsibilities:
- Own at most one live asyncio task per TaskKind
- Supersede (cancel) the previous handle of a kind when a new one starts
- Cooperative, idempotent cancellation
- Report task results back through the event sink

Non-responsibilities:
- NO state machine decisions
- NO run_id generation
- NO knowledge of reducer transitions

A task unregisters itself BEFORE reporting its result, so the handler
processing that result can never cancel the task that delivered it.

This module is infrastructure only.
"""

from __future__ import annotations

import asyncio
from asyncio import Task
from dataclasses import dataclass
from typing import Awaitable, Callable

from orchestrator.enums.task_kind import TaskKind
from orchestrator.events import Event


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

EventSink = Callable[[Event], Awaitable[None]]
Work = Callable[[], Awaitable["Event | None"]]


@dataclass(frozen=True)
class _Handle:
    run_id: int
    task: Task[None]


# ---------------------------------------------------------------------
# Handle Registry
# ---------------------------------------------------------------------

class HandleRegistry:
    """
    Runtime registry of versioned concurrent work.

    Lifecycle:
    1. Reducer emits a start effect for (kind, run_id)
    2. Runtime calls spawn(kind, run_id, work)
    3a. work returns an event -> handle released, event emitted
    3b. Reducer emits CancelTask -> runtime calls cancel(kind, run_id)

    This class never decides what happens next.
    """

    def __init__(self, *, emit_event: EventSink) -> None:
        self._emit_event = emit_event
        self._handles: dict[TaskKind, _Handle] = {}
        # Released tasks still delivering their result event.
        self._reporting: set[Task[None]] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def spawn(self, *, kind: TaskKind, run_id: int, work: Work) -> None:
        """
        Start work as the live handle for kind.

        Any previous handle of the same kind is cancelled first.
        """
        self._cancel_handle(kind)
        task = asyncio.create_task(self._run(kind=kind, run_id=run_id, work=work))
        self._handles[kind] = _Handle(run_id=run_id, task=task)

    def cancel(self, *, kind: TaskKind, run_id: int) -> bool:
        """
        Cancel the handle for (kind, run_id).

        Idempotent: returns False if that run already finished, was
        superseded, or was never started.
        """
        handle = self._handles.get(kind)
        if handle is None or handle.run_id != run_id:
            return False
        return self._cancel_handle(kind)

    def active_run(self, kind: TaskKind) -> int | None:
        handle = self._handles.get(kind)
        return handle.run_id if handle is not None else None

    def is_live(self, kind: TaskKind) -> bool:
        handle = self._handles.get(kind)
        return handle is not None and not handle.task.done()

    def live_tasks(self) -> list[Task[None]]:
        live = [h.task for h in self._handles.values() if not h.task.done()]
        return live + [t for t in self._reporting if not t.done()]

    async def clear_all(self) -> None:
        """
        Cancel all live handles and wait for them to unwind.
        Used on session teardown.
        """
        tasks = [h.task for h in self._handles.values()]
        for kind in list(self._handles):
            self._cancel_handle(kind)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _cancel_handle(self, kind: TaskKind) -> bool:
        handle = self._handles.pop(kind, None)
        if handle is None:
            return False
        if handle.task.done():
            return False
        handle.task.cancel()
        return True

    def _release(self, kind: TaskKind, run_id: int) -> None:
        handle = self._handles.get(kind)
        if handle is not None and handle.run_id == run_id:
            del self._handles[kind]

    async def _run(self, *, kind: TaskKind, run_id: int, work: Work) -> None:
        try:
            event = await work()
        except asyncio.CancelledError:
            # Cancellation is expected; the reducer already stopped
            # listening for this run.
            return
        finally:
            self._release(kind, run_id)

        if event is None:
            return

        current = asyncio.current_task()
        assert current is not None, "handle work must run inside a task"
        self._reporting.add(current)
        try:
            await self._emit_event(event)
        finally:
            self._reporting.discard(current)
