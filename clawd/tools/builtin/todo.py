"""TodoWrite / TodoRead: a per-session task list the model keeps for itself.

Both tools share one TodoList. The list lives in memory only and is
owned by whoever builds the registry, so two sessions never share tasks.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..base import ToolResult

logger = logging.getLogger(__name__)

STATUSES = ("pending", "in_progress", "completed")

_MARKERS = {"pending": "[ ]", "in_progress": "[~]", "completed": "[x]"}


@dataclass
class TodoItem:
    id: str
    subject: str
    status: str = "pending"

    def render(self) -> str:
        return f"{_MARKERS[self.status]} {self.id}. {self.subject}"


class TodoList:
    """Ordered tasks with sequential string ids starting at "1"."""

    def __init__(self) -> None:
        self._items: list[TodoItem] = []

    def __len__(self) -> int:
        return len(self._items)

    def add(self, subject: str, status: str = "pending") -> TodoItem:
        item = TodoItem(id=str(len(self._items) + 1), subject=subject, status=status)
        self._items.append(item)
        return item

    def get(self, task_id: str) -> TodoItem | None:
        for item in self._items:
            if item.id == task_id:
                return item
        return None

    def items(self, status: str | None = None) -> list[TodoItem]:
        if status is None:
            return list(self._items)
        return [item for item in self._items if item.status == status]

    def clear(self) -> None:
        self._items.clear()


_STATUS_SCHEMA = {
    "type": "string",
    "enum": list(STATUSES),
}


class TodoWriteTool:
    name = "TodoWrite"
    description = (
        "Create or update tasks in a task list to track progress during a session. "
        "Pass id to change the status or subject of an existing task."
    )
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "subject": {
                "type": "string",
                "description": "A short description of the task to be completed",
            },
            "status": {
                **_STATUS_SCHEMA,
                "description": "The status of the task",
                "default": "pending",
            },
            "id": {
                "type": "string",
                "description": "Id of an existing task to update (omit to create a task)",
            },
        },
        "required": ["subject"],
    }

    def __init__(self, todos: TodoList | None = None) -> None:
        self.todos = todos if todos is not None else TodoList()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        subject = str(input.get("subject") or "").strip()
        status = str(input.get("status") or "pending")
        if status not in STATUSES:
            return ToolResult.fail(f"Unknown status {status!r}; expected one of {', '.join(STATUSES)}")

        task_id = input.get("id")
        if task_id:
            item = self.todos.get(str(task_id))
            if item is None:
                return ToolResult.fail(f"Task {task_id} not found")
            if subject:
                item.subject = subject
            item.status = status
            logger.debug("Task %s -> %s", item.id, status)
            return ToolResult.ok(
                f'Updated task {item.id}: "{item.subject}" with status "{status}"',
                id=item.id, status=status,
            )

        if not subject:
            return ToolResult.fail("Subject must be a non-empty string")
        item = self.todos.add(subject, status)
        return ToolResult.ok(
            f'Created task {item.id}: "{subject}" with status "{status}"',
            id=item.id, status=status,
        )


class TodoReadTool:
    name = "TodoRead"
    description = "Read the current task list. Use this to see all tasks and their status."
    input_schema: dict[str, Any] = {
        "type": "object",
        "properties": {
            "status": {
                **_STATUS_SCHEMA,
                "description": "Filter tasks by status (optional)",
            },
        },
    }

    def __init__(self, todos: TodoList | None = None) -> None:
        self.todos = todos if todos is not None else TodoList()

    async def execute(self, input: dict[str, Any]) -> ToolResult:
        status = input.get("status") or None
        if status is not None and status not in STATUSES:
            return ToolResult.fail(f"Unknown status {status!r}; expected one of {', '.join(STATUSES)}")

        items = self.todos.items(status)
        if not items:
            if status:
                return ToolResult.ok(f'No tasks with status "{status}"', count=0)
            return ToolResult.ok("No tasks in the list. Use TodoWrite to create tasks.", count=0)
        lines = "\n".join(item.render() for item in items)
        return ToolResult.ok(f"Task list:\n{lines}", count=len(items))
