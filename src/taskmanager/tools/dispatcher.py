"""Tool dispatch: maps named tool calls onto the stores and builds result envelopes.

Every tool returns a :class:`ToolResult`, which serialises to the envelope
shared by the MCP server and the browser's JSON endpoints::

    {
        "content": [{"type": "text", "text": "..."}],
        "structuredContent": {...},   # optional
        "isError": true,              # only on failure
        "metadata": {...},            # widget routing, optional
    }

Missing input is never an error: the caller gets guidance text and, where
one exists, the widget that collects the missing fields.  ``isError`` is
reserved for a failed store operation or a task id that does not exist.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from taskmanager.event_bus import (
    TASK_CREATED,
    TASK_DELETED,
    TASK_UPDATED,
    USER_RESOLVED,
    EventBus,
)
from taskmanager.store.tasks import DEFAULT_STATUS, TaskStore
from taskmanager.store.users import UserStore
from taskmanager.tools.widgets import HOME, TASK_FORM, TASK_LIST, USER_INFO, Widget, widget_meta

logger = logging.getLogger(__name__)

TOOL_NAMES = (
    "show_task_manager",
    "create_task",
    "list_tasks",
    "get_task",
    "update_task",
    "delete_task",
)

# Last name used when a single-field full name has nothing after the first space.
FALLBACK_LAST_NAME = "User"


# ---------------------------------------------------------------------------
# Result envelope
# ---------------------------------------------------------------------------


@dataclass
class ToolResult:
    text: str
    structured: dict[str, Any] | None = None
    is_error: bool = False
    widget: Widget | None = None

    @property
    def metadata(self) -> dict | None:
        return widget_meta(self.widget) if self.widget is not None else None

    def to_envelope(self) -> dict[str, Any]:
        envelope: dict[str, Any] = {"content": [{"type": "text", "text": self.text}]}
        if self.structured is not None:
            envelope["structuredContent"] = self.structured
        if self.is_error:
            envelope["isError"] = True
        if self.widget is not None:
            envelope["metadata"] = self.metadata
        return envelope


def _error(action: str, exc: BaseException | str) -> ToolResult:
    return ToolResult(text=f"Error {action}: {exc}", is_error=True)


# ---------------------------------------------------------------------------
# Actor and lookups
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Actor:
    """The person a tool call acts for, identified by first and last name."""

    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_args(
        cls, first_name: str | None, last_name: str | None, split_full_name: bool = False
    ) -> "Actor":
        """Normalise raw tool arguments into an actor.

        With *split_full_name*, a first name such as ``"Jane Doe"`` given
        without a last name is split on its first space.
        """
        first = (first_name or "").strip()
        last = (last_name or "").strip()
        if split_full_name and first and not last and " " in first:
            first, _, rest = first.partition(" ")
            last = rest.strip() or FALLBACK_LAST_NAME
        return cls(first, last)

    @property
    def complete(self) -> bool:
        return bool(self.first_name and self.last_name)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def as_dict(self) -> dict[str, str]:
        return {"firstName": self.first_name, "lastName": self.last_name}


class LookupStatus(enum.Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class Lookup:
    """Outcome of fetching one record: found, absent, or the store failed."""

    status: LookupStatus
    record: dict | None = None
    error: Exception | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


class CreateTaskState(enum.Enum):
    NEED_NAME = "need_name"
    NEED_DETAILS = "need_details"
    COMPLETE = "complete"


def create_task_state(actor: Actor, title: str | None, description: str | None) -> CreateTaskState:
    """Derive where a ``create_task`` call stands purely from its arguments."""
    if not actor.complete:
        return CreateTaskState.NEED_NAME
    if title and description:
        return CreateTaskState.COMPLETE
    return CreateTaskState.NEED_DETAILS


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def parse_due_date(value: str) -> int:
    """Convert an ISO date or datetime string to epoch milliseconds.

    Dates without a timezone are taken as UTC, so ``"2025-03-01"`` is
    midnight UTC on that day.  Raises ``ValueError`` for anything else.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def task_payload(row: dict | None) -> dict | None:
    """Wire (camelCase) form of a task row."""
    if row is None:
        return None
    return {
        "id": row["id"],
        "userId": row["user_id"],
        "title": row["title"],
        "description": row["description"],
        "status": row["status"],
        "dueDate": row["due_date"],
        "createdAt": row["created_at"],
        "updatedAt": row["updated_at"],
    }


def user_payload(row: dict | None) -> dict | None:
    if row is None:
        return None
    return {
        "id": row["id"],
        "email": row["email"],
        "firstName": row["first_name"],
        "lastName": row["last_name"],
        "imageUrl": row["image_url"],
        "imageStorageId": row["image_storage_id"],
    }


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


@dataclass
class TaskToolDispatcher:
    """Implements the six task tools on top of :class:`UserStore` and :class:`TaskStore`.

    Each call is independent: no state is carried between invocations, and
    each tool performs at most a few sequential store calls.
    """

    users: UserStore
    tasks: TaskStore
    event_bus: EventBus | None = None
    _handlers: dict = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._handlers = {name: getattr(self, name) for name in TOOL_NAMES}

    async def call(self, name: str, arguments: dict[str, Any] | None = None) -> ToolResult:
        """Invoke a tool by name with camelCase arguments as sent by clients."""
        handler = self._handlers.get(name)
        if handler is None:
            return _error("calling tool", f"unknown tool {name!r}")
        kwargs = {_ARGUMENT_NAMES.get(k, k): v for k, v in (arguments or {}).items()}
        try:
            return await handler(**kwargs)
        except TypeError as exc:
            return _error(f"calling {name}", exc)

    async def _emit(self, event_type: str, data: dict[str, Any]) -> None:
        if self.event_bus is not None:
            await self.event_bus.emit(event_type, data)

    async def lookup_task(self, task_id: str) -> Lookup:
        try:
            row = await self.tasks.get_by_id(task_id)
        except Exception as exc:
            logger.exception("Task lookup failed for %s", task_id)
            return Lookup(LookupStatus.FAILED, error=exc)
        if row is None:
            return Lookup(LookupStatus.NOT_FOUND)
        return Lookup(LookupStatus.FOUND, record=row)

    async def lookup_user(self, actor: Actor) -> Lookup:
        try:
            row = await self.users.get_by_name(actor.first_name, actor.last_name)
        except Exception as exc:
            logger.exception("User lookup failed for %s", actor.display_name)
            return Lookup(LookupStatus.FAILED, error=exc)
        if row is None:
            return Lookup(LookupStatus.NOT_FOUND)
        return Lookup(LookupStatus.FOUND, record=row)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    async def show_task_manager(self) -> ToolResult:
        return ToolResult(
            text="Task Manager is ready! Use the interface to manage your tasks.",
            structured={"message": "Task Manager loaded", "timestamp": _utc_timestamp()},
            widget=HOME,
        )

    async def create_task(
        self,
        first_name: str | None = None,
        last_name: str | None = None,
        title: str | None = None,
        description: str | None = None,
        status: str | None = None,
        due_date: str | None = None,
    ) -> ToolResult:
        actor = Actor.from_args(first_name, last_name, split_full_name=True)
        state = create_task_state(actor, title, description)
        logger.info("create_task for %r: %s", actor.display_name.strip(), state.value)

        if state is CreateTaskState.NEED_NAME:
            return ToolResult(
                text="Please enter your first and last name in the form below.",
                structured={"message": "User info collection"},
                widget=USER_INFO,
            )

        try:
            user = await self.users.get_or_create(actor.first_name, actor.last_name)
        except Exception as exc:
            logger.exception("Could not resolve user %s", actor.display_name)
            return _error("resolving user", exc)
        await self._emit(USER_RESOLVED, {"user_id": user["id"], **actor.as_dict()})

        if state is CreateTaskState.NEED_DETAILS:
            return ToolResult(
                text=(
                    f"Task creation form is ready for {actor.display_name}. "
                    "Fill out the form below to create a new task."
                ),
                structured={
                    **actor.as_dict(),
                    "title": title or "",
                    "description": description or "",
                    "status": status or DEFAULT_STATUS,
                    "dueDate": due_date or "",
                    "message": "Task form ready",
                },
                widget=TASK_FORM,
            )

        try:
            task = await self.tasks.create(
                user_id=user["id"],
                title=title,
                description=description,
                status=status or DEFAULT_STATUS,
                due_date=parse_due_date(due_date) if due_date else None,
            )
        except Exception as exc:
            logger.exception("Could not create task for %s", user["id"])
            return _error("creating task", exc)
        await self._emit(TASK_CREATED, {"task_id": task["id"], "user_id": user["id"]})

        return ToolResult(
            text=f'Task "{title}" created successfully!',
            structured={
                "taskId": task["id"],
                **actor.as_dict(),
                "title": title,
                "description": description,
                "message": "Task created successfully",
            },
            widget=TASK_FORM,
        )

    async def list_tasks(
        self, first_name: str | None = None, last_name: str | None = None
    ) -> ToolResult:
        actor = Actor.from_args(first_name, last_name)

        def _empty(text: str, is_error: bool = False) -> ToolResult:
            return ToolResult(
                text=text,
                structured={**actor.as_dict(), "tasks": [], "count": 0},
                is_error=is_error,
                widget=TASK_LIST,
            )

        if not actor.complete:
            return _empty("Please enter your first and last name to view your tasks.")

        lookup = await self.lookup_user(actor)
        if lookup.status is LookupStatus.FAILED:
            return _empty(f"Error loading tasks: {lookup.error}", is_error=True)
        if lookup.status is LookupStatus.NOT_FOUND:
            return _empty(
                f"No user found for {actor.display_name}. "
                "Please check your name or create a new user."
            )

        try:
            rows = await self.tasks.get_by_user(lookup.record["id"])
        except Exception as exc:
            logger.exception("Could not load tasks for %s", lookup.record["id"])
            return _empty(f"Error loading tasks: {exc}", is_error=True)

        if not rows:
            return _empty(f"No tasks found for {actor.display_name}. You can create a new task!")
        return ToolResult(
            text=f"Found {len(rows)} task(s) for {actor.display_name}",
            structured={
                **actor.as_dict(),
                "tasks": [task_payload(r) for r in rows],
                "count": len(rows),
            },
            widget=TASK_LIST,
        )

    async def get_task(self, task_id: str) -> ToolResult:
        lookup = await self.lookup_task(task_id)
        if lookup.status is LookupStatus.FAILED:
            return _error("getting task", lookup.error)
        if lookup.status is LookupStatus.NOT_FOUND:
            return ToolResult(text=f"Task with ID {task_id} not found", is_error=True)
        return ToolResult(
            text=f"Task: {lookup.record['title']}",
            structured=task_payload(lookup.record),
        )

    async def update_task(
        self,
        task_id: str,
        title: str | None = None,
        description: str | None = None,
        status: str | None = None,
        due_date: str | None = None,
    ) -> ToolResult:
        try:
            changes: dict[str, Any] = {}
            if title:
                changes["title"] = title
            if description is not None:
                # An empty description clears the field.
                changes["description"] = description or None
            if status:
                changes["status"] = status
            if due_date:
                changes["due_date"] = parse_due_date(due_date)
            await self.tasks.update(task_id, changes)
        except Exception as exc:
            logger.warning("update_task %s failed: %s", task_id, exc)
            return _error("updating task", exc)

        lookup = await self.lookup_task(task_id)
        if lookup.status is LookupStatus.FAILED:
            return _error("updating task", lookup.error)
        updated = lookup.record
        await self._emit(
            TASK_UPDATED,
            {"task_id": task_id, "user_id": updated["user_id"] if updated else None},
        )
        name = updated["title"] if updated else task_id
        return ToolResult(
            text=f'Task "{name}" updated successfully!',
            structured={
                "taskId": task_id,
                "task": task_payload(updated),
                "message": "Task updated successfully",
            },
        )

    async def delete_task(self, task_id: str) -> ToolResult:
        lookup = await self.lookup_task(task_id)
        if lookup.status is LookupStatus.FAILED:
            return _error("deleting task", lookup.error)
        if lookup.status is LookupStatus.NOT_FOUND:
            return _error("deleting task", f"Task {task_id} not found")

        try:
            await self.tasks.remove(task_id)
        except Exception as exc:
            logger.warning("delete_task %s failed: %s", task_id, exc)
            return _error("deleting task", exc)
        snapshot = lookup.record
        await self._emit(TASK_DELETED, {"task_id": task_id, "user_id": snapshot["user_id"]})

        return ToolResult(
            text=f'Task "{snapshot["title"]}" has been deleted successfully.',
            structured={
                "taskId": task_id,
                "deletedTask": task_payload(snapshot),
                "message": "Task deleted successfully",
            },
        )


# camelCase wire argument -> Python keyword.
_ARGUMENT_NAMES = {
    "firstName": "first_name",
    "lastName": "last_name",
    "taskId": "task_id",
    "dueDate": "due_date",
}
