"""Task records: per-user queries, status/due-date filters, and CRUD."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from taskmanager.store.database import Database, now_ms
from taskmanager.store.users import UserNotFoundError

logger = logging.getLogger(__name__)

STATUSES = ("todo", "in-progress", "done")
DEFAULT_STATUS = "todo"

# Columns a caller may patch; timestamps and ownership are managed here.
_PATCHABLE = ("title", "description", "status", "due_date")


class TaskNotFoundError(LookupError):
    """Raised when an update or delete targets a task id that does not exist."""


def _check_title(title: str) -> None:
    if not title or not title.strip():
        raise ValueError("Task title must not be empty")


def _check_status(status: str) -> None:
    if status not in STATUSES:
        raise ValueError(f"Invalid status {status!r}; expected one of {', '.join(STATUSES)}")


class TaskStore:
    """CRUD interface for the ``tasks`` table.

    Parameters
    ----------
    db:
        An initialised :class:`Database` instance.
    """

    PREFIX = "TSK"

    def __init__(self, db: Database) -> None:
        self._db = db

    async def register_prefix(self) -> None:
        await self._db.register_prefix(self.PREFIX)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, task_id: str) -> dict | None:
        """Return a single task by ID, or None."""
        return await self._db.execute_fetchone(
            "SELECT * FROM tasks WHERE id = ?", (task_id,)
        )

    async def get_by_user(self, user_id: str) -> list[dict]:
        """Return every task owned by *user_id*, newest first.

        Ordering follows insertion order (``rowid``), not timestamps, so two
        tasks created in the same millisecond still come back in a stable order.
        """
        return await self._db.execute_fetchall(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY rowid DESC",
            (user_id,),
        )

    async def get_by_user_and_status(self, user_id: str, status: str) -> list[dict]:
        _check_status(status)
        return await self._db.execute_fetchall(
            "SELECT * FROM tasks WHERE user_id = ? AND status = ? ORDER BY rowid DESC",
            (user_id, status),
        )

    async def get_tasks_by_status(self, user_id: str) -> dict[str, list[dict]]:
        """Group a user's tasks into ``todo`` / ``inProgress`` / ``done`` buckets."""
        tasks = await self.get_by_user(user_id)
        return {
            "todo": [t for t in tasks if t["status"] == "todo"],
            "inProgress": [t for t in tasks if t["status"] == "in-progress"],
            "done": [t for t in tasks if t["status"] == "done"],
        }

    async def get_tasks_due_between(self, user_id: str, start: int, end: int) -> list[dict]:
        """Tasks of *user_id* whose due date falls in ``[start, end)`` (epoch ms)."""
        return await self._db.execute_fetchall(
            "SELECT * FROM tasks WHERE user_id = ? AND due_date >= ? AND due_date < ? "
            "ORDER BY due_date",
            (user_id, start, end),
        )

    async def get_tasks_due_today(self, user_id: str, now: datetime | None = None) -> list[dict]:
        """Tasks due during the current local calendar day."""
        now = now or datetime.now()
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        return await self.get_tasks_due_between(
            user_id, int(start.timestamp() * 1000), int(end.timestamp() * 1000)
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        user_id: str,
        title: str,
        description: str | None = None,
        status: str = DEFAULT_STATUS,
        due_date: int | None = None,
    ) -> dict:
        """Create a task for an existing user and return the stored row."""
        _check_title(title)
        _check_status(status)
        owner = await self._db.execute_fetchone(
            "SELECT id FROM users WHERE id = ?", (user_id,)
        )
        if owner is None:
            raise UserNotFoundError(f"User {user_id} not found")

        now = now_ms()
        async with self._db.transaction() as conn:
            task_id = await self._db.generate_id(self.PREFIX, conn=conn)
            await conn.execute(
                "INSERT INTO tasks "
                "(id, user_id, title, description, status, due_date, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (task_id, user_id, title, description, status, due_date, now, now),
            )
        logger.info("Created task %s for user %s", task_id, user_id)
        return {
            "id": task_id,
            "user_id": user_id,
            "title": title,
            "description": description,
            "status": status,
            "due_date": due_date,
            "created_at": now,
            "updated_at": now,
        }

    async def update(self, task_id: str, changes: dict) -> None:
        """Patch the columns present in *changes*; everything else is left alone.

        ``updated_at`` is bumped on every call and always moves forward, even
        when two updates land in the same millisecond.
        """
        unknown = set(changes) - set(_PATCHABLE)
        if unknown:
            raise ValueError(f"Cannot update task fields: {', '.join(sorted(unknown))}")
        if "title" in changes:
            _check_title(changes["title"])
        if "status" in changes:
            _check_status(changes["status"])

        columns = [c for c in _PATCHABLE if c in changes]
        assignments = "".join(f"{c} = ?, " for c in columns)
        params = tuple(changes[c] for c in columns) + (now_ms(), task_id)
        count = await self._db.execute(
            f"UPDATE tasks SET {assignments}updated_at = MAX(?, updated_at + 1) WHERE id = ?",
            params,
        )
        if count == 0:
            raise TaskNotFoundError(f"Task {task_id} not found")

    async def remove(self, task_id: str) -> dict:
        count = await self._db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        if count == 0:
            raise TaskNotFoundError(f"Task {task_id} not found")
        logger.info("Deleted task %s", task_id)
        return {"success": True}
