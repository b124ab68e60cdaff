"""SQLite-backed data store for users and tasks."""

from __future__ import annotations

from dataclasses import dataclass

from taskmanager.store.database import Database
from taskmanager.store.tasks import TaskStore
from taskmanager.store.users import UserStore


@dataclass
class Stores:
    """The opened database plus the table-level stores built on it."""

    db: Database
    users: UserStore
    tasks: TaskStore

    async def close(self) -> None:
        await self.db.close()


async def open_stores(db_path: str) -> Stores:
    """Open *db_path*, create the schema, and register ID prefixes."""
    db = Database(db_path)
    await db.initialize()
    users = UserStore(db)
    tasks = TaskStore(db)
    await users.register_prefix()
    await tasks.register_prefix()
    return Stores(db=db, users=users, tasks=tasks)
