"""User records: lookup by id, email and name, plus upsert helpers."""

from __future__ import annotations

import logging

import aiosqlite

from taskmanager.store.database import Database

logger = logging.getLogger(__name__)

EMAIL_DOMAIN = "taskmanager.com"


class UserNotFoundError(LookupError):
    """Raised when a mutation targets a user id that does not exist."""


def default_email(first_name: str, last_name: str) -> str:
    """Email used for users created through the tool adapter."""
    return f"{first_name.lower()}.{last_name.lower()}@{EMAIL_DOMAIN}"


async def _fetchone(conn: aiosqlite.Connection, sql: str, params: tuple) -> dict | None:
    cursor = await conn.execute(sql, params)
    row = await cursor.fetchone()
    if row is None:
        return None
    keys = [desc[0] for desc in cursor.description]
    return dict(zip(keys, row))


class UserStore:
    """CRUD interface for the ``users`` table.

    Users are keyed by ``email`` (unique).  The ``(first_name, last_name)``
    pair is unique as well, which is what lets :meth:`get_or_create` hand
    out exactly one user per name.
    """

    PREFIX = "USR"

    def __init__(self, db: Database) -> None:
        self._db = db

    async def register_prefix(self) -> None:
        await self._db.register_prefix(self.PREFIX)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_by_id(self, user_id: str) -> dict | None:
        return await self._db.execute_fetchone(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        )

    async def get_by_email(self, email: str) -> dict | None:
        return await self._db.execute_fetchone(
            "SELECT * FROM users WHERE email = ?", (email,)
        )

    async def get_by_name(self, first_name: str, last_name: str) -> dict | None:
        """Return the user with exactly this first and last name, or None."""
        return await self._db.execute_fetchone(
            "SELECT * FROM users WHERE first_name = ? AND last_name = ?",
            (first_name, last_name),
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def _upsert_by_email(
        self,
        conn: aiosqlite.Connection,
        email: str,
        first_name: str | None,
        last_name: str | None,
        image_url: str | None,
    ) -> str:
        existing = await _fetchone(conn, "SELECT id FROM users WHERE email = ?", (email,))
        if existing is not None:
            await conn.execute(
                "UPDATE users SET first_name = ?, last_name = ?, image_url = ? WHERE id = ?",
                (first_name, last_name, image_url, existing["id"]),
            )
            return existing["id"]

        user_id = await self._db.generate_id(self.PREFIX, conn=conn)
        await conn.execute(
            "INSERT INTO users (id, email, first_name, last_name, image_url) "
            "VALUES (?, ?, ?, ?, ?)",
            (user_id, email, first_name, last_name, image_url),
        )
        logger.info("Created user %s <%s>", user_id, email)
        return user_id

    async def create_or_update(
        self,
        email: str,
        first_name: str | None = None,
        last_name: str | None = None,
        image_url: str | None = None,
    ) -> str:
        """Insert a user, or overwrite name and avatar URL of the one with *email*.

        Returns the user id in both cases.
        """
        async with self._db.transaction() as conn:
            return await self._upsert_by_email(conn, email, first_name, last_name, image_url)

    async def update_profile_image(self, user_id: str, image_storage_id: str) -> None:
        count = await self._db.execute(
            "UPDATE users SET image_storage_id = ? WHERE id = ?",
            (image_storage_id, user_id),
        )
        if count == 0:
            raise UserNotFoundError(f"User {user_id} not found")

    async def get_or_create(self, first_name: str, last_name: str) -> dict:
        """Return the user named *first_name* *last_name*, creating it if needed.

        Lookup and insert run in one transaction, so concurrent first-time
        callers with the same name end up with the same record.  When the
        synthesised email already belongs to a differently-spelled name
        (``Jane``/``JANE``), that record is renamed and returned.
        """
        async with self._db.transaction() as conn:
            user = await _fetchone(
                conn,
                "SELECT * FROM users WHERE first_name = ? AND last_name = ?",
                (first_name, last_name),
            )
            if user is not None:
                return user
            user_id = await self._upsert_by_email(
                conn, default_email(first_name, last_name), first_name, last_name, None
            )
            return await _fetchone(conn, "SELECT * FROM users WHERE id = ?", (user_id,))
