"""SQLite storage for identities, conversation exchanges and owner messages."""

import asyncio
import sqlite3
import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from ..errors import StorageError
from .models import ExchangeRecord, IdentityEntry, OwnerMessage, Role

T = TypeVar("T")


class SQLiteStore:
    """Persistent storage backed by a local SQLite database.

    Blocking sqlite calls run in a worker thread so the event loop is never
    held up by disk I/O. A single connection is shared and guarded by a lock.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create the tables if they don't exist."""
        conn = self._get_connection()
        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS identities (
                    key                TEXT PRIMARY KEY,
                    display_name       TEXT NOT NULL,
                    role               TEXT NOT NULL,
                    personality_notes  TEXT,
                    favorite_drink     TEXT,
                    created_at         TEXT NOT NULL,
                    last_seen          TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS exchanges (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    identity_key  TEXT NOT NULL,
                    display_name  TEXT NOT NULL,
                    role_label    TEXT NOT NULL,
                    message       TEXT NOT NULL,
                    reply         TEXT NOT NULL,
                    session_id    TEXT NOT NULL,
                    timestamp     TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_exchanges_session "
                "ON exchanges(identity_key, session_id, timestamp)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_exchanges_timestamp ON exchanges(timestamp)"
            )
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id            TEXT PRIMARY KEY,
                    from_key      TEXT NOT NULL,
                    from_name     TEXT NOT NULL,
                    to_key        TEXT NOT NULL,
                    content       TEXT NOT NULL,
                    delivered     INTEGER NOT NULL DEFAULT 0,
                    created_at    TEXT NOT NULL,
                    delivered_at  TEXT
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_pending ON messages(to_key, delivered)"
            )
            conn.commit()

    async def _run(self, func: Callable[[sqlite3.Connection], T]) -> T:
        """Run a database function in a worker thread, wrapping sqlite errors."""

        def call() -> T:
            conn = self._get_connection()
            with self._lock:
                try:
                    return func(conn)
                except sqlite3.Error as e:
                    conn.rollback()
                    raise StorageError(str(e)) from e
                except (ValueError, KeyError) as e:
                    # Row exists but does not convert (unknown role, bad timestamp)
                    raise StorageError(f"unreadable row: {e}") from e

        return await asyncio.to_thread(call)

    async def find_identity(self, key: str) -> IdentityEntry | None:
        """Get an identity by key, or None if unknown."""

        def query(conn: sqlite3.Connection) -> IdentityEntry | None:
            row = conn.execute("SELECT * FROM identities WHERE key = ?", (key,)).fetchone()
            return self._row_to_identity(row) if row else None

        return await self._run(query)

    async def create_identity(self, entry: IdentityEntry) -> None:
        """Insert a new identity.

        Raises:
            StorageError: If the key already exists or the write fails.
        """

        def insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                """
                INSERT INTO identities
                    (key, display_name, role, personality_notes, favorite_drink,
                     created_at, last_seen)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.key,
                    entry.display_name,
                    entry.role.value,
                    entry.personality_notes,
                    entry.favorite_drink,
                    entry.created_at.isoformat(),
                    entry.last_seen.isoformat(),
                ),
            )
            conn.commit()

        await self._run(insert)

    async def update_identity(self, entry: IdentityEntry) -> bool:
        """Overwrite the mutable fields of an existing identity.

        Returns:
            True if a row was updated, False if the key is unknown.
        """

        def update(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                """
                UPDATE identities SET
                    display_name = ?,
                    role = ?,
                    personality_notes = ?,
                    favorite_drink = ?,
                    last_seen = ?
                WHERE key = ?
                """,
                (
                    entry.display_name,
                    entry.role.value,
                    entry.personality_notes,
                    entry.favorite_drink,
                    entry.last_seen.isoformat(),
                    entry.key,
                ),
            )
            conn.commit()
            return cursor.rowcount > 0

        return await self._run(update)

    async def delete_identity(self, key: str) -> bool:
        """Delete an identity by key.

        Returns:
            True if an identity was deleted, False otherwise.
        """

        def delete(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM identities WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

        return await self._run(delete)

    async def list_identities(self, role: Role | None = None) -> list[IdentityEntry]:
        """List identities, optionally filtered by role."""

        def query(conn: sqlite3.Connection) -> list[IdentityEntry]:
            if role is None:
                cursor = conn.execute("SELECT * FROM identities ORDER BY created_at")
            else:
                cursor = conn.execute(
                    "SELECT * FROM identities WHERE role = ? ORDER BY created_at",
                    (role.value,),
                )
            return [self._row_to_identity(row) for row in cursor.fetchall()]

        return await self._run(query)

    async def list_exchanges(
        self, identity_key: str, session_id: str, limit: int
    ) -> list[ExchangeRecord]:
        """Get the most recent exchanges for (identity, session), oldest first.

        Args:
            identity_key: The speaker's key.
            session_id: The conversation session.
            limit: Maximum number of exchanges to return.

        Returns:
            Up to `limit` records ordered by timestamp ascending.
        """
        if limit <= 0:
            return []

        def query(conn: sqlite3.Connection) -> list[ExchangeRecord]:
            cursor = conn.execute(
                """
                SELECT * FROM (
                    SELECT * FROM exchanges
                    WHERE identity_key = ? AND session_id = ?
                    ORDER BY timestamp DESC, id DESC
                    LIMIT ?
                ) ORDER BY timestamp ASC, id ASC
                """,
                (identity_key, session_id, limit),
            )
            return [self._row_to_exchange(row) for row in cursor.fetchall()]

        return await self._run(query)

    async def append_exchange(self, record: ExchangeRecord) -> ExchangeRecord:
        """Append an exchange and return it with its assigned id."""

        def insert(conn: sqlite3.Connection) -> ExchangeRecord:
            cursor = conn.execute(
                """
                INSERT INTO exchanges
                    (identity_key, display_name, role_label, message, reply,
                     session_id, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.identity_key,
                    record.display_name,
                    record.role_label,
                    record.message,
                    record.reply,
                    record.session_id,
                    record.timestamp.isoformat(),
                ),
            )
            conn.commit()
            return ExchangeRecord(
                identity_key=record.identity_key,
                display_name=record.display_name,
                role_label=record.role_label,
                message=record.message,
                reply=record.reply,
                session_id=record.session_id,
                timestamp=record.timestamp,
                id=cursor.lastrowid,
            )

        return await self._run(insert)

    async def delete_exchanges_before(self, cutoff: datetime) -> int:
        """Delete exchanges older than cutoff.

        Returns:
            Number of exchanges deleted.
        """

        def delete(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                "DELETE FROM exchanges WHERE timestamp < ?", (cutoff.isoformat(),)
            )
            conn.commit()
            return cursor.rowcount

        return await self._run(delete)

    async def enqueue_message(self, message: OwnerMessage) -> OwnerMessage:
        """Store a new undelivered message."""

        def insert(conn: sqlite3.Connection) -> OwnerMessage:
            conn.execute(
                """
                INSERT INTO messages
                    (id, from_key, from_name, to_key, content, delivered, created_at)
                VALUES (?, ?, ?, ?, ?, 0, ?)
                """,
                (
                    message.id,
                    message.from_key,
                    message.from_name,
                    message.to_key,
                    message.content,
                    message.created_at.isoformat(),
                ),
            )
            conn.commit()
            return message

        return await self._run(insert)

    async def list_pending_messages(self, to_key: str) -> list[OwnerMessage]:
        """Get undelivered messages for a recipient, oldest first."""

        def query(conn: sqlite3.Connection) -> list[OwnerMessage]:
            cursor = conn.execute(
                "SELECT * FROM messages WHERE to_key = ? AND delivered = 0 ORDER BY created_at",
                (to_key,),
            )
            return [self._row_to_message(row) for row in cursor.fetchall()]

        return await self._run(query)

    async def mark_message_delivered(self, message_id: str, delivered_at: datetime) -> bool:
        """Mark a message delivered.

        Returns:
            True if a message was updated, False if the id is unknown.
        """

        def update(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                "UPDATE messages SET delivered = 1, delivered_at = ? WHERE id = ?",
                (delivered_at.isoformat(), message_id),
            )
            conn.commit()
            return cursor.rowcount > 0

        return await self._run(update)

    async def delete_delivered_messages_before(self, cutoff: datetime) -> int:
        """Delete messages delivered before cutoff. Undelivered ones are kept.

        Returns:
            Number of messages deleted.
        """

        def delete(conn: sqlite3.Connection) -> int:
            cursor = conn.execute(
                "DELETE FROM messages WHERE delivered = 1 AND delivered_at < ?",
                (cutoff.isoformat(),),
            )
            conn.commit()
            return cursor.rowcount

        return await self._run(delete)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_identity(self, row: sqlite3.Row) -> IdentityEntry:
        """Convert a database row to an IdentityEntry."""
        return IdentityEntry(
            key=row["key"],
            display_name=row["display_name"],
            role=Role(row["role"]),
            personality_notes=row["personality_notes"],
            favorite_drink=row["favorite_drink"],
            created_at=datetime.fromisoformat(row["created_at"]),
            last_seen=datetime.fromisoformat(row["last_seen"]),
        )

    def _row_to_exchange(self, row: sqlite3.Row) -> ExchangeRecord:
        """Convert a database row to an ExchangeRecord."""
        return ExchangeRecord(
            id=row["id"],
            identity_key=row["identity_key"],
            display_name=row["display_name"],
            role_label=row["role_label"],
            message=row["message"],
            reply=row["reply"],
            session_id=row["session_id"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )

    def _row_to_message(self, row: sqlite3.Row) -> OwnerMessage:
        """Convert a database row to an OwnerMessage."""
        delivered_at = row["delivered_at"]
        return OwnerMessage(
            id=row["id"],
            from_key=row["from_key"],
            from_name=row["from_name"],
            to_key=row["to_key"],
            content=row["content"],
            delivered=bool(row["delivered"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            delivered_at=datetime.fromisoformat(delivered_at) if delivered_at else None,
        )
