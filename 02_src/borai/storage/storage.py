"""SQLite session store implementation."""

import asyncio
import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..logging_config import get_logger
from ..models import AppMode, Attachment, Citation, Message, Session, TraceEvent, User
from .errors import StorageUnavailableError

logger = get_logger(__name__)


class ISessionStore(Protocol):
    """Durable keyed storage for user profiles and chat sessions."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Sessions
    async def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        ...

    async def save_session(self, session: Session) -> None:
        """Full upsert of a session, last write wins."""
        ...

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and its messages."""
        ...

    async def list_sessions(self, owner_id: str) -> list[Session]:
        """Sessions of one owner, most recently updated first."""
        ...

    # Users
    async def save_user(self, user: User) -> None:
        """Save a user profile."""
        ...

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        ...

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        ...

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        ...

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        session_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters, newest first."""
        ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class SessionStore:
    """SQLite session store.

    Every public operation is atomic per key. SQLite failures and use before
    ``init()`` surface as ``StorageUnavailableError``.
    """

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None
        # One connection is shared, so write transactions must not interleave
        self._write_lock = asyncio.Lock()

    async def init(self) -> None:
        """Initialize database and create tables."""
        try:
            self._conn = await aiosqlite.connect(self._db_path)

            schema_path = Path(__file__).parent / "schema.sql"
            with open(schema_path, "r", encoding="utf-8") as f:
                schema_sql = f.read()
            await self._conn.executescript(schema_sql)
            await self._conn.commit()
        except aiosqlite.Error as e:
            raise StorageUnavailableError(f"Cannot open session store: {e}") from e

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _connection(self) -> aiosqlite.Connection:
        if not self._conn:
            raise StorageUnavailableError("Storage not initialized")
        return self._conn

    # Sessions
    async def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        conn = self._connection()
        try:
            cursor = await conn.execute(
                """
                SELECT id, owner_id, title, mode, created_at, updated_at
                FROM sessions
                WHERE id = ?
                """,
                (session_id,),
            )
            row = await cursor.fetchone()
            if not row:
                return None
            return await self._load_session(conn, row)
        except aiosqlite.Error as e:
            raise StorageUnavailableError(f"Cannot read session {session_id}: {e}") from e

    async def save_session(self, session: Session) -> None:
        """Full upsert of a session, last write wins."""
        conn = self._connection()

        # Snapshot before the first await: the session may keep streaming
        session_row = (
            session.id,
            session.owner_id,
            session.title,
            session.mode.value,
            session.created_at.isoformat(),
            session.updated_at.isoformat(),
        )
        message_rows = []
        attachment_rows = []
        for position, message in enumerate(session.messages):
            message_rows.append(
                (
                    session.id,
                    position,
                    message.id,
                    message.role,
                    message.text,
                    json.dumps(
                        [{"title": c.title, "uri": c.uri} for c in message.citations]
                    ),
                    int(message.streaming),
                    int(message.failed),
                    message.created_at.isoformat(),
                )
            )
            for att_position, attachment in enumerate(message.attachments):
                attachment_rows.append(
                    (
                        session.id,
                        message.id,
                        att_position,
                        attachment.digest,
                        attachment.mime_type,
                        attachment.data,
                    )
                )

        async with self._write_lock:
            try:
                await conn.execute(
                    """
                    INSERT OR REPLACE INTO sessions
                    (id, owner_id, title, mode, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    session_row,
                )
                await conn.execute(
                    "DELETE FROM messages WHERE session_id = ?", (session.id,)
                )
                await conn.execute(
                    "DELETE FROM attachments WHERE session_id = ?", (session.id,)
                )
                await conn.executemany(
                    """
                    INSERT INTO messages
                    (session_id, position, id, role, text, citations,
                     streaming, failed, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    message_rows,
                )
                await conn.executemany(
                    """
                    INSERT INTO attachments
                    (session_id, message_id, position, digest, mime_type, data)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    attachment_rows,
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise StorageUnavailableError(
                    f"Cannot save session {session.id}: {e}"
                ) from e

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and its messages."""
        conn = self._connection()
        async with self._write_lock:
            try:
                await conn.execute(
                    "DELETE FROM attachments WHERE session_id = ?", (session_id,)
                )
                await conn.execute(
                    "DELETE FROM messages WHERE session_id = ?", (session_id,)
                )
                await conn.execute("DELETE FROM sessions WHERE id = ?", (session_id,))
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise StorageUnavailableError(
                    f"Cannot delete session {session_id}: {e}"
                ) from e

    async def list_sessions(self, owner_id: str) -> list[Session]:
        """Sessions of one owner, most recently updated first."""
        conn = self._connection()
        try:
            cursor = await conn.execute(
                """
                SELECT id, owner_id, title, mode, created_at, updated_at
                FROM sessions
                WHERE owner_id = ?
                ORDER BY updated_at DESC
                """,
                (owner_id,),
            )
            rows = await cursor.fetchall()
            return [await self._load_session(conn, row) for row in rows]
        except aiosqlite.Error as e:
            raise StorageUnavailableError(
                f"Cannot list sessions for {owner_id}: {e}"
            ) from e

    async def _load_session(self, conn: aiosqlite.Connection, row) -> Session:
        session_id = row[0]

        att_cursor = await conn.execute(
            """
            SELECT message_id, mime_type, data
            FROM attachments
            WHERE session_id = ?
            ORDER BY message_id, position ASC
            """,
            (session_id,),
        )
        attachments: dict[str, list[Attachment]] = {}
        for att in await att_cursor.fetchall():
            attachments.setdefault(att[0], []).append(
                Attachment(data=bytes(att[2]), mime_type=att[1])
            )

        msg_cursor = await conn.execute(
            """
            SELECT id, role, text, citations, streaming, failed, created_at
            FROM messages
            WHERE session_id = ?
            ORDER BY position ASC
            """,
            (session_id,),
        )
        messages = [
            Message(
                id=msg[0],
                role=msg[1],
                text=msg[2],
                citations=[Citation(**c) for c in json.loads(msg[3])],
                attachments=attachments.get(msg[0], []),
                streaming=bool(msg[4]),
                failed=bool(msg[5]),
                created_at=datetime.fromisoformat(msg[6]),
            )
            for msg in await msg_cursor.fetchall()
        ]

        return Session(
            id=session_id,
            owner_id=row[1],
            title=row[2],
            mode=AppMode(row[3]),
            messages=messages,
            created_at=datetime.fromisoformat(row[4]),
            updated_at=datetime.fromisoformat(row[5]),
        )

    async def _rollback(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.rollback()
        except aiosqlite.Error:
            logger.warning("Rollback failed", exc_info=True)

    # Users
    async def save_user(self, user: User) -> None:
        """Save a user profile."""
        conn = self._connection()
        async with self._write_lock:
            try:
                await conn.execute(
                    """
                    INSERT OR REPLACE INTO users
                    (id, display_name, email, credential, photo_ref, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        user.id,
                        user.display_name,
                        user.email,
                        user.credential,
                        user.photo_ref,
                        user.created_at.isoformat(),
                    ),
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise StorageUnavailableError(f"Cannot save user {user.id}: {e}") from e

    async def get_user(self, user_id: str) -> User | None:
        """Get a user by ID."""
        return await self._get_user_where("id = ?", user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        """Get a user by email."""
        return await self._get_user_where("email = ?", email)

    async def _get_user_where(self, condition: str, value: str) -> User | None:
        conn = self._connection()
        try:
            cursor = await conn.execute(
                f"""
                SELECT id, display_name, email, credential, photo_ref, created_at
                FROM users
                WHERE {condition}
                """,
                (value,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageUnavailableError(f"Cannot read user: {e}") from e

        if not row:
            return None

        return User(
            id=row[0],
            display_name=row[1],
            email=row[2],
            credential=row[3],
            photo_ref=row[4],
            created_at=datetime.fromisoformat(row[5]),
        )

    # TraceEvents
    async def save_trace_event(self, event: TraceEvent) -> None:
        """Save a trace event."""
        conn = self._connection()
        async with self._write_lock:
            try:
                await conn.execute(
                    """
                    INSERT INTO trace_events (id, event_type, actor, data, timestamp)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        event.id or str(uuid.uuid4()),
                        event.event_type,
                        event.actor,
                        json.dumps(event.data, default=str),
                        event.timestamp.isoformat(),
                    ),
                )
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise StorageUnavailableError(f"Cannot save trace event: {e}") from e

    async def get_trace_events(
        self,
        after: datetime | None = None,
        event_types: list[str] | None = None,
        actor: str | None = None,
        session_id: str | None = None,
        limit: int = 100,
    ) -> list[TraceEvent]:
        """Get trace events with optional filters, newest first."""
        conn = self._connection()

        conditions = []
        params: list = []

        if after:
            conditions.append("timestamp > ?")
            params.append(after.isoformat())
        if event_types:
            placeholders = ",".join("?" * len(event_types))
            conditions.append(f"event_type IN ({placeholders})")
            params.extend(event_types)
        if actor:
            conditions.append("actor = ?")
            params.append(actor)
        if session_id:
            conditions.append("json_extract(data, '$.session_id') = ?")
            params.append(session_id)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT id, event_type, actor, data, timestamp
            FROM trace_events
            {where_clause}
            ORDER BY timestamp DESC
            LIMIT ?
        """
        params.append(limit)

        try:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageUnavailableError(f"Cannot read trace events: {e}") from e

        return [
            TraceEvent(
                id=row[0],
                event_type=row[1],
                actor=row[2],
                data=json.loads(row[3]),
                timestamp=datetime.fromisoformat(row[4]),
            )
            for row in rows
        ]

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        conn = self._connection()

        tables = [
            "attachments",
            "messages",
            "sessions",
            "users",
            "trace_events",
        ]

        async with self._write_lock:
            try:
                for table in tables:
                    await conn.execute(f"DELETE FROM {table}")
                await conn.commit()
            except aiosqlite.Error as e:
                await self._rollback(conn)
                raise StorageUnavailableError(f"Cannot clear storage: {e}") from e
