"""Session gateways — find, create and save sessions by chat id."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from .errors import SessionNotFoundError
from .session import Session, SessionRecord

logger = logging.getLogger(__name__)


class SessionGateway(ABC):
    """Abstract persistence gateway for sessions.

    Concurrent writes to the same session are last-write-wins in the bundled
    implementations; callers needing more must serialise per chat id.
    """

    @abstractmethod
    async def find_by_id(self, chat_id: str) -> Session:
        """Load the session for *chat_id*. Raises :class:`SessionNotFoundError`."""

    @abstractmethod
    async def create(self, session: Session) -> None:
        """Persist a session for the first time."""

    @abstractmethod
    async def save(self, session: Session) -> None:
        """Persist the current state of an existing session."""


class InMemorySessionGateway(SessionGateway):
    """Dict-based in-memory implementation (for testing and development).

    Sessions are stored as records, so callers never share a live Session
    object with the store.
    """

    def __init__(self) -> None:
        self._records: dict[str, SessionRecord] = {}

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    async def find_by_id(self, chat_id: str) -> Session:
        record = self._records.get(chat_id)
        if record is None:
            raise SessionNotFoundError(chat_id)
        return Session.from_record(record.model_copy(deep=True))

    async def create(self, session: Session) -> None:
        if session.id in self._records:
            msg = f"session {session.id} already exists"
            raise KeyError(msg)
        self._records[session.id] = session.to_record()

    async def save(self, session: Session) -> None:
        if session.id not in self._records:
            raise SessionNotFoundError(session.id)
        self._records[session.id] = session.to_record()


class SqliteSessionGateway(SessionGateway):
    """SQLite-backed gateway storing one JSON document per session.

    Blocking sqlite calls run in a worker thread so the event loop stays free.
    """

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                status TEXT NOT NULL,
                document TEXT NOT NULL,
                updated_at REAL NOT NULL
            )"""
        )
        self._conn.commit()

    async def find_by_id(self, chat_id: str) -> Session:
        row = await asyncio.to_thread(self._fetch, chat_id)
        if row is None:
            raise SessionNotFoundError(chat_id)
        return Session.from_record(SessionRecord.model_validate_json(row[0]))

    async def create(self, session: Session) -> None:
        await asyncio.to_thread(self._insert, session.to_record())
        logger.debug("created session %s", session.id)

    async def save(self, session: Session) -> None:
        updated = await asyncio.to_thread(self._update, session.to_record())
        if not updated:
            raise SessionNotFoundError(session.id)
        logger.debug("saved session %s", session.id)

    def close(self) -> None:
        """Close the underlying database connection."""
        self._conn.close()

    # ------------------------------------------------------------------
    # Blocking helpers
    # ------------------------------------------------------------------

    def _fetch(self, chat_id: str) -> tuple[str] | None:
        with self._lock:
            return self._conn.execute(
                "SELECT document FROM sessions WHERE id = ?", (chat_id,)
            ).fetchone()

    def _insert(self, record: SessionRecord) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO sessions (id, user_id, status, document, updated_at)"
                " VALUES (?, ?, ?, ?, ?)",
                (
                    record.id, record.user_id, record.status.value,
                    record.model_dump_json(), time.time(),
                ),
            )
            self._conn.commit()

    def _update(self, record: SessionRecord) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "UPDATE sessions SET user_id = ?, status = ?, document = ?, updated_at = ?"
                " WHERE id = ?",
                (
                    record.user_id, record.status.value,
                    record.model_dump_json(), time.time(), record.id,
                ),
            )
            self._conn.commit()
            return cur.rowcount > 0
