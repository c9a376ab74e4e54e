"""SQLite archive of evicted conversation threads (append-only)."""

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from luna.core.logging import get_logger
from luna.memory.threads import ConversationThread

logger = get_logger("memory.archive")


def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return dt.isoformat()


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return datetime.fromisoformat(val.decode())


# Register adapters/converters to avoid Python 3.12 deprecation warning
sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)

SCHEMA = """
CREATE TABLE IF NOT EXISTS thread_archive (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    thread_id TEXT NOT NULL,
    channel TEXT NOT NULL,
    participant TEXT NOT NULL,
    started_at DATETIME NOT NULL,
    last_activity DATETIME NOT NULL,
    message_count INTEGER NOT NULL,
    messages TEXT NOT NULL,  -- JSON array
    archived_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_thread_archive_channel
    ON thread_archive(channel, participant);
"""


class SQLiteThreadArchive:
    """Best-effort persistence for threads dropped by the idle sweep."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(
            self.db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        )
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to thread archive: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Thread archive not connected. Call connect() first.")
        return self._conn

    async def append(self, thread: ConversationThread) -> bool:
        """Write one thread. Failures are logged, never raised."""
        try:
            messages = json.dumps(thread.messages, default=_json_default)
            await self.conn.execute(
                """INSERT INTO thread_archive
                   (thread_id, channel, participant, started_at, last_activity,
                    message_count, messages)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    thread.id,
                    thread.channel,
                    thread.participant,
                    thread.created_at,
                    thread.last_activity,
                    len(thread.messages),
                    messages,
                ),
            )
            await self.conn.commit()
            return True
        except Exception as e:
            logger.warning(f"Failed to archive thread {thread.id}: {e}")
            return False

    async def history(
        self,
        channel: str,
        participant: str | None = None,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Archived threads of a channel, newest first."""
        sql = (
            "SELECT thread_id, channel, participant, started_at, last_activity, "
            "message_count, messages FROM thread_archive WHERE channel = ?"
        )
        params: list[Any] = [channel]
        if participant is not None:
            sql += " AND participant = ?"
            params.append(participant)
        sql += " ORDER BY last_activity DESC, id DESC LIMIT ?"
        params.append(limit)

        results = []
        async with self.conn.execute(sql, params) as cursor:
            async for row in cursor:
                results.append({
                    "thread_id": row[0],
                    "channel": row[1],
                    "participant": row[2],
                    "started_at": row[3],
                    "last_activity": row[4],
                    "message_count": row[5],
                    "messages": json.loads(row[6]),
                })
        return results

    async def count(self) -> int:
        async with self.conn.execute("SELECT COUNT(*) FROM thread_archive") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else 0


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
