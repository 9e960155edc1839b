"""SQLite storage adapter.

Caller-side persistence for the sync engine: the engine never stores state,
so the app keeps the inbox cursor, the file-server token and a message log
here between restarts.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from core.models import NormalizedMessage

LAST_HASH_KEY = "last_hash"
FILE_SERVER_TOKEN_KEY = "file_server_token"


class SQLiteStorage:
    """Thin SQLite wrapper for client state and received messages."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - client_state: small key/value store (cursor, file-server token)
        - messages: append-only log of received messages
        """

        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS client_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            # Fields:
            # - source: sender pubkey (inbox) or open group username
            # - origin_group_id: open group id, NULL for direct messages
            # - message_id: open group message id, NULL for direct messages
            # - body: message text, may be NULL for attachment-only messages
            # - attachment_count: number of attachment pointers received
            # - received_at: when this client stored the message
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL,
                    origin_group_id TEXT,
                    message_id INTEGER,
                    body TEXT,
                    attachment_count INTEGER NOT NULL DEFAULT 0,
                    received_at TIMESTAMP NOT NULL
                )
                """
            )

    def _get_state(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT value FROM client_state WHERE key = ?",
                (key,),
            ).fetchone()
        return row["value"] if row else None

    def _set_state(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO client_state (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def get_last_hash(self) -> str:
        """Return the persisted inbox cursor, or '' to read everything."""

        return self._get_state(LAST_HASH_KEY) or ""

    def set_last_hash(self, last_hash: str) -> None:
        self._set_state(LAST_HASH_KEY, last_hash)

    def get_file_server_token(self) -> str:
        return self._get_state(FILE_SERVER_TOKEN_KEY) or ""

    def set_file_server_token(self, token: str) -> None:
        self._set_state(FILE_SERVER_TOKEN_KEY, token)

    def save_messages(self, messages: Iterable[NormalizedMessage]) -> int:
        """Append a batch to the message log and return the row count."""

        received_at = datetime.now(timezone.utc).isoformat()
        rows = [
            (
                message.source,
                message.origin_group_id,
                message.message_id,
                message.body,
                len(message.attachments),
                received_at,
            )
            for message in messages
        ]
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO messages (
                    source,
                    origin_group_id,
                    message_id,
                    body,
                    attachment_count,
                    received_at
                ) VALUES (?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    def count_messages(self) -> int:
        with self._connect() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM messages").fetchone()
        return int(row["n"])

    def cleanup_messages(self, ttl_days: int) -> int:
        """Delete old messages and return the number removed."""

        cutoff = datetime.now(timezone.utc) - timedelta(days=ttl_days)
        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM messages WHERE received_at < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount
