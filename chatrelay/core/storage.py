"""SQLite-backed conversation history for the chat UI."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional
from uuid import uuid4

DEFAULT_TITLE = "New Chat"
_TITLE_LENGTH = 50


def make_title(first_message: str) -> str:
    title = first_message.strip()[:_TITLE_LENGTH]
    return title or DEFAULT_TITLE


class HistoryStore:
    """Conversations and UI settings, capped at ``max_conversations`` chats."""

    def __init__(self, database_path: Path, max_conversations: int = 100) -> None:
        self.database_path = Path(database_path)
        self.max_conversations = max_conversations

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.database_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def initialize(self) -> None:
        """Ensure that the SQLite schema exists."""

        self.database_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    model TEXT,
                    updated_at TEXT NOT NULL
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
                );
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

    def create_conversation(self, title: str = DEFAULT_TITLE, model: Optional[str] = None) -> str:
        """Create a conversation, dropping the oldest ones beyond the cap."""

        conversation_id = str(uuid4())
        now = datetime.now(UTC).isoformat()
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO conversations(id, title, model, updated_at) VALUES (?, ?, ?, ?)",
                (conversation_id, title, model, now),
            )
            self._prune(conn)
        return conversation_id

    def _prune(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            DELETE FROM conversations WHERE id NOT IN (
                SELECT id FROM conversations ORDER BY updated_at DESC, rowid DESC LIMIT ?
            )
            """,
            (self.max_conversations,),
        )

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE conversations SET title = ? WHERE id = ?",
                (title, conversation_id),
            )

    def append_message(self, conversation_id: str, role: str, content: str) -> None:
        now = datetime.now(UTC).isoformat()
        with self._connect() as conn:
            convo = conn.execute(
                "SELECT 1 FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
            if not convo:
                raise ValueError("Conversation not found")
            conn.execute(
                "INSERT INTO messages(conversation_id, role, content, created_at) VALUES (?, ?, ?, ?)",
                (conversation_id, role, content, now),
            )
            conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (now, conversation_id),
            )

    def list_conversations(self) -> List[Dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, title, model, updated_at FROM conversations "
                "ORDER BY updated_at DESC, rowid DESC"
            ).fetchall()
        return [dict(row) for row in rows]

    def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        with self._connect() as conn:
            convo_row = conn.execute(
                "SELECT id, title, model, updated_at FROM conversations WHERE id = ?",
                (conversation_id,),
            ).fetchone()
            if not convo_row:
                return None
            message_rows = conn.execute(
                "SELECT role, content, created_at FROM messages WHERE conversation_id = ? ORDER BY id",
                (conversation_id,),
            ).fetchall()

        conversation = dict(convo_row)
        conversation["messages"] = [dict(row) for row in message_rows]
        return conversation

    def delete_conversation(self, conversation_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))

    def clear_all(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM messages")
            conn.execute("DELETE FROM conversations")

    def load_settings(self, defaults: Mapping[str, Any]) -> Dict[str, Any]:
        """Return stored UI settings layered over ``defaults``."""

        values = dict(defaults)
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM settings").fetchall()
        for row in rows:
            values[row["key"]] = json.loads(row["value"])
        return values

    def save_settings(self, values: Mapping[str, Any]) -> None:
        with self._connect() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO settings(key, value) VALUES (?, ?)",
                [(key, json.dumps(value)) for key, value in values.items()],
            )

    def export(self) -> Dict[str, Any]:
        """Dump every conversation and the saved settings as one JSON-ready dict."""

        chats = [
            self.get_conversation(convo["id"]) for convo in self.list_conversations()
        ]
        return {
            "exported": datetime.now(UTC).isoformat(),
            "chats": [chat for chat in chats if chat is not None],
            "settings": self.load_settings({}),
        }
