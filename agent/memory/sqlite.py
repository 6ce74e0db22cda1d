"""
SQLite-backed durable profile/history store.

Holds registered users and the message log the conversational memory is
seeded from after a restart or an expiry.

Key properties:
- Implements the ProfileStore interface, swappable with StubProfileStore
- Reads raise on operational errors (the memory store degrades to an
  empty record); writes return False instead of raising
- WAL mode for file databases

Tables:
- users(conversation_key, user_id, name, email, company, position,
        registration_date, last_activity, attributes JSON)
- messages(conversation_key, content, is_from_user, timestamp,
           intents JSON, entities JSON)
"""

import json
import logging
import sqlite3
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from agent.memory.base import ProfileStore
from agent.memory.types import MessageEntry, UserProfile

logger = logging.getLogger(__name__)


def _to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteProfileStore(ProfileStore):
    """
    SQLite implementation of the durable store.

    One connection per operation; ':memory:' keeps a single shared
    connection so the schema survives between calls.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Args:
            db_path: Path to SQLite database file.
                     If None, uses ':memory:' (useful for testing).
        """
        self.db_path = db_path or ":memory:"
        self._shared_conn: Optional[sqlite3.Connection] = None
        if self.db_path == ":memory:":
            self._shared_conn = sqlite3.connect(":memory:", check_same_thread=False)
        self._initialize_db()

    def _connect(self) -> sqlite3.Connection:
        if self._shared_conn is not None:
            return self._shared_conn
        return sqlite3.connect(self.db_path)

    def _release(self, conn: sqlite3.Connection) -> None:
        if conn is not self._shared_conn:
            conn.close()

    def _initialize_db(self) -> None:
        """Create tables and indexes. No-op if they already exist."""
        conn = self._connect()
        try:
            cursor = conn.cursor()

            if self._shared_conn is None:
                cursor.execute("PRAGMA journal_mode=WAL")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    conversation_key TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT,
                    email TEXT,
                    company TEXT,
                    position TEXT,
                    registration_date TEXT,
                    last_activity TEXT,
                    attributes TEXT NOT NULL DEFAULT '{}'
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_key TEXT NOT NULL,
                    content TEXT NOT NULL,
                    is_from_user INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    intents TEXT NOT NULL DEFAULT '[]',
                    entities TEXT NOT NULL DEFAULT '{}'
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_key
                ON messages(conversation_key, id)
            """)
            conn.commit()
            logger.debug(f"SQLite profile store initialized: {self.db_path}")
        except sqlite3.Error as e:
            # Reads will surface the problem; the memory store degrades then
            logger.error(f"Failed to initialize SQLite profile store: {str(e)}")
        finally:
            self._release(conn)

    def find_user_profile(self, conversation_key: str) -> Optional[UserProfile]:
        conn = self._connect()
        try:
            row = conn.execute(
                """
                SELECT user_id, name, email, company, position,
                       registration_date, last_activity, attributes
                FROM users WHERE conversation_key = ?
                """,
                (conversation_key,),
            ).fetchone()
        finally:
            self._release(conn)

        if row is None:
            return None

        return UserProfile(
            is_registered=True,
            user_id=row[0],
            name=row[1],
            email=row[2],
            company=row[3],
            position=row[4],
            registration_date=_from_iso(row[5]),
            last_activity=_from_iso(row[6]),
            attributes=json.loads(row[7] or "{}"),
        )

    def get_recent_messages(self, conversation_key: str, limit: int) -> List[MessageEntry]:
        if limit <= 0:
            return []

        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT content, is_from_user, timestamp, intents, entities
                FROM messages WHERE conversation_key = ?
                ORDER BY id DESC LIMIT ?
                """,
                (conversation_key, limit),
            ).fetchall()
        finally:
            self._release(conn)

        # Newest first from SQL, oldest first for callers
        return [
            MessageEntry(
                content=row[0],
                is_from_user=bool(row[1]),
                timestamp=datetime.fromisoformat(row[2]),
                intents=json.loads(row[3]),
                entities=json.loads(row[4]),
            )
            for row in reversed(rows)
        ]

    def record_message(self, conversation_key: str, message: MessageEntry) -> bool:
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT INTO messages (conversation_key, content, is_from_user, timestamp, intents, entities)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        conversation_key,
                        message.content,
                        int(message.is_from_user),
                        message.timestamp.isoformat(),
                        json.dumps(message.intents),
                        json.dumps(message.entities, ensure_ascii=False),
                    ),
                )
                conn.execute(
                    "UPDATE users SET last_activity = ? WHERE conversation_key = ?",
                    (message.timestamp.isoformat(), conversation_key),
                )
                conn.commit()
            finally:
                self._release(conn)
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"Message write failed: {conversation_key}, {str(e)}")
            return False

    def register_user(self, conversation_key: str, profile: UserProfile) -> bool:
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT INTO users (conversation_key, user_id, name, email, company, position,
                                       registration_date, last_activity, attributes)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(conversation_key) DO UPDATE SET
                        name = excluded.name,
                        email = excluded.email,
                        company = excluded.company,
                        position = excluded.position,
                        attributes = excluded.attributes
                    """,
                    (
                        conversation_key,
                        profile.user_id or str(uuid4()),
                        profile.name,
                        profile.email,
                        profile.company,
                        profile.position,
                        _to_iso(profile.registration_date),
                        _to_iso(profile.last_activity),
                        json.dumps(profile.attributes, ensure_ascii=False, default=str),
                    ),
                )
                conn.commit()
            finally:
                self._release(conn)
            logger.info(f"User registered: conversation_key={conversation_key}")
            return True
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.error(f"User registration failed: {conversation_key}, {str(e)}")
            return False
