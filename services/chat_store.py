"""SQLite-based persistence for profiles, conversations, messages and feedback."""

import json
import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import aiosqlite

from config import DATABASE_PATH, DEFAULT_PAGE_SIZE, PREVIEW_CHARS

logger = logging.getLogger(__name__)

Timestamp = Union[str, datetime, None]

CONVERSATION_BOOL_FIELDS = ("is_pinned", "is_archived")
PROFILE_BOOL_FIELDS = ("is_active", "is_deleted")
PROFILE_JSON_FIELDS = ("chat_settings", "privacy_settings")
MESSAGE_JSON_FIELDS = ("payload", "metadata")

UPDATABLE_CONVERSATION_FIELDS = {"title", "is_pinned", "is_archived", "model"}
UPDATABLE_PROFILE_FIELDS = {
    "first_name",
    "last_name",
    "photo_url",
    "preferred_language",
    "preferred_theme",
    "chat_settings",
    "privacy_settings",
    "is_active",
}


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_iso(value: Timestamp) -> str:
    """Normalize a timestamp to an ISO-8601 UTC string (now if missing)."""
    if value is None:
        return utc_now()
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _dump_json(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value)


def _load_json(value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


def _conversation_from_row(row: aiosqlite.Row) -> Dict[str, Any]:
    conversation = dict(row)
    for field in CONVERSATION_BOOL_FIELDS:
        conversation[field] = bool(conversation[field])
    return conversation


def _message_from_row(row: aiosqlite.Row) -> Dict[str, Any]:
    message = dict(row)
    for field in MESSAGE_JSON_FIELDS:
        message[field] = _load_json(message[field])
    if message.get("private") is not None:
        message["private"] = bool(message["private"])
    return message


def _profile_from_row(row: aiosqlite.Row) -> Dict[str, Any]:
    profile = dict(row)
    for field in PROFILE_BOOL_FIELDS:
        profile[field] = bool(profile[field])
    for field in PROFILE_JSON_FIELDS:
        profile[field] = _load_json(profile[field])
    return profile


class ChatStore:
    """SQLite storage for the chat application's tables.

    Every operation opens its own connection, so a store instance can be
    shared freely between requests and background persistence jobs.
    """

    def __init__(self, db_path: str = DATABASE_PATH):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    async def initialize(self):
        """Initialize the database schema."""
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id TEXT PRIMARY KEY,
                    first_name TEXT,
                    last_name TEXT,
                    email TEXT NOT NULL,
                    photo_url TEXT,
                    preferred_language TEXT NOT NULL DEFAULT 'en'
                        CHECK (preferred_language IN ('ar', 'en')),
                    preferred_theme TEXT NOT NULL DEFAULT 'system'
                        CHECK (preferred_theme IN ('light', 'dark', 'system')),
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_login TEXT,
                    is_deleted INTEGER NOT NULL DEFAULT 0,
                    deleted_at TEXT,
                    token_usage INTEGER NOT NULL DEFAULT 0,
                    chat_settings TEXT,
                    privacy_settings TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL,
                    last_message_preview TEXT,
                    last_message_timestamp TEXT,
                    message_count INTEGER NOT NULL DEFAULT 0,
                    is_pinned INTEGER NOT NULL DEFAULT 0,
                    is_archived INTEGER NOT NULL DEFAULT 0,
                    model TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    deleted_at TEXT
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
                    content TEXT NOT NULL,
                    topic TEXT NOT NULL DEFAULT 'default',
                    extension TEXT NOT NULL DEFAULT '.txt',
                    payload TEXT,
                    tokens INTEGER,
                    metadata TEXT,
                    event TEXT,
                    private INTEGER,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    inserted_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS user_feedback (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    categories TEXT NOT NULL,
                    details TEXT NOT NULL,
                    page_url TEXT,
                    user_agent TEXT,
                    status TEXT NOT NULL DEFAULT 'new',
                    created_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE TABLE IF NOT EXISTS changelog_entries (
                    id TEXT PRIMARY KEY,
                    published_date TEXT NOT NULL,
                    image_url TEXT,
                    heading_en TEXT NOT NULL,
                    paragraph_en TEXT NOT NULL,
                    heading_ar TEXT NOT NULL,
                    paragraph_ar TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_conversations_user
                ON conversations(user_id, is_archived, updated_at)
            """)
            await db.execute("""
                CREATE INDEX IF NOT EXISTS idx_messages_conversation
                ON messages(conversation_id, created_at)
            """)
            await db.commit()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def create_conversation(
        self,
        user_id: str,
        title: str,
        model: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a conversation owned by user_id."""
        conversation_id = str(uuid.uuid4())
        now = utc_now()

        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO conversations (id, user_id, title, message_count, is_pinned,
                                              is_archived, model, created_at, updated_at)
                   VALUES (?, ?, ?, 0, 0, 0, ?, ?, ?)""",
                (conversation_id, user_id, title, model, now, now)
            )
            await db.commit()

        logger.info("[STORE] Created conversation %s for user %s", conversation_id, user_id)
        return {
            "id": conversation_id,
            "user_id": user_id,
            "title": title,
            "last_message_preview": None,
            "last_message_timestamp": None,
            "message_count": 0,
            "is_pinned": False,
            "is_archived": False,
            "model": model,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }

    async def get_conversation(
        self,
        conversation_id: str,
        user_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Get a conversation that has not been soft-deleted.

        When user_id is given, only a conversation owned by that user matches.
        """
        query = "SELECT * FROM conversations WHERE id = ? AND deleted_at IS NULL"
        params: List[Any] = [conversation_id]
        if user_id is not None:
            query += " AND user_id = ?"
            params.append(user_id)

        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(query, params)
            row = await cursor.fetchone()
            return _conversation_from_row(row) if row else None

    async def list_conversations(
        self,
        user_id: str,
        archived: Optional[bool] = False,
        pinned: Optional[bool] = None,
        search: Optional[str] = None,
        on_date: Optional[date] = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """List a user's conversations, pinned first, then most recently updated."""
        clauses = ["user_id = ?", "deleted_at IS NULL"]
        params: List[Any] = [user_id]

        if archived is not None:
            clauses.append("is_archived = ?")
            params.append(int(archived))
        if pinned is not None:
            clauses.append("is_pinned = ?")
            params.append(int(pinned))
        if search:
            escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            clauses.append("title LIKE ? ESCAPE '\\'")
            params.append(f"%{escaped}%")
        if on_date is not None:
            start = datetime(on_date.year, on_date.month, on_date.day, tzinfo=timezone.utc)
            clauses.append("created_at >= ? AND created_at < ?")
            params.extend([start.isoformat(), (start + timedelta(days=1)).isoformat()])

        params.extend([limit, offset])
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"""SELECT * FROM conversations WHERE {' AND '.join(clauses)}
                    ORDER BY is_pinned DESC, updated_at DESC
                    LIMIT ? OFFSET ?""",
                params
            )
            return [_conversation_from_row(row) async for row in cursor]

    async def update_conversation(
        self,
        conversation_id: str,
        user_id: str,
        **fields: Any
    ) -> Optional[Dict[str, Any]]:
        """Update title/pin/archive/model of an owned conversation."""
        unknown = set(fields) - UPDATABLE_CONVERSATION_FIELDS
        if unknown:
            raise ValueError(f"Cannot update conversation fields: {sorted(unknown)}")

        updates = []
        params: List[Any] = []
        for name, value in fields.items():
            if value is None:
                continue
            updates.append(f"{name} = ?")
            params.append(int(value) if name in CONVERSATION_BOOL_FIELDS else value)

        if updates:
            updates.append("updated_at = ?")
            params.append(utc_now())
            params.extend([conversation_id, user_id])
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    f"""UPDATE conversations SET {', '.join(updates)}
                        WHERE id = ? AND user_id = ? AND deleted_at IS NULL""",
                    params
                )
                await db.commit()

        return await self.get_conversation(conversation_id, user_id)

    async def soft_delete_conversation(self, conversation_id: str, user_id: str) -> bool:
        """Mark a conversation deleted. Its messages are left in place."""
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """UPDATE conversations SET deleted_at = ?
                   WHERE id = ? AND user_id = ? AND deleted_at IS NULL""",
                (utc_now(), conversation_id, user_id)
            )
            await db.commit()
            return cursor.rowcount > 0

    async def soft_delete_user_conversations(self, user_id: str) -> int:
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                "UPDATE conversations SET deleted_at = ? WHERE user_id = ? AND deleted_at IS NULL",
                (utc_now(), user_id)
            )
            await db.commit()
            return cursor.rowcount

    async def update_conversation_summary(
        self,
        conversation_id: str,
        preview: str,
        message_count: Optional[int] = None
    ) -> bool:
        """Refresh the cached preview/count/timestamps of a conversation.

        This is a best-effort summary; it may lag the true message count.
        """
        now = utc_now()
        updates = ["last_message_preview = ?", "last_message_timestamp = ?", "updated_at = ?"]
        params: List[Any] = [preview[:PREVIEW_CHARS], now, now]
        if message_count is not None:
            updates.append("message_count = ?")
            params.append(message_count)
        params.append(conversation_id)

        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                f"UPDATE conversations SET {', '.join(updates)} WHERE id = ?",
                params
            )
            await db.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def insert_messages(
        self,
        conversation_id: str,
        messages: Iterable[Dict[str, Any]]
    ) -> List[Dict[str, Any]]:
        """Insert a batch of messages in one transaction.

        Missing ids and timestamps are generated. A row whose id already
        exists in the same conversation has its content refreshed instead of
        being duplicated, so a retried or repeated batch is safe.
        """
        now = utc_now()
        rows = []
        for msg in messages:
            rows.append({
                "id": msg.get("id") or str(uuid.uuid4()),
                "conversation_id": conversation_id,
                "role": msg["role"],
                "content": msg["content"],
                "topic": msg.get("topic") or "default",
                "extension": msg.get("extension") or ".txt",
                "payload": msg.get("payload"),
                "tokens": msg.get("tokens"),
                "metadata": msg.get("metadata"),
                "event": msg.get("event"),
                "private": msg.get("private"),
                "created_at": to_iso(msg.get("created_at") or msg.get("timestamp")),
                "updated_at": now,
                "inserted_at": now,
            })

        if not rows:
            return []

        async with aiosqlite.connect(self.db_path) as db:
            await db.executemany(
                """INSERT INTO messages (id, conversation_id, role, content, topic, extension,
                                         payload, tokens, metadata, event, private,
                                         created_at, updated_at, inserted_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                       content = excluded.content,
                       updated_at = excluded.updated_at
                   WHERE messages.conversation_id = excluded.conversation_id""",
                [
                    (
                        r["id"], r["conversation_id"], r["role"], r["content"], r["topic"],
                        r["extension"], _dump_json(r["payload"]), r["tokens"],
                        _dump_json(r["metadata"]), r["event"],
                        None if r["private"] is None else int(r["private"]),
                        r["created_at"], r["updated_at"], r["inserted_at"],
                    )
                    for r in rows
                ]
            )
            await db.commit()

        logger.debug("[STORE] Saved %d messages to conversation %s", len(rows), conversation_id)
        return rows

    async def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        message_id: Optional[str] = None,
        created_at: Timestamp = None,
        topic: str = "default"
    ) -> Dict[str, Any]:
        """Insert (or backfill) a single message."""
        rows = await self.insert_messages(conversation_id, [{
            "id": message_id,
            "role": role,
            "content": content,
            "created_at": created_at,
            "topic": topic,
        }])
        return rows[0]

    async def list_messages(self, conversation_id: str) -> List[Dict[str, Any]]:
        """All messages of a conversation in creation order."""
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """SELECT * FROM messages WHERE conversation_id = ?
                   ORDER BY created_at ASC, rowid ASC""",
                (conversation_id,)
            )
            return [_message_from_row(row) async for row in cursor]

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM profiles WHERE id = ?", (user_id,))
            row = await cursor.fetchone()
            return _profile_from_row(row) if row else None

    async def create_profile(
        self,
        user_id: str,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        preferred_language: str = "en",
        preferred_theme: str = "system"
    ) -> Dict[str, Any]:
        """Create the profile row for a newly signed-up user."""
        now = utc_now()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO profiles (id, first_name, last_name, email, photo_url,
                                         preferred_language, preferred_theme, is_active,
                                         last_login, is_deleted, token_usage,
                                         created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, 0, 0, ?, ?)""",
                (user_id, first_name, last_name, email, photo_url,
                 preferred_language, preferred_theme, now, now, now)
            )
            await db.commit()

        logger.info("[STORE] Created profile for user %s", user_id)
        return await self.get_profile(user_id)

    async def update_profile(self, user_id: str, **fields: Any) -> Optional[Dict[str, Any]]:
        """Update profile fields; nested settings are stored as JSON."""
        unknown = set(fields) - UPDATABLE_PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update profile fields: {sorted(unknown)}")

        updates = []
        params: List[Any] = []
        for name, value in fields.items():
            if value is None:
                continue
            updates.append(f"{name} = ?")
            if name in PROFILE_JSON_FIELDS:
                value = _dump_json(value)
            elif name in PROFILE_BOOL_FIELDS:
                value = int(value)
            params.append(value)

        if updates:
            updates.append("updated_at = ?")
            params.extend([utc_now(), user_id])
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    f"UPDATE profiles SET {', '.join(updates)} WHERE id = ?",
                    params
                )
                await db.commit()

        return await self.get_profile(user_id)

    async def touch_last_login(self, user_id: str) -> None:
        now = utc_now()
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                "UPDATE profiles SET last_login = ?, updated_at = ? WHERE id = ?",
                (now, now, user_id)
            )
            await db.commit()

    async def soft_delete_profile(self, user_id: str) -> bool:
        now = utc_now()
        async with aiosqlite.connect(self.db_path) as db:
            cursor = await db.execute(
                """UPDATE profiles SET is_deleted = 1, is_active = 0, deleted_at = ?, updated_at = ?
                   WHERE id = ? AND is_deleted = 0""",
                (now, now, user_id)
            )
            await db.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Feedback and changelog
    # ------------------------------------------------------------------

    async def create_feedback(
        self,
        user_id: str,
        categories: List[str],
        details: str,
        page_url: Optional[str] = None,
        user_agent: Optional[str] = None
    ) -> Dict[str, Any]:
        feedback = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "categories": categories,
            "details": details,
            "page_url": page_url,
            "user_agent": user_agent,
            "status": "new",
            "created_at": utc_now(),
        }
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO user_feedback (id, user_id, categories, details, page_url,
                                              user_agent, status, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (feedback["id"], user_id, json.dumps(categories), details, page_url,
                 user_agent, feedback["status"], feedback["created_at"])
            )
            await db.commit()
        return feedback

    async def add_changelog_entry(
        self,
        published_date: str,
        heading_en: str,
        paragraph_en: str,
        heading_ar: str,
        paragraph_ar: str,
        image_url: Optional[str] = None
    ) -> Dict[str, Any]:
        entry = {
            "id": str(uuid.uuid4()),
            "published_date": published_date,
            "image_url": image_url,
            "heading_en": heading_en,
            "paragraph_en": paragraph_en,
            "heading_ar": heading_ar,
            "paragraph_ar": paragraph_ar,
            "created_at": utc_now(),
        }
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute(
                """INSERT INTO changelog_entries (id, published_date, image_url, heading_en,
                                                  paragraph_en, heading_ar, paragraph_ar, created_at)
                   VALUES (:id, :published_date, :image_url, :heading_en,
                           :paragraph_en, :heading_ar, :paragraph_ar, :created_at)""",
                entry
            )
            await db.commit()
        return entry

    async def list_changelog(self, limit: int = DEFAULT_PAGE_SIZE) -> List[Dict[str, Any]]:
        async with aiosqlite.connect(self.db_path) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM changelog_entries ORDER BY published_date DESC, created_at DESC LIMIT ?",
                (limit,)
            )
            return [dict(row) async for row in cursor]
