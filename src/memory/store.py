"""ConversationStore: durable threads, messages and agent execution history.

Backed by libSQL (local file or remote Turso, see ``src.db``). One
connection is opened by ``init()`` and shared by every operation; statements
belonging to one operation run under a lock so multi-statement writes are
never interleaved on the connection.

Mutations fail loud with ``MemoryStoreError`` subclasses. Registered memory
processors are notified after each successful mutation; their failures are
logged and never reach the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from src.config import settings
from src.db import get_connection
from src.memory import schema
from src.memory.errors import (
    DuplicateKeyError,
    InvalidEventTypeError,
    MemoryStoreError,
    NoActiveConversationError,
    NotFoundError,
    ProviderError,
)
from src.memory.models import (
    MESSAGE_ROLES,
    TIMELINE_EVENT_NAMES,
    Conversation,
    ConversationStats,
    HistoryEntry,
    HistoryStep,
    HistoryValue,
    MemoryEvent,
    Message,
    MessageFilter,
    StepValue,
    TimelineEvent,
    TimelineEventValue,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable
    from pathlib import Path

    from src.db import _AsyncConnection
    from src.memory.models import VectorItem
    from src.memory.vector import VectorIndex

    MemoryProcessor = Callable[[MemoryEvent], Awaitable[None] | None]

logger = logging.getLogger(__name__)

NO_CONTEXT = "No previous conversation context."

_MESSAGE_COLUMNS = "id, conversation_id, role, content, created_at"
_CONVERSATION_COLUMNS = "id, resource_id, title, metadata, created_at, updated_at"


def _now() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds")


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _serialize_content(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content)


def _dump_value(value: BaseModel | dict[str, Any], model: type[BaseModel]) -> str:
    if not isinstance(value, model):
        value = model.model_validate(value)
    return json.dumps(value.model_dump(mode="json", exclude_none=True))


def _event_name(value: Any) -> Any:
    if isinstance(value, TimelineEventValue):
        return value.name
    if isinstance(value, dict):
        return value.get("name")
    return getattr(value, "name", None)


# -- Row mapping ---------------------------------------------------------------


def _conversation_from_row(row: tuple) -> Conversation:
    return Conversation(
        id=row[0],
        resource_id=row[1],
        title=row[2] or "",
        metadata=json.loads(row[3]) if row[3] else {},
        created_at=row[4],
        updated_at=row[5],
    )


def _message_from_row(row: tuple) -> Message:
    return Message(
        id=row[0],
        conversation_id=row[1],
        role=row[2],
        content=row[3],
        created_at=row[4],
    )


def _history_from_row(row: tuple) -> HistoryEntry:
    return HistoryEntry(
        key=row[0],
        value=HistoryValue.model_validate(json.loads(row[1])),
        agent_id=row[2],
        created_at=row[3],
    )


def _step_from_row(row: tuple) -> HistoryStep:
    return HistoryStep(
        key=row[0],
        value=StepValue.model_validate(json.loads(row[1])),
        history_id=row[2],
        agent_id=row[3],
        created_at=row[4],
    )


def _event_from_row(row: tuple) -> TimelineEvent:
    return TimelineEvent(
        key=row[0],
        value=TimelineEventValue.model_validate(json.loads(row[1])),
        history_id=row[2],
        agent_id=row[3],
        created_at=row[4],
    )


class ConversationStore:
    """Persists conversations, messages and agent history in libSQL.

    Pass an explicit *db_path* for test isolation (e.g.
    ``tmp_path / "test.db"``). When a *vector_index* is attached, every
    stored message is also embedded into it.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        vector_index: VectorIndex | None = None,
        default_conversation_id: str | None = None,
    ) -> None:
        self._db_path = db_path
        self._vector_index = vector_index
        self._default_conversation_id = (
            settings.default_conversation_id
            if default_conversation_id is None
            else default_conversation_id
        )
        self._db: _AsyncConnection | None = None
        self._init_lock = asyncio.Lock()
        self._op_lock = asyncio.Lock()
        self._processors: list[MemoryProcessor] = []
        self._active_conversation_id: str | None = None

    @property
    def vector_index(self) -> VectorIndex | None:
        return self._vector_index

    @property
    def active_conversation_id(self) -> str | None:
        return self._active_conversation_id

    # -- Lifecycle -------------------------------------------------------------

    async def init(self) -> None:
        """Open the connection and create tables and bootstrap rows.

        Safe to call concurrently; only the first caller does the work.
        """
        if self._db is not None:
            return
        async with self._init_lock:
            if self._db is not None:
                return
            try:
                db = await get_connection(local_path_override=self._db_path)
                await db.execute_all(schema.CREATE_TABLES + schema.CREATE_INDEXES)
                now = _now()
                await db.execute(
                    schema.INSERT_BOOTSTRAP_CONVERSATION,
                    (
                        settings.system_conversation_id,
                        settings.system_resource_id,
                        schema.SYSTEM_CONVERSATION_TITLE,
                        now,
                        now,
                    ),
                )
                if self._default_conversation_id:
                    await db.execute(
                        schema.INSERT_BOOTSTRAP_CONVERSATION,
                        (
                            self._default_conversation_id,
                            settings.default_resource_id,
                            schema.DEFAULT_CONVERSATION_TITLE,
                            now,
                            now,
                        ),
                    )
                await db.commit()
            except Exception as exc:
                msg = "Failed to initialise conversation store"
                raise ProviderError(msg) from exc
            self._db = db
            logger.info("Conversation store initialised")

    async def close(self) -> None:
        """Close the connection. A later call re-initialises lazily."""
        async with self._init_lock, self._op_lock:
            if self._db is None:
                return
            db, self._db = self._db, None
            await db.close()
            logger.info("Conversation store closed")

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[_AsyncConnection]:
        """Yield the shared connection for one operation.

        The operation commits on exit. Failures roll back; driver errors are
        re-raised as ``ProviderError``.
        """
        await self.init()
        async with self._op_lock:
            db = self._db
            if db is None:
                msg = "Conversation store is closed"
                raise ProviderError(msg)
            try:
                async with db.transaction():
                    yield db
            except MemoryStoreError:
                raise
            except Exception as exc:
                msg = f"Database operation failed: {exc}"
                raise ProviderError(msg) from exc

    # -- Memory processors -----------------------------------------------------

    def register_processor(self, processor: MemoryProcessor) -> None:
        """Register an observer called after every successful mutation."""
        self._processors.append(processor)

    async def _emit(self, event_type: str, **data: Any) -> None:
        event = MemoryEvent(type=event_type, data=data)
        for processor in self._processors:
            try:
                result = processor(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Memory processor failed on %s", event_type)

    # -- Conversations ---------------------------------------------------------

    async def create_conversation(
        self,
        id: str,  # noqa: A002
        resource_id: str,
        title: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        """Insert a new conversation.

        Raises:
            DuplicateKeyError: A conversation with *id* already exists.
        """
        now = _now()
        conversation = Conversation(
            id=id,
            resource_id=resource_id,
            title=title,
            metadata=metadata or {},
            created_at=now,
            updated_at=now,
        )
        async with self._session() as db:
            cursor = await db.execute("SELECT 1 FROM conversations WHERE id = ?", (id,))
            if await cursor.fetchone():
                raise DuplicateKeyError(id)
            await db.execute(
                f"INSERT INTO conversations ({_CONVERSATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?)",
                (id, resource_id, title, json.dumps(conversation.metadata), now, now),
            )
        logger.info("Created conversation %s for %s", id, resource_id)
        await self._emit("create_conversation", conversation=conversation.model_dump())
        return conversation

    async def start_conversation(self, resource_id: str, title: str | None = None) -> str:
        """Create a thread for *resource_id* and make it the active one.

        Returns the current active thread instead if one is already set.
        """
        if self._active_conversation_id:
            return self._active_conversation_id
        conversation = await self.create_conversation(
            id=uuid.uuid4().hex,
            resource_id=resource_id,
            title=title or f"{resource_id} conversation",
        )
        self._active_conversation_id = conversation.id
        return conversation.id

    def clear_active_conversation(self) -> None:
        """Forget the active thread; the next ``start_conversation`` creates one."""
        self._active_conversation_id = None

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Fetch a conversation by ID, or None if not found."""
        async with self._session() as db:
            cursor = await db.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations WHERE id = ?",
                (conversation_id,),
            )
            row = await cursor.fetchone()
        return _conversation_from_row(row) if row else None

    async def get_conversations(self, resource_id: str) -> list[Conversation]:
        """All conversations owned by *resource_id*, most recently updated first."""
        async with self._session() as db:
            cursor = await db.execute(
                f"""
                SELECT {_CONVERSATION_COLUMNS} FROM conversations
                WHERE resource_id = ?
                ORDER BY updated_at DESC, rowid DESC
                """,
                (resource_id,),
            )
            rows = await cursor.fetchall()
        return [_conversation_from_row(row) for row in rows]

    async def update_conversation(
        self,
        conversation_id: str,
        *,
        title: str | None = None,
        resource_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Conversation:
        """Merge the provided fields into a conversation and bump ``updated_at``.

        Raises:
            NotFoundError: No conversation with *conversation_id*.
        """
        async with self._session() as db:
            cursor = await db.execute(
                f"SELECT {_CONVERSATION_COLUMNS} FROM conversations WHERE id = ?",
                (conversation_id,),
            )
            row = await cursor.fetchone()
            if not row:
                raise NotFoundError("Conversation", conversation_id)
            current = _conversation_from_row(row)
            updated = current.model_copy(
                update={
                    "title": current.title if title is None else title,
                    "resource_id": current.resource_id if resource_id is None else resource_id,
                    "metadata": current.metadata if metadata is None else metadata,
                    "updated_at": _now(),
                }
            )
            await db.execute(
                """
                UPDATE conversations
                SET title = ?, resource_id = ?, metadata = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    updated.title,
                    updated.resource_id,
                    json.dumps(updated.metadata),
                    updated.updated_at,
                    conversation_id,
                ),
            )
        await self._emit("update_conversation", conversation=updated.model_dump())
        return updated

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and all of its messages.

        Deleting an unknown ID is not an error. Returns True if a
        conversation row was removed.
        """
        async with self._session() as db:
            await db.execute("DELETE FROM messages WHERE conversation_id = ?", (conversation_id,))
            cursor = await db.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
            deleted = cursor.rowcount > 0
        if self._active_conversation_id == conversation_id:
            self._active_conversation_id = None
        if deleted:
            logger.info("Deleted conversation %s", conversation_id)
        await self._emit("delete_conversation", conversation_id=conversation_id, deleted=deleted)
        return deleted

    # -- Messages --------------------------------------------------------------

    async def _resolve_conversation_id(self, db: _AsyncConnection, conversation_id: str | None) -> str:
        if conversation_id:
            return conversation_id
        if self._active_conversation_id:
            return self._active_conversation_id
        if self._default_conversation_id:
            cursor = await db.execute(
                "SELECT 1 FROM conversations WHERE id = ?", (self._default_conversation_id,)
            )
            if await cursor.fetchone():
                return self._default_conversation_id
        raise NoActiveConversationError

    async def add_message(
        self,
        conversation_id: str | None,
        role: str,
        content: Any,
    ) -> str:
        """Append a message and return its generated ID.

        Without a *conversation_id* the active thread is used, then the
        default thread. Non-string *content* is stored as JSON text.

        Raises:
            NoActiveConversationError: No thread could be resolved.
            NotFoundError: The thread does not exist.
            ValueError: *role* is not a known message role.
        """
        if role not in MESSAGE_ROLES:
            msg = f"Unknown message role: {role!r}"
            raise ValueError(msg)

        text = _serialize_content(content)
        message_id = uuid.uuid4().hex
        now = _now()
        async with self._session() as db:
            resolved = await self._resolve_conversation_id(db, conversation_id)
            cursor = await db.execute("SELECT 1 FROM conversations WHERE id = ?", (resolved,))
            if not await cursor.fetchone():
                raise NotFoundError("Conversation", resolved)
            await db.execute(
                f"INSERT INTO messages ({_MESSAGE_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                (message_id, resolved, role, text, now),
            )
            await db.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?", (now, resolved)
            )

        logger.debug("Stored %s message %s in %s", role, message_id, resolved)
        await self._index(message_id, text, role)
        await self._emit(
            "add_message",
            id=message_id,
            conversation_id=resolved,
            role=role,
            content=text,
        )
        return message_id

    async def _index(self, message_id: str, text: str, role: str) -> bool:
        if self._vector_index is None:
            return False
        try:
            await self._vector_index.add(message_id, text, role)
        except ProviderError:
            logger.exception("Failed to index message %s (non-fatal)", message_id)
            return False
        return True

    async def get_messages(
        self, message_filter: MessageFilter | None = None, **criteria: Any
    ) -> list[Message]:
        """Messages matching a filter, newest first.

        Accepts either a ``MessageFilter`` or its fields as keyword arguments.
        """
        flt = message_filter or MessageFilter(**criteria)
        sql = f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE 1=1"
        params: list[Any] = []

        if flt.conversation_id:
            sql += " AND conversation_id = ?"
            params.append(flt.conversation_id)
        if flt.resource_id:
            sql += " AND conversation_id IN (SELECT id FROM conversations WHERE resource_id = ?)"
            params.append(flt.resource_id)
        if flt.role:
            sql += " AND role = ?"
            params.append(flt.role)
        if flt.before:
            sql += " AND created_at < ?"
            params.append(_iso(flt.before))
        if flt.after:
            sql += " AND created_at > ?"
            params.append(_iso(flt.after))

        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        params.append(flt.limit)

        async with self._session() as db:
            cursor = await db.execute(sql, tuple(params))
            rows = await cursor.fetchall()
        return [_message_from_row(row) for row in rows]

    async def get_history(self, conversation_id: str, limit: int = 50) -> list[Message]:
        """The most recent *limit* messages of a thread in chronological order."""
        if not conversation_id:
            return []
        newest_first = await self.get_messages(conversation_id=conversation_id, limit=limit)
        return list(reversed(newest_first))

    async def get_recent_context(self, conversation_id: str, max_messages: int = 10) -> str:
        """Render recent messages as ``ROLE: content`` blocks for prompt assembly."""
        history = await self.get_history(conversation_id, max_messages)
        if not history:
            return NO_CONTEXT
        return "\n\n".join(f"{m.role.upper()}: {m.content}" for m in history)

    async def get_all_messages(self, resource_id: str, limit: int = 100) -> list[Message]:
        """Messages across every thread owned by *resource_id*, newest first."""
        return await self.get_messages(resource_id=resource_id, limit=limit)

    async def clear_messages(self, resource_id: str, conversation_id: str | None = None) -> int:
        """Delete the messages of one thread, or of every thread of *resource_id*.

        Returns the number of messages removed.
        """
        async with self._session() as db:
            if conversation_id:
                cursor = await db.execute(
                    "DELETE FROM messages WHERE conversation_id = ?", (conversation_id,)
                )
            else:
                cursor = await db.execute(
                    """
                    DELETE FROM messages
                    WHERE conversation_id IN (SELECT id FROM conversations WHERE resource_id = ?)
                    """,
                    (resource_id,),
                )
            removed = cursor.rowcount
        await self._emit(
            "clear_messages",
            resource_id=resource_id,
            conversation_id=conversation_id,
            removed=removed,
        )
        return removed

    async def get_conversation_stats(self, conversation_id: str) -> ConversationStats:
        """Message counts and activity window; zeroed for unknown threads."""
        if not conversation_id:
            return ConversationStats()
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT COUNT(*), COALESCE(SUM(CASE WHEN role = 'tool' THEN 1 ELSE 0 END), 0)
                FROM messages WHERE conversation_id = ?
                """,
                (conversation_id,),
            )
            counts = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT created_at, updated_at FROM conversations WHERE id = ?",
                (conversation_id,),
            )
            times = await cursor.fetchone()
        return ConversationStats(
            message_count=int(counts[0]) if counts else 0,
            tool_call_count=int(counts[1]) if counts else 0,
            start_time=times[0] if times else None,
            last_activity=times[1] if times else None,
        )

    # -- Semantic index --------------------------------------------------------

    async def sync_to_vector_index(self, conversation_id: str | None = None) -> int:
        """Replay stored messages into the attached vector index.

        Rebuilds semantic recall after a restart. Without *conversation_id*
        every thread is replayed. Returns the number of messages indexed.
        """
        if self._vector_index is None:
            logger.warning("sync_to_vector_index called without a vector index")
            return 0

        sql = f"SELECT {_MESSAGE_COLUMNS} FROM messages"
        params: tuple = ()
        if conversation_id:
            sql += " WHERE conversation_id = ?"
            params = (conversation_id,)
        sql += " ORDER BY created_at ASC, rowid ASC"

        async with self._session() as db:
            cursor = await db.execute(sql, params)
            rows = await cursor.fetchall()

        indexed = 0
        for row in rows:
            message = _message_from_row(row)
            if await self._index(message.id, message.content, message.role):
                indexed += 1
        logger.info("Synced %d/%d messages to vector index", indexed, len(rows))
        return indexed

    async def search_similar(self, query: str, top_k: int = 5) -> list[VectorItem]:
        """Semantic search over indexed messages (empty without an index)."""
        if self._vector_index is None:
            return []
        return await self._vector_index.search(query, top_k)

    # -- History entries -------------------------------------------------------

    async def add_history_entry(
        self, key: str, value: HistoryValue | dict[str, Any], agent_id: str
    ) -> None:
        """Insert or replace the value of a history entry."""
        payload = _dump_value(value, HistoryValue)
        async with self._session() as db:
            await db.execute(
                """
                INSERT INTO agent_history (key, value, agent_id, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (key) DO UPDATE SET value = excluded.value, agent_id = excluded.agent_id
                """,
                (key, payload, agent_id, _now()),
            )
        await self._emit("add_history_entry", key=key, value=json.loads(payload), agent_id=agent_id)

    async def update_history_entry(
        self, key: str, value: HistoryValue | dict[str, Any], agent_id: str
    ) -> None:
        """Replace the value of an existing history entry.

        Raises:
            NotFoundError: No history entry with *key*.
        """
        payload = _dump_value(value, HistoryValue)
        async with self._session() as db:
            cursor = await db.execute(
                "UPDATE agent_history SET value = ?, agent_id = ? WHERE key = ?",
                (payload, agent_id, key),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("HistoryEntry", key)
        await self._emit(
            "update_history_entry", key=key, value=json.loads(payload), agent_id=agent_id
        )

    async def get_history_entry(self, key: str) -> HistoryEntry | None:
        async with self._session() as db:
            cursor = await db.execute(
                "SELECT key, value, agent_id, created_at FROM agent_history WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
        return _history_from_row(row) if row else None

    async def get_history_entries(self, agent_id: str) -> list[HistoryEntry]:
        """Every history entry of *agent_id*, oldest first."""
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT key, value, agent_id, created_at FROM agent_history
                WHERE agent_id = ? ORDER BY created_at ASC, rowid ASC
                """,
                (agent_id,),
            )
            rows = await cursor.fetchall()
        return [_history_from_row(row) for row in rows]

    async def get_latest_history_entry(self) -> HistoryEntry | None:
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT key, value, agent_id, created_at FROM agent_history
                ORDER BY created_at DESC, rowid DESC LIMIT 1
                """
            )
            row = await cursor.fetchone()
        return _history_from_row(row) if row else None

    async def clear_history(self, agent_id: str | None = None) -> int:
        """Bulk-delete history entries with their steps and timeline events.

        Returns the number of entries removed.
        """
        async with self._session() as db:
            if agent_id:
                owned = "SELECT key FROM agent_history WHERE agent_id = ?"
                await db.execute(
                    f"DELETE FROM agent_history_events WHERE history_id IN ({owned})", (agent_id,)
                )
                await db.execute(
                    f"DELETE FROM agent_history_steps WHERE history_id IN ({owned})", (agent_id,)
                )
                cursor = await db.execute(
                    "DELETE FROM agent_history WHERE agent_id = ?", (agent_id,)
                )
            else:
                await db.execute("DELETE FROM agent_history_events")
                await db.execute("DELETE FROM agent_history_steps")
                cursor = await db.execute("DELETE FROM agent_history")
            removed = cursor.rowcount
        logger.info("Cleared %d history entries", removed)
        await self._emit("clear_history", agent_id=agent_id, removed=removed)
        return removed

    async def _require_history(self, db: _AsyncConnection, history_id: str) -> None:
        cursor = await db.execute("SELECT 1 FROM agent_history WHERE key = ?", (history_id,))
        if not await cursor.fetchone():
            raise NotFoundError("HistoryEntry", history_id)

    # -- History steps ---------------------------------------------------------

    async def add_history_step(
        self,
        key: str,
        value: StepValue | dict[str, Any],
        history_id: str,
        agent_id: str,
    ) -> None:
        """Insert or replace a step of an existing history entry.

        Raises:
            NotFoundError: The owning history entry does not exist.
        """
        payload = _dump_value(value, StepValue)
        async with self._session() as db:
            await self._require_history(db, history_id)
            await db.execute(
                """
                INSERT INTO agent_history_steps (key, value, history_id, agent_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (key) DO UPDATE SET
                    value = excluded.value,
                    history_id = excluded.history_id,
                    agent_id = excluded.agent_id
                """,
                (key, payload, history_id, agent_id, _now()),
            )
        await self._emit(
            "add_history_step",
            key=key,
            value=json.loads(payload),
            history_id=history_id,
            agent_id=agent_id,
        )

    async def update_history_step(
        self,
        key: str,
        value: StepValue | dict[str, Any],
        history_id: str,
        agent_id: str,
    ) -> None:
        """Replace the value of an existing step.

        Raises:
            NotFoundError: No step with *key* under *history_id*.
        """
        payload = _dump_value(value, StepValue)
        async with self._session() as db:
            cursor = await db.execute(
                """
                UPDATE agent_history_steps SET value = ?, agent_id = ?
                WHERE key = ? AND history_id = ?
                """,
                (payload, agent_id, key, history_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("HistoryStep", key)
        await self._emit(
            "update_history_step",
            key=key,
            value=json.loads(payload),
            history_id=history_id,
            agent_id=agent_id,
        )

    async def get_history_step(self, key: str) -> HistoryStep | None:
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT key, value, history_id, agent_id, created_at
                FROM agent_history_steps WHERE key = ?
                """,
                (key,),
            )
            row = await cursor.fetchone()
        return _step_from_row(row) if row else None

    async def get_history_steps(self, history_id: str) -> list[HistoryStep]:
        """Steps of one history entry, oldest first."""
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT key, value, history_id, agent_id, created_at
                FROM agent_history_steps WHERE history_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (history_id,),
            )
            rows = await cursor.fetchall()
        return [_step_from_row(row) for row in rows]

    # -- Timeline events -------------------------------------------------------

    async def add_timeline_event(
        self,
        key: str,
        value: TimelineEventValue | dict[str, Any],
        history_id: str,
        agent_id: str,
    ) -> None:
        """Record a lifecycle event. Re-sending the same *key* overwrites it.

        Raises:
            InvalidEventTypeError: The event name is not a known lifecycle tag.
            NotFoundError: The owning history entry does not exist.
        """
        name = _event_name(value)
        if not isinstance(name, str) or name not in TIMELINE_EVENT_NAMES:
            raise InvalidEventTypeError(name)
        payload = _dump_value(value, TimelineEventValue)

        async with self._session() as db:
            await self._require_history(db, history_id)
            await db.execute(
                """
                INSERT INTO agent_history_events (key, value, history_id, agent_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (key) DO UPDATE SET
                    value = excluded.value,
                    history_id = excluded.history_id,
                    agent_id = excluded.agent_id
                """,
                (key, payload, history_id, agent_id, _now()),
            )
        await self._emit(
            "add_timeline_event",
            key=key,
            value=json.loads(payload),
            history_id=history_id,
            agent_id=agent_id,
        )

    async def get_timeline_event(self, key: str) -> TimelineEvent | None:
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT key, value, history_id, agent_id, created_at
                FROM agent_history_events WHERE key = ?
                """,
                (key,),
            )
            row = await cursor.fetchone()
        return _event_from_row(row) if row else None

    async def get_timeline_events(self, history_id: str) -> list[TimelineEvent]:
        """Events of one history entry in the order they were recorded."""
        async with self._session() as db:
            cursor = await db.execute(
                """
                SELECT key, value, history_id, agent_id, created_at
                FROM agent_history_events WHERE history_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (history_id,),
            )
            rows = await cursor.fetchall()
        return [_event_from_row(row) for row in rows]
