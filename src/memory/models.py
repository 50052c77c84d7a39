"""Data models for conversation memory and agent execution history."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

MessageRole = Literal["user", "assistant", "system", "tool"]

MESSAGE_ROLES: frozenset[str] = frozenset(get_args(MessageRole))

TimelineEventName = Literal[
    "tool:start",
    "tool:success",
    "tool:error",
    "agent:start",
    "agent:success",
    "agent:error",
    "memory:read:start",
    "memory:read:success",
    "memory:read:error",
    "memory:write:start",
    "memory:write:success",
    "memory:write:error",
    "retriever:start",
    "retriever:success",
    "retriever:error",
]

TIMELINE_EVENT_NAMES: frozenset[str] = frozenset(get_args(TimelineEventName))


# -- Threads -----------------------------------------------------------------


class Conversation(BaseModel):
    """A thread owned by a resource (agent name or user identifier)."""

    id: str
    resource_id: str
    title: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str


class Message(BaseModel):
    """A single conversation turn. Immutable once written."""

    id: str
    conversation_id: str
    role: MessageRole
    content: str
    created_at: str


class MessageFilter(BaseModel):
    """Filter for ``ConversationStore.get_messages``.

    ``conversation_id`` narrows further than ``resource_id`` when both are
    given. ``before``/``after`` are exclusive bounds on ``created_at``.
    """

    conversation_id: str | None = None
    resource_id: str | None = None
    role: MessageRole | None = None
    before: datetime | None = None
    after: datetime | None = None
    limit: int = Field(default=50, gt=0)


class ConversationStats(BaseModel):
    """Aggregate statistics for one thread."""

    message_count: int = 0
    tool_call_count: int = 0
    start_time: str | None = None
    last_activity: str | None = None


# -- Agent execution history -------------------------------------------------


class HistoryValue(BaseModel):
    """Value of a history entry. Known keys are typed, others pass through."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    conversation_id: str | None = None
    status: str | None = None
    input: Any = None
    output: Any = None


class StepValue(BaseModel):
    """Value of one step within a history entry."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    type: str | None = None
    name: str | None = None
    content: Any = None


class TimelineEventValue(BaseModel):
    """An immutable lifecycle audit record.

    ``name`` is the event tag (``"tool:start"``, ``"memory:read:error"``, …).
    ``type`` and ``status`` are derived from it when omitted.
    """

    model_config = ConfigDict(extra="allow")

    name: TimelineEventName
    type: str = ""
    status: str = ""
    input: Any = None
    output: Any = None
    error: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        parts = self.name.split(":")
        if not self.type:
            self.type = parts[0]
        if not self.status:
            self.status = parts[-1]


class HistoryEntry(BaseModel):
    """One agent execution episode."""

    key: str
    agent_id: str
    value: HistoryValue
    created_at: str


class HistoryStep(BaseModel):
    """One step of an execution episode."""

    key: str
    history_id: str
    agent_id: str
    value: StepValue
    created_at: str


class TimelineEvent(BaseModel):
    """A stored timeline event."""

    key: str
    history_id: str
    agent_id: str
    value: TimelineEventValue
    created_at: str


# -- Observers ---------------------------------------------------------------


@dataclass
class MemoryEvent:
    """Descriptor handed to memory processors after a mutation."""

    type: str
    data: dict[str, Any] = field(default_factory=dict)


# -- Semantic index ----------------------------------------------------------


@dataclass
class VectorItem:
    """An entry in the in-process semantic index."""

    id: str
    text: str
    role: str
    embedding: list[float]
    created_at: str
