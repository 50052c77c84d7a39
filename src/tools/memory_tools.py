"""Thread management tools.

Tools an agent can call to open, inspect, search and delete conversation
threads in the shared memory runtime.
"""

import uuid

from pydantic import Field

from src.config import settings
from src.memory.runtime import MemoryRuntime
from src.tools.base import ToolParams, ToolResult
from src.tools.registry import registry

# -- start_thread ------------------------------------------------------------


class StartThreadParams(ToolParams):
    resource_id: str = Field(description="Owner of the thread, usually the agent name")
    title: str | None = Field(default=None, description="Optional thread title")


@registry.tool(
    name="start_thread",
    description=(
        "Start a new conversation thread. Use when a new task begins and "
        "previous messages should not be mixed into it."
    ),
    category="memory",
    params_model=StartThreadParams,
)
async def start_thread(resource_id: str, title: str | None = None) -> ToolResult:
    store = MemoryRuntime.get().store
    conversation = await store.create_conversation(
        id=uuid.uuid4().hex,
        resource_id=resource_id,
        title=title or f"{resource_id} conversation",
    )
    return ToolResult(data={"conversation_id": conversation.id, "title": conversation.title})


# -- list_threads ------------------------------------------------------------


class ListThreadsParams(ToolParams):
    resource_id: str = Field(
        default=settings.default_resource_id,
        description="Owner whose threads to list",
    )


@registry.tool(
    name="list_threads",
    description="List conversation threads for an owner, most recently active first.",
    category="memory",
    params_model=ListThreadsParams,
)
async def list_threads(resource_id: str = settings.default_resource_id) -> ToolResult:
    store = MemoryRuntime.get().store
    threads = await store.get_conversations(resource_id)
    return ToolResult(data={
        "threads": [
            {"id": t.id, "title": t.title, "updated_at": t.updated_at}
            for t in threads
        ],
        "count": len(threads),
    })


# -- thread_history ----------------------------------------------------------


class ThreadHistoryParams(ToolParams):
    conversation_id: str = Field(description="Thread ID")
    limit: int = Field(default=20, gt=0, description="Maximum number of messages")


@registry.tool(
    name="thread_history",
    description="Read the most recent messages of a thread in chronological order.",
    category="memory",
    params_model=ThreadHistoryParams,
)
async def thread_history(conversation_id: str, limit: int = 20) -> ToolResult:
    store = MemoryRuntime.get().store
    if await store.get_conversation(conversation_id) is None:
        return ToolResult(error=f"Thread not found: {conversation_id}")

    messages = await store.get_history(conversation_id, limit)
    return ToolResult(data={
        "messages": [
            {"role": m.role, "content": m.content, "created_at": m.created_at}
            for m in messages
        ],
        "count": len(messages),
    })


# -- search_memory -----------------------------------------------------------


class SearchMemoryParams(ToolParams):
    query: str = Field(description="What to search for in previous messages")
    limit: int = Field(default=5, gt=0, description="Maximum number of results")


@registry.tool(
    name="search_memory",
    description=(
        "Semantic search over every stored message. Use when you need to "
        "check whether something was discussed before."
    ),
    category="memory",
    params_model=SearchMemoryParams,
)
async def search_memory(query: str, limit: int = 5) -> ToolResult:
    store = MemoryRuntime.get().store
    items = await store.search_similar(query, limit)
    results = [
        {"id": item.id, "role": item.role, "text": item.text, "created_at": item.created_at}
        for item in items
    ]
    return ToolResult(data={"results": results, "count": len(results)})


# -- delete_thread -----------------------------------------------------------


class DeleteThreadParams(ToolParams):
    conversation_id: str = Field(description="Thread ID to delete")


@registry.tool(
    name="delete_thread",
    description=(
        "Delete a thread and all of its messages. Always confirm with the "
        "user before calling this tool."
    ),
    category="memory",
    params_model=DeleteThreadParams,
)
async def delete_thread(conversation_id: str) -> ToolResult:
    store = MemoryRuntime.get().store
    deleted = await store.delete_conversation(conversation_id)
    if not deleted:
        return ToolResult(error=f"Thread not found: {conversation_id}")
    return ToolResult(data={"deleted": True, "conversation_id": conversation_id})
