"""Tests for the tool registry."""

import pytest
from pydantic import Field

from src.memory.store import ConversationStore
from src.tools import registry as global_registry
from src.tools.base import BaseTool, ToolParams, ToolResult
from src.tools.registry import ToolRegistry, ToolTrace

# -- Fixtures ----------------------------------------------------------------


@pytest.fixture
def reg() -> ToolRegistry:
    """Fresh registry for each test."""
    return ToolRegistry()


# -- Decorator registration --------------------------------------------------


def test_register_via_decorator(reg: ToolRegistry) -> None:
    @reg.tool(name="count_threads", description="Count threads", category="memory")
    async def count_threads() -> ToolResult:
        return ToolResult(data={"count": 0})

    assert "count_threads" in reg.tool_names
    assert reg.get("count_threads").category == "memory"


def test_decorator_rejects_sync_function(reg: ToolRegistry) -> None:
    with pytest.raises(TypeError, match="must be an async function"):

        @reg.tool(name="bad", description="Bad", category="memory")
        def bad() -> ToolResult:
            return ToolResult()


def test_reregistering_replaces_tool(reg: ToolRegistry) -> None:
    @reg.tool(name="lookup", description="v1", category="memory")
    async def v1() -> ToolResult:
        return ToolResult()

    @reg.tool(name="lookup", description="v2", category="memory")
    async def v2() -> ToolResult:
        return ToolResult()

    assert reg.tool_names == ["lookup"]
    assert reg.get("lookup").description == "v2"


# -- Class-based registration ------------------------------------------------


def test_register_class_based_tool(reg: ToolRegistry) -> None:
    class IndexSizeTool(BaseTool):
        name = "index_size"
        description = "Report the vector index size"
        category = "retrieval"

        async def execute(self, **kwargs) -> ToolResult:
            return ToolResult(data={"size": 3})

    reg.register(IndexSizeTool())
    assert "index_size" in reg.tool_names
    assert reg.get("index_size").description == "Report the vector index size"


@pytest.mark.usefixtures("_no_turso")
async def test_class_based_tool_holding_store(reg: ToolRegistry, store: ConversationStore) -> None:
    class CountParams(ToolParams):
        resource_id: str = Field(description="Owning agent")

    class ThreadCountTool(BaseTool):
        name = "count_threads"
        description = "Count threads owned by an agent"
        category = "memory"
        params_model = CountParams

        def __init__(self, store: ConversationStore) -> None:
            self.store = store

        async def execute(self, resource_id: str) -> ToolResult:
            threads = await self.store.get_conversations(resource_id)
            return ToolResult(data={"count": len(threads)})

    await store.create_conversation("c1", "developer", "T")
    await store.create_conversation("c2", "developer", "U")
    reg.register(ThreadCountTool(store))

    result = await reg.execute("count_threads", {"resource_id": "developer"})
    assert result.data == {"count": 2}


# -- Schema generation -------------------------------------------------------


def test_get_schemas_no_params(reg: ToolRegistry) -> None:
    @reg.tool(name="index_stats", description="Index statistics", category="retrieval")
    async def index_stats() -> ToolResult:
        return ToolResult()

    schemas = reg.get_schemas()
    assert len(schemas) == 1
    assert schemas[0]["name"] == "index_stats"
    assert schemas[0]["input_schema"] == {"type": "object", "properties": {}}


def test_get_schemas_with_params(reg: ToolRegistry) -> None:
    class Params(ToolParams):
        query: str = Field(description="Search query")
        top_k: int = Field(default=5, description="Max results")

    @reg.tool(
        name="search",
        description="Search memory",
        category="retrieval",
        params_model=Params,
    )
    async def search(query: str, top_k: int = 5) -> ToolResult:
        return ToolResult()

    schema = reg.get_schemas()[0]["input_schema"]
    assert schema["properties"]["query"]["type"] == "string"
    assert schema["properties"]["top_k"]["type"] == "integer"
    assert schema["required"] == ["query"]


# -- Execution ---------------------------------------------------------------


async def test_execute_with_params(reg: ToolRegistry) -> None:
    class WindowParams(ToolParams):
        conversation_id: str = Field(description="Thread")
        limit: int = Field(default=10, description="Window")

    @reg.tool(name="window", description="Window", category="memory", params_model=WindowParams)
    async def window(conversation_id: str, limit: int = 10) -> ToolResult:
        return ToolResult(data={"thread": conversation_id, "limit": limit})

    result = await reg.execute("window", {"conversation_id": "c1"})
    assert result.success
    assert result.data == {"thread": "c1", "limit": 10}


async def test_execute_unknown_tool(reg: ToolRegistry) -> None:
    result = await reg.execute("nonexistent", {})
    assert not result.success
    assert "Unknown tool" in result.error


async def test_execute_with_invalid_params(reg: ToolRegistry) -> None:
    class Params(ToolParams):
        limit: int = Field(description="A number")

    @reg.tool(name="strict", description="Strict", category="memory", params_model=Params)
    async def strict(limit: int) -> ToolResult:
        return ToolResult(data={"limit": limit})

    result = await reg.execute("strict", {"limit": "many"})
    assert not result.success


async def test_execute_handler_exception(reg: ToolRegistry) -> None:
    @reg.tool(name="boom", description="Boom", category="memory")
    async def boom() -> ToolResult:
        msg = "database is locked"
        raise RuntimeError(msg)

    result = await reg.execute("boom", {})
    assert not result.success
    assert "failed" in result.error


# -- Categories --------------------------------------------------------------


def test_tools_by_category(reg: ToolRegistry) -> None:
    for name, category in (("a", "memory"), ("b", "retrieval"), ("c", "memory")):

        @reg.tool(name=name, description=name, category=category)
        async def handler() -> ToolResult:
            return ToolResult()

    groups = reg.get_tools_by_category()
    assert [t.name for t in groups["memory"]] == ["a", "c"]
    assert [t.name for t in groups["retrieval"]] == ["b"]


def test_global_registry_has_thread_tools() -> None:
    memory_tools = {t.name for t in global_registry.get_tools_by_category()["memory"]}
    assert {
        "start_thread",
        "list_threads",
        "thread_history",
        "search_memory",
        "delete_thread",
    } <= memory_tools


# -- Tracing -----------------------------------------------------------------


@pytest.mark.usefixtures("_no_turso")
async def test_execute_records_timeline_events(reg: ToolRegistry, store: ConversationStore) -> None:
    await store.add_history_entry("h1", {"status": "running"}, "developer")
    trace = ToolTrace(store, "h1", "developer")

    @reg.tool(name="ok", description="Ok", category="memory")
    async def ok() -> ToolResult:
        return ToolResult(data={"count": 2})

    @reg.tool(name="boom", description="Boom", category="memory")
    async def boom() -> ToolResult:
        msg = "database is locked"
        raise RuntimeError(msg)

    await reg.execute("ok", {}, trace)
    await reg.execute("boom", {}, trace)

    events = [e.value for e in await store.get_timeline_events("h1")]
    assert [e.name for e in events] == ["tool:start", "tool:success", "tool:start", "tool:error"]
    assert events[1].output == {"count": 2}
    assert events[1].metadata["tool"] == "ok"
    assert "boom" in events[3].error


@pytest.mark.usefixtures("_no_turso")
async def test_trace_failure_does_not_fail_tool(reg: ToolRegistry, store: ConversationStore) -> None:
    trace = ToolTrace(store, "missing-entry", "developer")

    @reg.tool(name="ok", description="Ok", category="memory")
    async def ok() -> ToolResult:
        return ToolResult(data={})

    result = await reg.execute("ok", {}, trace)

    assert result.success
    assert await store.get_timeline_events("missing-entry") == []


# -- ToolResult serialization ------------------------------------------------


def test_tool_result_success_serialization() -> None:
    r = ToolResult(data={"context": "USER: hi"})
    assert r.success
    assert r.to_content() == '{"context": "USER: hi"}'


def test_tool_result_error_serialization() -> None:
    r = ToolResult(error="Context retrieval timed out after 10s")
    assert not r.success
    assert r.to_content() == '{"error": "Context retrieval timed out after 10s"}'
