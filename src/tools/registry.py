"""Tool registry: catalog of the memory and retrieval tools agents can call.

Execution can be traced: pass a ``ToolTrace`` and each call is recorded as
``tool:start`` followed by ``tool:success`` or ``tool:error`` timeline events
under the caller's history entry.
"""

from __future__ import annotations

import inspect
import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from src.tools.base import BaseTool, ToolParams, ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.memory.store import ConversationStore

logger = logging.getLogger(__name__)


@dataclass
class ToolDef:
    """A registered tool: its schema-facing metadata and async handler."""

    name: str
    description: str
    category: str
    handler: Callable[..., Awaitable[ToolResult]]
    params_model: type[ToolParams] | None = None


@dataclass
class ToolTrace:
    """Where to record timeline events for one agent execution."""

    store: ConversationStore
    history_id: str
    agent_id: str

    async def record(self, name: str, **fields: Any) -> None:
        """Write one event. Tracing failures never fail the tool call."""
        try:
            await self.store.add_timeline_event(
                uuid.uuid4().hex, {"name": name, **fields}, self.history_id, self.agent_id
            )
        except Exception:
            logger.warning("Could not record %s for %s", name, self.history_id, exc_info=True)


class ToolRegistry:
    """Maps tool names to handlers.

    Stateless tools register with the ``tool()`` decorator::

        @registry.tool(name="list_threads", description="...", category="memory")
        async def list_threads(resource_id: str) -> ToolResult: ...

    Tools holding state (a retriever, a timeout) subclass ``BaseTool`` and
    are added with ``register()``. Registering an existing name replaces it.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDef] = {}

    def tool(
        self,
        *,
        name: str,
        description: str,
        category: str,
        params_model: type[ToolParams] | None = None,
    ) -> Callable:
        """Decorator registering an async function under *name*."""

        def decorator(fn: Callable[..., Awaitable[ToolResult]]) -> Callable:
            if not inspect.iscoroutinefunction(fn):
                msg = f"Tool handler '{name}' must be an async function"
                raise TypeError(msg)
            self._add(ToolDef(name, description, category, fn, params_model))
            return fn

        return decorator

    def register(self, tool_instance: BaseTool) -> None:
        self._add(
            ToolDef(
                name=tool_instance.name,
                description=tool_instance.description,
                category=tool_instance.category,
                handler=tool_instance.execute,
                params_model=tool_instance.params_model,
            )
        )

    def _add(self, tool_def: ToolDef) -> None:
        if tool_def.name in self._tools:
            logger.debug("Replacing tool %s", tool_def.name)
        self._tools[tool_def.name] = tool_def

    def get(self, name: str) -> ToolDef | None:
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        return list(self._tools)

    def get_schemas(self) -> list[dict[str, Any]]:
        """Tool definitions in the ``name``/``description``/``input_schema`` shape."""
        return [
            {
                "name": t.name,
                "description": t.description,
                "input_schema": (
                    t.params_model.model_json_schema()
                    if t.params_model is not None
                    else {"type": "object", "properties": {}}
                ),
            }
            for t in self._tools.values()
        ]

    def get_tools_by_category(self) -> dict[str, list[ToolDef]]:
        groups: dict[str, list[ToolDef]] = {}
        for tool_def in self._tools.values():
            groups.setdefault(tool_def.category, []).append(tool_def)
        return groups

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        trace: ToolTrace | None = None,
    ) -> ToolResult:
        """Validate *arguments* and run the named tool.

        Never raises: unknown tools, invalid arguments and handler
        exceptions all come back as an error ``ToolResult``.
        """
        tool_def = self._tools.get(name)
        if tool_def is None:
            return ToolResult(error=f"Unknown tool: {name}")

        logger.info("Tool '%s' called with %s", name, arguments)
        if trace is not None:
            await trace.record("tool:start", input=arguments, metadata={"tool": name})

        t0 = time.monotonic()
        try:
            if tool_def.params_model is not None:
                kwargs = tool_def.params_model(**arguments).model_dump()
            else:
                kwargs = dict(arguments)
            result = await tool_def.handler(**kwargs)
        except Exception:
            logger.exception("Tool '%s' failed in %.2fs", name, time.monotonic() - t0)
            result = ToolResult(error=f"Tool '{name}' failed. Check logs for details.")

        elapsed = time.monotonic() - t0
        if result.success:
            logger.info("Tool '%s' succeeded in %.2fs", name, elapsed)
        else:
            logger.warning("Tool '%s' returned error in %.2fs: %s", name, elapsed, result.error)

        if trace is not None:
            metadata = {"tool": name, "elapsed": round(elapsed, 3)}
            if result.success:
                await trace.record("tool:success", output=result.data, metadata=metadata)
            else:
                await trace.record("tool:error", error=result.error, metadata=metadata)
        return result


# Shared registry; tool modules register into it on import.
registry = ToolRegistry()
