"""Expose context retrievers as agent tools.

Each call races the retrieval against a timer. When the timer wins, the
tool returns an error result and the retrieval keeps running in the
background; its result is discarded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from pydantic import Field

from src.config import settings
from src.tools.base import BaseTool, ToolParams, ToolResult
from src.tools.registry import registry as default_registry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from src.retrieval.retriever import ContextRetriever, RetrievalResult
    from src.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class RetrieveParams(ToolParams):
    query: str = Field(description="What to look for in previous conversations")
    conversation_id: str | None = Field(
        default=None,
        description="Thread ID whose recent messages should be included. Omit for none.",
    )


class RetrieverTool(BaseTool):
    """Wraps one ``ContextRetriever`` as a tool."""

    category = "retrieval"
    params_model = RetrieveParams

    def __init__(self, retriever: ContextRetriever, timeout: float | None = None) -> None:
        self.retriever = retriever
        self.name = retriever.tool_name
        self.description = retriever.description
        self.timeout = settings.retriever_timeout_seconds if timeout is None else timeout
        self._abandoned: set[asyncio.Task] = set()

    async def execute(self, query: str, conversation_id: str | None = None) -> ToolResult:
        task = asyncio.ensure_future(self.retriever.retrieve_result(query, conversation_id))
        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if not done:
            logger.warning("%s timed out after %.1fs", self.name, self.timeout)
            self._abandoned.add(task)
            task.add_done_callback(self._forget)
            return ToolResult(error=f"Context retrieval timed out after {self.timeout:g}s")
        return _to_tool_result(task.result())

    def _forget(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Abandoned retrieval in %s failed: %s", self.name, task.exception())


def _to_tool_result(result: RetrievalResult) -> ToolResult:
    if result.status == "error":
        return ToolResult(error=result.text)
    return ToolResult(
        data={
            "status": result.status,
            "context": result.text,
            "count": len(result.items),
        }
    )


def register_retriever_tools(
    retrievers: Iterable[ContextRetriever],
    registry: ToolRegistry | None = None,
    timeout: float | None = None,
) -> list[str]:
    """Register one tool per retriever. Returns the registered tool names."""
    target = registry or default_registry
    names = []
    for retriever in retrievers:
        tool = RetrieverTool(retriever, timeout=timeout)
        target.register(tool)
        names.append(tool.name)
    logger.info("Registered %d retriever tools", len(names))
    return names
