"""Base types for the tools agents call to reach conversation memory."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel


@dataclass
class ToolResult:
    """Outcome of one tool call: either ``data`` or an ``error`` message."""

    data: dict[str, Any] | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_content(self) -> str:
        """JSON text handed back to the calling agent.

        Retrieved context is multi-line markdown, so non-ASCII text is kept
        as is rather than escaped.
        """
        payload = {"error": self.error} if self.error else (self.data or {})
        return json.dumps(payload, ensure_ascii=False, default=str)


class ToolParams(BaseModel):
    """Arguments of a tool; its JSON schema becomes the tool's input schema."""


class BaseTool(ABC):
    """A tool that carries state, e.g. the retriever it wraps.

    Subclasses set the class attributes (or assign them in ``__init__``)
    and implement ``execute``::

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
    """

    name: str = ""
    description: str = ""
    category: str = ""
    params_model: type[ToolParams] | None = None

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult: ...
