"""Context retrieval: semantic recall merged with recent thread history.

One ``ContextRetriever`` implements the algorithm; the calling domains
(code, research, …) only differ in the ``RetrieverProfile`` they pass in.

Retrieval never raises. ``retrieve_result()`` returns a ``RetrievalResult``
whose status tells "found", "empty", "no_query" and "error" apart;
``retrieve()`` returns just its prompt-ready text.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from src.config import settings
from src.memory.store import NO_CONTEXT

if TYPE_CHECKING:
    from src.memory.models import VectorItem
    from src.memory.store import ConversationStore
    from src.memory.vector import VectorIndex

logger = logging.getLogger(__name__)

NO_QUERY = "No search query provided."

RetrievalStatus = Literal["found", "empty", "no_query", "error"]


@dataclass(frozen=True)
class RetrieverProfile:
    """Naming surfaced to the calling agent for one retrieval domain.

    Attributes:
        domain: Short key, e.g. ``"code"`` or ``"data-analysis"``.
        tool_name: Tool name the agent calls, e.g. ``"search_code_context"``.
        description: Tool description shown to the agent.
        label: Noun used in sentinel and error strings ("code context").
        previous_heading: Heading of the semantic-recall section.
        recent_heading: Heading of the recent-thread section.
    """

    domain: str
    tool_name: str
    description: str
    label: str
    previous_heading: str = "Relevant Previous Discussions"
    recent_heading: str = "Recent Conversation Context"

    @property
    def no_context_message(self) -> str:
        return f"No relevant {self.label} context found in conversation history or vector memory."


@dataclass
class RetrievalResult:
    """Outcome of one retrieval call."""

    status: RetrievalStatus
    text: str
    error: str | None = None
    items: list[VectorItem] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status in ("found", "empty")

    @property
    def found(self) -> bool:
        return self.status == "found"


# -- Query extraction ----------------------------------------------------------


def _flatten_content(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, Sequence):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, Mapping):
                if part.get("type") == "text":
                    parts.append(str(part.get("text") or ""))
            elif getattr(part, "type", None) == "text":
                # SDK content blocks, e.g. anthropic TextBlock
                parts.append(str(getattr(part, "text", "") or ""))
        return " ".join(parts)
    return json.dumps(content, default=str)


def extract_query(query: Any) -> str:
    """Resolve the query text from a string or a sequence of turns.

    For a sequence, the last turn's content is used; structured content is
    flattened by joining its text parts.

    Raises:
        TypeError: *query* is neither a string nor a sequence of turns.
    """
    if query is None:
        return ""
    if isinstance(query, str):
        return query
    if isinstance(query, Sequence):
        if not query:
            return ""
        last = query[-1]
        content = last.get("content") if isinstance(last, Mapping) else getattr(last, "content", last)
        return _flatten_content(content)
    msg = f"Unsupported query type: {type(query).__name__}"
    raise TypeError(msg)


# -- Retriever -----------------------------------------------------------------


class ContextRetriever:
    """Builds a context blob from the vector index and the current thread."""

    def __init__(
        self,
        profile: RetrieverProfile,
        store: ConversationStore,
        index: VectorIndex,
        *,
        top_k: int | None = None,
        recent_window: int | None = None,
    ) -> None:
        self.profile = profile
        self._store = store
        self._index = index
        self._top_k = top_k or settings.vector_search_top_k
        self._recent_window = recent_window or settings.recent_context_window

    @property
    def tool_name(self) -> str:
        return self.profile.tool_name

    @property
    def description(self) -> str:
        return self.profile.description

    async def retrieve(self, query: Any, conversation_id: str | None = None) -> str:
        """Return prompt-ready context text. Never raises."""
        result = await self.retrieve_result(query, conversation_id)
        return result.text

    async def retrieve_result(
        self, query: Any, conversation_id: str | None = None
    ) -> RetrievalResult:
        """Run retrieval and report the outcome as a ``RetrievalResult``."""
        try:
            text = extract_query(query)
            if not text.strip():
                return RetrievalResult(status="no_query", text=NO_QUERY)

            logger.info("%s: searching context for %r", self.profile.tool_name, text[:80])
            items = await self._index.search(text, self._top_k)
            sections = [self._format_previous(items)] if items else []
            if conversation_id:
                recent = await self._recent_section(conversation_id)
                if recent:
                    sections.append(recent)
            sections.extend(await self._extra_sections(text))
        except Exception as exc:
            logger.exception("%s: retrieval failed", self.profile.tool_name)
            return RetrievalResult(
                status="error",
                text=f"Error retrieving {self.profile.label} context: {exc}",
                error=str(exc),
            )

        if not sections:
            return RetrievalResult(status="empty", text=self.profile.no_context_message)
        return RetrievalResult(status="found", text="".join(sections), items=items)

    # -- Sections --------------------------------------------------------------

    def _format_previous(self, items: list[VectorItem]) -> str:
        lines = [f"## {self.profile.previous_heading}:\n\n"]
        for i, item in enumerate(items, start=1):
            lines.append(f"### Context {i} ({item.role}):\n")
            lines.append(f"{item.text}\n")
            lines.append(f"*Created: {item.created_at}*\n\n")
        return "".join(lines)

    async def _recent_section(self, conversation_id: str) -> str:
        recent = await self._store.get_recent_context(conversation_id, self._recent_window)
        if not recent or recent == NO_CONTEXT:
            return ""
        return f"## {self.profile.recent_heading}:\n\n{recent}\n\n"

    async def _extra_sections(self, query: str) -> list[str]:  # noqa: ARG002
        """Hook for specializations that add sections after the base two."""
        return []
