"""Supervisor retriever: domain retrieval plus each sub-agent's latest thread."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.retrieval.domains import SUPERVISOR_PROFILE
from src.retrieval.retriever import ContextRetriever

if TYPE_CHECKING:
    from src.memory.store import ConversationStore
    from src.memory.vector import VectorIndex

logger = logging.getLogger(__name__)


class SupervisorRetriever(ContextRetriever):
    """Adds a "Sub-Agent: <name>" section per sub-agent with recent activity.

    A sub-agent whose thread cannot be read is skipped; the rest of the
    aggregation still returns.
    """

    def __init__(
        self,
        store: ConversationStore,
        index: VectorIndex,
        subagent_names: list[str] | None = None,
        *,
        subagent_window: int | None = None,
        **kwargs,
    ) -> None:
        super().__init__(SUPERVISOR_PROFILE, store, index, **kwargs)
        self._subagent_names = (
            settings.get_subagent_names() if subagent_names is None else list(subagent_names)
        )
        self._subagent_window = subagent_window or settings.subagent_context_window

    @property
    def subagent_names(self) -> list[str]:
        return list(self._subagent_names)

    async def _extra_sections(self, query: str) -> list[str]:  # noqa: ARG002
        blocks = []
        for name in self._subagent_names:
            block = await self._subagent_block(name)
            if block:
                blocks.append(block)
        if not blocks:
            return []
        return ["## Sub-Agent Activity:\n\n" + "".join(blocks)]

    async def _subagent_block(self, name: str) -> str:
        try:
            threads = await self._store.get_conversations(name)
            if not threads:
                return ""
            latest = threads[0]
            history = await self._store.get_history(latest.id, self._subagent_window)
        except Exception:
            logger.warning("Skipping sub-agent %s: thread could not be read", name, exc_info=True)
            return ""
        if not history:
            return ""
        lines = "\n".join(f"{m.role.upper()}: {m.content}" for m in history)
        return f"### Sub-Agent: {name}\n*Thread: {latest.title or latest.id}*\n{lines}\n\n"
