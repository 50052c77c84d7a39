"""MemoryRuntime: wires the store, embedder, vector index and retrievers.

The runtime is constructed explicitly and owns every shared resource. Call
``init()`` before serving traffic and ``close()`` on shutdown. Tools reach the
process-wide instance through ``MemoryRuntime.get()``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.memory.embeddings import EmbeddingProvider, SentenceTransformerEmbedder
from src.memory.store import ConversationStore
from src.memory.summarizer import create_summarization_processor
from src.memory.vector import VectorIndex
from src.retrieval.domains import create_domain_retrievers
from src.retrieval.supervisor import SupervisorRetriever

if TYPE_CHECKING:
    from pathlib import Path

    from src.retrieval.retriever import ContextRetriever

logger = logging.getLogger(__name__)


class MemoryRuntime:
    """Composition root for the memory layer.

    Singleton accessed via ``MemoryRuntime.get()``. Pass an explicit
    *db_path* and *embedder* for test isolation.
    """

    _instance: MemoryRuntime | None = None

    def __init__(
        self,
        db_path: Path | None = None,
        embedder: EmbeddingProvider | None = None,
        *,
        summarization: bool | None = None,
    ) -> None:
        self.embedder = embedder or SentenceTransformerEmbedder()
        self.index = VectorIndex(self.embedder)
        self.store = ConversationStore(db_path=db_path, vector_index=self.index)
        self.retrievers: dict[str, ContextRetriever] = create_domain_retrievers(
            self.store, self.index
        )
        self.supervisor = SupervisorRetriever(self.store, self.index)

        enabled = settings.summarization_enabled if summarization is None else summarization
        if enabled:
            self.store.register_processor(create_summarization_processor(self.store))

    @classmethod
    def get(cls) -> MemoryRuntime:
        """Return the shared MemoryRuntime instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    def all_retrievers(self) -> list[ContextRetriever]:
        """Domain retrievers followed by the supervisor retriever."""
        return [*self.retrievers.values(), self.supervisor]

    async def init(self, *, rehydrate: bool = False) -> None:
        """Open the store and load the embedding model.

        With *rehydrate*, stored messages are replayed into the vector index.
        """
        await self.store.init()
        await self.embedder.load()
        if rehydrate:
            await self.store.sync_to_vector_index()
        logger.info("Memory runtime ready (%d indexed items)", len(self.index))

    async def close(self) -> None:
        await self.store.close()
