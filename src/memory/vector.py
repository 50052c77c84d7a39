"""In-process semantic index with brute-force cosine similarity search.

Every search scores all stored items (O(n·d)). The index is not persisted;
``ConversationStore.sync_to_vector_index()`` rebuilds it from stored
messages after a restart.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import numpy as np

from src.memory.errors import ProviderError
from src.memory.models import VectorItem

if TYPE_CHECKING:
    from src.memory.embeddings import EmbeddingProvider

logger = logging.getLogger(__name__)

_EPSILON = 1e-8


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Cosine similarity with a small epsilon guarding zero-length vectors."""
    return float(np.dot(a, b) / (np.linalg.norm(a) * np.linalg.norm(b) + _EPSILON))


class VectorIndex:
    """Append-only list of embedded texts.

    Re-adding an ID stores a second entry; ranking is by similarity only.
    Ties keep insertion order.
    """

    def __init__(self, embedder: EmbeddingProvider) -> None:
        self._embedder = embedder
        self._items: list[VectorItem] = []
        self._vectors: list[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._items)

    # -- Write ---------------------------------------------------------------

    async def add(self, id: str, text: str, role: str) -> VectorItem:  # noqa: A002
        """Embed *text* and append it to the index.

        Raises:
            ProviderError: The embedding provider failed.
        """
        try:
            embedding = await self._embedder.embed(text)
        except Exception as exc:
            msg = f"Failed to embed item {id}"
            raise ProviderError(msg) from exc

        item = VectorItem(
            id=id,
            text=text,
            role=role,
            embedding=list(embedding),
            created_at=datetime.now(UTC).isoformat(),
        )
        self._items.append(item)
        self._vectors.append(np.asarray(embedding, dtype=np.float64))
        logger.debug("Indexed %s item %s (%d total)", role, id, len(self._items))
        return item

    # -- Read ----------------------------------------------------------------

    async def search(self, query: str, top_k: int = 5) -> list[VectorItem]:
        """Return up to *top_k* items most similar to *query*.

        Returns an empty list for a blank query, an empty index, or an
        embedding failure.
        """
        return [item for item, _ in await self.search_with_scores(query, top_k)]

    async def search_with_scores(
        self, query: str, top_k: int = 5
    ) -> list[tuple[VectorItem, float]]:
        """Like ``search`` but pairs each item with its similarity score."""
        if not isinstance(query, str) or not query.strip():
            logger.warning("Vector search skipped: empty query")
            return []
        if top_k <= 0 or not self._items:
            return []

        try:
            query_vector = np.asarray(await self._embedder.embed(query.strip()), dtype=np.float64)
            matrix = np.vstack(self._vectors)
            norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
            scores = matrix @ query_vector / (norms + _EPSILON)
        except Exception:
            logger.exception("Vector search failed")
            return []

        order = np.argsort(-scores, kind="stable")[:top_k]
        return [(self._items[i], float(scores[i])) for i in order]

    def get_all(self) -> list[VectorItem]:
        """All indexed items in insertion order (diagnostics)."""
        return list(self._items)

    def clear(self) -> None:
        """Drop every item. Used before a full rehydration."""
        self._items.clear()
        self._vectors.clear()
