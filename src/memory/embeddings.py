"""Embedding providers used by the semantic index."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)


class EmbeddingProvider(ABC):
    """Maps text to a fixed-length vector.

    ``load()`` is called before the first ``embed()``. Implementations must
    tolerate repeated calls.
    """

    async def load(self) -> None:  # noqa: B027
        """Prepare the underlying model. No-op by default."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Return the embedding vector for *text*."""
        ...


class SentenceTransformerEmbedder(EmbeddingProvider):
    """Local embeddings via sentence-transformers.

    The model is loaded once on first use. Concurrent first callers wait on
    the same lock instead of loading a second copy.
    """

    def __init__(self, model_name: str | None = None) -> None:
        self._model_name = model_name or settings.embedding_model
        self._model: SentenceTransformer | None = None
        self._load_lock = asyncio.Lock()

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def loaded(self) -> bool:
        return self._model is not None

    async def load(self) -> None:
        if self._model is not None:
            return
        async with self._load_lock:
            if self._model is not None:
                return
            from sentence_transformers import SentenceTransformer

            logger.info("Loading embedding model %s", self._model_name)
            self._model = await asyncio.to_thread(SentenceTransformer, self._model_name)

    async def embed(self, text: str) -> list[float]:
        await self.load()
        model = self._model
        vector = await asyncio.to_thread(
            lambda: model.encode(text, convert_to_numpy=True, show_progress_bar=False)
        )
        return vector.tolist()
