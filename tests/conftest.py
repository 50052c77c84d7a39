"""Shared test fixtures."""

import hashlib
import re
from pathlib import Path

import pytest

from src.memory.embeddings import EmbeddingProvider
from src.memory.store import ConversationStore
from src.memory.vector import VectorIndex

_DIMENSIONS = 1024


class HashingEmbedder(EmbeddingProvider):
    """Deterministic bag-of-words embedder: one hashed bucket per word."""

    def __init__(self) -> None:
        self.load_calls = 0
        self.embed_calls = 0

    async def load(self) -> None:
        self.load_calls += 1

    async def embed(self, text: str) -> list[float]:
        self.embed_calls += 1
        vector = [0.0] * _DIMENSIONS
        for word in re.findall(r"[a-z0-9]+", text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % _DIMENSIONS
            vector[bucket] += 1.0
        return vector


class FailingEmbedder(EmbeddingProvider):
    """Embedder whose backend is down."""

    async def embed(self, text: str) -> list[float]:
        msg = "embedding backend unavailable"
        raise RuntimeError(msg)


@pytest.fixture(autouse=False)
def _no_turso(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure tests use local file, not remote Turso."""
    monkeypatch.setattr("src.config.settings.turso_database_url", "")


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def index(embedder: HashingEmbedder) -> VectorIndex:
    return VectorIndex(embedder)


@pytest.fixture
async def store(tmp_path: Path, index: VectorIndex, _no_turso) -> ConversationStore:
    """A ConversationStore backed by a temp database with an attached index."""
    s = ConversationStore(db_path=tmp_path / "test.db", vector_index=index)
    yield s
    await s.close()


@pytest.fixture
def failing_embedder() -> FailingEmbedder:
    return FailingEmbedder()
