"""Tests for the in-process semantic index."""

import numpy as np
import pytest

from src.memory.errors import ProviderError
from src.memory.store import ConversationStore
from src.memory.vector import VectorIndex, cosine_similarity

pytestmark = pytest.mark.usefixtures("_no_turso")


def test_cosine_similarity_basics() -> None:
    a = np.array([1.0, 0.0])
    assert cosine_similarity(a, a) == pytest.approx(1.0)
    assert cosine_similarity(a, np.array([0.0, 1.0])) == pytest.approx(0.0)
    assert cosine_similarity(a, np.array([-1.0, 0.0])) == pytest.approx(-1.0)


def test_cosine_similarity_zero_vector_is_finite() -> None:
    zero = np.zeros(3)
    assert cosine_similarity(zero, np.array([1.0, 2.0, 3.0])) == 0.0


async def test_search_ranks_related_texts_first(index: VectorIndex) -> None:
    await index.add("1", "apple pie recipe", "user")
    await index.add("2", "database indexing strategies", "user")
    await index.add("3", "apple harvest season", "assistant")

    results = await index.search("apple", top_k=2)

    assert [item.id for item in results] == ["1", "3"]


async def test_search_scores_descending_and_bounded(index: VectorIndex) -> None:
    texts = [
        "python asyncio",
        "python asyncio deploy",
        "deploy api",
        "kubernetes cluster",
        "apple pie",
    ]
    for i, text in enumerate(texts):
        await index.add(str(i), text, "user")

    scored = await index.search_with_scores("python asyncio deploy", top_k=3)

    assert len(scored) == 3
    scores = [score for _, score in scored]
    assert scores == sorted(scores, reverse=True)
    assert scored[0][0].id == "1"
    assert scored[0][1] == pytest.approx(1.0)


async def test_top_k_larger_than_index(index: VectorIndex) -> None:
    await index.add("1", "apple pie", "user")
    assert len(await index.search("apple", top_k=10)) == 1


async def test_non_positive_top_k_returns_nothing(index: VectorIndex) -> None:
    await index.add("1", "apple pie", "user")
    assert await index.search("apple", top_k=0) == []
    assert await index.search("apple", top_k=-1) == []


async def test_blank_query_skips_embedding(index: VectorIndex, embedder) -> None:
    await index.add("1", "apple pie", "user")
    calls = embedder.embed_calls

    assert await index.search("") == []
    assert await index.search("   ") == []
    assert embedder.embed_calls == calls


async def test_empty_index_returns_nothing(index: VectorIndex) -> None:
    assert await index.search("apple") == []


async def test_duplicate_ids_are_separate_entries(index: VectorIndex) -> None:
    await index.add("1", "apple pie", "user")
    await index.add("1", "apple pie", "user")

    assert len(index) == 2
    assert [item.id for item in await index.search("apple")] == ["1", "1"]


async def test_ties_keep_insertion_order(index: VectorIndex) -> None:
    for i in range(4):
        await index.add(f"id{i}", "kubernetes cluster", "user")

    results = await index.search("kubernetes cluster", top_k=4)
    assert [item.id for item in results] == ["id0", "id1", "id2", "id3"]


async def test_add_with_failing_embedder_raises(failing_embedder) -> None:
    idx = VectorIndex(failing_embedder)
    with pytest.raises(ProviderError):
        await idx.add("1", "apple pie", "user")
    assert len(idx) == 0


async def test_search_with_failing_embedder_is_empty(failing_embedder) -> None:
    idx = VectorIndex(failing_embedder)
    assert await idx.search("apple") == []


async def test_get_all_and_clear(index: VectorIndex) -> None:
    await index.add("1", "apple pie", "user")
    await index.add("2", "deploy api", "assistant")

    items = index.get_all()
    assert [(i.id, i.role) for i in items] == [("1", "user"), ("2", "assistant")]
    assert len(items[0].embedding) == 1024

    index.clear()
    assert len(index) == 0
    assert await index.search("apple") == []


# -- Store integration -----------------------------------------------------------


async def test_add_message_indexes_text(store: ConversationStore, index: VectorIndex) -> None:
    await store.create_conversation("c1", "u1", "T")
    message_id = await store.add_message("c1", "user", "apple pie recipe")

    results = await store.search_similar("apple")
    assert [item.id for item in results] == [message_id]
    assert results[0].role == "user"
    assert len(index) == 1


async def test_add_message_survives_embedding_failure(tmp_path, failing_embedder) -> None:
    s = ConversationStore(db_path=tmp_path / "test.db", vector_index=VectorIndex(failing_embedder))
    try:
        await s.create_conversation("c1", "u1", "T")
        await s.add_message("c1", "user", "apple pie recipe")
        assert len(await s.get_messages(conversation_id="c1")) == 1
    finally:
        await s.close()


async def test_sync_rebuilds_index_after_restart(tmp_path, embedder) -> None:
    db_path = tmp_path / "test.db"
    first = ConversationStore(db_path=db_path)
    await first.create_conversation("c1", "u1", "T")
    await first.create_conversation("c2", "u1", "Other")
    await first.add_message("c1", "user", "apple pie recipe")
    await first.add_message("c1", "assistant", "database indexing strategies")
    await first.add_message("c2", "user", "apple harvest season")
    await first.close()

    fresh = VectorIndex(embedder)
    second = ConversationStore(db_path=db_path, vector_index=fresh)
    try:
        assert await second.search_similar("apple") == []
        assert await second.sync_to_vector_index("c1") == 2
        assert len(fresh) == 2

        fresh.clear()
        assert await second.sync_to_vector_index() == 3
        results = await second.search_similar("apple", top_k=2)
        assert {item.text for item in results} == {"apple pie recipe", "apple harvest season"}
    finally:
        await second.close()


async def test_sync_without_index_is_noop(tmp_path) -> None:
    s = ConversationStore(db_path=tmp_path / "test.db")
    try:
        assert await s.sync_to_vector_index() == 0
        assert await s.search_similar("apple") == []
    finally:
        await s.close()
