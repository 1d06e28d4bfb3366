"""
Tests for cache-fronted retrieval.
"""

import pytest
from fakes import FakeEmbeddingProvider

from context_cache.entities import RagChunk
from context_cache.repositories import InMemoryQueryCacheStore
from context_cache.services import QueryCacheService, RagCacheManager, RagQueryService

QUERY = "年假政策的詳細規定為何？"
PARAPHRASE = "關於年假的規定"
UNRELATED = "What's the weather like?"

CHUNKS = [
    RagChunk(file_name="leave.md", content="Employees get 14 days of annual leave.", vector=[1.0, 0.0, 0.0]),
    RagChunk(file_name="travel.md", content="Book travel through the portal.", vector=[0.0, 1.0, 0.0]),
]


class BrokenStore(InMemoryQueryCacheStore):
    def list_by_assistant(self, assistant_id):
        raise ConnectionError("cache backend unreachable")


@pytest.fixture
def provider():
    return FakeEmbeddingProvider(
        vectors={
            QUERY: [1.0, 0.0, 0.0],
            PARAPHRASE: [0.98, 0.05, 0.0],
            UNRELATED: [0.0, 0.0, 1.0],
        },
        dimension=3,
    )


@pytest.fixture
def store():
    return InMemoryQueryCacheStore()


@pytest.fixture
def manager(provider, store):
    return RagCacheManager(
        query_cache=QueryCacheService(store),
        rag_service=RagQueryService(provider),
        embedding_provider=provider,
    )


@pytest.mark.asyncio
async def test_miss_then_hit(manager, store):
    first = await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)
    second = await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)

    assert first.from_cache is False
    assert first.retrieval.source == "local"
    assert [c.file_name for c in first.results] == ["leave.md"]
    assert len(store) == 1

    assert second.from_cache is True
    assert second.similarity == pytest.approx(1.0)
    assert second.original_query == QUERY
    assert second.results == first.results
    assert second.retrieval is None


@pytest.mark.asyncio
async def test_paraphrase_served_from_cache(manager, provider):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)
    provider.rerank_calls.clear()

    result = await manager.perform_cached_rag_query(PARAPHRASE, "a1", CHUNKS)

    assert result.from_cache is True
    assert result.original_query == QUERY
    assert 0.9 <= result.similarity < 1.0
    assert provider.rerank_calls == []


@pytest.mark.asyncio
async def test_unrelated_query_misses(manager):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)
    result = await manager.perform_cached_rag_query(UNRELATED, "a1", CHUNKS)

    assert result.from_cache is False


@pytest.mark.asyncio
async def test_cache_is_per_assistant(manager):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)
    result = await manager.perform_cached_rag_query(QUERY, "a2", CHUNKS)

    assert result.from_cache is False


@pytest.mark.asyncio
async def test_per_call_threshold(manager):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)

    strict = await manager.perform_cached_rag_query(PARAPHRASE, "a1", CHUNKS, similarity_threshold=0.9999)

    assert strict.from_cache is False


@pytest.mark.asyncio
async def test_empty_results_not_cached(manager, store):
    result = await manager.perform_cached_rag_query(QUERY, "a1", [])

    assert result.results == []
    assert result.retrieval.source == "empty"
    assert len(store) == 0


@pytest.mark.asyncio
async def test_cache_disabled_skips_store(manager, store):
    first = await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS, enable_cache=False)
    second = await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS, enable_cache=False)

    assert first.from_cache is False
    assert second.from_cache is False
    assert len(store) == 0


@pytest.mark.asyncio
async def test_cache_failure_falls_back_to_direct_retrieval(provider):
    manager = RagCacheManager(
        query_cache=QueryCacheService(BrokenStore()),
        rag_service=RagQueryService(provider),
        embedding_provider=provider,
    )

    result = await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)

    assert result.from_cache is False
    assert [c.file_name for c in result.results] == ["leave.md"]
    assert manager.get_metrics().cache_misses == 1


@pytest.mark.asyncio
async def test_fallback_failure_propagates(manager, provider):
    provider.fail_encode = True

    with pytest.raises(RuntimeError):
        await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)


@pytest.mark.asyncio
async def test_metrics(manager):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)
    await manager.perform_cached_rag_query(UNRELATED, "a1", CHUNKS)

    metrics = manager.get_metrics()
    assert metrics.total_queries == 3
    assert metrics.cache_hits == 1
    assert metrics.cache_misses == 2
    assert metrics.hit_rate == pytest.approx(1 / 3)
    assert metrics.average_query_time >= 0

    manager.reset_metrics()
    assert manager.get_metrics().total_queries == 0
    assert manager.get_metrics().hit_rate == 0.0


@pytest.mark.asyncio
async def test_get_metrics_returns_copy(manager):
    metrics = manager.get_metrics()
    metrics.total_queries = 99

    assert manager.get_metrics().total_queries == 0


@pytest.mark.asyncio
async def test_perform_maintenance(manager, store):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)

    result = await manager.perform_maintenance()

    assert result["expired_entries_deleted"] == 0
    assert result["cache_stats"]["total_entries"] == 1


@pytest.mark.asyncio
async def test_get_cache_stats(manager):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)

    stats = manager.get_cache_stats()

    assert stats["performance_metrics"]["total_queries"] == 1
    assert stats["storage_stats"]["entries_by_assistant"] == {"a1": 1}


@pytest.mark.asyncio
async def test_clear_assistant_cache(manager, store):
    await manager.perform_cached_rag_query(QUERY, "a1", CHUNKS)

    assert manager.clear_assistant_cache("a1") == 1
    assert len(store) == 0


@pytest.mark.asyncio
async def test_warmup_cache(manager, provider):
    assert await manager.warmup_cache([QUERY, PARAPHRASE]) == 2
    assert [text for text, _ in provider.encode_calls] == [QUERY, PARAPHRASE]


@pytest.mark.asyncio
async def test_warmup_cache_logs_failures(manager, provider):
    provider.fail_encode = True
    assert await manager.warmup_cache([QUERY]) == 0


def test_set_similarity_threshold(manager):
    assert manager.set_similarity_threshold(1.7) == 1.0
    assert manager.query_cache.threshold == 1.0


def test_results_to_context_string(manager):
    assert manager.results_to_context_string(CHUNKS[:1]) == "From leave.md:\nEmployees get 14 days of annual leave."
