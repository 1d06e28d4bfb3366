"""
Tests for the semantic query cache.
"""

import pytest

from context_cache.entities import RagChunk
from context_cache.repositories import InMemoryQueryCacheStore
from context_cache.services import CacheConfig, QueryCacheService
from context_cache.services.query_cache_service import MS_PER_DAY, now_ms

RESULTS = [RagChunk(file_name="policy.md", content="Refunds within 30 days.")]

VEC_A = [1.0, 0.0, 0.0]
VEC_B = [0.0, 1.0, 0.0]


def test_identical_embedding_hits(query_cache):
    query_cache.store("What is the refund policy?", VEC_A, RESULTS, "a1")

    match = query_cache.lookup(VEC_A, "a1")

    assert match is not None
    assert match.similarity == pytest.approx(1.0)
    assert match.entry.query_text == "What is the refund policy?"
    assert match.entry.stored_results == RESULTS


def test_threshold_one_still_hits_identical_embedding(cache_store):
    cache = QueryCacheService(cache_store, CacheConfig(similarity_threshold=1.0))
    embedding = [0.1, 0.2, 0.3, 0.4]
    cache.store("q", embedding, RESULTS, "a1")

    assert cache.lookup(embedding, "a1") is not None


def test_orthogonal_embedding_misses(query_cache):
    query_cache.store("q", VEC_A, RESULTS, "a1")
    assert query_cache.lookup(VEC_B, "a1") is None


def test_lookup_is_tenant_isolated(query_cache):
    query_cache.store("q", VEC_A, RESULTS, "a1")
    assert query_cache.lookup(VEC_A, "a2") is None


def test_lookup_returns_best_match_not_first(query_cache):
    query_cache.store("close", [1.0, 0.1, 0.0], RESULTS, "a1")
    query_cache.store("exact", VEC_A, RESULTS, "a1")
    query_cache.store("closer", [1.0, 0.05, 0.0], RESULTS, "a1")

    match = query_cache.lookup(VEC_A, "a1")

    assert match.entry.query_text == "exact"


def test_threshold_override(query_cache):
    query_cache.store("q", [1.0, 1.0, 0.0], RESULTS, "a1")

    # cos = 0.707
    assert query_cache.lookup(VEC_A, "a1") is None
    assert query_cache.lookup(VEC_A, "a1", threshold=0.7) is not None


def test_hit_updates_statistics(query_cache, cache_store):
    entry = query_cache.store("q", VEC_A, RESULTS, "a1")
    cache_store.put(_with_access_time(cache_store.get(entry.id), 1000))

    query_cache.lookup(VEC_A, "a1")
    query_cache.lookup(VEC_A, "a1")

    stored = cache_store.get(entry.id)
    assert stored.hit_count == 2
    assert stored.last_access_time > 1000


def test_miss_does_not_touch_entries(query_cache, cache_store):
    entry = query_cache.store("q", VEC_A, RESULTS, "a1")
    query_cache.lookup(VEC_B, "a1")

    assert cache_store.get(entry.id).hit_count == 0


def test_store_assigns_unique_ids(query_cache):
    first = query_cache.store("q", VEC_A, RESULTS, "a1")
    second = query_cache.store("q", VEC_A, RESULTS, "a1")

    assert first.id != second.id
    assert first.hit_count == 0
    assert first.timestamp == first.last_access_time


def test_store_enforces_per_assistant_cap():
    store = InMemoryQueryCacheStore()
    cache = QueryCacheService(store, CacheConfig(max_entries_per_assistant=2))

    for i in range(3):
        entry = cache.store(f"q{i}", VEC_A, RESULTS, "a1")
        store.put(_with_access_time(store.get(entry.id), 1000 + i))
    cache.store("other tenant", VEC_A, RESULTS, "a2")

    remaining = sorted(e.query_text for e in store.list_by_assistant("a1"))
    assert remaining == ["q1", "q2"]
    assert len(store.list_by_assistant("a2")) == 1


def test_enforce_cache_limit_evicts_least_recently_accessed(query_cache, cache_store):
    for i in range(5):
        entry = query_cache.store(f"q{i}", VEC_A, RESULTS, "a1")
        cache_store.put(_with_access_time(cache_store.get(entry.id), 1000 + i))

    deleted = query_cache.enforce_cache_limit("a1", max_entries=3)

    assert deleted == 2
    assert sorted(e.query_text for e in cache_store.list_by_assistant("a1")) == ["q2", "q3", "q4"]


def test_enforce_cache_limit_is_idempotent(query_cache):
    for i in range(5):
        query_cache.store(f"q{i}", VEC_A, RESULTS, "a1")

    assert query_cache.enforce_cache_limit("a1", max_entries=3) == 2
    assert query_cache.enforce_cache_limit("a1", max_entries=3) == 0


def test_expire_deletes_by_last_access_time(query_cache, cache_store):
    old = query_cache.store("old", VEC_A, RESULTS, "a1")
    fresh = query_cache.store("fresh", VEC_B, RESULTS, "a2")
    cache_store.put(_with_access_time(cache_store.get(old.id), now_ms() - 31 * MS_PER_DAY))

    deleted = query_cache.expire()

    assert deleted == 1
    assert cache_store.get(old.id) is None
    assert cache_store.get(fresh.id) is not None


def test_expire_with_custom_age(query_cache, cache_store):
    entry = query_cache.store("q", VEC_A, RESULTS, "a1")
    cache_store.put(_with_access_time(cache_store.get(entry.id), now_ms() - 10_000))

    assert query_cache.cleanup_expired_cache(max_age_ms=60_000) == 0
    assert query_cache.cleanup_expired_cache(max_age_ms=5_000) == 1


def test_clear_assistant_cache(query_cache, cache_store):
    query_cache.store("q1", VEC_A, RESULTS, "a1")
    query_cache.store("q2", VEC_B, RESULTS, "a1")
    query_cache.store("q3", VEC_A, RESULTS, "a2")

    assert query_cache.clear_assistant_cache("a1") == 2
    assert cache_store.list_by_assistant("a1") == []
    assert len(cache_store.list_by_assistant("a2")) == 1


def test_cache_stats(query_cache):
    empty = query_cache.get_cache_stats()
    assert empty["total_entries"] == 0
    assert empty["oldest_entry"] is None

    query_cache.store("q1", VEC_A, RESULTS, "a1")
    query_cache.store("q2", VEC_B, RESULTS, "a1")
    query_cache.store("q3", VEC_A, RESULTS, "a2")

    stats = query_cache.get_cache_stats()
    assert stats["total_entries"] == 3
    assert stats["entries_by_assistant"] == {"a1": 2, "a2": 1}
    assert stats["oldest_entry"] <= stats["newest_entry"]


@pytest.mark.parametrize("value,expected", [(0.5, 0.5), (1.5, 1.0), (-0.2, 0.0)])
def test_set_similarity_threshold_clamps(query_cache, value, expected):
    query_cache.set_similarity_threshold(value)
    assert query_cache.threshold == expected


@pytest.mark.parametrize(
    "kwargs",
    [
        {"similarity_threshold": 1.1},
        {"max_entries_per_assistant": 0},
        {"expiration_days": 0},
        {"maintenance_interval_seconds": 0},
    ],
)
def test_cache_config_validation(kwargs):
    with pytest.raises(ValueError):
        CacheConfig(**kwargs)


def test_method_aliases():
    assert QueryCacheService.search_similar_query is QueryCacheService.lookup
    assert QueryCacheService.cache_query_result is QueryCacheService.store


def _with_access_time(entry, last_access_time):
    entry.last_access_time = last_access_time
    return entry


def test_zero_similarity_never_hits(cache_store):
    cache = QueryCacheService(cache_store, CacheConfig(similarity_threshold=0.0))
    entry = cache.store("q", VEC_A, RESULTS, "a1")

    assert cache.lookup([0.0, 0.0, 0.0], "a1") is None
    assert cache.lookup(VEC_B, "a1") is None
    assert cache_store.get(entry.id).hit_count == 0


def test_threshold_zero_still_matches_positive_similarity(cache_store):
    cache = QueryCacheService(cache_store, CacheConfig(similarity_threshold=0.0))
    cache.store("q", [1.0, 1.0, 0.0], RESULTS, "a1")

    match = cache.lookup(VEC_A, "a1")

    assert match is not None
    assert match.similarity == pytest.approx(0.7071, abs=1e-4)
