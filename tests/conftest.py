"""Shared fixtures."""

import pytest
from fakes import GOOD_SUMMARY, FakeChunkIndex, FakeEmbeddingProvider, FakeTextGenerator

from context_cache.repositories import InMemoryChatStore, InMemoryQueryCacheStore
from context_cache.services import (
    CacheConfig,
    ChatCompactorService,
    CompressionConfig,
    QueryCacheService,
    RagCacheManager,
    RagQueryService,
)


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def cache_store():
    return InMemoryQueryCacheStore()


@pytest.fixture
def query_cache(cache_store):
    return QueryCacheService(store=cache_store, config=CacheConfig())


@pytest.fixture
def chunk_index():
    return FakeChunkIndex()


@pytest.fixture
def rag_service(embedding_provider, chunk_index):
    return RagQueryService(embedding_provider=embedding_provider, chunk_index=chunk_index)


@pytest.fixture
def cache_manager(query_cache, rag_service, embedding_provider):
    return RagCacheManager(
        query_cache=query_cache,
        rag_service=rag_service,
        embedding_provider=embedding_provider,
    )


@pytest.fixture
def text_generator():
    return FakeTextGenerator([GOOD_SUMMARY])


@pytest.fixture
def compactor(text_generator):
    return ChatCompactorService(text_generator=text_generator, config=CompressionConfig())


@pytest.fixture
def chat_store():
    return InMemoryChatStore()
