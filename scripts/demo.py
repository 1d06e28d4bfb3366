#!/usr/bin/env python3
"""
Demo script for the context cache.

Runs cached retrieval against in-memory stores with the local embedding
model, then shows when conversation compaction kicks in. Set
OPENAI_API_KEY to also run a real compaction.
"""

import asyncio
import time

from context_cache import (
    ChatCompactorService,
    ChatSessionService,
    CompressionConfig,
    QueryCacheService,
    RagCacheManager,
    RagQueryService,
)
from context_cache.config import get_settings
from context_cache.entities import MODEL_ROLE, USER_ROLE, ChatMessage, ChatSession, RagChunk
from context_cache.repositories import (
    InMemoryChatStore,
    InMemoryQueryCacheStore,
    LocalEmbeddingProvider,
    OpenAITextGenerator,
)

DOCUMENTS = [
    ("leave.md", "Full-time employees receive 14 days of paid annual leave per calendar year."),
    ("leave.md", "Unused annual leave can be carried over for up to three months."),
    ("expenses.md", "Travel expenses must be submitted within 30 days with original receipts."),
    ("security.md", "Laptops must be locked whenever they are left unattended."),
]


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def demo_cached_retrieval(provider: LocalEmbeddingProvider) -> None:
    """Demonstrate cache misses, paraphrase hits and tenant isolation."""
    print_section("Cached Retrieval")

    vectors = provider.encode_batch([content for _, content in DOCUMENTS])
    chunks = [
        RagChunk(file_name=name, content=content, vector=vector, chunk_index=i)
        for i, ((name, content), vector) in enumerate(zip(DOCUMENTS, vectors))
    ]

    manager = RagCacheManager(
        query_cache=QueryCacheService(InMemoryQueryCacheStore()),
        rag_service=RagQueryService(provider),
        embedding_provider=provider,
    )

    queries = [
        ("hr", "How many days of annual leave do I get?"),
        ("hr", "How many annual leave days do I get?"),
        ("hr", "Can I carry over unused leave?"),
        ("it", "How many days of annual leave do I get?"),
    ]

    for assistant_id, query in queries:
        result = await manager.perform_cached_rag_query(query, assistant_id, chunks)
        print(f"\n  [{assistant_id}] {query}")
        if result.from_cache:
            print(f"  ✓ CACHE HIT ({result.similarity:.2%} similar to '{result.original_query}')")
        else:
            print("  ✗ Cache miss, full retrieval")
        print(f"  Time: {result.query_time_ms:.2f}ms")
        for chunk in result.results:
            print(f"    - {chunk.file_name}: {chunk.content[:60]}")

    metrics = manager.get_metrics()
    print(f"\n📊 {metrics.total_queries} queries, hit rate {metrics.hit_rate:.2%}")


async def demo_compaction() -> None:
    """Demonstrate the compaction trigger and, with an API key, a real compaction."""
    print_section("Conversation Compaction")

    settings = get_settings()
    if not settings.openai_api_key:
        print("\n  OPENAI_API_KEY not set, showing the trigger only")
        config = CompressionConfig.from_settings(settings)
        threshold = config.trigger_rounds + config.preserve_last_rounds
        print(f"  Sessions are compacted once they exceed {threshold} rounds,")
        print(f"  keeping the last {config.preserve_last_rounds} rounds verbatim")
        return

    generator = OpenAITextGenerator.create(settings)
    compactor = ChatCompactorService(generator)
    store = InMemoryChatStore()
    sessions = ChatSessionService(store, compactor)

    messages = []
    for i in range(1, 13):
        messages.append(ChatMessage(role=USER_ROLE, content=f"Question {i} about the leave policy"))
        messages.append(ChatMessage(role=MODEL_ROLE, content=f"Answer {i}: employees get 14 days."))
    store.save_session(ChatSession(id="demo", assistant_id="hr", created_at=int(time.time() * 1000), messages=messages))

    print("\n📝 Recording the 13th exchange...")
    session = await sessions.record_exchange("demo", "What about sick leave?", "Sick leave is 10 days.")
    await generator.close()

    if session.compact_context is None:
        print("  ✗ Compaction failed, full history kept")
        return

    print(f"  ✓ Compacted {session.compact_context.compressed_from_rounds} rounds")
    print(f"  Messages kept verbatim: {len(session.messages)}")
    print(f"  Summary ({session.compact_context.token_count} tokens):")
    print(session.compact_context.content)


async def run() -> None:
    settings = get_settings()
    provider = LocalEmbeddingProvider.create(settings)
    print(f"\n📊 Embedding model: {provider.model_name} ({provider.dimension} dims)")

    await demo_cached_retrieval(provider)
    await demo_compaction()


def main() -> None:
    """Run all demos."""
    print("\n🚀 Context Cache Demo")
    print("=" * 70)

    try:
        asyncio.run(run())

        print("\n" + "=" * 70)
        print("✅ Demo completed successfully!")
        print("=" * 70)

    except Exception as e:
        print(f"\n❌ Error: {e}")
        print("\nMake sure the embedding model can be downloaded,")
        print("or set EMBEDDING_MODEL to a model available locally.")


if __name__ == "__main__":
    main()
