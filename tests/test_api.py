"""
Tests for the context cache API.
"""

import pytest
from fakes import GOOD_SUMMARY, FakeChunkIndex, FakeEmbeddingProvider, FakeTextGenerator, make_messages
from fastapi.testclient import TestClient

from context_cache.api.app import API_NAME, create_app
from context_cache.api.dependencies import Components, make_lifespan
from context_cache.config import Settings
from context_cache.entities import ChatSession
from context_cache.repositories import InMemoryChatStore, InMemoryQueryCacheStore
from context_cache.services import (
    CacheConfig,
    ChatCompactorService,
    ChatSessionService,
    QueryCacheService,
    RagCacheManager,
    RagQueryService,
)

QUERY = "How many days of annual leave do I get?"

CHUNKS = [
    {"file_name": "leave.md", "content": "Employees get 14 days of annual leave.", "vector": [1.0, 0.0, 0.0]},
    {"file_name": "travel.md", "content": "Book travel through the portal.", "vector": [0.0, 1.0, 0.0]},
]


@pytest.fixture
def chat_store():
    store = InMemoryChatStore()
    store.save_session(ChatSession(id="s1", assistant_id="a1", created_at=0, messages=make_messages(12)))
    return store


@pytest.fixture
def embedding_provider():
    return FakeEmbeddingProvider(vectors={QUERY: [1.0, 0.0, 0.0]}, dimension=3)


@pytest.fixture
def chunk_index():
    return FakeChunkIndex()


@pytest.fixture
def components(chat_store, embedding_provider, chunk_index):
    config = CacheConfig(auto_maintenance=False)
    query_cache = QueryCacheService(store=InMemoryQueryCacheStore(), config=config)
    cache_manager = RagCacheManager(
        query_cache=query_cache,
        rag_service=RagQueryService(embedding_provider, chunk_index),
        embedding_provider=embedding_provider,
    )
    compactor = ChatCompactorService(FakeTextGenerator([GOOD_SUMMARY]))
    return Components(
        embedding_provider=embedding_provider,
        cache_manager=cache_manager,
        compactor=compactor,
        session_service=ChatSessionService(chat_store, compactor),
    )


@pytest.fixture
def client(components):
    """Create a test client backed by in-memory components."""
    app = create_app(make_lifespan(builder=lambda settings: components, settings=Settings()))
    with TestClient(app) as test_client:
        yield test_client


def query(client, **overrides):
    payload = {"query": QUERY, "assistant_id": "a1", "rag_chunks": CHUNKS, **overrides}
    return client.post("/rag/query", json=payload)


def test_root(client):
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == API_NAME
    assert data["endpoints"]["rag"] == "/rag/query"


def test_health(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["cache_healthy"] is True
    assert data["embedding_healthy"] is True


def test_health_reports_unavailable_embeddings(client, embedding_provider):
    embedding_provider.available = False

    data = client.get("/health").json()

    assert data["status"] == "unhealthy"
    assert data["embedding_healthy"] is False


def test_rag_query_miss_then_hit(client):
    """Test that a repeated query is served from the cache."""
    first = query(client)
    assert first.status_code == 200
    data = first.json()
    assert data["from_cache"] is False
    assert data["source"] == "local"
    assert [r["file_name"] for r in data["results"]] == ["leave.md"]
    assert data["context"] == "From leave.md:\nEmployees get 14 days of annual leave."

    second = query(client).json()
    assert second["from_cache"] is True
    assert second["similarity"] == pytest.approx(1.0)
    assert second["original_query"] == QUERY
    assert second["results"] == data["results"]


def test_rag_query_validation(client):
    response = client.post("/rag/query", json={"query": "", "assistant_id": "a1"})
    assert response.status_code == 422

    response = query(client, similarity_threshold=1.5)
    assert response.status_code == 422


def test_rag_query_failure_returns_500(client, embedding_provider):
    embedding_provider.fail_encode = True

    response = query(client)

    assert response.status_code == 500


def test_threshold(client):
    """Test get and set threshold endpoints."""
    response = client.get("/cache/threshold")
    assert response.status_code == 200
    assert response.json()["threshold"] == 0.9

    response = client.post("/cache/threshold", json={"threshold": 0.75})
    assert response.status_code == 200
    assert response.json()["threshold"] == 0.75
    assert client.get("/cache/threshold").json()["threshold"] == 0.75

    assert client.post("/cache/threshold", json={"threshold": 2}).status_code == 422


def test_metrics_and_reset(client):
    query(client)
    query(client)

    metrics = client.get("/cache/metrics").json()
    assert metrics["total_queries"] == 2
    assert metrics["cache_hits"] == 1
    assert metrics["hit_rate"] == pytest.approx(0.5)

    assert client.post("/cache/metrics/reset").status_code == 200
    assert client.get("/cache/metrics").json()["total_queries"] == 0


def test_stats(client):
    """Test get stats endpoint."""
    query(client)

    response = client.get("/cache/stats")

    assert response.status_code == 200
    data = response.json()
    assert data["performance_metrics"]["total_queries"] == 1
    assert data["storage_stats"]["total_entries"] == 1


def test_clear_assistant_cache(client):
    query(client)

    response = client.delete("/cache/a1")

    assert response.status_code == 200
    assert response.json()["deleted_count"] == 1
    assert query(client).json()["from_cache"] is False


def test_maintenance(client):
    query(client)

    response = client.post("/cache/maintenance")

    assert response.status_code == 200
    data = response.json()
    assert data["expired_entries_deleted"] == 0
    assert data["cache_stats"]["total_entries"] == 1


def test_record_exchange_compacts(client, chat_store):
    response = client.post(
        "/sessions/s1/exchange",
        json={"user_message": "And sick leave?", "model_response": "Ten days."},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["message_count"] == 4
    assert data["compact_context"]["content"] == GOOD_SUMMARY
    assert data["compact_context"]["compressed_from_rounds"] == 11
    assert data["last_compaction_at"] is not None
    assert chat_store.get_session("s1").compact_context is not None


def test_record_exchange_unknown_session(client):
    response = client.post(
        "/sessions/missing/exchange",
        json={"user_message": "hi", "model_response": "hello"},
    )
    assert response.status_code == 404


@pytest.mark.parametrize("rounds,expected", [(12, False), (13, True)])
def test_should_trigger(client, rounds, expected):
    response = client.post("/compaction/should-trigger", json={"total_rounds": rounds})

    assert response.status_code == 200
    assert response.json() == {"should_trigger": expected, "threshold": 12}


def test_lifespan_starts_maintenance(components):
    components.cache_manager = RagCacheManager(
        query_cache=components.cache_manager.query_cache,
        rag_service=RagQueryService(components.embedding_provider),
        embedding_provider=components.embedding_provider,
        config=CacheConfig(auto_maintenance=True, maintenance_interval_seconds=3600),
    )
    app = create_app(make_lifespan(builder=lambda settings: components, settings=Settings()))

    with TestClient(app):
        task = app.state.maintenance_task
        assert task.is_running

    assert not task.is_running
    assert not hasattr(app.state, "cache_handler")
    assert not hasattr(app.state, "assistant_handler")


def create_assistant(client, **overrides):
    payload = {"name": "HR", "system_prompt": "You are HR.", **overrides}
    response = client.post("/assistants", json=payload)
    assert response.status_code == 200
    return response.json()


def test_assistant_and_session_lifecycle(client, chunk_index):
    assistant = create_assistant(
        client,
        description="People team",
        rag_chunks=[{"file_name": "leave.md", "content": "Employees get 14 days of annual leave."}],
    )
    assistant_id = assistant["id"]
    assert assistant["chunk_count"] == 1
    assert len(chunk_index.chunks[assistant_id][0].vector) == 3
    assert client.get(f"/assistants/{assistant_id}").json()["description"] == "People team"
    assert [a["id"] for a in client.get("/assistants").json()] == [assistant_id]

    response = client.post(f"/assistants/{assistant_id}/sessions", json={})
    assert response.status_code == 200
    session = response.json()
    assert session["message_count"] == 0
    assert session["compact_context"] is None

    exchanged = client.post(
        f"/sessions/{session['id']}/exchange",
        json={"user_message": "Leave policy?", "model_response": "14 days."},
    ).json()
    assert exchanged["title"] == "Leave policy?"
    assert exchanged["message_count"] == 2
    assert client.get(f"/sessions/{session['id']}").json()["message_count"] == 2
    assert [s["id"] for s in client.get(f"/assistants/{assistant_id}/sessions").json()] == [session["id"]]

    assert client.delete(f"/sessions/{session['id']}").status_code == 200
    assert client.get(f"/sessions/{session['id']}").status_code == 404

    response = client.delete(f"/assistants/{assistant_id}")
    assert response.status_code == 200
    assert response.json()["deleted_chunks"] == 1
    assert client.get(f"/assistants/{assistant_id}").status_code == 404
    assert assistant_id not in chunk_index.chunks


def test_ingesting_chunks_clears_cached_queries(client, chunk_index):
    assistant_id = create_assistant(client)["id"]
    query(client, assistant_id=assistant_id)
    assert query(client, assistant_id=assistant_id).json()["from_cache"] is True

    response = client.post(
        f"/assistants/{assistant_id}/chunks",
        json={"chunks": [{"file_name": "sick.md", "content": "Sick leave is ten days."}]},
    )

    assert response.status_code == 200
    assert response.json() == {"assistant_id": assistant_id, "indexed_count": 1, "total_chunks": 1}
    assert len(chunk_index.chunks[assistant_id]) == 1
    assert query(client, assistant_id=assistant_id).json()["from_cache"] is False


def test_deleting_assistant_clears_its_cache(client):
    assistant_id = create_assistant(client)["id"]
    query(client, assistant_id=assistant_id)

    data = client.delete(f"/assistants/{assistant_id}").json()

    assert data["deleted_cache_entries"] == 1
    assert data["deleted_chunks"] == 0


def test_unknown_assistant_returns_404(client):
    assert client.get("/assistants/missing").status_code == 404
    assert client.delete("/assistants/missing").status_code == 404
    assert client.post("/assistants/missing/sessions", json={}).status_code == 404
    assert client.get("/assistants/missing/sessions").status_code == 404
    response = client.post("/assistants/missing/chunks", json={"chunks": [{"file_name": "a.md", "content": "A"}]})
    assert response.status_code == 404
    assert client.delete("/sessions/missing").status_code == 404


def test_create_assistant_validation(client):
    assert client.post("/assistants", json={"name": "", "system_prompt": "p"}).status_code == 422
    assert client.post("/assistants/a1/chunks", json={"chunks": []}).status_code == 422
