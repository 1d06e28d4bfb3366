import os
from dataclasses import dataclass
from functools import lru_cache

import redis
from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")
    cache_index_name: str = os.getenv("CACHE_INDEX_NAME", "context_cache")

    # Query cache
    cache_similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.9"))
    cache_max_entries_per_assistant: int = int(os.getenv("CACHE_MAX_ENTRIES_PER_ASSISTANT", "1000"))
    cache_expiration_days: int = int(os.getenv("CACHE_EXPIRATION_DAYS", "30"))
    cache_auto_maintenance: bool = os.getenv("CACHE_AUTO_MAINTENANCE", "true").lower() == "true"
    cache_maintenance_interval: float = float(os.getenv("CACHE_MAINTENANCE_INTERVAL", "86400"))  # 24 hours

    # Compaction
    compaction_target_tokens: int = int(os.getenv("COMPACTION_TARGET_TOKENS", "2000"))
    compaction_trigger_rounds: int = int(os.getenv("COMPACTION_TRIGGER_ROUNDS", "10"))
    compaction_preserve_last_rounds: int = int(os.getenv("COMPACTION_PRESERVE_LAST_ROUNDS", "2"))
    compaction_max_retries: int = int(os.getenv("COMPACTION_MAX_RETRIES", "1"))
    compaction_model: str = os.getenv("COMPACTION_MODEL", "gpt-4o-mini")
    compaction_version: str = os.getenv("COMPACTION_VERSION", "1.0")

    # Embedding: "local" (sentence-transformers) or "ollama"
    embedding_provider: str = os.getenv("EMBEDDING_PROVIDER", "local")
    embedding_model: str = os.getenv(
        "EMBEDDING_MODEL",
        "paraphrase-multilingual-MiniLM-L12-v2"  # or "google/embeddinggemma-300m" or "embeddinggemma"
    )
    reranker_model: str = os.getenv("RERANKER_MODEL", "jinaai/jina-reranker-v2-base-multilingual")

    # Ollama
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")

    # OpenAI-compatible text generation
    openai_api_key: str | None = os.getenv("OPENAI_API_KEY")
    openai_base_url: str | None = os.getenv("OPENAI_BASE_URL")

    # Upper bound for a single embedding, retrieval or summarization call
    collaborator_timeout: float = float(os.getenv("COLLABORATOR_TIMEOUT", "60"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"

    @property
    def uses_ollama(self) -> bool:
        """Check if embeddings are served through a local Ollama instance.

        Returns:
            True if EMBEDDING_PROVIDER is "ollama", False otherwise
        """
        return self.embedding_provider.lower() == "ollama"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        if self.embedding_provider.lower() not in ["local", "ollama"]:
            raise ValueError(
                f"EMBEDDING_PROVIDER must be one of ['local', 'ollama'], "
                f"got {self.embedding_provider}"
            )

        if not 0 <= self.cache_similarity_threshold <= 1:
            raise ValueError("CACHE_SIMILARITY_THRESHOLD must be between 0 and 1 for cosine similarity")

        if self.cache_max_entries_per_assistant < 1:
            raise ValueError("CACHE_MAX_ENTRIES_PER_ASSISTANT must be at least 1")

        if self.cache_expiration_days < 1:
            raise ValueError("CACHE_EXPIRATION_DAYS must be at least 1")

        if self.compaction_max_retries < 0:
            raise ValueError(f"COMPACTION_MAX_RETRIES must be >= 0, got {self.compaction_max_retries}")

        if self.collaborator_timeout <= 0:
            raise ValueError("COLLABORATOR_TIMEOUT must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def get_redis_client(settings: Settings) -> redis.Redis:
    """Create a Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=False,
    )
