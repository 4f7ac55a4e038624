"""Application configuration and environment-driven settings.

Defines the Settings class based on pydantic-settings to centralize configuration for:
- API keys, model names and provider timeouts
- The vector store backend (PostgreSQL/pgvector or in-memory)
- Ingestion parameters (chunking, embedding batches, per-document locking)
- Retrieval/answering knobs (threshold, top-k, topic sampling, history window)
- Supported industries and the topic catalog
- Logging and tracing
"""
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed application settings loaded from environment variables.

    Uses pydantic-settings to populate fields from a .env file or process env.
    See individual field names for semantics and safe defaults.
    """
    # Required
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")

    # Models
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_CLASSIFIER_MODEL: str = "gpt-4o-mini"
    OPENAI_EMBEDDING_MODEL: str = "text-embedding-3-small"  # 1536 dims
    OPENAI_TIMEOUT_SECONDS: float = 30.0

    # Data stores
    DATABASE_URL: str = "postgresql+psycopg2://rag_user:rag_pass@db:5432/rag_db"
    VECTOR_STORE: str = Field(default="pgvector", description="pgvector | memory")

    # Locking of concurrent ingestion of the same document
    LOCK_BACKEND: str = Field(default="local", description="local | redis")
    REDIS_URL: str = "redis://redis:6379/0"
    LOCK_TIMEOUT_SECONDS: int = 600

    # Ingestion
    CHUNK_SIZE: int = 1000
    CHUNK_OVERLAP: int = 200
    EMBEDDING_BATCH_SIZE: int = 50
    EMBEDDING_BATCH_DELAY_SECONDS: float = 0.1

    # Retrieval/Generation
    SIMILARITY_THRESHOLD: float = Field(default=0.5, ge=0.0, le=1.0)
    TOP_K: int = 5
    TOPIC_SAMPLE_SIZE: int = 3
    MAX_OUTPUT_TOKENS: int = 500
    HISTORY_MAX_TURNS: int = 10

    # Industries
    INDUSTRIES: str = "Finance,Education,Healthcare"
    DEFAULT_INDUSTRY: str = "Finance"
    TOPIC_CATALOG_PATH: str = ""

    # Observability
    LOG_LEVEL: str = "INFO"
    OTEL_CONSOLE_EXPORT: bool = False

    # Derived
    @property
    def EMBEDDING_DIM(self) -> int:
        """Embedding dimension for the configured embedding model.

        Returns:
            int: The vector dimension inferred from OPENAI_EMBEDDING_MODEL.
        """
        model = self.OPENAI_EMBEDDING_MODEL.lower()
        if "text-embedding-3-large" in model:
            return 3072
        # text-embedding-3-small and ada-002 both use 1536
        return 1536

    @property
    def industry_list(self) -> List[str]:
        """Supported industries parsed from the comma-separated INDUSTRIES value."""
        return [i.strip() for i in self.INDUSTRIES.split(",") if i.strip()]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)


settings = Settings()
