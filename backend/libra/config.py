from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "postgresql+asyncpg://localhost/libra"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_database_url(cls, v: str) -> str:
        """Convert a plain postgres:// URL to asyncpg format."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+asyncpg://", 1)
        if v.startswith("postgresql://") and "+asyncpg" not in v:
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    # Redis (Celery broker)
    redis_url: str = "redis://localhost:6379/0"

    # Google OAuth (token refresh only)
    google_client_id: str = ""
    google_client_secret: str = ""

    # API Keys
    anthropic_api_key: str = ""
    fireworks_api_key: str = ""
    serper_api_key: str = ""

    # Completion model
    claude_model: str = "claude-sonnet-4-5-20250929"
    completion_max_tokens: int = 2048
    completion_temperature: float = 0.2

    # Embeddings (any OpenAI-compatible endpoint)
    embedding_base_url: str = "https://api.fireworks.ai/inference/v1"
    embedding_model: str = "nomic-ai/nomic-embed-text-v1.5"
    embedding_dim: int = 768

    # Agent
    agent_default_max_steps: int = 10
    agent_max_steps_limit: int = 20
    tool_timeout_seconds: float = 15.0
    scrape_max_text_length: int = 50_000
    scrape_max_response_bytes: int = 5 * 1024 * 1024  # 5MB of raw page
    chat_history_turns: int = 10

    # Ingestion
    ingest_max_file_bytes: int = 50 * 1024 * 1024  # 50MB
    ingest_embed_batch_size: int = 10  # small batches keep peak memory low
    ingest_memory_limit_bytes: int = 6 * 1024 * 1024 * 1024  # 6GB resident set
    ingest_max_files_limit: int = 200
    ingest_lease_ttl_seconds: int = 1800  # 30 minutes

    # PostHog LLM Analytics
    posthog_api_key: str = ""
    posthog_host: str = "https://us.i.posthog.com"
    posthog_enabled: bool = True

    # Security
    secret_key: str = "dev-secret-key-change-in-production"

    # Frontend
    cors_origins: list[str] = ["http://localhost:3000"]

    # Database pool (API - shorter timeouts for responsive UX)
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800  # 30 minutes
    db_command_timeout: int = 30
    db_statement_timeout_ms: int = 30000  # 30 seconds

    # Celery database (longer timeouts for batch processing)
    celery_db_pool_size: int = 10
    celery_db_max_overflow: int = 15
    celery_db_pool_recycle: int = 3600  # 1 hour
    celery_db_command_timeout: int = 300  # 5 minutes
    celery_db_statement_timeout_ms: int = 300000  # 5 minutes

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
