"""Environment-based configuration for the lead intake service."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Lead intake settings, loaded from environment variables."""

    # Server
    PORT: int = 8092
    LOG_LEVEL: str = "INFO"

    # LLM connection (empty key = extraction unavailable, local dev default)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE: float = 0.3

    # LLM timeouts
    LLM_TIMEOUT_SECONDS: int = 60
    LLM_CONNECT_TIMEOUT: int = 10

    # Extraction retry (1s, 2s, ... between attempts)
    EXTRACTION_RETRY_ATTEMPTS: int = 3
    EXTRACTION_RETRY_DELAY: float = 1.0
    EXTRACTION_RETRY_BACKOFF: float = 2.0

    # Batch rate limiting
    BATCH_SIZE: int = 5
    BATCH_DELAY_SECONDS: float = 1.0
    MAX_BATCH_ITEMS: int = 50

    # PostgreSQL (empty = in-memory contact store)
    DATABASE_URL: str = ""
    DB_POOL_MIN: int = 1
    DB_POOL_MAX: int = 5

    model_config = {"env_prefix": "", "case_sensitive": True}


settings = Settings()
