"""
Configuration management for the SOV tracker
Environment-based settings with local defaults
"""

from functools import lru_cache
from typing import Dict, List, Optional, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "sovtrack"
    APP_ENV: str = "development"  # development, staging, production
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_VERSION: str = "v1"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    WORKERS: int = 4

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./sovtrack.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 10

    # Redis (snapshot lock backend)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    CELERY_WORKER_CONCURRENCY: int = 4

    # AI provider
    AI_PROVIDER: str = "openai"  # openai, anthropic
    OPENAI_API_KEY: Optional[str] = None
    ANTHROPIC_API_KEY: Optional[str] = None
    OPENAI_DEFAULT_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_DEFAULT_MODEL: str = "claude-3-5-haiku-20241022"
    LLM_DEFAULT_TEMPERATURE: float = 0.7
    LLM_DEFAULT_MAX_TOKENS: int = 1500

    # Prompt runner
    PROMPT_TIMEOUT_SECONDS: float = 60.0
    PROMPT_BATCH_DEADLINE_SECONDS: float = 300.0
    PROMPT_MAX_CONCURRENCY: int = 5

    # Snapshot writes
    SNAPSHOT_LOCK_BACKEND: str = "local"  # local, redis
    SNAPSHOT_LOCK_TIMEOUT_SECONDS: float = 10.0
    SNAPSHOT_WRITE_MAX_RETRIES: int = 3
    SNAPSHOT_WRITE_BACKOFF_SECONDS: float = 0.5

    # Blog scoring
    PAGE_FETCH_TIMEOUT_SECONDS: float = 30.0
    PAGE_TEXT_MAX_CHARS: int = 5000
    GEO_EVALUATION_TEMPERATURE: float = 0.1

    # Scheduling
    DEFAULT_ANALYSIS_FREQUENCY_DAYS: int = 7
    SCHEDULE_CHECK_INTERVAL_SECONDS: float = 3600.0

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"

    @field_validator("SNAPSHOT_LOCK_BACKEND")
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        if v not in ("local", "redis"):
            raise ValueError("SNAPSHOT_LOCK_BACKEND must be 'local' or 'redis'")
        return v

    @field_validator("PROMPT_MAX_CONCURRENCY")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("PROMPT_MAX_CONCURRENCY must be at least 1")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader"""
    return Settings()


# GEO rubric weights (percent, sum to 100)
GEO_FACTOR_WEIGHTS: Dict[str, int] = {
    "Content Structure & Answer Format": 30,
    "Relevance & Accuracy": 25,
    "User Experience": 20,
    "Technical SEO": 15,
    "Content Depth": 10,
}

# Canonical readiness buckets: (lower bound inclusive, label), highest first
READINESS_THRESHOLDS: List[Tuple[float, str]] = [
    (8.5, "Excellent"),
    (7.0, "Strong"),
    (5.5, "Moderate"),
    (4.0, "Poor"),
    (0.0, "Critical"),
]

# Factors scoring below this get a recommendation
GEO_RECOMMENDATION_CUTOFF = 7.0
GEO_MAX_RECOMMENDATIONS = 5
