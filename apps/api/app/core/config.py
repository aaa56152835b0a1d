from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Lux Network Intelligence API"
    environment: str = "dev"
    api_prefix: str = "/v1"

    database_dsn: str = "sqlite:///./luxnetwork.db"
    db_pool_size: int = Field(default=20, ge=1, le=200)
    db_max_overflow: int = Field(default=40, ge=0, le=400)
    db_pool_timeout_seconds: int = Field(default=60, ge=1, le=600)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86400)

    redis_url: str = "redis://redis:6379/0"
    queue_mode: str = "redis"
    queue_retry_max: int = Field(default=2, ge=0, le=10)
    queue_retry_interval_seconds: int = Field(default=60, ge=5, le=3600)
    queue_job_timeout_seconds: int = Field(default=1800, ge=60, le=86400)

    cors_allow_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    log_level: str = "INFO"
    log_json: bool = False

    llm_provider: str = "openai"
    llm_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = Field(default=20.0, ge=1.0, le=300.0)

    scoring_batch_chunk_size: int = Field(default=5, ge=1, le=100)
    discovery_batch_chunk_size: int = Field(default=10, ge=1, le=100)
    batch_pause_seconds: float = Field(default=0.1, ge=0.0, le=10.0)
    batch_max_workers: int = Field(default=10, ge=1, le=64)
    discovery_min_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    discovery_top_k: int = Field(default=5, ge=1, le=50)

    path_default_max_degrees: int = Field(default=4, ge=1, le=6)
    path_default_min_strength: float = Field(default=0.2, ge=0.0, le=1.0)
    path_max_results: int = Field(default=3, ge=1, le=10)

    opportunity_default_limit: int = Field(default=50, ge=1, le=200)
    opportunity_dedup_window_days: int = Field(default=7, ge=1, le=90)
    opportunity_expiry_days: int = Field(default=30, ge=1, le=365)
    introduction_detector_limit: int = Field(default=20, ge=1, le=200)
    reconnection_detector_limit: int = Field(default=20, ge=1, le=200)
    business_match_detector_limit: int = Field(default=50, ge=1, le=500)
    network_gap_detector_limit: int = Field(default=5, ge=1, le=20)
    detector_timeout_seconds: float = Field(default=30.0, ge=1.0, le=600.0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
