"""
Configuration settings for sketchbench.

Uses Pydantic Settings to load environment variables for the Postgres and Redis
connections, logging, corpus tokenization, and benchmark/sketch parameters.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Postgres (exact store)
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("postgres", alias="DB_PASSWORD")
    db_name: str = Field("postgres", alias="DB_NAME")

    # Redis Stack (sketch store)
    redis_host: str = Field("localhost", alias="REDIS_HOST")
    redis_port: int = Field(6379, alias="REDIS_PORT")
    redis_db: int = Field(0, alias="REDIS_DB")
    redis_password: Optional[str] = Field(None, alias="REDIS_PASSWORD")
    redis_max_connections: int = Field(16, alias="REDIS_MAX_CONNECTIONS")
    redis_socket_timeout: float = Field(25.0, alias="REDIS_SOCKET_TIMEOUT")

    # Application
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")
    connect_attempts: int = Field(3, alias="CONNECT_ATTEMPTS")

    # Corpus
    corpus_path: str = Field("data/moby-dick.txt", alias="CORPUS_PATH")
    corpus_split_right_double_quote: bool = Field(
        True, alias="CORPUS_SPLIT_RIGHT_DOUBLE_QUOTE"
    )

    # Benchmark defaults
    benchmark_probe_token: str = Field("the", alias="BENCHMARK_PROBE_TOKEN")
    benchmark_top_k: int = Field(10, alias="BENCHMARK_TOP_K")
    benchmark_batch_size: int = Field(1_000, alias="BENCHMARK_BATCH_SIZE")
    benchmark_concurrency: int = Field(8, alias="BENCHMARK_CONCURRENCY")
    benchmark_timeout_seconds: Optional[float] = Field(None, alias="BENCHMARK_TIMEOUT_SECONDS")

    # Sketch parameters
    bloom_error_rate: float = Field(0.01, alias="BLOOM_ERROR_RATE")
    bloom_capacity: Optional[int] = Field(None, alias="BLOOM_CAPACITY")
    cms_error: float = Field(0.01, alias="CMS_ERROR")
    cms_probability: float = Field(0.01, alias="CMS_PROBABILITY")
    topk_width: int = Field(8, alias="TOPK_WIDTH")
    topk_depth: int = Field(7, alias="TOPK_DEPTH")
    topk_decay: float = Field(0.9, alias="TOPK_DECAY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
