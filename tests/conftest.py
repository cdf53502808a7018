"""
Pytest configuration for sketchbench.

Provides fixtures for:
- Settings override for integration tests
- Backend reachability checks (Postgres + Redis Stack)
- Small, known corpora
"""

from __future__ import annotations

import os

import psycopg
import pytest
import redis

from sketchbench.config import Settings

WHALE_CORPUS = ["the", "whale", "the", "sea", "the"]


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "postgres"),
        redis_host=os.getenv("REDIS_HOST", "localhost"),
        redis_port=int(os.getenv("REDIS_PORT", "6379")),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def backends_available(test_dsn: str, test_settings: Settings) -> bool:
    """
    Check that both Postgres and Redis are reachable.

    Used to skip integration tests when either backend is missing.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        client = redis.Redis(
            host=test_settings.redis_host,
            port=test_settings.redis_port,
            socket_connect_timeout=5,
        )
        try:
            client.ping()
        finally:
            client.close()
        return True
    except (psycopg.Error, redis.RedisError, OSError):
        return False


@pytest.fixture
def require_backends(backends_available: bool) -> None:
    """
    Skip the requesting test unless both backends answer.
    """
    if not backends_available:
        pytest.skip("Postgres and/or Redis Stack not available for integration tests")


@pytest.fixture
def whale_corpus() -> list[str]:
    """The five-token corpus used by the concrete scenario tests."""
    return list(WHALE_CORPUS)
