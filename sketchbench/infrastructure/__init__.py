"""
Infrastructure package for sketchbench.

Centralizes backend connectivity concerns: connection factories, error
translation, and the external reset protocol. Keep this layer focused on I/O
and resource management, decoupled from strategy/orchestrator logic.
"""

from sketchbench.infrastructure.db_factory import (
    build_dsn,
    connect_postgres,
    reset_postgres,
    translate_postgres_errors,
)
from sketchbench.infrastructure.redis_factory import (
    connect_redis,
    create_redis_client,
    reset_redis,
    translate_redis_errors,
)
from sketchbench.infrastructure.reset import known_backends, reset_backends

__all__ = [
    "build_dsn",
    "connect_postgres",
    "reset_postgres",
    "translate_postgres_errors",
    "connect_redis",
    "create_redis_client",
    "reset_redis",
    "translate_redis_errors",
    "known_backends",
    "reset_backends",
]
