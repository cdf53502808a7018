"""
Redis client factory for sketchbench.

Strategies backed by Redis Stack each own a `redis.asyncio.Redis` client over a
BlockingConnectionPool, so concurrent fan-out during initialization waits for a
free connection instead of opening an unbounded number of sockets.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import redis.asyncio as aioredis
from redis import exceptions as redis_errors
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sketchbench.config import get_settings
from sketchbench.errors import BackendRejected, BackendUnavailable, OperationTimeout

BACKEND = "redis"


@contextmanager
def translate_redis_errors() -> Generator[None, None, None]:
    """
    Re-raise redis-py errors as BackendUnavailable / BackendRejected / OperationTimeout.
    """
    try:
        yield
    except redis_errors.TimeoutError as exc:
        raise OperationTimeout(f"Redis command timed out: {exc}", backend=BACKEND) from exc
    except redis_errors.ConnectionError as exc:
        raise BackendUnavailable(f"Redis unavailable: {exc}", backend=BACKEND) from exc
    except redis_errors.RedisError as exc:
        raise BackendRejected(f"Redis rejected request: {exc}", backend=BACKEND) from exc


def create_redis_client(max_connections: Optional[int] = None) -> aioredis.Redis:
    """Build a client from settings without touching the network."""
    settings = get_settings()
    pool = aioredis.BlockingConnectionPool(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password,
        max_connections=max_connections or settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        decode_responses=True,
    )
    return aioredis.Redis(connection_pool=pool)


async def connect_redis(
    max_connections: Optional[int] = None, attempts: Optional[int] = None
) -> aioredis.Redis:
    """
    Create a client and PING it, retrying transient connection failures.

    Raises BackendUnavailable when the server cannot be reached.
    """
    client = create_redis_client(max_connections)
    max_attempts = attempts or get_settings().connect_attempts
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((redis_errors.ConnectionError, OSError)),
        ):
            with attempt:
                await client.ping()
    except RetryError as exc:
        await client.aclose()
        cause = exc.last_attempt.exception()
        raise BackendUnavailable(
            f"Could not connect to Redis after {max_attempts} attempt(s): {cause}",
            backend=BACKEND,
        ) from cause
    except redis_errors.RedisError as exc:
        await client.aclose()
        raise BackendUnavailable(f"Could not connect to Redis: {exc}", backend=BACKEND) from exc
    return client


async def reset_redis() -> None:
    """FLUSHDB the configured database so strategies see no leftover keys."""
    client = await connect_redis(max_connections=1)
    try:
        with translate_redis_errors():
            await client.flushdb()
    finally:
        await client.aclose()


__all__ = [
    "BACKEND",
    "connect_redis",
    "create_redis_client",
    "reset_redis",
    "translate_redis_errors",
]
