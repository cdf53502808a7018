"""
Postgres connection factory for sketchbench.

Each exact strategy owns one dedicated async psycopg connection, opened before
the run and closed when the run ends; there is no shared pool. Connection
establishment is retried with tenacity for transient failures. Timed operations
never go through this retry path.

`translate_postgres_errors` maps psycopg exceptions onto the benchmark error
taxonomy so the orchestrator can decide whether to abort, disable a strategy or
just record a failed measurement.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Optional

import psycopg
from psycopg import AsyncConnection
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sketchbench.config import get_settings
from sketchbench.errors import BackendRejected, BackendUnavailable, OperationTimeout

BACKEND = "postgres"


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    settings = get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


@contextmanager
def translate_postgres_errors() -> Generator[None, None, None]:
    """
    Re-raise psycopg errors as BackendUnavailable / BackendRejected / OperationTimeout.
    """
    try:
        yield
    except psycopg.errors.QueryCanceled as exc:
        raise OperationTimeout(f"Postgres query canceled: {exc}", backend=BACKEND) from exc
    except (psycopg.OperationalError, psycopg.InterfaceError) as exc:
        raise BackendUnavailable(f"Postgres unavailable: {exc}", backend=BACKEND) from exc
    except psycopg.Error as exc:
        raise BackendRejected(f"Postgres rejected request: {exc}", backend=BACKEND) from exc


async def connect_postgres(
    dsn_override: Optional[str] = None, attempts: Optional[int] = None
) -> AsyncConnection:
    """
    Open an autocommit async connection with retry on transient failures.

    Retries up to `attempts` times (settings.connect_attempts by default) with
    exponential backoff, then raises BackendUnavailable.
    """
    dsn = dsn_override or build_dsn()
    max_attempts = attempts or get_settings().connect_attempts
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((psycopg.OperationalError, OSError)),
        ):
            with attempt:
                return await AsyncConnection.connect(dsn, autocommit=True)
    except RetryError as exc:
        cause = exc.last_attempt.exception()
        raise BackendUnavailable(
            f"Could not connect to Postgres after {max_attempts} attempt(s): {cause}",
            backend=BACKEND,
        ) from cause
    except psycopg.Error as exc:
        raise BackendUnavailable(f"Could not connect to Postgres: {exc}", backend=BACKEND) from exc
    raise BackendUnavailable("Could not connect to Postgres", backend=BACKEND)  # pragma: no cover


async def reset_postgres(dsn_override: Optional[str] = None) -> None:
    """
    Drop and recreate the public schema so strategies see an empty database.
    """
    conn = await connect_postgres(dsn_override)
    try:
        with translate_postgres_errors():
            await conn.execute("DROP SCHEMA IF EXISTS public CASCADE")
            await conn.execute("CREATE SCHEMA public")
    finally:
        await conn.close()


__all__ = [
    "BACKEND",
    "build_dsn",
    "connect_postgres",
    "reset_postgres",
    "translate_postgres_errors",
]
