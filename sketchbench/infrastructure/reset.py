"""
External reset protocol.

Before a run every backend used by the selected strategies is wiped so that
`initialize` observes pristine storage. This is a precondition of the run, not
part of the strategy contract.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Dict, Iterable

from sketchbench.infrastructure.db_factory import reset_postgres
from sketchbench.infrastructure.redis_factory import reset_redis
from sketchbench.utils.logging import get_logger

log = get_logger(__name__)

_RESETTERS: Dict[str, Callable[[], Awaitable[None]]] = {
    "postgres": reset_postgres,
    "redis": reset_redis,
}


def known_backends() -> list[str]:
    return sorted(_RESETTERS)


async def reset_backends(backends: Iterable[str]) -> list[str]:
    """
    Clear each named backend once, in a stable order.

    Unknown backend names are skipped with a warning. Returns the names that
    were actually reset. Connection failures surface as BackendUnavailable.
    """
    done: list[str] = []
    for backend in sorted(set(backends)):
        resetter = _RESETTERS.get(backend)
        if resetter is None:
            log.warning(f"[RESET] No reset procedure for backend '{backend}'", extra={"backend": backend})
            continue
        log.info(f"[RESET] Clearing {backend}", extra={"backend": backend})
        await resetter()
        done.append(backend)
    return done


__all__ = ["known_backends", "reset_backends"]
