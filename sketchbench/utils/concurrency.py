"""
Fan-out/fan-in helper used by strategies during bulk initialization.

`gather_bounded` launches every awaitable as a task inside an
`asyncio.TaskGroup`, optionally capping how many run at once, and returns only
after all of them finished. If any task fails, the group cancels the rest and
the first failure is re-raised as-is (not wrapped in an ExceptionGroup), so
callers can keep matching on the error taxonomy.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterable, List, Optional, TypeVar

T = TypeVar("T")


def _first_leaf(group: BaseExceptionGroup) -> BaseException:
    exc: BaseException = group
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc


async def gather_bounded(
    awaitables: Iterable[Awaitable[T]], limit: Optional[int] = None
) -> List[T]:
    """
    Await all `awaitables` concurrently and return their results in input order.

    Parameters
    ----------
    awaitables : iterable of awaitables
        Independent operations to launch together.
    limit : int | None
        Maximum number in flight at once. None or 0 means unbounded.
    """
    semaphore = asyncio.Semaphore(limit) if limit else None

    async def _run(awaitable: Awaitable[T]) -> T:
        if semaphore is None:
            return await awaitable
        async with semaphore:
            return await awaitable

    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_run(awaitable)) for awaitable in awaitables]
    except BaseExceptionGroup as group_error:
        raise _first_leaf(group_error) from None

    return [task.result() for task in tasks]


def chunked(items: List[T], size: int) -> List[List[T]]:
    """Split `items` into consecutive slices of at most `size` elements."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [items[start : start + size] for start in range(0, len(items), size)]


__all__ = ["gather_bounded", "chunked"]
