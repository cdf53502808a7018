"""
Strategy contract for sketchbench.

Every storage strategy (exact Postgres tables, Redis sorted set, Redis
probabilistic sketches) satisfies the StorageStrategy protocol so the
orchestrator can connect, initialize, query, size and close each backend the
same way. AbstractStorageStrategy is an optional helper that carries the
initialize-exactly-once bookkeeping.
"""

from __future__ import annotations

import abc
from typing import Dict, List, Protocol, Sequence, runtime_checkable

from sketchbench.errors import StrategyStateError

SizeReport = Dict[str, int]
"""Structure label (namespaced `<strategy>.<structure>`) -> bytes."""


@runtime_checkable
class StorageStrategy(Protocol):
    """
    Common interface all storage strategies must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier, also used as the report label.
    description : str
        A human-friendly summary of the approach.
    backend : str
        Which external system the strategy talks to ("postgres", "redis").
    """

    name: str
    description: str
    backend: str

    async def connect(self) -> None:
        """Acquire the strategy's own backend session."""
        ...

    async def close(self) -> None:
        """Release the backend session. Safe to call more than once."""
        ...

    async def initialize(self, corpus: Sequence[str]) -> None:
        """Bulk-load the corpus into the backend's native representation."""
        ...

    async def presence_check(self, token: str) -> bool:
        """Whether `token` occurs at least once (may false-positive for sketches)."""
        ...

    async def item_count(self, token: str) -> int:
        """Occurrences of `token` (exact, or a never-negative estimate)."""
        ...

    async def cardinality_check(self) -> int:
        """Number of distinct tokens (exact, or an estimate)."""
        ...

    async def top_k(self, k: int) -> List[str]:
        """Up to `k` tokens ordered by frequency, highest first."""
        ...

    async def report_size(self, sizes: SizeReport) -> None:
        """Add byte-size entries for this strategy's structures to `sizes`."""
        ...


class AbstractStorageStrategy(abc.ABC):
    """
    Optional ABC helper for class-based implementations.

    Subclasses set `name`, `description` and `backend`, implement `_load` plus
    the query operations, and call `_require_initialized()` at the top of every
    query so misuse fails loudly instead of timing an empty backend.
    """

    name: str
    description: str
    backend: str

    def __init__(self) -> None:
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise StrategyStateError(f"{self.name} queried before initialize()")

    async def initialize(self, corpus: Sequence[str]) -> None:
        if self._initialized:
            raise StrategyStateError(f"{self.name} is already initialized")
        await self._load(corpus)
        self._initialized = True

    @abc.abstractmethod
    async def connect(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def _load(self, corpus: Sequence[str]) -> None:  # pragma: no cover - interface only
        """Write the corpus to the backend."""
        raise NotImplementedError

    @abc.abstractmethod
    async def presence_check(self, token: str) -> bool:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def item_count(self, token: str) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def cardinality_check(self) -> int:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def top_k(self, k: int) -> List[str]:  # pragma: no cover - interface only
        raise NotImplementedError

    @abc.abstractmethod
    async def report_size(self, sizes: SizeReport) -> None:  # pragma: no cover - interface only
        raise NotImplementedError


__all__ = [
    "SizeReport",
    "StorageStrategy",
    "AbstractStorageStrategy",
]
