"""
Brute-force baseline backed by a Redis sorted set.

Every token occurrence is one ZINCRBY, so the set holds exact counts as scores.
The strategy is exact, but it isolates the cost of Redis' ordered-set access
pattern from the genuinely probabilistic structures it is compared against.
"""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

from sketchbench.config import get_settings
from sketchbench.errors import StrategyStateError
from sketchbench.infrastructure.redis_factory import (
    BACKEND,
    connect_redis,
    translate_redis_errors,
)
from sketchbench.strategies.abstract import AbstractStorageStrategy, SizeReport
from sketchbench.utils.concurrency import chunked, gather_bounded
from sketchbench.utils.logging import get_logger

log = get_logger(__name__)


class RedisSortedSetStrategy(AbstractStorageStrategy):
    """
    Exact token counts as sorted-set scores.

    Initialization fires one increment per occurrence. Increments are queued
    into non-transactional pipelines of `batch_size` commands, and all
    pipelines are launched together and awaited jointly (at most `concurrency`
    in flight).
    """

    name: str = "redis_sorted_set"
    description: str = "Redis sorted set, one ZINCRBY per occurrence (exact baseline)."
    backend: str = BACKEND
    key: str = "sketchbench:zset"

    def __init__(
        self,
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self.batch_size = batch_size or settings.benchmark_batch_size
        self.concurrency = concurrency or settings.benchmark_concurrency
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = await connect_redis()
            self._owns_client = True

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and self._owns_client:
            await client.aclose()

    def _redis(self) -> Any:
        if self._client is None:
            raise StrategyStateError(f"{self.name} is not connected")
        return self._client

    async def _increment_batch(self, tokens: Sequence[str]) -> None:
        async with self._redis().pipeline(transaction=False) as pipe:
            for token in tokens:
                pipe.zincrby(self.key, 1, token)
            await pipe.execute()

    async def _load(self, corpus: Sequence[str]) -> None:
        batches = chunked(list(corpus), self.batch_size)
        log.debug(
            f"[{self.name}] Launching {len(batches)} increment pipeline(s)",
            extra={"strategy": self.name, "batches": len(batches), "tokens": len(corpus)},
        )
        with translate_redis_errors():
            await gather_bounded(
                (self._increment_batch(batch) for batch in batches), limit=self.concurrency
            )

    async def presence_check(self, token: str) -> bool:
        self._require_initialized()
        with translate_redis_errors():
            score = await self._redis().zscore(self.key, token)
        return score is not None

    async def item_count(self, token: str) -> int:
        self._require_initialized()
        with translate_redis_errors():
            score = await self._redis().zscore(self.key, token)
        return int(score) if score is not None else 0

    async def cardinality_check(self) -> int:
        self._require_initialized()
        with translate_redis_errors():
            return int(await self._redis().zcard(self.key))

    async def top_k(self, k: int) -> List[str]:
        """
        Highest-scored `k` members.

        The rank range is inclusive on both ends, so the end index is k - 1:
        exactly k members come back when the set has at least k, all members
        otherwise. Equal scores are ordered by Redis (reverse lexicographic).
        """
        self._require_initialized()
        if k <= 0:
            return []
        with translate_redis_errors():
            members = await self._redis().zrange(self.key, 0, k - 1, desc=True)
        return list(members)

    async def report_size(self, sizes: SizeReport) -> None:
        self._require_initialized()
        with translate_redis_errors():
            usage = await self._redis().memory_usage(self.key)
        sizes[f"{self.name}.zset"] = max(int(usage or 0), 0)


__all__ = ["RedisSortedSetStrategy"]
