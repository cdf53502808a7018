"""
Probabilistic strategy backed by Redis Stack sketches.

Four independent structures, one per query:
- Bloom filter (BF.*)        -> presence_check, false positives only
- Count-min sketch (CMS.*)   -> item_count, over-estimates only
- HyperLogLog (PF*)          -> cardinality_check, ~0.81% standard error
- Top-K tracker (TOPK.*)     -> top_k, fixed capacity, approximate

Initialization runs in two fan-out/fan-in phases: first every structure is
reserved with its capacity/error parameters, then all four are bulk-loaded
concurrently since they write disjoint keys.
"""

from __future__ import annotations

from typing import Any, Awaitable, List, Optional, Sequence

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


def _pairs(flat: Sequence[Any]) -> List[tuple[Any, Any]]:
    return list(zip(flat[0::2], flat[1::2]))


class RedisProbabilisticStrategy(AbstractStorageStrategy):
    """
    Bloom filter + count-min sketch + HyperLogLog + top-K on Redis Stack.

    `top_k_capacity` must be the largest k that will ever be queried: the
    tracker only keeps that many candidates, and asking for more returns at
    most that many.
    """

    name: str = "redis_probabilistic"
    description: str = "Redis Stack bloom filter, count-min sketch, HyperLogLog and top-K."
    backend: str = BACKEND

    bloom_key: str = "sketchbench:bloom"
    cms_key: str = "sketchbench:cms"
    topk_key: str = "sketchbench:topk"
    hll_key: str = "sketchbench:hll"

    def __init__(
        self,
        top_k_capacity: Optional[int] = None,
        bloom_capacity: Optional[int] = None,
        batch_size: Optional[int] = None,
        concurrency: Optional[int] = None,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__()
        settings = get_settings()
        self.top_k_capacity = top_k_capacity or settings.benchmark_top_k
        self.bloom_capacity = bloom_capacity or settings.bloom_capacity
        self.bloom_error_rate = settings.bloom_error_rate
        self.cms_error = settings.cms_error
        self.cms_probability = settings.cms_probability
        self.topk_width = settings.topk_width
        self.topk_depth = settings.topk_depth
        self.topk_decay = settings.topk_decay
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

    def _reservations(self, capacity: int) -> List[Awaitable[Any]]:
        client = self._redis()
        return [
            client.execute_command("BF.RESERVE", self.bloom_key, self.bloom_error_rate, capacity),
            client.execute_command(
                "CMS.INITBYPROB", self.cms_key, self.cms_error, self.cms_probability
            ),
            client.execute_command(
                "TOPK.RESERVE",
                self.topk_key,
                self.top_k_capacity,
                self.topk_width,
                self.topk_depth,
                self.topk_decay,
            ),
        ]

    def _loads(self, batch: Sequence[str]) -> List[Awaitable[Any]]:
        client = self._redis()
        cms_args: List[Any] = []
        for token in batch:
            cms_args.extend((token, 1))
        return [
            client.execute_command("BF.MADD", self.bloom_key, *batch),
            client.execute_command("CMS.INCRBY", self.cms_key, *cms_args),
            client.execute_command("TOPK.ADD", self.topk_key, *batch),
            client.pfadd(self.hll_key, *batch),
        ]

    async def _load(self, corpus: Sequence[str]) -> None:
        capacity = self.bloom_capacity or max(len(set(corpus)), 1)
        batches = chunked(list(corpus), self.batch_size)
        log.debug(
            f"[{self.name}] Reserving sketches (bloom capacity={capacity}, k={self.top_k_capacity})",
            extra={"strategy": self.name, "bloom_capacity": capacity, "batches": len(batches)},
        )
        with translate_redis_errors():
            await gather_bounded(self._reservations(capacity))
            await gather_bounded(
                (load for batch in batches for load in self._loads(batch)),
                limit=self.concurrency,
            )

    async def presence_check(self, token: str) -> bool:
        self._require_initialized()
        with translate_redis_errors():
            found = await self._redis().execute_command("BF.EXISTS", self.bloom_key, token)
        return int(found) == 1

    async def item_count(self, token: str) -> int:
        self._require_initialized()
        with translate_redis_errors():
            counts = await self._redis().execute_command("CMS.QUERY", self.cms_key, token)
        return max(int(counts[0]), 0) if counts else 0

    async def cardinality_check(self) -> int:
        self._require_initialized()
        with translate_redis_errors():
            return int(await self._redis().pfcount(self.hll_key))

    async def top_k(self, k: int) -> List[str]:
        """
        The tracker's current heavy hitters, by tracked count, cut to `k`.

        Only an approximation: members whose lead is small relative to the
        tracker's width/decay can be missing.
        """
        self._require_initialized()
        if k <= 0:
            return []
        if k > self.top_k_capacity:
            log.warning(
                f"[{self.name}] top_k({k}) exceeds reserved capacity {self.top_k_capacity}",
                extra={"strategy": self.name, "k": k, "capacity": self.top_k_capacity},
            )
        with translate_redis_errors():
            flat = await self._redis().execute_command("TOPK.LIST", self.topk_key, "WITHCOUNT")
        tracked = [(item, int(count)) for item, count in _pairs(flat or []) if item is not None]
        # sorted() is stable, so equal counts keep the tracker's own order.
        tracked = sorted(tracked, key=lambda pair: pair[1], reverse=True)
        return [item for item, _ in tracked[:k]]

    async def report_size(self, sizes: SizeReport) -> None:
        self._require_initialized()
        client = self._redis()
        structures = {
            "bloom": self.bloom_key,
            "cms": self.cms_key,
            "hll": self.hll_key,
            "topk": self.topk_key,
        }
        for label, key in structures.items():
            with translate_redis_errors():
                usage = await client.memory_usage(key)
            sizes[f"{self.name}.{label}"] = max(int(usage or 0), 0)


__all__ = ["RedisProbabilisticStrategy"]
