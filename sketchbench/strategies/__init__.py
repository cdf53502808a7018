"""
Strategies package for sketchbench.

This module re-exports the strategy contract and the concrete strategy classes
so downstream code can import from `sketchbench.strategies` directly.
"""

from sketchbench.strategies.abstract import (
    AbstractStorageStrategy,
    SizeReport,
    StorageStrategy,
)
from sketchbench.strategies.postgres import (
    PostgresIndexedStrategy,
    PostgresStrategy,
    PostgresUnindexedStrategy,
)
from sketchbench.strategies.redis_probabilistic import RedisProbabilisticStrategy
from sketchbench.strategies.redis_sorted_set import RedisSortedSetStrategy

__all__ = [
    # Contract
    "AbstractStorageStrategy",
    "SizeReport",
    "StorageStrategy",
    # Concrete strategies
    "PostgresIndexedStrategy",
    "PostgresStrategy",
    "PostgresUnindexedStrategy",
    "RedisProbabilisticStrategy",
    "RedisSortedSetStrategy",
]
