"""
sketchbench - benchmarking exact vs. probabilistic storage for token analytics.

This package drives several storage strategies through one identical sequence of
operations over a tokenized text corpus and compares their latency and memory:

- Postgres table without an index on the token column
- Postgres table with a b-tree index on the token column
- Redis sorted set holding exact counts (brute-force baseline)
- Redis Stack sketches: bloom filter, count-min sketch, HyperLogLog, top-K

Queries benchmarked: membership, occurrence count, cardinality and top-K.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from sketchbench.config import Settings, get_settings
from sketchbench.domain import BenchmarkReport, Measurement, MeasurementStatus, OperationName
from sketchbench.errors import (
    BackendRejected,
    BackendUnavailable,
    BenchmarkError,
    OperationTimeout,
    StrategyStateError,
)
from sketchbench.orchestrator import (
    RunConfig,
    available_strategies,
    run_benchmark,
    run_benchmark_async,
)
from sketchbench.strategies.abstract import AbstractStorageStrategy, SizeReport, StorageStrategy
from sketchbench.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Orchestration
    "RunConfig",
    "available_strategies",
    "run_benchmark",
    "run_benchmark_async",
    # Strategy contract
    "AbstractStorageStrategy",
    "SizeReport",
    "StorageStrategy",
    # Domain
    "BenchmarkReport",
    "Measurement",
    "MeasurementStatus",
    "OperationName",
    # Errors
    "BenchmarkError",
    "BackendRejected",
    "BackendUnavailable",
    "OperationTimeout",
    "StrategyStateError",
    # Logging
    "configure_logging",
    "get_logger",
]
