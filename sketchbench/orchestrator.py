"""
Orchestrator driving every storage strategy through one identical benchmark sequence.

Usage (example from CLI):
    from sketchbench.orchestrator import RunConfig, run_benchmark

    report = run_benchmark(RunConfig(strategy_names=["postgres_indexed", "redis_probabilistic"]))
    print(report.sizes)

Sequence:
1. initialize(corpus) on every strategy
2. presence_check(probe), item_count(probe), cardinality_check(), top_k(k):
   each operation runs on every strategy before the next operation starts
3. report_size(sizes) on every strategy, merging into one shared SizeReport

Every call is timed on its own and yields exactly one Measurement. Strategies
run strictly one after another so their timings do not contend with each other.
Nothing is retried: BackendUnavailable aborts the run, BackendRejected (or any
unexpected error in tolerant mode) disables the offending strategy, and an
OperationTimeout is recorded as a failed measurement before moving on.
"""

from __future__ import annotations

import asyncio
import dataclasses
from contextlib import AsyncExitStack
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Sequence

from sketchbench.config import Settings, get_settings
from sketchbench.domain.corpus import load_corpus
from sketchbench.domain.models import (
    BenchmarkReport,
    Measurement,
    MeasurementStatus,
    OperationName,
)
from sketchbench.errors import BackendUnavailable, OperationTimeout
from sketchbench.infrastructure.reset import reset_backends
from sketchbench.strategies.abstract import SizeReport, StorageStrategy
from sketchbench.strategies.postgres import PostgresIndexedStrategy, PostgresUnindexedStrategy
from sketchbench.strategies.redis_probabilistic import RedisProbabilisticStrategy
from sketchbench.strategies.redis_sorted_set import RedisSortedSetStrategy
from sketchbench.utils.logging import get_logger
from sketchbench.utils.profiler import profile_block

log = get_logger(__name__)

FailurePolicy = Literal["tolerant", "strict"]

QUERY_OPERATIONS: tuple[OperationName, ...] = (
    OperationName.PRESENCE_CHECK,
    OperationName.ITEM_COUNT,
    OperationName.CARDINALITY_CHECK,
    OperationName.TOP_K,
)


@dataclass(frozen=True)
class RunConfig:
    """
    Parameters of one benchmark run. Unset fields fall back to settings.

    Attributes
    ----------
    strategy_names : sequence of str | None
        Strategies to run, in order. None or ["all"] runs the whole registry.
    corpus_path : path | None
        Text file to tokenize when no corpus is passed in directly.
    probe_token : str | None
        Token used for presence_check and item_count on every strategy.
    top_k : int | None
        k for top_k; also the capacity reserved by the top-K tracker.
    operation_timeout_seconds : float | None
        Deadline for each timed call. None disables deadlines.
    failure_policy : "tolerant" | "strict"
        Tolerant records failures and continues; strict re-raises the first one.
    reset_backends : bool
        Whether to wipe the backends used by the selected strategies first.
    """

    strategy_names: Optional[Sequence[str]] = None
    corpus_path: Optional[Path | str] = None
    probe_token: Optional[str] = None
    top_k: Optional[int] = None
    operation_timeout_seconds: Optional[float] = None
    failure_policy: FailurePolicy = "tolerant"
    reset_backends: bool = True


def _effective_config(config: RunConfig, settings: Settings) -> RunConfig:
    top_k = config.top_k if config.top_k is not None else settings.benchmark_top_k
    if top_k < 1:
        raise ValueError(f"top_k must be at least 1, got {top_k}")
    if config.failure_policy not in ("tolerant", "strict"):
        raise ValueError(f"Unknown failure policy '{config.failure_policy}'")
    return dataclasses.replace(
        config,
        corpus_path=config.corpus_path or settings.corpus_path,
        probe_token=config.probe_token or settings.benchmark_probe_token,
        top_k=top_k,
        operation_timeout_seconds=(
            config.operation_timeout_seconds
            if config.operation_timeout_seconds is not None
            else settings.benchmark_timeout_seconds
        ),
    )


def _strategy_factories(config: RunConfig) -> Dict[str, Callable[[], StorageStrategy]]:
    """Registry of available strategies, in the order `all` runs them."""
    return {
        "postgres_unindexed": lambda: PostgresUnindexedStrategy(),
        "postgres_indexed": lambda: PostgresIndexedStrategy(),
        "redis_sorted_set": lambda: RedisSortedSetStrategy(),
        "redis_probabilistic": lambda: RedisProbabilisticStrategy(top_k_capacity=config.top_k),
    }


def available_strategies() -> List[str]:
    """List available strategy names."""
    return sorted(_strategy_factories(RunConfig()).keys())


def _resolve_names(
    names: Optional[Sequence[str]], factories: Dict[str, Callable[[], StorageStrategy]]
) -> List[str]:
    requested = list(names) if names is not None else ["all"]
    if not requested or requested == ["all"]:
        return list(factories)
    resolved: List[str] = []
    for name in requested:
        if name not in factories:
            raise ValueError(f"Unknown strategy '{name}'. Available: {', '.join(factories)}")
        if name not in resolved:
            resolved.append(name)
    return resolved


async def _with_deadline(awaitable: Awaitable[Any], timeout: Optional[float]) -> Any:
    if timeout is None or timeout <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as exc:
        raise OperationTimeout(f"Operation exceeded the {timeout:g}s deadline") from exc


class _BenchmarkRun:
    """
    State of one run: the append-only measurement list, the merge-only size
    report, and which strategies were disabled (and why).
    """

    def __init__(self, config: RunConfig, strategies: Sequence[StorageStrategy]) -> None:
        self.config = config
        self.strategies = list(strategies)
        self.measurements: List[Measurement] = []
        self.sizes: SizeReport = {}
        self._disabled: Dict[str, str] = {}

    async def execute(self, corpus: Sequence[str]) -> None:
        probe = self.config.probe_token
        k = self.config.top_k
        queries: Dict[OperationName, Callable[[StorageStrategy], Awaitable[Any]]] = {
            OperationName.PRESENCE_CHECK: lambda s: s.presence_check(probe),
            OperationName.ITEM_COUNT: lambda s: s.item_count(probe),
            OperationName.CARDINALITY_CHECK: lambda s: s.cardinality_check(),
            OperationName.TOP_K: lambda s: s.top_k(k),
        }

        for strategy in self.strategies:
            await self._step(
                strategy,
                OperationName.INITIALIZE,
                lambda s=strategy: s.initialize(corpus),
                sample_memory=True,
            )

        for operation in QUERY_OPERATIONS:
            query = queries[operation]
            for strategy in self.strategies:
                await self._step(strategy, operation, lambda s=strategy: query(s))

        for strategy in self.strategies:
            await self._step(
                strategy, OperationName.REPORT_SIZE, lambda s=strategy: self._report_size(s)
            )

    async def _report_size(self, strategy: StorageStrategy) -> int:
        before = len(self.sizes)
        await strategy.report_size(self.sizes)
        return len(self.sizes) - before

    def _record(self, measurement: Measurement) -> Measurement:
        self.measurements.append(measurement)
        return measurement

    async def _step(
        self,
        strategy: StorageStrategy,
        operation: OperationName,
        call: Callable[[], Awaitable[Any]],
        sample_memory: bool = False,
    ) -> Measurement:
        reason = self._disabled.get(strategy.name)
        if reason is not None:
            log.info(
                f"[SKIPPED] {strategy.name} {operation.value}: {reason}",
                extra={"strategy": strategy.name, "operation": operation.value},
            )
            return self._record(
                Measurement(
                    strategy=strategy.name,
                    operation=operation,
                    status=MeasurementStatus.SKIPPED,
                    error=reason,
                )
            )

        log.info(
            f"[{operation.value.upper()}] {strategy.name}",
            extra={"strategy": strategy.name, "operation": operation.value},
        )
        error: Optional[Exception] = None
        value: Any = None
        with profile_block(f"{strategy.name}:{operation.value}", sample_memory=sample_memory) as stats:
            try:
                value = await _with_deadline(call(), self.config.operation_timeout_seconds)
            except BackendUnavailable:
                log.exception(
                    f"[ABORT] {strategy.name} lost its backend during {operation.value}",
                    extra={"strategy": strategy.name, "operation": operation.value},
                )
                raise
            except Exception as exc:  # noqa: BLE001 - recorded as a failed measurement
                error = exc

        if error is not None:
            return self._fail(strategy, operation, error, stats.duration_seconds)

        log.info(
            f"[OK] {strategy.name} {operation.value} in {stats.duration_seconds * 1000:.3f} ms",
            extra={
                "strategy": strategy.name,
                "operation": operation.value,
                "duration_seconds": stats.duration_seconds,
            },
        )
        return self._record(
            Measurement(
                strategy=strategy.name,
                operation=operation,
                duration_seconds=stats.duration_seconds,
                value=value,
                peak_rss_bytes=stats.peak_rss_bytes,
            )
        )

    def _fail(
        self,
        strategy: StorageStrategy,
        operation: OperationName,
        error: Exception,
        duration_seconds: float,
    ) -> Measurement:
        log.error(
            f"[FAILED] {strategy.name} {operation.value}: {type(error).__name__}: {error}",
            exc_info=error,
            extra={
                "strategy": strategy.name,
                "operation": operation.value,
                "error_type": type(error).__name__,
            },
        )
        measurement = self._record(
            Measurement(
                strategy=strategy.name,
                operation=operation,
                duration_seconds=duration_seconds,
                status=MeasurementStatus.FAILED,
                error=str(error) or type(error).__name__,
                error_type=type(error).__name__,
            )
        )
        if self.config.failure_policy == "strict":
            raise error

        # A timed-out query leaves the strategy usable; anything else (or an
        # initialize that never completed) takes it out of the remaining steps.
        recoverable = isinstance(error, OperationTimeout) and operation is not OperationName.INITIALIZE
        if not recoverable:
            self._disabled[strategy.name] = (
                f"disabled after {type(error).__name__} in {operation.value}"
            )
        return measurement


async def run_benchmark_async(
    config: Optional[RunConfig] = None,
    corpus: Optional[Sequence[str]] = None,
) -> BenchmarkReport:
    """
    Run the full benchmark sequence once and return its report.

    Parameters
    ----------
    config : RunConfig | None
        Run parameters; unset fields come from settings.
    corpus : sequence of str | None
        Pre-tokenized corpus. When None, `config.corpus_path` is loaded.

    Raises
    ------
    BackendUnavailable
        If a backend cannot be reached during reset, connect or any operation.
    ValueError
        For unknown strategy names or an invalid top_k.
    """
    settings = get_settings()
    effective = _effective_config(config or RunConfig(), settings)
    factories = _strategy_factories(effective)
    names = _resolve_names(effective.strategy_names, factories)
    tokens = tuple(corpus) if corpus is not None else tuple(load_corpus(effective.corpus_path))
    strategies = [factories[name]() for name in names]

    log.info(
        f"[ORCHESTRATOR START] {len(strategies)} strategy/strategies over {len(tokens):,} tokens",
        extra={
            "strategies": names,
            "tokens": len(tokens),
            "probe_token": effective.probe_token,
            "top_k": effective.top_k,
        },
    )

    if effective.reset_backends:
        await reset_backends(strategy.backend for strategy in strategies)

    run = _BenchmarkRun(effective, strategies)
    async with AsyncExitStack() as stack:
        for strategy in strategies:
            stack.push_async_callback(strategy.close)
            await strategy.connect()
        await run.execute(tokens)

    report = BenchmarkReport(
        timestamp=datetime.now(timezone.utc),
        corpus_tokens=len(tokens),
        corpus_distinct=len(set(tokens)),
        probe_token=effective.probe_token,
        top_k=effective.top_k,
        strategies=names,
        measurements=run.measurements,
        sizes=dict(run.sizes),
    )
    log.info(
        f"[ORCHESTRATOR COMPLETE] {len(report.measurements)} measurement(s), "
        f"{len(report.failures())} failure(s)",
        extra={"strategies": names, "failures": len(report.failures())},
    )
    return report


def run_benchmark(
    config: Optional[RunConfig] = None,
    corpus: Optional[Sequence[str]] = None,
) -> BenchmarkReport:
    """
    Synchronous entry point around `run_benchmark_async`.

    Raises RuntimeError when called from inside a running event loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(run_benchmark_async(config, corpus))
    raise RuntimeError(
        "run_benchmark() cannot be called from an async context; "
        "await run_benchmark_async() instead"
    )


__all__ = [
    "QUERY_OPERATIONS",
    "RunConfig",
    "available_strategies",
    "run_benchmark",
    "run_benchmark_async",
]
