from __future__ import annotations

import asyncio
from collections import Counter
from typing import Any, Callable, Optional

import pytest

from sketchbench import orchestrator
from sketchbench.domain.models import MeasurementStatus, OperationName
from sketchbench.errors import BackendRejected, BackendUnavailable, OperationTimeout
from sketchbench.orchestrator import RunConfig, run_benchmark, run_benchmark_async
from sketchbench.strategies.abstract import SizeReport

WHALE_CORPUS = ["the", "whale", "the", "sea", "the"]
SLOW_SECONDS = 1.0
DEADLINE_SECONDS = 0.05
OPERATIONS_PER_STRATEGY = len(OperationName)


class _MemoryStrategy:
    """Exact in-memory counter standing in for a real backend."""

    backend = "memory"
    description = "in-memory exact counter"

    def __init__(
        self,
        name: str,
        calls: Optional[list[tuple[str, str]]] = None,
        fail: Optional[dict[str, Exception]] = None,
        delay: Optional[dict[str, float]] = None,
    ) -> None:
        self.name = name
        self.calls = calls if calls is not None else []
        self.fail = fail or {}
        self.delay = delay or {}
        self.counts: Counter[str] = Counter()
        self.connected = False
        self.close_calls = 0

    async def _enter(self, operation: str) -> None:
        self.calls.append((self.name, operation))
        if operation in self.delay:
            await asyncio.sleep(self.delay[operation])
        if operation in self.fail:
            raise self.fail[operation]

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.close_calls += 1
        self.connected = False

    async def initialize(self, corpus) -> None:
        await self._enter("initialize")
        self.counts.update(corpus)

    async def presence_check(self, token: str) -> bool:
        await self._enter("presence_check")
        return self.counts[token] > 0

    async def item_count(self, token: str) -> int:
        await self._enter("item_count")
        return self.counts[token]

    async def cardinality_check(self) -> int:
        await self._enter("cardinality_check")
        return len(self.counts)

    async def top_k(self, k: int) -> list[str]:
        await self._enter("top_k")
        ranked = sorted(self.counts.items(), key=lambda item: (-item[1], item[0]))
        return [token for token, _ in ranked[:k]]

    async def report_size(self, sizes: SizeReport) -> None:
        await self._enter("report_size")
        sizes[f"{self.name}.counter"] = 64 * len(self.counts)


def _install(
    monkeypatch: pytest.MonkeyPatch, *strategies: _MemoryStrategy
) -> list[list[str]]:
    """Route the registry to `strategies` and record reset requests instead of wiping."""
    factories: dict[str, Callable[[], Any]] = {s.name: (lambda s=s: s) for s in strategies}
    resets: list[list[str]] = []

    async def fake_reset(backends) -> list[str]:
        resets.append(sorted(set(backends)))
        return resets[-1]

    monkeypatch.setattr(orchestrator, "_strategy_factories", lambda config: factories)
    monkeypatch.setattr(orchestrator, "reset_backends", fake_reset)
    return resets


def _config(**overrides: Any) -> RunConfig:
    values: dict[str, Any] = {"probe_token": "the", "top_k": 1}
    values.update(overrides)
    return RunConfig(**values)


def _by_key(report) -> dict[tuple[str, OperationName], Any]:
    return {(m.strategy, m.operation): m for m in report.measurements}


def test_sequence_runs_each_operation_on_every_strategy_before_the_next(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    calls: list[tuple[str, str]] = []
    first = _MemoryStrategy("first", calls=calls)
    second = _MemoryStrategy("second", calls=calls)
    _install(monkeypatch, first, second)

    report = run_benchmark(_config(), corpus=WHALE_CORPUS)

    expected = [
        (name, operation.value) for operation in OperationName for name in ("first", "second")
    ]
    assert calls == expected
    assert len(report.measurements) == 2 * OPERATIONS_PER_STRATEGY
    assert [(m.strategy, m.operation.value) for m in report.measurements] == expected


def test_whale_scenario_values(monkeypatch: pytest.MonkeyPatch) -> None:
    exact = _MemoryStrategy("exact")
    _install(monkeypatch, exact)

    report = run_benchmark(_config(top_k=1), corpus=WHALE_CORPUS)
    results = _by_key(report)

    assert results[("exact", OperationName.PRESENCE_CHECK)].value is True
    assert results[("exact", OperationName.ITEM_COUNT)].value == 3
    assert results[("exact", OperationName.CARDINALITY_CHECK)].value == 3
    assert results[("exact", OperationName.TOP_K)].value == ["the"]
    assert results[("exact", OperationName.REPORT_SIZE)].value == 1
    assert report.corpus_tokens == 5
    assert report.corpus_distinct == 3
    assert all(m.status is MeasurementStatus.OK for m in report.measurements)


def test_absent_probe_reports_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    exact = _MemoryStrategy("exact")
    _install(monkeypatch, exact)

    report = run_benchmark(_config(probe_token="ahab"), corpus=WHALE_CORPUS)
    results = _by_key(report)

    assert results[("exact", OperationName.PRESENCE_CHECK)].value is False
    assert results[("exact", OperationName.ITEM_COUNT)].value == 0


def test_corpus_is_not_mutated(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("exact"))
    corpus = list(WHALE_CORPUS)

    run_benchmark(_config(), corpus=corpus)

    assert corpus == WHALE_CORPUS


def test_initialize_measures_peak_rss(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("exact"))

    report = run_benchmark(_config(), corpus=WHALE_CORPUS)
    results = _by_key(report)

    assert results[("exact", OperationName.INITIALIZE)].peak_rss_bytes is not None
    assert results[("exact", OperationName.TOP_K)].peak_rss_bytes is None


def test_timeout_is_recorded_and_run_continues(monkeypatch: pytest.MonkeyPatch) -> None:
    slow = _MemoryStrategy("slow", delay={"presence_check": SLOW_SECONDS})
    fast = _MemoryStrategy("fast")
    _install(monkeypatch, slow, fast)

    report = run_benchmark(
        _config(operation_timeout_seconds=DEADLINE_SECONDS), corpus=WHALE_CORPUS
    )
    results = _by_key(report)

    timed_out = results[("slow", OperationName.PRESENCE_CHECK)]
    assert timed_out.status is MeasurementStatus.FAILED
    assert timed_out.error_type == OperationTimeout.__name__
    assert timed_out.duration_seconds >= DEADLINE_SECONDS
    # A query timeout leaves the strategy usable for later steps.
    assert results[("slow", OperationName.ITEM_COUNT)].value == 3
    assert all(m.ok for m in report.measurements if m.strategy == "fast")
    assert len(report.measurements) == 2 * OPERATIONS_PER_STRATEGY


def test_rejected_operation_disables_strategy(monkeypatch: pytest.MonkeyPatch) -> None:
    broken = _MemoryStrategy(
        "broken", fail={"item_count": BackendRejected("unknown command", backend="memory")}
    )
    healthy = _MemoryStrategy("healthy")
    _install(monkeypatch, broken, healthy)

    report = run_benchmark(_config(), corpus=WHALE_CORPUS)
    results = _by_key(report)

    assert results[("broken", OperationName.PRESENCE_CHECK)].ok
    failed = results[("broken", OperationName.ITEM_COUNT)]
    assert failed.status is MeasurementStatus.FAILED
    assert failed.error_type == "BackendRejected"
    for operation in (
        OperationName.CARDINALITY_CHECK,
        OperationName.TOP_K,
        OperationName.REPORT_SIZE,
    ):
        assert results[("broken", operation)].status is MeasurementStatus.SKIPPED
    assert ("broken", "top_k") not in broken.calls
    assert all(m.ok for m in report.measurements if m.strategy == "healthy")
    assert report.failures() == [failed]
    assert "broken.counter" not in report.sizes
    assert "healthy.counter" in report.sizes


def test_failed_initialize_skips_every_query(monkeypatch: pytest.MonkeyPatch) -> None:
    broken = _MemoryStrategy("broken", fail={"initialize": RuntimeError("disk full")})
    _install(monkeypatch, broken)

    report = run_benchmark(_config(), corpus=WHALE_CORPUS)

    statuses = [m.status for m in report.measurements]
    assert statuses[0] is MeasurementStatus.FAILED
    assert statuses[1:] == [MeasurementStatus.SKIPPED] * (OPERATIONS_PER_STRATEGY - 1)
    assert report.measurements[0].error == "disk full"
    assert broken.calls == [("broken", "initialize")]


def test_timed_out_initialize_disables_strategy(monkeypatch: pytest.MonkeyPatch) -> None:
    slow = _MemoryStrategy("slow", delay={"initialize": SLOW_SECONDS})
    _install(monkeypatch, slow)

    report = run_benchmark(
        _config(operation_timeout_seconds=DEADLINE_SECONDS), corpus=WHALE_CORPUS
    )

    assert report.measurements[0].error_type == OperationTimeout.__name__
    assert all(m.status is MeasurementStatus.SKIPPED for m in report.measurements[1:])


def test_backend_unavailable_aborts_run_and_closes_everything(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    lost = _MemoryStrategy(
        "lost", fail={"cardinality_check": BackendUnavailable("connection reset", backend="memory")}
    )
    other = _MemoryStrategy("other")
    _install(monkeypatch, lost, other)

    with pytest.raises(BackendUnavailable, match="connection reset"):
        run_benchmark(_config(), corpus=WHALE_CORPUS)

    assert lost.close_calls == 1
    assert other.close_calls == 1
    assert ("other", "cardinality_check") not in other.calls


def test_strict_policy_reraises_first_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    broken = _MemoryStrategy("broken", fail={"top_k": BackendRejected("bad k", backend="memory")})
    _install(monkeypatch, broken)

    with pytest.raises(BackendRejected, match="bad k"):
        run_benchmark(_config(failure_policy="strict"), corpus=WHALE_CORPUS)

    assert broken.close_calls == 1


def test_close_called_once_per_strategy(monkeypatch: pytest.MonkeyPatch) -> None:
    first = _MemoryStrategy("first")
    second = _MemoryStrategy("second")
    _install(monkeypatch, first, second)

    run_benchmark(_config(), corpus=WHALE_CORPUS)

    assert (first.close_calls, second.close_calls) == (1, 1)
    assert not first.connected and not second.connected


def test_sizes_from_all_strategies_are_merged(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("first"), _MemoryStrategy("second"))

    report = run_benchmark(_config(), corpus=WHALE_CORPUS)

    assert report.sizes == {"first.counter": 192, "second.counter": 192}


def test_reset_covers_backends_of_selected_strategies(monkeypatch: pytest.MonkeyPatch) -> None:
    resets = _install(monkeypatch, _MemoryStrategy("first"), _MemoryStrategy("second"))

    run_benchmark(_config(), corpus=WHALE_CORPUS)
    run_benchmark(_config(reset_backends=False), corpus=WHALE_CORPUS[:1])

    assert resets == [["memory"]]


def test_strategy_selection_and_order(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("first"), _MemoryStrategy("second"))

    report = run_benchmark(
        _config(strategy_names=["second", "first", "second"]), corpus=WHALE_CORPUS
    )

    assert report.strategies == ["second", "first"]
    assert [m.strategy for m in report.for_operation(OperationName.INITIALIZE)] == [
        "second",
        "first",
    ]


def test_unknown_strategy_raises_value_error(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("first"))

    with pytest.raises(ValueError, match="Unknown strategy 'nope'"):
        run_benchmark(_config(strategy_names=["nope"]), corpus=WHALE_CORPUS)


def test_non_positive_top_k_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("first"))

    with pytest.raises(ValueError, match="top_k"):
        run_benchmark(_config(top_k=0), corpus=WHALE_CORPUS)


def test_corpus_loaded_from_path_when_not_given(
    monkeypatch: pytest.MonkeyPatch, tmp_path
) -> None:
    _install(monkeypatch, _MemoryStrategy("exact"))
    corpus_path = tmp_path / "whale.txt"
    corpus_path.write_text("The whale. The sea, the!", encoding="utf-8")

    report = run_benchmark(_config(corpus_path=corpus_path))

    assert report.corpus_tokens == 5
    assert _by_key(report)[("exact", OperationName.ITEM_COUNT)].value == 3


@pytest.mark.asyncio
async def test_run_benchmark_async_inside_event_loop(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, _MemoryStrategy("exact"))

    report = await run_benchmark_async(_config(), corpus=WHALE_CORPUS)

    assert len(report.measurements) == OPERATIONS_PER_STRATEGY


@pytest.mark.asyncio
async def test_run_benchmark_rejects_running_loop() -> None:
    with pytest.raises(RuntimeError, match="async context"):
        run_benchmark(_config(), corpus=WHALE_CORPUS)
