"""
Timing utilities for sketchbench.

`profile_block` measures one benchmarked call:
- Wall-clock time (perf_counter, monotonic)
- Optionally, peak RSS of this process via a background psutil sampling thread

Sampling is off by default: the sampler thread competes for the GIL and would
distort sub-millisecond query timings. The orchestrator only enables it for
bulk initialization.

Usage:
    from sketchbench.utils.profiler import profile_block

    with profile_block("postgres_indexed:initialize", sample_memory=True) as stats:
        await strategy.initialize(corpus)

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)
    extra: dict[str, Any] = field(default_factory=dict)


@contextlib.contextmanager
def profile_block(
    label: str, sample_memory: bool = False, sample_interval_ms: int = 50
) -> Generator[ProfileStats, None, None]:
    """
    Context manager timing a block of code.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_memory : bool
        Whether to sample process RSS in a background thread while the block runs.
    sample_interval_ms : int
        Interval in milliseconds between RSS samples.

    Notes
    -----
    The stats are finalized even when the block raises, so callers can record
    the elapsed time of failed operations.
    """
    stats = ProfileStats(label=label)
    stop_sampling = threading.Event()
    sampler: Optional[threading.Thread] = None
    peak_rss = 0

    if sample_memory:
        process = psutil.Process()
        peak_rss = process.memory_info().rss

        def _sample_memory() -> None:
            nonlocal peak_rss
            while not stop_sampling.is_set():
                try:
                    peak_rss = max(peak_rss, process.memory_info().rss)
                except psutil.Error:
                    break
                stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

        sampler = threading.Thread(target=_sample_memory, daemon=True)
        sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        if sampler is not None:
            stop_sampling.set()
            sampler.join(timeout=1.0)
            stats.peak_rss_bytes = peak_rss if peak_rss > 0 else None


__all__ = ["ProfileStats", "profile_block"]
