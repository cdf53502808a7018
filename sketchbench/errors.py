"""
Error taxonomy shared by strategies, infrastructure and the orchestrator.

- BackendUnavailable: transport-level failure; aborts the whole run.
- BackendRejected: the backend refused an operation; disables that strategy.
- OperationTimeout: a caller-supplied deadline expired; recorded, run continues.
"""

from __future__ import annotations

from typing import Optional


class BenchmarkError(Exception):
    """Base class for all sketchbench errors."""

    def __init__(self, message: str, backend: Optional[str] = None) -> None:
        super().__init__(message)
        self.backend = backend


class BackendUnavailable(BenchmarkError):
    """Connection or transport failure against a backend."""


class BackendRejected(BenchmarkError):
    """The backend refused the request (bad command, schema conflict, ...)."""


class OperationTimeout(BenchmarkError):
    """An operation exceeded its deadline and was abandoned."""


class StrategyStateError(RuntimeError):
    """A strategy was used outside its initialize-once lifecycle."""


__all__ = [
    "BenchmarkError",
    "BackendUnavailable",
    "BackendRejected",
    "OperationTimeout",
    "StrategyStateError",
]
