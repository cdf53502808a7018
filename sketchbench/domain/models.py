"""
Domain models for sketchbench.

Measurements are produced by the orchestrator and consumed by the reporter;
they are frozen once recorded. BenchmarkReport bundles everything one run
produced so it can be rendered or dumped as JSON.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class OperationName(str, Enum):
    """Benchmarked operations, in the order the orchestrator runs them."""

    INITIALIZE = "initialize"
    PRESENCE_CHECK = "presence_check"
    ITEM_COUNT = "item_count"
    CARDINALITY_CHECK = "cardinality_check"
    TOP_K = "top_k"
    REPORT_SIZE = "report_size"

    @property
    def label(self) -> str:
        return _OPERATION_LABELS[self]


_OPERATION_LABELS = {
    OperationName.INITIALIZE: "Init",
    OperationName.PRESENCE_CHECK: "Presence Check",
    OperationName.ITEM_COUNT: "Item Count",
    OperationName.CARDINALITY_CHECK: "Cardinality",
    OperationName.TOP_K: "Top K",
    OperationName.REPORT_SIZE: "Size Report",
}


class MeasurementStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class Measurement(BaseModel):
    """
    Timing of one (strategy, operation) invocation.
    """

    strategy: str = Field(..., description="Name of the strategy that ran the operation.")
    operation: OperationName = Field(..., description="Which contract operation was timed.")
    duration_seconds: float = Field(0.0, ge=0.0, description="Elapsed monotonic time.")
    status: MeasurementStatus = Field(MeasurementStatus.OK)
    value: Any = Field(None, description="Query answer, or size entries written.")
    error: Optional[str] = Field(None, description="Error message when not ok.")
    error_type: Optional[str] = Field(None, description="Exception class name when failed.")
    peak_rss_bytes: Optional[int] = Field(None, description="Sampled for initialize only.")

    model_config = {"frozen": True}

    @property
    def ok(self) -> bool:
        return self.status is MeasurementStatus.OK


class BenchmarkReport(BaseModel):
    """
    Everything produced by a single benchmark run.
    """

    timestamp: datetime
    corpus_tokens: int = Field(..., ge=0)
    corpus_distinct: int = Field(..., ge=0)
    probe_token: str
    top_k: int
    strategies: List[str]
    measurements: List[Measurement]
    sizes: Dict[str, int]

    model_config = {"frozen": True}

    def for_operation(self, operation: OperationName) -> List[Measurement]:
        return [m for m in self.measurements if m.operation is operation]

    def failures(self) -> List[Measurement]:
        return [m for m in self.measurements if m.status is MeasurementStatus.FAILED]


__all__ = [
    "OperationName",
    "MeasurementStatus",
    "Measurement",
    "BenchmarkReport",
]
