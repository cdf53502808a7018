"""
Domain package for sketchbench.

Exports the measurement/report models and corpus tokenization used across
strategies, the orchestrator and the reporter.
"""

from sketchbench.domain.corpus import load_corpus, tokenize
from sketchbench.domain.models import (
    BenchmarkReport,
    Measurement,
    MeasurementStatus,
    OperationName,
)

__all__ = [
    "BenchmarkReport",
    "Measurement",
    "MeasurementStatus",
    "OperationName",
    "load_corpus",
    "tokenize",
]
