"""
Utilities package for sketchbench.

Exports shared helpers for logging, timing and fan-out concurrency.
Keep this package lightweight and free of backend-specific logic.
"""

from sketchbench.utils.concurrency import chunked, gather_bounded
from sketchbench.utils.logging import configure_logging, get_logger
from sketchbench.utils.profiler import ProfileStats, profile_block

__all__ = [
    "chunked",
    "gather_bounded",
    "configure_logging",
    "get_logger",
    "ProfileStats",
    "profile_block",
]
