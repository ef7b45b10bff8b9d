"""Utilities for the map benchmark harness."""

from .logging import setup_logging, get_logger, LoggerMixin, WorkerLogAdapter
from .latency_recorder import LatencyRecorder, LatencySnapshot
from .timer import Timer

__all__ = [
    "setup_logging",
    "get_logger",
    "LoggerMixin",
    "WorkerLogAdapter",
    "LatencyRecorder",
    "LatencySnapshot",
    "Timer",
]
