"""Benchmark harness for replicated key-value map services."""

__version__ = "0.1.0"
