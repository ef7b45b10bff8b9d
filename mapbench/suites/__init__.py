"""Benchmark suites."""

from .map_suite import MapBenchmarkSuite

__all__ = ["MapBenchmarkSuite"]
