"""High-precision latency recording using HdrHistogram.

Every benchmark iteration is timed and recorded here in microseconds. Worker
recorders are exported as encoded histograms so the runner can merge them
into exact cross-worker percentiles.
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass, asdict
import numpy as np
from hdrh.histogram import HdrHistogram


@dataclass
class LatencySnapshot:
    """Snapshot of latency statistics."""
    count: int = 0
    min_ms: float = 0.0
    max_ms: float = 0.0
    mean_ms: float = 0.0
    stddev_ms: float = 0.0
    p50_ms: float = 0.0
    p75_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    p99_9_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


class LatencyRecorder:
    """Latency recorder backed by an HdrHistogram.

    Min, max, mean and standard deviation are tracked exactly alongside the
    histogram; percentiles come from the histogram.
    """

    def __init__(
        self,
        lowest_trackable_value: int = 1,
        highest_trackable_value: int = 3600000000,
        significant_figures: int = 3
    ):
        """Initialize latency recorder.

        Args:
            lowest_trackable_value: Lowest latency value in microseconds (default 1us)
            highest_trackable_value: Highest latency value in microseconds (default 1 hour)
            significant_figures: Number of significant figures for precision (1-5)
        """
        self._bounds = (lowest_trackable_value, highest_trackable_value, significant_figures)
        self._histogram = HdrHistogram(*self._bounds)
        self._count = 0
        self._sum = 0.0
        self._sum_squares = 0.0
        self._min = float('inf')
        self._max = float('-inf')

    @property
    def count(self) -> int:
        return self._count

    def record_latency(self, latency_ms: float) -> None:
        """Record a latency measurement in milliseconds.

        Args:
            latency_ms: Latency value in milliseconds
        """
        if latency_ms < 0:
            return

        self._count += 1
        self._sum += latency_ms
        self._sum_squares += latency_ms * latency_ms
        self._min = min(self._min, latency_ms)
        self._max = max(self._max, latency_ms)

        # Out-of-range values are dropped by the histogram but kept in the exact stats
        self._histogram.record_value(max(int(latency_ms * 1000), self._bounds[0]))

    def record_latency_micros(self, latency_us: int) -> None:
        """Record a latency measurement in microseconds."""
        self.record_latency(latency_us / 1000.0)

    def get_snapshot(self) -> LatencySnapshot:
        """Get a snapshot of current latency statistics.

        Returns:
            LatencySnapshot with all percentiles calculated
        """
        if self._count == 0:
            return LatencySnapshot()

        mean = self._sum / self._count
        variance = (self._sum_squares / self._count) - (mean * mean)

        return LatencySnapshot(
            count=self._count,
            min_ms=self._min,
            max_ms=self._max,
            mean_ms=mean,
            stddev_ms=float(np.sqrt(max(0.0, variance))),
            p50_ms=self._percentile(50.0),
            p75_ms=self._percentile(75.0),
            p95_ms=self._percentile(95.0),
            p99_ms=self._percentile(99.0),
            p99_9_ms=self._percentile(99.9)
        )

    def _percentile(self, percentile: float) -> float:
        return self._histogram.get_value_at_percentile(percentile) / 1000.0

    def export_histogram(self) -> Optional[Dict[str, Any]]:
        """Export histogram data for aggregation.

        Returns:
            Dictionary with encoded histogram data, or None when nothing was recorded
        """
        if self._count == 0:
            return None

        return {
            'encoded': self._histogram.encode().decode('ascii'),
            'count': self._count,
            'sum_ms': self._sum,
            'sum_squares_ms': self._sum_squares,
            'min_ms': self._min,
            'max_ms': self._max,
        }

    @classmethod
    def from_histogram_data(cls, data: Dict[str, Any]) -> 'LatencyRecorder':
        """Rebuild a recorder from ``export_histogram`` output."""
        recorder = cls()
        recorder._histogram.add(HdrHistogram.decode(data['encoded'].encode('ascii')))
        recorder._count = data['count']
        recorder._sum = data['sum_ms']
        recorder._sum_squares = data['sum_squares_ms']
        recorder._min = data['min_ms']
        recorder._max = data['max_ms']
        return recorder

    def reset(self) -> None:
        """Reset all statistics."""
        self._count = 0
        self._sum = 0.0
        self._sum_squares = 0.0
        self._min = float('inf')
        self._max = float('-inf')
        self._histogram.reset()

    def merge(self, other: 'LatencyRecorder') -> None:
        """Merge another recorder into this one.

        Args:
            other: Another LatencyRecorder to merge
        """
        if other._count == 0:
            return

        self._count += other._count
        self._sum += other._sum
        self._sum_squares += other._sum_squares
        self._min = min(self._min, other._min)
        self._max = max(self._max, other._max)
        self._histogram.add(other._histogram)
