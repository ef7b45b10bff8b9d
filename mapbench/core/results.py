"""Result collection and aggregation for the map benchmark harness."""

import json
import time
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Any, Optional, Union
from dataclasses import dataclass, field, asdict
import pandas as pd
from ..utils.latency_recorder import LatencyRecorder, LatencySnapshot
from ..utils.logging import LoggerMixin


@dataclass
class LatencyStats:
    """Latency statistics."""
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
    # Raw histogram data for aggregation across workers
    histogram_data: Optional[Dict[str, Any]] = None

    @classmethod
    def from_recorder(cls, recorder: LatencyRecorder) -> 'LatencyStats':
        snapshot: LatencySnapshot = recorder.get_snapshot()
        return cls(histogram_data=recorder.export_histogram(), **snapshot.to_dict())


@dataclass
class ThroughputStats:
    """Throughput statistics."""
    total_operations: int = 0
    duration_seconds: float = 0.0
    operations_per_second: float = 0.0


@dataclass
class ErrorStats:
    """Error statistics."""
    total_errors: int = 0
    error_rate: float = 0.0
    error_types: Dict[str, int] = field(default_factory=dict)


@dataclass
class WorkerResult:
    """Result of one benchmark on one worker."""
    worker_id: str
    benchmark: str
    start_time: float
    end_time: float

    # Last lifecycle phase the worker reached for this benchmark
    phase: str = "running"
    iterations: int = 0

    throughput: ThroughputStats = field(default_factory=ThroughputStats)
    latency: LatencyStats = field(default_factory=LatencyStats)
    errors: ErrorStats = field(default_factory=ErrorStats)

    # Set when setup failed or the benchmark was aborted
    fatal_error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        """Get run duration in seconds."""
        return self.end_time - self.start_time

    @property
    def aborted(self) -> bool:
        return self.fatal_error is not None


@dataclass
class BenchmarkResult:
    """Benchmark result aggregated over all workers."""
    test_id: str
    benchmark: str
    suite: str
    start_time: float
    end_time: float = 0.0

    run_config: Dict[str, Any] = field(default_factory=dict)
    worker_results: List[WorkerResult] = field(default_factory=list)

    # Aggregated stats
    throughput: Optional[ThroughputStats] = None
    latency: Optional[LatencyStats] = None
    errors: Optional[ErrorStats] = None

    max_latency_ms: Optional[float] = None
    passed: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        """Get total benchmark duration in seconds."""
        return self.end_time - self.start_time

    @property
    def total_workers(self) -> int:
        return len(self.worker_results)

    @property
    def aborted_workers(self) -> int:
        return sum(1 for r in self.worker_results if r.aborted)

    @property
    def total_iterations(self) -> int:
        return sum(r.iterations for r in self.worker_results)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data['duration_seconds'] = self.duration_seconds
        return data

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2, default=str)


class ResultCollector(LoggerMixin):
    """Collects and aggregates benchmark results."""

    def __init__(self):
        super().__init__()
        self.results: List[BenchmarkResult] = []

    def create_result(
        self,
        benchmark: str,
        suite: str,
        run_config: Optional[Dict[str, Any]] = None,
        max_latency_ms: Optional[float] = None
    ) -> BenchmarkResult:
        """Create a new benchmark result."""
        test_id = f"{benchmark}_{int(time.time())}"

        result = BenchmarkResult(
            test_id=test_id,
            benchmark=benchmark,
            suite=suite,
            start_time=time.time(),
            run_config=run_config or {},
            max_latency_ms=max_latency_ms
        )

        self.results.append(result)
        self.logger.debug(f"Created benchmark result: {test_id}")
        return result

    def add_worker_result(self, benchmark_result: BenchmarkResult, worker_result: WorkerResult) -> None:
        """Add worker result to benchmark result."""
        if worker_result.benchmark != benchmark_result.benchmark:
            self.logger.warning(
                f"Worker result for {worker_result.benchmark} added to {benchmark_result.benchmark}"
            )
        benchmark_result.worker_results.append(worker_result)

    def finalize_result(self, benchmark_result: BenchmarkResult) -> None:
        """Finalize benchmark result with aggregated statistics."""
        benchmark_result.end_time = time.time()
        workers = benchmark_result.worker_results

        benchmark_result.throughput = self._aggregate_throughput_stats(workers)
        benchmark_result.latency = self._aggregate_latency_stats([r.latency for r in workers])
        benchmark_result.errors = self._aggregate_error_stats(workers)

        benchmark_result.passed = self._evaluate(benchmark_result)
        self.logger.info(
            f"Finalized {benchmark_result.benchmark}: "
            f"{'PASSED' if benchmark_result.passed else 'FAILED'}"
        )

    def _evaluate(self, result: BenchmarkResult) -> bool:
        if not result.worker_results or result.aborted_workers:
            return False
        if result.errors and result.errors.total_errors > 0:
            return False
        if result.max_latency_ms is not None and result.latency and result.latency.count > 0:
            if result.latency.mean_ms > result.max_latency_ms:
                result.metadata['failure'] = (
                    f"mean latency {result.latency.mean_ms:.2f}ms exceeds {result.max_latency_ms}ms"
                )
                return False
        return True

    def _aggregate_throughput_stats(self, workers: List[WorkerResult]) -> ThroughputStats:
        """Aggregate throughput over the concurrent time window of the workers."""
        if not workers:
            return ThroughputStats()

        total = sum(w.iterations for w in workers)
        window = max(w.end_time for w in workers) - min(w.start_time for w in workers)

        return ThroughputStats(
            total_operations=total,
            duration_seconds=window,
            operations_per_second=total / window if window > 0 else 0.0
        )

    def _aggregate_latency_stats(self, stats_list: List[LatencyStats]) -> LatencyStats:
        """Aggregate latency statistics by merging histograms."""
        merged = LatencyRecorder()
        for stats in stats_list:
            if stats.histogram_data:
                merged.merge(LatencyRecorder.from_histogram_data(stats.histogram_data))
        return LatencyStats.from_recorder(merged)

    def _aggregate_error_stats(self, workers: List[WorkerResult]) -> ErrorStats:
        error_types: Counter = Counter()
        for w in workers:
            error_types.update(w.errors.error_types)
        total_errors = sum(error_types.values())
        total = sum(w.iterations for w in workers)

        return ErrorStats(
            total_errors=total_errors,
            error_rate=total_errors / total if total > 0 else 0.0,
            error_types=dict(error_types)
        )

    def save_results(self, results: List[BenchmarkResult], file_path: Union[str, Path]) -> None:
        """Save benchmark results to a JSON file."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump([r.to_dict() for r in results], f, indent=2, default=str)

        self.logger.info(f"Saved benchmark results to: {file_path}")

    def summarize(self, result: BenchmarkResult) -> Dict[str, Any]:
        """Flatten a result into one summary row."""
        row = {
            'test_id': result.test_id,
            'benchmark': result.benchmark,
            'passed': result.passed,
            'duration_seconds': result.duration_seconds,
            'workers': result.total_workers,
            'aborted_workers': result.aborted_workers,
            'iterations': result.total_iterations,
        }

        if result.throughput:
            row['throughput_ops_per_sec'] = result.throughput.operations_per_second

        if result.errors:
            row['errors_total'] = result.errors.total_errors
            row['error_rate'] = result.errors.error_rate
            row['event_timeouts'] = result.errors.error_types.get('event_timeout', 0)

        if result.latency:
            row.update({
                'latency_mean_ms': result.latency.mean_ms,
                'latency_p50_ms': result.latency.p50_ms,
                'latency_p95_ms': result.latency.p95_ms,
                'latency_p99_ms': result.latency.p99_ms,
                'latency_max_ms': result.latency.max_ms,
            })

        return row

    def export_csv(self, results: List[BenchmarkResult], file_path: Union[str, Path]) -> None:
        """Export benchmark results to CSV, one row per benchmark."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        df = pd.DataFrame([self.summarize(r) for r in results])
        df.to_csv(file_path, index=False)

        self.logger.info(f"Exported benchmark results to CSV: {file_path}")

    def generate_comparison_report(self, results: List[BenchmarkResult]) -> str:
        """Generate comparison report for multiple results."""
        if not results:
            return "No results to compare"

        report = ["# Map Benchmark Report\n"]
        report.append(f"Generated at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
        report.append(f"Number of benchmarks: {len(results)}\n\n")

        report.append("## Summary\n")
        report.append("| Benchmark | Result | Iterations | Throughput (ops/s) | Errors | Mean Latency (ms) | P99 Latency (ms) |")
        report.append("|-----------|--------|------------|--------------------|--------|-------------------|------------------|")

        for result in results:
            throughput = result.throughput.operations_per_second if result.throughput else 0
            errors = result.errors.total_errors if result.errors else 0
            mean_latency = result.latency.mean_ms if result.latency else 0
            p99_latency = result.latency.p99_ms if result.latency else 0
            status = "PASS" if result.passed else "FAIL"

            report.append(
                f"| {result.benchmark} | {status} | {result.total_iterations} | {throughput:.0f} "
                f"| {errors} | {mean_latency:.3f} | {p99_latency:.3f} |"
            )

        return "\n".join(report)
