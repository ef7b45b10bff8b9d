"""Test the benchmark runner against the in-process map service."""

import time

import pytest

from mapbench.core.config import DriverConfig, RunConfig
from mapbench.core.context import BenchmarkContext
from mapbench.core.errors import FatalBenchmarkError, ProvisioningError
from mapbench.core.runner import BenchmarkRunner, BenchmarkWorker
from mapbench.core.suite import BenchmarkSuite, Phase
from mapbench.drivers.memory import MemoryDriver


def _config(driver_settings=None, **kwargs):
    kwargs.setdefault("requests", 20)
    kwargs.setdefault("duration", 30)
    return RunConfig(driver=DriverConfig(config=driver_settings or {}), **kwargs)


class RecordingSuite(BenchmarkSuite):
    """Suite recording lifecycle calls, with injectable failures."""

    def __init__(self, driver, fail_on=None, fail_after=None):
        super().__init__(driver)
        self.calls = []
        self.fail_on = fail_on
        self.fail_after = fail_after
        self.count = 0

    def _maybe_fail(self, hook):
        self.calls.append(hook)
        if self.fail_on == hook:
            raise RuntimeError(f"{hook} failed")

    async def setup_worker(self, context):
        self._maybe_fail("setup_worker")

    async def setup_benchmark(self, context):
        self._maybe_fail("setup_benchmark")

    async def teardown_benchmark(self, context):
        self._maybe_fail("teardown_benchmark")

    async def benchmark_count(self):
        self.count += 1
        if self.fail_after is not None and self.count > self.fail_after:
            raise FatalBenchmarkError("stream gone")

    async def benchmark_flaky(self):
        self.count += 1
        if self.count % 2:
            raise ValueError("odd iteration")


class TestBenchmarkWorker:
    """Test one worker's lifecycle."""

    @pytest.mark.asyncio
    async def test_iterations_and_teardown(self):
        """Test a benchmark runs its requests and tears down once."""
        suite = RecordingSuite(MemoryDriver())
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())
        assert await worker.setup()

        result = await worker.run_benchmark("count", requests=5, duration=10)

        assert result.iterations == 5
        assert suite.count == 5
        assert result.latency.count == 5
        assert result.errors.total_errors == 0
        assert not result.aborted
        assert suite.calls == ["setup_worker", "setup_benchmark", "teardown_benchmark"]
        assert suite.phase == Phase.BENCHMARK_TEARDOWN

        await worker.teardown()
        assert suite.phase == Phase.DONE

    @pytest.mark.asyncio
    async def test_errors_counted_and_loop_continues(self):
        """Test failed iterations are counted by kind."""
        suite = RecordingSuite(MemoryDriver())
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())
        await worker.setup()

        result = await worker.run_benchmark("flaky", requests=10, duration=10)

        assert result.iterations == 10
        assert result.errors.total_errors == 5
        assert result.errors.error_types == {"ValueError": 5}
        assert result.errors.error_rate == 0.5

    @pytest.mark.asyncio
    async def test_duration_bound(self):
        """Test an unbounded request count stops at the duration."""
        suite = RecordingSuite(MemoryDriver())
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())
        await worker.setup()

        result = await worker.run_benchmark("count", requests=0, duration=0.05)

        assert result.iterations > 0
        assert result.throughput.duration_seconds >= 0.05

    @pytest.mark.asyncio
    async def test_setup_failure_skips_teardown(self):
        """Test a failed benchmark setup aborts only that benchmark."""
        suite = RecordingSuite(MemoryDriver(), fail_on="setup_benchmark")
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())
        await worker.setup()

        result = await worker.run_benchmark("count", requests=5, duration=10)

        assert result.aborted
        assert "setup of count failed" in result.fatal_error
        assert result.iterations == 0
        assert "teardown_benchmark" not in suite.calls

        suite.fail_on = None
        second = await worker.run_benchmark("flaky", requests=2, duration=10)
        assert second.iterations == 2

    @pytest.mark.asyncio
    async def test_fatal_error_still_tears_down(self):
        """Test a fatal iteration error stops the loop and teardown still runs."""
        suite = RecordingSuite(MemoryDriver(), fail_after=3)
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())
        await worker.setup()

        result = await worker.run_benchmark("count", requests=10, duration=10)

        assert result.iterations == 3
        assert result.fatal_error == "stream gone"
        assert suite.calls.count("teardown_benchmark") == 1

    @pytest.mark.asyncio
    async def test_teardown_failure_not_raised(self):
        """Test teardown errors are logged, not escalated."""
        suite = RecordingSuite(MemoryDriver(), fail_on="teardown_benchmark")
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())
        await worker.setup()

        result = await worker.run_benchmark("count", requests=2, duration=10)

        assert result.iterations == 2
        assert not result.aborted

    @pytest.mark.asyncio
    async def test_worker_setup_failure(self):
        """Test a worker whose setup failed sits out every benchmark."""
        suite = RecordingSuite(MemoryDriver(), fail_on="setup_worker")
        worker = BenchmarkWorker("worker-0", suite, BenchmarkContext())

        assert not await worker.setup()
        result = await worker.run_benchmark("count", requests=2, duration=10)

        assert "worker setup failed" in result.fatal_error
        assert suite.count == 0
        await worker.teardown()
        assert suite.phase == Phase.DONE


class TestBenchmarkRunner:
    """Test full runs of the map suite."""

    @pytest.mark.asyncio
    async def test_full_run(self):
        """Test every benchmark runs on every worker and releases its map."""
        runner = BenchmarkRunner(_config(workers=2, args={"key-count": 10, "value-length": 16}))

        results = await runner.run()

        assert [r.benchmark for r in results] == ["map_put", "map_get", "map_event", "map_entries"]
        put, get, event, entries = results
        assert put.passed
        assert put.total_iterations == 40
        assert put.total_workers == 2
        assert event.passed
        assert event.errors.total_errors == 0
        assert entries.passed
        # Each benchmark has its own map, so reads against the fresh map miss
        assert not get.passed
        assert set(get.errors.error_types) == {"not_found"}

        service = runner.driver.service
        assert set(service.releases) == {"atomix-controller", "atomix-database"}
        assert service.releases["atomix-database"][1] == {
            "clusters": 3,
            "partitions": 10,
            "backend.replicas": 3,
            "backend.image": "atomix/local-replica:latest",
        }
        assert service.open_handles == 8
        assert service.closed_handles == 8

    @pytest.mark.asyncio
    async def test_put_then_get_on_shared_map(self):
        """Test key-count=3: puts land on three keys and gets then succeed."""
        runner = BenchmarkRunner(_config(
            benchmarks=["map_put", "map_get"],
            requests=100,
            args={"key-count": 3, "value-count": 1, "key-length": 4, "map": "shared"}
        ))

        put, get = await runner.run()

        assert put.passed
        assert put.total_iterations == 100
        assert get.passed
        assert get.errors.total_errors == 0

        entries = runner.driver.service.databases["atomix-database"]["shared"].entries
        assert len(entries) == 3
        assert all(len(key) == 4 for key in entries)
        assert len(set(entries.values())) == 1

    @pytest.mark.asyncio
    async def test_provisioning_failure(self):
        """Test a failed install aborts the run before any worker starts."""
        runner = BenchmarkRunner(_config({"fail_install": "atomix-database"}, workers=2))

        with pytest.raises(ProvisioningError):
            await runner.run()

        assert runner.driver.service.open_handles == 0

    @pytest.mark.asyncio
    async def test_subscription_failure(self):
        """Test a refused subscription aborts the event benchmark per worker."""
        runner = BenchmarkRunner(_config({"fail_watch": True}, workers=2, benchmarks=["map_event"]))

        [result] = await runner.run()

        assert not result.passed
        assert result.aborted_workers == 2
        assert result.total_iterations == 0
        assert all("watch" in w.fatal_error for w in result.worker_results)
        assert runner.driver.service.closed_handles == 2

    @pytest.mark.asyncio
    async def test_event_timeout(self):
        """Test a silent service fails each event iteration after the bound."""
        runner = BenchmarkRunner(_config(
            {"emit_events": False},
            benchmarks=["map-event"],
            requests=3,
            args={"event-timeout": 0.05}
        ))

        [result] = await runner.run()

        assert not result.passed
        assert result.total_iterations == 3
        assert result.errors.error_types == {"event_timeout": 3}
        assert result.latency.min_ms >= 45.0

    @pytest.mark.asyncio
    async def test_failed_put_skips_event_wait(self):
        """Test a rejected write fails the event iteration without waiting for a notification."""
        runner = BenchmarkRunner(_config(
            {"fail_put": True},
            benchmarks=["map_event"],
            requests=3,
            args={"event-timeout": 5.0}
        ))

        started = time.monotonic()
        [result] = await runner.run()

        assert time.monotonic() - started < 2.0
        assert not result.passed
        assert result.total_iterations == 3
        assert result.errors.error_types == {"service": 3}
        assert result.latency.max_ms < 1000.0

    @pytest.mark.asyncio
    async def test_unterminated_scan_times_out(self):
        """Test a scan stream without an end marker fails on the deadline."""
        runner = BenchmarkRunner(_config(
            {"end_scans": False},
            benchmarks=["map_entries"],
            requests=2,
            args={"key-count": 5, "scan-timeout": 0.05}
        ))

        [result] = await runner.run()

        assert result.errors.error_types == {"event_timeout": 2}
        assert runner.driver.service.closed_handles == 1

    @pytest.mark.asyncio
    async def test_max_latency(self):
        """Test the mean latency bound fails a slow benchmark."""
        runner = BenchmarkRunner(_config(
            {"latency_ms": 5},
            benchmarks=["map_put"],
            requests=5,
            max_latency_ms=1.0
        ))

        [result] = await runner.run()

        assert result.errors.total_errors == 0
        assert not result.passed
        assert "exceeds" in result.metadata["failure"]

    def test_unknown_benchmark(self):
        """Test unknown benchmark names are rejected up front."""
        with pytest.raises(ValueError):
            BenchmarkRunner(_config(benchmarks=["map_remove"]))
