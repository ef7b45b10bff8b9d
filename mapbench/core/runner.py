"""Benchmark runner driving workers through the suite lifecycle."""

import asyncio
import time
from collections import Counter
from typing import List, Optional

from ..drivers.base import AbstractDriver, load_driver
from ..utils.latency_recorder import LatencyRecorder
from ..utils.logging import LoggerMixin, WorkerLogAdapter
from ..utils.timer import Timer
from .config import RunConfig
from .context import BenchmarkContext
from .errors import (
    FatalBenchmarkError,
    ProvisioningError,
    SetupError,
    failure_kind,
)
from .results import (
    BenchmarkResult,
    ErrorStats,
    LatencyStats,
    ResultCollector,
    ThroughputStats,
    WorkerResult,
)
from .suite import BenchmarkSuite, Phase, load_suite


class BenchmarkWorker(LoggerMixin):
    """One worker: a private suite instance run strictly sequentially."""

    def __init__(self, worker_id: str, suite: BenchmarkSuite, context: BenchmarkContext):
        super().__init__()
        self.worker_id = worker_id
        self.suite = suite
        self.context = context.for_worker(worker_id)
        self.log = self.worker_logger(worker_id)
        self.ready = False
        self.setup_error: Optional[str] = None

    async def setup(self) -> bool:
        """Run worker setup. A failing worker is reported and sits out the run."""
        self.suite.enter(Phase.WORKER_INIT)
        try:
            await self.suite.setup_worker(self.context)
        except Exception as e:
            self.setup_error = f"worker setup failed: {e}"
            self.log.error(self.setup_error)
            return False
        self.ready = True
        return True

    async def teardown(self) -> None:
        if self.ready:
            try:
                await self.suite.teardown_worker(self.context)
            except Exception as e:
                self.log.warning(f"worker teardown failed: {e}")
        self.suite.enter(Phase.DONE)

    async def run_benchmark(self, name: str, requests: int, duration: float) -> WorkerResult:
        """Set up, run and tear down one benchmark on this worker."""
        result = WorkerResult(
            worker_id=self.worker_id,
            benchmark=name,
            start_time=time.time(),
            end_time=0.0,
            phase=Phase.BENCHMARK_INIT.value
        )
        if not self.ready:
            result.fatal_error = self.setup_error or "worker not initialized"
            result.end_time = time.time()
            return result

        context = self.context.for_benchmark(name)
        log = self.log.for_benchmark(name)
        self.suite.enter(Phase.BENCHMARK_INIT)
        try:
            await self.suite.setup_benchmark(context)
        except Exception as e:
            error = SetupError(f"setup of {name} failed: {e}", benchmark=name)
            log.error(str(error))
            result.fatal_error = str(error)
            result.end_time = time.time()
            return result

        try:
            setup_hook = self.suite.get_setup_hook(name)
            if setup_hook is not None:
                try:
                    await setup_hook(context)
                except FatalBenchmarkError as e:
                    log.error(f"aborted: {e}")
                    result.fatal_error = str(e)
                    return result
                except Exception as e:
                    error = SetupError(f"setup of {name} failed: {e}", benchmark=name)
                    log.error(str(error))
                    result.fatal_error = str(error)
                    return result

            self.suite.enter(Phase.RUNNING)
            result.phase = Phase.RUNNING.value
            await self._run_iterations(name, result, requests, duration, log)
        finally:
            await self._teardown_benchmark(name, context, log)
            result.phase = Phase.BENCHMARK_TEARDOWN.value
            result.end_time = time.time()

        return result

    async def _run_iterations(
        self,
        name: str,
        result: WorkerResult,
        requests: int,
        duration: float,
        log: WorkerLogAdapter
    ) -> None:
        benchmark = self.suite.get_benchmark(name)
        recorder = LatencyRecorder()
        errors: Counter = Counter()
        run_timer = Timer(duration)

        iterations = 0
        while (requests == 0 or iterations < requests) and not run_timer.expired():
            timer = Timer()
            try:
                await benchmark()
            except FatalBenchmarkError as e:
                log.error(f"aborted after {iterations} iterations: {e}")
                result.fatal_error = str(e)
                break
            except Exception as e:
                errors[failure_kind(e)] += 1
                log.debug(f"iteration {iterations} failed: {e!r}")
            recorder.record_latency_micros(timer.elapsed_micros())
            iterations += 1

        elapsed = run_timer.elapsed_seconds()
        total_errors = sum(errors.values())
        result.iterations = iterations
        result.latency = LatencyStats.from_recorder(recorder)
        result.throughput = ThroughputStats(
            total_operations=iterations,
            duration_seconds=elapsed,
            operations_per_second=iterations / elapsed if elapsed > 0 else 0.0
        )
        result.errors = ErrorStats(
            total_errors=total_errors,
            error_rate=total_errors / iterations if iterations else 0.0,
            error_types=dict(errors)
        )
        log.debug(f"{iterations} iterations, {total_errors} failed, {elapsed:.2f}s")

    async def _teardown_benchmark(self, name: str, context: BenchmarkContext, log: WorkerLogAdapter) -> None:
        """Release benchmark resources; failures are logged, never raised."""
        self.suite.enter(Phase.BENCHMARK_TEARDOWN)
        teardown_hook = self.suite.get_teardown_hook(name)
        if teardown_hook is not None:
            try:
                await teardown_hook(context)
            except Exception as e:
                log.warning(f"teardown hook failed: {e}")
        try:
            await self.suite.teardown_benchmark(context)
        except Exception as e:
            log.warning(f"benchmark teardown failed: {e}")


class BenchmarkRunner(LoggerMixin):
    """Runs a suite's benchmarks across a population of parallel workers.

    Suite setup runs once; each benchmark then runs on every worker
    concurrently, and the next benchmark starts when all workers finished
    the current one.
    """

    def __init__(
        self,
        config: RunConfig,
        driver: Optional[AbstractDriver] = None,
        result_collector: Optional[ResultCollector] = None
    ):
        super().__init__()
        self.config = config
        self.driver = driver if driver is not None else load_driver(config.driver)
        self.result_collector = result_collector or ResultCollector()
        self.suite_class = load_suite(config.suite)
        self.benchmarks = self._resolve_benchmarks()

    def _resolve_benchmarks(self) -> List[str]:
        if not self.config.benchmarks:
            return self.suite_class.benchmark_names()
        return [self.suite_class.normalize_name(name) for name in self.config.benchmarks]

    async def run(self) -> List[BenchmarkResult]:
        """Run all selected benchmarks.

        Raises:
            ProvisioningError: if suite setup fails; no worker is started
        """
        context = BenchmarkContext(self.config.args)
        self.logger.info(
            f"Running {self.suite_class.__name__} benchmarks {self.benchmarks} "
            f"on {self.config.workers} worker(s)"
        )

        async with self.driver:
            await self._setup_suite(context)

            workers = [
                BenchmarkWorker(f"worker-{i}", self.suite_class(self.driver), context)
                for i in range(self.config.workers)
            ]
            await asyncio.gather(*(worker.setup() for worker in workers))
            ready = sum(1 for worker in workers if worker.ready)
            self.logger.info(f"{ready}/{len(workers)} worker(s) initialized")

            results = []
            try:
                for name in self.benchmarks:
                    results.append(await self._run_benchmark(name, workers))
            finally:
                await asyncio.gather(*(worker.teardown() for worker in workers))

        return results

    async def _setup_suite(self, context: BenchmarkContext) -> None:
        suite = self.suite_class(self.driver)
        suite.enter(Phase.SUITE_INIT)
        self.logger.info("Setting up suite...")
        try:
            await suite.setup_suite(context)
        except Exception as e:
            self.logger.error(f"Suite setup failed: {e}")
            raise ProvisioningError(f"suite setup failed: {e}") from e
        finally:
            suite.enter(Phase.DONE)
        self.logger.info("Suite setup completed")

    async def _run_benchmark(self, name: str, workers: List[BenchmarkWorker]) -> BenchmarkResult:
        result = self.result_collector.create_result(
            benchmark=name,
            suite=self.config.suite,
            run_config=self.config.dict(),
            max_latency_ms=self.config.max_latency_ms
        )
        self.logger.info(f"Starting benchmark {name}")

        worker_results = await asyncio.gather(*(
            worker.run_benchmark(name, self.config.requests, self.config.duration)
            for worker in workers
        ))
        for worker_result in worker_results:
            self.result_collector.add_worker_result(result, worker_result)

        self.result_collector.finalize_result(result)
        return result
