"""Benchmarks for the replicated map primitive."""

import asyncio
from typing import Optional

from ..core.context import BenchmarkContext
from ..core.errors import SetupError
from ..core.streams import (
    DEFAULT_EVENT_TIMEOUT,
    DEFAULT_SCAN_TIMEOUT,
    EntryScanner,
    EventWatcher,
)
from ..core.suite import BenchmarkSuite
from ..drivers.base import AbstractMap, AbstractMapClient
from ..workload import WorkloadGenerator

CONTROLLER_CHART = "atomix-controller"
CONTROLLER_RELEASE = "atomix-controller"
DATABASE_CHART = "atomix-database"
DATABASE_RELEASE = "atomix-database"

DEFAULT_CLUSTERS = 3
DEFAULT_PARTITIONS = 10
DEFAULT_REPLICAS = 3
DEFAULT_IMAGE = "atomix/local-replica:latest"
DEFAULT_SETUP_TIMEOUT = 10.0


class MapBenchmarkSuite(BenchmarkSuite):
    """Put, get, change-notification and full-scan benchmarks against one map.

    Each benchmark runs against its own map, named after the benchmark,
    unless the ``map`` argument names one map shared by all of them.
    """

    def __init__(self, driver):
        super().__init__(driver)
        self.workload: Optional[WorkloadGenerator] = None
        self.client: Optional[AbstractMapClient] = None
        self.map: Optional[AbstractMap] = None
        self.watcher: Optional[EventWatcher] = None
        self.event_timeout = DEFAULT_EVENT_TIMEOUT
        self.scan_timeout = DEFAULT_SCAN_TIMEOUT

    async def setup_suite(self, context: BenchmarkContext) -> None:
        provisioner = self.driver.create_provisioner()
        self.logger.info(f"Installing {CONTROLLER_RELEASE}")
        await provisioner.install(
            CONTROLLER_CHART,
            CONTROLLER_RELEASE,
            {"scope": "Namespace"},
            wait=True
        )
        self.logger.info(f"Installing {DATABASE_RELEASE}")
        await provisioner.install(
            DATABASE_CHART,
            DATABASE_RELEASE,
            {
                "clusters": context.get_int("clusters", DEFAULT_CLUSTERS),
                "partitions": context.get_int("partitions", DEFAULT_PARTITIONS),
                "backend.replicas": context.get_int("replicas", DEFAULT_REPLICAS),
                "backend.image": context.get_str("image", DEFAULT_IMAGE),
            },
            wait=True
        )

    async def setup_worker(self, context: BenchmarkContext) -> None:
        self.workload = WorkloadGenerator.from_context(context)

    async def setup_benchmark(self, context: BenchmarkContext) -> None:
        address = await self.driver.create_discovery().resolve_address(CONTROLLER_RELEASE)
        if not address:
            raise SetupError(f"no service found for release '{CONTROLLER_RELEASE}'", context.name)

        client = await self.driver.connect(address)
        try:
            database = await client.get_database(DATABASE_RELEASE)
            self.map = await database.get_map(context.get_str("map", context.name))
        except Exception:
            await client.close()
            raise
        self.client = client

    async def teardown_benchmark(self, context: BenchmarkContext) -> None:
        try:
            await self.map.close()
        finally:
            self.map = None
            client, self.client = self.client, None
            await client.close()

    async def benchmark_map_put(self) -> None:
        await self.map.put(self.workload.next_key(), self.workload.next_value())

    async def benchmark_map_get(self) -> None:
        await self.map.get(self.workload.next_key())

    async def setup_benchmark_map_event(self, context: BenchmarkContext) -> None:
        self.event_timeout = context.get_float("event-timeout", DEFAULT_EVENT_TIMEOUT)
        # Must be subscribed before the first put or early notifications are lost
        self.watcher = await EventWatcher.subscribe(self.map)

    async def teardown_benchmark_map_event(self, context: BenchmarkContext) -> None:
        if self.watcher is not None:
            self.watcher.close()
        self.watcher = None

    async def benchmark_map_event(self) -> None:
        await self.map.put(self.workload.next_key(), self.workload.next_value())
        await self.watcher.wait_next(self.event_timeout)

    async def setup_benchmark_map_entries(self, context: BenchmarkContext) -> None:
        self.scan_timeout = context.get_float("scan-timeout", DEFAULT_SCAN_TIMEOUT)
        timeout = context.get_float("setup-timeout", DEFAULT_SETUP_TIMEOUT)
        for _ in range(self.workload.key_count):
            await asyncio.wait_for(
                self.map.put(self.workload.next_key(), self.workload.next_value()),
                timeout
            )

    async def benchmark_map_entries(self) -> None:
        await EntryScanner(self.map, self.scan_timeout).scan()
