"""In-process map service driver.

The service state is shared by every client connected through the same
driver instance, so parallel workers of one run contend on the same maps the
way they would on a remote deployment. Behaviour switches in the driver
config make it usable as a test double:

- ``address``: address reported by discovery (default ``memory://mapbench``)
- ``latency_ms``: artificial latency added to every map operation
- ``emit_events``: deliver change notifications (default true)
- ``end_scans``: terminate entry streams with ``END_OF_STREAM`` (default true)
- ``fail_install``: chart name whose install fails
- ``fail_watch``: refuse watch subscriptions
- ``fail_put``: reject every write with a service error
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..base import (
    AbstractDatabase,
    AbstractDiscovery,
    AbstractDriver,
    AbstractMap,
    AbstractMapClient,
    AbstractProvisioner,
    END_OF_STREAM,
    EventType,
    MapEntry,
    MapEvent,
    StreamHandle,
)
from ...core.config import DriverConfig
from ...core.errors import KeyNotFoundError, MapServiceError

DEFAULT_ADDRESS = "memory://mapbench"


@dataclass
class MapState:
    """Server-side state of one map."""
    entries: Dict[str, bytes] = field(default_factory=dict)
    subscribers: List[asyncio.Queue] = field(default_factory=list)


class MemoryMapService:
    """The in-process 'remote' service: installed releases and their maps."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        settings = settings or {}
        self.address = str(settings.get("address", DEFAULT_ADDRESS))
        self.latency = float(settings.get("latency_ms", 0)) / 1000.0
        self.emit_events = bool(settings.get("emit_events", True))
        self.end_scans = bool(settings.get("end_scans", True))
        self.fail_install = settings.get("fail_install")
        self.fail_watch = bool(settings.get("fail_watch", False))
        self.fail_put = bool(settings.get("fail_put", False))

        self.releases: Dict[str, Tuple[str, Dict[str, Any]]] = {}
        self.databases: Dict[str, Dict[str, MapState]] = {}
        self.open_handles = 0
        self.closed_handles = 0

    def map_state(self, database: str, name: str) -> MapState:
        maps = self.databases.setdefault(database, {})
        return maps.setdefault(name, MapState())

    async def delay(self) -> None:
        # Always yield so workers sharing the loop interleave
        await asyncio.sleep(self.latency)


class MemoryProvisioner(AbstractProvisioner):

    def __init__(self, service: MemoryMapService):
        self.service = service

    async def install(
        self,
        chart: str,
        release: str,
        values: Optional[Dict[str, Any]] = None,
        wait: bool = True
    ) -> None:
        if self.service.fail_install and self.service.fail_install in (True, chart):
            raise MapServiceError(f"install of chart '{chart}' failed")
        self.service.releases[release] = (chart, dict(values or {}))
        self.service.databases.setdefault(release, {})


class MemoryDiscovery(AbstractDiscovery):

    def __init__(self, service: MemoryMapService):
        self.service = service

    async def resolve_address(self, release: str) -> str:
        if release not in self.service.releases:
            return ""
        return self.service.address


class MemoryMap(AbstractMap):
    """Client handle to a map held by ``MemoryMapService``."""

    def __init__(self, service: MemoryMapService, state: MapState, name: str):
        self.service = service
        self.state = state
        self._name = name
        self._queues: List[asyncio.Queue] = []
        self._closed = False
        service.open_handles += 1

    @property
    def name(self) -> str:
        return self._name

    def _check_open(self) -> None:
        if self._closed:
            raise MapServiceError(f"map '{self._name}' is closed")

    async def put(self, key: str, value: bytes) -> Optional[bytes]:
        self._check_open()
        await self.service.delay()
        if self.service.fail_put:
            raise MapServiceError(f"put {key} on map '{self._name}' rejected")
        previous = self.state.entries.get(key)
        self.state.entries[key] = value
        event_type = EventType.INSERTED if previous is None else EventType.UPDATED
        self._publish(MapEvent(type=event_type, key=key, value=value))
        return previous

    async def get(self, key: str) -> bytes:
        self._check_open()
        await self.service.delay()
        try:
            return self.state.entries[key]
        except KeyError:
            raise KeyNotFoundError(key)

    def _publish(self, event: MapEvent) -> None:
        if not self.service.emit_events:
            return
        for queue in self.state.subscribers:
            queue.put_nowait(event)

    async def watch(self, queue: asyncio.Queue) -> None:
        self._check_open()
        if self.service.fail_watch:
            raise MapServiceError(f"watch on map '{self._name}' refused")
        self.state.subscribers.append(queue)
        self._queues.append(queue)

    async def entries(self, queue: asyncio.Queue) -> StreamHandle:
        self._check_open()
        await self.service.delay()
        for key, value in list(self.state.entries.items()):
            queue.put_nowait(MapEntry(key=key, value=value))
        if self.service.end_scans:
            queue.put_nowait(END_OF_STREAM)
        return StreamHandle()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._queues:
            if queue in self.state.subscribers:
                self.state.subscribers.remove(queue)
        self._queues.clear()
        self.service.closed_handles += 1


class MemoryDatabase(AbstractDatabase):

    def __init__(self, service: MemoryMapService, name: str):
        self.service = service
        self.name = name

    async def get_map(self, name: str) -> MemoryMap:
        await self.service.delay()
        return MemoryMap(self.service, self.service.map_state(self.name, name), name)


class MemoryMapClient(AbstractMapClient):

    def __init__(self, service: MemoryMapService):
        self.service = service

    async def get_database(self, name: str) -> MemoryDatabase:
        if name not in self.service.databases:
            raise MapServiceError(f"database '{name}' not found")
        return MemoryDatabase(self.service, name)

    async def close(self) -> None:
        pass


class MemoryDriver(AbstractDriver):
    """Driver serving maps from process memory."""

    def __init__(self, driver_config: Optional[DriverConfig] = None):
        super().__init__(driver_config or DriverConfig())
        self.service = MemoryMapService(self.config.config)

    def create_provisioner(self) -> MemoryProvisioner:
        return MemoryProvisioner(self.service)

    def create_discovery(self) -> MemoryDiscovery:
        return MemoryDiscovery(self.service)

    async def connect(self, address: str) -> MemoryMapClient:
        if address != self.service.address:
            raise MapServiceError(f"no map service at {address}")
        self.logger.debug(f"Connected to {address}")
        return MemoryMapClient(self.service)
