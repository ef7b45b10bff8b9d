"""Abstract driver interface for map services."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, Optional
from ..core.config import DriverConfig
from ..utils.logging import LoggerMixin


class EventType(str, Enum):
    """Kinds of change notification."""
    INSERTED = "inserted"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass
class MapEvent:
    """Change notification emitted by the map service on mutation."""
    type: EventType
    key: str
    value: Optional[bytes] = None


@dataclass
class MapEntry:
    """One key/value pair observed during a full scan."""
    key: str
    value: bytes


class _EndOfStream:
    """Marker put on an entries queue once the scan has delivered every entry."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"


END_OF_STREAM = _EndOfStream()


class StreamHandle:
    """Handle to one open entries stream.

    ``close`` stops delivery and releases the transport behind the stream.
    It is safe to call after the stream has ended and to call more than once.
    """

    def __init__(self, task: Optional[asyncio.Future] = None):
        self._task = task

    async def close(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)


class AbstractMap(ABC):
    """Handle to one named map instance on the remote service.

    A handle is owned by a single worker and is not safe for concurrent use
    by several workers.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Map name."""
        pass

    @abstractmethod
    async def put(self, key: str, value: bytes) -> Optional[bytes]:
        """Write a value.

        Args:
            key: Entry key
            value: Entry value

        Returns:
            The previous value, or None if the key was absent
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """Read a value.

        Args:
            key: Entry key

        Returns:
            The current value

        Raises:
            KeyNotFoundError: if the key is absent
        """
        pass

    @abstractmethod
    async def watch(self, queue: asyncio.Queue) -> None:
        """Subscribe to change notifications.

        The subscription is live when this coroutine returns; every later
        mutation puts one ``MapEvent`` on ``queue``.

        Args:
            queue: Queue receiving ``MapEvent`` items
        """
        pass

    @abstractmethod
    async def entries(self, queue: asyncio.Queue) -> StreamHandle:
        """Open a bulk-transfer stream of all live entries.

        Entries present at scan start are put on ``queue`` as ``MapEntry``
        items, followed by ``END_OF_STREAM``. A stream that fails part way
        puts the exception instance on the queue instead of the marker.

        Args:
            queue: Queue receiving ``MapEntry`` items

        Returns:
            Handle the caller closes once it stops reading, whether or not
            the stream ended
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the handle and any open streams."""
        pass


class AbstractDatabase(ABC):
    """Database (partition group) hosting maps."""

    @abstractmethod
    async def get_map(self, name: str) -> AbstractMap:
        """Get a handle to the named map, creating it if needed."""
        pass


class AbstractMapClient(ABC):
    """Connection to the map service controller."""

    @abstractmethod
    async def get_database(self, name: str) -> AbstractDatabase:
        """Look up a database by name."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass


class AbstractProvisioner(ABC):
    """Installs the map service and its storage cluster."""

    @abstractmethod
    async def install(
        self,
        chart: str,
        release: str,
        values: Optional[Dict[str, Any]] = None,
        wait: bool = True
    ) -> None:
        """Install or upgrade a release. Installing an existing release is a no-op.

        Args:
            chart: Chart name
            release: Release name
            values: Chart parameters
            wait: Block until the release is ready
        """
        pass


class AbstractDiscovery(ABC):
    """Resolves the network address of a deployed release."""

    @abstractmethod
    async def resolve_address(self, release: str) -> str:
        """Resolve a release to ``host:port``.

        Returns:
            The address, or an empty string if the release exposes no service
        """
        pass


class AbstractDriver(LoggerMixin, ABC):
    """Abstract driver bundling the collaborators a benchmark suite needs."""

    def __init__(self, driver_config: DriverConfig):
        super().__init__()
        self.config = driver_config
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize the driver."""
        self._initialized = True

    async def cleanup(self) -> None:
        """Cleanup driver resources."""
        self._initialized = False

    @abstractmethod
    def create_provisioner(self) -> AbstractProvisioner:
        """Create a provisioner instance."""
        pass

    @abstractmethod
    def create_discovery(self) -> AbstractDiscovery:
        """Create a discovery instance."""
        pass

    @abstractmethod
    async def connect(self, address: str) -> AbstractMapClient:
        """Open a client connection to the service at ``address``."""
        pass

    @property
    def driver_name(self) -> str:
        """Get driver name."""
        return self.config.name

    async def __aenter__(self):
        """Async context manager entry."""
        if not self._initialized:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.cleanup()


def load_driver(driver_config: DriverConfig) -> AbstractDriver:
    """Instantiate the driver class named by ``driver_config.driver_class``."""
    module_path, class_name = driver_config.driver_class.rsplit('.', 1)
    module = __import__(module_path, fromlist=[class_name])
    driver_class = getattr(module, class_name)
    return driver_class(driver_config)
