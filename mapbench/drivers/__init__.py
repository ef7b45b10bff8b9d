"""Map service drivers."""

from .base import (
    AbstractDriver,
    AbstractMap,
    AbstractDatabase,
    AbstractMapClient,
    AbstractProvisioner,
    AbstractDiscovery,
    MapEvent,
    MapEntry,
    EventType,
    END_OF_STREAM,
    StreamHandle,
    load_driver,
)

__all__ = [
    "AbstractDriver",
    "AbstractMap",
    "AbstractDatabase",
    "AbstractMapClient",
    "AbstractProvisioner",
    "AbstractDiscovery",
    "MapEvent",
    "MapEntry",
    "EventType",
    "END_OF_STREAM",
    "StreamHandle",
    "load_driver",
]
