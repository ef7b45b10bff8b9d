"""In-process map service driver."""

from .memory_driver import (
    MemoryDriver,
    MemoryMap,
    MemoryMapService,
    MemoryProvisioner,
    MemoryDiscovery,
)

__all__ = [
    "MemoryDriver",
    "MemoryMap",
    "MemoryMapService",
    "MemoryProvisioner",
    "MemoryDiscovery",
]
