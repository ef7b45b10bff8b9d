"""Core components of the map benchmark harness.

Only leaf modules are re-exported here; ``suite``, ``runner`` and ``streams``
depend on the driver contracts and are imported from their modules.
"""

from .config import RunConfig, DriverConfig, ConfigLoader
from .context import BenchmarkContext
from .errors import (
    BenchmarkError,
    ProvisioningError,
    SetupError,
    FatalBenchmarkError,
    SubscriptionError,
    EventTimeoutError,
    MapServiceError,
    KeyNotFoundError,
    PhaseError,
)
from .results import BenchmarkResult, WorkerResult, ResultCollector

__all__ = [
    "RunConfig",
    "DriverConfig",
    "ConfigLoader",
    "BenchmarkContext",
    "BenchmarkError",
    "ProvisioningError",
    "SetupError",
    "FatalBenchmarkError",
    "SubscriptionError",
    "EventTimeoutError",
    "MapServiceError",
    "KeyNotFoundError",
    "PhaseError",
    "BenchmarkResult",
    "WorkerResult",
    "ResultCollector",
]
