"""Error kinds raised across the benchmark lifecycle."""

from typing import Optional


class BenchmarkError(Exception):
    """Base class for every error raised by the harness."""

    kind = "error"


class ProvisioningError(BenchmarkError):
    """Suite setup failed; the whole run is aborted before any worker starts."""

    kind = "provisioning"


class SetupError(BenchmarkError):
    """Benchmark setup failed on one worker; only that benchmark is skipped there."""

    kind = "setup"

    def __init__(self, message: str, benchmark: Optional[str] = None):
        super().__init__(message)
        self.benchmark = benchmark


class FatalBenchmarkError(BenchmarkError):
    """Unrecoverable precondition for a worker/benchmark pairing."""

    kind = "fatal"


class SubscriptionError(FatalBenchmarkError):
    """The change-notification subscription could not be opened."""

    kind = "subscription"


class EventTimeoutError(BenchmarkError):
    """A bounded wait for a notification or scan entry elapsed."""

    kind = "event_timeout"

    def __init__(self, message: str = "event timeout", timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class MapServiceError(BenchmarkError):
    """Error reported by the remote map service or its client."""

    kind = "service"


class KeyNotFoundError(MapServiceError):

    kind = "not_found"

    def __init__(self, key: str):
        super().__init__(f"key not found: {key}")
        self.key = key


class PhaseError(BenchmarkError):
    """Illegal benchmark phase transition."""

    kind = "phase"


def failure_kind(error: BaseException) -> str:
    """Classify an iteration failure for reporting."""
    if isinstance(error, BenchmarkError):
        return error.kind
    return type(error).__name__
