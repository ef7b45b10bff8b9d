"""Benchmark suite base class and lifecycle phases."""

import inspect
from enum import Enum
from typing import Awaitable, Callable, Dict, FrozenSet, List, Optional

from ..drivers.base import AbstractDriver
from ..utils.logging import LoggerMixin
from .context import BenchmarkContext
from .errors import PhaseError

BENCHMARK_PREFIX = "benchmark_"


class Phase(str, Enum):
    """Lifecycle phases of a suite instance."""
    SUITE_INIT = "suite_init"
    WORKER_INIT = "worker_init"
    BENCHMARK_INIT = "benchmark_init"
    RUNNING = "running"
    BENCHMARK_TEARDOWN = "benchmark_teardown"
    DONE = "done"


_TRANSITIONS: Dict[Optional[Phase], FrozenSet[Phase]] = {
    None: frozenset({Phase.SUITE_INIT, Phase.WORKER_INIT}),
    Phase.SUITE_INIT: frozenset({Phase.DONE}),
    Phase.WORKER_INIT: frozenset({Phase.BENCHMARK_INIT, Phase.DONE}),
    # A benchmark whose setup failed before anything was acquired goes straight to the next one
    Phase.BENCHMARK_INIT: frozenset({
        Phase.RUNNING, Phase.BENCHMARK_TEARDOWN, Phase.BENCHMARK_INIT, Phase.DONE
    }),
    Phase.RUNNING: frozenset({Phase.BENCHMARK_TEARDOWN}),
    Phase.BENCHMARK_TEARDOWN: frozenset({Phase.BENCHMARK_INIT, Phase.DONE}),
    Phase.DONE: frozenset(),
}


class BenchmarkSuite(LoggerMixin):
    """Base class for benchmark suites.

    Subclasses override the lifecycle hooks they need and define benchmarks
    as coroutine methods named ``benchmark_<name>``. A benchmark may also
    define ``setup_benchmark_<name>`` and ``teardown_benchmark_<name>`` hooks,
    which run after ``setup_benchmark`` and before ``teardown_benchmark``.

    One instance runs suite setup; every worker then gets its own instance,
    so suites can keep per-worker state in plain attributes.
    """

    def __init__(self, driver: AbstractDriver):
        super().__init__()
        self.driver = driver
        self.phase: Optional[Phase] = None

    async def setup_suite(self, context: BenchmarkContext) -> None:
        """Provision shared resources once per run."""

    async def setup_worker(self, context: BenchmarkContext) -> None:
        """Prepare per-worker state."""

    async def teardown_worker(self, context: BenchmarkContext) -> None:
        """Release per-worker state."""

    async def setup_benchmark(self, context: BenchmarkContext) -> None:
        """Acquire resources for one benchmark."""

    async def teardown_benchmark(self, context: BenchmarkContext) -> None:
        """Release resources acquired by ``setup_benchmark``."""

    def enter(self, phase: Phase) -> None:
        """Move to ``phase``.

        Raises:
            PhaseError: if the transition is not allowed from the current phase
        """
        if phase not in _TRANSITIONS[self.phase]:
            current = self.phase.value if self.phase else "new"
            raise PhaseError(f"illegal phase transition {current} -> {phase.value}")
        self.phase = phase

    @classmethod
    def benchmark_names(cls) -> List[str]:
        """Names of the benchmarks defined by this suite, in definition order."""
        names: List[str] = []
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                if attr.startswith(BENCHMARK_PREFIX) and inspect.iscoroutinefunction(value):
                    name = attr[len(BENCHMARK_PREFIX):]
                    if name not in names:
                        names.append(name)
        return names

    @classmethod
    def normalize_name(cls, name: str) -> str:
        """Accept ``map_put``, ``benchmark_map_put`` or ``map-put``."""
        name = name.replace('-', '_')
        if name.startswith(BENCHMARK_PREFIX):
            name = name[len(BENCHMARK_PREFIX):]
        if name not in cls.benchmark_names():
            raise ValueError(f"unknown benchmark '{name}' in suite {cls.__name__}")
        return name

    def get_benchmark(self, name: str) -> Callable[[], Awaitable[None]]:
        return getattr(self, f"{BENCHMARK_PREFIX}{name}")

    def get_setup_hook(self, name: str) -> Optional[Callable[[BenchmarkContext], Awaitable[None]]]:
        return getattr(self, f"setup_{BENCHMARK_PREFIX}{name}", None)

    def get_teardown_hook(self, name: str) -> Optional[Callable[[BenchmarkContext], Awaitable[None]]]:
        return getattr(self, f"teardown_{BENCHMARK_PREFIX}{name}", None)


def load_suite(class_path: str) -> type:
    """Import a suite class from its dotted path."""
    module_path, class_name = class_path.rsplit('.', 1)
    module = __import__(module_path, fromlist=[class_name])
    suite_class = getattr(module, class_name)
    if not (isinstance(suite_class, type) and issubclass(suite_class, BenchmarkSuite)):
        raise TypeError(f"{class_path} is not a BenchmarkSuite")
    return suite_class
