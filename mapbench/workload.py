"""Randomized key/value generation for benchmark workloads.

Each worker draws keys and values from a bounded, pre-generated candidate
set. Draws are uniform with replacement, so once a run performs more
iterations than there are candidates the same keys are hit again, giving
read/write locality that matches the configured cardinality.
"""

import random
import string
from typing import Callable, Generic, Iterator, Optional, Tuple, TypeVar

from .core.config import WORKLOAD_ARGS
from .core.context import BenchmarkContext

T = TypeVar('T')

KEY_ALPHABET = string.ascii_letters + string.digits


def random_string(length: int, rng: Optional[random.Random] = None) -> str:
    """Generate a random alphanumeric string of the given length."""
    rng = rng or random
    return ''.join(rng.choice(KEY_ALPHABET) for _ in range(length))


def random_bytes(length: int, rng: Optional[random.Random] = None) -> bytes:
    """Generate random bytes of the given length."""
    rng = rng or random
    return bytes(rng.getrandbits(8) for _ in range(length))


class CandidateSet(Generic[T]):
    """Immutable pool of generated elements a workload draws from.

    Generation collisions are kept as-is, so the number of distinct elements
    can be lower than ``len(candidates)`` for very short element lengths.
    """

    def __init__(self, elements: Tuple[T, ...]):
        if not elements:
            raise ValueError("candidate set must not be empty")
        self._elements = tuple(elements)

    @classmethod
    def build(cls, factory: Callable[[], T], count: int) -> 'CandidateSet[T]':
        if count < 1:
            raise ValueError(f"candidate count must be >= 1, got {count}")
        return cls(tuple(factory() for _ in range(count)))

    @property
    def elements(self) -> Tuple[T, ...]:
        return self._elements

    def __len__(self) -> int:
        return len(self._elements)

    def __contains__(self, element) -> bool:
        return element in self._elements

    def __iter__(self) -> Iterator[T]:
        return iter(self._elements)


class RandomChoice(Generic[T]):
    """Infinite source choosing uniformly at random from a candidate set."""

    def __init__(self, candidates: CandidateSet[T], rng: Optional[random.Random] = None):
        self.candidates = candidates
        self._rng = rng or random.Random()

    def next(self) -> T:
        return self._rng.choice(self.candidates.elements)

    def __iter__(self) -> 'RandomChoice[T]':
        return self

    def __next__(self) -> T:
        return self.next()


class WorkloadGenerator:
    """Per-worker pair of key and value sources.

    Built during worker setup and owned by that worker only; sources are never
    shared between workers.
    """

    def __init__(
        self,
        key_length: int = WORKLOAD_ARGS["key-length"][1],
        key_count: int = WORKLOAD_ARGS["key-count"][1],
        value_length: int = WORKLOAD_ARGS["value-length"][1],
        value_count: int = WORKLOAD_ARGS["value-count"][1],
        rng: Optional[random.Random] = None
    ):
        self._rng = rng or random.Random()
        self.key_length = key_length
        self.key_count = key_count
        self.value_length = value_length
        self.value_count = value_count
        self.keys: RandomChoice[str] = RandomChoice(
            CandidateSet.build(lambda: random_string(key_length, self._rng), key_count),
            self._rng
        )
        self.values: RandomChoice[bytes] = RandomChoice(
            CandidateSet.build(lambda: random_bytes(value_length, self._rng), value_count),
            self._rng
        )

    @classmethod
    def from_context(cls, context: BenchmarkContext, rng: Optional[random.Random] = None) -> 'WorkloadGenerator':
        """Build a generator from the ``key-*`` and ``value-*`` benchmark arguments."""
        return cls(
            key_length=context.get_int("key-length", WORKLOAD_ARGS["key-length"][1]),
            key_count=context.get_int("key-count", WORKLOAD_ARGS["key-count"][1]),
            value_length=context.get_int("value-length", WORKLOAD_ARGS["value-length"][1]),
            value_count=context.get_int("value-count", WORKLOAD_ARGS["value-count"][1]),
            rng=rng
        )

    def next_key(self) -> str:
        return self.keys.next()

    def next_value(self) -> bytes:
        return self.values.next()
