"""Benchmark context handed to every lifecycle hook."""

from typing import Any, Dict, Optional, Callable, TypeVar

T = TypeVar('T')


class BenchmarkContext:
    """Named arguments and identity of the worker/benchmark being run.

    Argument values arrive as strings (``--arg key-count=3``) or as already
    typed YAML values; the typed getters convert them and fall back to the
    given default when the argument is absent.
    """

    def __init__(
        self,
        args: Optional[Dict[str, Any]] = None,
        name: Optional[str] = None,
        worker_id: Optional[str] = None
    ):
        self.args = dict(args or {})
        self.name = name
        self.worker_id = worker_id

    def for_benchmark(self, name: str) -> 'BenchmarkContext':
        """Copy of this context scoped to one benchmark."""
        return BenchmarkContext(self.args, name=name, worker_id=self.worker_id)

    def for_worker(self, worker_id: str) -> 'BenchmarkContext':
        return BenchmarkContext(self.args, name=self.name, worker_id=worker_id)

    def get_arg(self, key: str, convert: Callable[[Any], T], default: T) -> T:
        value = self.args.get(key)
        if value is None:
            return default
        try:
            return convert(value)
        except (TypeError, ValueError):
            raise ValueError(f"invalid value for argument '{key}': {value!r}")

    def get_int(self, key: str, default: int) -> int:
        return self.get_arg(key, int, default)

    def get_float(self, key: str, default: float) -> float:
        return self.get_arg(key, float, default)

    def get_str(self, key: str, default: str) -> str:
        return self.get_arg(key, str, default)

    def __repr__(self) -> str:
        return f"BenchmarkContext(name={self.name!r}, worker_id={self.worker_id!r}, args={self.args!r})"
