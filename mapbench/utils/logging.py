"""Logging for the map benchmark harness.

All harness loggers live under ``mapbench``; ``setup_logging`` attaches the
handlers there once per run. Messages emitted on behalf of a worker go
through ``WorkerLogAdapter`` so they carry the worker and benchmark they
belong to.
"""

import logging
import sys
from pathlib import Path
from typing import Optional
from rich.logging import RichHandler
from rich.console import Console

LOGGER_PREFIX = "mapbench"

# Client libraries whose INFO output would drown the benchmark log
NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.internal", "asyncio")

FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_rich: bool = True
) -> logging.Logger:
    """Configure the ``mapbench`` logger for a run.

    Console output goes to stderr so rich result tables on stdout stay
    readable. Calling this again replaces the previous handlers.

    Args:
        level: Logging level name
        log_file: Optional file that receives a plain-text copy of the log
        enable_rich: Use a rich console handler instead of a plain stream

    Returns:
        The configured ``mapbench`` logger
    """
    logger = logging.getLogger(LOGGER_PREFIX)
    logger.setLevel(getattr(logging, level.upper()))
    logger.handlers.clear()
    logger.propagate = False

    if enable_rich:
        console_handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=True
        )
        console_handler.setFormatter(logging.Formatter('%(name)s: %(message)s'))
    else:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(FILE_FORMAT))
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(file_handler)

    quiet = max(logger.level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Logger for a harness component, e.g. ``mapbench.benchmarkrunner``."""
    return logging.getLogger(f"{LOGGER_PREFIX}.{component}")


class WorkerLogAdapter(logging.LoggerAdapter):
    """Prefixes messages with ``[worker]`` or ``[worker/benchmark]``."""

    def __init__(self, logger: logging.Logger, worker_id: str, benchmark: Optional[str] = None):
        super().__init__(logger, {"worker_id": worker_id, "benchmark": benchmark})

    def for_benchmark(self, benchmark: str) -> 'WorkerLogAdapter':
        return WorkerLogAdapter(self.logger, self.extra["worker_id"], benchmark)

    def process(self, msg, kwargs):
        scope = self.extra["worker_id"]
        if self.extra["benchmark"]:
            scope = f"{scope}/{self.extra['benchmark']}"
        return f"[{scope}] {msg}", kwargs


class LoggerMixin:
    """Gives a class a lazily created ``logger`` named after the class."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger = None

    @property
    def logger(self) -> logging.Logger:
        # Some subclasses never reach LoggerMixin.__init__
        if getattr(self, '_logger', None) is None:
            self._logger = get_logger(self.__class__.__name__.lower())
        return self._logger

    def worker_logger(self, worker_id: str, benchmark: Optional[str] = None) -> WorkerLogAdapter:
        return WorkerLogAdapter(self.logger, worker_id, benchmark)
