"""Bounded consumers for the map's asynchronous streams.

``EventWatcher`` owns a change-notification subscription and exposes one
bounded wait per iteration. ``EntryScanner`` drains a bulk-transfer stream
with a per-entry deadline. Both report an elapsed deadline as
``EventTimeoutError`` so the runner can count it apart from service errors.
"""

import asyncio
from typing import Optional

from ..drivers.base import AbstractMap, MapEvent, END_OF_STREAM
from ..utils.logging import LoggerMixin
from .errors import EventTimeoutError, SubscriptionError

DEFAULT_EVENT_TIMEOUT = 10.0
DEFAULT_SCAN_TIMEOUT = 10.0


class EventWatcher(LoggerMixin):
    """Subscription to a map's change notifications."""

    def __init__(self, map_name: str, queue: Optional[asyncio.Queue] = None):
        super().__init__()
        self.map_name = map_name
        self._queue: Optional[asyncio.Queue] = queue if queue is not None else asyncio.Queue()
        self.received = 0

    @classmethod
    async def subscribe(cls, target: AbstractMap) -> 'EventWatcher':
        """Open the subscription; it is live once this returns.

        Raises:
            SubscriptionError: if the map refuses the watch
        """
        watcher = cls(target.name)
        try:
            await target.watch(watcher._queue)
        except Exception as e:
            raise SubscriptionError(f"failed to watch map '{target.name}': {e}") from e
        watcher.logger.debug(f"Watching map {target.name}")
        return watcher

    @property
    def active(self) -> bool:
        return self._queue is not None

    async def wait_next(self, timeout: float = DEFAULT_EVENT_TIMEOUT) -> MapEvent:
        """Wait for exactly one notification or until ``timeout`` seconds pass.

        Raises:
            EventTimeoutError: if no notification arrived in time
            SubscriptionError: if the watcher was closed or its stream failed
        """
        if self._queue is None:
            raise SubscriptionError(f"watcher for map '{self.map_name}' is closed")
        try:
            event = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            raise EventTimeoutError(timeout=timeout)
        if isinstance(event, BaseException):
            self.close()
            raise SubscriptionError(f"event stream on map '{self.map_name}' failed: {event}") from event
        self.received += 1
        return event

    def close(self) -> None:
        """Drop the subscription handle. Closing the stream itself is up to the map."""
        self._queue = None


class EntryScanner(LoggerMixin):
    """Full scan of a map over a fresh bulk-transfer stream."""

    def __init__(self, target: AbstractMap, timeout: float = DEFAULT_SCAN_TIMEOUT):
        super().__init__()
        self.target = target
        self.timeout = timeout

    async def scan(self) -> int:
        """Drain the stream until it ends. The stream is closed on every exit.

        Returns:
            Number of entries observed

        Raises:
            EventTimeoutError: if the stream does not open, or the next entry
                (or the end of the stream) does not arrive, within ``timeout``
                seconds
        """
        queue: asyncio.Queue = asyncio.Queue()
        try:
            stream = await asyncio.wait_for(self.target.entries(queue), self.timeout)
        except asyncio.TimeoutError:
            raise EventTimeoutError(timeout=self.timeout)

        try:
            count = 0
            while True:
                try:
                    item = await asyncio.wait_for(queue.get(), self.timeout)
                except asyncio.TimeoutError:
                    raise EventTimeoutError(timeout=self.timeout)
                if item is END_OF_STREAM:
                    return count
                if isinstance(item, BaseException):
                    raise item
                count += 1
        finally:
            await stream.close()
