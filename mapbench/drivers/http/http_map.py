"""aiohttp client for a JSON map gateway.

Gateway routes, relative to ``http://<address>/v1``:

- ``GET  /databases/{db}``                         database lookup
- ``PUT  /databases/{db}/maps/{map}``              open (create) a map
- ``PUT  /databases/{db}/maps/{map}/keys/{key}``   write; body is the raw value,
  response ``{"previous": <base64 or null>}``
- ``GET  /databases/{db}/maps/{map}/keys/{key}``   read; raw value, 404 if absent
- ``GET  /databases/{db}/maps/{map}/events``       newline-delimited JSON events
  ``{"type": ..., "key": ..., "value": <base64 or null>}``
- ``GET  /databases/{db}/maps/{map}/entries``      newline-delimited JSON entries
  ``{"key": ..., "value": <base64>}``, closed after the last entry
"""

import asyncio
import base64
import json
from typing import Any, Callable, Dict, Optional, Set
from urllib.parse import quote

import aiohttp

from ..base import (
    AbstractDatabase,
    AbstractMap,
    AbstractMapClient,
    END_OF_STREAM,
    EventType,
    MapEntry,
    MapEvent,
    StreamHandle,
)
from ...core.errors import KeyNotFoundError, MapServiceError
from ...utils.logging import LoggerMixin

STREAM_TIMEOUT = aiohttp.ClientTimeout(total=None, sock_read=None)


def _decode_value(value: Optional[str]) -> Optional[bytes]:
    return base64.b64decode(value) if value is not None else None


def decode_event(data: Dict[str, Any]) -> MapEvent:
    return MapEvent(type=EventType(data["type"]), key=data["key"], value=_decode_value(data.get("value")))


def decode_entry(data: Dict[str, Any]) -> MapEntry:
    return MapEntry(key=data["key"], value=_decode_value(data["value"]))


async def _raise_for_status(response: aiohttp.ClientResponse, action: str) -> None:
    if response.status >= 400:
        text = await response.text()
        raise MapServiceError(f"{action} failed with HTTP {response.status}: {text.strip()}")


class HttpMap(AbstractMap, LoggerMixin):
    """Map handle; streams still open through it are cancelled on close."""

    def __init__(self, session: aiohttp.ClientSession, base_url: str, name: str):
        super().__init__()
        self._session = session
        self._url = f"{base_url}/maps/{quote(name, safe='')}"
        self._name = name
        self._streams: Set[asyncio.Task] = set()
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def open_streams(self) -> int:
        return len(self._streams)

    def _key_url(self, key: str) -> str:
        return f"{self._url}/keys/{quote(key, safe='')}"

    def _check_open(self) -> None:
        if self._closed:
            raise MapServiceError(f"map '{self._name}' is closed")

    async def put(self, key: str, value: bytes) -> Optional[bytes]:
        self._check_open()
        async with self._session.put(self._key_url(key), data=value) as response:
            await _raise_for_status(response, f"put {key}")
            body = await response.json()
        return _decode_value(body.get("previous"))

    async def get(self, key: str) -> bytes:
        self._check_open()
        async with self._session.get(self._key_url(key)) as response:
            if response.status == 404:
                raise KeyNotFoundError(key)
            await _raise_for_status(response, f"get {key}")
            return await response.read()

    async def watch(self, queue: asyncio.Queue) -> None:
        # Event streams live until the map is closed
        await self._open_stream("events", queue, decode_event, end_marker=False)

    async def entries(self, queue: asyncio.Queue) -> StreamHandle:
        return await self._open_stream("entries", queue, decode_entry, end_marker=True)

    async def _open_stream(
        self,
        path: str,
        queue: asyncio.Queue,
        decode: Callable[[Dict[str, Any]], Any],
        end_marker: bool
    ) -> StreamHandle:
        self._check_open()
        response = await self._session.get(f"{self._url}/{path}", timeout=STREAM_TIMEOUT)
        try:
            await _raise_for_status(response, f"open {path} stream")
        except (MapServiceError, asyncio.CancelledError):
            response.release()
            raise
        # Headers are in, so the stream is live on the server
        task = asyncio.ensure_future(self._pump(response, queue, decode, end_marker))
        self._streams.add(task)
        task.add_done_callback(self._streams.discard)
        return StreamHandle(task)

    async def _pump(
        self,
        response: aiohttp.ClientResponse,
        queue: asyncio.Queue,
        decode: Callable[[Dict[str, Any]], Any],
        end_marker: bool
    ) -> None:
        finished = False
        try:
            async for line in response.content:
                line = line.strip()
                if not line:
                    continue
                queue.put_nowait(decode(json.loads(line)))
            finished = True
            if end_marker:
                queue.put_nowait(END_OF_STREAM)
        except (aiohttp.ClientError, ValueError, KeyError) as e:
            self.logger.warning(f"Stream on map {self._name} failed: {e}")
            queue.put_nowait(MapServiceError(f"stream on map '{self._name}' failed: {e}"))
        finally:
            # A connection with unread body cannot go back to the pool
            if finished:
                response.release()
            else:
                response.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        tasks = list(self._streams)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._streams.clear()


class HttpDatabase(AbstractDatabase):

    def __init__(self, session: aiohttp.ClientSession, base_url: str, name: str):
        self._session = session
        self._url = base_url
        self.name = name

    async def get_map(self, name: str) -> HttpMap:
        async with self._session.put(f"{self._url}/maps/{quote(name, safe='')}") as response:
            await _raise_for_status(response, f"open map {name}")
        return HttpMap(self._session, self._url, name)


class HttpMapClient(AbstractMapClient):
    """Client session to the map gateway at ``address``."""

    def __init__(
        self,
        address: str,
        request_timeout: float = 30.0,
        scheme: str = "http",
        connection_limit: int = 100
    ):
        self.address = address
        self._base_url = f"{scheme}://{address}/v1"
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=connection_limit),
            timeout=aiohttp.ClientTimeout(total=request_timeout)
        )

    async def get_database(self, name: str) -> HttpDatabase:
        url = f"{self._base_url}/databases/{quote(name, safe='')}"
        async with self._session.get(url) as response:
            if response.status == 404:
                raise MapServiceError(f"database '{name}' not found")
            await _raise_for_status(response, f"get database {name}")
        return HttpDatabase(self._session, url, name)

    async def close(self) -> None:
        await self._session.close()
