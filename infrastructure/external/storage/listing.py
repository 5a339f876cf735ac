"""Bucket listing: bounded pages and an unbounded, cancellable stream.

The stream is one long-lived response carrying a sequence of JSON objects,
separated by whitespace or simply concatenated, and free to span chunk
boundaries. A producer task owns the response body, decodes records and
hands them to the consumer through a one-slot queue, so an idle consumer
stops the producer before it reads further. A watcher task stops the
producer and closes the response as soon as the cancel event is set, even
if the consumer never comes back; the consumer receives nothing more.

State machine::

    IDLE -> CONNECTING -> STREAMING -> COMPLETED | CANCELLED | FAILED

Every terminal state closes the response exactly once.
"""
from __future__ import annotations

import asyncio
import json
from enum import Enum
from typing import AsyncIterator, Optional

import httpx

from core.logging_config import get_logger
from .client import StorageHTTPClient
from .exceptions import InvalidArgumentError, StorageError, StreamDecodeError, TransportError
from .models import ListFilesResult, ListItem, ListRecord
from .region import RegionResolver
from .uris import uri_list_files, uri_list_files_v2

logger = get_logger(__name__)

MAX_LIST_LIMIT = 1000


class StreamState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = frozenset({StreamState.COMPLETED, StreamState.CANCELLED, StreamState.FAILED})


def _object_end(buffer: str) -> int:
    """Index just past the JSON object opening at ``buffer[0]``; -1 while incomplete."""
    depth = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(buffer):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in "{[":
            depth += 1
        elif ch in "}]":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


class ListStream:
    """Async iterator over streaming listing records.

    Not restartable: to resume, start a new listing from ``last_marker``.
    After iteration ends, ``state`` tells how it ended and ``error`` holds
    the failure, if any.
    """

    def __init__(
        self,
        http: StorageHTTPClient,
        url: str,
        cancel_event: Optional[asyncio.Event] = None,
        bucket: str = "",
    ):
        self._http = http
        self._url = url
        self._cancel = cancel_event if cancel_event is not None else asyncio.Event()
        self._queue: asyncio.Queue[ListRecord] = asyncio.Queue(maxsize=1)
        self._finished = asyncio.Event()
        self._finish_lock = asyncio.Lock()
        self._response: Optional[httpx.Response] = None
        self._producer: Optional[asyncio.Task] = None
        self._watcher: Optional[asyncio.Task] = None
        self._outcome: Optional[StreamState] = None
        self._closed = False
        self.bucket = bucket
        self.state = StreamState.IDLE
        self.error: Optional[StorageError] = None
        self.records_delivered = 0
        self.last_marker = ""

    def _set_state(self, state: StreamState) -> None:
        logger.debug("Listing stream state", bucket=self.bucket, old=self.state.value, new=state.value)
        self.state = state

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def cancel(self) -> None:
        """Ask the stream to stop; no record is delivered afterwards."""
        self._cancel.set()

    async def open(self) -> "ListStream":
        """Connect and start the producer.

        Raises:
            ResponseError / TransportError: the connection failed
        """
        if self.state is not StreamState.IDLE:
            raise RuntimeError("listing stream is not restartable; start a new listing from last_marker")
        if self._cancel.is_set():
            self._set_state(StreamState.CANCELLED)
            return self

        self._set_state(StreamState.CONNECTING)
        try:
            self._response = await self._http.open_stream("POST", self._url)
        except StorageError as exc:
            self.error = exc
            self._set_state(StreamState.FAILED)
            raise

        self._set_state(StreamState.STREAMING)
        self._producer = asyncio.create_task(self._produce())
        self._watcher = asyncio.create_task(self._watch_cancel())
        return self

    async def _produce(self) -> None:
        assert self._response is not None
        decoder = json.JSONDecoder()
        buffer = ""
        try:
            async for chunk in self._response.aiter_text():
                buffer += chunk
                while True:
                    buffer = buffer.lstrip()
                    if not buffer or self._cancel.is_set():
                        break
                    if buffer[0] != "{":
                        self._fail_decode(buffer, "expected a JSON object")
                        return
                    end = _object_end(buffer)
                    if end < 0:
                        # record continues in the next chunk
                        break
                    try:
                        obj, _ = decoder.raw_decode(buffer[:end])
                        record = ListRecord.model_validate(obj)
                    except ValueError as exc:
                        self._fail_decode(buffer, str(exc))
                        return
                    buffer = buffer[end:]
                    await self._queue.put(record)
                if self._cancel.is_set():
                    return
            if buffer.strip():
                self._fail_decode(buffer, "stream ended inside a record")
                return
            self._outcome = StreamState.COMPLETED
        except httpx.HTTPError as exc:
            self._fail(TransportError(f"listing stream interrupted: {exc}"))
        finally:
            await self._close_response()
            self._finished.set()

    async def _watch_cancel(self) -> None:
        await self._cancel.wait()
        await self._finish(StreamState.CANCELLED, propagate=False)

    def _fail_decode(self, buffer: str, reason: str) -> None:
        self._fail(StreamDecodeError(
            f"malformed listing record: {reason}",
            line=buffer.split("\n", 1)[0].strip()[:256],
            records_delivered=self.records_delivered,
        ))

    def _fail(self, error: StorageError) -> None:
        self.error = error
        self._outcome = StreamState.FAILED
        logger.error("Listing stream failed", bucket=self.bucket, error=str(error),
                     records_delivered=self.records_delivered)

    async def _close_response(self) -> None:
        if self._closed or self._response is None:
            return
        self._closed = True
        await self._response.aclose()
        logger.debug("Listing stream closed", bucket=self.bucket)

    async def _finish(self, state: StreamState, propagate: bool = True) -> None:
        async with self._finish_lock:
            if self.state in TERMINAL_STATES:
                return
            producer = self._producer
            if producer is not None and not producer.done():
                producer.cancel()
                await asyncio.wait([producer])
            watcher = self._watcher
            if watcher is not None and watcher is not asyncio.current_task() and not watcher.done():
                watcher.cancel()
            await self._close_response()
            self._set_state(state)
            logger.info("Listing stream ended", bucket=self.bucket, state=state.value,
                        records=self.records_delivered)
            crash = None
            if producer is not None and producer.done() and not producer.cancelled():
                crash = producer.exception()
        if crash is not None:
            if propagate:
                raise crash
            logger.error("Listing producer crashed", bucket=self.bucket, error=repr(crash))

    async def _wait_for_progress(self) -> Optional[ListRecord]:
        getter = asyncio.ensure_future(self._queue.get())
        waiters = {
            getter,
            asyncio.ensure_future(self._cancel.wait()),
            asyncio.ensure_future(self._finished.wait()),
        }
        try:
            done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
        if getter in done and not getter.cancelled() and not self._cancel.is_set():
            return getter.result()
        return None

    def _deliver(self, record: ListRecord) -> ListRecord:
        self.records_delivered += 1
        if record.marker:
            self.last_marker = record.marker
        return record

    def __aiter__(self) -> "ListStream":
        return self

    async def __anext__(self) -> ListRecord:
        if self.state is StreamState.IDLE:
            await self.open()
        while True:
            if self.state in TERMINAL_STATES:
                raise StopAsyncIteration
            if self._cancel.is_set():
                await self._finish(StreamState.CANCELLED)
                raise StopAsyncIteration
            if not self._queue.empty():
                return self._deliver(self._queue.get_nowait())
            if self._finished.is_set():
                await self._finish(self._outcome or StreamState.FAILED)
                raise StopAsyncIteration
            record = await self._wait_for_progress()
            if record is not None:
                return self._deliver(record)

    async def items(self) -> AsyncIterator[ListItem]:
        """Object entries only: directories and padding records are skipped."""
        async for record in self:
            if record.is_dir or record.item.is_empty():
                continue
            yield record.item

    async def aclose(self) -> None:
        """Stop the stream; a stream that has not ended counts as cancelled."""
        if self.state in TERMINAL_STATES:
            await self._close_response()
            return
        self._cancel.set()
        await self._finish(StreamState.CANCELLED)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    async def __aenter__(self) -> "ListStream":
        if self.state is StreamState.IDLE:
            await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()




class ListingEngine:
    """Bounded and streaming listings against the bucket's rsf host."""

    def __init__(self, http: StorageHTTPClient, resolver: RegionResolver):
        self._http = http
        self._resolver = resolver

    async def list_files(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        limit: int = MAX_LIST_LIMIT,
    ) -> ListFilesResult:
        """One page of at most ``limit`` entries.

        With a delimiter, keys sharing a prefix up to the delimiter are
        collapsed into ``common_prefixes``. ``has_next`` is true while the
        returned marker is non-empty.

        Raises:
            InvalidArgumentError: ``limit`` outside ``[1, 1000]``, nothing is sent
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= MAX_LIST_LIMIT:
            raise InvalidArgumentError(
                f"invalid list limit {limit!r}, only allow [1, {MAX_LIST_LIMIT}]",
                field="limit",
            )
        host = await self._resolver.rsf_host(bucket)
        data = await self._http.call("POST", f"{host}{uri_list_files(bucket, prefix, delimiter, marker, limit)}")
        return ListFilesResult.model_validate(data or {})

    async def list_bucket(
        self,
        bucket: str,
        prefix: str = "",
        delimiter: str = "",
        marker: str = "",
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ListStream:
        """Open a streaming listing of everything under ``prefix``."""
        host = await self._resolver.rsf_host(bucket)
        url = f"{host}{uri_list_files_v2(bucket, prefix, delimiter, marker)}"
        stream = ListStream(self._http, url, cancel_event=cancel_event, bucket=bucket)
        return await stream.open()
