"""Rate-limited FIFO dispatcher for outbound Fleet API calls.

Every component submits through one :class:`RateLimitedDispatcher`, so
the combined request rate never exceeds ``max_requests_per_second``
regardless of how many coordination cycles or callers are in flight.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from fleetcharge._transport import Transport
from fleetcharge.exceptions import FleetError

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class QueuedCall:
    """A pending request owned by the dispatcher until serviced."""

    method: str
    path: str
    future: asyncio.Future[dict[str, Any]]
    body: Mapping[str, Any] | None = None
    params: Mapping[str, Any] | None = None
    enqueued_at: float = field(default_factory=time.monotonic)


class RateLimitedDispatcher:
    """Serialize calls behind one queue and pace dispatch start times.

    A single worker task drains the queue. Between two dispatches it
    waits until ``1 / max_requests_per_second`` seconds have passed since
    the previous dispatch started; on an empty queue it sleeps until the
    next :meth:`submit`. Dispatched calls run as their own tasks, so a
    slow response never holds up the queue and responses may complete
    out of order.
    """

    def __init__(self, transport: Transport, *, max_requests_per_second: float = 20.0) -> None:
        if max_requests_per_second <= 0:
            raise ValueError("max_requests_per_second must be positive")
        self._transport = transport
        self._interval = 1.0 / max_requests_per_second
        self._queue: asyncio.Queue[QueuedCall] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._in_flight: set[asyncio.Task[None]] = set()
        self._last_dispatch: float | None = None
        self._closed = False

    @property
    def interval(self) -> float:
        """Minimum seconds between consecutive dispatch starts."""
        return self._interval

    @property
    def queue_length(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def submit(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> asyncio.Future[dict[str, Any]]:
        """Enqueue a call and return a future for its decoded response.

        The future resolves or fails exactly once, independent of every
        other queued call.
        """
        if self._closed:
            raise FleetError("Dispatcher is closed")
        loop = asyncio.get_running_loop()
        if self._queue is None:
            self._queue = asyncio.Queue()
        future: asyncio.Future[dict[str, Any]] = loop.create_future()
        self._queue.put_nowait(QueuedCall(method=method.upper(), path=path, future=future, body=body, params=params))
        self._ensure_worker()
        return future

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Submit a call and wait for its response."""
        return await self.submit(method, path, body=body, params=params)

    def _ensure_worker(self) -> None:
        # Exactly one worker per dispatcher; a finished worker is replaced.
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run_worker())

    async def _run_worker(self) -> None:
        assert self._queue is not None  # noqa: S101
        queue = self._queue
        loop = asyncio.get_running_loop()
        while True:
            call = await queue.get()
            try:
                if call.future.done():
                    # Caller cancelled before dispatch.
                    continue
                if self._last_dispatch is not None:
                    delay = self._last_dispatch + self._interval - loop.time()
                    if delay > 0:
                        await asyncio.sleep(delay)
                self._last_dispatch = loop.time()
                _logger.debug(
                    "Dispatching %s %s (waited %.3fs, %d queued)",
                    call.method,
                    call.path,
                    time.monotonic() - call.enqueued_at,
                    queue.qsize(),
                )
                task = loop.create_task(self._execute(call))
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
            finally:
                queue.task_done()

    async def _execute(self, call: QueuedCall) -> None:
        try:
            result = await self._transport.request(call.method, call.path, body=call.body, params=call.params)
        except asyncio.CancelledError:
            if not call.future.done():
                call.future.cancel()
            raise
        except Exception as exc:  # noqa: BLE001 - delivered to the caller's future
            if not call.future.done():
                call.future.set_exception(exc)
            return
        if not call.future.done():
            call.future.set_result(result)

    def clear_queue(self) -> int:
        """Fail every call that has not been dispatched yet; return how many."""
        if self._queue is None:
            return 0
        cleared = 0
        while True:
            try:
                call = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._queue.task_done()
            if not call.future.done():
                call.future.set_exception(FleetError(f"{call.method} {call.path} dropped from dispatch queue"))
                cleared += 1
        return cleared

    async def close(self) -> None:
        """Stop the worker, fail queued calls and cancel in-flight ones."""
        self._closed = True
        self.clear_queue()
        worker = self._worker
        self._worker = None
        if worker is not None:
            worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await worker
        for task in list(self._in_flight):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)
